"""
EPUB3用テンプレート生成モジュール。

固定レイアウトページのXHTML、SMIL、OPF、nav、CSSのテンプレート生成を共通化します。
"""
from dataclasses import dataclass, field
from html import escape
from pathlib import Path
from typing import TYPE_CHECKING

from core.config import (
    LANG,
    MEDIA_ACTIVE_CLASS,
    MEDIA_PLAYBACK_ACTIVE_CLASS,
    PACKAGE_DOCUMENT,
)

if TYPE_CHECKING:
    from core.metadata_reader import BookMetadata


def _format_smil_clock_value(seconds: float) -> str:
    """
    秒数をSMIL3 clock value形式に変換する。

    Parameters
    ----------
    seconds : float
        秒数。

    Returns
    -------
    str
        SMIL3 clock value形式（例: "0:01:23.456"）。
    """
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = seconds % 60
    return f"{hours}:{minutes:02d}:{secs:06.3f}"


def format_clip_time(seconds: float) -> str:
    """SMILの clipBegin/clipEnd 用に秒数を小数点以下3桁で表記する（例: "1.250s"）。"""
    return f"{seconds:.3f}s"


# 画像ファイル拡張子からMIMEタイプへのマッピング
IMAGE_MEDIA_TYPES = {
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.gif': 'image/gif',
    '.svg': 'image/svg+xml',
    '.webp': 'image/webp',
}


def get_image_media_type(filename: str) -> str:
    """
    画像ファイル名からMIMEタイプを取得する。

    Parameters
    ----------
    filename : str
        画像ファイル名（拡張子付き）。

    Returns
    -------
    str
        MIMEタイプ。未知の拡張子の場合は'application/octet-stream'。
    """
    ext = Path(filename).suffix.lower()
    return IMAGE_MEDIA_TYPES.get(ext, 'application/octet-stream')


# =============================================================================
# ページXHTML
# =============================================================================

def generate_page_xhtml(
    page_number: int,
    title: str,
    highlight_layer: list[str],
    selectable_layer: list[str],
    flow_layer: list[str],
    image_href: str | None = None,
    viewport: tuple[int, int] | None = None,
    css_path: str = "../styles/fixed-layout.css",
    lang: str | None = None
) -> str:
    """
    固定レイアウトページのXHTMLドキュメントを生成する。

    Parameters
    ----------
    page_number : int
        ページ番号。
    title : str
        <title>要素に使うタイトル。
    highlight_layer : list[str]
        ハイライト対象層の要素（フォーマット済み）。
    selectable_layer : list[str]
        選択可能な不可視テキスト層の要素（フォーマット済み）。
    flow_layer : list[str]
        読み上げ・フロー層の要素（フォーマット済み）。
    image_href : str | None
        ページ画像への相対パス。Noneの場合は画像要素を出力しない。
    viewport : tuple[int, int] | None
        ビューポートの幅・高さ（px）。
    css_path : str
        CSSファイルへの相対パス。

    Returns
    -------
    str
        生成されたXHTMLドキュメント。
    """
    doc_lang = lang if lang else LANG
    if viewport:
        viewport_content = f"width={viewport[0]}px, height={viewport[1]}px"
    else:
        viewport_content = "width=device-width, height=device-height"

    image_section = ""
    if image_href:
        image_section = f'\n            <img src="{escape(image_href)}" alt="" class="page-image" aria-hidden="true"/>'

    def _join(items: list[str]) -> str:
        return "".join(f"\n{item}" for item in items)

    return f'''<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops" xml:lang="{doc_lang}" lang="{doc_lang}">
<head>
    <meta charset="UTF-8"/>
    <meta name="viewport" content="{viewport_content}"/>
    <title>{escape(title)}</title>
    <link rel="stylesheet" type="text/css" href="{css_path}"/>
</head>
<body class="fixed-layout-page">
    <div class="page-container">{image_section}
        <div class="highlight-layer" aria-hidden="true">{_join(highlight_layer)}
        </div>
        <div class="selectable-layer" aria-hidden="true">{_join(selectable_layer)}
        </div>
        <div class="text-content" role="article" aria-label="Page {page_number} content">{_join(flow_layer)}
        </div>
    </div>
</body>
</html>'''


# =============================================================================
# nav / container / CSS
# =============================================================================

def generate_nav_xhtml(
    book_title: str,
    pages: list[tuple[str, str]],
    toc_title: str = "Table of Contents",
    css_path: str = "../styles/fixed-layout.css",
    lang: str | None = None
) -> str:
    """
    目次用nav.xhtmlを生成する。

    Parameters
    ----------
    book_title : str
        書籍のタイトル。
    pages : list[tuple[str, str]]
        (nav.xhtmlからの相対href, 表示ラベル) のリスト。ページ順。
    toc_title : str
        目次見出し。

    Returns
    -------
    str
        生成されたnav.xhtmlドキュメント。
    """
    nav_items = "\n".join([
        f'            <li><a href="{escape(href)}">{escape(label)}</a></li>'
        for href, label in pages
    ])
    page_list_items = "\n".join([
        f'            <li><a href="{escape(href)}">{i}</a></li>'
        for i, (href, _) in enumerate(pages, start=1)
    ])
    doc_lang = lang if lang else LANG

    return f'''<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops" xml:lang="{doc_lang}">
<head>
    <title>{escape(book_title)} - {escape(toc_title)}</title>
    <link rel="stylesheet" type="text/css" href="{css_path}"/>
</head>
<body>
    <nav epub:type="toc" id="toc" role="doc-toc">
        <h1>{escape(toc_title)}</h1>
        <ol>
{nav_items}
        </ol>
    </nav>
    <nav epub:type="page-list" id="page-list" hidden="hidden">
        <ol>
{page_list_items}
        </ol>
    </nav>
</body>
</html>'''


def generate_container_xml() -> str:
    """META-INF/container.xml を生成する。"""
    return f'''<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
    <rootfiles>
        <rootfile full-path="{PACKAGE_DOCUMENT}" media-type="application/oebps-package+xml"/>
    </rootfiles>
</container>'''


def generate_fixed_layout_css(render_width: int = 0, render_height: int = 0) -> str:
    """
    固定レイアウト用のスタイルシートを生成する。

    レンダリング寸法が分かっている場合はピクセル指定、そうでなければビューポート全体。
    """
    width = f"{render_width}px" if render_width > 0 else "100vw"
    height = f"{render_height}px" if render_height > 0 else "100vh"
    active = MEDIA_ACTIVE_CLASS.lstrip("-")

    return f'''@charset "UTF-8";

* {{
    margin: 0;
    padding: 0;
    box-sizing: border-box;
}}

html, body {{
    width: {width};
    height: {height};
    overflow: hidden;
}}

.page-container {{
    position: relative;
    width: {width};
    height: {height};
    overflow: hidden;
    background-color: white;
}}

.page-image {{
    position: absolute;
    top: 0;
    left: 0;
    width: 100%;
    height: 100%;
    object-fit: contain;
    object-position: top left;
    z-index: 1;
}}

.highlight-layer,
.selectable-layer {{
    position: absolute;
    top: 0;
    left: 0;
    width: 100%;
    height: 100%;
}}

.highlight-layer {{
    z-index: 2;
    pointer-events: none;
}}

.highlight-target {{
    background-color: transparent;
    transition: background-color 0.1s ease;
}}

.selectable-layer {{
    z-index: 3;
}}

.selectable-text {{
    color: transparent;
    user-select: text;
    -webkit-user-select: text;
    line-height: 1.2;
    overflow: hidden;
}}

.text-content {{
    position: absolute;
    top: 0;
    left: 0;
    width: 1px;
    height: 1px;
    overflow: hidden;
    clip: rect(0 0 0 0);
}}

.{MEDIA_ACTIVE_CLASS},
.{active} {{
    background-color: rgba(255, 255, 0, 0.6);
}}

.highlight-target.{MEDIA_ACTIVE_CLASS},
.highlight-target.{active} {{
    background-color: rgba(255, 255, 0, 0.6);
}}
'''


# =============================================================================
# SMIL
# =============================================================================

def generate_smil_par(par_id: str, text_src: str, audio_src: str, clip_begin: float, clip_end: float) -> str:
    """SMIL par要素を生成する。"""
    return (
        f'            <par id="{par_id}">\n'
        f'                <text src="{escape(text_src)}"/>\n'
        f'                <audio src="{escape(audio_src)}" clipBegin="{format_clip_time(clip_begin)}" '
        f'clipEnd="{format_clip_time(clip_end)}"/>\n'
        f'            </par>\n'
    )


def generate_smil_document(
    seq_id: str,
    smil_pars: list[str],
    xhtml_path: str
) -> str:
    """
    SMILドキュメントを生成する。

    Parameters
    ----------
    seq_id : str
        ページの seq 要素のID。
    smil_pars : list[str]
        SMIL par要素のリスト。
    xhtml_path : str
        参照するXHTMLファイルへの相対パス。

    Returns
    -------
    str
        生成されたSMILドキュメント。
    """
    pars_content = "".join(smil_pars)

    return f'''<?xml version="1.0" encoding="UTF-8"?>
<smil xmlns="http://www.w3.org/ns/SMIL" xmlns:epub="http://www.idpf.org/2007/ops" version="3.0">
    <body>
        <seq id="{seq_id}" epub:textref="{escape(xhtml_path)}">
{pars_content}        </seq>
    </body>
</smil>'''


# =============================================================================
# OPF
# =============================================================================

@dataclass
class ManifestItem:
    """manifest の item 要素。"""
    id: str
    href: str
    media_type: str
    properties: list[str] = field(default_factory=list)
    media_overlay: str | None = None


@dataclass
class SpineItem:
    """spine の itemref 要素。"""
    idref: str
    properties: list[str] = field(default_factory=list)
    media_overlay: str | None = None
    linear: bool = True


def _generate_optional_metadata_elements(metadata: "BookMetadata | None") -> str:
    """
    オプションのメタデータ要素を生成する。

    Parameters
    ----------
    metadata : BookMetadata | None
        書籍のメタデータ。Noneの場合は空文字列を返す。

    Returns
    -------
    str
        生成されたメタデータ要素のXML文字列。
    """
    if metadata is None:
        return ""

    elements: list[str] = []

    if metadata.creator:
        elements.append(f"        <dc:creator>{escape(metadata.creator)}</dc:creator>")
    if metadata.publisher:
        elements.append(f"        <dc:publisher>{escape(metadata.publisher)}</dc:publisher>")
    if metadata.rights:
        elements.append(f"        <dc:rights>{escape(metadata.rights)}</dc:rights>")

    for key, value in metadata.accessibility_metadata:
        elements.append(f"        <meta property=\"schema:{escape(key)}\">{escape(value)}</meta>")

    if elements:
        return chr(10) + chr(10).join(elements)
    return ""


def _format_manifest_item(item: ManifestItem) -> str:
    attrs = f'id="{item.id}" href="{escape(item.href)}" media-type="{item.media_type}"'
    if item.properties:
        attrs += f' properties="{" ".join(item.properties)}"'
    if item.media_overlay:
        attrs += f' media-overlay="{item.media_overlay}"'
    return f"        <item {attrs}/>"


def _format_spine_item(item: SpineItem) -> str:
    attrs = f'idref="{item.idref}"'
    if not item.linear:
        attrs += ' linear="no"'
    if item.properties:
        attrs += f' properties="{" ".join(item.properties)}"'
    if item.media_overlay:
        attrs += f' media-overlay="{item.media_overlay}"'
    return f"        <itemref {attrs}/>"


def generate_opf_document(
    metadata: "BookMetadata",
    manifest_items: list[ManifestItem],
    spine_items: list[SpineItem],
    durations: dict[str, float] | None = None,
    viewport: tuple[int, int] | None = None,
    lang: str | None = None
) -> str:
    """
    固定レイアウト用OPFドキュメントを生成する。

    Parameters
    ----------
    metadata : BookMetadata
        書籍のメタデータ（タイトル、識別子、更新日時）。
    manifest_items : list[ManifestItem]
        manifest 項目。
    spine_items : list[SpineItem]
        spine 項目（ページ順）。
    durations : dict[str, float] | None
        SMIL manifest ID → 再生時間（秒）。空でなければメディアオーバーレイ用の
        メタデータ（総再生時間、個別再生時間、アクティブクラス）を出力する。
    viewport : tuple[int, int] | None
        rendition:viewport に出力する幅・高さ（px）。

    Returns
    -------
    str
        生成されたOPFドキュメント。
    """
    optional_metadata = _generate_optional_metadata_elements(metadata)
    doc_lang = lang or metadata.language or LANG

    rendition_metas = [
        '        <meta property="rendition:layout">pre-paginated</meta>',
        '        <meta property="rendition:orientation">auto</meta>',
        '        <meta property="rendition:spread">none</meta>',
    ]
    if viewport:
        rendition_metas.append(
            f'        <meta property="rendition:viewport">width={viewport[0]}, height={viewport[1]}</meta>'
        )

    media_metas: list[str] = []
    if durations:
        total = sum(durations.values())
        media_metas.append(f'        <meta property="media:duration">{_format_smil_clock_value(total)}</meta>')
        for smil_id, duration in durations.items():
            media_metas.append(
                f'        <meta property="media:duration" refines="#{smil_id}">'
                f'{_format_smil_clock_value(duration)}</meta>'
            )
        media_metas.append(f'        <meta property="media:active-class">{MEDIA_ACTIVE_CLASS}</meta>')
        media_metas.append(
            f'        <meta property="media:playback-active-class">{MEDIA_PLAYBACK_ACTIVE_CLASS}</meta>'
        )

    metas = "\n".join(rendition_metas + media_metas)
    manifest = "\n".join(_format_manifest_item(item) for item in manifest_items)
    spine = "\n".join(_format_spine_item(item) for item in spine_items)

    return f'''<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="3.0" unique-identifier="pub-id" xml:lang="{doc_lang}">
    <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
        <dc:identifier id="pub-id">{escape(metadata.identifier)}</dc:identifier>
        <dc:title>{escape(metadata.title)}</dc:title>
        <dc:language>{doc_lang}</dc:language>{optional_metadata}
        <meta property="dcterms:modified">{metadata.modified}</meta>
{metas}
    </metadata>
    <manifest>
{manifest}
    </manifest>
    <spine>
{spine}
    </spine>
</package>'''
