"""
ページレイヤー生成モジュール。

1ページ分の抽出結果から、ページ画像の上に重ねる3つのレイヤーを持つ
固定レイアウトXHTMLを生成します。

    ハイライト層   バウンディングボックスを持つブロックごとの絶対配置矩形
    選択テキスト層 同じ位置に置く不可視テキスト（選択・検索用）
    フロー層       見出し・段落・文・単語のspanを持つ読み上げ用テキスト

生成と同時に、論理ブロックID → マークアップIDの対応表（IdMapping）と、
出力したIDを文書順に並べたリストを記録します。
"""
from collections import Counter
from dataclasses import dataclass, field
from html import escape
from pathlib import Path
from typing import Iterable

from core import logger
from core.config import ConversionOptions, get_language_config_for_tag, IMAGE_DIR, TEXT_DIR
from core.messages import msg
from epub.templates import generate_page_xhtml
from layout.coordinates import transform_to_percent, font_size_percent
from layout.identifiers import IdentifierAssigner
from parsers.page_source import BlockType, ImageRef, Page, TextBlock
from text import clean_block_text, split_sentences, split_words


@dataclass
class FlowBlock:
    """フロー層に出力したブロック。"""
    block_id: str                 # 論理ブロックID（抽出結果のID）
    markup_id: str                # フロー層要素のID
    highlight_id: str | None      # ハイライト矩形のID（ボックスがない場合None）
    text: str
    sentence_ids: list[str] = field(default_factory=list)


@dataclass
class PageLayout:
    """1ページ分のレイヤー生成結果。"""
    page_number: int
    xhtml_filename: str
    xhtml: str
    id_mapping: dict[str, str]
    element_ids: list[str]
    texts: dict[str, str]
    flow_blocks: list[FlowBlock]
    image_path: str | None = None
    image_filename: str | None = None
    viewport: tuple[int, int] | None = None
    is_emergency: bool = False

    @property
    def xhtml_href(self) -> str:
        """OEBPSからの相対パス。"""
        return f"{TEXT_DIR}/{self.xhtml_filename}"

    @property
    def known_ids(self) -> frozenset[str]:
        """このページのマークアップに存在するID。"""
        return frozenset(self.element_ids)


def page_xhtml_filename(page_number: int) -> str:
    return f"page_{page_number}.xhtml"


def page_image_filename(page_number: int, image: ImageRef) -> str:
    suffix = Path(image.path).suffix.lower() or ".png"
    return f"page_{page_number}{suffix}"


# =============================================================================
# 繰り返しテキスト（柱・ノンブル）
# =============================================================================

def _repetition_key(text: str) -> str:
    return text.strip().lower()


def identify_repetitive_text(pages: list[Page], max_length: int = 100) -> set[str]:
    """
    複数ページに繰り返し現れる短いテキスト（柱・フッターなど）を特定する。

    Parameters
    ----------
    pages : list[Page]
        全ページ。
    max_length : int
        対象とするテキストの最大長。これ以上長いブロックは本文とみなす。

    Returns
    -------
    set[str]
        繰り返しテキスト（前後空白除去・小文字化済み）の集合。

    Notes
    -----
    ページ数の1/3（最低2ページ）以上に現れるテキストを繰り返しとみなす。
    """
    frequency: Counter[str] = Counter()
    for page in pages:
        seen = {
            _repetition_key(block.text)
            for block in page.blocks
            if block.text and 0 < len(block.text.strip()) < max_length
        }
        frequency.update(seen)

    threshold = max(2, len(pages) // 3)
    repetitive = {text for text, count in frequency.items() if count >= threshold}
    for text in sorted(repetitive):
        logger.debug(msg("repetitive_text_found", text=text))
    return repetitive


# =============================================================================
# ブロック順序
# =============================================================================

def order_blocks(blocks: Iterable[TextBlock]) -> list[TextBlock]:
    """
    フロー層の出力順にブロックを並べる。

    reading_order を持つブロックをその順に先頭へ、残りはY座標の降順
    （ページ上方から）、同じ高さではX座標の昇順に並べる。
    バウンディングボックスを持たないブロックは入力順で末尾に置く。
    """
    def sort_key(item: tuple[int, TextBlock]):
        index, block = item
        if block.reading_order is not None:
            return (0, block.reading_order, 0.0, index)
        if block.bounding_box is not None:
            return (1, -block.bounding_box.y, block.bounding_box.x, index)
        return (2, 0, 0.0, index)

    return [block for _, block in sorted(enumerate(blocks), key=sort_key)]


# =============================================================================
# 要素生成
# =============================================================================

def _flow_tag(block_type: BlockType) -> tuple[str, str]:
    """ブロック種別からフロー層のタグ名とclass属性を返す。"""
    if block_type.is_heading:
        level = max(1, min(6, block_type.heading_level))
        return f"h{level}", ""
    if block_type == BlockType.LIST_ITEM:
        return "p", ' class="list-item"'
    return "p", ""


class _LayerWriter:
    """1ページ分のレイヤー要素とIDを蓄積する。"""

    def __init__(self, page: Page, assigner: IdentifierAssigner):
        self.page = page
        self.assigner = assigner
        self.highlight: list[str] = []
        self.selectable: list[str] = []
        self.flow: list[str] = []
        self.highlight_ids: list[str] = []
        self.flow_ids: list[str] = []
        self.id_mapping: dict[str, str] = {}
        self.texts: dict[str, str] = {}
        self.flow_blocks: list[FlowBlock] = []

    def add_block(self, block: TextBlock, text: str, markup_id: str | None = None) -> None:
        if markup_id is None:
            markup_id = self.assigner.assign(block.type.id_token)
        self.texts[markup_id] = text

        highlight_id = None
        if block.bounding_box is not None:
            highlight_id = f"{markup_id}-highlight"
            rect = transform_to_percent(block.bounding_box, self.page.width_pt, self.page.height_pt)
            font_pct = font_size_percent(block.font_size, self.page.height_pt)
            self.highlight.append(
                f'            <div id="{highlight_id}" class="highlight-target" '
                f'style="{rect.to_percent_style()}"></div>'
            )
            self.selectable.append(
                f'            <div class="selectable-text" data-block="{markup_id}" '
                f'style="{rect.to_percent_style(font_pct)}">{escape(text)}</div>'
            )
            self.highlight_ids.append(highlight_id)
            self.texts[highlight_id] = text

        self.id_mapping[block.id] = highlight_id or markup_id
        self.flow_ids.append(markup_id)

        sentence_ids: list[str] = []
        sentence_spans: list[str] = []
        for sentence in split_sentences(text) or [text]:
            sentence_id = self.assigner.assign_sentence(markup_id)
            sentence_ids.append(sentence_id)
            self.flow_ids.append(sentence_id)
            self.texts[sentence_id] = sentence

            word_spans: list[str] = []
            for word in split_words(sentence) or [sentence]:
                word_id = self.assigner.assign_word(sentence_id)
                self.flow_ids.append(word_id)
                self.texts[word_id] = word
                word_spans.append(f'<span id="{word_id}">{escape(word)}</span>')
            sentence_spans.append(f'<span id="{sentence_id}">{" ".join(word_spans)}</span>')

        tag, class_attr = _flow_tag(block.type)
        self.flow.append(f'            <{tag} id="{markup_id}"{class_attr}>{" ".join(sentence_spans)}</{tag}>')
        self.flow_blocks.append(FlowBlock(
            block_id=block.id,
            markup_id=markup_id,
            highlight_id=highlight_id,
            text=text,
            sentence_ids=sentence_ids,
        ))

    @property
    def element_ids(self) -> list[str]:
        # マークアップ上の出現順（ハイライト層 → フロー層）
        return self.highlight_ids + self.flow_ids


def _viewport(page: Page, image: ImageRef, options: ConversionOptions) -> tuple[int, int]:
    if options.render_width > 0 and options.render_height > 0:
        return options.render_width, options.render_height
    if image.width > 0 and image.height > 0:
        return image.width, image.height
    return round(page.width_pt), round(page.height_pt)


def build_page_layout(
    page: Page,
    image: ImageRef | None,
    assigner: IdentifierAssigner | None = None,
    options: ConversionOptions | None = None,
    repetitive_text: set[str] | None = None,
) -> PageLayout | None:
    """
    1ページ分のレイヤーXHTMLを生成する。

    Parameters
    ----------
    page : Page
        ページの抽出結果。
    image : ImageRef | None
        添付できたページ画像。Noneの場合、そのページは出力しない。
    assigner : IdentifierAssigner | None
        ID割り当て器。省略時はこのページ専用に新しく作成する。
    options : ConversionOptions | None
        変換オプション。
    repetitive_text : set[str] | None
        フロー層から除外する繰り返しテキスト（skip_repetitive_text 有効時のみ使用）。

    Returns
    -------
    PageLayout | None
        生成結果。画像がない場合はNone。

    Notes
    -----
    - ブロックが0件でページ本文がある場合は、ボックスを持たない緊急ブロックを
      1件だけ合成する（ID: page{N}_emergency）。
    - ブロックも本文もないページは空のレイヤーのまま出力する。
    """
    if image is None:
        logger.page_warning(page.page_number, msg("page_image_missing"))
        return None

    options = options or ConversionOptions()
    assigner = assigner or IdentifierAssigner(page.page_number)
    writer = _LayerWriter(page, assigner)
    skip = repetitive_text if options.skip_repetitive_text and repetitive_text else set()

    is_emergency = False
    if page.blocks:
        for block in order_blocks(page.blocks):
            text = clean_block_text(block.text)
            if not text:
                continue
            if _repetition_key(block.text) in skip:
                logger.page_debug(page.page_number, msg("repetitive_text_skipped", block_id=block.id))
                continue
            writer.add_block(block, text)
    elif clean_block_text(page.text):
        emergency_id = assigner.reserve(f"page{page.page_number}_emergency")
        emergency = TextBlock(id=emergency_id, text=page.text, type=BlockType.PARAGRAPH)
        writer.add_block(emergency, clean_block_text(page.text), markup_id=emergency_id)
        is_emergency = True
        logger.page_warning(page.page_number, msg("emergency_block_used"))
    else:
        logger.page_debug(page.page_number, msg("blank_page"))

    language = get_language_config_for_tag(options.lang)
    image_filename = page_image_filename(page.page_number, image)
    viewport = _viewport(page, image, options)
    xhtml = generate_page_xhtml(
        page_number=page.page_number,
        title=language.page_label.format(n=page.page_number),
        highlight_layer=writer.highlight,
        selectable_layer=writer.selectable,
        flow_layer=writer.flow,
        image_href=f"../{IMAGE_DIR}/{image_filename}",
        viewport=viewport,
        lang=options.lang,
    )

    return PageLayout(
        page_number=page.page_number,
        xhtml_filename=page_xhtml_filename(page.page_number),
        xhtml=xhtml,
        id_mapping=writer.id_mapping,
        element_ids=writer.element_ids,
        texts=writer.texts,
        flow_blocks=writer.flow_blocks,
        image_path=image.path,
        image_filename=image_filename,
        viewport=viewport,
        is_emergency=is_emergency,
    )
