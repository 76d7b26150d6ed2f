"""
ページ抽出結果の読み込みモジュール。

上流の抽出処理（OCR/AI抽出）が出力したページ情報を、
エンジン内部で扱う Page / TextBlock 型へ変換します。
フィールド名は camelCase と snake_case の両方を受け付けます。
"""
import json
import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from core import logger
from core.config import DEFAULT_PAGE_WIDTH_PT, DEFAULT_PAGE_HEIGHT_PT
from core.exceptions import SourceParsingError
from core.messages import msg


class BlockType(Enum):
    """テキストブロックの種別。"""
    TITLE = "title"
    HEADING1 = "heading1"
    HEADING2 = "heading2"
    HEADING3 = "heading3"
    PARAGRAPH = "paragraph"
    LIST_ITEM = "list-item"
    CAPTION = "caption"
    HEADER = "header"
    FOOTER = "footer"

    @property
    def is_heading(self) -> bool:
        """見出し系（title/heading1-3）かどうか。"""
        return self in (BlockType.TITLE, BlockType.HEADING1, BlockType.HEADING2, BlockType.HEADING3)

    @property
    def heading_level(self) -> int:
        """見出しレベル（1-6）。見出しでない場合は0。"""
        levels = {
            BlockType.TITLE: 1,
            BlockType.HEADING1: 1,
            BlockType.HEADING2: 2,
            BlockType.HEADING3: 3,
        }
        return levels.get(self, 0)

    @property
    def id_token(self) -> str:
        """要素IDに使う種別トークン。"""
        tokens = {
            BlockType.TITLE: "h",
            BlockType.HEADING1: "h",
            BlockType.HEADING2: "h",
            BlockType.HEADING3: "h",
            BlockType.PARAGRAPH: "p",
            BlockType.LIST_ITEM: "li",
            BlockType.CAPTION: "cap",
            BlockType.HEADER: "hdr",
            BlockType.FOOTER: "ftr",
        }
        return tokens[self]


# 上流で使われる別名 → BlockType
_TYPE_ALIASES: dict[str, BlockType] = {
    "list_item": BlockType.LIST_ITEM,
    "listitem": BlockType.LIST_ITEM,
    "list": BlockType.LIST_ITEM,
    "text": BlockType.PARAGRAPH,
    "body": BlockType.PARAGRAPH,
    "h1": BlockType.HEADING1,
    "h2": BlockType.HEADING2,
    "h3": BlockType.HEADING3,
}


@dataclass(frozen=True)
class BoundingBox:
    """ソースページ座標系（左下原点、Y上向き、単位ポイント）の矩形。"""
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class ImageRef:
    """レンダリング済みページ画像の参照。"""
    path: str
    width: int = 0
    height: int = 0


@dataclass
class TextBlock:
    """抽出されたテキストブロック。"""
    id: str
    text: str
    type: BlockType = BlockType.PARAGRAPH
    bounding_box: BoundingBox | None = None
    font_size: float | None = None
    font_name: str | None = None
    is_bold: bool = False
    is_italic: bool = False
    reading_order: int | None = None


@dataclass
class Page:
    """1ページ分の抽出結果。エンジン内では読み取り専用として扱う。"""
    page_number: int
    width_pt: float = DEFAULT_PAGE_WIDTH_PT
    height_pt: float = DEFAULT_PAGE_HEIGHT_PT
    text: str = ""
    blocks: list[TextBlock] = field(default_factory=list)
    image: ImageRef | None = None


def _pick(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """複数の候補キーから最初に存在する値を返す。"""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def parse_block_type(raw_type: str | None, level: int | None = None) -> BlockType:
    """
    上流の種別文字列を BlockType に変換する。

    "heading" と level の組は headingN に変換する（レベルは1-3に丸める）。
    未知の種別は paragraph として扱う。
    """
    if not raw_type:
        return BlockType.PARAGRAPH
    value = str(raw_type).strip().lower()
    if value == "heading":
        lvl = max(1, min(3, int(level or 2)))
        return BlockType(f"heading{lvl}")
    try:
        return BlockType(value)
    except ValueError:
        pass
    if value in _TYPE_ALIASES:
        return _TYPE_ALIASES[value]
    logger.debug(msg("unknown_block_type", type=raw_type))
    return BlockType.PARAGRAPH


def _parse_bbox(data: dict[str, Any] | None) -> BoundingBox | None:
    """バウンディングボックス辞書をパースする。欠損値がある場合はNone。"""
    if not data:
        return None
    try:
        return BoundingBox(
            x=float(_pick(data, "x", "left")),
            y=float(_pick(data, "y", "bottom")),
            width=float(_pick(data, "width", "w")),
            height=float(_pick(data, "height", "h")),
        )
    except (TypeError, ValueError):
        return None


def parse_block(data: dict[str, Any], page_number: int, index: int) -> TextBlock:
    """ブロック辞書を TextBlock に変換する。IDがない場合は位置から補う。"""
    block_id = _pick(data, "id", "blockId", "block_id")
    if not block_id:
        block_id = f"block_{page_number}_{index}"
    reading_order = _pick(data, "readingOrder", "reading_order")
    font_size = _pick(data, "fontSize", "font_size")
    return TextBlock(
        id=str(block_id),
        text=str(_pick(data, "text", default="")),
        type=parse_block_type(_pick(data, "type"), _pick(data, "level")),
        bounding_box=_parse_bbox(_pick(data, "boundingBox", "bounding_box", "bbox")),
        font_size=float(font_size) if font_size is not None else None,
        font_name=_pick(data, "fontName", "font_name"),
        is_bold=bool(_pick(data, "isBold", "is_bold", default=False)),
        is_italic=bool(_pick(data, "isItalic", "is_italic", default=False)),
        reading_order=int(reading_order) if reading_order is not None else None,
    )


def _page_dimension(data: dict[str, Any], keys: tuple[str, ...], default: float, page_number: int) -> float:
    """ページ寸法を読む。数値でない・0以下の値は既定値に置き換える。"""
    raw = _pick(data, *keys, default=default)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        value = 0.0
    if math.isfinite(value) and value > 0:
        return value
    logger.page_warning(page_number, msg("page_size_invalid", key=keys[0], value=raw, default=default))
    return default


def parse_page(data: dict[str, Any], base_dir: Path | None = None) -> Page:
    """
    ページ辞書を Page に変換する。

    Parameters
    ----------
    data : dict[str, Any]
        1ページ分の抽出結果。
    base_dir : Path | None
        画像パスが相対の場合の基準ディレクトリ。

    Returns
    -------
    Page
        変換したページ。

    Raises
    ------
    SourceParsingError
        ページ番号がない、または数値でない場合。
    """
    try:
        page_number = int(_pick(data, "pageNumber", "page_number", "page"))
    except (TypeError, ValueError):
        raise SourceParsingError(msg("page_number_missing"))

    raw_blocks = _pick(data, "textBlocks", "text_blocks", "blocks", default=[])
    blocks = [parse_block(b, page_number, i) for i, b in enumerate(raw_blocks)]

    image = None
    image_data = _pick(data, "image", "pageImage", "page_image")
    if isinstance(image_data, str):
        image_data = {"path": image_data}
    if image_data and _pick(image_data, "path", "fileName", "file_name"):
        image_path = Path(_pick(image_data, "path", "fileName", "file_name"))
        if base_dir is not None and not image_path.is_absolute():
            image_path = base_dir / image_path
        image = ImageRef(
            path=str(image_path),
            width=int(_pick(image_data, "width", default=0)),
            height=int(_pick(image_data, "height", default=0)),
        )

    return Page(
        page_number=page_number,
        width_pt=_page_dimension(data, ("widthPt", "width_pt", "width"), DEFAULT_PAGE_WIDTH_PT, page_number),
        height_pt=_page_dimension(data, ("heightPt", "height_pt", "height"), DEFAULT_PAGE_HEIGHT_PT, page_number),
        text=str(_pick(data, "text", default="")),
        blocks=blocks,
        image=image,
    )


def load_pages(pages_path: str | Path) -> list[Page]:
    """
    ページ抽出結果JSONを読み込む。

    JSONはページ配列、または {"pages": [...]} 形式を受け付ける。
    返すリストはページ番号の昇順に並べる。

    Raises
    ------
    SourceParsingError
        JSONとして読み込めない場合。
    """
    path = Path(pages_path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise SourceParsingError(msg("pages_load_failed", path=path, error=e), str(path))

    raw_pages = data.get("pages", []) if isinstance(data, dict) else data
    pages = [parse_page(p, base_dir=path.parent) for p in raw_pages]
    pages.sort(key=lambda p: p.page_number)
    logger.info(msg("pages_loaded", count=len(pages), path=path))
    return pages
