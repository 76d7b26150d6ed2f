"""
レイアウトモジュール。

座標変換、要素ID割り当て、ページレイヤー生成、読み上げ順序の解決を提供する。
"""
from layout.coordinates import (
    RenderRect,
    resolve_top,
    transform_to_percent,
    transform_to_pixels,
    font_size_percent,
)
from layout.identifiers import IdentifierAssigner
from layout.layers import (
    FlowBlock,
    PageLayout,
    build_page_layout,
    identify_repetitive_text,
    order_blocks,
)
from layout.reading_order import (
    hierarchy_level,
    order_from_markup,
    order_from_layout,
    resolve_reading_order,
)

__all__ = [
    "RenderRect", "resolve_top", "transform_to_percent", "transform_to_pixels", "font_size_percent",
    "IdentifierAssigner",
    "FlowBlock", "PageLayout", "build_page_layout", "identify_repetitive_text", "order_blocks",
    "hierarchy_level", "order_from_markup", "order_from_layout", "resolve_reading_order",
]
