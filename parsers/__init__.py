"""
入力パースモジュール。

ページ抽出結果（JSON）、音声同期レコード、XHTMLの修復を提供する。
"""
from parsers.page_source import (
    BlockType,
    BoundingBox,
    ImageRef,
    TextBlock,
    Page,
    parse_page,
    load_pages,
)
from parsers.sync_source import (
    AudioSyncRecord,
    normalize_sync_record,
    normalize_sync_records,
    load_sync_records,
    group_by_page,
)
from parsers.markup_repair import RepairResult, repair_markup

__all__ = [
    "BlockType",
    "BoundingBox",
    "ImageRef",
    "TextBlock",
    "Page",
    "parse_page",
    "load_pages",
    "AudioSyncRecord",
    "normalize_sync_record",
    "normalize_sync_records",
    "load_sync_records",
    "group_by_page",
    "RepairResult",
    "repair_markup",
]
