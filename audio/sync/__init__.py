"""
音声同期（メディアオーバーレイ）モジュール。

同期レコードの粒度選択、ID解決、タイミング調整、ページ単位のSMIL生成を提供する。
"""
from audio.sync.builder import SmilEntry, SmilDocument, SmilBuildResult, build_page_smil
from audio.sync.granularity import apply_granularity, upsample, parent_id
from audio.sync.resolver import IdResolver, Resolution
from audio.sync.scheduler import TimedEntry, minimum_duration, pause_after, schedule, sort_entries
from audio.sync.timing_map import (
    WordTiming,
    distribute_page_sync,
    map_word_timings_to_blocks,
    word_timings_from_textgrid,
    word_timings_from_dicts,
)

__all__ = [
    "SmilEntry", "SmilDocument", "SmilBuildResult", "build_page_smil",
    "apply_granularity", "upsample", "parent_id",
    "IdResolver", "Resolution",
    "TimedEntry", "minimum_duration", "pause_after", "schedule", "sort_entries",
    "WordTiming", "distribute_page_sync", "map_word_timings_to_blocks",
    "word_timings_from_textgrid", "word_timings_from_dicts",
]
