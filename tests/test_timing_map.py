import pytest

from audio.sync.timing_map import (
    WordTiming,
    distribute_page_sync,
    fill_end_times,
    map_word_timings_to_blocks,
    word_timings_from_dicts,
    word_timings_from_textgrid,
)
from core.exceptions import SourceParsingError
from layout.layers import FlowBlock
from parsers.sync_source import AudioSyncRecord


TEXTGRID = '''File type = "ooTextFile"
Object class = "TextGrid"

xmin = 0
xmax = 2.5
tiers? <exists>
size = 1
item []:
    item [1]:
        class = "IntervalTier"
        name = "words"
        xmin = 0
        xmax = 2.5
        intervals: size = 4
        intervals [1]:
            xmin = 0
            xmax = 0.5
            text = "hello"
        intervals [2]:
            xmin = 0.5
            xmax = 0.7
            text = ""
        intervals [3]:
            xmin = 0.7
            xmax = 1.4
            text = "big"
        intervals [4]:
            xmin = 1.4
            xmax = 2.5
            text = "world"
'''


def _blocks(*texts):
    return [FlowBlock(block_id=f"b{i}", markup_id=f"page1_p{i}", highlight_id=None, text=t)
            for i, t in enumerate(texts, start=1)]


def test_page_sync_distribution_by_characters():
    record = AudioSyncRecord(page_number=1, block_id="", start_time=2.0, end_time=6.0, audio_file_path="a.mp3")
    parts = distribute_page_sync(record, _blocks("ab", "abcdef"))
    assert [p.block_id for p in parts] == ["b1", "b2"]
    assert parts[0].start_time == 2.0
    assert parts[0].end_time == pytest.approx(3.0)
    assert parts[1].start_time == pytest.approx(3.0)
    assert parts[1].end_time == 6.0
    assert all(p.audio_file_path == "a.mp3" for p in parts)


def test_page_sync_without_blocks():
    record = AudioSyncRecord(page_number=1, block_id="", start_time=0.0, end_time=1.0)
    assert distribute_page_sync(record, []) == []


def test_fill_end_times():
    filled = fill_end_times([WordTiming("a", 0.0), WordTiming("b", 0.4, 0.6), WordTiming("c", 1.0)])
    assert [t.end for t in filled] == [0.4, 0.6, pytest.approx(1.25)]


def test_word_timings_map_to_blocks_in_order():
    timings = word_timings_from_dicts([
        {"word": "one", "startTimeSec": 0.0, "endTimeSec": 0.3},
        {"word": "two", "startTimeSec": 0.3, "endTimeSec": 0.6},
        {"word": "three", "start": 0.7, "end": 1.2},
        {"word": "four", "start": 1.3},
    ])
    records = map_word_timings_to_blocks(_blocks("one two", "three four five"), timings, "page.mp3", 1)
    assert [(r.block_id, r.start_time, r.end_time) for r in records] == [
        ("b1", 0.0, 0.6),
        ("b2", 0.7, 1.55),
    ]
    assert records[0].audio_file_path == "page.mp3"


def test_textgrid_words_are_read(tmp_path):
    path = tmp_path / "page_1.TextGrid"
    path.write_text(TEXTGRID, encoding="utf-8")
    timings = word_timings_from_textgrid(path)
    assert [t.word for t in timings] == ["hello", "big", "world"]
    assert timings[1].start == pytest.approx(0.7)
    assert timings[2].end == pytest.approx(2.5)


def test_textgrid_unknown_tier_raises(tmp_path):
    path = tmp_path / "page_1.TextGrid"
    path.write_text(TEXTGRID, encoding="utf-8")
    with pytest.raises(SourceParsingError):
        word_timings_from_textgrid(path, tier_name="phones")


def test_textgrid_missing_file_raises(tmp_path):
    with pytest.raises(SourceParsingError):
        word_timings_from_textgrid(tmp_path / "none.TextGrid")
