"""
タイミング情報からブロック単位の同期レコードを作るモジュール。

- ページ単位の同期レコード（ブロックIDなし）を、ページのブロックへ文字数比で配分する
- TTSやTextGridの単語タイミングを、読み上げ順のブロックへ単語数で対応付ける
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, TYPE_CHECKING

from audio.textgrid.utils import extract_textgrid_intervals
from parsers.sync_source import AudioSyncRecord
from text import count_chars, split_words

if TYPE_CHECKING:
    from layout.layers import FlowBlock


# 最後の単語に終了時刻がない場合に加える長さ（秒）
LAST_WORD_TAIL = 0.25


@dataclass
class WordTiming:
    """単語1つ分のタイミング。"""
    word: str
    start: float
    end: float | None = None


def distribute_page_sync(record: AudioSyncRecord, blocks: list["FlowBlock"]) -> list[AudioSyncRecord]:
    """
    ページ単位の同期レコードをブロックへ配分する。

    Parameters
    ----------
    record : AudioSyncRecord
        ブロックIDを持たない同期レコード。
    blocks : list[FlowBlock]
        フロー層の出力順に並んだブロック。

    Returns
    -------
    list[AudioSyncRecord]
        ブロックごとのレコード。ブロックがなければ空リスト。

    Notes
    -----
    各ブロックの長さはテキストの文字数（空白を除く、最低1）に比例させる。
    最後のブロックの終了時刻は元のレコードの終了時刻に一致させる。
    """
    if not blocks:
        return []
    weights = [max(1, count_chars(block.text)) for block in blocks]
    total_weight = sum(weights)
    span = record.end_time - record.start_time

    result: list[AudioSyncRecord] = []
    cursor = record.start_time
    for i, (block, weight) in enumerate(zip(blocks, weights)):
        if i == len(blocks) - 1:
            end = record.end_time
        else:
            end = cursor + span * weight / total_weight
        result.append(AudioSyncRecord(
            page_number=record.page_number,
            block_id=block.block_id,
            start_time=cursor,
            end_time=end,
            audio_file_path=record.audio_file_path,
            should_read=True,
            custom_text=block.text,
        ))
        cursor = end
    return result


def fill_end_times(timings: list[WordTiming]) -> list[WordTiming]:
    """終了時刻のない単語に、次の単語の開始時刻（最後は開始 + 0.25秒）を補う。"""
    filled: list[WordTiming] = []
    for i, timing in enumerate(timings):
        end = timing.end
        if end is None:
            if i + 1 < len(timings):
                end = timings[i + 1].start
            else:
                end = timing.start + LAST_WORD_TAIL
        filled.append(WordTiming(word=timing.word, start=timing.start, end=end))
    return filled


def map_word_timings_to_blocks(
    blocks: list["FlowBlock"],
    timings: list[WordTiming],
    audio_file_path: str,
    page_number: int,
) -> list[AudioSyncRecord]:
    """
    単語タイミングをブロックへ対応付けて同期レコードを作る。

    ブロックを読み上げ順に見て、ブロックの単語数だけタイミングを消費する。
    タイミングが尽きた時点で終了する。
    """
    timings = fill_end_times([t for t in timings if t.word.strip()])
    records: list[AudioSyncRecord] = []
    index = 0
    for block in blocks:
        word_count = len(split_words(block.text))
        if word_count == 0:
            continue
        if index >= len(timings):
            break
        first = timings[index]
        last = timings[min(index + word_count - 1, len(timings) - 1)]
        records.append(AudioSyncRecord(
            page_number=page_number,
            block_id=block.block_id,
            start_time=round(first.start, 3),
            end_time=round(last.end, 3),
            audio_file_path=audio_file_path,
            custom_text=block.text,
        ))
        index += word_count
    return records


def word_timings_from_textgrid(textgrid_path: str | Path, tier_name: str | None = None) -> list[WordTiming]:
    """TextGridファイルの単語tierから単語タイミングを読み込む。"""
    intervals, _ = extract_textgrid_intervals(textgrid_path, tier_name)
    return [WordTiming(word=label, start=start, end=end) for label, start, end in intervals]


def word_timings_from_dicts(items: Iterable[dict]) -> list[WordTiming]:
    """{"word", "startTimeSec"|"start", "endTimeSec"|"end"} 形式の辞書から単語タイミングを作る。"""
    timings: list[WordTiming] = []
    for item in items:
        start = item.get("startTimeSec", item.get("start", 0.0))
        end = item.get("endTimeSec", item.get("end"))
        timings.append(WordTiming(
            word=str(item.get("word", "")),
            start=float(start or 0.0),
            end=float(end) if end is not None else None,
        ))
    return timings
