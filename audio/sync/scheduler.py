"""
同期タイミングの調整モジュール。

解決済みの同期エントリーに対して、並べ替え、重なり補正、最小再生時間の確保、
句読点に応じたポーズ挿入、検証を行います。
"""
import math
import re
from dataclasses import dataclass
from functools import cmp_to_key

from core.config import (
    OVERLAP_GAP,
    MIN_DURATION_BASE,
    MIN_DURATION_PER_WORD,
    MIN_DURATION_PER_CHAR,
    NEXT_START_BUFFER,
    PAUSE_SENTENCE,
    PAUSE_SENTENCE_BONUS,
    PAUSE_CLAUSE,
    PAUSE_DEFAULT,
    PAUSE_MIN,
    PAUSE_MAX,
    PAUSE_BUFFER_MAX,
    PAUSE_BUFFER_FLOOR,
    VALID_ID_PATTERN,
)
from layout.reading_order import hierarchy_level, LEVEL_PARAGRAPH
from text import (
    count_chars,
    count_words,
    trailing_punctuation,
    is_sentence_terminal,
    is_emphatic_terminal,
    is_clause_punctuation,
)


_VALID_ID_RE = re.compile(VALID_ID_PATTERN)


@dataclass
class TimedEntry:
    """調整中の同期エントリー（解決済みのマークアップIDを持つ）。"""
    markup_id: str
    start: float
    end: float
    text: str = ""
    audio_file_path: str = ""
    source_id: str = ""

    @property
    def duration(self) -> float:
        return self.end - self.start

    @property
    def level(self) -> int:
        return hierarchy_level(self.markup_id)


# =============================================================================
# 時間計算
# =============================================================================

def minimum_duration(text: str) -> float:
    """テキスト量に応じた最小再生時間（秒）。"""
    return max(
        MIN_DURATION_BASE,
        MIN_DURATION_BASE + MIN_DURATION_PER_WORD * count_words(text),
        MIN_DURATION_BASE + MIN_DURATION_PER_CHAR * count_chars(text),
    )


def pause_after(text: str, is_paragraph: bool = False) -> float:
    """
    エントリー末尾に挿入するポーズ（秒）。

    文末記号の後は0.5秒（段落末、感嘆・疑問符でそれぞれ0.1秒加算）、
    読点・節区切りの後は0.3秒、それ以外は0.25秒。結果は [0.2, 0.8] に丸める。
    """
    mark = trailing_punctuation(text)
    if is_sentence_terminal(mark):
        pause = PAUSE_SENTENCE
        if is_paragraph:
            pause += PAUSE_SENTENCE_BONUS
        if is_emphatic_terminal(mark):
            pause += PAUSE_SENTENCE_BONUS
    elif is_clause_punctuation(mark):
        pause = PAUSE_CLAUSE
    else:
        pause = PAUSE_DEFAULT
    return max(PAUSE_MIN, min(PAUSE_MAX, pause))


# =============================================================================
# 並べ替え
# =============================================================================

def sort_entries(entries: list[TimedEntry], order: dict[str, int] | None = None) -> list[TimedEntry]:
    """
    エントリーを読み上げ順に並べる。

    両方が読み上げ順の索引を持てば索引順、そうでなければ階層レベル順
    （単語 < 文 < 段落）、それも同じなら開始時刻順。
    """
    order = order or {}

    def compare(a: TimedEntry, b: TimedEntry) -> int:
        ia, ib = order.get(a.markup_id), order.get(b.markup_id)
        if ia is not None and ib is not None and ia != ib:
            return -1 if ia < ib else 1
        if a.level != b.level:
            return -1 if a.level < b.level else 1
        if a.start != b.start:
            return -1 if a.start < b.start else 1
        return 0

    return sorted(entries, key=cmp_to_key(compare))


# =============================================================================
# タイミング調整
# =============================================================================

def schedule(entries: list[TimedEntry]) -> list[TimedEntry]:
    """
    並べ替え済みのエントリーに重なり補正・最小時間・ポーズを適用する。

    Notes
    -----
    先頭から1回だけ走査する。各エントリーについて:
        1. 開始が直前の終了より前なら、直前の終了 + 0.05秒まで開始と終了を同じだけずらす
        2. 最小再生時間に満たなければ終了を延ばす（次の開始 - 0.1秒を上限とするが、
           0.3秒の下限は必ず確保する）
        3. 次の開始 - 余白 を越えない範囲でポーズを加える
    下限確保で次のエントリーと重なった場合は、次のエントリーの手順1で解消される。
    """
    last_end: float | None = None
    for i, entry in enumerate(entries):
        following = entries[i + 1] if i + 1 < len(entries) else None

        if last_end is not None and entry.start < last_end:
            delta = last_end + OVERLAP_GAP - entry.start
            entry.start += delta
            entry.end += delta

        needed = minimum_duration(entry.text)
        if entry.duration < needed:
            target = entry.start + needed
            if following is not None:
                target = min(target, following.start - NEXT_START_BUFFER)
            target = max(target, entry.start + MIN_DURATION_BASE)
            entry.end = max(entry.end, target)

        pause = pause_after(entry.text, entry.level == LEVEL_PARAGRAPH)
        if following is None:
            entry.end += pause
        else:
            room = following.start - entry.end
            if room > PAUSE_BUFFER_FLOOR:
                buffer = min(PAUSE_BUFFER_MAX, max(PAUSE_BUFFER_FLOOR, room - pause))
                pause = min(pause, room - buffer)
                if pause > 0:
                    entry.end += pause

        last_end = entry.end
    return entries


# =============================================================================
# 検証
# =============================================================================

def has_valid_times(start: float, end: float) -> bool:
    """開始・終了が有限で、開始が0以上、終了が開始より後かどうか。"""
    return (
        math.isfinite(start)
        and math.isfinite(end)
        and start >= 0
        and end > start
    )


def invalid_reason(entry: TimedEntry, known_ids: frozenset[str] | set[str]) -> str | None:
    """エントリーを破棄すべき理由を返す。問題なければNone。"""
    if not has_valid_times(entry.start, entry.end):
        return "invalid_duration"
    if not _VALID_ID_RE.match(entry.markup_id):
        return "invalid_id"
    if entry.markup_id not in known_ids:
        return "unresolved_id"
    return None
