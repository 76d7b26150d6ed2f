"""
同期粒度の選択モジュール。

同期レコードを要求された粒度（word / sentence / paragraph）に絞り込みます。
要求された粒度のレコードがない場合は、1段階だけ細かい粒度のレコードを
親ID（末尾の _s{n} / _w{n} を除いたID）ごとにまとめて補います。
"""
import re
from collections import OrderedDict

from core.config import GRANULARITIES
from core.exceptions import SmilGenerationError
from core.messages import msg
from layout.reading_order import hierarchy_level, LEVEL_WORD, LEVEL_SENTENCE, LEVEL_PARAGRAPH
from parsers.sync_source import AudioSyncRecord


_LEVELS = {
    "word": LEVEL_WORD,
    "sentence": LEVEL_SENTENCE,
    "paragraph": LEVEL_PARAGRAPH,
}

_CHILD_SUFFIX_RE = re.compile(r"_(?:s|w)\d+$")


def record_level(record: AudioSyncRecord) -> int:
    """レコードの階層レベル。"""
    return hierarchy_level(record.block_id)


def parent_id(element_id: str) -> str:
    """末尾の _s{n} / _w{n} を1つ取り除いた親IDを返す。"""
    return _CHILD_SUFFIX_RE.sub("", element_id)


def upsample(
    records: list[AudioSyncRecord],
    texts: dict[str, str] | None = None,
) -> list[AudioSyncRecord]:
    """
    子レコードを親IDごとに1件へまとめる。

    開始時刻は最小値、終了時刻は最大値、テキストは子のテキストを空白で連結する。
    出力順は各親が最初に現れた順。
    """
    texts = texts or {}
    groups: OrderedDict[str, list[AudioSyncRecord]] = OrderedDict()
    for record in records:
        groups.setdefault(parent_id(record.block_id), []).append(record)

    combined: list[AudioSyncRecord] = []
    for parent, children in groups.items():
        parts = [c.custom_text if c.custom_text is not None else texts.get(c.block_id, "") for c in children]
        joined = " ".join(p for p in parts if p)
        first = children[0]
        combined.append(AudioSyncRecord(
            page_number=first.page_number,
            block_id=parent,
            start_time=min(c.start_time for c in children),
            end_time=max(c.end_time for c in children),
            audio_file_path=first.audio_file_path,
            should_read=True,
            custom_text=joined or None,
        ))
    return combined


def apply_granularity(
    records: list[AudioSyncRecord],
    granularity: str | None,
    page_number: int = 0,
    texts: dict[str, str] | None = None,
) -> list[AudioSyncRecord]:
    """
    レコードを要求された粒度に揃える。

    Parameters
    ----------
    records : list[AudioSyncRecord]
        1ページ分の同期レコード。
    granularity : str | None
        "word" / "sentence" / "paragraph"。Noneの場合はそのまま返す。
    page_number : int
        エラー報告用のページ番号。
    texts : dict[str, str] | None
        要素ID → テキスト（まとめたレコードのテキスト生成に使用）。

    Returns
    -------
    list[AudioSyncRecord]
        要求粒度のレコード。

    Raises
    ------
    SmilGenerationError
        要求粒度のレコードも、1段階細かい粒度のレコードもない場合。

    Notes
    -----
    まとめるのは1段階だけ。単語レコードしかないページで paragraph を
    要求した場合は失敗となり、呼び出し側が sentence → paragraph の順に
    2回呼ぶ必要がある。
    """
    if granularity is None or not records:
        return list(records)
    if granularity not in _LEVELS:
        raise SmilGenerationError(
            msg("granularity_unknown", granularity=granularity, available=", ".join(GRANULARITIES)),
            page_number,
        )

    target = _LEVELS[granularity]
    matching = [r for r in records if record_level(r) == target]
    if matching:
        return matching

    children = [r for r in records if record_level(r) == target - 1]
    combined = upsample(children, texts) if children else []
    if not combined:
        raise SmilGenerationError(msg("granularity_empty", granularity=granularity), page_number)
    return combined
