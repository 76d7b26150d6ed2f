"""
TextGrid処理ユーティリティモジュール。

強制アライメント（Montreal Forced Aligner など）が生成するTextGridファイルから、
単語ごとのタイミング情報を読み込みます。
"""
from pathlib import Path

import textgrid

from core.exceptions import SourceParsingError
from core.messages import msg


# 単語tierとして優先する名前
WORD_TIER_NAMES = ("words", "word")


def _select_tier(tg: textgrid.TextGrid, tier_name: str | None):
    """指定名、既知の単語tier名、最初のtierの順にtierを選ぶ。"""
    names = (tier_name,) if tier_name else WORD_TIER_NAMES
    for name in names:
        tier = tg.getFirst(name)
        if tier is not None:
            return tier
    if tier_name:
        raise SourceParsingError(msg("textgrid_tier_missing", tier=tier_name))
    return tg[0]


def extract_textgrid_intervals(
    textgrid_path: str | Path,
    tier_name: str | None = None
) -> tuple[list[tuple[str, float, float]], float]:
    """
    TextGridファイルからタイミング情報を抽出する。

    Parameters
    ----------
    textgrid_path : str | Path
        TextGridファイルのパス。
    tier_name : str | None
        読み込むtier名。省略時は "words" tier、なければ最初のtier。

    Returns
    -------
    tuple[list[tuple[str, float, float]], float]
        - intervals : list[tuple[str, float, float]]
            (ラベル, 開始時間, 終了時間) のリスト。空ラベルは除外されます。
        - total_duration : float
            音声の総再生時間（秒）。

    Raises
    ------
    SourceParsingError
        ファイルが読めない、またはtierがない場合。

    Notes
    -----
    空文字列のラベルは除外されますが、<unk>などの特殊ラベルは保持されます。
    """
    try:
        tg = textgrid.TextGrid.fromFile(str(textgrid_path))
    except (OSError, ValueError, IndexError) as e:
        raise SourceParsingError(msg("textgrid_load_failed", path=textgrid_path, error=e), str(textgrid_path))
    if len(tg) == 0:
        raise SourceParsingError(msg("textgrid_load_failed", path=textgrid_path, error="no tiers"), str(textgrid_path))

    words_tier = _select_tier(tg, tier_name)
    total_duration = tg.maxTime

    intervals: list[tuple[str, float, float]] = []
    for interval in words_tier:
        label = (interval.mark or "").strip()
        if label:  # 空文字列のみ除外
            intervals.append((label, float(interval.minTime), float(interval.maxTime)))

    return intervals, total_duration
