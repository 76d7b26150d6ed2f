"""
音声同期レコードの読み込みモジュール。

同期レコードは camelCase（startTime/endTime/blockId）と
snake_case（start_time/end_time/block_id）、さらに短縮形（id/start/end）の
いずれの形式でも届く可能性があるため、取り込み時に一度だけ
AudioSyncRecord へ正規化し、以降の処理では正規化済みの型のみを扱う。
"""
import json
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from core import logger
from core.exceptions import SourceParsingError
from core.messages import msg


@dataclass(frozen=True)
class AudioSyncRecord:
    """正規化済みの音声同期レコード（不変）。"""
    page_number: int
    block_id: str
    start_time: float
    end_time: float
    audio_file_path: str = ""
    should_read: bool = True
    custom_text: str | None = None

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def is_page_level(self) -> bool:
        """ブロックIDを持たないページ単位のレコードかどうか。"""
        return not self.block_id


# 形式ごとのキー候補（先にあるものを優先）
_PAGE_KEYS = ("pageNumber", "page_number", "page")
_BLOCK_KEYS = ("blockId", "block_id")
_SHORT_BLOCK_KEY = "id"            # 短縮形のみ。blockId/block_id キーがあれば行の主キーとみなす
_START_KEYS = ("startTime", "start_time", "start", "clipBegin")
_END_KEYS = ("endTime", "end_time", "end", "clipEnd")
_AUDIO_KEYS = ("audioFilePath", "audio_file_path", "audioFileName", "audio")
_READ_KEYS = ("shouldRead", "should_read")
_TEXT_KEYS = ("customText", "custom_text", "text")


def _first(data: dict[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _block_id(data: dict[str, Any]) -> str:
    """
    ブロックIDを取り出す。

    blockId / block_id キーがある場合は値がnullでもそのキーだけを見る
    （nullはページ単位のセグメント）。id はどちらのキーもない短縮形でのみ使う。
    """
    if any(key in data for key in _BLOCK_KEYS):
        value = _first(data, _BLOCK_KEYS)
    else:
        value = data.get(_SHORT_BLOCK_KEY)
    return str(value) if value is not None else ""


def _to_bool(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() not in ("false", "0", "no", "")
    return bool(value)


def normalize_sync_record(data: dict[str, Any], page_number: int | None = None) -> AudioSyncRecord:
    """
    1件の同期レコード辞書を AudioSyncRecord に正規化する。

    Parameters
    ----------
    data : dict[str, Any]
        いずれかの命名規則で書かれた同期レコード。
    page_number : int | None
        レコードにページ番号がない場合に使うページ番号。

    Returns
    -------
    AudioSyncRecord
        正規化済みレコード。

    Raises
    ------
    SourceParsingError
        ページ番号または開始・終了時刻が数値として読めない場合。
    """
    raw_page = _first(data, _PAGE_KEYS)
    if raw_page is None:
        raw_page = page_number
    try:
        page = int(raw_page)
        start = float(_first(data, _START_KEYS))
        end = float(_first(data, _END_KEYS))
    except (TypeError, ValueError):
        raise SourceParsingError(msg("sync_record_invalid", record=data))

    custom_text = _first(data, _TEXT_KEYS)
    return AudioSyncRecord(
        page_number=page,
        block_id=_block_id(data),
        start_time=start,
        end_time=end,
        audio_file_path=str(_first(data, _AUDIO_KEYS) or ""),
        should_read=_to_bool(_first(data, _READ_KEYS)),
        custom_text=str(custom_text) if custom_text is not None else None,
    )


def normalize_sync_records(items: Iterable[dict[str, Any]]) -> list[AudioSyncRecord]:
    """同期レコード辞書のリストを正規化する。"""
    return [normalize_sync_record(item) for item in items]


def load_sync_records(sync_path: str | Path) -> list[AudioSyncRecord]:
    """
    同期レコードJSONを読み込む。

    JSONはレコード配列、または {"syncs": [...]} / {"records": [...]} 形式を受け付ける。
    """
    path = Path(sync_path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise SourceParsingError(msg("sync_load_failed", path=path, error=e), str(path))

    if isinstance(data, dict):
        data = data.get("syncs", data.get("records", []))
    records = normalize_sync_records(data)
    logger.info(msg("sync_loaded", count=len(records), path=path))
    return records


def group_by_page(records: Iterable[AudioSyncRecord]) -> dict[int, list[AudioSyncRecord]]:
    """レコードをページ番号ごとにまとめる（各ページ内の順序は入力順を保つ）。"""
    grouped: dict[int, list[AudioSyncRecord]] = defaultdict(list)
    for record in records:
        grouped[record.page_number].append(record)
    return dict(grouped)
