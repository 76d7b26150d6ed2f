"""
ページ単位のSMIL（メディアオーバーレイ）生成モジュール。

1ページ分の同期レコードとレイヤー生成結果から、
ページXHTMLの要素を参照する SMIL ドキュメントを組み立てます。

処理の流れ:
    1. 読み上げ対象外（should_read=False）のレコードを除外
    2. ページ単位のレコードをブロックへ配分
    3. 粒度の選択（必要なら1段階のまとめ上げ）
    4. 要素IDの解決（解決できないレコードは破棄）
    5. 読み上げ順への並べ替え
    6. 重なり補正・最小再生時間・ポーズ挿入
    7. 検証（破棄件数を結果に含める）
"""
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from audio.sync.granularity import apply_granularity
from audio.sync.resolver import IdResolver
from audio.sync.scheduler import TimedEntry, has_valid_times, invalid_reason, schedule, sort_entries
from audio.sync.timing_map import distribute_page_sync
from core import logger
from core.config import AUDIO_DIR, TEXT_DIR
from core.exceptions import SmilGenerationError
from core.messages import msg
from epub.templates import generate_smil_document, generate_smil_par
from layout.layers import PageLayout
from layout.reading_order import resolve_reading_order
from parsers.sync_source import AudioSyncRecord


@dataclass(frozen=True)
class SmilEntry:
    """SMIL par 要素1つ分。"""
    par_id: str
    text_ref: str          # ページXHTML内の要素ID
    clip_begin: float
    clip_end: float
    audio_file_path: str


@dataclass
class SmilDocument:
    """1ページ分のSMILドキュメント。"""
    page_number: int
    xhtml_filename: str
    entries: list[SmilEntry]

    @property
    def smil_filename(self) -> str:
        return f"page_{self.page_number}.smil"

    @property
    def total_duration(self) -> float:
        """再生時間（最後の clipEnd）。"""
        return max((e.clip_end for e in self.entries), default=0.0)

    @property
    def audio_files(self) -> list[str]:
        """参照している音声ファイル（出現順、重複なし）。"""
        seen: list[str] = []
        for entry in self.entries:
            if entry.audio_file_path not in seen:
                seen.append(entry.audio_file_path)
        return seen

    def to_xml(self, audio_hrefs: dict[str, str] | None = None) -> str:
        """
        SMIL文書を生成する。

        Parameters
        ----------
        audio_hrefs : dict[str, str] | None
            音声ファイルパス → パッケージ内のファイル名。省略時はファイル名部分を使う。
        """
        audio_hrefs = audio_hrefs or {}
        text_src = f"../{TEXT_DIR}/{self.xhtml_filename}"
        pars = []
        for entry in self.entries:
            name = audio_hrefs.get(entry.audio_file_path) or PurePosixPath(entry.audio_file_path).name
            pars.append(generate_smil_par(
                entry.par_id,
                f"{text_src}#{entry.text_ref}",
                f"../{AUDIO_DIR}/{name}",
                entry.clip_begin,
                entry.clip_end,
            ))
        return generate_smil_document(f"page{self.page_number}_seq", pars, text_src)


@dataclass
class SmilBuildResult:
    """SMIL生成の結果。document が None の場合、そのページにメディアオーバーレイはない。"""
    document: SmilDocument | None = None
    dropped: int = 0
    drop_reasons: dict[str, int] = field(default_factory=dict)
    error: str | None = None

    def _drop(self, reason: str) -> None:
        self.dropped += 1
        self.drop_reasons[reason] = self.drop_reasons.get(reason, 0) + 1


def _entry_text(record: AudioSyncRecord, markup_id: str, texts: dict[str, str]) -> str:
    if record.custom_text is not None:
        return record.custom_text
    return texts.get(markup_id, "")


def build_page_smil(
    page_number: int,
    records: list[AudioSyncRecord],
    layout: PageLayout,
    order: dict[str, int] | None = None,
    granularity: str | None = None,
) -> SmilBuildResult:
    """
    1ページ分のSMILドキュメントを生成する。

    Parameters
    ----------
    page_number : int
        ページ番号。
    records : list[AudioSyncRecord]
        このページの同期レコード。
    layout : PageLayout
        ページのレイヤー生成結果（IdMapping、出力ID、テキスト）。
    order : dict[str, int] | None
        要素ID → 読み上げ順の索引。省略時はページXHTMLから求める。
    granularity : str | None
        "word" / "sentence" / "paragraph"。Noneの場合は絞り込まない。

    Returns
    -------
    SmilBuildResult
        生成結果。有効なレコードが1件もなければ document は None。
        粒度の選択に失敗した場合は error に理由が入る（例外は送出しない）。
    """
    result = SmilBuildResult()

    readable = [r for r in records if r.should_read]
    if len(readable) != len(records):
        logger.page_debug(page_number, msg("sync_not_read", count=len(records) - len(readable)))

    expanded: list[AudioSyncRecord] = []
    for record in readable:
        if record.is_page_level:
            expanded.extend(distribute_page_sync(record, layout.flow_blocks))
        else:
            expanded.append(record)

    try:
        selected = apply_granularity(expanded, granularity, page_number, layout.texts)
    except SmilGenerationError as e:
        logger.page_warning(page_number, str(e))
        result.error = str(e)
        return result

    resolver = IdResolver.from_layout(layout)
    entries: list[TimedEntry] = []
    for record in selected:
        if not has_valid_times(record.start_time, record.end_time):
            logger.page_warning(page_number, msg(
                "sync_invalid_time", block_id=record.block_id, start=record.start_time, end=record.end_time
            ))
            result._drop("invalid_duration")
            continue
        resolution = resolver.resolve(record.block_id)
        if not resolution.resolved:
            logger.page_warning(page_number, msg("sync_unresolved", block_id=record.block_id))
            result._drop("unresolved_id")
            continue
        logger.page_debug(page_number, msg(
            "sync_resolved", block_id=record.block_id, markup_id=resolution.markup_id, strategy=resolution.strategy
        ))
        entries.append(TimedEntry(
            markup_id=resolution.markup_id,
            start=record.start_time,
            end=record.end_time,
            text=_entry_text(record, resolution.markup_id, layout.texts),
            audio_file_path=record.audio_file_path,
            source_id=record.block_id,
        ))

    if order is None:
        order = resolve_reading_order(layout.xhtml, layout.element_ids, page_number)
    entries = schedule(sort_entries(entries, order))

    known_ids = layout.known_ids
    valid: list[TimedEntry] = []
    for entry in entries:
        reason = invalid_reason(entry, known_ids)
        if reason is not None:
            logger.page_warning(page_number, msg("sync_dropped", block_id=entry.source_id, reason=reason))
            result._drop(reason)
            continue
        valid.append(entry)

    if result.dropped:
        logger.page_warning(page_number, msg("sync_drop_count", count=result.dropped))
    if not valid:
        logger.page_warning(page_number, msg("smil_no_records"))
        return result

    result.document = SmilDocument(
        page_number=page_number,
        xhtml_filename=layout.xhtml_filename,
        entries=[
            SmilEntry(
                par_id=f"page{page_number}_par{i}",
                text_ref=entry.markup_id,
                clip_begin=entry.start,
                clip_end=entry.end,
                audio_file_path=entry.audio_file_path,
            )
            for i, entry in enumerate(valid, start=1)
        ],
    )
    return result
