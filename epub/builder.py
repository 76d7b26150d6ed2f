"""
固定レイアウト読み上げEPUB3を生成するモジュール。

ページ抽出結果と音声同期レコードから、ページごとのレイヤーXHTMLとSMILを
並列に生成し、manifest / spine を組み立ててEPUBパッケージに書き出します。
"""
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed, TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from audio.sync.builder import build_page_smil
from audio.sync.timing_map import WordTiming, map_word_timings_to_blocks, word_timings_from_textgrid
from core import logger
from core.config import (
    ConversionOptions,
    AUDIO_DIR,
    AUDIO_MEDIA_TYPES,
    IMAGE_DIR,
    LOG_FILE,
    NAV_PATH,
    OEBPS_DIR,
    PACKAGE_DOCUMENT,
    PAGE_AUDIO_DIR,
    PAGES_FILE,
    SMIL_DIR,
    STYLE_PATH,
    SYNC_FILE,
    TEXT_DIR,
    TEXTGRID_DIR,
    get_language_config_for_tag,
)
from core.exceptions import (
    ConversionCancelledError,
    EpubGenerationError,
    FileNotFoundError_,
    PackagingError,
    SourceParsingError,
)
from core.messages import msg
from core.metadata_reader import BookMetadata, load_metadata
from epub.manifest import PageArtifacts, PackageManifest, assemble_manifest
from epub.packaging import ArchivePackager, CONTAINER_PATH
from epub.templates import (
    generate_container_xml,
    generate_fixed_layout_css,
    generate_nav_xhtml,
    generate_opf_document,
)
from epub.validator import ValidationReport, validate_epub_bytes
from layout.identifiers import IdentifierAssigner
from layout.layers import build_page_layout, identify_repetitive_text
from parsers.page_source import Page, load_pages
from parsers.sync_source import AudioSyncRecord, group_by_page, load_sync_records


# =============================================================================
# ジョブ制御
# =============================================================================

class JobGate(Protocol):
    """ジョブの同時実行数を制限するゲート。"""

    def acquire(self, job_id: str) -> bool:
        ...

    def release(self, job_id: str) -> None:
        ...


class LocalJobGate:
    """BoundedSemaphore による同一プロセス内のジョブゲート。"""

    def __init__(self, max_jobs: int = 1, timeout: float | None = None):
        self._semaphore = threading.BoundedSemaphore(max_jobs)
        self._timeout = timeout

    def acquire(self, job_id: str) -> bool:
        acquired = self._semaphore.acquire(timeout=self._timeout)
        if acquired:
            logger.debug(msg("job_gate_acquired", job_id=job_id))
        return acquired

    def release(self, job_id: str) -> None:
        self._semaphore.release()
        logger.debug(msg("job_gate_released", job_id=job_id))


class JobCounters:
    """ワーカースレッドから更新されるジョブの集計値。"""

    def __init__(self):
        self._lock = threading.Lock()
        self._values: dict[str, int] = {}

    def add(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._values[name] = self._values.get(name, 0) + amount

    def get(self, name: str) -> int:
        with self._lock:
            return self._values.get(name, 0)


@dataclass
class ConversionResult:
    """
    変換ジョブの結果。

    status が "completed" でも、音声同期のないページがありうる
    （pages_without_narration を参照）。"failed" の場合はパッケージは書き出されない。
    """
    status: str
    output_path: Path | None = None
    pages: list[int] = field(default_factory=list)
    pages_without_narration: list[int] = field(default_factory=list)
    skipped_pages: list[int] = field(default_factory=list)
    dropped_records: int = 0
    smil_errors: dict[int, str] = field(default_factory=dict)
    validation: ValidationReport | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "completed"


# =============================================================================
# 変換ジョブ
# =============================================================================

class ConversionJob:
    """
    1冊分の変換ジョブ。

    Parameters
    ----------
    pages : list[Page]
        ページ抽出結果。
    sync_records : list[AudioSyncRecord]
        音声同期レコード（全ページ分）。
    metadata : BookMetadata
        書籍のメタデータ。
    options : ConversionOptions | None
        変換オプション。
    job_id : str
        ログ・ゲート用のジョブID。
    source_root : Path | None
        画像・音声の相対パスの基準フォルダ。
    word_timings : dict[int, tuple[list[WordTiming], str]] | None
        ページ番号 → (単語タイミング, 音声ファイルパス)。同期レコードのないページで使う。
    cancel_event : threading.Event | None
        外部からキャンセルを通知するイベント。
    """

    def __init__(
        self,
        pages: list[Page],
        sync_records: list[AudioSyncRecord],
        metadata: BookMetadata,
        options: ConversionOptions | None = None,
        job_id: str = "",
        source_root: Path | None = None,
        word_timings: dict[int, tuple[list[WordTiming], str]] | None = None,
        cancel_event: threading.Event | None = None,
    ):
        self.pages = pages
        self.records_by_page = group_by_page(sync_records)
        self.metadata = metadata
        self.options = options or ConversionOptions()
        self.job_id = job_id
        self.source_root = source_root
        self.word_timings = word_timings or {}
        self.cancel_event = cancel_event or threading.Event()
        self.counters = JobCounters()
        self._archive = ArchivePackager()
        self._audio_cache: dict[str, bytes | None] = {}
        self._audio_lock = threading.Lock()
        self._io_pool: ThreadPoolExecutor | None = None

    # -------------------------------------------------------------------------
    # 入出力
    # -------------------------------------------------------------------------

    def cancel(self) -> None:
        """ジョブをキャンセルする。処理中のページは結果に反映されない。"""
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def _resolve_path(self, path: str) -> Path:
        p = Path(path)
        if not p.is_absolute() and self.source_root is not None:
            p = self.source_root / p
        return p

    def _read_bytes(self, path: str) -> bytes | None:
        """タイムアウト付きでファイルを読み込む。読めない場合はNone。"""
        def _read(p: Path) -> bytes:
            with open(p, "rb") as f:
                return f.read()

        resolved = self._resolve_path(path)
        try:
            if self._io_pool is None:
                return _read(resolved)
            return self._io_pool.submit(_read, resolved).result(timeout=self.options.io_timeout)
        except (OSError, FuturesTimeoutError) as e:
            logger.debug(msg("read_failed", path=resolved, error=e or type(e).__name__))
            return None

    def _read_audio(self, path: str) -> bytes | None:
        with self._audio_lock:
            if path in self._audio_cache:
                return self._audio_cache[path]
        data = self._read_bytes(path)
        with self._audio_lock:
            self._audio_cache.setdefault(path, data)
            return self._audio_cache[path]

    # -------------------------------------------------------------------------
    # ページ処理（ワーカースレッド）
    # -------------------------------------------------------------------------

    def _page_records(self, page_number: int, layout) -> list[AudioSyncRecord]:
        records = self.records_by_page.get(page_number, [])
        if records or page_number not in self.word_timings:
            return records
        timings, audio_path = self.word_timings[page_number]
        return map_word_timings_to_blocks(layout.flow_blocks, timings, audio_path, page_number)

    def _process_page(self, page: Page, repetitive_text: set[str] | None) -> PageArtifacts | None:
        """1ページ分のレイヤーとSMILを生成する。出力できないページはNone。"""
        if self.cancelled:
            return None

        image = page.image
        image_data = self._read_bytes(image.path) if image is not None else None
        if image_data is None:
            logger.page_warning(page.page_number, msg("page_image_missing"))
            return None

        try:
            layout = build_page_layout(
                page, image, IdentifierAssigner(page.page_number), self.options, repetitive_text
            )
            if layout is None or self.cancelled:
                return None

            smil_result = build_page_smil(
                page.page_number,
                self._page_records(page.page_number, layout),
                layout,
                granularity=self.options.granularity,
            )
        except (EpubGenerationError, ValueError) as e:
            logger.page_warning(page.page_number, msg("page_failed", error=e))
            return None
        self.counters.add("dropped_records", smil_result.dropped)

        artifacts = PageArtifacts(layout=layout, smil=smil_result.document, smil_error=smil_result.error)
        if smil_result.document is not None:
            for audio_path in smil_result.document.audio_files:
                if self._read_audio(audio_path) is None:
                    logger.page_warning(page.page_number, msg("audio_unreadable", path=audio_path))
                    artifacts.audio_readable = False
                    break

        if self.cancelled:
            return None
        self._archive.add(f"{OEBPS_DIR}/{layout.xhtml_href}", layout.xhtml)
        self._archive.add(f"{OEBPS_DIR}/{IMAGE_DIR}/{layout.image_filename}", image_data)
        return artifacts

    # -------------------------------------------------------------------------
    # パッケージ組み立て（メインスレッド）
    # -------------------------------------------------------------------------

    def _write_package_files(self, manifest: PackageManifest, pages: list[PageArtifacts]) -> None:
        language = get_language_config_for_tag(self.options.lang)
        ordered = sorted(pages, key=lambda p: p.page_number)
        viewport = ordered[0].layout.viewport if ordered else None

        for page in ordered:
            if not page.has_media_overlay:
                continue
            self._archive.add(
                f"{OEBPS_DIR}/{SMIL_DIR}/{page.smil.smil_filename}",
                page.smil.to_xml(manifest.audio_hrefs),
            )
        for audio_path, name in manifest.audio_hrefs.items():
            self._archive.add(f"{OEBPS_DIR}/{AUDIO_DIR}/{name}", self._audio_cache[audio_path])

        nav_pages = [
            (page.layout.xhtml_filename, language.page_label.format(n=page.page_number))
            for page in ordered
        ]
        self._archive.add(f"{OEBPS_DIR}/{NAV_PATH}", generate_nav_xhtml(
            self.metadata.title, nav_pages, toc_title=language.toc_title, lang=self.options.lang
        ))
        width, height = viewport or (0, 0)
        self._archive.add(f"{OEBPS_DIR}/{STYLE_PATH}", generate_fixed_layout_css(width, height))
        self._archive.add(PACKAGE_DOCUMENT, generate_opf_document(
            self.metadata,
            manifest.manifest,
            manifest.spine,
            durations=manifest.durations,
            viewport=viewport,
            lang=self.options.lang,
        ))
        self._archive.add(CONTAINER_PATH, generate_container_xml())

    def run(self, output_path: str | Path | None = None, intermediate_dir: str | Path | None = None) -> ConversionResult:
        """
        変換を実行してEPUBを書き出す。

        Parameters
        ----------
        output_path : str | Path | None
            出力EPUBのパス。Noneの場合はファイルに書き出さない（検証のみ）。
        intermediate_dir : str | Path | None
            指定した場合、展開したファイルツリーもこのフォルダに書き出す。

        Returns
        -------
        ConversionResult
            変換結果。manifest / spine が空などの致命的エラーは status="failed"。

        Raises
        ------
        ConversionCancelledError
            ジョブがキャンセルされた場合。パッケージは書き出されない。
        """
        logger.section(msg("conversion_start", job_id=self.job_id or "-", count=len(self.pages)))
        repetitive = identify_repetitive_text(self.pages) if self.options.skip_repetitive_text else None

        artifacts: list[PageArtifacts] = []
        total = len(self.pages)
        with ThreadPoolExecutor(max_workers=max(1, self.options.max_workers)) as io_pool:
            self._io_pool = io_pool
            with ThreadPoolExecutor(max_workers=max(1, self.options.max_workers)) as pool:
                futures = [pool.submit(self._process_page, page, repetitive) for page in self.pages]
                for done, future in enumerate(as_completed(futures), start=1):
                    if self.cancelled:
                        for f in futures:
                            f.cancel()
                        break
                    page_artifacts = future.result()
                    if page_artifacts is not None:
                        artifacts.append(page_artifacts)
                    logger.progress(done, total, msg("progress_pages"))
            self._io_pool = None
        logger.progress_done()

        if self.cancelled:
            logger.warning(msg("conversion_cancelled", job_id=self.job_id or "-"))
            raise ConversionCancelledError(self.job_id)

        result = ConversionResult(
            status="completed",
            pages=sorted(a.page_number for a in artifacts),
            pages_without_narration=sorted(a.page_number for a in artifacts if not a.has_media_overlay),
            skipped_pages=sorted(
                {p.page_number for p in self.pages} - {a.page_number for a in artifacts}
            ),
            dropped_records=self.counters.get("dropped_records"),
            smil_errors={a.page_number: a.smil_error for a in artifacts if a.smil_error},
        )

        try:
            manifest = assemble_manifest(artifacts)
            self._write_package_files(manifest, artifacts)
            data = self._archive.to_bytes()
        except PackagingError as e:
            logger.error(str(e))
            result.status = "failed"
            result.error = str(e)
            return result

        result.validation = validate_epub_bytes(data)
        for problem in result.validation.errors:
            logger.warning(msg("validation_problem", problem=problem))

        if self.cancelled:
            raise ConversionCancelledError(self.job_id)
        if output_path is not None:
            result.output_path = Path(output_path)
            result.output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(result.output_path, "wb") as f:
                f.write(data)
            logger.success(msg("epub_saved", file=result.output_path))
        if intermediate_dir is not None:
            self._archive.write_tree(intermediate_dir)
            logger.info(msg("intermediate_saved", path=intermediate_dir))

        logger.info(msg(
            "conversion_summary",
            pages=len(result.pages),
            narrated=len(result.pages) - len(result.pages_without_narration),
            skipped=len(result.skipped_pages),
            dropped=result.dropped_records,
        ))
        return result


# =============================================================================
# ジョブフォルダからの変換
# =============================================================================

def find_page_audio(job_folder: Path, page_number: int) -> Path | None:
    """ジョブフォルダの audio/page_{n}.* から音声ファイルを探す。"""
    audio_dir = job_folder / PAGE_AUDIO_DIR
    for suffix in AUDIO_MEDIA_TYPES:
        candidate = audio_dir / f"page_{page_number}{suffix}"
        if candidate.exists():
            return candidate
    return None


def load_textgrid_timings(job_folder: Path, pages: list[Page]) -> dict[int, tuple[list[WordTiming], str]]:
    """
    ジョブフォルダの textgrid/page_{n}.TextGrid と対応する音声から単語タイミングを読み込む。

    TextGridまたは音声のどちらかがないページは対象外。
    """
    result: dict[int, tuple[list[WordTiming], str]] = {}
    textgrid_dir = job_folder / TEXTGRID_DIR
    if not textgrid_dir.is_dir():
        return result
    for page in pages:
        tg_path = textgrid_dir / f"page_{page.page_number}.TextGrid"
        audio_path = find_page_audio(job_folder, page.page_number)
        if not tg_path.exists() or audio_path is None:
            continue
        try:
            timings = word_timings_from_textgrid(tg_path)
        except SourceParsingError as e:
            logger.page_warning(page.page_number, str(e))
            continue
        result[page.page_number] = (timings, str(audio_path))
        logger.page_debug(page.page_number, msg("textgrid_loaded", path=tg_path, count=len(timings)))
    return result


def convert_job_folder(
    job_folder: str | Path,
    output_epub: str | Path | None = None,
    options: ConversionOptions | None = None,
    gate: JobGate | None = None,
    cancel_event: threading.Event | None = None,
    intermediate_dir: str | Path | None = None,
) -> ConversionResult:
    """
    ジョブフォルダの入力からEPUBを生成する。

    Parameters
    ----------
    job_folder : str | Path
        pages.json、audio_sync.json（任意）、metadata.txt、画像・音声を含むフォルダ。
    output_epub : str | Path | None
        出力EPUBのパス。省略時は {フォルダ名}.epub をフォルダと同階層に出力。
    options : ConversionOptions | None
        変換オプション。
    gate : JobGate | None
        ジョブの同時実行を制限するゲート。
    cancel_event : threading.Event | None
        キャンセル通知用イベント。

    Returns
    -------
    ConversionResult
        変換結果。

    Raises
    ------
    FileNotFoundError_
        ジョブフォルダまたは pages.json がない場合。
    EpubGenerationError
        ゲートを取得できなかった場合。
    """
    folder = Path(job_folder).resolve()
    if not folder.is_dir():
        raise FileNotFoundError_(str(folder), msg("file_type_job_folder"))
    pages_path = folder / PAGES_FILE
    if not pages_path.exists():
        raise FileNotFoundError_(str(pages_path), msg("file_type_pages"))

    job_id = folder.name
    if output_epub is None:
        output_epub = folder.parent / f"{folder.name}.epub"

    if gate is not None and not gate.acquire(job_id):
        raise EpubGenerationError(msg("job_gate_busy", job_id=job_id))
    log_handler = logger.add_file_handler(folder / LOG_FILE)
    try:
        metadata = load_metadata(folder)
        options = options or ConversionOptions()
        if metadata.language and options.lang != metadata.language:
            options.lang = metadata.language

        pages = load_pages(pages_path)
        sync_path = folder / SYNC_FILE
        records = load_sync_records(sync_path) if sync_path.exists() else []
        if not records:
            logger.info(msg("sync_not_found", path=sync_path))
        word_timings = load_textgrid_timings(folder, pages)

        job = ConversionJob(
            pages,
            records,
            metadata,
            options=options,
            job_id=job_id,
            source_root=folder,
            word_timings=word_timings,
            cancel_event=cancel_event,
        )
        return job.run(output_epub, intermediate_dir=intermediate_dir)
    finally:
        logger.remove_handler(log_handler)
        if gate is not None:
            gate.release(job_id)
