"""
固定レイアウト読み上げEPUB生成ツールのメインモジュール。

ページ抽出結果（pages.json）とページ画像、音声同期レコードを含む
ジョブフォルダから、Media Overlay付きの固定レイアウトEPUB3を生成する。
"""
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from core import logger
from core.messages import msg, set_ui_language
from core.config import (
    ConversionOptions,
    GRANULARITIES,
    LANGUAGE_CONFIGS,
    get_language_config,
    LanguageConfig,
)
from core.exceptions import ConversionCancelledError, EpubGenerationError
from core.metadata_reader import MetadataFileNotFoundError, MetadataTitleMissingError
from epub.builder import ConversionResult, convert_job_folder


# =============================================================================
# データクラス
# =============================================================================

@dataclass
class ProcessingContext:
    """処理コンテキストを保持するデータクラス。"""
    start_time: datetime
    timestamp_str: str
    output_dir: Path
    output_epub: str
    epub_lang: str
    keep_intermediate: bool

    @property
    def intermediate_dir(self) -> Path:
        return self.output_dir / "intermediate_products"

    @classmethod
    def create(
        cls,
        job_folder: Path,
        lang_config: LanguageConfig | None,
        keep_intermediate: bool,
        mode_string: str = ""
    ) -> "ProcessingContext":
        """処理コンテキストを生成する。"""
        start_time = datetime.now()
        timestamp_str = start_time.strftime("%Y%m%d%H%M%S")
        output_dir = job_folder.parent
        epub_name = f"{job_folder.name}_{mode_string}_{timestamp_str}.epub"

        return cls(
            start_time=start_time,
            timestamp_str=timestamp_str,
            output_dir=output_dir,
            output_epub=str(output_dir / epub_name),
            epub_lang=lang_config.epub_lang if lang_config else "en",
            keep_intermediate=keep_intermediate,
        )


# =============================================================================
# ログ・バリデーション
# =============================================================================

def _log_processing_start(start_time: datetime) -> None:
    """処理開始ログを出力する。"""
    logger.info(msg("processing_start", time=start_time.strftime('%Y-%m-%d %H:%M:%S')))


def _log_processing_end(ctx: ProcessingContext, result: ConversionResult) -> None:
    """処理終了ログを出力する。"""
    end_time = datetime.now()
    elapsed_time = end_time - ctx.start_time
    logger.separator("=", 50)
    logger.info(msg("processing_end", time=end_time.strftime('%Y-%m-%d %H:%M:%S')))
    logger.info(msg("elapsed_time", time=elapsed_time))
    if result.output_path is not None:
        logger.info(msg("output_file", path=result.output_path))
    if result.pages_without_narration:
        pages = ", ".join(str(n) for n in result.pages_without_narration)
        logger.info(msg("pages_without_narration", pages=pages))


def _validate_folder_exists(folder_path: Path) -> None:
    """フォルダの存在をチェックする。"""
    if not folder_path.exists() or not folder_path.is_dir():
        raise EpubGenerationError(msg("folder_not_found", path=folder_path))


# =============================================================================
# UI入力ヘルパー関数
# =============================================================================

def _prompt_choice(
    prompt: str,
    options: list[str],
    default: int = 1
) -> int:
    """
    選択肢を表示してユーザー入力を取得する。

    Parameters
    ----------
    prompt : str
        質問文
    options : list[str]
        選択肢のリスト
    default : int
        デフォルト値（1始まり）

    Returns
    -------
    int
        選択されたインデックス（1始まり）
    """
    if prompt:
        print(prompt)
    for i, option in enumerate(options, 1):
        print(f"  {i}: {option}")
    logger.separator("-")

    choice = input(msg("choice_prompt", n=len(options), d=default)).strip()

    if not choice:
        return default

    try:
        value = int(choice)
        if 1 <= value <= len(options):
            return value
        print(msg("invalid_value", n=len(options), d=default))
    except ValueError:
        print(msg("invalid_input", n=len(options), d=default))

    return default


def _prompt_language() -> tuple[LanguageConfig, int]:
    """言語選択を行う。"""
    print(msg("select_language"))
    lang_options = list(LANGUAGE_CONFIGS.keys())

    for i, lang_code in enumerate(lang_options, 1):
        config = LANGUAGE_CONFIGS[lang_code]
        print(f"  {i}: {config.display_name} ({lang_code})")
    logger.separator("-")

    choice = input(msg("language_prompt", n=len(lang_options))).strip()

    try:
        index = int(choice) - 1 if choice else 0
        if not (0 <= index < len(lang_options)):
            index = 0
        lang_config = get_language_config(lang_options[index])
        set_ui_language(lang_config.code)
        logger.info(msg("selected_language", name=lang_config.display_name))
        return lang_config, index + 1
    except ValueError:
        lang_config = get_language_config(lang_options[0])
        set_ui_language(lang_config.code)
        logger.info(msg("default_language", name=lang_config.display_name))
        return lang_config, 1


def _prompt_granularity() -> tuple[str | None, int]:
    """ハイライト単位の選択を行う。1は同期レコードの単位をそのまま使う。"""
    options = [msg("opt_granularity_as_is")] + [msg(f"opt_granularity_{g}") for g in GRANULARITIES]
    choice = _prompt_choice(msg("select_granularity"), options, default=1)
    granularity = None if choice == 1 else GRANULARITIES[choice - 2]
    return granularity, choice


def _prompt_job_folder() -> str:
    """ジョブフォルダのパス入力を行う（"path" や 'path' の引用符はトリム）。"""
    logger.separator("-")
    source = input(msg("prompt_folder_path"))
    return source.strip().strip('"').strip("'")


def _prompt_keep_intermediate(output_dir: Path) -> bool:
    """中間ファイル保存の選択を行う。"""
    intermediate_dir = output_dir / "intermediate_products"
    logger.separator("-")
    print(msg("keep_intermediate_question"))
    print(f"  {msg('keep_intermediate_dest', path=intermediate_dir)}")

    options = [msg("opt_keep_no"), msg("opt_keep_yes")]
    choice = _prompt_choice("", options, default=1)
    return choice == 2


# =============================================================================
# 処理関数
# =============================================================================

def process_job_folder(
    job_folder: str,
    lang_config: LanguageConfig | None,
    granularity: str | None,
    keep_intermediate: bool,
    mode_string: str = ""
) -> ConversionResult:
    """ジョブフォルダから固定レイアウトEPUBを生成する。"""
    folder_path = Path(job_folder)

    # バリデーション
    _validate_folder_exists(folder_path)

    # コンテキスト生成
    ctx = ProcessingContext.create(folder_path, lang_config, keep_intermediate, mode_string=mode_string)
    _log_processing_start(ctx.start_time)

    intermediate_dir = None
    if ctx.keep_intermediate:
        intermediate_dir = ctx.intermediate_dir
        if intermediate_dir.exists():
            shutil.rmtree(intermediate_dir)

    options = ConversionOptions(granularity=granularity, lang=ctx.epub_lang)
    result = convert_job_folder(
        folder_path,
        output_epub=ctx.output_epub,
        options=options,
        intermediate_dir=intermediate_dir,
    )
    if not result.succeeded:
        raise EpubGenerationError(result.error or msg("processing_aborted"))

    _log_processing_end(ctx, result)
    return result


# =============================================================================
# メイン関数
# =============================================================================

def main() -> None:
    """EPUB生成ツールのメイン処理。"""
    logger.separator("=")
    print(msg("tool_title"))
    logger.separator("=")

    # 言語選択
    lang_config, lang_choice = _prompt_language()
    logger.separator("-")

    # ハイライト単位選択
    granularity, granularity_choice = _prompt_granularity()

    # モード文字列構築（選択番号の連結）
    mode_string = f"{lang_choice}{granularity_choice}"

    try:
        job_folder = _prompt_job_folder()
        keep = _prompt_keep_intermediate(Path(job_folder).parent)
        process_job_folder(job_folder, lang_config, granularity, keep, mode_string=mode_string)
    except (MetadataFileNotFoundError, MetadataTitleMissingError) as e:
        logger.error(str(e))
    except ConversionCancelledError as e:
        logger.error(str(e))
    except EpubGenerationError as e:
        logger.error(str(e))
        print(msg("processing_aborted"))


if __name__ == "__main__":
    main()
