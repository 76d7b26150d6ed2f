"""
固定レイアウト読み上げEPUB生成ツールの設定定数モジュール。

プロジェクト全体で使用される設定値を一元管理します。
"""
from dataclasses import dataclass


# --- 言語設定 ---
@dataclass
class LanguageConfig:
    """言語ごとの設定を保持するデータクラス。"""
    code: str                    # 言語コード（例: "ja", "en"）
    display_name: str            # 表示名
    epub_lang: str               # EPUB言語タグ
    toc_title: str               # nav.xhtmlの目次見出し
    page_label: str              # 目次のページ表記（{n}にページ番号）


# 対応言語の設定
LANGUAGE_CONFIGS: dict[str, LanguageConfig] = {
    "ja_JP": LanguageConfig(
        code="ja_JP",
        display_name="日本語",
        epub_lang="ja",
        toc_title="目次",
        page_label="{n}ページ",
    ),
    "en_US": LanguageConfig(
        code="en_US",
        display_name="English (US)",
        epub_lang="en",
        toc_title="Table of Contents",
        page_label="Page {n}",
    ),
    "de_DE": LanguageConfig(
        code="de_DE",
        display_name="Deutsch",
        epub_lang="de",
        toc_title="Inhaltsverzeichnis",
        page_label="Seite {n}",
    ),
}

# デフォルト言語
DEFAULT_LANGUAGE = "en_US"

# EPUB3ドキュメントのデフォルト言語
LANG = "en"

# --- 句読点文字設定 ---
SENTENCE_TERMINALS = "。．.!！?？…"           # 文末記号
EMPHATIC_TERMINALS = "!！?？"                 # 感嘆・疑問（長めのポーズ）
CLAUSE_PUNCTUATION = "、，,;；:："             # 節の区切り

# --- ページ寸法設定 ---
DEFAULT_PAGE_WIDTH_PT = 612.0    # US Letter幅（ポイント）
DEFAULT_PAGE_HEIGHT_PT = 792.0   # US Letter高さ（ポイント）
MIN_BOX_SIZE = 1.0               # 退化したバウンディングボックスの最小サイズ（ソース単位）

# --- タイミング同期設定（秒） ---
OVERLAP_GAP = 0.05               # 重なり補正時に直前の終了時刻へ加えるギャップ
MIN_DURATION_BASE = 0.3          # 最小再生時間の基本値
MIN_DURATION_PER_WORD = 0.1      # 1単語あたりの加算値
MIN_DURATION_PER_CHAR = 0.05     # 1文字あたりの加算値
NEXT_START_BUFFER = 0.1          # 最小時間延長時に次レコード開始前に残す余白

PAUSE_SENTENCE = 0.5             # 文末記号後のポーズ（基本値）
PAUSE_SENTENCE_BONUS = 0.1       # 段落末・感嘆疑問符の加算値（最大0.7秒）
PAUSE_CLAUSE = 0.3               # 読点・節区切り後のポーズ
PAUSE_DEFAULT = 0.25             # その他のポーズ
PAUSE_MIN = 0.2                  # ポーズの下限
PAUSE_MAX = 0.8                  # ポーズの上限
PAUSE_BUFFER_MAX = 0.15          # ポーズ挿入時に次レコード前に残す余白（最大）
PAUSE_BUFFER_FLOOR = 0.05        # 余白が不足する場合の最小値

# 許可する要素IDの形状
VALID_ID_PATTERN = r"^[A-Za-z0-9_-]+$"

# --- EPUB設定 ---
MIMETYPE = "application/epub+zip"
OEBPS_DIR = "OEBPS"
PACKAGE_DOCUMENT = "OEBPS/content.opf"
TEXT_DIR = "text"
SMIL_DIR = "smil"
AUDIO_DIR = "audio"
IMAGE_DIR = "images"
STYLE_PATH = "styles/fixed-layout.css"
NAV_PATH = "text/nav.xhtml"
MEDIA_ACTIVE_CLASS = "-epub-media-overlay-active"
MEDIA_PLAYBACK_ACTIVE_CLASS = "-epub-media-overlay-playing"

# 音声ファイル拡張子からMIMEタイプへのマッピング
AUDIO_MEDIA_TYPES = {
    ".mp3": "audio/mpeg",
    ".m4a": "audio/mp4",
    ".mp4": "audio/mp4",
    ".ogg": "audio/ogg",
    ".wav": "audio/wav",
}

# --- 入出力設定 ---
PAGES_FILE = "pages.json"          # ページ抽出結果（ジョブフォルダ内）
SYNC_FILE = "audio_sync.json"      # 音声同期レコード（ジョブフォルダ内）
TEXTGRID_DIR = "textgrid"          # ページ単位のTextGrid（page_{n}.TextGrid）
PAGE_AUDIO_DIR = "audio"           # ページ単位の音声（page_{n}.mp3 など）
LOG_FILE = "conversion.log"        # ジョブフォルダに出力するログ
IO_TIMEOUT_SEC = 10.0              # 画像・音声読み込みのタイムアウト
DEFAULT_MAX_WORKERS = 4            # ページ並列処理のワーカー数


@dataclass
class ConversionOptions:
    """1回の変換ジョブの実行オプションを保持するデータクラス。"""
    granularity: str | None = None       # "word" / "sentence" / "paragraph" / None
    render_width: int = 0                # レンダリング幅（px、0なら画像サイズを使用）
    render_height: int = 0               # レンダリング高さ（px）
    max_workers: int = DEFAULT_MAX_WORKERS
    io_timeout: float = IO_TIMEOUT_SEC
    skip_repetitive_text: bool = False   # 繰り返しヘッダー/フッターを読み上げ層から除外
    lang: str = LANG


GRANULARITIES = ("word", "sentence", "paragraph")


def get_language_config(lang_code: str) -> LanguageConfig:
    """言語コードから設定を取得する。

    Parameters
    ----------
    lang_code : str
        言語コード（例: "ja_JP", "en_US"）

    Returns
    -------
    LanguageConfig
        言語設定

    Raises
    ------
    ValueError
        未対応の言語コードの場合
    """
    if lang_code not in LANGUAGE_CONFIGS:
        available = ", ".join(LANGUAGE_CONFIGS.keys())
        raise ValueError(f"未対応の言語コード: {lang_code}（対応言語: {available}）")
    return LANGUAGE_CONFIGS[lang_code]


def get_language_config_for_tag(epub_lang: str) -> LanguageConfig:
    """EPUB言語タグ（"ja", "en" など）から設定を取得する。未対応の場合はデフォルト言語。"""
    for config in LANGUAGE_CONFIGS.values():
        if config.epub_lang == epub_lang:
            return config
    return LANGUAGE_CONFIGS[DEFAULT_LANGUAGE]


def get_audio_media_type(filename: str) -> str:
    """音声ファイル名からMIMEタイプを取得する。未知の拡張子は audio/mpeg とみなす。"""
    suffix = filename[filename.rfind("."):].lower() if "." in filename else ""
    return AUDIO_MEDIA_TYPES.get(suffix, "audio/mpeg")
