"""
書誌情報ファイル読み取りモジュール。

ジョブフォルダに置かれたメタデータファイルから書籍のメタ情報を読み取り、
パッケージ文書（OPF）の生成に使用します。
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from core.messages import msg


# ジョブフォルダ内のメタデータファイル名
METADATA_FILENAME = "metadata.txt"


class MetadataFileNotFoundError(Exception):
    """書誌情報ファイルが見つからない場合の例外。"""

    def __init__(self, metadata_path: str):
        self.metadata_path = metadata_path
        super().__init__(msg("metadata_not_found", path=metadata_path))


class MetadataTitleMissingError(Exception):
    """書誌情報にタイトルがない場合の例外。"""

    def __init__(self):
        super().__init__(msg("metadata_no_title"))


@dataclass
class BookMetadata:
    """書籍のメタデータを保持するデータクラス。"""

    title: str  # タイトル（必須）
    language: str | None = None  # 言語タグ（省略時は変換オプションの言語）
    identifier: str = field(default_factory=lambda: f"urn:uuid:{uuid.uuid4()}")
    creator: str | None = None  # 制作者（オプション）
    publisher: str | None = None  # 発行元（オプション）
    rights: str | None = None  # 権利表記（オプション）
    modified: str = field(default_factory=lambda: datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"))
    accessibility_metadata: list[tuple[str, str]] = field(default_factory=list)


# ファイル内のキーとフィールド名のマッピング
_FIELD_MAPPING: dict[str, str] = {
    "title": "title",
    "language": "language",
    "lang": "language",
    "identifier": "identifier",
    "isbn": "identifier",
    "author": "creator",
    "creator": "creator",
    "publisher": "publisher",
    "rights": "rights",
}

# アクセシビリティ関連キー（同一キーの複数値をサポート）
_ACCESSIBILITY_KEYS: set[str] = {
    "accessMode",
    "accessModeSufficient",
    "accessibilityFeature",
    "accessibilityHazard",
    "accessibilitySummary",
}


def get_metadata_path(job_folder: str | Path) -> Path:
    """
    ジョブフォルダのメタデータファイルパスを取得する。

    フォルダ内の metadata.txt を優先し、なければフォルダと同階層の
    {フォルダ名}_metadata.txt を使う。

    Parameters
    ----------
    job_folder : str | Path
        ジョブフォルダのパス（例：/path/to/book1）

    Returns
    -------
    Path
        メタデータファイルのパス（例：/path/to/book1/metadata.txt）
    """
    folder_path = Path(job_folder)
    inner = folder_path / METADATA_FILENAME
    if inner.exists():
        return inner
    return folder_path.parent / f"{folder_path.name}_metadata.txt"


def parse_metadata_file(metadata_path: Path) -> tuple[dict[str, str], list[tuple[str, str]]]:
    """
    メタデータファイルをパースして辞書とアクセシビリティメタデータリストを返す。

    Notes
    -----
    ファイルフォーマット:
        title: 〇〇
        author: 〇〇
        language: ja
        identifier: urn:isbn:...
        accessMode: visual
        accessibilityFeature: synchronizedAudioText
    """
    result: dict[str, str] = {}
    accessibility: list[tuple[str, str]] = []

    with open(metadata_path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            # 「:」または「：」で分割（半角コロン優先）
            if ":" in line:
                key, _, value = line.partition(":")
            elif "：" in line:
                key, _, value = line.partition("：")
            else:
                continue

            key = key.strip()
            value = value.strip()

            if not value:
                continue

            if key in _ACCESSIBILITY_KEYS:
                accessibility.append((key, value))
            elif key.lower() in _FIELD_MAPPING:
                result[_FIELD_MAPPING[key.lower()]] = value

    return result, accessibility


def load_metadata(job_folder: str | Path) -> BookMetadata:
    """
    ジョブフォルダのメタデータを読み込む。

    Parameters
    ----------
    job_folder : str | Path
        ジョブフォルダのパス

    Returns
    -------
    BookMetadata
        読み込んだメタデータ

    Raises
    ------
    MetadataFileNotFoundError
        メタデータファイルが見つからない場合
    MetadataTitleMissingError
        タイトルが記載されていない場合
    """
    metadata_path = get_metadata_path(job_folder)
    if not metadata_path.exists():
        raise MetadataFileNotFoundError(str(metadata_path))

    fields, accessibility = parse_metadata_file(metadata_path)

    if "title" not in fields:
        raise MetadataTitleMissingError()

    metadata = BookMetadata(
        title=fields["title"],
        language=fields.get("language"),
        creator=fields.get("creator"),
        publisher=fields.get("publisher"),
        rights=fields.get("rights"),
        accessibility_metadata=accessibility,
    )
    if "identifier" in fields:
        metadata.identifier = fields["identifier"]
    return metadata
