"""
EPUB生成処理用のカスタム例外クラス。

処理パイプラインの各段階で発生するエラーを明確に分類し、
適切なエラーハンドリングを可能にします。
"""
from core.messages import msg


class EpubGenerationError(Exception):
    """EPUB生成処理の基底例外クラス。"""
    pass


class FileNotFoundError_(EpubGenerationError):
    """必要なファイルが見つからない場合の例外。"""

    def __init__(self, file_path: str, file_type: str = ""):
        self.file_path = file_path
        self.file_type = file_type
        super().__init__(msg("exception_file_not_found", file_type=file_type, file_path=file_path))


class SourceParsingError(EpubGenerationError):
    """入力ソース（ページ抽出結果/同期レコード）のパースエラー。"""

    def __init__(self, message: str, source_file: str = ""):
        self.source_file = source_file
        super().__init__(message)


class SmilGenerationError(EpubGenerationError):
    """ページ単位のSMIL生成に失敗した場合の例外（縮退扱い、ジョブは継続）。"""

    def __init__(self, message: str, page_number: int = 0):
        self.page_number = page_number
        super().__init__(message)


class PackagingError(EpubGenerationError):
    """manifest/spineが空など、出力できるものがない場合の致命的エラー。"""

    def __init__(self, message: str):
        super().__init__(message)


class ConversionCancelledError(EpubGenerationError):
    """ジョブがキャンセルされた場合の例外。アーカイブは書き出されない。"""

    def __init__(self, job_id: str = ""):
        self.job_id = job_id
        super().__init__(msg("exception_cancelled", job_id=job_id))
