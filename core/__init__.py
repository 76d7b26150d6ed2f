"""
コアモジュール。

共通の例外、ロガー、設定、メタデータ読み込みを提供する。
"""
from core.exceptions import (
    EpubGenerationError,
    SourceParsingError,
    SmilGenerationError,
    PackagingError,
    ConversionCancelledError,
)
from core.logger import (
    debug, info, warning, error, success, section, separator, progress, progress_done,
    set_log_level, LogLevel
)
from core.config import (
    LANGUAGE_CONFIGS,
    get_language_config,
    LanguageConfig,
    ConversionOptions,
)
from core.metadata_reader import (
    BookMetadata,
    load_metadata,
    MetadataFileNotFoundError,
    MetadataTitleMissingError,
)

__all__ = [
    # exceptions
    "EpubGenerationError", "SourceParsingError", "SmilGenerationError",
    "PackagingError", "ConversionCancelledError",
    # logger
    "debug", "info", "warning", "error", "success", "section", "separator",
    "progress", "progress_done", "set_log_level", "LogLevel",
    # config
    "LANGUAGE_CONFIGS", "get_language_config", "LanguageConfig", "ConversionOptions",
    # metadata_reader
    "BookMetadata", "load_metadata",
    "MetadataFileNotFoundError", "MetadataTitleMissingError",
]
