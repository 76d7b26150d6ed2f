"""
EPUB生成モジュール。

固定レイアウトEPUB3のテンプレート生成、manifest / spine の組み立て、
パッケージング、検証を提供する。

変換ジョブ全体は epub.builder（convert_job_folder / ConversionJob）から実行する。
"""
from epub.manifest import PageArtifacts, PackageManifest, assemble_manifest, verify_manifest
from epub.packaging import ArchivePackager
from epub.templates import (
    ManifestItem,
    SpineItem,
    generate_page_xhtml,
    generate_nav_xhtml,
    generate_smil_document,
    generate_opf_document,
)
from epub.validator import ValidationReport, validate_epub, validate_epub_bytes

__all__ = [
    "PageArtifacts",
    "PackageManifest",
    "assemble_manifest",
    "verify_manifest",
    "ArchivePackager",
    "ManifestItem",
    "SpineItem",
    "generate_page_xhtml",
    "generate_nav_xhtml",
    "generate_smil_document",
    "generate_opf_document",
    "ValidationReport",
    "validate_epub",
    "validate_epub_bytes",
]
