"""
EPUBパッケージ検証モジュール。

生成したEPUB（ZIP）の構造と参照整合性を確認します。

    - 先頭エントリーが無圧縮の mimetype で、内容が application/epub+zip であること
    - META-INF/container.xml がパッケージ文書を参照していること
    - manifest の全ファイルがアーカイブに存在し、nav が含まれること
    - spine / media-overlay の参照先が manifest に存在すること
    - SMILの text 参照先IDがページXHTMLに存在すること
"""
import io
import posixpath
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from xml.etree import ElementTree as ET

from core.config import MIMETYPE
from core.messages import msg


OPF_NS = "{http://www.idpf.org/2007/opf}"
SMIL_NS = "{http://www.w3.org/ns/SMIL}"


@dataclass
class ValidationReport:
    """検証結果。"""
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _find_opf_path(zf: zipfile.ZipFile) -> str | None:
    container = zf.read("META-INF/container.xml")
    root = ET.fromstring(container)
    for rootfile in root.iter():
        if rootfile.tag.endswith("rootfile"):
            return rootfile.get("full-path")
    return None


def _collect_ids(data: bytes) -> set[str]:
    root = ET.fromstring(data)
    return {elem.get("id") for elem in root.iter() if elem.get("id")}


def _check_mimetype(zf: zipfile.ZipFile, report: ValidationReport) -> None:
    infos = zf.infolist()
    if not infos or infos[0].filename != "mimetype":
        report.errors.append(msg("validate_mimetype_not_first"))
        return
    if infos[0].compress_type != zipfile.ZIP_STORED:
        report.errors.append(msg("validate_mimetype_compressed"))
    if zf.read("mimetype") != MIMETYPE.encode("ascii"):
        report.errors.append(msg("validate_mimetype_content"))


def _check_smil_refs(zf: zipfile.ZipFile, smil_path: str, report: ValidationReport, id_cache: dict) -> None:
    smil_dir = posixpath.dirname(smil_path)
    root = ET.fromstring(zf.read(smil_path))
    for text in root.iter(f"{SMIL_NS}text"):
        src = text.get("src", "")
        href, _, fragment = src.partition("#")
        target = posixpath.normpath(posixpath.join(smil_dir, href))
        if target not in id_cache:
            try:
                id_cache[target] = _collect_ids(zf.read(target))
            except (KeyError, ET.ParseError):
                id_cache[target] = None
        ids = id_cache[target]
        if ids is None:
            report.errors.append(msg("validate_smil_target_missing", smil=smil_path, target=target))
        elif fragment and fragment not in ids:
            report.errors.append(msg("validate_smil_anchor_missing", smil=smil_path, anchor=fragment))


def validate_epub_bytes(data: bytes) -> ValidationReport:
    """
    EPUBのバイト列を検証する。

    Parameters
    ----------
    data : bytes
        EPUB（ZIP）の内容。

    Returns
    -------
    ValidationReport
        エラーと警告の一覧。
    """
    report = ValidationReport()
    try:
        zf = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        report.errors.append(msg("validate_not_zip", error=e))
        return report

    with zf:
        names = set(zf.namelist())
        _check_mimetype(zf, report)

        if "META-INF/container.xml" not in names:
            report.errors.append(msg("validate_missing_file", path="META-INF/container.xml"))
            return report
        try:
            opf_path = _find_opf_path(zf)
        except ET.ParseError as e:
            report.errors.append(msg("validate_xml_error", path="META-INF/container.xml", error=e))
            return report
        if not opf_path or opf_path not in names:
            report.errors.append(msg("validate_missing_file", path=opf_path or "content.opf"))
            return report

        try:
            opf = ET.fromstring(zf.read(opf_path))
        except ET.ParseError as e:
            report.errors.append(msg("validate_xml_error", path=opf_path, error=e))
            return report

        opf_dir = posixpath.dirname(opf_path)
        items: dict[str, ET.Element] = {}
        for item in opf.iter(f"{OPF_NS}item"):
            items[item.get("id")] = item
            full = posixpath.normpath(posixpath.join(opf_dir, item.get("href", "")))
            if full not in names:
                report.errors.append(msg("validate_missing_file", path=full))

        if not any("nav" in (item.get("properties") or "").split() for item in items.values()):
            report.errors.append(msg("validate_no_nav"))

        itemrefs = list(opf.iter(f"{OPF_NS}itemref"))
        if not itemrefs:
            report.errors.append(msg("spine_empty"))
        for itemref in itemrefs:
            if itemref.get("idref") not in items:
                report.errors.append(msg("spine_unknown_item", idref=itemref.get("idref")))

        id_cache: dict[str, set[str] | None] = {}
        for element in list(items.values()) + itemrefs:
            ref = element.get("media-overlay")
            if not ref:
                continue
            target = items.get(ref)
            if target is None or target.get("media-type") != "application/smil+xml":
                report.errors.append(msg("media_overlay_unknown", ref=ref))

        for item in items.values():
            if item.get("media-type") != "application/smil+xml":
                continue
            smil_path = posixpath.normpath(posixpath.join(opf_dir, item.get("href", "")))
            if smil_path not in names:
                continue
            try:
                _check_smil_refs(zf, smil_path, report, id_cache)
            except ET.ParseError as e:
                report.errors.append(msg("validate_xml_error", path=smil_path, error=e))

    return report


def validate_epub(epub_path: str | Path) -> ValidationReport:
    """EPUBファイルを検証する。"""
    with open(epub_path, "rb") as f:
        return validate_epub_bytes(f.read())
