import io
import zipfile

import pytest

from core.exceptions import PackagingError
from epub.packaging import CONTAINER_PATH, ArchivePackager
from epub.templates import generate_container_xml


def _packager():
    packager = ArchivePackager()
    packager.add("OEBPS/text/page_1.xhtml", "<html/>")
    packager.add(CONTAINER_PATH, generate_container_xml())
    packager.add("OEBPS/images/page_1.png", b"\x89PNG")
    return packager


def test_mimetype_is_first_and_stored():
    data = _packager().to_bytes()
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        first = zf.infolist()[0]
        assert first.filename == "mimetype"
        assert first.compress_type == zipfile.ZIP_STORED
        assert zf.read("mimetype") == b"application/epub+zip"
        assert zf.namelist()[1] == CONTAINER_PATH
        assert zf.getinfo("OEBPS/text/page_1.xhtml").compress_type == zipfile.ZIP_DEFLATED


def test_names_follow_archive_order():
    assert _packager().names == [
        "mimetype",
        CONTAINER_PATH,
        "OEBPS/text/page_1.xhtml",
        "OEBPS/images/page_1.png",
    ]


def test_duplicate_and_reserved_paths_are_rejected():
    packager = _packager()
    with pytest.raises(PackagingError):
        packager.add("OEBPS/text/page_1.xhtml", "again")
    with pytest.raises(PackagingError):
        packager.add("mimetype", "text/plain")


def test_container_is_required():
    packager = ArchivePackager()
    packager.add("OEBPS/content.opf", "<package/>")
    with pytest.raises(PackagingError):
        packager.to_bytes()


def test_write_and_write_tree(tmp_path):
    packager = _packager()
    epub_path = packager.write(tmp_path / "out" / "book.epub")
    assert zipfile.is_zipfile(epub_path)
    tree = packager.write_tree(tmp_path / "tree")
    assert (tree / "mimetype").read_text() == "application/epub+zip"
    assert (tree / "OEBPS" / "images" / "page_1.png").read_bytes() == b"\x89PNG"
