import json
import threading
import zipfile
from xml.etree import ElementTree as ET

import pytest

from core.config import ConversionOptions
from core.exceptions import ConversionCancelledError, EpubGenerationError, FileNotFoundError_
from core.metadata_reader import BookMetadata
from epub.builder import ConversionJob, LocalJobGate, convert_job_folder
from epub.validator import validate_epub
from parsers.page_source import Page


OPF_NS = "{http://www.idpf.org/2007/opf}"


def _spine(epub_path):
    with zipfile.ZipFile(epub_path) as zf:
        opf = ET.fromstring(zf.read("OEBPS/content.opf"))
    return [
        (ref.get("idref"), ref.get("media-overlay"))
        for ref in opf.iter(f"{OPF_NS}itemref")
    ]


def test_job_folder_converts_to_valid_epub(job_folder, tmp_path):
    output = tmp_path / "out" / "book.epub"
    result = convert_job_folder(job_folder, output, ConversionOptions(max_workers=2))

    assert result.succeeded
    assert result.output_path == output
    assert result.pages == [1, 2]
    assert result.pages_without_narration == []
    assert result.validation.is_valid, result.validation.errors
    assert validate_epub(output).is_valid

    assert _spine(output) == [("page_1", "smil_1"), ("page_2", "smil_2")]
    with zipfile.ZipFile(output) as zf:
        names = zf.namelist()
        assert names[0] == "mimetype"
        assert "OEBPS/audio/narration.mp3" in names
        assert "OEBPS/images/page_1.png" in names
        smil = zf.read("OEBPS/smil/page_1.smil").decode("utf-8")
        assert "../text/page_1.xhtml#page1_h1-highlight" in smil
        assert "../audio/narration.mp3" in smil
    assert (job_folder / "conversion.log").exists()


def test_default_output_path_sits_beside_job_folder(job_folder):
    result = convert_job_folder(job_folder)
    assert result.output_path == job_folder.parent / "sample_book.epub"
    assert result.output_path.exists()


def test_page_without_image_is_skipped(job_folder, tmp_path):
    (job_folder / "images" / "page_2.png").unlink()
    result = convert_job_folder(job_folder, tmp_path / "book.epub")
    assert result.pages == [1]
    assert result.skipped_pages == [2]
    assert [idref for idref, _ in _spine(tmp_path / "book.epub")] == ["page_1"]


def test_missing_sync_file_gives_silent_pages(job_folder, tmp_path):
    (job_folder / "audio_sync.json").unlink()
    result = convert_job_folder(job_folder, tmp_path / "book.epub")
    assert result.succeeded
    assert result.pages_without_narration == [1, 2]
    assert _spine(tmp_path / "book.epub") == [("page_1", None), ("page_2", None)]
    with zipfile.ZipFile(tmp_path / "book.epub") as zf:
        opf = zf.read("OEBPS/content.opf").decode("utf-8")
    assert "media:duration" not in opf


def test_unreadable_audio_keeps_page_without_overlay(job_folder, tmp_path):
    (job_folder / "audio" / "narration.mp3").unlink()
    result = convert_job_folder(job_folder, tmp_path / "book.epub")
    assert result.succeeded
    assert result.pages_without_narration == [1, 2]
    assert result.validation.is_valid


def test_textgrid_timings_used_when_no_sync_records(job_folder, tmp_path):
    (job_folder / "audio_sync.json").unlink()
    (job_folder / "textgrid").mkdir()
    (job_folder / "audio" / "page_2.mp3").write_bytes(b"ID3")
    (job_folder / "textgrid" / "page_2.TextGrid").write_text(
        'File type = "ooTextFile"\nObject class = "TextGrid"\n\n'
        "xmin = 0\nxmax = 2\ntiers? <exists>\nsize = 1\nitem []:\n"
        '    item [1]:\n        class = "IntervalTier"\n        name = "words"\n'
        "        xmin = 0\n        xmax = 2\n        intervals: size = 3\n"
        '        intervals [1]:\n            xmin = 0\n            xmax = 0.6\n            text = "Second"\n'
        '        intervals [2]:\n            xmin = 0.6\n            xmax = 1.2\n            text = "page"\n'
        '        intervals [3]:\n            xmin = 1.2\n            xmax = 2\n            text = "text."\n',
        encoding="utf-8",
    )
    result = convert_job_folder(job_folder, tmp_path / "book.epub")
    assert result.pages_without_narration == [1]
    assert _spine(tmp_path / "book.epub") == [("page_1", None), ("page_2", "smil_2")]


def test_all_pages_missing_fails_without_output(job_folder, tmp_path):
    for image in (job_folder / "images").iterdir():
        image.unlink()
    output = tmp_path / "book.epub"
    result = convert_job_folder(job_folder, output)
    assert result.status == "failed"
    assert result.error
    assert not output.exists()


def test_cancelled_job_writes_nothing(job_folder, tmp_path):
    cancel = threading.Event()
    cancel.set()
    output = tmp_path / "book.epub"
    with pytest.raises(ConversionCancelledError):
        convert_job_folder(job_folder, output, cancel_event=cancel)
    assert not output.exists()


def test_cancel_from_job_object(image_ref):
    pages = [Page(page_number=n, image=image_ref, text="Some text.") for n in range(1, 4)]
    job = ConversionJob(pages, [], BookMetadata(title="T"), job_id="job-1")
    job.cancel()
    with pytest.raises(ConversionCancelledError) as excinfo:
        job.run()
    assert excinfo.value.job_id == "job-1"


def test_job_without_output_path_still_validates(image_ref):
    pages = [Page(page_number=n, image=image_ref, text="Some text.") for n in (2, 1)]
    result = ConversionJob(pages, [], BookMetadata(title="T")).run()
    assert result.output_path is None
    assert result.pages == [1, 2]
    assert result.validation.is_valid, result.validation.errors


def test_intermediate_tree_is_written(job_folder, tmp_path):
    tree = tmp_path / "tree"
    convert_job_folder(job_folder, tmp_path / "book.epub", intermediate_dir=tree)
    assert (tree / "OEBPS" / "content.opf").exists()
    assert (tree / "OEBPS" / "text" / "nav.xhtml").exists()


def test_gate_limits_concurrent_jobs(job_folder, tmp_path):
    gate = LocalJobGate(max_jobs=1, timeout=0.01)
    assert gate.acquire("other")
    try:
        with pytest.raises(EpubGenerationError):
            convert_job_folder(job_folder, tmp_path / "book.epub", gate=gate)
    finally:
        gate.release("other")
    assert convert_job_folder(job_folder, tmp_path / "book.epub", gate=gate).succeeded


def test_missing_pages_file_raises(tmp_path):
    folder = tmp_path / "empty_job"
    folder.mkdir()
    with pytest.raises(FileNotFoundError_):
        convert_job_folder(folder)


def test_metadata_language_is_used(job_folder, tmp_path):
    (job_folder / "metadata.txt").write_text("title: 本\nlanguage: ja\n", encoding="utf-8")
    convert_job_folder(job_folder, tmp_path / "book.epub")
    with zipfile.ZipFile(tmp_path / "book.epub") as zf:
        opf = zf.read("OEBPS/content.opf").decode("utf-8")
        nav = zf.read("OEBPS/text/nav.xhtml").decode("utf-8")
    assert "<dc:language>ja</dc:language>" in opf
    assert "1ページ" in nav


def test_zero_page_width_uses_default_size(job_folder, tmp_path):
    pages_path = job_folder / "pages.json"
    data = json.loads(pages_path.read_text(encoding="utf-8"))
    for page in data["pages"]:
        if page["pageNumber"] == 1:
            page["widthPt"] = 0
    pages_path.write_text(json.dumps(data), encoding="utf-8")

    result = convert_job_folder(job_folder, tmp_path / "book.epub")
    assert result.succeeded
    assert result.pages == [1, 2]


def test_failing_page_is_skipped_not_fatal(image_ref, make_block):
    pages = [
        Page(page_number=1, width_pt=0, image=image_ref, blocks=[make_block("b1", "Broken geometry.")]),
        Page(page_number=2, image=image_ref, blocks=[make_block("b2", "Fine page.")]),
    ]
    result = ConversionJob(pages, [], BookMetadata(title="T")).run()
    assert result.succeeded
    assert result.pages == [2]
    assert result.skipped_pages == [1]


def test_blank_page_with_image_stays_in_spine(image_ref):
    pages = [
        Page(page_number=1, image=image_ref, text="Some text."),
        Page(page_number=2, image=image_ref, text=""),
    ]
    result = ConversionJob(pages, [], BookMetadata(title="T")).run()
    assert result.pages == [1, 2]
    assert result.pages_without_narration == [1, 2]
    assert result.validation.is_valid, result.validation.errors


def test_package_document_uses_reserved_prefixes_without_redeclaring(job_folder, tmp_path):
    convert_job_folder(job_folder, tmp_path / "book.epub")
    with zipfile.ZipFile(tmp_path / "book.epub") as zf:
        opf = ET.fromstring(zf.read("OEBPS/content.opf"))
    assert opf.get("prefix") is None
    properties = {meta.get("property") for meta in opf.iter(f"{OPF_NS}meta")}
    assert {"rendition:layout", "media:duration"} <= properties
