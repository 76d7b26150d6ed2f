import json

import pytest

from core.config import ConversionOptions
from layout.identifiers import IdentifierAssigner
from layout.layers import build_page_layout
from parsers.page_source import BlockType, BoundingBox, ImageRef, Page, TextBlock
from parsers.sync_source import AudioSyncRecord


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
MP3_BYTES = b"ID3\x03\x00\x00\x00\x00\x00\x00" + b"\x00" * 32


@pytest.fixture
def make_block():
    """TextBlock を作るファクトリ。"""
    def _make(block_id, text, x=72.0, y=700.0, width=300.0, height=20.0,
              block_type=BlockType.PARAGRAPH, bbox=True, **kwargs):
        box = BoundingBox(x=x, y=y, width=width, height=height) if bbox else None
        return TextBlock(id=block_id, text=text, type=block_type, bounding_box=box, **kwargs)
    return _make


@pytest.fixture
def image_ref(tmp_path):
    path = tmp_path / "page.png"
    path.write_bytes(PNG_BYTES)
    return ImageRef(path=str(path), width=1224, height=1584)


@pytest.fixture
def make_layout(image_ref):
    """ページを組み立ててレイヤー生成まで行うファクトリ。"""
    def _make(blocks, page_number=1, text="", options=None):
        page = Page(page_number=page_number, text=text, blocks=blocks, image=image_ref)
        return build_page_layout(page, image_ref, IdentifierAssigner(page_number), options or ConversionOptions())
    return _make


@pytest.fixture
def record():
    """AudioSyncRecord を作るファクトリ。"""
    def _make(block_id, start, end, page_number=1, audio="audio/narration.mp3", **kwargs):
        return AudioSyncRecord(
            page_number=page_number,
            block_id=block_id,
            start_time=start,
            end_time=end,
            audio_file_path=audio,
            **kwargs,
        )
    return _make


def _page_json(page_number, blocks, image=True):
    data = {
        "pageNumber": page_number,
        "widthPt": 612,
        "heightPt": 792,
        "text": " ".join(b["text"] for b in blocks),
        "textBlocks": blocks,
    }
    if image:
        data["image"] = {"path": f"images/page_{page_number}.png", "width": 1224, "height": 1584}
    return data


@pytest.fixture
def job_folder(tmp_path):
    """
    2ページ分の入力を持つジョブフォルダ。

    pages.json はページ番号の逆順で書き、音声は2ページで1ファイルを共有する。
    """
    folder = tmp_path / "sample_book"
    (folder / "images").mkdir(parents=True)
    (folder / "audio").mkdir()
    (folder / "images" / "page_1.png").write_bytes(PNG_BYTES)
    (folder / "images" / "page_2.png").write_bytes(PNG_BYTES)
    (folder / "audio" / "narration.mp3").write_bytes(MP3_BYTES)

    (folder / "metadata.txt").write_text(
        "# sample\n"
        "title: Sample Book\n"
        "author: Test Author\n"
        "language: en\n"
        "accessMode: textual\n",
        encoding="utf-8",
    )

    pages = [
        _page_json(2, [
            {"id": "b3", "text": "Second page text.", "type": "paragraph",
             "boundingBox": {"x": 72, "y": 600, "width": 400, "height": 30}},
        ]),
        _page_json(1, [
            {"id": "b1", "text": "Chapter One", "type": "heading", "level": 1,
             "boundingBox": {"x": 72, "y": 700, "width": 468, "height": 40}},
            {"id": "b2", "text": "The cat sat. The dog ran.", "type": "paragraph",
             "boundingBox": {"x": 72, "y": 600, "width": 468, "height": 60}},
        ]),
    ]
    (folder / "pages.json").write_text(json.dumps({"pages": pages}), encoding="utf-8")

    syncs = [
        {"pageNumber": 1, "blockId": "b1", "startTime": 0.0, "endTime": 1.2, "audioFilePath": "audio/narration.mp3"},
        {"page_number": 1, "block_id": "b2", "start_time": 1.3, "end_time": 3.5, "audio_file_path": "audio/narration.mp3"},
        {"pageNumber": 2, "blockId": "b3", "startTime": 4.0, "endTime": 5.5, "audioFilePath": "audio/narration.mp3"},
    ]
    (folder / "audio_sync.json").write_text(json.dumps({"syncs": syncs}), encoding="utf-8")
    return folder
