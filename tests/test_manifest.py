import pytest

from audio.sync.builder import SmilDocument, SmilEntry
from core.exceptions import PackagingError
from epub.manifest import PageArtifacts, PackageManifest, assemble_manifest, verify_manifest
from epub.templates import ManifestItem, SpineItem


def _smil(page_number, audio="audio/narration.mp3", end=2.0):
    return SmilDocument(
        page_number=page_number,
        xhtml_filename=f"page_{page_number}.xhtml",
        entries=[SmilEntry(f"page{page_number}_par1", f"page{page_number}_p1", 0.0, end, audio)],
    )


@pytest.fixture
def two_pages(make_block, make_layout):
    first = make_layout([make_block("b1", "First page.")], page_number=1)
    second = make_layout([make_block("b2", "Second page.")], page_number=2)
    return first, second


def test_pages_are_ordered_and_overlays_attached(two_pages):
    first, second = two_pages
    # 完了順（2ページ目が先）で渡しても、ページ番号順に並ぶ
    manifest = assemble_manifest([
        PageArtifacts(layout=second, smil=None),
        PageArtifacts(layout=first, smil=_smil(1)),
    ])
    assert [s.idref for s in manifest.spine] == ["page_1", "page_2"]
    assert manifest.spine[0].media_overlay == "smil_1"
    assert manifest.spine[1].media_overlay is None
    assert manifest.item("page_1").media_overlay == "smil_1"
    assert manifest.item("smil_1").href == "smil/page_1.smil"
    assert manifest.item("img_2").href == "images/page_2.png"
    assert manifest.item("nav").properties == ["nav"]
    assert manifest.durations == {"smil_1": 2.0}
    assert manifest.audio_hrefs == {"audio/narration.mp3": "narration.mp3"}
    assert manifest.item("audio_1").media_type == "audio/mpeg"


def test_shared_audio_is_listed_once_and_names_stay_unique(two_pages):
    first, second = two_pages
    manifest = assemble_manifest([
        PageArtifacts(layout=first, smil=_smil(1, "a/narration.mp3")),
        PageArtifacts(layout=second, smil=_smil(2, "b/narration.mp3")),
    ])
    assert manifest.audio_hrefs == {"a/narration.mp3": "narration.mp3", "b/narration.mp3": "narration_2.mp3"}

    shared = assemble_manifest([
        PageArtifacts(layout=first, smil=_smil(1)),
        PageArtifacts(layout=second, smil=_smil(2)),
    ])
    assert [i.id for i in shared.manifest if i.id.startswith("audio_")] == ["audio_1"]


def test_unreadable_audio_drops_overlay(two_pages):
    first, _ = two_pages
    manifest = assemble_manifest([PageArtifacts(layout=first, smil=_smil(1), audio_readable=False)])
    assert manifest.item("smil_1") is None
    assert manifest.spine[0].media_overlay is None
    assert manifest.audio_hrefs == {}


def test_blank_page_is_kept_in_spine_without_overlay(two_pages, make_layout):
    first, _ = two_pages
    blank = make_layout([], page_number=2, text="")
    manifest = assemble_manifest([PageArtifacts(first, _smil(1)), PageArtifacts(blank)])

    assert [s.idref for s in manifest.spine] == ["page_1", "page_2"]
    assert manifest.spine[1].media_overlay is None
    assert manifest.item("page_2") is not None
    assert manifest.item("img_2") is not None


def test_no_pages_is_fatal():
    with pytest.raises(PackagingError):
        assemble_manifest([])


def test_verify_rejects_dangling_references():
    broken = PackageManifest(
        manifest=[ManifestItem(id="page_1", href="text/page_1.xhtml", media_type="application/xhtml+xml")],
        spine=[SpineItem(idref="page_1", media_overlay="smil_1")],
    )
    with pytest.raises(PackagingError):
        verify_manifest(broken)

    unknown = PackageManifest(manifest=[], spine=[SpineItem(idref="page_9")])
    with pytest.raises(PackagingError):
        verify_manifest(unknown)
