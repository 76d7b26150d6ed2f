import random
from xml.etree import ElementTree as ET

import pytest

from audio.sync.builder import build_page_smil
from parsers.page_source import BlockType


SMIL_NS = "{http://www.w3.org/ns/SMIL}"


def _pairs(document):
    return [(e.text_ref, e.clip_begin, e.clip_end) for e in document.entries]


def test_two_blocks_produce_two_non_overlapping_pars(make_block, make_layout, record):
    layout = make_layout([
        make_block("b1", "Hello world.", x=10, y=700, width=200, height=20),
        make_block("b2", "Goodbye.", x=10, y=650, width=200, height=20),
    ])
    result = build_page_smil(1, [record("b1", 0.0, 1.5), record("b2", 1.5, 2.0)], layout)

    entries = result.document.entries
    assert result.dropped == 0
    assert [e.text_ref for e in entries] == ["page1_p1-highlight", "page1_p2-highlight"]
    assert entries[0].clip_end <= entries[1].clip_begin
    assert entries[1].clip_end - entries[1].clip_begin >= 0.3
    assert [e.par_id for e in entries] == ["page1_par1", "page1_par2"]


def test_unknown_block_id_is_dropped(make_block, make_layout, record):
    layout = make_layout([
        make_block("block-a", "First.", y=700),
        make_block("block-b", "Second.", y=600),
    ])
    records = [record("block-a", 0.0, 1.0), record("p99", 1.0, 2.0), record("block-b", 2.0, 3.0)]
    result = build_page_smil(1, records, layout)
    assert result.dropped == 1
    assert result.drop_reasons == {"unresolved_id": 1}
    assert len(result.document.entries) == 2


def test_longer_unknown_id_does_not_bind_to_shorter_block(make_block, make_layout, record):
    layout = make_layout([
        make_block("p9", "First.", y=700),
        make_block("p10", "Second.", y=600),
    ])
    result = build_page_smil(1, [record("p9", 0.0, 1.0), record("p99", 1.0, 2.0)], layout)
    assert result.dropped == 1
    assert [e.text_ref for e in result.document.entries] == ["page1_p1-highlight"]


def test_separator_bounded_id_resolves_by_substring(make_block, make_layout, record):
    layout = make_layout([make_block("b1", "Only block.")])
    result = build_page_smil(1, [record("b1_extra", 0.0, 1.0)], layout)
    assert result.dropped == 0
    assert [e.text_ref for e in result.document.entries] == ["page1_p1-highlight"]


def test_entries_follow_reading_order_not_start_time(make_block, make_layout, record):
    layout = make_layout([
        make_block("b1", "Top block", y=700),
        make_block("b2", "Bottom block", y=100),
    ])
    result = build_page_smil(1, [record("b2", 0.0, 1.0), record("b1", 2.0, 3.0)], layout)
    entries = result.document.entries
    assert [e.text_ref for e in entries] == ["page1_p1-highlight", "page1_p2-highlight"]
    assert entries[0].clip_end <= entries[1].clip_begin


def test_sentence_records_resolve_through_block_id(make_block, make_layout, record):
    layout = make_layout([make_block("b1", "The cat sat. The dog ran.")])
    result = build_page_smil(1, [record("b1_s1", 0.0, 1.0), record("b1_s2", 1.2, 2.4)], layout)
    assert [e.text_ref for e in result.document.entries] == ["page1_p1_s1", "page1_p1_s2"]


def test_markup_ids_resolve_directly(make_block, make_layout, record):
    layout = make_layout([make_block("b1", "The cat sat.")])
    result = build_page_smil(1, [record("page1_p1_s1_w2", 0.0, 1.0)], layout)
    assert result.document.entries[0].text_ref == "page1_p1_s1_w2"


def test_page_level_record_is_split_by_characters(make_block, make_layout, record):
    layout = make_layout([
        make_block("b1", "aaaa", y=700),
        make_block("b2", "bbbbbbbbbbbb", y=600),
    ])
    result = build_page_smil(1, [record("", 0.0, 10.0)], layout)
    entries = result.document.entries
    assert [e.text_ref for e in entries] == ["page1_p1-highlight", "page1_p2-highlight"]
    assert entries[0].clip_begin == pytest.approx(0.0)
    assert entries[1].clip_begin == pytest.approx(2.5)


def test_records_not_to_be_read_are_excluded(make_block, make_layout, record):
    layout = make_layout([make_block("b1", "Skip me.")])
    result = build_page_smil(1, [record("b1", 0.0, 1.0, should_read=False)], layout)
    assert result.document is None
    assert result.dropped == 0


def test_invalid_times_are_dropped(make_block, make_layout, record):
    layout = make_layout([make_block("b1", "One."), make_block("b2", "Two.", y=600)])
    result = build_page_smil(1, [record("b1", 2.0, 1.0), record("b2", 0.0, 1.0)], layout)
    assert result.drop_reasons == {"invalid_duration": 1}
    assert [e.text_ref for e in result.document.entries] == ["page1_p2-highlight"]


def test_granularity_failure_degrades_page(make_block, make_layout, record):
    layout = make_layout([make_block("b1", "The cat sat.")])
    words = [record("page1_p1_s1_w1", 0.0, 0.3), record("page1_p1_s1_w2", 0.3, 0.6)]
    result = build_page_smil(1, words, layout, granularity="paragraph")
    assert result.document is None
    assert result.error


def test_word_records_upsampled_to_sentence(make_block, make_layout, record):
    layout = make_layout([make_block("b1", "The cat sat.")])
    words = [record("page1_p1_s1_w1", 0.0, 0.3), record("page1_p1_s1_w2", 0.3, 0.6)]
    result = build_page_smil(1, words, layout, granularity="sentence")
    assert [e.text_ref for e in result.document.entries] == ["page1_p1_s1"]
    assert result.document.entries[0].clip_begin == 0.0


def test_smil_xml_references_page_and_audio(make_block, make_layout, record):
    layout = make_layout([make_block("b1", "Hello.")])
    document = build_page_smil(1, [record("b1", 0.0, 1.0)], layout).document
    root = ET.fromstring(document.to_xml({"audio/narration.mp3": "narration_2.mp3"}).encode("utf-8"))
    seq = root.find(f".//{SMIL_NS}seq")
    assert seq.get("id") == "page1_seq"
    text = root.find(f".//{SMIL_NS}text")
    audio = root.find(f".//{SMIL_NS}audio")
    assert text.get("src") == "../text/page_1.xhtml#page1_p1-highlight"
    assert audio.get("src") == "../audio/narration_2.mp3"
    assert audio.get("clipBegin") == "0.000s"
    assert document.smil_filename == "page_1.smil"
    assert document.audio_files == ["audio/narration.mp3"]


WORDS = ["alpha", "beta", "gamma.", "delta,", "epsilon", "zeta!", "eta", "theta?"]
TYPES = [BlockType.PARAGRAPH, BlockType.HEADING1, BlockType.LIST_ITEM, BlockType.CAPTION]


@pytest.mark.parametrize("seed", range(25))
def test_generated_pages_keep_anchor_and_timing_invariants(seed, make_block, make_layout, record):
    rng = random.Random(seed)
    blocks = []
    for i in range(rng.randint(1, 6)):
        text = " ".join(rng.choice(WORDS) for _ in range(rng.randint(1, 12)))
        blocks.append(make_block(
            f"blk{i}",
            text,
            x=rng.uniform(0, 500),
            y=rng.uniform(0, 780),
            width=rng.uniform(-5, 300),
            height=rng.uniform(-5, 60),
            block_type=rng.choice(TYPES),
            bbox=rng.random() > 0.2,
        ))
    layout = make_layout(blocks)

    candidates = [b.id for b in blocks] + list(layout.element_ids) + ["missing", "p99", "bad id"]
    records = []
    for _ in range(rng.randint(0, 15)):
        start = rng.uniform(-1, 20)
        end = start + rng.uniform(-0.5, 3)
        records.append(record(rng.choice(candidates), start, end))

    result = build_page_smil(1, records, layout)
    if result.document is None:
        return
    entries = result.document.entries
    for entry in entries:
        assert entry.text_ref in layout.known_ids
        assert entry.clip_end - entry.clip_begin >= 0.3 - 1e-9
    for current, following in zip(entries, entries[1:]):
        assert current.clip_end <= following.clip_begin
