import pytest

from audio.sync.granularity import apply_granularity, parent_id, upsample
from core.exceptions import SmilGenerationError


def test_parent_id_strips_one_level():
    assert parent_id("p1_s1_w2") == "p1_s1"
    assert parent_id("p1_s1") == "p1"
    assert parent_id("p1") == "p1"


def test_sentences_upsample_to_one_paragraph(record):
    records = [record("p1_s1", 0.0, 2.0), record("p1_s2", 2.0, 5.0)]
    result = apply_granularity(records, "paragraph")
    assert len(result) == 1
    assert (result[0].block_id, result[0].start_time, result[0].end_time) == ("p1", 0.0, 5.0)


def test_matching_level_is_kept_as_is(record):
    records = [record("p1", 0.0, 1.0), record("p1_s1", 0.0, 0.5)]
    assert [r.block_id for r in apply_granularity(records, "paragraph")] == ["p1"]
    assert [r.block_id for r in apply_granularity(records, "sentence")] == ["p1_s1"]


def test_none_granularity_returns_records_unchanged(record):
    records = [record("p1_s1_w1", 0.0, 0.2), record("p1", 0.0, 1.0)]
    assert apply_granularity(records, None) == records


def test_word_records_do_not_jump_two_levels(record):
    words = [record("p1_s1_w1", 0.0, 0.4), record("p1_s1_w2", 0.4, 0.9), record("p1_s2_w1", 1.0, 1.6)]
    with pytest.raises(SmilGenerationError):
        apply_granularity(words, "paragraph")


def test_explicit_sentence_then_paragraph_chaining(record):
    words = [record("p1_s1_w1", 0.0, 0.4), record("p1_s1_w2", 0.4, 0.9), record("p1_s2_w1", 1.0, 1.6)]
    sentences = apply_granularity(words, "sentence")
    assert [(r.block_id, r.start_time, r.end_time) for r in sentences] == [
        ("p1_s1", 0.0, 0.9),
        ("p1_s2", 1.0, 1.6),
    ]
    paragraphs = apply_granularity(sentences, "paragraph")
    assert [(r.block_id, r.start_time, r.end_time) for r in paragraphs] == [("p1", 0.0, 1.6)]


def test_unknown_granularity_raises(record):
    with pytest.raises(SmilGenerationError):
        apply_granularity([record("p1", 0, 1)], "chapter")


def test_upsample_joins_child_texts(record):
    records = [record("p1_s1", 0.0, 1.0), record("p1_s2", 1.0, 2.0, custom_text="Custom.")]
    combined = upsample(records, {"p1_s1": "First."})
    assert combined[0].custom_text == "First. Custom."
