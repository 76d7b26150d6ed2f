from layout.identifiers import IdentifierAssigner


def test_counters_are_per_type():
    assigner = IdentifierAssigner(3)
    assert assigner.assign("p") == "page3_p1"
    assert assigner.assign("p") == "page3_p2"
    assert assigner.assign("h") == "page3_h1"
    assert assigner.assign("li") == "page3_li1"


def test_sentence_and_word_ids_nest_under_parent():
    assigner = IdentifierAssigner(1)
    block = assigner.assign("p")
    s1 = assigner.assign_sentence(block)
    s2 = assigner.assign_sentence(block)
    assert (s1, s2) == ("page1_p1_s1", "page1_p1_s2")
    assert assigner.assign_word(s2) == "page1_p1_s2_w1"
    assert assigner.assign_word(s2) == "page1_p1_s2_w2"


def test_fresh_assigner_restarts_numbering():
    first = IdentifierAssigner(1)
    first.assign("p")
    second = IdentifierAssigner(1)
    assert second.assign("p") == "page1_p1"


def test_seed_continues_after_existing_ids():
    assigner = IdentifierAssigner(2)
    assigner.seed(["page2_p4", "page2_p2_s3", "page2_p2_s3_w7", "page9_p50", "unrelated"])
    assert assigner.assign("p") == "page2_p5"
    assert assigner.assign_sentence("page2_p2") == "page2_p2_s4"
    assert assigner.assign_word("page2_p2_s3") == "page2_p2_s3_w8"
    # 他ページのIDはカウンタに影響しない
    assert assigner.assign("h") == "page2_h1"


def test_seed_is_idempotent():
    ids = ["page1_p1", "page1_p2"]
    assigner = IdentifierAssigner(1)
    assigner.seed(ids)
    assigner.seed(ids)
    assert assigner.assign("p") == "page1_p3"


def test_ids_are_never_reissued():
    assigner = IdentifierAssigner(1)
    issued = [assigner.assign("p") for _ in range(5)]
    issued += [assigner.assign_sentence(issued[0]) for _ in range(3)]
    assert len(issued) == len(set(issued))
    assert set(issued) <= assigner.issued


def test_reserve_makes_fixed_id_unique():
    assigner = IdentifierAssigner(4)
    assert assigner.reserve("page4_emergency") == "page4_emergency"
    assert assigner.reserve("page4_emergency") == "page4_emergency2"
