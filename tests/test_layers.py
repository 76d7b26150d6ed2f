import re
from xml.etree import ElementTree as ET

from core.config import ConversionOptions
from layout.layers import build_page_layout, identify_repetitive_text, order_blocks
from parsers.page_source import BlockType, Page, TextBlock


XHTML_NS = "{http://www.w3.org/1999/xhtml}"


def _ids_in(xhtml):
    root = ET.fromstring(xhtml.encode("utf-8"))
    return [elem.get("id") for elem in root.iter() if elem.get("id")]


def test_blocks_produce_three_layers(make_block, make_layout):
    layout = make_layout([
        make_block("b1", "Chapter One", y=700, block_type=BlockType.HEADING1),
        make_block("b2", "The cat sat. The dog ran.", y=600),
    ])
    root = ET.fromstring(layout.xhtml.encode("utf-8"))
    highlights = [d for d in root.iter(f"{XHTML_NS}div") if d.get("class") == "highlight-target"]
    selectables = [d for d in root.iter(f"{XHTML_NS}div") if d.get("class") == "selectable-text"]
    assert [d.get("id") for d in highlights] == ["page1_h1-highlight", "page1_p1-highlight"]
    assert [d.get("data-block") for d in selectables] == ["page1_h1", "page1_p1"]
    assert root.find(f".//{XHTML_NS}h1").get("id") == "page1_h1"
    assert root.find(f".//{XHTML_NS}p").get("id") == "page1_p1"
    assert layout.id_mapping == {"b1": "page1_h1-highlight", "b2": "page1_p1-highlight"}


def test_sentences_and_words_get_nested_ids(make_block, make_layout):
    layout = make_layout([make_block("b1", "The cat sat. The dog ran.")])
    assert layout.texts["page1_p1_s1"] == "The cat sat."
    assert layout.texts["page1_p1_s2"] == "The dog ran."
    assert layout.texts["page1_p1_s2_w3"] == "ran."
    assert layout.flow_blocks[0].sentence_ids == ["page1_p1_s1", "page1_p1_s2"]


def test_element_ids_match_markup_order(make_block, make_layout):
    layout = make_layout([
        make_block("b1", "First block.", y=700),
        make_block("b2", "Second block here.", y=650, block_type=BlockType.LIST_ITEM),
    ])
    assert _ids_in(layout.xhtml) == layout.element_ids


def test_ids_are_unique_within_page(make_block, make_layout):
    blocks = [make_block(f"b{i}", f"Block number {i}. Another one.", y=700 - i * 30) for i in range(8)]
    layout = make_layout(blocks)
    ids = _ids_in(layout.xhtml)
    assert len(ids) == len(set(ids))


def test_list_item_and_heading_levels(make_block, make_layout):
    layout = make_layout([
        make_block("t", "Title", y=750, block_type=BlockType.HEADING2),
        make_block("li", "An item", y=700, block_type=BlockType.LIST_ITEM),
    ])
    assert '<h2 id="page1_h1">' in layout.xhtml
    assert '<p id="page1_li1" class="list-item">' in layout.xhtml


def test_text_is_escaped(make_block, make_layout):
    layout = make_layout([make_block("b1", "Fish & <chips>")])
    assert "Fish &amp; &lt;chips&gt;" in layout.xhtml
    ET.fromstring(layout.xhtml.encode("utf-8"))


def test_empty_page_has_no_emergency_block(make_layout):
    layout = make_layout([], text="")
    assert layout is not None
    assert layout.element_ids == []
    assert not layout.is_emergency
    root = ET.fromstring(layout.xhtml.encode("utf-8"))
    assert root.find(f".//{XHTML_NS}p") is None
    assert root.find(f".//{XHTML_NS}img") is not None


def test_page_text_without_blocks_uses_emergency_block(make_layout):
    layout = make_layout([], text="Only page text.")
    assert layout.is_emergency
    assert "page1_emergency" in layout.element_ids
    assert "page1_emergency-highlight" not in layout.element_ids
    assert '<p id="page1_emergency">' in layout.xhtml


def test_missing_image_skips_page():
    page = Page(page_number=1, blocks=[TextBlock(id="b1", text="Hello")])
    assert build_page_layout(page, None) is None


def test_blocks_without_bbox_only_appear_in_flow(make_block, make_layout):
    layout = make_layout([make_block("b1", "No box here", bbox=False)])
    assert layout.id_mapping == {"b1": "page1_p1"}
    assert "highlight-target" not in layout.xhtml


def test_order_blocks_uses_reading_order_then_position(make_block):
    low = make_block("low", "low", y=100)
    high = make_block("high", "high", y=700)
    left = make_block("left", "left", x=10, y=400)
    right = make_block("right", "right", x=300, y=400)
    ordered_first = make_block("first", "first", y=50, reading_order=0)
    no_box = make_block("nobox", "nobox", bbox=False)
    ordered = order_blocks([no_box, low, right, high, left, ordered_first])
    assert [b.id for b in ordered] == ["first", "high", "left", "right", "low", "nobox"]


def test_repetitive_text_is_detected_and_skipped(make_block, image_ref):
    pages = [
        Page(page_number=n, image=image_ref, blocks=[
            make_block(f"hdr{n}", "Running Header", y=770, block_type=BlockType.HEADER),
            make_block(f"body{n}", f"Body text of page {n}.", y=600),
        ])
        for n in range(1, 4)
    ]
    repetitive = identify_repetitive_text(pages)
    assert repetitive == {"running header"}

    options = ConversionOptions(skip_repetitive_text=True)
    layout = build_page_layout(pages[0], image_ref, options=options, repetitive_text=repetitive)
    assert "Running Header" not in layout.xhtml
    assert "hdr1" not in layout.id_mapping

    kept = build_page_layout(pages[0], image_ref, repetitive_text=repetitive)
    assert "Running Header" in kept.xhtml


def test_viewport_prefers_render_size(make_block, make_layout, image_ref):
    layout = make_layout([make_block("b1", "Text")])
    assert layout.viewport == (image_ref.width, image_ref.height)
    sized = make_layout([make_block("b1", "Text")], options=ConversionOptions(render_width=800, render_height=1000))
    assert sized.viewport == (800, 1000)
    assert re.search(r'content="width=800px, height=1000px"', sized.xhtml)
