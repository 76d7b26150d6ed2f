"""
読み上げ順序の解決モジュール。

ページ内の要素IDを読み上げ順の索引（{ID: 順位}）に対応付けます。

    マークアップ由来  ページXHTMLを深さ優先でたどり、id属性を持つ要素を出現順に記録
    レイアウト由来    レイヤー生成時に記録したID順リストをそのまま使う
    階層による推定    単語 < 文 < 段落 の階層レベル（並べ替えの同順位解消にのみ使用）
"""
import re
from xml.etree import ElementTree as ET

from core import logger
from core.messages import msg
from parsers.markup_repair import repair_markup


# 階層レベル
LEVEL_WORD = 0
LEVEL_SENTENCE = 1
LEVEL_PARAGRAPH = 2

_WORD_ID_RE = re.compile(r"_w\d+$")
_SENTENCE_ID_RE = re.compile(r"_s\d+$")


def hierarchy_level(element_id: str) -> int:
    """
    要素IDの階層レベルを返す。

    末尾が _w{n} なら単語(0)、_s{n} なら文(1)、それ以外は段落(2)。
    """
    if _WORD_ID_RE.search(element_id):
        return LEVEL_WORD
    if _SENTENCE_ID_RE.search(element_id):
        return LEVEL_SENTENCE
    return LEVEL_PARAGRAPH


def _collect_ids(root: ET.Element) -> dict[str, int]:
    order: dict[str, int] = {}
    for elem in root.iter():
        element_id = elem.get("id")
        if element_id and element_id not in order:
            order[element_id] = len(order)
    return order


def order_from_markup(xhtml: str, page_number: int = 0) -> dict[str, int] | None:
    """
    ページXHTMLから読み上げ順序を求める。

    Parameters
    ----------
    xhtml : str
        ページXHTML。
    page_number : int
        ログ出力用のページ番号。

    Returns
    -------
    dict[str, int] | None
        {要素ID: 文書順の索引}。修復後も整形式でない場合はNone。
    """
    try:
        return _collect_ids(ET.fromstring(xhtml.encode("utf-8")))
    except ET.ParseError as e:
        logger.page_debug(page_number, msg("markup_parse_failed", error=e))

    repaired = repair_markup(xhtml)
    if not repaired.changed:
        logger.page_warning(page_number, msg("markup_repair_failed"))
        return None
    try:
        order = _collect_ids(ET.fromstring(repaired.text.encode("utf-8")))
    except ET.ParseError:
        logger.page_warning(page_number, msg("markup_repair_failed"))
        return None
    logger.page_debug(page_number, msg("markup_repaired", fixes=", ".join(repaired.fixes)))
    return order


def order_from_layout(element_ids: list[str]) -> dict[str, int]:
    """レイヤー生成時に記録したID順リストから読み上げ順序を求める。"""
    order: dict[str, int] = {}
    for element_id in element_ids:
        if element_id not in order:
            order[element_id] = len(order)
    return order


def resolve_reading_order(
    xhtml: str | None = None,
    element_ids: list[str] | None = None,
    page_number: int = 0,
) -> dict[str, int]:
    """
    利用できる情報から読み上げ順序を解決する。

    マークアップがあればそれを優先し、解析できなければレイアウト由来のID順、
    どちらもなければ空の対応表を返す（並べ替えは階層と開始時刻で行われる）。
    """
    if xhtml:
        order = order_from_markup(xhtml, page_number)
        if order is not None:
            return order
    if element_ids:
        return order_from_layout(element_ids)
    return {}
