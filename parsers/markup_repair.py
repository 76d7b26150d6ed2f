"""
XHTML修復モジュール。

XMLとして整形式でないページマークアップに、決まった修復を1回だけ適用します。
修復しても整形式にならない場合、呼び出し側は修復前の入力に基づく
代替手段（レイアウト時に記録したID順など）へ切り替えます。
"""
import re
from dataclasses import dataclass, field
from html.entities import name2codepoint


# XMLで定義済みの実体参照
_XML_ENTITIES = {"amp", "lt", "gt", "quot", "apos"}

# 空要素（XHTMLでは自己終了が必要）
_VOID_ELEMENTS = ("area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "wbr")

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ufeff]")
_BARE_AMP_RE = re.compile(r"&(?!#\d+;|#x[0-9A-Fa-f]+;|[A-Za-z][A-Za-z0-9]*;)")
_NAMED_ENTITY_RE = re.compile(r"&([A-Za-z][A-Za-z0-9]*);")
_VOID_TAG_RE = re.compile(
    r"<(" + "|".join(_VOID_ELEMENTS) + r")(\s[^<>]*?)?(?<!/)>",
    re.IGNORECASE,
)


@dataclass
class RepairResult:
    """修復結果。"""
    text: str
    fixes: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.fixes)


def _replace_named_entity(match: re.Match) -> str:
    name = match.group(1)
    if name in _XML_ENTITIES:
        return match.group(0)
    codepoint = name2codepoint.get(name)
    if codepoint is None:
        # 未知の実体参照は文字列として残す
        return f"&amp;{name};"
    return f"&#{codepoint};"


def repair_markup(markup: str) -> RepairResult:
    """
    ページマークアップに既知の修復を1回ずつ適用する。

    Parameters
    ----------
    markup : str
        整形式でない可能性のあるXHTML。

    Returns
    -------
    RepairResult
        修復後のテキストと、適用した修復の名前のリスト。

    Notes
    -----
    適用する修復:
        - 先頭の空白・BOMと制御文字の除去
        - HTML固有の実体参照（&nbsp; など）を数値文字参照へ置換
        - 実体参照でない & を &amp; へ置換
        - 空要素（br, img, meta など）の自己終了化
    """
    fixes: list[str] = []
    text = markup

    stripped = _CONTROL_CHARS_RE.sub("", text).lstrip()
    if stripped != text:
        fixes.append("control_chars")
        text = stripped

    replaced = _NAMED_ENTITY_RE.sub(_replace_named_entity, text)
    if replaced != text:
        fixes.append("named_entities")
        text = replaced

    escaped = _BARE_AMP_RE.sub("&amp;", text)
    if escaped != text:
        fixes.append("bare_ampersand")
        text = escaped

    closed = _VOID_TAG_RE.sub(lambda m: f"<{m.group(1)}{m.group(2) or ''}/>", text)
    if closed != text:
        fixes.append("void_elements")
        text = closed

    return RepairResult(text=text, fixes=fixes)
