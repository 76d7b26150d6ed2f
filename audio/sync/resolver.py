"""
同期レコードの要素ID解決モジュール。

同期レコードが指すIDを、ページXHTMLに実在する要素IDへ解決します。
解決は名前付きの戦略を順に試し、最初に成功した戦略名を結果に残します。

    id_map        論理ブロックID → マークアップID の対応表
    direct        マークアップに存在するIDそのもの
    hierarchical  {論理ブロックID}_s{j}[_w{m}] を {フロー要素ID}_s{j}[_w{m}] へ読み替え
    substring     論理ブロックIDとの区切り文字単位の部分一致（候補が1件に絞れる場合のみ）

どの戦略でも解決できないIDは解決失敗とし、仮のIDで出力することはない。
"""
import re
from dataclasses import dataclass
from typing import Callable, TYPE_CHECKING

if TYPE_CHECKING:
    from layout.layers import PageLayout


_HIERARCHY_SUFFIX_RE = re.compile(r"^(?P<base>.+?)(?P<suffix>_s\d+(?:_w\d+)?)$")


def _contains_token(outer: str, inner: str) -> bool:
    """inner が outer の中に区切り文字（_ または -）を境界として現れるか。"p9" は "p99" に含まれない。"""
    return re.search(rf"(?:^|[_-]){re.escape(inner)}(?:$|[_-])", outer) is not None


@dataclass(frozen=True)
class Resolution:
    """ID解決の結果。"""
    source_id: str
    markup_id: str | None = None
    strategy: str | None = None

    @property
    def resolved(self) -> bool:
        return self.markup_id is not None


class IdResolver:
    """
    1ページ分のID解決器。

    Parameters
    ----------
    id_mapping : dict[str, str]
        論理ブロックID → マークアップID（ハイライト矩形またはフロー要素）。
    known_ids : set[str] | frozenset[str]
        ページXHTMLに存在するID。
    flow_ids : dict[str, str] | None
        論理ブロックID → フロー要素ID（文・単語IDの読み替えに使用）。
    """

    def __init__(self, id_mapping: dict[str, str], known_ids, flow_ids: dict[str, str] | None = None):
        self.id_mapping = id_mapping
        self.known_ids = frozenset(known_ids)
        self.flow_ids = flow_ids or {}
        self.strategies: list[tuple[str, Callable[[str], str | None]]] = [
            ("id_map", self._by_id_map),
            ("direct", self._by_direct),
            ("hierarchical", self._by_hierarchy),
            ("substring", self._by_substring),
        ]

    @classmethod
    def from_layout(cls, layout: "PageLayout") -> "IdResolver":
        flow_ids = {block.block_id: block.markup_id for block in layout.flow_blocks}
        return cls(layout.id_mapping, layout.known_ids, flow_ids)

    def _by_id_map(self, source_id: str) -> str | None:
        markup_id = self.id_mapping.get(source_id)
        if markup_id in self.known_ids:
            return markup_id
        return None

    def _by_direct(self, source_id: str) -> str | None:
        return source_id if source_id in self.known_ids else None

    def _by_hierarchy(self, source_id: str) -> str | None:
        m = _HIERARCHY_SUFFIX_RE.match(source_id)
        if not m:
            return None
        base = self.flow_ids.get(m.group("base"))
        if base is None:
            return None
        candidate = f"{base}{m.group('suffix')}"
        return candidate if candidate in self.known_ids else None

    def _by_substring(self, source_id: str) -> str | None:
        candidates = [
            block_id for block_id in self.id_mapping
            if _contains_token(block_id, source_id) or _contains_token(source_id, block_id)
        ]
        if len(candidates) != 1:
            return None
        return self._by_id_map(candidates[0])

    def resolve(self, source_id: str) -> Resolution:
        """IDを解決する。空のIDは常に解決失敗。"""
        if not source_id:
            return Resolution(source_id)
        for name, strategy in self.strategies:
            markup_id = strategy(source_id)
            if markup_id is not None:
                return Resolution(source_id, markup_id, name)
        return Resolution(source_id)
