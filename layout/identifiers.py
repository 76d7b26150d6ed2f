"""
要素ID割り当てモジュール。

ページ内の要素に階層的で安定したIDを割り当てます。

    page{N}_{type}{k}            ブロック（例: page3_p2, page3_h1）
    page{N}_{type}{k}_s{j}       文
    page{N}_{type}{k}_s{j}_w{m}  単語

割り当て器はページ生成の呼び出しごとに新しく作成し、
ページ間・ジョブ間で状態を共有しない。
"""
import re
from typing import Iterable


_BLOCK_ID_RE = re.compile(r"^page(\d+)_([A-Za-z]+)(\d+)(?:_s(\d+)(?:_w(\d+))?)?$")


class IdentifierAssigner:
    """
    1ページ分の要素IDを発行するクラス。

    Parameters
    ----------
    page_number : int
        IDのプレフィックスに使うページ番号。

    Notes
    -----
    同じページ内で同じIDを2度発行しない。既存のマークアップを再生成する場合は
    seed() で既存IDを読み込ませると、カウンタは既存の最大値の次から続く。
    """

    def __init__(self, page_number: int):
        self.page_number = page_number
        self.prefix = f"page{page_number}_"
        self._counters: dict[str, int] = {}
        self._issued: set[str] = set()

    @property
    def issued(self) -> frozenset[str]:
        """発行済み（seed 済みを含む）のID集合。"""
        return frozenset(self._issued)

    def _bump(self, key: str, value: int) -> None:
        if value > self._counters.get(key, 0):
            self._counters[key] = value

    def seed(self, existing_ids: Iterable[str]) -> None:
        """
        既存IDを読み込み、カウンタをその最大値まで進める。

        このページのプレフィックスを持たないIDは重複回避の対象としてのみ記録する。
        同じ集合で何度呼んでも結果は変わらない。
        """
        for element_id in existing_ids:
            self._issued.add(element_id)
            m = _BLOCK_ID_RE.match(element_id)
            if not m or int(m.group(1)) != self.page_number:
                continue
            type_token, k, s, w = m.group(2), int(m.group(3)), m.group(4), m.group(5)
            self._bump(type_token, k)
            block_id = f"{self.prefix}{type_token}{k}"
            if s is not None:
                self._bump(block_id, int(s))
                if w is not None:
                    self._bump(f"{block_id}_s{s}", int(w))

    def _next(self, key: str, make_id) -> str:
        n = self._counters.get(key, 0)
        while True:
            n += 1
            candidate = make_id(n)
            if candidate not in self._issued:
                break
        self._counters[key] = n
        self._issued.add(candidate)
        return candidate

    def assign(self, type_token: str) -> str:
        """ブロック要素のIDを発行する（例: assign("p") -> "page1_p1"）。"""
        return self._next(type_token, lambda n: f"{self.prefix}{type_token}{n}")

    def assign_sentence(self, parent_id: str) -> str:
        """ブロック内の文のIDを発行する。"""
        return self._next(parent_id, lambda n: f"{parent_id}_s{n}")

    def assign_word(self, sentence_id: str) -> str:
        """文内の単語のIDを発行する。"""
        return self._next(sentence_id, lambda n: f"{sentence_id}_w{n}")

    def reserve(self, element_id: str) -> str:
        """
        固定のID（緊急ブロックなど）を登録して返す。

        既に発行済みの場合は末尾に連番を付けて一意にする。
        """
        candidate = element_id
        n = 1
        while candidate in self._issued:
            n += 1
            candidate = f"{element_id}{n}"
        self._issued.add(candidate)
        return candidate
