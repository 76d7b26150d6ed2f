"""
テキスト共通処理モジュール。

ブロックテキストのクリーニング、文・単語への分割、
句読点種別の判定など、レイアウト生成とタイミング同期の両方で
使用されるテキスト処理を提供します。
"""
import re
import unicodedata

from core.config import (
    SENTENCE_TERMINALS,
    EMPHATIC_TERMINALS,
    CLAUSE_PUNCTUATION,
)


# =============================================================================
# テキスト正規化クラス
# =============================================================================

class TextNormalizer:
    """テキスト正規化ユーティリティクラス。

    抽出結果に混入する制御文字やエンコーディング由来のゴミを除去し、
    読み上げ・表示用のテキストを揃えます。
    """

    # 抽出時に混入しやすい文字化け・特殊空白の置換マップ
    ARTIFACT_MAP = {
        "\u00a0": " ",    # ノーブレークスペース
        "\u200b": "",     # ゼロ幅スペース
        "\ufeff": "",     # BOM
        "\u00ad": "",     # ソフトハイフン
        "\ufffd": "",     # 置換文字
    }

    # リガチャ → 通常文字
    LIGATURE_MAP = {
        "ﬁ": "fi", "ﬂ": "fl", "ﬀ": "ff", "ﬃ": "ffi", "ﬄ": "ffl",
    }

    @classmethod
    def strip_artifacts(cls, text: str) -> str:
        """文字化け・特殊空白・リガチャを正規化する。"""
        for src, dst in cls.ARTIFACT_MAP.items():
            text = text.replace(src, dst)
        for src, dst in cls.LIGATURE_MAP.items():
            text = text.replace(src, dst)
        return text

    @staticmethod
    def strip_control_chars(text: str) -> str:
        """改行・タブ以外の制御文字を除去する。"""
        return "".join(
            ch for ch in text
            if ch in "\n\t" or unicodedata.category(ch)[0] != "C"
        )

    @staticmethod
    def collapse_whitespace(text: str) -> str:
        """連続する空白を1つのスペースにまとめ、前後の空白を除去する。"""
        return re.sub(r"\s+", " ", text).strip()

    @classmethod
    def normalize_all(cls, text: str) -> str:
        """すべての正規化を適用する。"""
        result = cls.strip_artifacts(text)
        result = cls.strip_control_chars(result)
        return cls.collapse_whitespace(result)


def clean_block_text(text: str | None) -> str:
    """
    テキストブロックの本文を出力用に整える。

    Parameters
    ----------
    text : str | None
        抽出されたブロックのテキスト。

    Returns
    -------
    str
        正規化済みテキスト。None や空白のみの場合は空文字列。
    """
    if not text:
        return ""
    return TextNormalizer.normalize_all(text)


# =============================================================================
# 分割
# =============================================================================

# 文末記号（連続する閉じ括弧・引用符を含めて1文とする）
_SENTENCE_RE = re.compile(
    rf"[^{re.escape(SENTENCE_TERMINALS)}]*[{re.escape(SENTENCE_TERMINALS)}]+[\"'”’)）」』]*"
    rf"|[^{re.escape(SENTENCE_TERMINALS)}]+"
)


def split_sentences(text: str) -> list[str]:
    """
    テキストを文単位に分割する。

    Parameters
    ----------
    text : str
        正規化済みテキスト。

    Returns
    -------
    list[str]
        空でない文のリスト。文末記号は各文の末尾に残る。
    """
    sentences = [m.group(0).strip() for m in _SENTENCE_RE.finditer(text)]
    return [s for s in sentences if s]


def split_words(sentence: str) -> list[str]:
    """
    文を単語単位に分割する。

    空白で区切れない言語（日本語など）では文全体が1単語になる。
    """
    return sentence.split()


def count_words(text: str) -> int:
    """単語数を返す。"""
    return len(text.split())


def count_chars(text: str) -> int:
    """空白を除いた文字数を返す。"""
    return len(re.sub(r"\s", "", text))


# =============================================================================
# 句読点判定
# =============================================================================

_TRAILING_CLOSERS = "\"'”’)）」』]"


def trailing_punctuation(text: str) -> str:
    """
    末尾の句読点を1文字返す。句読点で終わらない場合は空文字列。

    閉じ括弧・引用符は読み飛ばして判定する。
    """
    stripped = text.rstrip().rstrip(_TRAILING_CLOSERS)
    if not stripped:
        return ""
    last = stripped[-1]
    if last in SENTENCE_TERMINALS or last in CLAUSE_PUNCTUATION:
        return last
    return ""


def is_sentence_terminal(ch: str) -> bool:
    """文末記号かどうか。"""
    return bool(ch) and ch in SENTENCE_TERMINALS


def is_emphatic_terminal(ch: str) -> bool:
    """感嘆符・疑問符かどうか。"""
    return bool(ch) and ch in EMPHATIC_TERMINALS


def is_clause_punctuation(ch: str) -> bool:
    """読点・節区切りかどうか。"""
    return bool(ch) and ch in CLAUSE_PUNCTUATION
