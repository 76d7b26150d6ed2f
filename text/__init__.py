"""
テキスト処理モジュール。

テキスト正規化、文・単語分割、句読点判定を提供する。
"""
from text.common import (
    TextNormalizer,
    clean_block_text,
    split_sentences,
    split_words,
    count_words,
    count_chars,
    trailing_punctuation,
    is_sentence_terminal,
    is_emphatic_terminal,
    is_clause_punctuation,
)

__all__ = [
    "TextNormalizer",
    "clean_block_text",
    "split_sentences",
    "split_words",
    "count_words",
    "count_chars",
    "trailing_punctuation",
    "is_sentence_terminal",
    "is_emphatic_terminal",
    "is_clause_punctuation",
]
