"""
TextGrid処理モジュール。

強制アライメント結果（TextGrid）からの単語タイミング読み込みを提供する。
"""
from audio.textgrid.utils import extract_textgrid_intervals

__all__ = [
    "extract_textgrid_intervals",
]
