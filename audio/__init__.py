"""
音声同期モジュール。

同期レコードからのSMIL生成と、TextGrid単語タイミングの読み込みを提供する。
"""
