"""
ロギングユーティリティモジュール。

アプリケーション全体で一貫したログ出力を提供します。
ページ単位の処理はワーカースレッドから呼ばれるため、
出力はすべて標準の logging ハンドラ経由で行います。
"""
import io
import logging
import sys
from enum import IntEnum
from pathlib import Path

from core.messages import msg


class LogLevel(IntEnum):
    """ログレベル定義。"""
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR


# Windows cp932 環境でのUnicodeEncodeError対策
if sys.stdout.encoding and sys.stdout.encoding.lower() != 'utf-8' and hasattr(sys.stdout, "buffer"):
    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8', errors='replace')

# アプリケーション用のロガーを作成
_logger = logging.getLogger("PageSync")
_handler = logging.StreamHandler(sys.stdout)
_handler.setFormatter(logging.Formatter("%(message)s"))
_logger.addHandler(_handler)
_logger.setLevel(logging.INFO)


def set_log_level(level: LogLevel) -> None:
    """ログレベルを設定する。"""
    _logger.setLevel(level)


def add_file_handler(log_path: str | Path) -> logging.Handler:
    """
    ジョブのログをファイルにも書き出すハンドラを追加する。

    Parameters
    ----------
    log_path : str | Path
        ログファイルのパス。

    Returns
    -------
    logging.Handler
        追加したハンドラ（ジョブ終了時に remove_handler へ渡す）。
    """
    handler = logging.FileHandler(str(log_path), encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(threadName)s] %(message)s"))
    _logger.addHandler(handler)
    return handler


def remove_handler(handler: logging.Handler) -> None:
    """add_file_handler で追加したハンドラを取り外して閉じる。"""
    _logger.removeHandler(handler)
    handler.close()


def debug(message: str) -> None:
    """デバッグメッセージを出力する。"""
    _logger.debug(message)


def info(message: str) -> None:
    """情報メッセージを出力する。"""
    _logger.info(message)


def warning(message: str) -> None:
    """警告メッセージを出力する。"""
    _logger.warning(msg("log_warning", message=message))


def error(message: str) -> None:
    """エラーメッセージを出力する。"""
    _logger.error(f"❌ {message}")


def success(message: str) -> None:
    """成功メッセージを出力する。"""
    _logger.info(f"✅ {msg('log_success', message=message)}")


def page_warning(page_number: int, message: str) -> None:
    """ページ番号付きの警告を出力する（回復可能な条件の記録用）。"""
    _logger.warning(msg("log_page_warning", page=page_number, message=message))


def page_debug(page_number: int, message: str) -> None:
    """ページ番号付きのデバッグメッセージを出力する。"""
    _logger.debug(msg("log_page", page=page_number, message=message))


def section(title: str) -> None:
    """セクション見出しを出力する。"""
    _logger.info("-" * 30)
    _logger.info(f"★{title}")


def separator(char: str = "=", length: int = 60) -> None:
    """区切り線を出力する。"""
    _logger.info(char * length)


def progress(current: int, total: int, message: str = "") -> None:
    """進捗状況を出力する（改行なし）。メインスレッドからのみ呼ぶ。"""
    print(f"  {msg('log_progress', message=message, current=current, total=total)}", end='\r', flush=True)


def progress_done() -> None:
    """進捗表示の終了（改行を出力）。"""
    print()
