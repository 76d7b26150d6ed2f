"""
EPUBパッケージングモジュール。

EPUB3のファイルツリーをメモリ上に組み立て、ZIPパッケージへ書き出します。
ページ処理はワーカースレッドから並行して書き込むため、
書き込みはロックで保護された1つのライターを経由します。
"""
import io
import threading
import zipfile
from pathlib import Path

from core import logger
from core.config import MIMETYPE
from core.exceptions import PackagingError
from core.messages import msg


MIMETYPE_PATH = "mimetype"
CONTAINER_PATH = "META-INF/container.xml"


class ArchivePackager:
    """
    メモリ上のEPUBファイルツリー。

    Notes
    -----
    EPUB仕様では以下の順序でファイルを格納する必要があります:
    1. mimetype（無圧縮、先頭）
    2. META-INF/container.xml
    3. その他（圧縮、追加順）
    """

    def __init__(self):
        self._entries: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def add(self, archive_path: str, data: bytes | str) -> None:
        """
        ファイルを追加する。

        Raises
        ------
        PackagingError
            同じパスのファイルが既にある場合、または mimetype を追加しようとした場合。
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        with self._lock:
            if archive_path == MIMETYPE_PATH:
                raise PackagingError(msg("archive_reserved_path", path=archive_path))
            if archive_path in self._entries:
                raise PackagingError(msg("archive_duplicate_path", path=archive_path))
            self._entries[archive_path] = data

    @property
    def names(self) -> list[str]:
        """格納順のファイルパス一覧。"""
        with self._lock:
            others = [name for name in self._entries if name != CONTAINER_PATH]
            head = [MIMETYPE_PATH]
            if CONTAINER_PATH in self._entries:
                head.append(CONTAINER_PATH)
            return head + others

    def to_bytes(self) -> bytes:
        """
        ZIPパッケージのバイト列を生成する。

        Raises
        ------
        PackagingError
            container.xml がない場合。
        """
        with self._lock:
            if CONTAINER_PATH not in self._entries:
                raise PackagingError(msg("archive_missing_container"))
            entries = dict(self._entries)

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as z:
            # mimetypeは無圧縮で先頭に
            z.writestr(MIMETYPE_PATH, MIMETYPE, compress_type=zipfile.ZIP_STORED)
            z.writestr(CONTAINER_PATH, entries.pop(CONTAINER_PATH), compress_type=zipfile.ZIP_DEFLATED)
            for name, data in entries.items():
                z.writestr(name, data, compress_type=zipfile.ZIP_DEFLATED)
        return buffer.getvalue()

    def write(self, output_epub: str | Path) -> Path:
        """ZIPパッケージをファイルに書き出す。"""
        output_path = Path(output_epub)
        data = self.to_bytes()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "wb") as f:
            f.write(data)
        logger.debug(msg("archive_written", path=output_path, count=len(self.names)))
        return output_path

    def write_tree(self, dest_dir: str | Path) -> Path:
        """
        展開した状態のファイルツリーをフォルダに書き出す（中間ファイルの確認用）。

        Parameters
        ----------
        dest_dir : str | Path
            出力先フォルダ。存在しなければ作成します。
        """
        dest = Path(dest_dir)
        with self._lock:
            entries = dict(self._entries)
        entries[MIMETYPE_PATH] = MIMETYPE.encode("utf-8")
        for name, data in entries.items():
            target = dest / name
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as f:
                f.write(data)
        return dest
