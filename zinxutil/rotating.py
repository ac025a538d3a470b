"""A log file writer that rotates by day and by size, zipping old files."""

from __future__ import annotations

import logging
import os
import sys
import threading
import zipfile
from datetime import datetime, timedelta
from typing import BinaryIO

_log = logging.getLogger(__name__)

SIZE_MIB = 1024 * 1024
DEFAULT_MAX_AGE = 31  # days
DEFAULT_MAX_SIZE = 64 * SIZE_MIB

_NAME_FORMAT = ".%Y-%m-%d-%H%M%S.%f"
_DAY_FORMAT = "%Y-%m-%d"
_BUFFER_SIZE = 4096
_FLUSH_EVERY = 5.0


class RotatingWriter:
    """Buffered file writer that archives the current file on a new day or when full."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = os.fspath(path)
        self._dir = os.path.dirname(self.path) or "."
        ext = os.path.splitext(self.path)[1]
        base = os.path.basename(self.path)
        self._name = base[: len(base) - len(ext)] if ext else base
        self._suffix = ext or ".log"
        self._zip_suffix = ".zip"
        self.max_age = DEFAULT_MAX_AGE
        self.console = False
        self._max_size = DEFAULT_MAX_SIZE
        self._size = 0
        self._created = datetime.now()
        self._file: BinaryIO | None = None
        self._buffer = bytearray()
        self._lock = threading.Lock()
        self._flusher: threading.Thread | None = None
        self._stop_flushing = threading.Event()
        os.makedirs(self._dir, exist_ok=True)

    @property
    def max_size(self) -> int:
        return self._max_size

    @max_size.setter
    def max_size(self, value: int) -> None:
        if value < 1:
            return
        with self._lock:
            self._max_size = value

    @staticmethod
    def _echo(data: bytes) -> None:
        sys.stderr.write(data.decode("utf-8", "replace"))
        sys.stderr.flush()

    def write(self, data: bytes | bytearray | str) -> int:
        """Write ``data``, rotating first if the day changed or the size limit is hit."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        data = bytes(data)
        with self._lock:
            if self.console:
                self._echo(data)
            if self._file is None:
                try:
                    self._rotate()
                except OSError:
                    self._echo(data)
                    raise

            if self._created.strftime(_DAY_FORMAT) != datetime.now().strftime(_DAY_FORMAT):
                threading.Thread(target=self._delete_expired, daemon=True).start()
                self._rotate()

            if self._size + len(data) + len(self._buffer) >= self._max_size:
                self._rotate()

            self._buffer += data
            if len(self._buffer) >= _BUFFER_SIZE:
                self._drain()
            self._size += len(data)
            return len(data)

    def _drain(self) -> None:
        if self._file is None or not self._buffer:
            return
        self._file.write(self._buffer)
        self._buffer.clear()
        self._file.flush()

    def _time_to_name(self, moment: datetime) -> str:
        return moment.strftime(_NAME_FORMAT)

    def _name_to_time(self, name: str) -> datetime:
        stamp = name.removeprefix(self._name).removesuffix(self._zip_suffix)
        return datetime.strptime(stamp, _NAME_FORMAT)

    def _rotate(self) -> None:
        now = datetime.now()
        if self._file is not None:
            self._drain()
            os.fsync(self._file.fileno())
            self._file.close()
            self._file = None
            backup = self._name + self._time_to_name(self._created)
            backup_log = os.path.join(self._dir, backup + self._suffix)
            try:
                os.rename(self.path, backup_log)
            except OSError:
                pass
            else:
                try:
                    zip_to_file(
                        os.path.join(self._dir, backup + self._zip_suffix), backup_log
                    )
                except OSError as err:
                    _log.error("%s", err)
                else:
                    os.remove(backup_log)
            self._size = 0

        try:
            info = os.stat(self.path)
        except OSError:
            self._created = now
        else:
            self._size = info.st_size
            self._created = datetime.fromtimestamp(info.st_mtime)
        self._file = open(self.path, "ab")
        self._start_flusher()

    def _start_flusher(self) -> None:
        if self._flusher is not None and self._flusher.is_alive():
            return
        self._stop_flushing = threading.Event()
        stop = self._stop_flushing

        def loop() -> None:
            while not stop.wait(_FLUSH_EVERY):
                self.flush()

        self._flusher = threading.Thread(target=loop, daemon=True)
        self._flusher.start()

    def _delete_expired(self) -> None:
        if self.max_age <= 0:
            return
        cutoff = datetime.now() - timedelta(days=self.max_age)
        try:
            entries = list(os.scandir(self._dir))
        except OSError:
            return
        for entry in entries:
            if entry.is_dir():
                continue
            try:
                stamp = self._name_to_time(entry.name)
            except ValueError:
                continue
            if stamp < cutoff:
                try:
                    os.remove(entry.path)
                except OSError:
                    pass

    def flush(self) -> None:
        """Write buffered data to the file."""
        with self._lock:
            self._drain()

    def close(self) -> None:
        """Flush and close the file; a later write reopens it."""
        self.flush()
        with self._lock:
            self._stop_flushing.set()
            flusher, self._flusher = self._flusher, None
            if self._file is not None:
                os.fsync(self._file.fileno())
                self._file.close()
                self._file = None
        if flusher is not None and flusher is not threading.current_thread():
            flusher.join()

    def __enter__(self) -> RotatingWriter:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def zip_to_file(dst: str | os.PathLike[str], src: str | os.PathLike[str]) -> None:
    """Compress the file or directory ``src`` into a new zip file at ``dst``."""
    with open(os.path.normpath(os.fspath(dst)), "wb") as out:
        zip_path(out, src)


def _archive_name(path: str, base: str) -> str:
    index = path.find(base)
    if index > -1:
        path = path[index:]
    return path.strip(os.sep).replace("\\", "/")


def zip_path(dst: BinaryIO, src: str | os.PathLike[str]) -> None:
    """Write a deflate-compressed zip of the file or directory ``src`` to ``dst``."""
    src = os.path.normpath(os.fspath(src))
    base = os.path.basename(src)
    os.stat(src)

    with zipfile.ZipFile(dst, "w", compression=zipfile.ZIP_DEFLATED) as archive:

        def walk(path: str) -> None:
            archive.write(path, _archive_name(path, base), zipfile.ZIP_DEFLATED)
            if os.path.isdir(path) and not os.path.islink(path):
                for child in sorted(os.listdir(path)):
                    walk(os.path.join(path, child))

        walk(src)