"""
Append-only persistent byte stores.

The sink only needs three things from storage: open fresh, append, close.
`FileByteStore` implements that over a local file. It truncates on open,
never seeks, and converts OS-level failures into `StorageWriteFailure` so the
orchestrator can report which stage broke and why.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import BinaryIO, Optional, Protocol, runtime_checkable

from fizzpipe.errors import StorageWriteFailure
from fizzpipe.utils.logging import get_logger

if sys.platform != "win32":
    import fcntl

log = get_logger(__name__)


@runtime_checkable
class ByteStore(Protocol):
    """
    Interface for an append-only byte sink.

    Implementations must write exactly the bytes they are given, in order,
    and must tolerate `close()` being called more than once.
    """

    def open(self) -> None: ...

    def append(self, data: bytes) -> None: ...

    def close(self) -> None: ...

    def __enter__(self) -> "ByteStore": ...

    def __exit__(self, exc_type, exc, tb) -> None: ...


class FileByteStore:
    """
    A local file owned by a single sink, opened for truncating, append-only writes.

    On POSIX the file is held under an exclusive advisory `flock` while open;
    a second store opening the same path fails with `StorageWriteFailure`.
    Windows takes no lock.

    Parameters
    ----------
    path : Path | str
        Destination file. Parent directories are created on open.
    buffer_size : int
        Size of the underlying write buffer in bytes.
    """

    def __init__(self, path: Path | str, buffer_size: int = 1024) -> None:
        self.path = Path(path)
        self.buffer_size = buffer_size
        self.bytes_written = 0
        self._fh: Optional[BinaryIO] = None

    @property
    def is_open(self) -> bool:
        return self._fh is not None

    def open(self) -> None:
        if self._fh is not None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Append mode leaves the file intact until the lock is held.
            fh = open(self.path, "ab", buffering=self.buffer_size)
        except OSError as exc:
            raise StorageWriteFailure(self.path, exc) from exc
        try:
            _lock_exclusive(fh)
            fh.truncate(0)
        except OSError as exc:
            fh.close()
            raise StorageWriteFailure(self.path, exc) from exc
        self._fh = fh
        self.bytes_written = 0
        log.debug("Store opened", extra={"path": str(self.path)})

    def append(self, data: bytes) -> None:
        if self._fh is None:
            raise StorageWriteFailure(self.path, RuntimeError("store is not open"))
        try:
            self._fh.write(data)
        except OSError as exc:
            raise StorageWriteFailure(self.path, exc) from exc
        self.bytes_written += len(data)

    def close(self) -> None:
        if self._fh is None:
            return
        fh, self._fh = self._fh, None
        try:
            fh.close()
        except OSError as exc:
            # close() flushes the write buffer, so a full disk can surface here.
            raise StorageWriteFailure(self.path, exc) from exc
        log.debug("Store closed", extra={"path": str(self.path), "bytes": self.bytes_written})

    def __enter__(self) -> "FileByteStore":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb
        self.close()


def _lock_exclusive(fh: BinaryIO) -> None:
    """Take a non-blocking advisory lock on `fh`; released when the file is closed."""
    if sys.platform == "win32":
        return
    fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)


__all__ = ["ByteStore", "FileByteStore"]
