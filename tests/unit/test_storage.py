from __future__ import annotations

import sys
from pathlib import Path

import pytest

from fizzpipe.errors import StorageWriteFailure
from fizzpipe.infrastructure.storage import ByteStore, FileByteStore


def test_file_store_appends_in_order_and_creates_parents(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "out.bin"
    store = FileByteStore(path, buffer_size=4)
    assert isinstance(store, ByteStore)

    with store:
        store.append(b"abc")
        store.append(b"defgh")
        assert store.is_open

    assert not store.is_open
    assert store.bytes_written == 8
    assert path.read_bytes() == b"abcdefgh"


def test_file_store_truncates_existing_file(tmp_path: Path) -> None:
    path = tmp_path / "out.bin"
    path.write_bytes(b"stale contents from an earlier run")

    with FileByteStore(path) as store:
        store.append(b"new")

    assert path.read_bytes() == b"new"


def test_file_store_close_is_idempotent(tmp_path: Path) -> None:
    store = FileByteStore(tmp_path / "out.bin")
    store.open()
    store.close()
    store.close()
    assert not store.is_open


def test_file_store_append_before_open_fails(tmp_path: Path) -> None:
    store = FileByteStore(tmp_path / "out.bin")
    with pytest.raises(StorageWriteFailure, match="out.bin"):
        store.append(b"x")


def test_file_store_open_failure_is_storage_write_failure(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_bytes(b"")

    with pytest.raises(StorageWriteFailure) as excinfo:
        FileByteStore(blocker / "out.bin").open()
    assert isinstance(excinfo.value.cause, OSError)


@pytest.mark.skipif(sys.platform == "win32", reason="advisory locks are POSIX only")
def test_second_store_on_same_path_is_refused_while_first_is_open(tmp_path: Path) -> None:
    path = tmp_path / "out.bin"
    first = FileByteStore(path)
    first.open()
    first.append(b"owned")

    second = FileByteStore(path)
    try:
        with pytest.raises(StorageWriteFailure):
            second.open()
        assert not second.is_open
    finally:
        first.close()

    # The refused open must not have truncated the owner's data.
    assert path.read_bytes() == b"owned"

    with FileByteStore(path) as third:
        third.append(b"next")
    assert path.read_bytes() == b"next"
