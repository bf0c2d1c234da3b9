"""
Zstandard codec.

Uses `ZstdCompressor.compressobj()`, which accepts arbitrary chunks and writes
a single frame terminated by `flush()`. The frame carries no content size, so
decompression goes through a streaming decompressor.
"""

from __future__ import annotations

from typing import Any

import zstandard as zstd

from fizzpipe.codecs.abstract import AbstractCodec
from fizzpipe.errors import CodecError


class ZstdCodec(AbstractCodec):
    """Incremental Zstandard encoder."""

    name: str = "zstd"

    def __init__(self, level: int = 3) -> None:
        super().__init__()
        self.level = level
        self._engine: Any = zstd.ZstdCompressor(level=level).compressobj()

    def _process(self, chunk: bytes) -> bytes:
        return self._engine.compress(chunk)

    def _finish(self) -> bytes:
        return self._engine.flush(zstd.COMPRESSOBJ_FLUSH_FINISH)

    def _release(self) -> None:
        self._engine = None


def zstd_decompress(data: bytes) -> bytes:
    try:
        return zstd.ZstdDecompressor().decompressobj().decompress(data)
    except zstd.ZstdError as exc:
        raise CodecError(f"invalid zstd stream: {exc}") from exc


__all__ = ["ZstdCodec", "zstd_decompress"]
