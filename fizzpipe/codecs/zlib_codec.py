"""
Zlib codec, for environments where Brotli output is not convenient to read.
"""

from __future__ import annotations

import zlib
from typing import Any

from fizzpipe.codecs.abstract import AbstractCodec
from fizzpipe.errors import CodecError


class ZlibCodec(AbstractCodec):
    """Incremental zlib (RFC 1950) encoder built on `zlib.compressobj`."""

    name: str = "zlib"

    def __init__(self, level: int = 6) -> None:
        super().__init__()
        self.level = level
        self._engine: Any = zlib.compressobj(level)

    def _process(self, chunk: bytes) -> bytes:
        return self._engine.compress(chunk)

    def _finish(self) -> bytes:
        return self._engine.flush(zlib.Z_FINISH)

    def _release(self) -> None:
        self._engine = None


def zlib_decompress(data: bytes) -> bytes:
    try:
        return zlib.decompress(data)
    except zlib.error as exc:
        raise CodecError(f"invalid zlib stream: {exc}") from exc


__all__ = ["ZlibCodec", "zlib_decompress"]
