"""
Brotli codec: the default for fizzpipe output.

Quality 1 with a 16 MiB window (lgwin=24) trades ratio for speed, which keeps
the compressor ahead of the generator on typical hardware. The record stream
is extremely repetitive, so even quality 1 compresses it heavily.
"""

from __future__ import annotations

from typing import Optional

import brotli

from fizzpipe.codecs.abstract import AbstractCodec
from fizzpipe.errors import CodecError


class BrotliCodec(AbstractCodec):
    """
    Incremental Brotli encoder built on `brotli.Compressor`.
    """

    name: str = "brotli"

    def __init__(self, quality: int = 1, lgwin: int = 24) -> None:
        super().__init__()
        self.quality = quality
        self.lgwin = lgwin
        self._engine: Optional[brotli.Compressor] = brotli.Compressor(
            mode=brotli.MODE_GENERIC, quality=quality, lgwin=lgwin
        )

    def _process(self, chunk: bytes) -> bytes:
        return self._engine.process(chunk)

    def _finish(self) -> bytes:
        return self._engine.finish()

    def _release(self) -> None:
        self._engine = None


def brotli_decompress(data: bytes) -> bytes:
    try:
        return brotli.decompress(data)
    except brotli.error as exc:
        raise CodecError(f"invalid brotli stream: {exc}") from exc


__all__ = ["BrotliCodec", "brotli_decompress"]
