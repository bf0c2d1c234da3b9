"""
Codec registry: maps configured codec names to factories and decompressors.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from fizzpipe.codecs.abstract import IncrementalCodec
from fizzpipe.codecs.brotli_codec import BrotliCodec, brotli_decompress
from fizzpipe.codecs.zlib_codec import ZlibCodec, zlib_decompress
from fizzpipe.codecs.zstd_codec import ZstdCodec, zstd_decompress
from fizzpipe.config import Settings, get_settings


def _codec_factories(settings: Settings) -> Dict[str, Callable[[], IncrementalCodec]]:
    """Registry of available codecs, parameterized from settings."""
    return {
        "brotli": lambda: BrotliCodec(
            quality=settings.brotli_quality, lgwin=settings.brotli_window
        ),
        "zlib": lambda: ZlibCodec(level=settings.zlib_level),
        "zstd": lambda: ZstdCodec(level=settings.zstd_level),
    }


_DECOMPRESSORS: Dict[str, Callable[[bytes], bytes]] = {
    "brotli": brotli_decompress,
    "zlib": zlib_decompress,
    "zstd": zstd_decompress,
}

# Conventional file suffixes, used to guess the codec of an existing file.
_SUFFIXES: Dict[str, str] = {
    ".brotli": "brotli",
    ".br": "brotli",
    ".zlib": "zlib",
    ".zz": "zlib",
    ".zst": "zstd",
    ".zstd": "zstd",
}


def available_codecs() -> List[str]:
    """List available codec names."""
    return sorted(_DECOMPRESSORS.keys())


def create_codec(name: str, settings: Optional[Settings] = None) -> IncrementalCodec:
    """Build a fresh codec instance; each TransformStage needs its own."""
    factories = _codec_factories(settings or get_settings())
    if name not in factories:
        raise ValueError(f"Unknown codec '{name}'. Available: {', '.join(sorted(factories))}")
    return factories[name]()


def decompress(name: str, data: bytes) -> bytes:
    """Decode a complete stream produced by codec `name`."""
    if name not in _DECOMPRESSORS:
        raise ValueError(f"Unknown codec '{name}'. Available: {', '.join(available_codecs())}")
    return _DECOMPRESSORS[name](data)


def codec_for_suffix(suffix: str) -> Optional[str]:
    """Guess a codec from a file suffix such as '.brotli'; None if unknown."""
    return _SUFFIXES.get(suffix.lower())


__all__ = ["available_codecs", "create_codec", "decompress", "codec_for_suffix"]
