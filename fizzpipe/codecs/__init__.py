"""
Codecs package for fizzpipe.

Re-exports the incremental codec interface, the concrete codecs, and the
registry so downstream code can import from `fizzpipe.codecs` directly.
"""

from fizzpipe.codecs.abstract import (
    DEFAULT_MAX_INPUT_SIZE,
    AbstractCodec,
    CodecResult,
    IncrementalCodec,
)
from fizzpipe.codecs.brotli_codec import BrotliCodec
from fizzpipe.codecs.registry import (
    available_codecs,
    codec_for_suffix,
    create_codec,
    decompress,
)
from fizzpipe.codecs.zlib_codec import ZlibCodec
from fizzpipe.codecs.zstd_codec import ZstdCodec

__all__ = [
    # Abstracts
    "DEFAULT_MAX_INPUT_SIZE",
    "AbstractCodec",
    "CodecResult",
    "IncrementalCodec",
    # Concrete codecs
    "BrotliCodec",
    "ZlibCodec",
    "ZstdCodec",
    # Registry
    "available_codecs",
    "codec_for_suffix",
    "create_codec",
    "decompress",
]
