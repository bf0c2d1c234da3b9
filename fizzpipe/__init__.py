"""
fizzpipe - a three-stage streaming pipeline over bounded byte channels.

A generator emits an unbounded stream of 9-byte FizzBuzz records, an
incremental codec compresses the stream, and a sink appends the result to a
file. The stages run concurrently and are coupled only through bounded
channels with high/low watermark flow control, so a fast generator can never
outrun a slow disk by more than the configured buffer sizes.

The package includes:

- Bounded byte channels with two-phase reads (read, then commit a prefix)
- Brotli, zlib, and Zstandard incremental codecs behind one interface
- An orchestrator that reports the first failing stage
- Structured logging, run profiling, and a small CLI
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from fizzpipe.codecs import (
    AbstractCodec,
    CodecResult,
    IncrementalCodec,
    available_codecs,
    create_codec,
)
from fizzpipe.config import Settings, get_settings
from fizzpipe.domain import Record, RecordFlag, classify, decode_records, encode_record
from fizzpipe.errors import (
    ChannelAborted,
    ChannelContractViolation,
    CodecError,
    CodecOverflow,
    PipelineError,
    StageFailure,
    StorageWriteFailure,
)
from fizzpipe.infrastructure import BoundedByteChannel, FileByteStore, ReadResult
from fizzpipe.orchestrator import (
    Pipeline,
    PipelineReport,
    RunConfig,
    build_pipeline,
    run_pipeline,
    run_pipeline_sync,
)
from fizzpipe.stages import RecordGenerator, SinkStage, TransformStage
from fizzpipe.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "Record",
    "RecordFlag",
    "classify",
    "decode_records",
    "encode_record",
    # Channels and storage
    "BoundedByteChannel",
    "ReadResult",
    "FileByteStore",
    # Codecs
    "AbstractCodec",
    "CodecResult",
    "IncrementalCodec",
    "available_codecs",
    "create_codec",
    # Stages
    "RecordGenerator",
    "TransformStage",
    "SinkStage",
    # Orchestration
    "Pipeline",
    "PipelineReport",
    "RunConfig",
    "build_pipeline",
    "run_pipeline",
    "run_pipeline_sync",
    # Errors
    "PipelineError",
    "ChannelContractViolation",
    "ChannelAborted",
    "CodecError",
    "CodecOverflow",
    "StorageWriteFailure",
    "StageFailure",
    # Logging
    "configure_logging",
    "get_logger",
]
