"""
Infrastructure package for fizzpipe.

Holds the two resources stages share with the outside world: bounded byte
channels between stages and the append-only store at the end of the line.
Keep this layer focused on buffering and I/O, decoupled from stage logic.
"""

from fizzpipe.infrastructure.channel import BoundedByteChannel, ChannelStats, ReadResult
from fizzpipe.infrastructure.storage import ByteStore, FileByteStore

__all__ = [
    "BoundedByteChannel",
    "ChannelStats",
    "ReadResult",
    "ByteStore",
    "FileByteStore",
]
