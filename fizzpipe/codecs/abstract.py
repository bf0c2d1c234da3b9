"""
Incremental codec interfaces for fizzpipe.

A codec turns raw bytes into encoded bytes one chunk at a time, keeping its
compression state between calls. The contract is deliberately narrow:

    result = codec.encode(chunk, is_final)   # -> CodecResult(bytes_consumed, output)
    ...
    codec.release()

- `bytes_consumed` may be smaller than `len(chunk)`; the caller re-offers the
  remainder on the next call.
- `output` may be empty on any call.
- The call with `is_final=True` that consumes the whole chunk flushes all
  residual state; the codec is finished afterwards.
- A chunk longer than `max_input_size` is a `CodecOverflow`.

Concrete codecs should subclass `AbstractCodec` and implement `_process` and
`_finish`. A codec instance is owned by exactly one TransformStage.
"""

from __future__ import annotations

import abc
from typing import NamedTuple, Protocol, runtime_checkable

from fizzpipe.errors import CodecError, CodecOverflow

# Largest chunk a single encode call may address.
DEFAULT_MAX_INPUT_SIZE = 2**31 - 1


class CodecResult(NamedTuple):
    bytes_consumed: int
    output: bytes


@runtime_checkable
class IncrementalCodec(Protocol):
    """
    Common interface all codecs must implement.

    Attributes
    ----------
    name : str
        Registry name, also used to pick the matching decompressor.
    max_input_size : int
        Largest chunk accepted by one `encode` call.
    """

    name: str
    max_input_size: int

    def encode(self, chunk: bytes, is_final: bool) -> CodecResult:
        """Encode (a prefix of) `chunk`; flush everything if `is_final`."""
        ...

    def release(self) -> None:
        """Drop the codec's internal state. Idempotent."""
        ...


class AbstractCodec(abc.ABC):
    """
    ABC helper for codecs that always consume the whole chunk.

    Tracks the finished/released lifecycle so subclasses only wrap their
    engine's process/finish calls.
    """

    name: str
    max_input_size: int = DEFAULT_MAX_INPUT_SIZE

    def __init__(self) -> None:
        self._finished = False
        self._released = False

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def released(self) -> bool:
        return self._released

    def encode(self, chunk: bytes, is_final: bool) -> CodecResult:
        if self._released:
            raise CodecError(f"codec '{self.name}' used after release")
        if self._finished:
            raise CodecError(f"codec '{self.name}' used after its final chunk")
        if len(chunk) > self.max_input_size:
            raise CodecOverflow(len(chunk), self.max_input_size)

        output = self._process(chunk) if chunk else b""
        if is_final:
            output += self._finish()
            self._finished = True
        return CodecResult(bytes_consumed=len(chunk), output=output)

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._release()

    @abc.abstractmethod
    def _process(self, chunk: bytes) -> bytes:  # pragma: no cover - interface only
        """Feed `chunk` to the engine and return whatever it emits."""
        raise NotImplementedError

    @abc.abstractmethod
    def _finish(self) -> bytes:  # pragma: no cover - interface only
        """Flush the engine's residual state and end the stream."""
        raise NotImplementedError

    def _release(self) -> None:
        """Drop engine references. Override if the engine needs explicit cleanup."""


__all__ = [
    "DEFAULT_MAX_INPUT_SIZE",
    "CodecResult",
    "IncrementalCodec",
    "AbstractCodec",
]
