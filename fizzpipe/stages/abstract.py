"""
Stage interfaces and result contracts for fizzpipe.

Each pipeline stage (generator, transform, sink) implements the PipelineStage
protocol: a `name` used in logs and failure reports, and an async `run` that
returns a StageResult once the stage reaches its terminal state.
"""

from __future__ import annotations

import abc
import asyncio
from typing import Any, Callable, Optional, Protocol, TypeVar, TypedDict, runtime_checkable

from fizzpipe.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


class StageResult(TypedDict, total=False):
    """
    Per-stage counters returned from `run`.

    Fields are optional; each stage fills what it knows and the orchestrator
    tolerates missing values.
    """

    stage: str
    records: int
    bytes_in: int
    bytes_out: int
    chunks: int
    empty_reads: int
    stopped_early: bool
    notes: Optional[str]


@runtime_checkable
class PipelineStage(Protocol):
    """
    Common interface all stages must implement.

    Attributes
    ----------
    name : str
        Short identifier reported when the stage fails.
    """

    name: str

    async def run(self) -> StageResult:
        """
        Run until the stage's input is exhausted, then complete its output.
        """
        ...


class AbstractStage(abc.ABC):
    """
    Optional ABC helper for class-based stages.

    Subclasses set `name` and implement `run`.
    """

    name: str

    @abc.abstractmethod
    async def run(self) -> StageResult:  # pragma: no cover - interface only
        """Run the stage to its terminal state."""
        raise NotImplementedError



async def run_in_worker(func: Callable[..., T], *args: Any) -> T:
    """
    Run `func(*args)` in a worker thread and return its result.

    If the caller is cancelled mid-call, the worker is still awaited before
    the cancellation propagates, so the caller's cleanup (closing a store,
    releasing a codec) never runs while the thread is using that resource.
    An error the worker raises in that window is logged.
    """
    worker = asyncio.ensure_future(asyncio.to_thread(func, *args))
    try:
        return await asyncio.shield(worker)
    except asyncio.CancelledError:
        await asyncio.wait({worker})
        if not worker.cancelled() and worker.exception() is not None:
            log.warning(
                "[WORKER] call failed after cancellation",
                exc_info=worker.exception(),
                extra={"call": getattr(func, "__qualname__", repr(func))},
            )
        raise


__all__ = ["StageResult", "PipelineStage", "AbstractStage", "run_in_worker"]
