"""
Stages package for fizzpipe.

Re-exports the stage interfaces and the three concrete stages so downstream
code can import from `fizzpipe.stages` directly.
"""

from fizzpipe.stages.abstract import AbstractStage, PipelineStage, StageResult, run_in_worker
from fizzpipe.stages.generator import RecordGenerator
from fizzpipe.stages.sink import SinkStage
from fizzpipe.stages.transform import TransformStage

__all__ = [
    # Abstracts
    "AbstractStage",
    "PipelineStage",
    "StageResult",
    "run_in_worker",
    # Concrete stages
    "RecordGenerator",
    "SinkStage",
    "TransformStage",
]
