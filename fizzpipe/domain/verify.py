"""
Verification of decoded record streams.

Checks the two properties every pipeline output must have: values form a
gap-free ascending sequence, and every flag matches the classification rule.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from fizzpipe.domain.models import RecordFlag, decode_records

_MAX_REPORTED_ERRORS = 20
_ALL_FLAGS = (RecordFlag.NONE, RecordFlag.FIZZ, RecordFlag.BUZZ, RecordFlag.FIZZBUZZ)


@dataclass
class VerificationResult:
    records: int = 0
    first_value: Optional[int] = None
    last_value: Optional[int] = None
    flag_counts: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    error_count: int = 0

    @property
    def ok(self) -> bool:
        return self.error_count == 0


def verify_records(raw: bytes, start: int = 0) -> VerificationResult:
    """
    Decode `raw` and check sequence and flags, expecting the first value to be `start`.

    A trailing partial record raises ValueError from the decoder.
    """
    result = VerificationResult()
    counts: Counter[RecordFlag] = Counter()
    expected = start

    def _fail(message: str) -> None:
        result.error_count += 1
        if len(result.errors) < _MAX_REPORTED_ERRORS:
            result.errors.append(message)

    for index, record in enumerate(decode_records(raw)):
        if record.value != expected:
            _fail(f"record {index}: expected value {expected}, got {record.value}")
        if not record.is_consistent:
            _fail(f"record {index}: value {record.value} has flag {record.flag!r}")
        counts[record.flag] += 1
        if result.first_value is None:
            result.first_value = record.value
        result.last_value = record.value
        expected = record.value + 1
        result.records += 1

    result.flag_counts = {flag.name: counts.get(flag, 0) for flag in _ALL_FLAGS}
    return result


__all__ = ["VerificationResult", "verify_records"]
