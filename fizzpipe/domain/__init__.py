"""
Domain package for fizzpipe.

Exports the record model, the classification rule, and the wire codec for
the 9-byte record layout. Keep this package free of I/O and concurrency.
"""

from fizzpipe.domain.models import (
    MAX_VALUE,
    RECORD_SIZE,
    Record,
    RecordFlag,
    classify,
    decode_records,
    encode_record,
    encode_records_into,
)
from fizzpipe.domain.verify import VerificationResult, verify_records

__all__ = [
    "MAX_VALUE",
    "RECORD_SIZE",
    "Record",
    "RecordFlag",
    "classify",
    "decode_records",
    "encode_record",
    "encode_records_into",
    "VerificationResult",
    "verify_records",
]
