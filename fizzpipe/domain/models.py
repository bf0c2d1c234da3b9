"""
Domain models for fizzpipe.

A record is one classified natural number, serialized as 9 bytes:

    | flag (1 byte) | value (8 bytes, unsigned, little-endian) |

flag: none = 0x00, fizz (divisible by 3) = 0x01, buzz (divisible by 5) = 0x02,
fizzbuzz = 0x03.

`encode_record` is the hot path used by the generator; the `Record` model is
used wherever a validated, typed view of a record is wanted (decoding,
inspection, tests).
"""
from __future__ import annotations

import enum
import struct
from typing import Iterator

from pydantic import BaseModel, Field

RECORD_SIZE = 9
MAX_VALUE = 2**64 - 1

_RECORD_STRUCT = struct.Struct("<BQ")


class RecordFlag(enum.IntFlag):
    NONE = 0x00
    FIZZ = 0x01
    BUZZ = 0x02
    FIZZBUZZ = FIZZ | BUZZ


def classify(value: int) -> RecordFlag:
    """Return the flag for `value`: FIZZ if divisible by 3, BUZZ if by 5."""
    flag = RecordFlag.NONE
    if value % 3 == 0:
        flag |= RecordFlag.FIZZ
    if value % 5 == 0:
        flag |= RecordFlag.BUZZ
    return flag


# Flags repeat with period 15.
_FLAG_CYCLE = tuple(int(classify(i)) for i in range(15))


def encode_record(value: int) -> bytes:
    """Serialize `value` and its flag into the 9-byte wire layout."""
    return _RECORD_STRUCT.pack(_FLAG_CYCLE[value % 15], value)


def encode_records_into(buffer: bytearray, start: int, count: int) -> None:
    """Append `count` consecutive records beginning at `start` to `buffer`."""
    pack = _RECORD_STRUCT.pack
    cycle = _FLAG_CYCLE
    for value in range(start, start + count):
        buffer += pack(cycle[value % 15], value)


class Record(BaseModel):
    """
    A single classified value.
    """

    value: int = Field(..., ge=0, le=MAX_VALUE, description="Unsigned 64-bit value.")
    flag: RecordFlag = Field(..., description="Divisibility flags for the value.")

    model_config = {
        "frozen": True,
    }

    @classmethod
    def for_value(cls, value: int) -> "Record":
        return cls(value=value, flag=classify(value))

    def to_bytes(self) -> bytes:
        return _RECORD_STRUCT.pack(int(self.flag), self.value)

    @classmethod
    def from_bytes(cls, data: bytes | bytearray | memoryview) -> "Record":
        if len(data) != RECORD_SIZE:
            raise ValueError(f"record must be exactly {RECORD_SIZE} bytes, got {len(data)}")
        flag, value = _RECORD_STRUCT.unpack(data)
        if flag > RecordFlag.FIZZBUZZ:
            raise ValueError(f"invalid flag byte 0x{flag:02x} for value {value}")
        return cls(value=value, flag=RecordFlag(flag))

    @property
    def is_consistent(self) -> bool:
        """Whether the stored flag matches the classification rule."""
        return self.flag == classify(self.value)


def decode_records(data: bytes | bytearray | memoryview) -> Iterator[Record]:
    """
    Iterate the records in a raw (uncompressed) stream.

    Raises ValueError if the stream ends with a partial record.
    """
    if len(data) % RECORD_SIZE:
        raise ValueError(
            f"stream length {len(data)} is not a multiple of the record size {RECORD_SIZE}"
        )
    view = memoryview(data)
    for offset in range(0, len(view), RECORD_SIZE):
        yield Record.from_bytes(view[offset : offset + RECORD_SIZE])


__all__ = [
    "RECORD_SIZE",
    "MAX_VALUE",
    "RecordFlag",
    "Record",
    "classify",
    "encode_record",
    "encode_records_into",
    "decode_records",
]
