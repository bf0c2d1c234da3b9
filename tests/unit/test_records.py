from __future__ import annotations

import pytest
from pydantic import ValidationError

from fizzpipe.domain import (
    MAX_VALUE,
    RECORD_SIZE,
    Record,
    RecordFlag,
    classify,
    decode_records,
    encode_record,
    encode_records_into,
    verify_records,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (0, RecordFlag.FIZZBUZZ),
        (3, RecordFlag.FIZZ),
        (5, RecordFlag.BUZZ),
        (7, RecordFlag.NONE),
        (15, RecordFlag.FIZZBUZZ),
        (MAX_VALUE, RecordFlag.FIZZBUZZ),  # 2**64 - 1 is divisible by 15
    ],
)
def test_classify_known_values(value: int, expected: RecordFlag) -> None:
    assert classify(value) == expected


def test_flag_values_match_wire_layout() -> None:
    assert int(RecordFlag.NONE) == 0x00
    assert int(RecordFlag.FIZZ) == 0x01
    assert int(RecordFlag.BUZZ) == 0x02
    assert int(RecordFlag.FIZZBUZZ) == 0x03


def test_encode_record_layout_is_flag_then_little_endian_value() -> None:
    data = encode_record(0x0102030405060708 * 3)
    assert len(data) == RECORD_SIZE
    assert data[0] == 0x01
    assert int.from_bytes(data[1:], "little") == 0x0102030405060708 * 3


def test_encode_record_matches_model_serialization() -> None:
    for value in range(200):
        assert encode_record(value) == Record.for_value(value).to_bytes()


def test_record_round_trips_through_bytes() -> None:
    for value in (0, 1, 3, 5, 15, 2**32, MAX_VALUE):
        record = Record.for_value(value)
        assert Record.from_bytes(record.to_bytes()) == record


def test_record_rejects_out_of_range_value() -> None:
    with pytest.raises(ValidationError):
        Record(value=MAX_VALUE + 1, flag=RecordFlag.NONE)
    with pytest.raises(ValidationError):
        Record(value=-1, flag=RecordFlag.NONE)


def test_record_from_bytes_rejects_bad_input() -> None:
    with pytest.raises(ValueError, match="exactly 9 bytes"):
        Record.from_bytes(b"\x00" * 8)
    with pytest.raises(ValueError, match="invalid flag"):
        Record.from_bytes(b"\x07" + b"\x00" * 8)


def test_encode_records_into_appends_consecutive_records() -> None:
    buffer = bytearray(b"prefix")
    encode_records_into(buffer, 10, 3)
    assert bytes(buffer[:6]) == b"prefix"
    assert bytes(buffer[6:]) == encode_record(10) + encode_record(11) + encode_record(12)


def test_decode_records_rejects_partial_trailing_record() -> None:
    data = encode_record(1) + encode_record(2)[:4]
    with pytest.raises(ValueError, match="not a multiple"):
        list(decode_records(data))


def test_verify_records_accepts_valid_stream() -> None:
    raw = bytearray()
    encode_records_into(raw, 0, 30)

    result = verify_records(bytes(raw))

    assert result.ok
    assert result.records == 30
    assert (result.first_value, result.last_value) == (0, 29)
    assert result.flag_counts == {"NONE": 16, "FIZZ": 8, "BUZZ": 4, "FIZZBUZZ": 2}


def test_verify_records_reports_gaps_and_bad_flags() -> None:
    wrong_flag = bytes([int(RecordFlag.NONE)]) + (6).to_bytes(8, "little")
    raw = encode_record(0) + encode_record(2) + wrong_flag

    result = verify_records(raw)

    assert not result.ok
    assert result.error_count == 3  # gap at index 1, gap at index 2, wrong flag at index 2
    assert any("expected value 1" in message for message in result.errors)
    assert any("has flag" in message for message in result.errors)
