import pytest

from dtuhub.alarm_log import (
    ALARM_LOG_ENTRY_SIZE,
    ALARM_LOG_PAYLOAD_SIZE,
    AlarmLogParser,
    alarm_message,
    timezone_offset,
)
from dtuhub.parser import CommandStatus

HALF_DAY = 12 * 60 * 60


def _entry(wcode: int, start: int, end: int) -> bytes:
    return (
        wcode.to_bytes(2, "big")
        + b"\x00\x00"
        + start.to_bytes(2, "big")
        + end.to_bytes(2, "big")
        + b"\x00" * 4
    )


def _parser_with(*entries: bytes) -> AlarmLogParser:
    parser = AlarmLogParser()
    parser.append_fragment(0, b"\x00\x01" + b"".join(entries))
    return parser


def test_alarm_messages_from_table():
    assert alarm_message(1) == "Inverter start"
    assert alarm_message(130) == "Offline"
    assert alarm_message(305) == "Hardware error code 305"
    assert alarm_message(9000) == "Microinverter is suspected of being stolen"


def test_unknown_alarm_message():
    assert alarm_message(999) == "Unknown"


def test_default_request_status_is_nok():
    assert AlarmLogParser().last_alarm_request_success is CommandStatus.NOK


def test_entry_count_empty_and_filled():
    assert AlarmLogParser().entry_count() == 0
    parser = _parser_with(_entry(0x0001, 10, 20), _entry(0x0002, 30, 40))
    assert parser.entry_count() == 2


def test_entry_count_accumulates_over_fragments():
    parser = AlarmLogParser()
    data = b"\x00\x01" + _entry(0x0001, 1, 2) * 3
    parser.append_fragment(0, data[:16])
    parser.append_fragment(16, data[16:])
    assert parser.entry_count() == 3


def test_clear_buffer_resets_count():
    parser = _parser_with(_entry(0x0001, 1, 2))
    parser.clear_buffer()
    assert parser.entry_count() == 0


def test_append_overflow_raises():
    parser = AlarmLogParser()
    with pytest.raises(ValueError):
        parser.append_fragment(ALARM_LOG_PAYLOAD_SIZE - 2, b"\x00\x00\x00")


def test_log_entry_plain_times():
    parser = _parser_with(_entry(121, 300, 0))
    tz = timezone_offset()
    entry = parser.log_entry(0)
    assert entry.message_id == 121
    assert entry.message == "Over temperature protection"
    assert entry.start_time - tz == 300
    assert entry.end_time == 0


def test_log_entry_half_day_flags():
    wcode = (1 << 13) | (1 << 12) | 1
    parser = _parser_with(_entry(0x0002, 5, 6), _entry(wcode, 300, 400))
    tz = timezone_offset()
    entry = parser.log_entry(1)
    assert entry.message_id == 1
    assert entry.message == "Inverter start"
    assert entry.start_time - tz == 300 + HALF_DAY
    assert entry.end_time - tz == 400 + HALF_DAY


def test_message_id_is_low_byte_only():
    parser = _parser_with(_entry(0x0102, 1, 0))
    assert parser.log_entry(0).message_id == 0x02


def test_log_entry_out_of_range():
    parser = AlarmLogParser()
    with pytest.raises(IndexError):
        parser.log_entry((ALARM_LOG_PAYLOAD_SIZE - 2) // ALARM_LOG_ENTRY_SIZE + 1)
    with pytest.raises(IndexError):
        parser.log_entry(-1)


def test_timezone_offset_is_plausible():
    offset = timezone_offset()
    assert abs(offset) <= 14 * 60 * 60
    assert offset % 60 == 0