"""Decoding of the inverter's alarm (event) log."""

from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import dataclass

from dtuhub.parser import CommandStatus, Parser

ALARM_LOG_ENTRY_COUNT = 15
ALARM_LOG_ENTRY_SIZE = 12
ALARM_LOG_PAYLOAD_SIZE = ALARM_LOG_ENTRY_COUNT * ALARM_LOG_ENTRY_SIZE + 4

_HALF_DAY = 12 * 60 * 60

_MESSAGES = {
    1: "Inverter start",
    2: "DTU command failed",
    121: "Over temperature protection",
    124: "Shut down by remote control",
    125: "Grid configuration parameter error",
    126: "Software error code 126",
    127: "Firmware error",
    128: "Software error code 128",
    129: "Abnormal bias",
    130: "Offline",
    141: "Grid: Grid overvoltage",
    142: "Grid: 10 min value grid overvoltage",
    143: "Grid: Grid undervoltage",
    144: "Grid: Grid overfrequency",
    145: "Grid: Grid underfrequency",
    146: "Grid: Rapid grid frequency change rate",
    147: "Grid: Power grid outage",
    148: "Grid: Grid disconnection",
    149: "Grid: Island detected",
    205: "MPPT-A: Input overvoltage",
    206: "MPPT-B: Input overvoltage",
    207: "MPPT-A: Input undervoltage",
    208: "MPPT-B: Input undervoltage",
    209: "PV-1: No input",
    210: "PV-2: No input",
    211: "PV-3: No input",
    212: "PV-4: No input",
    213: "MPPT-A: PV-1 & PV-2 abnormal wiring",
    214: "MPPT-B: PV-3 & PV-4 abnormal wiring",
    215: "PV-1: Input overvoltage",
    216: "PV-1: Input undervoltage",
    217: "PV-2: Input overvoltage",
    218: "PV-2: Input undervoltage",
    219: "PV-3: Input overvoltage",
    220: "PV-3: Input undervoltage",
    221: "PV-4: Input overvoltage",
    222: "PV-4: Input undervoltage",
    **{code: f"Hardware error code {code}" for code in range(301, 315)},
    5041: "Error code-04 Port 1",
    5042: "Error code-04 Port 2",
    5043: "Error code-04 Port 3",
    5044: "Error code-04 Port 4",
    5051: "PV Input 1 Overvoltage/Undervoltage",
    5052: "PV Input 2 Overvoltage/Undervoltage",
    5053: "PV Input 3 Overvoltage/Undervoltage",
    5054: "PV Input 4 Overvoltage/Undervoltage",
    5060: "Abnormal bias",
    5070: "Over temperature protection",
    5080: "Grid Overvoltage/Undervoltage",
    5090: "Grid Overfrequency/Underfrequency",
    5100: "Island detected",
    5120: "EEPROM reading and writing error",
    5150: "10 min value grid overvoltage",
    5200: "Firmware error",
    8310: "Shut down",
    9000: "Microinverter is suspected of being stolen",
}


def alarm_message(message_id: int) -> str:
    """Text for an alarm message id, "Unknown" for ids not in the table."""
    return _MESSAGES.get(message_id, "Unknown")


def timezone_offset() -> int:
    """Seconds the local time zone is ahead of UTC right now."""
    now = int(time.time())
    broken_down = tuple(time.gmtime(now))[:8] + (-1,)
    gmt = time.mktime(broken_down)
    return int(now - gmt)


@dataclass(frozen=True)
class AlarmLogEntry:
    """One decoded alarm log entry; times are seconds since midnight plus offsets."""

    message_id: int
    message: str
    start_time: int
    end_time: int


class AlarmLogParser(Parser):
    """Buffers an alarm log payload and decodes its entries."""

    def __init__(self) -> None:
        super().__init__()
        self._payload = bytearray(ALARM_LOG_PAYLOAD_SIZE)
        self._length = 0
        # Marked as failed so that the log is fetched at start-up.
        self.last_alarm_request_success = CommandStatus.NOK

    def clear_buffer(self) -> None:
        self._payload = bytearray(ALARM_LOG_PAYLOAD_SIZE)
        self._length = 0

    def append_fragment(self, offset: int, payload: bytes | Iterable[int]) -> None:
        data = bytes(payload)
        if offset + len(data) > ALARM_LOG_PAYLOAD_SIZE:
            raise ValueError(
                f"alarm log packet too large for buffer "
                f"({offset + len(data)} > {ALARM_LOG_PAYLOAD_SIZE})"
            )
        self._payload[offset : offset + len(data)] = data
        self._length += len(data)

    def entry_count(self) -> int:
        return max(0, (self._length - 2) // ALARM_LOG_ENTRY_SIZE)

    def _u16(self, pos: int) -> int:
        return (self._payload[pos] << 8) | self._payload[pos + 1]

    def log_entry(self, entry_id: int) -> AlarmLogEntry:
        start = 2 + entry_id * ALARM_LOG_ENTRY_SIZE
        if entry_id < 0 or start + 8 > ALARM_LOG_PAYLOAD_SIZE:
            raise IndexError(f"alarm log entry {entry_id} out of range")

        tz_offset = timezone_offset()
        wcode = self._u16(start)
        start_offset = _HALF_DAY if (wcode >> 13) & 0x01 else 0
        end_offset = _HALF_DAY if (wcode >> 12) & 0x01 else 0

        message_id = self._payload[start + 1]
        start_time = self._u16(start + 4) + start_offset + tz_offset
        end_time = self._u16(start + 6)
        if end_time > 0:
            end_time += end_offset + tz_offset

        return AlarmLogEntry(
            message_id=message_id,
            message=alarm_message(message_id),
            start_time=start_time,
            end_time=end_time,
        )