"""Decoding of inverter device information (firmware, hardware, model)."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from dtuhub.parser import Parser

DEV_INFO_SIZE = 20

_ALL = 0xFF

_CUMULATIVE_DAYS = (0, 31, 59, 90, 120, 151, 181, 212, 243, 273, 304, 334)


@dataclass(frozen=True)
class _DeviceModel:
    hw_part: bytes
    max_power: int
    model_name: str


_DEVICE_MODELS = (
    _DeviceModel(bytes([0x10, 0x10, 0x10, _ALL]), 300, "HM-300"),
    _DeviceModel(bytes([0x10, 0x10, 0x20, _ALL]), 350, "HM-350"),
    _DeviceModel(bytes([0x10, 0x10, 0x40, _ALL]), 400, "HM-400"),
    _DeviceModel(bytes([0x10, 0x11, 0x10, _ALL]), 600, "HM-600"),
    _DeviceModel(bytes([0x10, 0x11, 0x20, _ALL]), 700, "HM-700"),
    _DeviceModel(bytes([0x10, 0x11, 0x30, _ALL]), 800, "HM-800"),
    _DeviceModel(bytes([0x10, 0x11, 0x40, _ALL]), 800, "HM-800"),
    _DeviceModel(bytes([0x10, 0x12, 0x10, _ALL]), 1200, "HM-1200"),
    _DeviceModel(bytes([0x10, 0x02, 0x30, _ALL]), 1500, "MI-1500 Gen3"),
    _DeviceModel(bytes([0x10, 0x12, 0x30, _ALL]), 1500, "HM-1500"),
    # HM-300 limited to 70% in the factory.
    _DeviceModel(bytes([0x10, 0x10, 0x10, 0x15]), int(300 * 0.7), "HM-300"),
)


def timegm(
    year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0
) -> int:
    """Seconds since the Unix epoch for a UTC date; month is 1-based."""
    month0 = month - 1
    year += month0 // 12
    month0 %= 12
    result = (year - 1970) * 365 + _CUMULATIVE_DAYS[month0]
    result += (year - 1968) // 4
    result -= (year - 1900) // 100
    result += (year - 1600) // 400
    is_leap = year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)
    if is_leap and month0 < 2:
        result -= 1
    result += day - 1
    result = result * 24 + hour
    result = result * 60 + minute
    result = result * 60 + second
    return result


def _append(buffer: bytearray, offset: int, payload: bytes, what: str) -> None:
    if offset + len(payload) > DEV_INFO_SIZE:
        raise ValueError(
            f"dev info {what} packet too large for buffer "
            f"({offset + len(payload)} > {DEV_INFO_SIZE})"
        )
    buffer[offset : offset + len(payload)] = payload


class DevInfoParser(Parser):
    """Buffers the "all" and "simple" device info payloads and decodes them."""

    def __init__(self) -> None:
        super().__init__()
        self._last_update_all = 0
        self._last_update_simple = 0
        self._all = bytearray(DEV_INFO_SIZE)
        self._all_length = 0
        self._simple = bytearray(DEV_INFO_SIZE)
        self._simple_length = 0

    def clear_buffer_all(self) -> None:
        self._all = bytearray(DEV_INFO_SIZE)
        self._all_length = 0

    def append_fragment_all(self, offset: int, payload: bytes | Iterable[int]) -> None:
        data = bytes(payload)
        _append(self._all, offset, data, "all")
        self._all_length += len(data)

    def clear_buffer_simple(self) -> None:
        self._simple = bytearray(DEV_INFO_SIZE)
        self._simple_length = 0

    def append_fragment_simple(
        self, offset: int, payload: bytes | Iterable[int]
    ) -> None:
        data = bytes(payload)
        _append(self._simple, offset, data, "simple")
        self._simple_length += len(data)

    @property
    def last_update_all(self) -> int:
        return self._last_update_all

    @last_update_all.setter
    def last_update_all(self, value: int) -> None:
        self._last_update_all = value
        self.last_update = value

    @property
    def last_update_simple(self) -> int:
        return self._last_update_simple

    @last_update_simple.setter
    def last_update_simple(self, value: int) -> None:
        self._last_update_simple = value
        self.last_update = value

    def _all_u16(self, pos: int) -> int:
        return (self._all[pos] << 8) | self._all[pos + 1]

    def fw_build_version(self) -> int:
        return self._all_u16(0)

    def fw_build_datetime(self) -> int:
        """Firmware build time as seconds since the Unix epoch (UTC)."""
        year = self._all_u16(2)
        month_day = self._all_u16(4)
        hour_minute = self._all_u16(6)
        return timegm(
            year,
            month_day // 100,
            month_day % 100,
            hour_minute // 100,
            hour_minute % 100,
            0,
        )

    def fw_bootloader_version(self) -> int:
        return self._all_u16(8)

    def hw_part_number(self) -> int:
        return int.from_bytes(self._simple[2:6], "big")

    def hw_version(self) -> str:
        return f"{self._simple[6]:02d}.{self._simple[7]:02d}"

    def _device_model(self) -> _DeviceModel | None:
        part = bytes(self._simple[2:6])
        for model in _DEVICE_MODELS:
            if model.hw_part == part:
                return model
        for model in _DEVICE_MODELS:
            if model.hw_part[:3] == part[:3]:
                return model
        return None

    def max_power(self) -> int:
        model = self._device_model()
        return model.max_power if model else 0

    def hw_model_name(self) -> str:
        model = self._device_model()
        return model.model_name if model else ""