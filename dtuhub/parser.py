"""Base parser state and the parsers for power commands and system config data."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

SYSTEM_CONFIG_PARA_SIZE = 16


class CommandStatus(Enum):
    """Outcome of the last command or request sent to an inverter."""

    OK = 0
    NOK = 1
    PENDING = 2


class Parser:
    """Common state of every parser: the time of its last update."""

    def __init__(self) -> None:
        self.last_update = 0


class PowerCommandParser(Parser):
    """Tracks the state of power on/off/restart commands."""

    def __init__(self) -> None:
        super().__init__()
        # Nothing has been sent at start-up, so assume success.
        self.last_power_command_success = CommandStatus.OK
        self._last_update_command = 0

    @property
    def last_update_command(self) -> int:
        return self._last_update_command

    @last_update_command.setter
    def last_update_command(self, value: int) -> None:
        self._last_update_command = value
        self.last_update = value


class SystemConfigParaParser(Parser):
    """Holds the system configuration parameters, notably the power limit."""

    def __init__(self) -> None:
        super().__init__()
        self._payload = bytearray(SYSTEM_CONFIG_PARA_SIZE)
        self._length = 0
        # Nothing has been sent at start-up, so assume success.
        self.last_limit_command_success = CommandStatus.OK
        # Marked as failed so that the limit is fetched at start-up.
        self.last_limit_request_success = CommandStatus.NOK
        self._last_update_command = 0
        self._last_update_request = 0

    def clear_buffer(self) -> None:
        self._payload = bytearray(SYSTEM_CONFIG_PARA_SIZE)
        self._length = 0

    def append_fragment(self, offset: int, payload: bytes | Iterable[int]) -> None:
        data = bytes(payload)
        if offset + len(data) > SYSTEM_CONFIG_PARA_SIZE:
            raise ValueError(
                f"system config packet too large for buffer "
                f"({offset + len(data)} > {SYSTEM_CONFIG_PARA_SIZE})"
            )
        self._payload[offset : offset + len(data)] = data
        self._length += len(data)

    @property
    def limit_percent(self) -> float:
        return ((self._payload[2] << 8) | self._payload[3]) / 10.0

    @limit_percent.setter
    def limit_percent(self, value: float) -> None:
        raw = int(value * 10) & 0xFFFF
        self._payload[2] = raw >> 8
        self._payload[3] = raw & 0xFF

    @property
    def last_update_command(self) -> int:
        return self._last_update_command

    @last_update_command.setter
    def last_update_command(self, value: int) -> None:
        self._last_update_command = value
        self.last_update = value

    @property
    def last_update_request(self) -> int:
        return self._last_update_request

    @last_update_request.setter
    def last_update_request(self, value: int) -> None:
        self._last_update_request = value
        self.last_update = value