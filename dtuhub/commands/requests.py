"""Concrete inverter requests: run data, device info, alarms, limits and power."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from enum import IntEnum
from typing import Any

from dtuhub.commands.core import DevControlCommand, MultiDataCommand
from dtuhub.frame import Fragment
from dtuhub.parser import CommandStatus

_ACTIVE_POWER_CRC_SIZE = 6
_POWER_CONTROL_CRC_SIZE = 2


class PowerLimitControlType(IntEnum):
    """How a power limit is interpreted and whether it survives a restart."""

    ABSOLUTE_NON_PERSISTENT = 0x0000
    RELATIVE_NON_PERSISTENT = 0x0001
    ABSOLUTE_PERSISTENT = 0x0100
    RELATIVE_PERSISTENT = 0x0101

    @property
    def is_relative(self) -> bool:
        return self in (
            PowerLimitControlType.RELATIVE_NON_PERSISTENT,
            PowerLimitControlType.RELATIVE_PERSISTENT,
        )


def _copy_fragments(
    fragments: Sequence[Fragment], append: Callable[[int, bytes], None]
) -> None:
    offset = 0
    for fragment in fragments:
        append(offset, fragment.data)
        offset += len(fragment.data)


class ActivePowerControlCommand(DevControlCommand):
    """Sets the active power limit of an inverter."""

    command_name = "ActivePowerControl"

    def __init__(self, target_address: int = 0, router_address: int = 0) -> None:
        super().__init__(target_address, router_address)
        self._payload[10] = 0x0B
        self._payload[11:16] = bytes(5)
        self.update_crc(_ACTIVE_POWER_CRC_SIZE)
        self._payload_size = 18
        self.timeout = 2000

    def set_active_power_limit(
        self,
        limit: float,
        limit_type: PowerLimitControlType = PowerLimitControlType.RELATIVE_NON_PERSISTENT,
    ) -> None:
        raw = int(limit * 10) & 0xFFFF
        self._payload[12:14] = raw.to_bytes(2, "big")
        self._payload[14:16] = (int(limit_type) & 0xFFFF).to_bytes(2, "big")
        self.update_crc(_ACTIVE_POWER_CRC_SIZE)

    @property
    def limit(self) -> float:
        """The limit in whole units (tenths are dropped)."""
        raw = (self._payload[12] << 8) | self._payload[13]
        return float(raw // 10)

    @property
    def limit_type(self) -> PowerLimitControlType:
        return PowerLimitControlType((self._payload[14] << 8) | self._payload[15])

    def handle_response(self, inverter: Any, fragments: Sequence[Fragment]) -> bool:
        if not super().handle_response(inverter, fragments):
            return False

        config = inverter.system_config_para
        if self.limit_type.is_relative:
            config.limit_percent = self.limit
        else:
            max_power = inverter.dev_info.max_power()
            if max_power > 0:
                config.limit_percent = self.limit / max_power * 100
        config.last_update_command = inverter.clock()
        config.last_limit_command_success = CommandStatus.OK
        return True

    def got_timeout(self, inverter: Any) -> None:
        inverter.system_config_para.last_limit_command_success = CommandStatus.NOK


class AlarmDataCommand(MultiDataCommand):
    """Requests the alarm (event) log."""

    command_name = "AlarmData"

    def __init__(
        self, target_address: int = 0, router_address: int = 0, time: int = 0
    ) -> None:
        super().__init__(target_address, router_address)
        self.time = time
        self.data_type = 0x11
        self.timeout = 600

    def handle_response(self, inverter: Any, fragments: Sequence[Fragment]) -> bool:
        if not super().handle_response(inverter, fragments):
            return False
        log = inverter.event_log
        log.clear_buffer()
        _copy_fragments(fragments, log.append_fragment)
        log.last_alarm_request_success = CommandStatus.OK
        log.last_update = inverter.clock()
        return True

    def got_timeout(self, inverter: Any) -> None:
        inverter.event_log.last_alarm_request_success = CommandStatus.NOK


class DevInfoAllCommand(MultiDataCommand):
    """Requests the firmware part of the device information."""

    command_name = "DevInfoAll"

    def __init__(
        self, target_address: int = 0, router_address: int = 0, time: int = 0
    ) -> None:
        super().__init__(target_address, router_address)
        self.time = time
        self.data_type = 0x01
        self.timeout = 200

    def handle_response(self, inverter: Any, fragments: Sequence[Fragment]) -> bool:
        if not super().handle_response(inverter, fragments):
            return False
        info = inverter.dev_info
        info.clear_buffer_all()
        _copy_fragments(fragments, info.append_fragment_all)
        info.last_update_all = inverter.clock()
        return True


class DevInfoSimpleCommand(MultiDataCommand):
    """Requests the hardware part of the device information."""

    command_name = "DevInfoSimple"

    def __init__(
        self, target_address: int = 0, router_address: int = 0, time: int = 0
    ) -> None:
        super().__init__(target_address, router_address)
        self.time = time
        self.data_type = 0x00
        self.timeout = 200

    def handle_response(self, inverter: Any, fragments: Sequence[Fragment]) -> bool:
        if not super().handle_response(inverter, fragments):
            return False
        info = inverter.dev_info
        info.clear_buffer_simple()
        _copy_fragments(fragments, info.append_fragment_simple)
        info.last_update_simple = inverter.clock()
        return True


class PowerControlCommand(DevControlCommand):
    """Turns an inverter on or off, or restarts it."""

    command_name = "PowerControl"

    def __init__(self, target_address: int = 0, router_address: int = 0) -> None:
        super().__init__(target_address, router_address)
        self._payload[10] = 0x00  # turn on
        self._payload[11] = 0x00
        self.update_crc(_POWER_CONTROL_CRC_SIZE)
        self._payload_size = 14
        self.timeout = 2000

    def set_power_on(self, state: bool) -> None:
        self._payload[10] = 0x00 if state else 0x01
        self.update_crc(_POWER_CONTROL_CRC_SIZE)

    def set_restart(self) -> None:
        self._payload[10] = 0x02
        self.update_crc(_POWER_CONTROL_CRC_SIZE)

    def handle_response(self, inverter: Any, fragments: Sequence[Fragment]) -> bool:
        if not super().handle_response(inverter, fragments):
            return False
        command = inverter.power_command
        command.last_update_command = inverter.clock()
        command.last_power_command_success = CommandStatus.OK
        return True

    def got_timeout(self, inverter: Any) -> None:
        inverter.power_command.last_power_command_success = CommandStatus.NOK


class RealTimeRunDataCommand(MultiDataCommand):
    """Requests the real-time statistics."""

    command_name = "RealTimeRunData"

    def __init__(
        self, target_address: int = 0, router_address: int = 0, time: int = 0
    ) -> None:
        super().__init__(target_address, router_address)
        self.time = time
        self.data_type = 0x0B
        self.timeout = 200

    def handle_response(self, inverter: Any, fragments: Sequence[Fragment]) -> bool:
        if not super().handle_response(inverter, fragments):
            return False
        stats = inverter.statistics
        stats.clear_buffer()
        _copy_fragments(fragments, stats.append_fragment)
        stats.reset_rx_failure_count()
        stats.last_update = inverter.clock()
        return True

    def got_timeout(self, inverter: Any) -> None:
        inverter.statistics.increment_rx_failure_count()


class SystemConfigParaCommand(MultiDataCommand):
    """Requests the system configuration parameters (current limit)."""

    command_name = "SystemConfigPara"

    def __init__(
        self, target_address: int = 0, router_address: int = 0, time: int = 0
    ) -> None:
        super().__init__(target_address, router_address)
        self.time = time
        self.data_type = 0x05
        self.timeout = 200

    def handle_response(self, inverter: Any, fragments: Sequence[Fragment]) -> bool:
        if not super().handle_response(inverter, fragments):
            return False
        config = inverter.system_config_para
        config.clear_buffer()
        _copy_fragments(fragments, config.append_fragment)
        config.last_update_request = inverter.clock()
        config.last_limit_request_success = CommandStatus.OK
        return True

    def got_timeout(self, inverter: Any) -> None:
        inverter.system_config_para.last_limit_request_success = CommandStatus.NOK