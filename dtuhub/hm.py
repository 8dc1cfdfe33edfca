"""Hoymiles HM series inverters: request scheduling and per-model payload layouts."""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from typing import Any

from dtuhub.commands.requests import (
    ActivePowerControlCommand,
    AlarmDataCommand,
    DevInfoAllCommand,
    DevInfoSimpleCommand,
    PowerControlCommand,
    PowerLimitControlType,
    RealTimeRunDataCommand,
    SystemConfigParaCommand,
)
from dtuhub.inverter import Inverter
from dtuhub.parser import CommandStatus
from dtuhub.statistics import (
    CH0,
    CH1,
    CH2,
    CH3,
    CH4,
    CMD_CALC,
    ByteAssign,
    Calc,
    Field,
    Unit,
)

# The local clock counts as set once it reports a year after 2016.
_FIRST_VALID_TIME = 1483228800  # 2017-01-01T00:00:00Z

_POWER_OFF = 0
_POWER_ON = 1
_RESTART = 2


def _calc(ch: int, field: Field, unit: Unit, calc: Calc, arg: int, digits: int) -> ByteAssign:
    return ByteAssign(ch, field, unit, int(calc), arg, CMD_CALC, False, digits)


def _ac_and_totals(first: int) -> tuple[ByteAssign, ...]:
    """The CH0 block shared by all models, starting at payload offset ``first``."""
    return (
        ByteAssign(CH0, Field.UAC, Unit.V, first, 2, 10, False, 1),
        ByteAssign(CH0, Field.IAC, Unit.A, first + 8, 2, 100, False, 2),
        ByteAssign(CH0, Field.PAC, Unit.W, first + 4, 2, 10, False, 1),
        ByteAssign(CH0, Field.PRA, Unit.VA, first + 6, 2, 10, False, 1),
        ByteAssign(CH0, Field.F, Unit.HZ, first + 2, 2, 100, False, 2),
        ByteAssign(CH0, Field.PF, Unit.NONE, first + 10, 2, 1000, False, 3),
        ByteAssign(CH0, Field.T, Unit.C, first + 12, 2, 10, True, 1),
        ByteAssign(CH0, Field.EVT_LOG, Unit.NONE, first + 14, 2, 1, False, 0),
        _calc(CH0, Field.YD, Unit.WH, Calc.YD_CH0, 0, 0),
        _calc(CH0, Field.YT, Unit.KWH, Calc.YT_CH0, 0, 3),
        _calc(CH0, Field.PDC, Unit.W, Calc.PDC_CH0, 0, 1),
        _calc(CH0, Field.EFF, Unit.PCT, Calc.EFF_CH0, 0, 3),
    )


def _irradiation(ch: int) -> ByteAssign:
    return _calc(ch, Field.IRR, Unit.PCT, Calc.IRR_CH, ch, 3)


_HM1_ASSIGNMENT = (
    ByteAssign(CH1, Field.UDC, Unit.V, 2, 2, 10, False, 1),
    ByteAssign(CH1, Field.IDC, Unit.A, 4, 2, 100, False, 2),
    ByteAssign(CH1, Field.PDC, Unit.W, 6, 2, 10, False, 1),
    ByteAssign(CH1, Field.YD, Unit.WH, 12, 2, 1, False, 0),
    ByteAssign(CH1, Field.YT, Unit.KWH, 8, 4, 1000, False, 3),
    _irradiation(CH1),
) + _ac_and_totals(14)

_HM2_ASSIGNMENT = (
    ByteAssign(CH1, Field.UDC, Unit.V, 2, 2, 10, False, 1),
    ByteAssign(CH1, Field.IDC, Unit.A, 4, 2, 100, False, 2),
    ByteAssign(CH1, Field.PDC, Unit.W, 6, 2, 10, False, 1),
    ByteAssign(CH1, Field.YD, Unit.WH, 22, 2, 1, False, 0),
    ByteAssign(CH1, Field.YT, Unit.KWH, 14, 4, 1000, False, 3),
    _irradiation(CH1),
    ByteAssign(CH2, Field.UDC, Unit.V, 8, 2, 10, False, 1),
    ByteAssign(CH2, Field.IDC, Unit.A, 10, 2, 100, False, 2),
    ByteAssign(CH2, Field.PDC, Unit.W, 12, 2, 10, False, 1),
    ByteAssign(CH2, Field.YD, Unit.WH, 24, 2, 1, False, 0),
    ByteAssign(CH2, Field.YT, Unit.KWH, 18, 4, 1000, False, 3),
    _irradiation(CH2),
) + _ac_and_totals(26)

_HM4_ASSIGNMENT = (
    ByteAssign(CH1, Field.UDC, Unit.V, 2, 2, 10, False, 1),
    ByteAssign(CH1, Field.IDC, Unit.A, 4, 2, 100, False, 2),
    ByteAssign(CH1, Field.PDC, Unit.W, 8, 2, 10, False, 1),
    ByteAssign(CH1, Field.YD, Unit.WH, 20, 2, 1, False, 0),
    ByteAssign(CH1, Field.YT, Unit.KWH, 12, 4, 1000, False, 3),
    _irradiation(CH1),
    _calc(CH2, Field.UDC, Unit.V, Calc.UDC_CH, CH1, 1),
    ByteAssign(CH2, Field.IDC, Unit.A, 6, 2, 100, False, 2),
    ByteAssign(CH2, Field.PDC, Unit.W, 10, 2, 10, False, 1),
    ByteAssign(CH2, Field.YD, Unit.WH, 22, 2, 1, False, 0),
    ByteAssign(CH2, Field.YT, Unit.KWH, 16, 4, 1000, False, 3),
    _irradiation(CH2),
    ByteAssign(CH3, Field.UDC, Unit.V, 24, 2, 10, False, 1),
    ByteAssign(CH3, Field.IDC, Unit.A, 26, 2, 100, False, 2),
    ByteAssign(CH3, Field.PDC, Unit.W, 30, 2, 10, False, 1),
    ByteAssign(CH3, Field.YD, Unit.WH, 42, 2, 1, False, 0),
    ByteAssign(CH3, Field.YT, Unit.KWH, 34, 4, 1000, False, 3),
    _irradiation(CH3),
    _calc(CH4, Field.UDC, Unit.V, Calc.UDC_CH, CH3, 1),
    ByteAssign(CH4, Field.IDC, Unit.A, 28, 2, 100, False, 2),
    ByteAssign(CH4, Field.PDC, Unit.W, 32, 2, 10, False, 1),
    ByteAssign(CH4, Field.YD, Unit.WH, 44, 2, 1, False, 0),
    ByteAssign(CH4, Field.YT, Unit.KWH, 38, 4, 1000, False, 3),
    _irradiation(CH4),
) + _ac_and_totals(46)


def _serial_matches(serial: int, code: int, nibbles: tuple[int, int], prefixes: tuple[int, int]) -> bool:
    """Check the two model bytes of ``serial`` against a model family."""
    pre0 = (serial >> 40) & 0xFF
    pre1 = (serial >> 32) & 0xFF
    if (((pre0 << 8) | pre1) >> 4) & 0xFF == code:
        return True
    return (pre1 & 0xF0) in nibbles and ((pre0 << 8) | pre1) in prefixes


class HmInverter(Inverter):
    """An HM series inverter: knows how to queue each kind of request."""

    def __init__(self, serial: int) -> None:
        super().__init__(serial)
        self.wall_clock: Callable[[], float] = time.time
        self._last_alarm_log_count = 0
        self._active_power_control_limit = 0.0
        self._active_power_control_type = PowerLimitControlType.ABSOLUTE_NON_PERSISTENT
        self._power_state = _POWER_ON

    def _now(self) -> int | None:
        """Current Unix time, or None while the clock has not been set."""
        now = int(self.wall_clock())
        return now if now >= _FIRST_VALID_TIME else None

    def _enqueue_timed(self, radio: Any, command_class: type, now: int) -> Any:
        cmd = radio.enqueue_command(command_class)
        cmd.time = now
        cmd.target_address = self.serial
        return cmd

    def send_stats_request(self, radio: Any) -> bool:
        now = self._now()
        if now is None:
            return False
        self._enqueue_timed(radio, RealTimeRunDataCommand, now)
        return True

    def send_alarm_log_request(self, radio: Any, force: bool = False) -> bool:
        now = self._now()
        if now is None:
            return False

        count = int(self.statistics.value(CH0, Field.EVT_LOG)) & 0xFF
        if (
            not force
            and self.statistics.has_value(CH0, Field.EVT_LOG)
            and count == self._last_alarm_log_count
        ):
            return False

        self._last_alarm_log_count = count
        self._enqueue_timed(radio, AlarmDataCommand, now)
        self.event_log.last_alarm_request_success = CommandStatus.PENDING
        return True

    def send_dev_info_request(self, radio: Any) -> bool:
        now = self._now()
        if now is None:
            return False
        self._enqueue_timed(radio, DevInfoAllCommand, now)
        self._enqueue_timed(radio, DevInfoSimpleCommand, now)
        return True

    def send_system_config_para_request(self, radio: Any) -> bool:
        now = self._now()
        if now is None:
            return False
        self._enqueue_timed(radio, SystemConfigParaCommand, now)
        self.system_config_para.last_limit_request_success = CommandStatus.PENDING
        return True

    def send_active_power_control_request(
        self, radio: Any, limit: float, limit_type: PowerLimitControlType
    ) -> bool:
        limit_type = PowerLimitControlType(limit_type)
        if limit_type.is_relative:
            limit = min(100.0, limit)

        self._active_power_control_limit = limit
        self._active_power_control_type = limit_type

        cmd = radio.enqueue_command(ActivePowerControlCommand)
        cmd.set_active_power_limit(limit, limit_type)
        cmd.target_address = self.serial
        self.system_config_para.last_limit_command_success = CommandStatus.PENDING
        return True

    def resend_active_power_control_request(self, radio: Any) -> bool:
        return self.send_active_power_control_request(
            radio, self._active_power_control_limit, self._active_power_control_type
        )

    def send_power_control_request(self, radio: Any, turn_on: bool) -> bool:
        self._power_state = _POWER_ON if turn_on else _POWER_OFF
        cmd = radio.enqueue_command(PowerControlCommand)
        cmd.set_power_on(turn_on)
        cmd.target_address = self.serial
        self.power_command.last_power_command_success = CommandStatus.PENDING
        return True

    def send_restart_control_request(self, radio: Any) -> bool:
        self._power_state = _RESTART
        cmd = radio.enqueue_command(PowerControlCommand)
        cmd.set_restart()
        cmd.target_address = self.serial
        self.power_command.last_power_command_success = CommandStatus.PENDING
        return True

    def resend_power_control_request(self, radio: Any) -> bool:
        if self._power_state == _POWER_OFF:
            return self.send_power_control_request(radio, False)
        if self._power_state == _POWER_ON:
            return self.send_power_control_request(radio, True)
        if self._power_state == _RESTART:
            return self.send_restart_control_request(radio)
        return False


class HM1Channel(HmInverter):
    """Single-input models HM-300, HM-350, HM-400."""

    @staticmethod
    def is_valid_serial(serial: int) -> bool:
        return _serial_matches(serial, 0x12, (0x10, 0x20), (0x1022, 0x1121))

    def type_name(self) -> str:
        return "HM-300, HM-350, HM-400"

    def byte_assignment(self) -> Sequence[ByteAssign]:
        return _HM1_ASSIGNMENT


class HM2Channel(HmInverter):
    """Dual-input models HM-600, HM-700, HM-800."""

    @staticmethod
    def is_valid_serial(serial: int) -> bool:
        return _serial_matches(serial, 0x14, (0x30, 0x40), (0x1042, 0x1141))

    def type_name(self) -> str:
        return "HM-600, HM-700, HM-800"

    def byte_assignment(self) -> Sequence[ByteAssign]:
        return _HM2_ASSIGNMENT


class HM4Channel(HmInverter):
    """Quad-input models HM-1000, HM-1200, HM-1500."""

    @staticmethod
    def is_valid_serial(serial: int) -> bool:
        return _serial_matches(serial, 0x16, (0x50, 0x60), (0x1062, 0x1161))

    def type_name(self) -> str:
        return "HM-1000, HM-1200, HM-1500"

    def byte_assignment(self) -> Sequence[ByteAssign]:
        return _HM4_ASSIGNMENT