"""Decoding of real-time run data (voltages, currents, power, yield)."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum, IntEnum

from dtuhub.parser import Parser

STATISTIC_PACKET_SIZE = 4 * 16

CMD_CALC = 0xFFFF

CH0 = 0
CH1 = 1
CH2 = 2
CH3 = 3
CH4 = 4


class Unit(Enum):
    """Measurement units, valued by their display symbol."""

    V = "V"
    A = "A"
    W = "W"
    WH = "Wh"
    KWH = "kWh"
    HZ = "Hz"
    C = "°C"
    PCT = "%"
    VA = "var"
    NONE = ""


class Field(IntEnum):
    """Field types found in the statistics payload."""

    UDC = 0
    IDC = 1
    PDC = 2
    YD = 3
    YT = 4
    UAC = 5
    IAC = 6
    PAC = 7
    F = 8
    T = 9
    PF = 10
    EFF = 11
    IRR = 12
    PRA = 13
    EVT_LOG = 14

    @property
    def label(self) -> str:
        return _FIELD_NAMES[self]


_FIELD_NAMES = (
    "Voltage",
    "Current",
    "Power",
    "YieldDay",
    "YieldTotal",
    "Voltage",
    "Current",
    "Power",
    "Frequency",
    "Temperature",
    "PowerFactor",
    "Efficiency",
    "Irradiation",
    "ReactivePower",
    "EventLogCount",
)


class Calc(IntEnum):
    """Values that are computed from other fields rather than read."""

    YT_CH0 = 0
    YD_CH0 = 1
    UDC_CH = 2
    PDC_CH0 = 3
    EFF_CH0 = 4
    IRR_CH = 5


@dataclass(frozen=True)
class ByteAssign:
    """Where a field lives in the payload and how to scale it.

    For calculated fields ``div`` is ``CMD_CALC``, ``start`` is a
    :class:`Calc` member and ``num`` is its argument.
    """

    ch: int
    field: Field
    unit: Unit
    start: int
    num: int
    div: int
    is_signed: bool = False
    digits: int = 0

    @property
    def is_calculated(self) -> bool:
        return self.div == CMD_CALC


class StatisticsParser(Parser):
    """Buffers a statistics payload and decodes fields from it."""

    def __init__(self) -> None:
        super().__init__()
        self._payload = bytearray(STATISTIC_PACKET_SIZE)
        self._length = 0
        self._chan_max_power = [0] * CH4
        self._assignments: tuple[ByteAssign, ...] = ()
        self._rx_failure_count = 0

    def clear_buffer(self) -> None:
        self._payload = bytearray(STATISTIC_PACKET_SIZE)
        self._length = 0

    def append_fragment(self, offset: int, payload: bytes | Iterable[int]) -> None:
        data = bytes(payload)
        if offset + len(data) > STATISTIC_PACKET_SIZE:
            raise ValueError(
                f"stats packet too large for buffer "
                f"({offset + len(data)} > {STATISTIC_PACKET_SIZE})"
            )
        self._payload[offset : offset + len(data)] = data
        self._length += len(data)

    def set_byte_assignment(self, assignments: Sequence[ByteAssign]) -> None:
        self._assignments = tuple(assignments)

    def assign_index(self, channel: int, field: Field) -> int | None:
        """Position of the assignment for ``channel``/``field``, or None."""
        return next(
            (
                pos
                for pos, a in enumerate(self._assignments)
                if a.ch == channel and a.field == field
            ),
            None,
        )

    def _assignment(self, channel: int, field: Field) -> ByteAssign:
        pos = self.assign_index(channel, field)
        if pos is None:
            raise KeyError(f"no field {Field(field).name} on channel {channel}")
        return self._assignments[pos]

    def value(self, channel: int, field: Field) -> float:
        """Decoded value of a field, or 0.0 if the inverter has no such field."""
        pos = self.assign_index(channel, field)
        if pos is None:
            return 0.0
        a = self._assignments[pos]
        if a.is_calculated:
            return self._calculations[Calc(a.start)](self, a.num)

        raw = int.from_bytes(self._payload[a.start : a.start + a.num], "big")
        raw &= 0xFFFFFFFF
        if a.is_signed and a.num == 2:
            raw = raw - 0x10000 if raw & 0x8000 else raw
        elif a.is_signed and a.num == 4:
            raw = raw - 0x100000000 if raw & 0x80000000 else raw
        return float(raw) / float(a.div)

    def has_value(self, channel: int, field: Field) -> bool:
        return self.assign_index(channel, field) is not None

    def unit(self, channel: int, field: Field) -> str:
        return self._assignment(channel, field).unit.value

    def field_name(self, channel: int, field: Field) -> str:
        return Field(self._assignment(channel, field).field).label

    def digits(self, channel: int, field: Field) -> int:
        return self._assignment(channel, field).digits

    def channel_count(self) -> int:
        return max((a.ch for a in self._assignments), default=0)

    def channel_max_power(self, channel: int) -> int:
        return self._chan_max_power[channel]

    def set_channel_max_power(self, channel: int, power: int) -> None:
        if channel < CH4:
            self._chan_max_power[channel] = power & 0xFFFF

    def reset_rx_failure_count(self) -> None:
        self._rx_failure_count = 0

    def increment_rx_failure_count(self) -> None:
        self._rx_failure_count += 1

    @property
    def rx_failure_count(self) -> int:
        return self._rx_failure_count

    def _sum_dc_channels(self, field: Field) -> float:
        return sum(
            (self.value(ch, field) for ch in range(1, self.channel_count() + 1)), 0.0
        )

    def _calc_yield_total(self, _arg: int) -> float:
        return self._sum_dc_channels(Field.YT)

    def _calc_yield_day(self, _arg: int) -> float:
        return self._sum_dc_channels(Field.YD)

    def _calc_udc(self, source_channel: int) -> float:
        return self.value(source_channel, Field.UDC)

    def _calc_power_dc(self, _arg: int) -> float:
        return self._sum_dc_channels(Field.PDC)

    def _calc_efficiency(self, _arg: int) -> float:
        ac_power = self.value(CH0, Field.PAC)
        dc_power = self._sum_dc_channels(Field.PDC)
        if dc_power > 0:
            return ac_power / dc_power * 100.0
        return 0.0

    def _calc_irradiation(self, channel: int) -> float:
        max_power = self.channel_max_power(channel - 1)
        if max_power > 0:
            return self.value(channel, Field.PDC) / max_power * 100.0
        return 0.0

    _calculations = {
        Calc.YT_CH0: _calc_yield_total,
        Calc.YD_CH0: _calc_yield_day,
        Calc.UDC_CH: _calc_udc,
        Calc.PDC_CH0: _calc_power_dc,
        Calc.EFF_CH0: _calc_efficiency,
        Calc.IRR_CH: _calc_irradiation,
    }