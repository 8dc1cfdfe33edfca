"""Common inverter state: identity, parsers and reassembly of received fragments."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from enum import IntEnum
from typing import Any

from dtuhub.alarm_log import AlarmLogParser
from dtuhub.commands.core import Command
from dtuhub.commands.requests import PowerLimitControlType
from dtuhub.dev_info import DevInfoParser
from dtuhub.frame import MAX_RF_PAYLOAD_SIZE, Fragment
from dtuhub.parser import PowerCommandParser, SystemConfigParaParser
from dtuhub.statistics import CH0, ByteAssign, Field, StatisticsParser
from dtuhub.timing import millis

MAX_NAME_LENGTH = 32
MAX_RF_FRAGMENT_COUNT = 13
MAX_RETRANSMIT_COUNT = 5
MAX_RESEND_COUNT = 4
MAX_ONLINE_FAILURE_COUNT = 2


class FragmentResult(IntEnum):
    """Outcome codes of :meth:`Inverter.verify_all_fragments`."""

    OK = 0
    HANDLE_ERROR = 252
    RETRANSMIT_TIMEOUT = 253
    ALL_MISSING_TIMEOUT = 254
    ALL_MISSING_RESEND = 255


class Inverter(ABC):
    """An inverter on the radio link with its decoded data."""

    def __init__(self, serial: int) -> None:
        self.serial = serial
        self._serial_string = f"{(serial >> 32) & 0xFFFFFFFF:x}{serial & 0xFFFFFFFF:08x}"
        self._name = ""
        self.clock = millis

        self.event_log = AlarmLogParser()
        self.dev_info = DevInfoParser()
        self.power_command = PowerCommandParser()
        self.statistics = StatisticsParser()
        self.system_config_para = SystemConfigParaParser()

        self.clear_rx_fragment_buffer()

    def init(self) -> None:
        """Hand the model's byte layout to the statistics parser."""
        self.statistics.set_byte_assignment(self.byte_assignment())

    @property
    def serial_string(self) -> str:
        return self._serial_string

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        self._name = value[: MAX_NAME_LENGTH - 1]

    @abstractmethod
    def type_name(self) -> str:
        """Models this inverter class covers."""

    @abstractmethod
    def byte_assignment(self) -> Sequence[ByteAssign]:
        """Layout of the statistics payload for this model."""

    def is_producing(self) -> bool:
        if not self.statistics.has_value(CH0, Field.PAC):
            return False
        return self.statistics.value(CH0, Field.PAC) > 0

    def is_reachable(self) -> bool:
        return self.statistics.rx_failure_count <= MAX_ONLINE_FAILURE_COUNT

    def clear_rx_fragment_buffer(self) -> None:
        self._rx_fragments = [Fragment() for _ in range(MAX_RF_FRAGMENT_COUNT)]
        self._max_packet_id = 0
        self._last_packet_id = 0
        self._retransmit_count = 0

    def add_rx_fragment(self, data: bytes | Iterable[int]) -> None:
        """Store a raw received packet (header, payload, trailing CRC-8)."""
        raw = bytes(data)
        if len(raw) < 11:
            raise ValueError("fragment too short")
        if len(raw) - 11 > MAX_RF_PAYLOAD_SIZE:
            raise ValueError("fragment too large")

        count = raw[9]
        if count == 0:
            raise ValueError("fragment number zero received")

        frame_id = count & 0x7F
        if 0 < frame_id < MAX_RF_FRAGMENT_COUNT:
            self._rx_fragments[frame_id - 1] = Fragment(
                data=raw[10:-1], main_cmd=raw[0], was_received=True
            )
            self._last_packet_id = max(self._last_packet_id, frame_id)

        if count & 0x80:
            self._max_packet_id = frame_id

    def _next_retransmit(self, cmd: Command, fragment_id: int) -> int:
        attempts = self._retransmit_count
        self._retransmit_count += 1
        if attempts < MAX_RETRANSMIT_COUNT:
            return fragment_id
        cmd.got_timeout(self)
        return FragmentResult.RETRANSMIT_TIMEOUT

    def verify_all_fragments(self, cmd: Command) -> int:
        """A :class:`FragmentResult`, or the id of a fragment to request again."""
        if self._last_packet_id == 0:
            if cmd.send_count <= MAX_RESEND_COUNT:
                return FragmentResult.ALL_MISSING_RESEND
            cmd.got_timeout(self)
            return FragmentResult.ALL_MISSING_TIMEOUT

        if self._max_packet_id == 0:
            return self._next_retransmit(cmd, self._last_packet_id + 1)

        for index in range(self._max_packet_id - 1):
            received = (
                index < len(self._rx_fragments)
                and self._rx_fragments[index].was_received
            )
            if not received:
                return self._next_retransmit(cmd, index + 1)

        if not cmd.handle_response(self, self._rx_fragments[: self._max_packet_id]):
            cmd.got_timeout(self)
            return FragmentResult.HANDLE_ERROR

        return FragmentResult.OK

    @abstractmethod
    def send_stats_request(self, radio: Any) -> bool:
        """Queue a real-time data request."""

    @abstractmethod
    def send_alarm_log_request(self, radio: Any, force: bool = False) -> bool:
        """Queue an alarm log request."""

    @abstractmethod
    def send_dev_info_request(self, radio: Any) -> bool:
        """Queue device info requests."""

    @abstractmethod
    def send_system_config_para_request(self, radio: Any) -> bool:
        """Queue a system config request."""

    @abstractmethod
    def send_active_power_control_request(
        self, radio: Any, limit: float, limit_type: PowerLimitControlType
    ) -> bool:
        """Queue a power limit command."""

    @abstractmethod
    def resend_active_power_control_request(self, radio: Any) -> bool:
        """Queue the last power limit command again."""

    @abstractmethod
    def send_power_control_request(self, radio: Any, turn_on: bool) -> bool:
        """Queue a power on/off command."""

    @abstractmethod
    def send_restart_control_request(self, radio: Any) -> bool:
        """Queue a restart command."""

    @abstractmethod
    def resend_power_control_request(self, radio: Any) -> bool:
        """Queue the last power command again."""