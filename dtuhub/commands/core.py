"""Base radio commands: payload layout, addressing, checksums and framing."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from dtuhub.crc import crc8, crc16
from dtuhub.frame import Fragment, serial_to_packet_id

RF_LEN = 32


class Command(ABC):
    """A request sent to an inverter, built in a fixed-size payload buffer."""

    command_name: str = ""

    def __init__(self, target_address: int = 0, router_address: int = 0) -> None:
        self._payload = bytearray(RF_LEN)
        self._payload_size = 0
        self._target_address = 0
        self._router_address = 0
        self.target_address = target_address
        self.router_address = router_address
        self.send_count = 0
        self.timeout = 0

    def data_payload(self) -> bytes:
        """The payload followed by its CRC-8, as sent on air."""
        self._payload[self._payload_size] = crc8(self._payload[: self._payload_size])
        return bytes(self._payload[: self.data_size()])

    def dump_data_payload(self) -> str:
        """The payload as upper-case hex bytes separated by spaces."""
        return " ".join(f"{b:02X}" for b in self.data_payload())

    def data_size(self) -> int:
        return self._payload_size + 1

    @property
    def target_address(self) -> int:
        return self._target_address

    @target_address.setter
    def target_address(self, address: int) -> None:
        self._payload[1:5] = serial_to_packet_id(address)
        self._target_address = address

    @property
    def router_address(self) -> int:
        return self._router_address

    @router_address.setter
    def router_address(self, address: int) -> None:
        self._payload[5:9] = serial_to_packet_id(address)
        self._router_address = address

    def increment_send_count(self) -> int:
        """Count one more transmission; returns the count before it."""
        previous = self.send_count
        self.send_count = (self.send_count + 1) & 0xFF
        return previous

    def request_frame_command(self, frame_no: int) -> Command | None:
        """Command asking for a missing frame, if this command supports it."""
        return None

    @abstractmethod
    def handle_response(self, inverter: Any, fragments: Sequence[Fragment]) -> bool:
        """Process the received fragments; True if they were accepted."""

    def got_timeout(self, inverter: Any) -> None:
        """Called when no valid answer arrived in time."""


class SingleDataCommand(Command):
    """A command fitting in a single frame."""

    def __init__(self, target_address: int = 0, router_address: int = 0) -> None:
        super().__init__(target_address, router_address)
        self._payload[0] = 0x15
        self.timeout = 100


class RequestFrameCommand(SingleDataCommand):
    """Asks the inverter to retransmit one frame."""

    command_name = "RequestFrame"

    def __init__(
        self, target_address: int = 0, router_address: int = 0, frame_no: int = 0
    ) -> None:
        super().__init__(target_address, router_address)
        if frame_no > 127:
            frame_no = 0
        self.frame_no = frame_no
        self._payload_size = 10

    @property
    def frame_no(self) -> int:
        return self._payload[9] & 0x7F

    @frame_no.setter
    def frame_no(self, value: int) -> None:
        self._payload[9] = (value | 0x80) & 0xFF

    def handle_response(self, inverter: Any, fragments: Sequence[Fragment]) -> bool:
        return True


class MultiDataCommand(Command):
    """A request whose answer spans several frames, protected by CRC-16."""

    def __init__(
        self,
        target_address: int = 0,
        router_address: int = 0,
        data_type: int = 0,
        time: int = 0,
    ) -> None:
        super().__init__(target_address, router_address)
        self._payload[0] = 0x15
        self._payload[9] = 0x80
        self._payload[10] = data_type & 0xFF
        self._payload[11] = 0x00
        self._payload[12:16] = (time & 0xFFFFFFFF).to_bytes(4, "big")
        # Gap and password bytes.
        self._payload[16:24] = bytes(8)
        self.update_crc()
        self._payload_size = 26
        self._request_frame = RequestFrameCommand()

    @property
    def time(self) -> int:
        return int.from_bytes(self._payload[12:16], "big", signed=True)

    @time.setter
    def time(self, value: int) -> None:
        self._payload[12:16] = (value & 0xFFFFFFFF).to_bytes(4, "big")
        self.update_crc()

    @property
    def data_type(self) -> int:
        return self._payload[10]

    @data_type.setter
    def data_type(self, value: int) -> None:
        self._payload[10] = value & 0xFF
        self.update_crc()

    def update_crc(self) -> None:
        """Recompute the CRC-16 over data type through password."""
        crc = crc16(self._payload[10:24])
        self._payload[24] = crc >> 8
        self._payload[25] = crc & 0xFF

    def request_frame_command(self, frame_no: int) -> RequestFrameCommand:
        self._request_frame.target_address = self.target_address
        self._request_frame.frame_no = frame_no
        return self._request_frame

    def handle_response(self, inverter: Any, fragments: Sequence[Fragment]) -> bool:
        """True if the CRC-16 over all fragments matches the one received."""
        if not fragments:
            return False
        *body, last = fragments
        crc = 0xFFFF
        for fragment in body:
            crc = crc16(fragment.data, crc)
        if len(last.data) < 2:
            return False
        crc = crc16(last.data[:-2], crc)
        received = (last.data[-2] << 8) | last.data[-1]
        return crc == received


class DevControlCommand(Command):
    """A device control command answered by a single acknowledgement."""

    def __init__(self, target_address: int = 0, router_address: int = 0) -> None:
        super().__init__(target_address, router_address)
        self._payload[0] = 0x51
        self._payload[9] = 0x81
        self.timeout = 1000

    def update_crc(self, length: int) -> None:
        """Write the CRC-16 of ``length`` bytes from offset 10 right after them."""
        crc = crc16(self._payload[10 : 10 + length])
        self._payload[10 + length] = crc >> 8
        self._payload[11 + length] = crc & 0xFF

    def handle_response(self, inverter: Any, fragments: Sequence[Fragment]) -> bool:
        expected = self._payload[0] | 0x80
        return all(fragment.main_cmd == expected for fragment in fragments)


class ParaSetCommand(Command):
    """A parameter-setting command."""

    def __init__(self, target_address: int = 0, router_address: int = 0) -> None:
        super().__init__(target_address, router_address)
        self._payload[0] = 0x52