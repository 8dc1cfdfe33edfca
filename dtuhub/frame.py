"""Radio frame fragments and serial number encodings."""

from __future__ import annotations

from dataclasses import dataclass

MAX_RF_PAYLOAD_SIZE = 32


@dataclass
class Fragment:
    """One received radio fragment."""

    data: bytes = b""
    main_cmd: int = 0
    channel: int = 0
    was_received: bool = False

    def __post_init__(self) -> None:
        self.data = bytes(self.data)
        if len(self.data) > MAX_RF_PAYLOAD_SIZE:
            raise ValueError(
                f"fragment of {len(self.data)} bytes exceeds {MAX_RF_PAYLOAD_SIZE}"
            )

    @property
    def length(self) -> int:
        return len(self.data)

    def __len__(self) -> int:
        return len(self.data)


def serial_to_packet_id(serial: int) -> bytes:
    """The four address bytes a packet carries for ``serial``."""
    return (serial & 0xFFFFFFFF).to_bytes(4, "big")


def serial_to_radio_id(serial: int) -> int:
    """The 5-byte pipe address the radio uses for ``serial``."""
    return int.from_bytes(b"\x01" + serial_to_packet_id(serial), "little")