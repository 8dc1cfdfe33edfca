"""Radio link to the inverters: channel hopping, receive buffering and the command queue."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterator
from itertools import cycle
from typing import Protocol, TypeVar

from dtuhub.commands.core import Command
from dtuhub.crc import crc8
from dtuhub.frame import MAX_RF_PAYLOAD_SIZE, Fragment, serial_to_radio_id
from dtuhub.inverter import FragmentResult, Inverter
from dtuhub.timing import Clock, EveryN, Timeout, TimeUnit, millis

logger = logging.getLogger(__name__)

FRAGMENT_BUFFER_SIZE = 30
RX_CHANNELS = (3, 23, 40, 61, 75)
TX_CHANNELS = (3, 23, 40, 61, 75)
CHANNEL_HOP_MS = 4
READING_PIPE = 1

CommandT = TypeVar("CommandT", bound=Command)

_FAILURE_MESSAGES = {
    FragmentResult.ALL_MISSING_TIMEOUT: "Nothing received, resend count exceeded",
    FragmentResult.RETRANSMIT_TIMEOUT: "Retransmit timeout",
    FragmentResult.HANDLE_ERROR: "Packet handling error",
}


class Transceiver(Protocol):
    """The 2.4 GHz transceiver chip the radio drives."""

    def begin(self) -> None: ...

    def set_data_rate(self, kbps: int) -> None: ...

    def enable_dynamic_payloads(self) -> None: ...

    def set_crc_length(self, bits: int) -> None: ...

    def set_address_width(self, width: int) -> None: ...

    def set_retries(self, delay: int, count: int) -> None: ...

    def mask_irq(self, tx_ok: bool, tx_fail: bool, rx_ready: bool) -> None: ...

    def set_pa_level(self, level: int) -> None: ...

    def is_chip_connected(self) -> bool: ...

    def is_p_variant(self) -> bool: ...

    def open_reading_pipe(self, pipe: int, address: int) -> None: ...

    def open_writing_pipe(self, address: int) -> None: ...

    def start_listening(self) -> None: ...

    def stop_listening(self) -> None: ...

    def set_channel(self, channel: int) -> None: ...

    def get_channel(self) -> int: ...

    def available(self) -> bool: ...

    def dynamic_payload_size(self) -> int: ...

    def read(self, length: int) -> bytes: ...

    def flush_rx(self) -> None: ...

    def write(self, data: bytes) -> bool: ...


class _InverterRegistry(Protocol):
    def inverter_by_serial(self, serial: int) -> Inverter | None: ...

    def inverter_by_fragment(self, fragment: Fragment) -> Inverter | None: ...


def _channel_hopper(channels: tuple[int, ...]) -> Iterator[int]:
    hopper = cycle(channels)
    next(hopper)  # the first hop moves away from the first channel
    return hopper


class HoymilesRadio:
    """Sends queued commands to inverters and collects their answers."""

    def __init__(
        self,
        transceiver: Transceiver,
        registry: _InverterRegistry,
        clock: Clock = millis,
    ) -> None:
        self._radio = transceiver
        self._registry = registry
        self._clock = clock
        self._dtu_serial = 0
        self._packet_received = False
        self._rx_buffer: deque[Fragment] = deque()
        self._rx_timeout = Timeout(clock)
        self._busy = False
        self._queue: deque[Command] = deque()
        self._rx_channels = _channel_hopper(RX_CHANNELS)
        self._tx_channels = _channel_hopper(TX_CHANNELS)
        self._hop = EveryN(CHANNEL_HOP_MS, TimeUnit.MILLIS, clock)

        transceiver.begin()
        transceiver.set_data_rate(250)
        transceiver.enable_dynamic_payloads()
        transceiver.set_crc_length(16)
        transceiver.set_address_width(5)
        transceiver.set_retries(0, 0)
        # Only the receive interrupt is of interest.
        transceiver.mask_irq(True, True, False)
        if transceiver.is_chip_connected():
            logger.info("Connection successful")
        else:
            logger.error("Connection error!!")

        self._open_reading_pipe()
        transceiver.start_listening()

    @property
    def dtu_serial(self) -> int:
        return self._dtu_serial

    @dtu_serial.setter
    def dtu_serial(self, serial: int) -> None:
        self._dtu_serial = serial
        self._open_reading_pipe()

    def set_pa_level(self, level: int) -> None:
        self._radio.set_pa_level(level)

    def is_idle(self) -> bool:
        return not self._busy

    def is_connected(self) -> bool:
        return self._radio.is_chip_connected()

    def is_p_variant(self) -> bool:
        return self._radio.is_p_variant()

    def enqueue_command(self, command_class: type[CommandT]) -> CommandT:
        """Create a command of ``command_class``, queue it and return it."""
        command = command_class()
        self._queue.append(command)
        return command

    def handle_interrupt(self) -> None:
        """Signal that the transceiver has received data."""
        self._packet_received = True

    def loop(self) -> None:
        """Run one step of receiving, verifying and sending."""
        if self._hop:
            self._switch_rx_channel()

        if self._packet_received:
            self._drain_transceiver()
            self._packet_received = False
        elif self._rx_buffer:
            self._process_buffered_fragment()

        if self._busy and self._rx_timeout.occurred():
            self._finish_receive_period()
        elif not self._busy and self._queue:
            command = self._queue[0]
            inverter = self._registry.inverter_by_serial(command.target_address)
            if inverter is not None:
                inverter.clear_rx_fragment_buffer()
                self._send_esb_packet(command)
            else:
                logger.warning("TX: Invalid inverter found")
                self._queue.popleft()

    def _drain_transceiver(self) -> None:
        logger.debug("Interrupt received")
        while self._radio.available():
            if len(self._rx_buffer) > FRAGMENT_BUFFER_SIZE:
                logger.warning("Buffer full")
                self._radio.flush_rx()
                continue
            length = min(self._radio.dynamic_payload_size(), MAX_RF_PAYLOAD_SIZE)
            channel = self._radio.get_channel()
            data = bytes(self._radio.read(length))[:length]
            self._rx_buffer.append(Fragment(data=data, channel=channel))

    def _process_buffered_fragment(self) -> None:
        fragment = self._rx_buffer[-1]
        if self._fragment_crc_ok(fragment):
            inverter = self._registry.inverter_by_fragment(fragment)
            if inverter is not None:
                logger.debug(
                    "RX Channel: %d --> %s",
                    fragment.channel,
                    " ".join(f"{b:02X}" for b in fragment.data),
                )
                try:
                    inverter.add_rx_fragment(fragment.data)
                except ValueError as exc:
                    logger.error("Fragment rejected: %s", exc)
            else:
                logger.warning("Inverter Not found!")
        else:
            logger.warning("Frame corrupted")
        # The fragment is dropped even if it was corrupted.
        self._rx_buffer.popleft()

    def _finish_receive_period(self) -> None:
        logger.debug("RX Period End")
        command = self._queue[0]
        inverter = self._registry.inverter_by_serial(command.target_address)
        if inverter is None:
            logger.warning("RX: Invalid inverter found")
            self._complete_command()
            return

        result = inverter.verify_all_fragments(command)
        if result == FragmentResult.ALL_MISSING_RESEND:
            logger.info("Nothing received, resend whole request")
            self._send_esb_packet(command)
        elif result in _FAILURE_MESSAGES:
            logger.warning(_FAILURE_MESSAGES[FragmentResult(result)])
            self._complete_command()
        elif result > 0:
            logger.info("Request retransmit: %d", result)
            self._send_retransmit_packet(result)
        else:
            logger.info("Success")
            self._complete_command()

    def _complete_command(self) -> None:
        self._queue.popleft()
        self._busy = False

    @staticmethod
    def _fragment_crc_ok(fragment: Fragment) -> bool:
        if not fragment.data:
            return False
        return crc8(fragment.data[:-1]) == fragment.data[-1]

    def _switch_rx_channel(self) -> None:
        self._radio.stop_listening()
        self._radio.set_channel(next(self._rx_channels))
        self._radio.start_listening()

    def _open_reading_pipe(self) -> None:
        self._radio.open_reading_pipe(READING_PIPE, serial_to_radio_id(self._dtu_serial))

    def _send_esb_packet(self, command: Command) -> None:
        command.increment_send_count()
        command.router_address = self._dtu_serial

        self._radio.stop_listening()
        self._radio.set_channel(next(self._tx_channels))
        self._radio.open_writing_pipe(serial_to_radio_id(command.target_address))
        self._radio.set_retries(3, 15)

        logger.debug(
            "TX %s Channel: %d --> %s",
            command.command_name,
            self._radio.get_channel(),
            command.dump_data_payload(),
        )
        self._radio.write(command.data_payload())

        self._radio.set_retries(0, 0)
        self._open_reading_pipe()
        self._radio.set_channel(next(self._rx_channels))
        self._radio.start_listening()
        self._busy = True
        self._rx_timeout.set(command.timeout)

    def _send_retransmit_packet(self, fragment_id: int) -> None:
        request = self._queue[0].request_frame_command(fragment_id)
        if request is not None:
            self._send_esb_packet(request)