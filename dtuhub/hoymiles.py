"""The inverter registry and polling scheduler."""

from __future__ import annotations

import logging
import threading

from dtuhub.frame import Fragment, serial_to_packet_id
from dtuhub.hm import HM1Channel, HM2Channel, HM4Channel, HmInverter
from dtuhub.parser import CommandStatus
from dtuhub.radio import HoymilesRadio, Transceiver
from dtuhub.timing import Clock, millis

logger = logging.getLogger(__name__)

SYSTEM_CONFIG_PARA_POLL_INTERVAL = 2 * 60 * 1000
# Minimum gap between a limit command and a read request, avoiding an event log entry.
SYSTEM_CONFIG_PARA_POLL_MIN_DURATION = 4 * 60 * 1000

_U32 = 0xFFFFFFFF

_MODELS: tuple[type[HmInverter], ...] = (HM4Channel, HM2Channel, HM1Channel)


class Hoymiles:
    """Holds the known inverters and polls them one after another over the radio."""

    def __init__(self, transceiver: Transceiver, clock: Clock = millis) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._inverters: list[HmInverter] = []
        self._inverter_pos = 0
        self._last_poll = 0
        self.poll_interval = 0
        self.radio = HoymilesRadio(transceiver, self, clock)

    def _since(self, then: int) -> int:
        return (self._clock() - then) & _U32

    def loop(self) -> None:
        """Run the radio and, when the poll interval has passed, poll the next inverter."""
        with self._lock:
            self.radio.loop()

            if not self._inverters:
                return
            if self._since(self._last_poll) <= self.poll_interval * 1000:
                return

            if self.radio.is_idle():
                inverter = self.inverter_by_pos(self._inverter_pos)
                if inverter is not None:
                    self._poll(inverter)
                self._inverter_pos += 1
                if self._inverter_pos >= len(self._inverters):
                    self._inverter_pos = 0

            self._last_poll = self._clock()

    def _poll(self, inv: HmInverter) -> None:
        radio = self.radio
        logger.info("Fetch inverter: %X", inv.serial)

        inv.send_stats_request(radio)

        force = inv.event_log.last_alarm_request_success is CommandStatus.NOK
        inv.send_alarm_log_request(radio, force)

        config = inv.system_config_para
        if config.last_limit_request_success is CommandStatus.NOK or (
            self._since(config.last_update_request) > SYSTEM_CONFIG_PARA_POLL_INTERVAL
            and self._since(config.last_update_command) > SYSTEM_CONFIG_PARA_POLL_MIN_DURATION
        ):
            logger.info("Request SystemConfigPara")
            inv.send_system_config_para_request(radio)

        if config.last_limit_command_success is CommandStatus.NOK:
            logger.info("Resend ActivePowerControl")
            inv.resend_active_power_control_request(radio)

        if inv.power_command.last_power_command_success is CommandStatus.NOK:
            logger.info("Resend PowerCommand")
            inv.resend_power_control_request(radio)

        if inv.statistics.last_update > 0 and (
            inv.dev_info.last_update_all == 0 or inv.dev_info.last_update_simple == 0
        ):
            logger.info("Request device info")
            inv.send_dev_info_request(radio)

    def add_inverter(self, name: str, serial: int) -> HmInverter | None:
        """Register an inverter; None if the serial belongs to no known model."""
        model = next((m for m in _MODELS if m.is_valid_serial(serial)), None)
        if model is None:
            return None
        inverter = model(serial)
        inverter.clock = self._clock
        inverter.name = name
        inverter.init()
        self._inverters.append(inverter)
        return inverter

    def inverter_by_pos(self, pos: int) -> HmInverter | None:
        if 0 <= pos < len(self._inverters):
            return self._inverters[pos]
        return None

    def inverter_by_serial(self, serial: int) -> HmInverter | None:
        return next((inv for inv in self._inverters if inv.serial == serial), None)

    def inverter_by_fragment(self, fragment: Fragment) -> HmInverter | None:
        """The inverter whose address a received fragment carries."""
        data = fragment.data
        if len(data) <= 4:
            return None
        address = bytes(data[1:5])
        return next(
            (inv for inv in self._inverters if serial_to_packet_id(inv.serial) == address),
            None,
        )

    def remove_inverter_by_serial(self, serial: int) -> None:
        inverter = self.inverter_by_serial(serial)
        if inverter is not None:
            with self._lock:
                self._inverters.remove(inverter)

    def __len__(self) -> int:
        return len(self._inverters)