from dtuhub.frame import Fragment, serial_to_packet_id
from dtuhub.hm import HM1Channel, HM2Channel, HM4Channel
from dtuhub.hoymiles import Hoymiles

SERIAL_1CH = 0x112100000001
SERIAL_2CH = 0x114100000002
SERIAL_4CH = 0x116100000003


class FakeTransceiver:
    def __init__(self):
        self.written = []
        self.channel = 0

    def begin(self): pass
    def set_data_rate(self, kbps): pass
    def enable_dynamic_payloads(self): pass
    def set_crc_length(self, bits): pass
    def set_address_width(self, width): pass
    def set_retries(self, delay, count): pass
    def mask_irq(self, tx_ok, tx_fail, rx_ready): pass
    def set_pa_level(self, level): pass
    def is_chip_connected(self): return True
    def is_p_variant(self): return True
    def open_reading_pipe(self, pipe, address): pass
    def open_writing_pipe(self, address): pass
    def start_listening(self): pass
    def stop_listening(self): pass
    def set_channel(self, channel): self.channel = channel
    def get_channel(self): return self.channel
    def available(self): return False
    def dynamic_payload_size(self): return 0
    def read(self, length): return b""
    def flush_rx(self): pass

    def write(self, data):
        self.written.append(bytes(data))
        return True


class FakeClock:
    def __init__(self, now=1000):
        self.now = now

    def __call__(self):
        return self.now


def make_hub():
    clock = FakeClock()
    transceiver = FakeTransceiver()
    return Hoymiles(transceiver, clock), transceiver, clock


def test_add_inverter_picks_model():
    hub, _, _ = make_hub()
    assert isinstance(hub.add_inverter("a", SERIAL_1CH), HM1Channel)
    assert isinstance(hub.add_inverter("b", SERIAL_2CH), HM2Channel)
    assert isinstance(hub.add_inverter("c", SERIAL_4CH), HM4Channel)
    assert len(hub) == 3


def test_add_inverter_rejects_unknown_serial():
    hub, _, _ = make_hub()
    assert hub.add_inverter("x", 0x999900000000) is None
    assert len(hub) == 0


def test_added_inverter_is_named_and_initialised():
    hub, _, _ = make_hub()
    inv = hub.add_inverter("roof", SERIAL_1CH)
    assert inv.name == "roof"
    assert inv.serial_string == "112100000001"
    assert inv.statistics.channel_count() == 1


def test_lookup_by_position_and_serial():
    hub, _, _ = make_hub()
    first = hub.add_inverter("a", SERIAL_1CH)
    second = hub.add_inverter("b", SERIAL_2CH)
    assert hub.inverter_by_pos(0) is first
    assert hub.inverter_by_pos(1) is second
    assert hub.inverter_by_pos(2) is None
    assert hub.inverter_by_serial(SERIAL_2CH) is second
    assert hub.inverter_by_serial(0x1) is None


def test_remove_inverter():
    hub, _, _ = make_hub()
    hub.add_inverter("a", SERIAL_1CH)
    hub.add_inverter("b", SERIAL_2CH)
    hub.remove_inverter_by_serial(SERIAL_1CH)
    assert len(hub) == 1
    assert hub.inverter_by_serial(SERIAL_1CH) is None
    hub.remove_inverter_by_serial(SERIAL_1CH)
    assert len(hub) == 1


def test_inverter_by_fragment():
    hub, _, _ = make_hub()
    inv = hub.add_inverter("a", SERIAL_2CH)
    data = bytes([0x95]) + serial_to_packet_id(SERIAL_2CH) + bytes(6)
    assert hub.inverter_by_fragment(Fragment(data=data)) is inv
    other = bytes([0x95]) + serial_to_packet_id(SERIAL_1CH) + bytes(6)
    assert hub.inverter_by_fragment(Fragment(data=other)) is None


def test_inverter_by_short_fragment():
    hub, _, _ = make_hub()
    hub.add_inverter("a", SERIAL_2CH)
    assert hub.inverter_by_fragment(Fragment(data=bytes(4))) is None


def test_loop_polls_and_sends_stats_request():
    hub, transceiver, _ = make_hub()
    inv = hub.add_inverter("a", SERIAL_1CH)
    inv.wall_clock = lambda: 1_700_000_000

    hub.loop()
    assert transceiver.written == []
    assert hub.radio.is_idle()

    hub.loop()
    assert len(transceiver.written) == 1
    packet = transceiver.written[0]
    assert packet[0] == 0x15
    assert packet[1:5] == serial_to_packet_id(SERIAL_1CH)
    assert packet[10] == 0x0B
    assert not hub.radio.is_idle()


def test_loop_without_inverters_sends_nothing():
    hub, transceiver, _ = make_hub()
    hub.loop()
    hub.loop()
    assert transceiver.written == []
    assert hub.radio.is_idle()


def test_poll_interval_delays_polling():
    hub, transceiver, clock = make_hub()
    hub.poll_interval = 5
    inv = hub.add_inverter("a", SERIAL_1CH)
    inv.wall_clock = lambda: 1_700_000_000
    hub.loop()
    hub.loop()
    assert transceiver.written == []
    clock.now = 10_000
    hub.loop()
    hub.loop()
    assert len(transceiver.written) == 1
    assert transceiver.written[0][10] == 0x0B