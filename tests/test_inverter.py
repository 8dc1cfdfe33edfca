import pytest

from dtuhub.commands.core import Command
from dtuhub.crc import crc8
from dtuhub.inverter import (
    MAX_NAME_LENGTH,
    MAX_RETRANSMIT_COUNT,
    FragmentResult,
    Inverter,
)
from dtuhub.statistics import ByteAssign, Field, Unit

SERIAL = 0x116100000001


class SampleInverter(Inverter):
    def type_name(self):
        return "Sample"

    def byte_assignment(self):
        return [
            ByteAssign(1, Field.UDC, Unit.V, 0, 2, 10),
            ByteAssign(2, Field.UDC, Unit.V, 2, 2, 10),
            ByteAssign(0, Field.PAC, Unit.W, 4, 2, 10),
        ]

    def send_stats_request(self, radio):
        return False

    def send_alarm_log_request(self, radio, force=False):
        return False

    def send_dev_info_request(self, radio):
        return False

    def send_system_config_para_request(self, radio):
        return False

    def send_active_power_control_request(self, radio, limit, limit_type):
        return False

    def resend_active_power_control_request(self, radio):
        return False

    def send_power_control_request(self, radio, turn_on):
        return False

    def send_restart_control_request(self, radio):
        return False

    def resend_power_control_request(self, radio):
        return False


class RecordingCommand(Command):
    def __init__(self, accept=True):
        super().__init__()
        self.accept = accept
        self.received = None
        self.timeouts = 0

    def handle_response(self, inverter, fragments):
        self.received = list(fragments)
        return self.accept

    def got_timeout(self, inverter):
        self.timeouts += 1


def packet(frame, payload=b"\xaa\xbb", main_cmd=0x95):
    body = bytes([main_cmd]) + bytes(8) + bytes([frame]) + payload
    return body + bytes([crc8(body)])


def make_inverter(serial=SERIAL):
    inv = SampleInverter(serial)
    Inverter.init(inv)
    return inv


def test_serial_string():
    assert make_inverter().serial_string == "116100000001"
    assert make_inverter(0x12345678).serial_string == "012345678"


def test_name_truncated():
    inv = make_inverter()
    inv.name = "x" * 40
    assert inv.name == "x" * (MAX_NAME_LENGTH - 1)
    inv.name = "Roof"
    assert inv.name == "Roof"


def test_init_sets_byte_assignment():
    inv = make_inverter()
    assert inv.statistics.channel_count() == 2
    assert inv.type_name() == "Sample"


def test_is_producing():
    inv = make_inverter()
    assert inv.is_producing() is False
    inv.statistics.append_fragment(4, (100).to_bytes(2, "big"))
    assert inv.is_producing() is True


def test_is_reachable():
    inv = make_inverter()
    for _ in range(2):
        inv.statistics.increment_rx_failure_count()
    assert inv.is_reachable() is True
    inv.statistics.increment_rx_failure_count()
    assert inv.is_reachable() is False


def test_add_rx_fragment_errors():
    inv = make_inverter()
    with pytest.raises(ValueError):
        inv.add_rx_fragment(bytes(10))
    with pytest.raises(ValueError):
        inv.add_rx_fragment(packet(0))


def test_all_missing_resend_then_timeout():
    inv = make_inverter()
    cmd = RecordingCommand()
    assert inv.verify_all_fragments(cmd) == FragmentResult.ALL_MISSING_RESEND
    assert cmd.timeouts == 0
    cmd.send_count = 5
    assert inv.verify_all_fragments(cmd) == FragmentResult.ALL_MISSING_TIMEOUT
    assert cmd.timeouts == 1


def test_last_fragment_missing_requests_next():
    inv = make_inverter()
    inv.add_rx_fragment(packet(0x01))
    cmd = RecordingCommand()
    results = [inv.verify_all_fragments(cmd) for _ in range(MAX_RETRANSMIT_COUNT)]
    assert results == [2] * MAX_RETRANSMIT_COUNT
    assert inv.verify_all_fragments(cmd) == FragmentResult.RETRANSMIT_TIMEOUT
    assert cmd.timeouts == 1


def test_middle_fragment_missing():
    inv = make_inverter()
    inv.add_rx_fragment(packet(0x01))
    inv.add_rx_fragment(packet(0x83))
    assert inv.verify_all_fragments(RecordingCommand()) == 2


def test_all_received_hands_payloads_to_command():
    inv = make_inverter()
    inv.add_rx_fragment(packet(0x01, b"\x01\x02"))
    inv.add_rx_fragment(packet(0x82, b"\x03\x04\x05"))
    cmd = RecordingCommand()
    assert inv.verify_all_fragments(cmd) == FragmentResult.OK
    assert [f.data for f in cmd.received] == [b"\x01\x02", b"\x03\x04\x05"]
    assert all(f.main_cmd == 0x95 and f.was_received for f in cmd.received)
    assert cmd.timeouts == 0


def test_rejected_response_is_handle_error():
    inv = make_inverter()
    inv.add_rx_fragment(packet(0x81))
    cmd = RecordingCommand(accept=False)
    assert inv.verify_all_fragments(cmd) == FragmentResult.HANDLE_ERROR
    assert cmd.timeouts == 1


def test_clear_rx_fragment_buffer():
    inv = make_inverter()
    inv.add_rx_fragment(packet(0x81))
    inv.clear_rx_fragment_buffer()
    assert inv.verify_all_fragments(RecordingCommand()) == FragmentResult.ALL_MISSING_RESEND