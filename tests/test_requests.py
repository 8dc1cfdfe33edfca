from types import SimpleNamespace

import pytest

from dtuhub.alarm_log import AlarmLogParser
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
from dtuhub.crc import crc16
from dtuhub.dev_info import DevInfoParser
from dtuhub.frame import Fragment
from dtuhub.parser import CommandStatus, PowerCommandParser, SystemConfigParaParser
from dtuhub.statistics import ByteAssign, Field, StatisticsParser, Unit

CLOCK = 1234
ACK = 0x51 | 0x80


def make_inverter():
    return SimpleNamespace(
        system_config_para=SystemConfigParaParser(),
        dev_info=DevInfoParser(),
        event_log=AlarmLogParser(),
        power_command=PowerCommandParser(),
        statistics=StatisticsParser(),
        clock=lambda: CLOCK,
    )


def make_fragments(body, size=16):
    data = bytes(body) + crc16(bytes(body)).to_bytes(2, "big")
    return [Fragment(data=data[i : i + size]) for i in range(0, len(data), size)]


def check_dev_control_crc(payload, length):
    crc = crc16(payload[10 : 10 + length])
    assert payload[10 + length] == crc >> 8
    assert payload[11 + length] == crc & 0xFF


def test_active_power_control_layout():
    cmd = ActivePowerControlCommand()
    payload = cmd.data_payload()
    assert cmd.command_name == "ActivePowerControl"
    assert cmd.data_size() == 19
    assert payload[0] == 0x51
    assert payload[9] == 0x81
    assert payload[10] == 0x0B
    assert cmd.timeout == 2000
    check_dev_control_crc(payload, 6)


def test_set_active_power_limit_round_trip():
    cmd = ActivePowerControlCommand()
    cmd.set_active_power_limit(50, PowerLimitControlType.RELATIVE_PERSISTENT)
    payload = cmd.data_payload()
    assert cmd.limit == 50.0
    assert cmd.limit_type is PowerLimitControlType.RELATIVE_PERSISTENT
    assert payload[14:16] == bytes([0x01, 0x01])
    check_dev_control_crc(payload, 6)


def test_limit_drops_tenths():
    cmd = ActivePowerControlCommand()
    cmd.set_active_power_limit(12.5, PowerLimitControlType.ABSOLUTE_PERSISTENT)
    assert cmd.limit == 12.0


def test_active_power_relative_response():
    inv = make_inverter()
    cmd = ActivePowerControlCommand()
    cmd.set_active_power_limit(50, PowerLimitControlType.RELATIVE_NON_PERSISTENT)
    assert cmd.handle_response(inv, [Fragment(main_cmd=ACK)]) is True
    assert inv.system_config_para.limit_percent == 50.0
    assert inv.system_config_para.last_limit_command_success is CommandStatus.OK
    assert inv.system_config_para.last_update_command == CLOCK


def test_active_power_wrong_ack_rejected():
    inv = make_inverter()
    cmd = ActivePowerControlCommand()
    cmd.set_active_power_limit(50, PowerLimitControlType.RELATIVE_NON_PERSISTENT)
    assert cmd.handle_response(inv, [Fragment(main_cmd=0x95)]) is False
    assert inv.system_config_para.limit_percent == 0.0
    assert inv.system_config_para.last_update_command == 0


def test_active_power_absolute_uses_max_power():
    inv = make_inverter()
    inv.dev_info.append_fragment_simple(0, bytes([0, 0, 0x10, 0x12, 0x30, 0x01]))
    cmd = ActivePowerControlCommand()
    cmd.set_active_power_limit(750, PowerLimitControlType.ABSOLUTE_NON_PERSISTENT)
    assert cmd.handle_response(inv, [Fragment(main_cmd=ACK)]) is True
    assert inv.system_config_para.limit_percent == 50.0


def test_active_power_absolute_without_max_power_keeps_percent():
    inv = make_inverter()
    cmd = ActivePowerControlCommand()
    cmd.set_active_power_limit(750, PowerLimitControlType.ABSOLUTE_PERSISTENT)
    assert cmd.handle_response(inv, [Fragment(main_cmd=ACK)]) is True
    assert inv.system_config_para.limit_percent == 0.0
    assert inv.system_config_para.last_limit_command_success is CommandStatus.OK


def test_active_power_timeout():
    inv = make_inverter()
    ActivePowerControlCommand().got_timeout(inv)
    assert inv.system_config_para.last_limit_command_success is CommandStatus.NOK


def test_power_control_payload():
    cmd = PowerControlCommand()
    assert cmd.command_name == "PowerControl"
    assert cmd.data_size() == 15
    assert cmd.data_payload()[10] == 0x00
    cmd.set_power_on(False)
    payload = cmd.data_payload()
    assert payload[10] == 0x01
    check_dev_control_crc(payload, 2)
    cmd.set_restart()
    payload = cmd.data_payload()
    assert payload[10] == 0x02
    check_dev_control_crc(payload, 2)


def test_power_control_response_and_timeout():
    inv = make_inverter()
    cmd = PowerControlCommand()
    cmd.got_timeout(inv)
    assert inv.power_command.last_power_command_success is CommandStatus.NOK
    assert cmd.handle_response(inv, [Fragment(main_cmd=ACK)]) is True
    assert inv.power_command.last_power_command_success is CommandStatus.OK
    assert inv.power_command.last_update_command == CLOCK


@pytest.mark.parametrize(
    "cls, data_type, timeout, name",
    [
        (AlarmDataCommand, 0x11, 600, "AlarmData"),
        (DevInfoAllCommand, 0x01, 200, "DevInfoAll"),
        (DevInfoSimpleCommand, 0x00, 200, "DevInfoSimple"),
        (RealTimeRunDataCommand, 0x0B, 200, "RealTimeRunData"),
        (SystemConfigParaCommand, 0x05, 200, "SystemConfigPara"),
    ],
)
def test_multi_data_commands(cls, data_type, timeout, name):
    cmd = cls(0, 0, 1_700_000_000)
    payload = cmd.data_payload()
    assert cmd.data_type == data_type
    assert cmd.timeout == timeout
    assert cmd.command_name == name
    assert cmd.time == 1_700_000_000
    assert payload[10] == data_type
    crc = crc16(payload[10:24])
    assert (payload[24] << 8) | payload[25] == crc


def test_real_time_run_data_response():
    inv = make_inverter()
    inv.statistics.set_byte_assignment([ByteAssign(0, Field.UAC, Unit.V, 0, 2, 10)])
    inv.statistics.increment_rx_failure_count()
    body = (2345).to_bytes(2, "big") + bytes(20)
    cmd = RealTimeRunDataCommand()
    assert cmd.handle_response(inv, make_fragments(body)) is True
    assert inv.statistics.value(0, Field.UAC) == 234.5
    assert inv.statistics.rx_failure_count == 0
    assert inv.statistics.last_update == CLOCK


def test_real_time_run_data_bad_crc():
    inv = make_inverter()
    fragments = make_fragments(bytes(range(20)))
    last = fragments[-1]
    fragments[-1] = Fragment(data=last.data[:-1] + bytes([last.data[-1] ^ 0xFF]))
    assert RealTimeRunDataCommand().handle_response(inv, fragments) is False
    assert inv.statistics.last_update == 0


def test_real_time_run_data_timeout_counts_failures():
    inv = make_inverter()
    cmd = RealTimeRunDataCommand()
    cmd.got_timeout(inv)
    cmd.got_timeout(inv)
    assert inv.statistics.rx_failure_count == 2


def test_alarm_data_response():
    inv = make_inverter()
    body = bytes([0, 0]) + bytes([0x00, 0x01]) + bytes(10)
    cmd = AlarmDataCommand()
    assert cmd.handle_response(inv, make_fragments(body)) is True
    assert inv.event_log.entry_count() == 1
    entry = inv.event_log.log_entry(0)
    assert entry.message_id == 1
    assert entry.message == "Inverter start"
    assert inv.event_log.last_alarm_request_success is CommandStatus.OK
    assert inv.event_log.last_update == CLOCK


def test_alarm_data_timeout():
    inv = make_inverter()
    inv.event_log.last_alarm_request_success = CommandStatus.PENDING
    AlarmDataCommand().got_timeout(inv)
    assert inv.event_log.last_alarm_request_success is CommandStatus.NOK


def test_dev_info_all_response():
    inv = make_inverter()
    body = bytes([0x27, 0x10]) + bytes(8)
    assert DevInfoAllCommand().handle_response(inv, make_fragments(body)) is True
    assert inv.dev_info.fw_build_version() == 0x2710
    assert inv.dev_info.last_update_all == CLOCK


def test_dev_info_simple_response():
    inv = make_inverter()
    body = bytes([0, 0, 0x10, 0x12, 0x30, 0x01])
    assert DevInfoSimpleCommand().handle_response(inv, make_fragments(body)) is True
    assert inv.dev_info.hw_model_name() == "HM-1500"
    assert inv.dev_info.last_update_simple == CLOCK


def test_system_config_para_response_and_timeout():
    inv = make_inverter()
    body = bytes([0, 0, 0x03, 0xE8])
    cmd = SystemConfigParaCommand()
    assert cmd.handle_response(inv, make_fragments(body)) is True
    assert inv.system_config_para.limit_percent == 100.0
    assert inv.system_config_para.last_update_request == CLOCK
    assert inv.system_config_para.last_limit_request_success is CommandStatus.OK
    cmd.got_timeout(inv)
    assert inv.system_config_para.last_limit_request_success is CommandStatus.NOK