# dtuhub

`dtuhub` covers the protocol side of a data transfer unit (DTU) for Hoymiles
HM-series micro-inverters, from HM-300 to HM-1500. It can:

- build the request frames the inverters expect,
- put received radio fragments back together and check them,
- decode real-time statistics, device information, alarm logs and the power limit,
- poll a set of registered inverters one after another.

The package does not drive any radio hardware. You pass in an object that
implements the `dtuhub.radio.Transceiver` protocol: channel switching, reading
and writing pipes, reading received payloads, writing a payload, and so on.
`dtuhub` runs the command queue on top of that object.

## Installation

```
pip install dtuhub
```

To run the tests:

```
pip install "dtuhub[test]"
pytest
```

## Modules

| Module | Contents |
| --- | --- |
| `dtuhub.crc` | `crc8`, `crc16` (Modbus variant) and `crc16_nrf24` |
| `dtuhub.frame` | `Fragment`, `serial_to_packet_id`, `serial_to_radio_id` |
| `dtuhub.timing` | `millis`, `Timeout`, `EveryN` with `TimeUnit` |
| `dtuhub.topic_match` | MQTT subscription matching: `topic_matches_sub`, `SubscribeParser`, `Subscription`, `TopicError` |
| `dtuhub.reset_reason` | `reset_reason_verbose` and `reset_reason_short` for chip reset codes |
| `dtuhub.parser` | `CommandStatus`, `Parser`, `PowerCommandParser`, `SystemConfigParaParser` |
| `dtuhub.statistics` | `StatisticsParser`, `ByteAssign`, `Field`, `Unit`, `Calc` |
| `dtuhub.dev_info` | `DevInfoParser`, `timegm` |
| `dtuhub.alarm_log` | `AlarmLogParser`, `AlarmLogEntry`, `alarm_message` |
| `dtuhub.commands.core` | `Command` and the base frames: `SingleDataCommand`, `RequestFrameCommand`, `MultiDataCommand`, `DevControlCommand`, `ParaSetCommand` |
| `dtuhub.commands.requests` | `RealTimeRunDataCommand`, `DevInfoAllCommand`, `DevInfoSimpleCommand`, `AlarmDataCommand`, `SystemConfigParaCommand`, `ActivePowerControlCommand`, `PowerControlCommand`, `PowerLimitControlType` |
| `dtuhub.inverter` | `Inverter` (abstract), `FragmentResult` |
| `dtuhub.hm` | `HmInverter`, `HM1Channel`, `HM2Channel`, `HM4Channel` |
| `dtuhub.radio` | `HoymilesRadio`, the `Transceiver` protocol |
| `dtuhub.hoymiles` | `Hoymiles`, the inverter registry and polling loop |

## Examples

```python
from dtuhub.crc import crc8
from dtuhub.topic_match import topic_matches_sub
from dtuhub.hm import HM2Channel

crc8(b"\x15\x00")
topic_matches_sub("solar/+/cmd/power", "solar/abc/cmd/power")  # True
HM2Channel.is_valid_serial(0x114100000001)                     # True
```

Decoding a statistics payload directly:

```python
from dtuhub.hm import HM1Channel
from dtuhub.statistics import CH1, Field

inv = HM1Channel(0x112100000001)
inv.init()                                   # loads the model's byte layout
inv.statistics.append_fragment(0, bytes([0x00, 0x01, 0x01, 0x2C]))
inv.statistics.value(CH1, Field.UDC)         # 30.0
inv.statistics.unit(CH1, Field.UDC)          # "V"
```

## Polling inverters

1. Create `Hoymiles(transceiver)`. You can also pass a millisecond `clock`.
2. Set `hoymiles.radio.dtu_serial`.
3. Set `hoymiles.poll_interval`, in seconds.
4. Register each unit with `add_inverter(name, serial)`. It returns `None` for a
   serial that matches no known model.
5. Call `hoymiles.radio.handle_interrupt()` whenever the transceiver has received
   data.
6. Call `hoymiles.loop()` repeatedly.

Each call to `loop()` advances the radio by one step. Once the poll interval has
passed and the radio is idle, `loop()` queues requests for the next inverter:

- run data,
- the alarm log,
- the system config (limit), when it is due,
- resends of a failed limit or power command,
- device info, once statistics have arrived.

When responses come in, the inverter's `statistics`, `dev_info`, `event_log`,
`system_config_para` and `power_command` are updated. Progress is reported
through the standard `logging` module.

An inverter queues a timed request only after the wall clock has been set, that
is, once `time.time()` reports 2017 or later.

## What this package does not do

The package contains:

- no transceiver driver,
- no MQTT client or publishing of inverter values,
- no web interface or display,
- no stored configuration.

`dtuhub.topic_match` only decides whether a topic matches a subscription and
dispatches messages to registered callbacks. Connecting to a broker is left to
the application.