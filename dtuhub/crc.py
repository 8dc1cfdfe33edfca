"""Checksums used on the radio link and inside inverter payloads."""

from __future__ import annotations

from collections.abc import Iterable

CRC8_INIT = 0x00
CRC8_POLY = 0x01

CRC16_MODBUS_POLYNOM = 0xA001
CRC16_NRF24_POLYNOM = 0x1021


def crc8(data: Iterable[int]) -> int:
    """MSB-first CRC-8 with polynomial 0x01 and initial value 0."""
    crc = CRC8_INIT
    for byte in data:
        crc ^= byte
        for _ in range(8):
            crc = ((crc << 1) ^ (CRC8_POLY if crc & 0x80 else 0x00)) & 0xFF
    return crc


def crc16(data: Iterable[int], start: int = 0xFFFF) -> int:
    """Reflected CRC-16 (Modbus variant), continuing from ``start``."""
    crc = start & 0xFFFF
    for byte in data:
        crc ^= byte
        for _ in range(8):
            lsb = crc & 0x0001
            crc >>= 1
            if lsb:
                crc ^= CRC16_MODBUS_POLYNOM
    return crc


def crc16_nrf24(
    data: bytes | bytearray | Iterable[int],
    length_bits: int,
    start_bit: int = 0,
    crc_in: int = 0xFFFF,
) -> int:
    """Bitwise MSB-first CRC-16 over bits ``start_bit`` up to ``length_bits``."""
    buf = bytes(data)
    crc = crc_in & 0xFFFF
    val = 0
    for bit in range(start_bit, length_bits):
        idx = bit & 0x07
        if idx == 0 or bit == start_bit:
            val = buf[bit >> 3]
        crc ^= 0x8000 & (val << (8 + idx))
        if crc & 0x8000:
            crc = ((crc << 1) ^ CRC16_NRF24_POLYNOM) & 0xFFFF
        else:
            crc = (crc << 1) & 0xFFFF
    return crc