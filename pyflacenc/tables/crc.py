from typing import List


def generate_crc8_table(polynomial: int = 0x07) -> List[int]:
    """
    Generates the lookup table for the FLAC frame header CRC-8.
    Polynomial x^8 + x^2 + x^1 + x^0 (0x07), MSB first, initial value 0.
    """
    table: List[int] = []
    for byte in range(256):
        crc = byte
        for _ in range(8):
            if crc & 0x80:
                crc = ((crc << 1) ^ polynomial) & 0xFF
            else:
                crc = (crc << 1) & 0xFF
        table.append(crc)
    return table


def generate_crc16_table(polynomial: int = 0x8005) -> List[int]:
    """
    Generates the lookup table for the FLAC frame footer CRC-16.
    Polynomial x^16 + x^15 + x^2 + x^0 (0x8005), MSB first, initial value 0.
    """
    table: List[int] = []
    for byte in range(256):
        crc = byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ polynomial) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
        table.append(crc)
    return table


CRC8_TABLE: List[int] = generate_crc8_table()
CRC16_TABLE: List[int] = generate_crc16_table()


def crc8(data: bytes, crc: int = 0) -> int:
    for byte in data:
        crc = CRC8_TABLE[crc ^ byte]
    return crc


def crc16(data: bytes, crc: int = 0) -> int:
    for byte in data:
        crc = ((crc << 8) & 0xFFFF) ^ CRC16_TABLE[(crc >> 8) ^ byte]
    return crc
