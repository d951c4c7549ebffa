"""Modbus CRC-16 (reflected polynomial 0xA001, initial value 0xFFFF).

The checksum travels on the wire low byte first, which is the opposite of
the big-endian register fields it protects.
"""

from __future__ import annotations

POLYNOMIAL = 0xA001
INITIAL_VALUE = 0xFFFF


def crc16(data: bytes) -> int:
    """Compute the Modbus CRC-16 of ``data``.

    Args:
        data: Bytes to checksum.

    Returns:
        The 16-bit checksum as an integer.
    """
    crc = INITIAL_VALUE
    for byte in data:
        crc ^= byte
        for _ in range(8):
            if crc & 1:
                crc = (crc >> 1) ^ POLYNOMIAL
            else:
                crc >>= 1
    return crc & 0xFFFF


def crc16_bytes(data: bytes) -> bytes:
    """Return the CRC of ``data`` in wire order (little-endian)."""
    return crc16(data).to_bytes(2, "little")


def verify_crc(frame: bytes) -> bool:
    """Check that the last two bytes of ``frame`` are the CRC of the rest."""
    if len(frame) < 3:
        return False
    return crc16_bytes(frame[:-2]) == frame[-2:]
