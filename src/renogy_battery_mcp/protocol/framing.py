"""Modbus RTU frame builder and checksum validation.

Read request layout::

    +---------+----------+------------------+------------------+----------+
    | Address | Function | Register         | Word count       | CRC      |
    | 1 byte  | 1 byte   | 2 bytes (big-e.) | 2 bytes (big-e.) | 2 bytes  |
    +---------+----------+------------------+------------------+----------+

- CRC: Modbus CRC-16 over the first six bytes, little-endian

Read response layout::

    +---------+----------+------------+---------------------+----------+
    | Address | Function | Byte count | Register data       | CRC      |
    | 1 byte  | 1 byte   | 1 byte     | ``byte count`` bytes| 2 bytes  |
    +---------+----------+------------+---------------------+----------+
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..utils.crc import crc16, crc16_bytes, verify_crc
from .errors import ChecksumMismatch, TruncatedFrame

logger = logging.getLogger(__name__)

REQUEST_SIZE = 8
RESPONSE_HEADER_SIZE = 3  # address, function, byte count
CRC_SIZE = 2


@dataclass(frozen=True)
class RequestFrame:
    """A parsed read/write request."""

    address: int
    function: int
    register: int
    count: int

    def __repr__(self) -> str:
        return (
            f"RequestFrame(address={self.address}, function=0x{self.function:02X}, "
            f"register={self.register}, count={self.count})"
        )


def _check_range(name: str, value: int, upper: int) -> None:
    if not 0 <= value <= upper:
        raise ValueError(f"{name} must be 0-{upper}, got {value}")


def build_read_frame(address: int, function: int, register: int, count: int) -> bytes:
    """Build an 8-byte Modbus RTU request.

    Args:
        address: Device address 0-255.
        function: Function code byte.
        register: Starting register 0-65535.
        count: Number of registers 0-65535.

    Returns:
        The request with its CRC appended, ready to write to the bus.
    """
    _check_range("Device address", address, 0xFF)
    _check_range("Function code", function, 0xFF)
    _check_range("Register", register, 0xFFFF)
    _check_range("Word count", count, 0xFFFF)

    message = bytearray([address, function])
    message.extend(register.to_bytes(2, "big"))
    message.extend(count.to_bytes(2, "big"))
    message.extend(crc16_bytes(message))
    frame = bytes(message)
    logger.debug("Request frame: %s", frame.hex(" "))
    return frame


def parse_request(data: bytes) -> RequestFrame | None:
    """Parse an 8-byte request back into its fields.

    Returns:
        A ``RequestFrame``, or ``None`` if the length or checksum is wrong.
    """
    if len(data) != REQUEST_SIZE:
        return None

    if not verify_crc(data):
        return None

    return RequestFrame(
        address=data[0],
        function=data[1],
        register=int.from_bytes(data[2:4], "big"),
        count=int.from_bytes(data[4:6], "big"),
    )


def check_response_crc(data: bytes) -> bytes:
    """Validate the CRC trailer of a read response.

    The trailer is located from the byte count at offset 2; anything after
    it is ignored.

    Returns:
        The header and register data the CRC covers, without the trailer.

    Raises:
        TruncatedFrame: If the buffer ends before the trailer does.
        ChecksumMismatch: If the trailer does not match.
    """
    if len(data) < RESPONSE_HEADER_SIZE:
        raise TruncatedFrame(RESPONSE_HEADER_SIZE, len(data))

    end = RESPONSE_HEADER_SIZE + data[2]
    if len(data) < end + CRC_SIZE:
        raise TruncatedFrame(end + CRC_SIZE, len(data))

    if not verify_crc(data[: end + CRC_SIZE]):
        raise ChecksumMismatch(
            crc16(data[:end]),
            int.from_bytes(data[end : end + CRC_SIZE], "little"),
        )
    return data[:end]
