"""Response decoding for battery read replies.

The reply carries no section tag, so the caller passes the section it
requested and the decoder trusts it. Register data starts at offset 3,
after the address, function, and byte-count bytes.
"""

from __future__ import annotations

import logging
from typing import Callable

from ..models.readings import Measurement, SectionReading
from .commands import EXCEPTION_FLAG, FunctionCode, Section, resolve_section
from .errors import (
    DerivedValueUndefined,
    InvalidEncoding,
    TruncatedFrame,
    UnexpectedFunction,
    UnsupportedSection,
)
from .framing import RESPONSE_HEADER_SIZE, check_response_crc

logger = logging.getLogger(__name__)

DATA_OFFSET = RESPONSE_HEADER_SIZE
MODEL_SIZE = 14

# Smallest buffer each section decoder can work with
SECTION_MIN_LENGTH: dict[Section, int] = {
    Section.CELL_VOLTAGES: DATA_OFFSET + 2,
    Section.CELL_TEMPERATURES: DATA_OFFSET + 2,
    Section.BATTERY_INFO: DATA_OFFSET + 12,
    Section.DEVICE_INFO: DATA_OFFSET + MODEL_SIZE,
    Section.DEVICE_ADDRESS: DATA_OFFSET + 2,
}


def battery_prefix(battery_address: int, name_prefix: str | None = None) -> str:
    """Return the prefix put in front of every measurement name.

    With no prefix the battery address is used (``"48 "``). A non-empty
    prefix gets a separating space; an empty one stays empty.
    """
    if name_prefix is None:
        return f"{battery_address} "
    if name_prefix:
        return name_prefix + " "
    return ""


def _require(data: bytes, length: int) -> None:
    if len(data) < length:
        raise TruncatedFrame(length, len(data))


def _read_uint(data: bytes, offset: int, size: int, signed: bool = False) -> int:
    _require(data, offset + size)
    return int.from_bytes(data[offset : offset + size], "big", signed=signed)


def _parse_counted_block(
    data: bytes,
    prefix: str,
    template: str,
    unit: str,
    signed: bool,
) -> list[Measurement]:
    """Decode a count-prefixed block of 16-bit values scaled by 1/10."""
    count = _read_uint(data, DATA_OFFSET, 2)
    start = DATA_OFFSET + 2
    # Validate the declared count against the buffer before reading values
    _require(data, start + 2 * count)
    logger.debug("Block count: %d", count)

    measurements = []
    for i in range(count):
        raw = _read_uint(data, start + 2 * i, 2, signed=signed)
        measurements.append(
            Measurement(prefix + template.format(index=i + 1), raw / 10.0, unit)
        )
    return measurements


def parse_cell_voltages(data: bytes, prefix: str) -> list[Measurement]:
    """Parse a cell voltage block (registers 5000-5016)."""
    return _parse_counted_block(
        data, prefix, "Cell {index} Voltage", "V", signed=False
    )


def parse_cell_temperatures(data: bytes, prefix: str) -> list[Measurement]:
    """Parse a cell temperature block (registers 5017-5033).

    Temperatures are signed so sub-zero readings survive.
    """
    return _parse_counted_block(
        data, prefix, "Sensor {index} Temperature", "°C", signed=True
    )


def parse_battery_info(data: bytes, prefix: str) -> list[Measurement]:
    """Parse pack current, voltage, and capacities (registers 5042-5047).

    Raises:
        DerivedValueUndefined: If the total capacity is zero. The error's
            ``reading`` holds the four directly decoded values.
    """
    current = _read_uint(data, DATA_OFFSET, 2, signed=True) / 100.0
    voltage = _read_uint(data, DATA_OFFSET + 2, 2) / 10.0
    present_capacity = _read_uint(data, DATA_OFFSET + 4, 4) / 1000.0
    total_capacity = _read_uint(data, DATA_OFFSET + 8, 4) / 1000.0
    logger.debug(
        "current=%.2f voltage=%.1f present=%.3f total=%.3f",
        current,
        voltage,
        present_capacity,
        total_capacity,
    )

    measurements = [
        Measurement(prefix + "Current", current, "A"),
        Measurement(prefix + "Voltage", voltage, "V"),
        Measurement(prefix + "Present Capacity", present_capacity, "Ah"),
        Measurement(prefix + "Total Capacity", total_capacity, "Ah"),
    ]

    if total_capacity == 0.0:
        reading = SectionReading(
            battery_address=data[0],
            section=Section.BATTERY_INFO,
            prefix=prefix,
            measurements=measurements,
        )
        raise DerivedValueUndefined(prefix + "Charge Level", reading)

    charge_level = (present_capacity / total_capacity) * 100.0
    measurements.append(Measurement(prefix + "Charge Level", charge_level, "%"))
    return measurements


def parse_device_info(data: bytes, prefix: str) -> list[Measurement]:
    """Parse the 14-byte NUL-padded model string (registers 5122-5128)."""
    _require(data, DATA_OFFSET + MODEL_SIZE)
    raw = data[DATA_OFFSET : DATA_OFFSET + MODEL_SIZE]
    trimmed = raw.split(b"\x00")[0].rstrip(b" ")
    try:
        model = trimmed.decode("ascii")
    except UnicodeDecodeError:
        raise InvalidEncoding(raw) from None
    if not model.isprintable():
        raise InvalidEncoding(raw)
    logger.debug("Device model: %r", model)
    return [Measurement(prefix + "Device Model", model)]


def parse_device_address(data: bytes, prefix: str) -> list[Measurement]:
    """Parse the device id register (5223)."""
    device_id = _read_uint(data, DATA_OFFSET, 2)
    logger.debug("Device id: %d", device_id)
    return [Measurement(prefix + "Device Id", float(device_id))]


SECTION_PARSERS: dict[Section, Callable[[bytes, str], list[Measurement]]] = {
    Section.CELL_VOLTAGES: parse_cell_voltages,
    Section.CELL_TEMPERATURES: parse_cell_temperatures,
    Section.BATTERY_INFO: parse_battery_info,
    Section.DEVICE_INFO: parse_device_info,
    Section.DEVICE_ADDRESS: parse_device_address,
}


def decode_response(
    buffer: bytes,
    expected_section: Section | int,
    name_prefix: str | None = None,
    *,
    verify_checksum: bool = False,
) -> SectionReading:
    """Decode a read reply for the section that was requested.

    Args:
        buffer: Raw reply bytes, starting at the address byte.
        expected_section: The section the request asked for.
        name_prefix: Prefix for measurement names; derived from the
            battery address when ``None``.
        verify_checksum: Also validate the CRC trailer located via the
            byte count at offset 2.

    Returns:
        A ``SectionReading`` with the decoded measurements.

    Raises:
        TruncatedFrame: The buffer is too short for the section.
        UnexpectedFunction: Byte 1 is not the Read function code.
        UnsupportedSection: ``expected_section`` is not a known section.
        ChecksumMismatch: ``verify_checksum`` is set and the CRC is wrong.
        InvalidEncoding: The device model is not ASCII text.
        DerivedValueUndefined: Total capacity is zero.
    """
    data = bytes(buffer)
    logger.debug("Response frame: %s", data.hex(" "))

    _require(data, 2)
    function = data[1]
    if function != FunctionCode.READ:
        exception_code = None
        if function & EXCEPTION_FLAG and len(data) > 2:
            exception_code = data[2]
        raise UnexpectedFunction(function, exception_code)

    section = resolve_section(expected_section)
    parser = SECTION_PARSERS.get(section)
    if parser is None:
        raise UnsupportedSection(section)

    _require(data, SECTION_MIN_LENGTH[section])
    if verify_checksum:
        # Decode only the bytes the CRC covers
        data = check_response_crc(data)
        _require(data, SECTION_MIN_LENGTH[section])

    battery_address = data[0]
    prefix = battery_prefix(battery_address, name_prefix)
    logger.debug(
        "Decoding %s from battery %d, prefix %r",
        section.label,
        battery_address,
        prefix,
    )

    return SectionReading(
        battery_address=battery_address,
        section=section,
        prefix=prefix,
        measurements=parser(data, prefix),
    )
