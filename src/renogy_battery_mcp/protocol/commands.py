"""Function codes, register sections, and the battery read-request builder.

Each section is a register block that is requested and decoded as a unit.
The enum value is the block's starting register; the canonical word
count rides along on the same member.
"""

from __future__ import annotations

from enum import IntEnum

from .errors import UnsupportedSection
from .framing import build_read_frame

DEFAULT_BATTERY_ADDRESS = 0x30


class FunctionCode(IntEnum):
    """Modbus function codes used by the battery."""

    READ = 0x03
    WRITE = 0x06


# Set on the echoed function code when the device answers with an exception
EXCEPTION_FLAG = 0x80


class Section(IntEnum):
    """Register blocks exposed by the battery."""

    CELL_VOLTAGES = (5000, 17)
    CELL_TEMPERATURES = (5017, 17)
    BATTERY_INFO = (5042, 6)
    DEVICE_INFO = (5122, 8)
    DEVICE_ADDRESS = (5223, 1)

    def __new__(cls, address: int, word_count: int) -> Section:
        member = int.__new__(cls, address)
        member._value_ = address
        member.word_count = word_count
        return member

    @property
    def address(self) -> int:
        return int(self.value)

    @property
    def label(self) -> str:
        return self.name.lower()


def resolve_section(section: Section | int | str) -> Section:
    """Look up a section by member, register address, or name.

    Names are case-insensitive (``"battery_info"``); numeric strings are
    treated as register addresses.

    Raises:
        UnsupportedSection: If nothing matches.
    """
    if isinstance(section, Section):
        return section
    if isinstance(section, str):
        key = section.strip()
        if key.isdecimal():
            return resolve_section(int(key))
        try:
            return Section[key.upper()]
        except KeyError:
            raise UnsupportedSection(section) from None
    try:
        return Section(section)
    except ValueError:
        raise UnsupportedSection(section) from None


def build_request(
    battery_address: int,
    section: Section | int = Section.BATTERY_INFO,
    word_count: int | None = None,
) -> bytes:
    """Build an 8-byte read request for one section of a battery.

    Args:
        battery_address: Battery Modbus address 0-255.
        section: Register block to read.
        word_count: Number of registers to read. Defaults to the
            section's canonical count.

    Returns:
        ``[addr][0x03][section BE][words BE][crc LE]``
    """
    section = resolve_section(section)
    if word_count is None:
        word_count = section.word_count
    return build_read_frame(
        battery_address, FunctionCode.READ, section.address, word_count
    )


def build_all_requests(battery_address: int) -> dict[Section, bytes]:
    """Build the canonical request for every section of a battery."""
    return {section: build_request(battery_address, section) for section in Section}
