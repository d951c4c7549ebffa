"""Decoded measurement records."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..protocol.commands import Section


@dataclass(frozen=True)
class Measurement:
    """A single named value decoded from a response."""

    name: str
    value: float | str
    unit: str = ""

    def __repr__(self) -> str:
        suffix = f" {self.unit}" if self.unit else ""
        return f"Measurement({self.name!r}={self.value!r}{suffix})"


@dataclass
class SectionReading:
    """Everything decoded from one section response.

    Measurement names already include the battery prefix, so they can be
    routed to sinks as-is.
    """

    battery_address: int
    section: Section
    prefix: str
    measurements: list[Measurement] = field(default_factory=list)

    def as_dict(self) -> dict[str, float | str]:
        """Map each measurement name to its value."""
        return {m.name: m.value for m in self.measurements}

    def get(self, name: str) -> Measurement | None:
        """Look up a measurement by its unprefixed name."""
        full_name = self.prefix + name
        for measurement in self.measurements:
            if measurement.name == full_name:
                return measurement
        return None

    def to_dict(self) -> dict:
        return {
            "battery_address": self.battery_address,
            "section": self.section.label,
            "register": self.section.address,
            "measurements": [
                {"name": m.name, "value": m.value, "unit": m.unit}
                for m in self.measurements
            ],
        }
