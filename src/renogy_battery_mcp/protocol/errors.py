"""Decode failures raised by the response parser.

All of them derive from :class:`DecodeError` (itself a ``ValueError``) so a
caller can discard a bad reply with a single ``except`` clause.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..models.readings import SectionReading


class DecodeError(ValueError):
    """Base class for response frames that cannot be decoded."""


class TruncatedFrame(DecodeError):
    """The buffer is shorter than the section requires."""

    def __init__(self, required: int, actual: int) -> None:
        super().__init__(
            f"Frame too short: need {required} bytes, got {actual}"
        )
        self.required = required
        self.actual = actual


class UnexpectedFunction(DecodeError):
    """The function byte is not the Read code.

    Modbus exception replies set the high bit of the function code and
    carry an exception code in the next byte; that code is kept when
    present.
    """

    def __init__(self, code: int, exception_code: int | None = None) -> None:
        message = f"Unexpected function code 0x{code:02X}"
        if exception_code is not None:
            message += f" (device exception 0x{exception_code:02X})"
        super().__init__(message)
        self.code = code
        self.exception_code = exception_code


class InvalidEncoding(DecodeError):
    """A text field is not valid ASCII."""

    def __init__(self, raw: bytes) -> None:
        super().__init__(f"Text field is not valid ASCII: {raw.hex(' ')}")
        self.raw = raw


class DerivedValueUndefined(DecodeError):
    """A derived value has a zero denominator.

    ``reading`` holds the measurements that were decoded before the
    derivation failed.
    """

    def __init__(self, name: str, reading: SectionReading) -> None:
        super().__init__(f"{name} is undefined (zero denominator)")
        self.name = name
        self.reading = reading


class UnsupportedSection(DecodeError):
    """The section is not one this codec knows how to request or decode."""

    def __init__(self, section: Any) -> None:
        super().__init__(f"Unsupported section: {section!r}")
        self.section = section


class ChecksumMismatch(DecodeError):
    """The response CRC trailer does not match its contents."""

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(
            f"CRC mismatch (expected 0x{expected:04X}, received 0x{received:04X})"
        )
        self.expected = expected
        self.received = received
