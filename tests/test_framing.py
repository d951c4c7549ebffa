"""Tests for request framing and response checksum validation."""

import pytest

from renogy_battery_mcp.protocol.errors import ChecksumMismatch, TruncatedFrame
from renogy_battery_mcp.protocol.framing import (
    REQUEST_SIZE,
    RequestFrame,
    build_read_frame,
    check_response_crc,
    parse_request,
)
from renogy_battery_mcp.utils.crc import crc16


def test_build_read_frame_reference():
    """Matches the well-known read of one holding register."""
    frame = build_read_frame(0x01, 0x03, 0x0000, 0x0001)
    assert frame == bytes.fromhex("01 03 00 00 00 01 84 0A")


def test_build_read_frame_layout():
    """Header fields are big-endian, the CRC is little-endian."""
    frame = build_read_frame(0x30, 0x03, 5042, 6)
    assert len(frame) == REQUEST_SIZE
    assert frame[0] == 0x30
    assert frame[1] == 0x03
    assert frame[2:4] == b"\x13\xB2"
    assert frame[4:6] == b"\x00\x06"
    expected_crc = crc16(frame[:6])
    assert frame[6] == expected_crc & 0xFF
    assert frame[7] == (expected_crc >> 8) & 0xFF


def test_build_read_frame_bounds():
    with pytest.raises(ValueError):
        build_read_frame(256, 0x03, 5000, 17)
    with pytest.raises(ValueError):
        build_read_frame(-1, 0x03, 5000, 17)
    with pytest.raises(ValueError):
        build_read_frame(1, 0x03, 0x10000, 17)
    with pytest.raises(ValueError):
        build_read_frame(1, 0x03, 5000, 0x10000)


def test_parse_request_roundtrip():
    frame = build_read_frame(0x30, 0x03, 5000, 17)
    parsed = parse_request(frame)
    assert parsed == RequestFrame(address=0x30, function=0x03, register=5000, count=17)


def test_parse_request_bad_checksum():
    frame = bytearray(build_read_frame(0x30, 0x03, 5000, 17))
    frame[6] ^= 0xFF
    assert parse_request(bytes(frame)) is None


def test_parse_request_wrong_length():
    frame = build_read_frame(0x30, 0x03, 5000, 17)
    assert parse_request(frame[:7]) is None
    assert parse_request(frame + b"\x00") is None


def test_request_frame_repr():
    r = repr(RequestFrame(address=48, function=0x03, register=5042, count=6))
    assert "0x03" in r
    assert "5042" in r


def _response(body: bytes) -> bytes:
    frame = bytes([0x30, 0x03, len(body)]) + body
    return frame + crc16(frame).to_bytes(2, "little")


def test_check_response_crc_valid():
    check_response_crc(_response(b"\x00\x30"))


def test_check_response_crc_ignores_trailing_bytes():
    check_response_crc(_response(b"\x00\x30") + b"\xFF\xFF")


def test_check_response_crc_mismatch():
    frame = bytearray(_response(b"\x00\x30"))
    frame[-1] ^= 0x01
    with pytest.raises(ChecksumMismatch) as excinfo:
        check_response_crc(bytes(frame))
    assert excinfo.value.expected != excinfo.value.received


def test_check_response_crc_missing_trailer():
    frame = _response(b"\x00\x30")
    with pytest.raises(TruncatedFrame) as excinfo:
        check_response_crc(frame[:-2])
    assert excinfo.value.required == 7
    assert excinfo.value.actual == 5


def test_check_response_crc_returns_covered_bytes():
    frame = _response(b"\x00\x30")
    assert check_response_crc(frame + b"\xAA") == frame[:5]
