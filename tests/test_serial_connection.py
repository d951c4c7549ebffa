"""Tests for the serial transport with pyserial mocked out."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import serial

from renogy_battery_mcp.protocol.commands import Section, build_request
from renogy_battery_mcp.transport.serial_connection import SerialConnection
from renogy_battery_mcp.utils.crc import crc16

PATCH_TARGET = "renogy_battery_mcp.transport.serial_connection.serial.Serial"


def _reply(body: bytes, function: int = 0x03) -> bytes:
    frame = bytes([0x30, function, len(body)]) + body
    return frame + crc16(frame).to_bytes(2, "little")


def _open_with(chunks: list[bytes]) -> tuple[SerialConnection, MagicMock]:
    """Open a connection whose port returns ``chunks`` from successive reads."""
    port = MagicMock()
    port.is_open = True
    port.read.side_effect = chunks
    port.write.side_effect = lambda data: len(data)
    with patch(PATCH_TARGET, return_value=port) as serial_cls:
        conn = SerialConnection("/dev/ttyUSB0", baudrate=19200)
        conn.open()
    serial_cls.assert_called_once()
    assert serial_cls.call_args.args[0] == "/dev/ttyUSB0"
    assert serial_cls.call_args.kwargs["baudrate"] == 19200
    return conn, port


def test_send_and_receive_reads_by_byte_count():
    reply = _reply(b"\x00\x30")
    conn, port = _open_with([reply[:3], reply[3:]])
    request = build_request(0x30, Section.DEVICE_ADDRESS)

    assert conn.send_and_receive(request) == reply
    port.write.assert_called_once_with(request)
    assert [c.args[0] for c in port.read.call_args_list] == [3, 4]


def test_exception_reply_reads_two_more_bytes():
    frame = bytes([0x30, 0x83, 0x02])
    reply = frame + crc16(frame).to_bytes(2, "little")
    conn, port = _open_with([reply[:3], reply[3:]])

    assert conn.read_response() == reply
    assert port.read.call_args_list[1].args[0] == 2


def test_header_timeout_returns_none():
    conn, _ = _open_with([b"\x30"])
    assert conn.read_response() is None


def test_body_timeout_returns_none():
    reply = _reply(b"\x00\x30")
    conn, _ = _open_with([reply[:3], reply[3:5]])
    assert conn.read_response() is None


def test_write_rejects_wrong_length():
    conn, _ = _open_with([])
    with pytest.raises(ValueError):
        conn.write(b"\x30\x03")


def test_not_connected():
    conn = SerialConnection("/dev/ttyUSB0")
    assert not conn.connected
    with pytest.raises(ConnectionError):
        conn.write(build_request(0x30))
    with pytest.raises(ConnectionError):
        conn.read_response()


def test_open_failure_raises_connection_error():
    with patch(PATCH_TARGET, side_effect=serial.SerialException("no such port")):
        conn = SerialConnection("/dev/ttyUSB9")
        with pytest.raises(ConnectionError, match="ttyUSB9"):
            conn.open()
    assert not conn.connected


def test_close():
    conn, port = _open_with([])
    assert conn.connected
    conn.close()
    port.close.assert_called_once()
    assert not conn.connected
    conn.close()
