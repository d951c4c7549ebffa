"""Serial (RS-485) connection to a battery bus.

Uses ``pyserial``. One request is written and one reply is read back,
delimited by the byte count in the Modbus RTU response header. Retries and
polling schedules are left to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import serial

from ..protocol.commands import EXCEPTION_FLAG
from ..protocol.framing import CRC_SIZE, REQUEST_SIZE, RESPONSE_HEADER_SIZE

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 9600
READ_TIMEOUT_S = 1.0


@dataclass
class PortInfo:
    """Settings of the open serial port."""

    port: str = ""
    baudrate: int = DEFAULT_BAUDRATE
    timeout: float = READ_TIMEOUT_S


class SerialConnection:
    """Manages the serial link to one or more batteries.

    Usage::

        conn = SerialConnection("/dev/ttyUSB0")
        conn.open()
        reply = conn.send_and_receive(build_request(0x30, Section.BATTERY_INFO))
        conn.close()
    """

    def __init__(
        self,
        port: str,
        baudrate: int = DEFAULT_BAUDRATE,
        timeout: float = READ_TIMEOUT_S,
    ) -> None:
        self._port_info = PortInfo(port=port, baudrate=baudrate, timeout=timeout)
        self._serial: serial.Serial | None = None

    @property
    def connected(self) -> bool:
        return self._serial is not None and self._serial.is_open

    @property
    def port_info(self) -> PortInfo:
        return self._port_info

    def open(self) -> PortInfo:
        """Open the serial port (8N1).

        Raises:
            ConnectionError: If the port cannot be opened.
        """
        info = self._port_info
        try:
            self._serial = serial.Serial(
                info.port,
                baudrate=info.baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=info.timeout,
            )
        except serial.SerialException as e:
            raise ConnectionError(
                f"Could not open serial port {info.port} at {info.baudrate} baud. "
                f"Ensure the adapter is connected and you have permissions. "
                f"Last error: {e}"
            ) from e

        logger.info("Opened %s at %d baud", info.port, info.baudrate)
        return info

    def close(self) -> None:
        """Close the serial port."""
        if self._serial is None:
            return

        try:
            self._serial.close()
        except serial.SerialException as e:
            logger.warning("Error closing port: %s", e)
        finally:
            self._serial = None
            logger.info("Disconnected")

    def _require_open(self) -> serial.Serial:
        if not self.connected:
            raise ConnectionError("Serial port is not open")
        return self._serial

    def write(self, data: bytes) -> int:
        """Write a request frame to the bus.

        Args:
            data: An 8-byte request.

        Returns:
            Number of bytes written.

        Raises:
            ConnectionError: If not connected.
        """
        port = self._require_open()
        if len(data) != REQUEST_SIZE:
            raise ValueError(
                f"Request must be {REQUEST_SIZE} bytes, got {len(data)}"
            )

        port.reset_input_buffer()
        written = port.write(data)
        port.flush()
        return written

    def read_response(self) -> bytes | None:
        """Read one Modbus RTU reply.

        Returns:
            The reply including its CRC trailer, or ``None`` if the device
            did not answer in time.

        Raises:
            ConnectionError: If not connected.
        """
        port = self._require_open()

        header = port.read(RESPONSE_HEADER_SIZE)
        if len(header) < RESPONSE_HEADER_SIZE:
            logger.debug("Read timed out after %d header bytes", len(header))
            return None

        if header[1] & EXCEPTION_FLAG:
            # Exception replies carry the exception code where the byte count sits
            remaining = CRC_SIZE
        else:
            remaining = header[2] + CRC_SIZE

        body = port.read(remaining)
        if len(body) < remaining:
            logger.debug(
                "Read timed out after %d of %d body bytes", len(body), remaining
            )
            return None

        response = bytes(header + body)
        logger.debug("Received: %s", response.hex(" "))
        return response

    def send_and_receive(self, data: bytes) -> bytes | None:
        """Send a request and read the reply.

        Returns:
            Raw reply bytes, or ``None`` if nothing complete came back.
        """
        self.write(data)
        return self.read_response()
