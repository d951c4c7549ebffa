"""MCP server entry point for Renogy-style battery monitors.

Exposes tools, resources, and prompts via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .models.readings import SectionReading
from .protocol.commands import (
    DEFAULT_BATTERY_ADDRESS,
    Section,
    build_request,
    resolve_section,
)
from .protocol.errors import DecodeError, DerivedValueUndefined
from .protocol.framing import parse_request
from .protocol.parser import decode_response
from .transport.serial_connection import DEFAULT_BAUDRATE, SerialConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "renogy-battery",
    instructions="MCP server for reading Renogy-style LiFePO4 batteries over RS-485 Modbus",
)

# Global connection state
_connection: SerialConnection | None = None


def _get_connection() -> SerialConnection:
    """Get the active serial connection, raising if not connected."""
    if _connection is None or not _connection.connected:
        raise RuntimeError(
            "Not connected to a battery bus. Use the 'connect' tool first."
        )
    return _connection


def _section_catalog() -> list[dict[str, Any]]:
    return [
        {
            "section": section.label,
            "register": section.address,
            "word_count": section.word_count,
        }
        for section in Section
    ]


def _decode_result(
    response: bytes,
    section: Section,
    name_prefix: str | None,
    verify_checksum: bool,
) -> dict[str, Any]:
    """Decode a reply into a tool result, folding decode errors into it."""
    try:
        reading: SectionReading = decode_response(
            response, section, name_prefix, verify_checksum=verify_checksum
        )
    except DerivedValueUndefined as e:
        result = e.reading.to_dict()
        result["error"] = str(e)
        result["values"] = e.reading.as_dict()
        return result
    except DecodeError as e:
        return {"error": str(e), "section": section.label, "raw": response.hex(" ")}

    result = reading.to_dict()
    result["values"] = reading.as_dict()
    return result


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(port: str, baudrate: int = DEFAULT_BAUDRATE) -> dict[str, Any]:
    """Open the serial port the battery bus is attached to.

    Args:
        port: Serial device, e.g. /dev/ttyUSB0 or COM3.
        baudrate: Line speed (default 9600, 8N1).
    """
    global _connection
    if _connection is not None and _connection.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "port": _connection.port_info.port,
        }

    _connection = SerialConnection(port, baudrate=baudrate)
    info = _connection.open()
    return {"connected": True, "port": info.port, "baudrate": info.baudrate}


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the serial port."""
    global _connection
    if _connection is None:
        return {"disconnected": True}
    _connection.close()
    _connection = None
    return {"disconnected": True}


# ─── CODEC TOOLS ─────────────────────────────────────────────────────

@mcp.tool()
def list_sections() -> dict[str, Any]:
    """List the register sections that can be requested and decoded."""
    return {"sections": _section_catalog()}


@mcp.tool()
def build_request_frame(
    battery_address: int = DEFAULT_BATTERY_ADDRESS,
    section: str = "battery_info",
    word_count: int | None = None,
) -> dict[str, Any]:
    """Build the read request for one section without sending it.

    Args:
        battery_address: Battery Modbus address (0-255, default 48).
        section: Section name (e.g. "cell_voltages") or register number.
        word_count: Registers to read; defaults to the section's count.
    """
    try:
        resolved = resolve_section(section)
        frame = build_request(battery_address, resolved, word_count)
    except ValueError as e:
        return {"error": str(e)}

    request = parse_request(frame)
    return {
        "frame": frame.hex(" "),
        "section": resolved.label,
        "register": request.register,
        "word_count": request.count,
        "crc": frame[6:].hex(" "),
    }


@mcp.tool()
def decode_response_frame(
    response_hex: str,
    section: str,
    name_prefix: str | None = None,
    verify_checksum: bool = False,
) -> dict[str, Any]:
    """Decode a captured reply for the section that was requested.

    Args:
        response_hex: Reply bytes as hex, spaces allowed ("30 03 0c ...").
        section: Section the reply answers (name or register number).
        name_prefix: Measurement name prefix; defaults to the battery address.
        verify_checksum: Validate the trailing CRC as well.
    """
    try:
        resolved = resolve_section(section)
        response = bytes.fromhex(response_hex)
    except ValueError as e:
        return {"error": str(e)}
    return _decode_result(response, resolved, name_prefix, verify_checksum)


@mcp.tool()
def read_section(
    battery_address: int = DEFAULT_BATTERY_ADDRESS,
    section: str = "battery_info",
    name_prefix: str | None = None,
) -> dict[str, Any]:
    """Request one section from a battery and decode the reply.

    Args:
        battery_address: Battery Modbus address (0-255, default 48).
        section: Section name (e.g. "cell_temperatures") or register number.
        name_prefix: Measurement name prefix; defaults to the battery address.
    """
    try:
        resolved = resolve_section(section)
        frame = build_request(battery_address, resolved)
    except ValueError as e:
        return {"error": str(e)}

    conn = _get_connection()
    response = conn.send_and_receive(frame)
    if response is None:
        return {"error": "No response from battery", "section": resolved.label}
    return _decode_result(response, resolved, name_prefix, verify_checksum=True)


@mcp.tool()
def read_all_sections(
    battery_address: int = DEFAULT_BATTERY_ADDRESS,
    name_prefix: str | None = None,
) -> dict[str, Any]:
    """Read every section from a battery, one request each.

    Args:
        battery_address: Battery Modbus address (0-255, default 48).
        name_prefix: Measurement name prefix; defaults to the battery address.
    """
    results = {}
    for section in Section:
        results[section.label] = read_section(
            battery_address, section.label, name_prefix
        )
    return {"battery_address": battery_address, "sections": results}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("renogy://sections")
def resource_sections() -> str:
    """Register sections with their addresses and word counts."""
    return json.dumps({"sections": _section_catalog()})


# ─── MCP PROMPTS ─────────────────────────────────────────────────────

@mcp.prompt()
def battery_health_report(battery_address: int = DEFAULT_BATTERY_ADDRESS) -> str:
    """Guide the AI through a health check of one battery.

    Args:
        battery_address: Battery Modbus address.
    """
    return f"""Read battery {battery_address} using the read_all_sections tool.
Summarize its health.
Consider:
- Spread between the highest and lowest cell voltage
- Any cell temperature below 0 °C or above 45 °C
- Charge level versus pack voltage
- Whether current is charging (positive) or discharging (negative)

If a section returns an error, report it instead of guessing values."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
