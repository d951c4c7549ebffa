"""Modbus RTU codec and MCP server for Renogy-style battery monitors."""

__version__ = "0.1.0"
