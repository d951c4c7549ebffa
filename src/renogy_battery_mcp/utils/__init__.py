"""Shared helpers."""

from .crc import crc16, crc16_bytes, verify_crc
