"""Serial transport for talking to batteries on an RS-485 bus."""
