"""Prepare USB drives for rekordbox: list, format, verify, benchmark and eject."""

__version__ = "0.1.0"