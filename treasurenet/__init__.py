"""Treasure hunt game played over raw Ethernet with stop-and-wait file transfer."""

__version__ = "0.1.0"