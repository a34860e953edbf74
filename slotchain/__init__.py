"""Slot-based proof-of-stake blockchain node with an aiohttp API and in-memory state."""

__version__ = "0.1.0"