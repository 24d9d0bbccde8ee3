"""Asyncio client for ZKTeco biometric attendance terminals."""

__version__ = "0.1.0"
