"""Arbitrage and bonus-extraction stake calculator."""

__version__ = "1.0.0"
