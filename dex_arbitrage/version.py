"""Version information for the DEX arbitrage scanner."""

__version__ = "0.1.0"
