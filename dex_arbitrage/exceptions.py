"""
Exception hierarchy for the DEX arbitrage scanner.

Separates failures that stop a detection cycle from starting (configuration)
from failures that only cost a single evaluation (quotes) and failures that
lose a detected opportunity (persistence).
"""

from typing import Any, Dict, List, Optional


class DexArbitrageError(Exception):
    """Base exception for all DEX arbitrage scanner errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(DexArbitrageError):
    """Raised when configuration or static addresses are invalid."""

    pass


class QuoteUnavailableError(DexArbitrageError):
    """Raised when an exchange cannot produce a quote (RPC error, revert, no route)."""

    def __init__(
        self,
        message: str,
        exchange: Optional[str] = None,
        token_in: Optional[str] = None,
        token_out: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.exchange = exchange
        self.token_in = token_in
        self.token_out = token_out


class PersistenceError(DexArbitrageError):
    """Raised when a detected opportunity could not be durably recorded."""

    def __init__(
        self,
        message: str,
        failures: Optional[List[Exception]] = None,
        report: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.failures = failures or []
        self.report = report


class NetworkError(DexArbitrageError):
    """Raised when the chain RPC endpoint cannot be reached."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint
