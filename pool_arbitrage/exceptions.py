"""
Exception hierarchy for the pool arbitrage scanner.

Separates ordinary "this path is not viable right now" outcomes from
configuration bugs and invariant violations, so callers can decide which
ones to swallow and which ones must stop the process.
"""

from typing import Any, Dict, Optional


class PoolArbitrageError(Exception):
    """Base exception for all pool arbitrage related errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(PoolArbitrageError):
    """Raised when pool, token or threshold configuration is malformed."""

    pass


class DataUnavailable(PoolArbitrageError):
    """Raised when a pool's state cannot be fetched or is illiquid."""

    def __init__(
        self,
        message: str,
        pool_address: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.pool_address = pool_address


class SimulationRejected(PoolArbitrageError):
    """Raised when a swap simulation cannot produce a usable output."""

    def __init__(
        self,
        message: str,
        pool_address: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.pool_address = pool_address


class ZeroOutput(SimulationRejected):
    """Raised when a hop would return nothing (insufficient liquidity)."""

    pass


class InvalidToken(SimulationRejected):
    """Raised when the input token does not belong to the pool."""

    def __init__(
        self,
        message: str,
        pool_address: Optional[str] = None,
        token: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, pool_address, details)
        self.token = token


class ConversionFailure(PoolArbitrageError):
    """Raised when the price oracle cannot value a token in native units."""

    def __init__(
        self,
        message: str,
        token: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.token = token


class EvaluationError(PoolArbitrageError):
    """Raised when profitability math hits an unexpected fault."""

    def __init__(
        self,
        message: str,
        opportunity_key: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.opportunity_key = opportunity_key
