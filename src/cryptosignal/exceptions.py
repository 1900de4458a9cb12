"""Custom exceptions for the signal pipeline.

Missing upstream data is never an error here; these cover invalid caller
input and misuse of the storage layer.
"""


class CryptoSignalError(Exception):
    """Base exception for all cryptosignal errors."""


class InvalidBacktestOptionError(CryptoSignalError, ValueError):
    """Raised when a backtest option (e.g. a date string) cannot be parsed."""


class StoreNotConnectedError(CryptoSignalError, RuntimeError):
    """Raised when the SQLite store is used before connect()."""
