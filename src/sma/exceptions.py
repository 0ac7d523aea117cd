"""Custom exceptions for the SMA backfill service.

Validation errors carry a stable machine-readable ``reason`` that the HTTP
layer returns verbatim. Everything raised by the candle source or the
storage layer is wrapped into FetchError / PersistError so the worker can
treat the whole fetch/compute/persist unit uniformly.
"""


class SMAError(Exception):
    """Base exception for all service errors."""

    reason: str = "internal_error"


class ValidationError(SMAError):
    """Raised for invalid caller input. Never retried."""

    reason = "invalid_input"


class InvalidPairError(ValidationError):
    """Raised when a pair is not one of the supported pairs."""

    reason = "invalid_pair"


class InvalidWindowError(ValidationError):
    """Raised when an SMA window is not 20, 50 or 200."""

    reason = "invalid_window"


class InvalidTimestampError(ValidationError):
    """Raised when a query timestamp is missing, malformed or inverted."""

    reason = "invalid_timestamp"


class OutOfRangeError(ValidationError):
    """Raised when a query starts before the retention boundary."""

    reason = "out_of_range"


class InsufficientHistoryError(SMAError):
    """Raised when fewer candles than the largest window are available."""

    reason = "insufficient_history"


class FetchError(SMAError):
    """Raised when the candle source fails (network, upstream, decoding)."""

    reason = "fetch_error"


class PersistError(SMAError):
    """Raised when a storage operation fails. The batch is rolled back."""

    reason = "persist_error"
