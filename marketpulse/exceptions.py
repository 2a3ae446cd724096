"""
Core exceptions.

Missing price/event data is not an exception: accessors return None or an
empty list and callers skip the item.
"""


class MarketPulseError(Exception):
    """Base exception for analysis and storage errors."""

    def __init__(self, message: str, operation: str | None = None):
        self.operation = operation
        super().__init__(message)


class UpstreamUnavailable(MarketPulseError):
    """A read from the price/event store failed or timed out."""

    pass


class PersistenceFailure(MarketPulseError):
    """A write to the pattern/recommendation/prediction store failed."""

    def __init__(self, operation: str, key: object | None = None, cause: str = ""):
        self.key = key
        msg = f"Persistence failure in '{operation}'"
        if key is not None:
            msg += f" for {key}"
        if cause:
            msg += f": {cause}"
        super().__init__(msg, operation=operation)
