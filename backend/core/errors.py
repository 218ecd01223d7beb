"""Error types raised by the trading core and its collaborators."""


class TradingError(Exception):
    """Base class for trading system errors."""


class StoreError(TradingError):
    """A storage collaborator failed or timed out.

    Carries the operation name so the scheduler can log it with context.
    """

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation}: {message}")
        self.operation = operation
