"""Exception types raised by Prism."""


class PrismError(Exception):
    """Base class for all Prism errors."""


class InsufficientDocumentsError(PrismError, ValueError):
    """Raised when a run has fewer embedded documents than it needs."""

    def __init__(self, required: int, actual: int):
        self.required = required
        self.actual = actual
        super().__init__(
            f"Insufficient documents: need at least {required} embedded document(s), got {actual}"
        )


class VectorDimensionError(PrismError, ValueError):
    """Raised when vectors of different lengths are compared."""


class ConfigError(PrismError, ValueError):
    """Raised for missing or invalid configuration (e.g. no API key)."""


class StoreError(PrismError):
    """Raised when the document store cannot complete an operation."""
