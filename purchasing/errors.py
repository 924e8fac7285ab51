"""
Exception types raised by the purchasing core.

The HTTP layer maps these onto status codes; the CLI prints them.  Nothing in
the core catches them, so a failed step aborts the whole operation.
"""
from typing import Optional


class PurchasingError(Exception):
    """Base class for all purchasing errors."""


class ValidationError(PurchasingError):
    """Malformed input or an operation not allowed in the current state."""


class NotFoundError(PurchasingError):
    """A referenced order, item or product does not exist in the store."""

    def __init__(self, collection: str, id: Optional[str] = None, message: Optional[str] = None):
        self.collection = collection
        self.id = id
        super().__init__(message or f"{collection} not found: {id}")


class StoreError(PurchasingError):
    """The underlying data store call failed."""
