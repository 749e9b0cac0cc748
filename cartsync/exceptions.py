"""
Exception classes for cartsync.
"""


class CartSyncException(Exception):
    """
    Base exception for all cart synchronization errors.

    Attributes:
        message: Human-readable error message
        details: Optional dict with additional context (cart ids, status codes, ...)
    """

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        if self.details:
            details_str = ', '.join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.__class__.__name__}('{self.message}', {details_str})"
        return f"{self.__class__.__name__}('{self.message}')"


class RemoteCartError(CartSyncException):
    """Raised when the remote cart resource cannot answer a request."""

    def __init__(self, operation: str, reason: str, status_code: int | None = None):
        super().__init__(
            f"Remote cart {operation} failed: {reason}",
            details={'operation': operation, 'status_code': status_code}
        )
        self.operation = operation
        self.status_code = status_code


class StoreUnavailableError(CartSyncException):
    """Raised when the key-value store cannot be read or written."""

    def __init__(self, key: str, reason: str):
        super().__init__(
            f"Storage unavailable for key {key}: {reason}",
            details={'key': key}
        )
        self.key = key


class CartMergeError(CartSyncException):
    """Raised when a guest cart could not be merged into a customer cart."""

    def __init__(self, guest_cart_id: str, reason: str):
        super().__init__(
            f"Could not merge guest cart {guest_cart_id}: {reason}",
            details={'guest_cart_id': guest_cart_id}
        )
        self.guest_cart_id = guest_cart_id


class InvalidCartItemError(CartSyncException):
    """Raised when an item to add cannot be read (e.g. no product id)."""

    def __init__(self, reason: str):
        super().__init__(
            f"Invalid cart item: {reason}",
            details={'reason': reason}
        )
