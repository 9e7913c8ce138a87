"""Typed exceptions for the claim registry."""


class ClaimRegistryError(Exception):
    """Base exception for the claim registry."""


class ValidationError(ClaimRegistryError):
    """Malformed input (empty name, bad address, malformed handle...)."""


class AuthorizationError(ClaimRegistryError):
    """Caller is not allowed to perform the operation or read the data."""


class ConflictError(ClaimRegistryError):
    """Operation collides with existing state."""


class NotFoundError(ClaimRegistryError):
    """Referenced record does not exist."""


class InvalidSignature(ValidationError):
    """Signature is malformed (length, 'v' or 's' value)."""


class InvalidHandle(ValidationError):
    """Handle bytes do not follow the length-prefixed index encoding."""


class AlreadyHasHandle(ConflictError):
    """Caller already owns a handle. Release it first."""


class HandleTaken(ConflictError):
    """Handle is owned by another address."""


class NoHandle(NotFoundError):
    """Caller does not own a handle."""


class ContentStoreError(ClaimRegistryError):
    """Content store request failed.

    Attributes:
        status_code: HTTP status code if a response was received
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ContentNotFoundError(ContentStoreError):
    """Content pointer is unknown to the content store."""


class ContentStoreConnectionError(ContentStoreError):
    """Cannot connect to the content store."""
