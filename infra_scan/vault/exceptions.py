"""Custom exceptions for vault and connection resolution.

This module defines all custom exceptions used by the vault backends,
the vault configuration store and the connection resolver for
consistent error handling.
"""

from typing import Optional


class VaultError(Exception):
    """Base exception for vault-related errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        """Initialize vault error.

        Args:
            message: Error message
            details: Additional error details (never secret values)
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return error string representation."""
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class SecretNotFoundError(VaultError):
    """Raised when a secret does not exist in a vault."""

    def __init__(
        self,
        key: str = "",
        message: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        full_message = message or "secret not found"
        super().__init__(full_message, details)
        self.key = key


class InvalidSecretKeyError(VaultError):
    """Raised when a secret key violates the backend key constraints."""

    def __init__(
        self,
        key: str,
        message: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        full_message = message or f"invalid secret key: {key!r} must not start with /"
        super().__init__(full_message, details)
        self.key = key


class UnsupportedBackendError(VaultError):
    """Raised for an unknown vault type or an unknown connection backend."""

    def __init__(
        self,
        backend: str,
        message: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        full_message = message or f"unsupported backend: {backend}"
        super().__init__(full_message, details)
        self.backend = backend


class CredentialResolutionError(VaultError):
    """Raised when a credential reference cannot be resolved through a vault."""

    def __init__(
        self,
        secret_id: str,
        message: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        full_message = message or f"could not resolve credential {secret_id}"
        super().__init__(full_message, details)
        self.secret_id = secret_id


class ConnectionOpenError(VaultError):
    """Raised when a connection provider fails to open a connection."""

    def __init__(
        self,
        asset: str,
        backend: str,
        message: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        full_message = message or f"could not open {backend} connection for asset {asset}"
        super().__init__(full_message, details or {"asset": asset, "backend": backend})
        self.asset = asset
        self.backend = backend


class EnumDecodeError(VaultError, ValueError):
    """Raised when an enum value cannot be encoded or decoded."""

    def __init__(
        self,
        enum_name: str,
        value: object,
        details: Optional[dict] = None,
    ):
        super().__init__(f"invalid {enum_name} value: {value!r}", details)
        self.enum_name = enum_name
        self.value = value


class VaultNotImplementedError(VaultError):
    """Raised by read-only vaults for unsupported operations."""

    def __init__(
        self,
        operation: str = "set",
        message: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        full_message = message or f"{operation} is not implemented for this vault"
        super().__init__(full_message, details)
        self.operation = operation


class VaultNotFoundError(VaultError):
    """Raised when a named vault configuration does not exist."""

    def __init__(
        self,
        name: str,
        message: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message or "vault not found", details or {"name": name})
        self.name = name


class FileFallbackNotSupportedError(VaultError):
    """Raised when only a file keyring is available but no password is set."""

    def __init__(
        self,
        message: str = "file fallback not supported: no password function configured",
        details: Optional[dict] = None,
    ):
        super().__init__(message, details)
