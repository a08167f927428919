"""Vault interface shared by every secret store backend."""

from abc import ABC, abstractmethod

from infra_scan.vault.exceptions import InvalidSecretKeyError
from infra_scan.vault.models import Secret, SecretID

PLATFORM_ID_PREFIX = "//"


def validate_secret_key(key: str) -> None:
    """Reject keys the backends cannot address.

    Raises:
        InvalidSecretKeyError: If the key is empty or starts with ``/``.
    """
    if not key:
        raise InvalidSecretKeyError(key, message="secret key cannot be empty")
    if key.startswith("/"):
        raise InvalidSecretKeyError(key)


def escape_secret_id(key: str) -> str:
    """Turn a platform id (``//platformid...``) into a usable vault key."""
    if key.startswith(PLATFORM_ID_PREFIX):
        return key[len(PLATFORM_ID_PREFIX):]
    return key


class Vault(ABC):
    """Uniform get/set contract over a secret store.

    Implementations validate the key before any network or OS call and raise
    :class:`~infra_scan.vault.exceptions.SecretNotFoundError` for a missing
    key so callers can tell "not configured" from "unreachable".
    """

    @abstractmethod
    def get(self, secret_id: SecretID) -> Secret:
        """Read a secret."""

    @abstractmethod
    def set(self, secret: Secret) -> SecretID:
        """Store a secret and return its identifier."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
