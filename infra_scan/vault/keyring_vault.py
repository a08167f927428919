"""OS keyring and encrypted-file vaults.

Secrets are stored as JSON under ``(service_name, key)`` in a keyring
backend chosen by the ``keyring`` library: Windows Credential Manager,
macOS Keychain, or Secret Service/KWallet on Linux. The encrypted-file
variant pins the backend to a single ``keyrings.cryptfile`` file unlocked
with a password callback.
"""

import logging
import os
from threading import Lock
from typing import Callable, Optional

import keyring
from keyring.backend import KeyringBackend
from keyring.backends import fail
from keyring.errors import KeyringError
from keyrings.cryptfile.cryptfile import CryptFileKeyring

from infra_scan.config import KEYRING_SERVICE
from infra_scan.vault.base import Vault, validate_secret_key
from infra_scan.vault.exceptions import (
    FileFallbackNotSupportedError,
    SecretNotFoundError,
    VaultError,
)
from infra_scan.vault.models import Secret, SecretID

logger = logging.getLogger(__name__)

PasswordFunc = Callable[[], str]

DEFAULT_KEYRING_FILE = "infra_scan_keyring.cfg"


def _file_backend(path: str, password_func: PasswordFunc) -> KeyringBackend:
    backend = CryptFileKeyring()
    backend.file_path = path
    backend.keyring_key = password_func()
    return backend


class KeyringVault(Vault):
    """Vault backed by the platform keyring.

    When the platform offers no usable keyring, secrets can only fall back to
    an encrypted file, which needs a password function.
    """

    def __init__(
        self,
        service_name: str = KEYRING_SERVICE,
        file_password_func: Optional[PasswordFunc] = None,
        file_path: Optional[str] = None,
    ):
        self.service_name = service_name
        self._file_password_func = file_password_func
        self._file_path = file_path or os.path.join(
            os.path.expanduser("~"), f".{DEFAULT_KEYRING_FILE}"
        )
        self._backend: Optional[KeyringBackend] = None
        self._backend_lock = Lock()

    def _open_backend(self) -> KeyringBackend:
        backend = keyring.get_keyring()
        if not isinstance(backend, fail.Keyring):
            return backend
        if self._file_password_func is None:
            raise FileFallbackNotSupportedError()
        logger.info(f"No platform keyring available, using file {self._file_path}")
        return _file_backend(self._file_path, self._file_password_func)

    def _get_backend(self) -> KeyringBackend:
        if self._backend is None:
            with self._backend_lock:
                if self._backend is None:
                    self._backend = self._open_backend()
        return self._backend

    def get(self, secret_id: SecretID) -> Secret:
        validate_secret_key(secret_id.key)
        try:
            payload = self._get_backend().get_password(self.service_name, secret_id.key)
        except KeyringError as e:
            raise VaultError(
                f"Failed to read secret from keyring: {e}",
                details={"operation": "get", "key": secret_id.key},
            ) from e

        if payload is None:
            raise SecretNotFoundError(secret_id.key)

        try:
            secret = Secret.model_validate_json(payload)
        except ValueError as e:
            raise VaultError(
                "Keyring entry is not a valid secret",
                details={"operation": "get", "key": secret_id.key},
            ) from e
        secret.key = secret_id.key
        return secret

    def set(self, secret: Secret) -> SecretID:
        validate_secret_key(secret.key)
        try:
            self._get_backend().set_password(
                self.service_name, secret.key, secret.model_dump_json()
            )
        except KeyringError as e:
            raise VaultError(
                f"Failed to write secret to keyring: {e}",
                details={"operation": "set", "key": secret.key},
            ) from e
        logger.debug(f"Stored secret in keyring: {secret.key}")
        return SecretID(key=secret.key)

    def __repr__(self) -> str:
        return f"KeyringVault(service_name={self.service_name!r})"


class EncryptedFileVault(KeyringVault):
    """Vault restricted to a single password-protected keyring file."""

    def __init__(
        self,
        path: str,
        name: str = DEFAULT_KEYRING_FILE,
        password_func: Optional[PasswordFunc] = None,
        service_name: str = KEYRING_SERVICE,
    ):
        if password_func is None:
            raise FileFallbackNotSupportedError(
                "encrypted file vault requires a password function"
            )
        super().__init__(
            service_name=service_name,
            file_password_func=password_func,
            file_path=os.path.join(os.path.expanduser(path), name),
        )

    def _open_backend(self) -> KeyringBackend:
        return _file_backend(self._file_path, self._file_password_func)

    def __repr__(self) -> str:
        return f"EncryptedFileVault(path={self._file_path!r})"
