"""Linux kernel keyring vault.

Talks to the session-independent user keyring (``@u``) through the
``keyctl`` command from keyutils. Secrets are stored as JSON in ``user``
keys described as ``<service>:<key>``.
"""

import logging
import shutil
import subprocess
from typing import Optional

from infra_scan.config import KEYRING_SERVICE, VAULT_TIMEOUT
from infra_scan.vault.base import Vault, validate_secret_key
from infra_scan.vault.exceptions import SecretNotFoundError, VaultError
from infra_scan.vault.models import Secret, SecretID

logger = logging.getLogger(__name__)

KEYRING = "@u"
KEY_TYPE = "user"


class LinuxKernelKeyringVault(Vault):
    """Vault backed by the Linux kernel key retention service."""

    def __init__(
        self,
        service_name: str = KEYRING_SERVICE,
        keyctl: Optional[str] = None,
        timeout: float = VAULT_TIMEOUT,
    ):
        self.service_name = service_name
        self._keyctl = keyctl
        self.timeout = timeout

    def _description(self, key: str) -> str:
        return f"{self.service_name}:{key}"

    def _run(
        self, *args: str, key: str = "", payload: Optional[bytes] = None
    ) -> subprocess.CompletedProcess:
        keyctl = self._keyctl or shutil.which("keyctl")
        if keyctl is None:
            raise VaultError(
                "keyctl is not installed, cannot access the kernel keyring",
                details={"operation": args[0], "key": key},
            )
        try:
            return subprocess.run(
                [keyctl, *args],
                input=payload,
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise VaultError(
                f"keyctl {args[0]} timed out after {self.timeout}s",
                details={"operation": args[0], "key": key},
            ) from e
        except OSError as e:
            raise VaultError(
                f"Failed to run keyctl {args[0]}: {e}",
                details={"operation": args[0], "key": key},
            ) from e

    def get(self, secret_id: SecretID) -> Secret:
        validate_secret_key(secret_id.key)

        result = self._run(
            "search", KEYRING, KEY_TYPE, self._description(secret_id.key), key=secret_id.key
        )
        if result.returncode != 0:
            raise SecretNotFoundError(secret_id.key)
        key_serial = result.stdout.decode().strip()

        result = self._run("pipe", key_serial, key=secret_id.key)
        if result.returncode != 0:
            raise VaultError(
                f"Failed to read kernel key: {result.stderr.decode().strip()}",
                details={"operation": "get", "key": secret_id.key},
            )

        try:
            secret = Secret.model_validate_json(result.stdout)
        except ValueError as e:
            raise VaultError(
                "Kernel key does not hold a valid secret",
                details={"operation": "get", "key": secret_id.key},
            ) from e
        secret.key = secret_id.key
        return secret

    def set(self, secret: Secret) -> SecretID:
        validate_secret_key(secret.key)

        result = self._run(
            "padd",
            KEY_TYPE,
            self._description(secret.key),
            KEYRING,
            key=secret.key,
            payload=secret.model_dump_json().encode(),
        )
        if result.returncode != 0:
            raise VaultError(
                f"Failed to write kernel key: {result.stderr.decode().strip()}",
                details={"operation": "set", "key": secret.key},
            )
        logger.debug(f"Stored secret in kernel keyring: {secret.key}")
        return SecretID(key=secret.key)

    def __repr__(self) -> str:
        return f"LinuxKernelKeyringVault(service_name={self.service_name!r})"
