"""In-memory vault used for tests and as a zero-dependency default."""

import logging
from threading import Lock
from typing import Optional

from infra_scan.vault.base import Vault, validate_secret_key
from infra_scan.vault.exceptions import SecretNotFoundError
from infra_scan.vault.models import Secret, SecretID

logger = logging.getLogger(__name__)


class MemoryVault(Vault):
    """Vault keeping secrets in a process-local dict."""

    def __init__(self, secrets: Optional[dict[str, Secret]] = None):
        self._secrets: dict[str, Secret] = dict(secrets or {})
        self._lock = Lock()

    def get(self, secret_id: SecretID) -> Secret:
        validate_secret_key(secret_id.key)
        with self._lock:
            secret = self._secrets.get(secret_id.key)
        if secret is None:
            raise SecretNotFoundError(secret_id.key)
        return secret.model_copy(deep=True)

    def set(self, secret: Secret) -> SecretID:
        validate_secret_key(secret.key)
        with self._lock:
            self._secrets[secret.key] = secret.model_copy(deep=True)
        logger.debug(f"Stored secret in memory vault: {secret.key}")
        return SecretID(key=secret.key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._secrets)
