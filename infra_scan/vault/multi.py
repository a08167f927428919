"""Read-only cascade over an ordered list of vaults."""

import logging
from typing import Sequence

from infra_scan.vault.base import Vault, validate_secret_key
from infra_scan.vault.exceptions import SecretNotFoundError, VaultNotImplementedError
from infra_scan.vault.models import Secret, SecretID

logger = logging.getLogger(__name__)


class MultiVault(Vault):
    """Try each vault in order and return the first hit.

    Order defines precedence when a key exists in more than one vault.
    Vaults are queried one after another, never in parallel.
    """

    def __init__(self, vaults: Sequence[Vault]):
        self.vaults = list(vaults)

    def get(self, secret_id: SecretID) -> Secret:
        validate_secret_key(secret_id.key)
        for vault in self.vaults:
            try:
                return vault.get(secret_id)
            except Exception as e:
                logger.debug(
                    f"Secret {secret_id.key} not served by {vault!r}: {type(e).__name__}"
                )
        raise SecretNotFoundError(
            secret_id.key,
            details={"vaults": len(self.vaults)},
        )

    def set(self, secret: Secret) -> SecretID:
        validate_secret_key(secret.key)
        raise VaultNotImplementedError(
            "set",
            message="multi vault is read-only: set is not implemented",
        )
