"""Credential resolvers turn credential references into resolved credentials."""

import logging
from typing import Mapping, Optional, Protocol

from infra_scan.vault.base import Vault, escape_secret_id
from infra_scan.vault.memory import MemoryVault
from infra_scan.vault.models import (
    Credential,
    SecretID,
    credential_from_secret,
    secret_from_credential,
)
from infra_scan.vault.multi import MultiVault

logger = logging.getLogger(__name__)


class CredentialResolver(Protocol):
    """Anything that can resolve a credential reference."""

    def get_credential(self, credential: Credential) -> Credential:
        ...


class VaultCredentialResolver:
    """Resolve references by reading ``secret_id`` from a vault."""

    def __init__(self, vault: Vault):
        self.vault = vault

    def get_credential(self, credential: Credential) -> Credential:
        """Return the vault-held credential for a reference.

        The user of the reference is kept when the stored credential has none.
        Credentials without a ``secret_id`` are returned unchanged.
        """
        if not credential.is_reference:
            return credential

        key = escape_secret_id(credential.secret_id)
        logger.debug(f"Resolving credential {key} via {self.vault!r}")
        secret = self.vault.get(SecretID(key=key))
        resolved = credential_from_secret(secret)
        if not resolved.user:
            resolved.user = credential.user
        return resolved


def credentials_vault(credentials: Mapping[str, Credential]) -> MemoryVault:
    """Load inventory-embedded credentials into an in-memory vault."""
    vault = MemoryVault()
    for secret_id, credential in credentials.items():
        stored = credential.model_copy(
            deep=True, update={"secret_id": escape_secret_id(secret_id)}
        ).preprocess()
        vault.set(secret_from_credential(stored))
    return vault


def new_credentials_resolver(
    vault: Optional[Vault] = None,
    inventory_credentials: Optional[Mapping[str, Credential]] = None,
) -> VaultCredentialResolver:
    """Build a resolver over inventory credentials and an optional vault.

    Inventory credentials take precedence over the vault.
    """
    vaults: list[Vault] = []
    if inventory_credentials:
        vaults.append(credentials_vault(inventory_credentials))
    if vault is not None:
        vaults.append(vault)
    return VaultCredentialResolver(MultiVault(vaults))
