"""Vault abstraction over local and cloud secret stores.

Example:
    >>> from infra_scan.vault import MemoryVault, Secret, SecretID
    >>> vault = MemoryVault()
    >>> secret_id = vault.set(Secret(key="db", data=b"hunter2"))
    >>> vault.get(secret_id).data
    b'hunter2'
"""

from infra_scan.vault.base import Vault, escape_secret_id, validate_secret_key
from infra_scan.vault.config import (
    ClientVaultConfig,
    get_configured_vault,
    get_internal_vault,
    load_client_vault_config,
    new_vault,
    store_client_vault_config,
)
from infra_scan.vault.enums import CredentialType, SecretEncoding, VaultType
from infra_scan.vault.exceptions import (
    ConnectionOpenError,
    CredentialResolutionError,
    EnumDecodeError,
    FileFallbackNotSupportedError,
    InvalidSecretKeyError,
    SecretNotFoundError,
    UnsupportedBackendError,
    VaultError,
    VaultNotFoundError,
    VaultNotImplementedError,
)
from infra_scan.vault.memory import MemoryVault
from infra_scan.vault.models import (
    Credential,
    Secret,
    SecretID,
    VaultConfiguration,
    credential_from_secret,
    secret_from_credential,
)
from infra_scan.vault.multi import MultiVault
from infra_scan.vault.resolver import (
    CredentialResolver,
    VaultCredentialResolver,
    new_credentials_resolver,
)

__all__ = [
    # Interface
    "Vault",
    "validate_secret_key",
    "escape_secret_id",
    # Models
    "Credential",
    "Secret",
    "SecretID",
    "VaultConfiguration",
    "CredentialType",
    "SecretEncoding",
    "VaultType",
    "credential_from_secret",
    "secret_from_credential",
    # Vaults
    "MemoryVault",
    "MultiVault",
    # Configuration
    "ClientVaultConfig",
    "get_internal_vault",
    "get_configured_vault",
    "load_client_vault_config",
    "store_client_vault_config",
    "new_vault",
    # Resolvers
    "CredentialResolver",
    "VaultCredentialResolver",
    "new_credentials_resolver",
    # Exceptions
    "VaultError",
    "SecretNotFoundError",
    "InvalidSecretKeyError",
    "UnsupportedBackendError",
    "ConnectionOpenError",
    "CredentialResolutionError",
    "EnumDecodeError",
    "VaultNotImplementedError",
    "VaultNotFoundError",
    "FileFallbackNotSupportedError",
]
