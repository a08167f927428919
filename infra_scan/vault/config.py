"""Registry of user-configured vaults.

Named :class:`VaultConfiguration` entries are kept together as one JSON
secret under ``user-vaults`` in the internal vault, the local OS-backed
store that needs no configuration of its own.
"""

import logging
import sys
from typing import Callable, Optional

from pydantic import RootModel
from pydantic_core import PydanticSerializationError

from infra_scan.config import USER_VAULTS_KEY, VAULT_TIMEOUT
from infra_scan.vault.base import Vault
from infra_scan.vault.enums import SecretEncoding, VaultType
from infra_scan.vault.exceptions import (
    SecretNotFoundError,
    UnsupportedBackendError,
    VaultError,
    VaultNotFoundError,
)
from infra_scan.vault.models import Secret, SecretID, VaultConfiguration

logger = logging.getLogger(__name__)


def get_internal_vault() -> Vault:
    """Return the bootstrap vault for this platform.

    Linux uses the kernel keyring, every other platform the OS keyring.
    """
    if sys.platform.startswith("linux"):
        from infra_scan.vault.kernel_keyring import LinuxKernelKeyringVault

        return LinuxKernelKeyringVault()

    from infra_scan.vault.keyring_vault import KeyringVault

    return KeyringVault()


class ClientVaultConfig(RootModel[dict[str, VaultConfiguration]]):
    """Named vault configurations, keyed by vault name."""

    root: dict[str, VaultConfiguration] = {}

    def set(self, name: str, config: VaultConfiguration) -> None:
        self.root[name] = config

    def delete(self, name: str) -> None:
        self.root.pop(name, None)

    def get(self, name: str) -> VaultConfiguration:
        """Look up a vault configuration by name.

        Raises:
            VaultNotFoundError: If no vault is registered under the name.
        """
        try:
            return self.root[name]
        except KeyError:
            raise VaultNotFoundError(name) from None

    def secret_data(self) -> bytes:
        """Serialize every configuration for storage in the internal vault."""
        try:
            return self.model_dump_json().encode()
        except PydanticSerializationError as e:
            raise RuntimeError(f"cannot serialize vault configuration: {e}") from e

    def __len__(self) -> int:
        return len(self.root)


def load_client_vault_config(internal_vault: Optional[Vault] = None) -> ClientVaultConfig:
    """Read the registered vaults; a missing bootstrap secret means none."""
    vault = internal_vault or get_internal_vault()
    try:
        secret = vault.get(SecretID(key=USER_VAULTS_KEY))
    except SecretNotFoundError:
        logger.debug("No user vaults configured")
        return ClientVaultConfig({})

    try:
        return ClientVaultConfig.model_validate_json(secret.data or b"{}")
    except ValueError as e:
        raise VaultError(
            "stored vault configuration is corrupt",
            details={"key": USER_VAULTS_KEY},
        ) from e


def store_client_vault_config(
    config: ClientVaultConfig, internal_vault: Optional[Vault] = None
) -> None:
    vault = internal_vault or get_internal_vault()
    vault.set(
        Secret(
            key=USER_VAULTS_KEY,
            label="User Vaults",
            data=config.secret_data(),
            encoding=SecretEncoding.JSON,
        )
    )
    logger.info(f"Stored {len(config)} vault configuration(s)")


def get_configured_vault(name: str, internal_vault: Optional[Vault] = None) -> Vault:
    """Build the vault registered under ``name``.

    Raises:
        VaultNotFoundError: If the name is not registered.
        UnsupportedBackendError: If the stored type has no backend.
    """
    config = load_client_vault_config(internal_vault).get(name)
    logger.debug(f"Using configured vault {config.name} ({config.type.wire_name})")
    return new_vault(config)


def _flag(options: dict[str, str], name: str) -> bool:
    return options.get(name, "").strip().lower() in ("1", "true", "yes")


def _timeout(options: dict[str, str]) -> float:
    return float(options.get("timeout") or VAULT_TIMEOUT)


def new_vault(
    config: VaultConfiguration,
    password_func: Optional[Callable[[], str]] = None,
) -> Vault:
    """Construct the backend for a vault configuration.

    Args:
        config: Vault configuration
        password_func: Password callback for file backed vaults, falls back
            to the ``password`` option

    Raises:
        UnsupportedBackendError: If the type is ``none`` or has no backend.
    """
    options = config.options or {}
    vault_type = config.type

    if password_func is None and options.get("password"):
        password = options["password"]
        password_func = lambda: password  # noqa: E731

    if vault_type == VaultType.KEYRING:
        from infra_scan.vault.keyring_vault import KeyringVault

        return KeyringVault(
            service_name=options.get("service", config.name),
            file_password_func=password_func,
        )
    if vault_type == VaultType.LINUX_KERNEL_KEYRING:
        from infra_scan.vault.kernel_keyring import LinuxKernelKeyringVault

        return LinuxKernelKeyringVault(
            service_name=options.get("service", config.name),
            timeout=_timeout(options),
        )
    if vault_type == VaultType.ENCRYPTED_FILE:
        from infra_scan.vault.keyring_vault import DEFAULT_KEYRING_FILE, EncryptedFileVault

        return EncryptedFileVault(
            path=options.get("path", "~"),
            name=options.get("name", DEFAULT_KEYRING_FILE),
            password_func=password_func,
            service_name=options.get("service", config.name),
        )
    if vault_type == VaultType.HASHICORP_VAULT:
        from infra_scan.vault.hashicorp import HashiCorpVault

        kwargs = {}
        if options.get("mount"):
            kwargs["mount_point"] = options["mount"]
        return HashiCorpVault(
            address=options.get("url", ""),
            token=options.get("token"),
            namespace=options.get("namespace"),
            verify=not _flag(options, "insecure"),
            timeout=_timeout(options),
            **kwargs,
        )
    if vault_type == VaultType.GCP_SECRET_MANAGER:
        from infra_scan.vault.gcp import GcpSecretManagerVault

        return GcpSecretManagerVault(
            project_id=options.get("project-id", ""),
            timeout=_timeout(options),
        )
    if vault_type == VaultType.GCP_BERGLAS:
        from infra_scan.vault.gcp import GcpBerglasVault

        return GcpBerglasVault(
            project_id=options.get("project-id", ""),
            bucket=options.get("bucket", ""),
            kms_key=options.get("kms-key-id"),
            timeout=_timeout(options),
        )
    if vault_type in (VaultType.AWS_SECRETS_MANAGER, VaultType.AWS_PARAMETER_STORE):
        from infra_scan.vault.aws import AwsParameterStoreVault, AwsSecretsManagerVault

        vault_cls = (
            AwsSecretsManagerVault
            if vault_type == VaultType.AWS_SECRETS_MANAGER
            else AwsParameterStoreVault
        )
        kwargs = {"timeout": _timeout(options)}
        if options.get("region"):
            kwargs["region"] = options["region"]
        return vault_cls(**kwargs)
    if vault_type == VaultType.MEMORY:
        from infra_scan.vault.memory import MemoryVault

        return MemoryVault()

    raise UnsupportedBackendError(vault_type.wire_name)
