"""Tests for the user vault configuration store and backend factory."""

import json
from unittest.mock import patch

import pytest

from infra_scan.vault.aws import AwsParameterStoreVault, AwsSecretsManagerVault
from infra_scan.vault.config import (
    ClientVaultConfig,
    get_configured_vault,
    get_internal_vault,
    load_client_vault_config,
    new_vault,
    store_client_vault_config,
)
from infra_scan.vault.enums import VaultType
from infra_scan.vault.exceptions import UnsupportedBackendError, VaultError, VaultNotFoundError
from infra_scan.vault.gcp import GcpBerglasVault, GcpSecretManagerVault
from infra_scan.vault.hashicorp import HashiCorpVault
from infra_scan.vault.kernel_keyring import LinuxKernelKeyringVault
from infra_scan.vault.keyring_vault import EncryptedFileVault, KeyringVault
from infra_scan.vault.memory import MemoryVault
from infra_scan.vault.models import Secret, SecretID, VaultConfiguration


def hashicorp_config(name="prod"):
    return VaultConfiguration(
        name=name,
        type=VaultType.HASHICORP_VAULT,
        options={"url": "https://vault.example.com:8200", "token": "s.xyz"},
    )


class TestClientVaultConfig:
    """Test the map operations and serialization."""

    def test_set_get_delete(self):
        """Test basic map operations."""
        config = ClientVaultConfig({})
        config.set("prod", hashicorp_config())
        assert config.get("prod").type is VaultType.HASHICORP_VAULT
        assert list(config.root) == ["prod"]

        config.delete("prod")
        with pytest.raises(VaultNotFoundError, match="vault not found"):
            config.get("prod")

    def test_delete_missing_is_noop(self):
        config = ClientVaultConfig({})
        config.delete("nope")
        assert len(config) == 0

    def test_secret_data_wire_form(self):
        """Test the persisted json uses string type tags."""
        config = ClientVaultConfig({})
        config.set("prod", hashicorp_config())
        payload = json.loads(config.secret_data())
        assert payload == {
            "prod": {
                "name": "prod",
                "type": "hashicorp-vault",
                "options": {"url": "https://vault.example.com:8200", "token": "s.xyz"},
            }
        }

    def test_secret_data_marshal_failure_is_runtime_error(self):
        """Test a serialization failure is treated as a programming error."""
        config = ClientVaultConfig({})
        config.set("prod", hashicorp_config())
        config.root["prod"].options = {"bad": object()}
        with pytest.raises(RuntimeError):
            config.secret_data()


class TestPersistence:
    """Test load/store through an internal vault."""

    def test_missing_bootstrap_secret_is_empty(self):
        """Test an empty internal vault means no configured vaults."""
        assert len(load_client_vault_config(MemoryVault())) == 0

    def test_store_then_load(self):
        """Test configurations survive a round trip through the vault."""
        internal = MemoryVault()
        config = ClientVaultConfig({})
        config.set("prod", hashicorp_config())
        store_client_vault_config(config, internal)

        stored = internal.get(SecretID(key="user-vaults"))
        assert stored.label == "User Vaults"
        assert load_client_vault_config(internal).get("prod") == hashicorp_config()

    def test_corrupt_config(self):
        """Test unreadable configuration is an error."""
        internal = MemoryVault({"user-vaults": Secret(key="user-vaults", data=b"{nope")})
        with pytest.raises(VaultError):
            load_client_vault_config(internal)

    def test_get_configured_vault(self):
        """Test a registered vault is constructed by name."""
        internal = MemoryVault()
        config = ClientVaultConfig({})
        config.set("prod", hashicorp_config())
        store_client_vault_config(config, internal)

        vault = get_configured_vault("prod", internal)
        assert isinstance(vault, HashiCorpVault)
        assert vault.address == "https://vault.example.com:8200"

    def test_get_configured_vault_unknown_name(self):
        """Test an unregistered name is 'vault not found'."""
        with pytest.raises(VaultNotFoundError, match="vault not found"):
            get_configured_vault("missing", MemoryVault())

    def test_internal_vault_defaults_to_os_lookup(self):
        """Test the internal vault is picked by the platform."""
        with patch(
            "infra_scan.vault.config.get_internal_vault", return_value=MemoryVault()
        ) as internal:
            assert len(load_client_vault_config()) == 0
        internal.assert_called_once()


class TestInternalVault:
    def test_linux_uses_kernel_keyring(self):
        with patch("infra_scan.vault.config.sys.platform", "linux"):
            assert isinstance(get_internal_vault(), LinuxKernelKeyringVault)

    @pytest.mark.parametrize("platform", ["darwin", "win32"])
    def test_other_platforms_use_keyring(self, platform):
        with patch("infra_scan.vault.config.sys.platform", platform):
            assert isinstance(get_internal_vault(), KeyringVault)


class TestNewVault:
    """Test the factory keyed on the vault type."""

    @pytest.mark.parametrize(
        "vault_type,options,expected",
        [
            (VaultType.KEYRING, {}, KeyringVault),
            (VaultType.LINUX_KERNEL_KEYRING, {}, LinuxKernelKeyringVault),
            (VaultType.ENCRYPTED_FILE, {"path": "/tmp", "password": "pw"}, EncryptedFileVault),
            (VaultType.HASHICORP_VAULT, {"url": "http://vault:8200"}, HashiCorpVault),
            (VaultType.GCP_SECRET_MANAGER, {"project-id": "p"}, GcpSecretManagerVault),
            (VaultType.GCP_BERGLAS, {"bucket": "b", "kms-key-id": "k"}, GcpBerglasVault),
            (VaultType.AWS_SECRETS_MANAGER, {"region": "eu-west-1"}, AwsSecretsManagerVault),
            (VaultType.AWS_PARAMETER_STORE, {}, AwsParameterStoreVault),
            (VaultType.MEMORY, {}, MemoryVault),
        ],
    )
    def test_builds_backend(self, vault_type, options, expected):
        """Test each type builds its backend."""
        vault = new_vault(VaultConfiguration(name="v", type=vault_type, options=options))
        assert isinstance(vault, expected)

    def test_none_is_unsupported(self):
        """Test the none type has no backend."""
        with pytest.raises(UnsupportedBackendError):
            new_vault(VaultConfiguration(name="v", type=VaultType.NONE))

    def test_hashicorp_options(self):
        """Test HashiCorp options reach the backend."""
        vault = new_vault(
            VaultConfiguration(
                name="v",
                type="hashicorp-vault",
                options={"url": "https://vault:8200", "insecure": "true", "mount": "kv"},
            )
        )
        assert vault.verify is False
        assert vault.mount_point == "kv"

    def test_encrypted_file_without_password(self):
        """Test encrypted files need a password option or function."""
        with pytest.raises(VaultError):
            new_vault(VaultConfiguration(name="v", type=VaultType.ENCRYPTED_FILE))
