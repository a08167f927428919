"""Tests for the HashiCorp Vault backend."""

import json
from unittest.mock import MagicMock, patch

import pytest
from hvac.exceptions import Forbidden, InvalidPath, VaultDown

from infra_scan.vault.enums import SecretEncoding
from infra_scan.vault.exceptions import SecretNotFoundError, VaultError
from infra_scan.vault.hashicorp import HashiCorpVault, extract_kv2_fields, resolve_token
from infra_scan.vault.models import Credential, Secret, SecretID


@pytest.fixture
def hvac_client():
    with patch("infra_scan.vault.hashicorp.hvac.Client") as client_cls:
        client = MagicMock()
        client_cls.return_value = client
        yield client


class TestResolveToken:
    """Test token precedence."""

    def test_credential_wins(self, monkeypatch):
        """Test an explicit credential beats option and env."""
        monkeypatch.setenv("VAULT_TOKEN", "env-token")
        cred = Credential(secret=b"cred-token")
        assert resolve_token(cred, "option-token") == "cred-token"

    def test_option_beats_env(self, monkeypatch):
        """Test the token option beats the env var."""
        monkeypatch.setenv("VAULT_TOKEN", "env-token")
        assert resolve_token(None, "option-token") == "option-token"

    def test_env_fallback(self, monkeypatch):
        """Test the legacy env var is the last resort."""
        monkeypatch.setenv("VAULT_TOKEN", "env-token")
        assert resolve_token() == "env-token"

    def test_no_token(self, monkeypatch):
        """Test no source gives no token."""
        monkeypatch.delenv("VAULT_TOKEN", raising=False)
        assert resolve_token() is None


class TestExtractFields:
    def test_missing_data_section(self):
        """Test responses without data.data give None, not an error."""
        assert extract_kv2_fields(None) is None
        assert extract_kv2_fields({}) is None
        assert extract_kv2_fields({"data": {"metadata": {}}}) is None

    def test_fields(self):
        """Test the nested data object is returned."""
        assert extract_kv2_fields({"data": {"data": {"a": "b"}}}) == {"a": "b"}


class TestHashiCorpVault:
    """Test HashiCorpVault get/set."""

    def test_rejects_bad_address(self):
        """Test the address must be http(s)."""
        with pytest.raises(VaultError):
            HashiCorpVault("vault:8200")

    def test_get(self, hvac_client):
        """Test a KV v2 read returns the fields as json."""
        hvac_client.secrets.kv.v2.read_secret_version.return_value = {
            "data": {"data": {"user": "admin"}, "metadata": {"version": 1}}
        }
        vault = HashiCorpVault("http://vault:8200", token="t")

        secret = vault.get(SecretID(key="prod/db"))

        hvac_client.secrets.kv.v2.read_secret_version.assert_called_once_with(
            path="prod/db", mount_point="secret", raise_on_deleted_version=True
        )
        assert json.loads(secret.data) == {"user": "admin"}
        assert secret.encoding is SecretEncoding.JSON
        assert vault.kv_path("prod/db") == "secret/data/prod/db"

    def test_get_without_data(self, hvac_client):
        """Test a response missing data.data yields an empty secret."""
        hvac_client.secrets.kv.v2.read_secret_version.return_value = {"data": {}}
        secret = HashiCorpVault("http://vault:8200", token="t").get(SecretID(key="k"))
        assert secret.data == b""

    def test_get_invalid_path_is_not_found(self, hvac_client):
        """Test InvalidPath maps to the not-found error."""
        hvac_client.secrets.kv.v2.read_secret_version.side_effect = InvalidPath()
        with pytest.raises(SecretNotFoundError):
            HashiCorpVault("http://vault:8200", token="t").get(SecretID(key="k"))

    @pytest.mark.parametrize("error", [Forbidden(), VaultDown()])
    def test_get_other_errors_are_wrapped(self, hvac_client, error):
        """Test other failures are wrapped with operation and key."""
        hvac_client.secrets.kv.v2.read_secret_version.side_effect = error
        with pytest.raises(VaultError) as exc_info:
            HashiCorpVault("http://vault:8200", token="t").get(SecretID(key="k"))
        assert not isinstance(exc_info.value, SecretNotFoundError)
        assert exc_info.value.details == {"operation": "get", "key": "k"}

    def test_set(self, hvac_client):
        """Test fields are written as the KV v2 data object."""
        vault = HashiCorpVault("http://vault:8200", token="t")
        secret_id = vault.set(Secret(key="prod/db", data=b'{"user": "admin"}'))

        hvac_client.secrets.kv.v2.create_or_update_secret.assert_called_once_with(
            path="prod/db", secret={"user": "admin"}, mount_point="secret"
        )
        assert secret_id.key == "prod/db"

    @pytest.mark.parametrize("data", [b"not json", b"[1, 2]"])
    def test_set_requires_json_object(self, hvac_client, data):
        """Test non-object payloads are refused."""
        with pytest.raises(VaultError):
            HashiCorpVault("http://vault:8200", token="t").set(Secret(key="k", data=data))
        hvac_client.secrets.kv.v2.create_or_update_secret.assert_not_called()

    def test_client_is_lazy_and_reused(self):
        """Test the hvac client is built once, on first use."""
        with patch("infra_scan.vault.hashicorp.hvac.Client") as client_cls:
            vault = HashiCorpVault("http://vault:8200", token="t", timeout=5)
            client_cls.assert_not_called()
            vault._get_client()
            vault._get_client()
            client_cls.assert_called_once_with(
                url="http://vault:8200", token="t", namespace=None, verify=True, timeout=5
            )
