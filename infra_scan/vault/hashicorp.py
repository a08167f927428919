"""HashiCorp Vault backend.

Secrets live in the KV v2 secrets engine. A logical key ``k`` maps to the
path ``secret/data/k``; the secret's JSON fields are stored as the KV v2
``data`` object.
"""

import json
import logging
import os
from threading import Lock
from typing import Any, Optional

import hvac
from hvac.exceptions import Forbidden, InvalidPath, VaultDown
from requests.exceptions import RequestException

from infra_scan.config import HASHICORP_MOUNT_POINT, LEGACY_VAULT_TOKEN_ENV, VAULT_TIMEOUT
from infra_scan.vault.base import Vault, validate_secret_key
from infra_scan.vault.enums import SecretEncoding
from infra_scan.vault.exceptions import SecretNotFoundError, VaultError
from infra_scan.vault.models import Credential, Secret, SecretID

logger = logging.getLogger(__name__)


def extract_kv2_fields(response: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Return the ``data.data`` section of a KV v2 read, or None if absent."""
    if not response:
        return None
    envelope = response.get("data")
    if not isinstance(envelope, dict):
        return None
    fields = envelope.get("data")
    if not isinstance(fields, dict):
        return None
    return fields


def resolve_token(
    credential: Optional[Credential] = None,
    token: Optional[str] = None,
) -> Optional[str]:
    """Pick the Vault token: credential, then explicit option, then env."""
    if credential is not None:
        if credential.secret:
            return credential.secret.decode()
        if credential.password:
            return credential.password
    if token:
        return token
    return os.environ.get(LEGACY_VAULT_TOKEN_ENV) or None


class HashiCorpVault(Vault):
    """Vault backed by a HashiCorp Vault KV v2 engine.

    Example:
        >>> vault = HashiCorpVault("https://vault.example.com:8200", token="s.xyz")
        >>> vault.get(SecretID(key="prod/db"))
    """

    def __init__(
        self,
        address: str,
        token: Optional[str] = None,
        credential: Optional[Credential] = None,
        mount_point: str = HASHICORP_MOUNT_POINT,
        namespace: Optional[str] = None,
        verify: bool = True,
        timeout: float = VAULT_TIMEOUT,
    ):
        """Initialize the HashiCorp vault.

        Args:
            address: Vault server address
            token: Vault token, overridden by a credential
            credential: Credential holding the token as its secret
            mount_point: KV v2 mount point
            namespace: Enterprise namespace
            verify: TLS verification
            timeout: Request timeout in seconds
        """
        if not address.startswith(("http://", "https://")):
            raise VaultError("hashicorp vault address must start with http:// or https://")
        self.address = address.rstrip("/")
        self.mount_point = mount_point
        self.namespace = namespace
        self.verify = verify
        self.timeout = timeout
        self._token = resolve_token(credential, token)
        self._client: Optional[hvac.Client] = None
        self._client_lock = Lock()

    def _get_client(self) -> hvac.Client:
        """Get or create the underlying hvac client."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = hvac.Client(
                        url=self.address,
                        token=self._token,
                        namespace=self.namespace,
                        verify=self.verify,
                        timeout=self.timeout,
                    )
        return self._client

    def kv_path(self, key: str) -> str:
        return f"{self.mount_point}/data/{key}"

    def get(self, secret_id: SecretID) -> Secret:
        validate_secret_key(secret_id.key)
        key = secret_id.key

        try:
            response = self._get_client().secrets.kv.v2.read_secret_version(
                path=key,
                mount_point=self.mount_point,
                raise_on_deleted_version=True,
            )
        except InvalidPath as e:
            raise SecretNotFoundError(key) from e
        except Forbidden as e:
            raise VaultError(
                f"Permission denied for get on path: {self.kv_path(key)}",
                details={"operation": "get", "key": key},
            ) from e
        except VaultDown as e:
            raise VaultError(
                f"Vault server is unreachable: {e}",
                details={"operation": "get", "key": key},
            ) from e
        except (hvac.exceptions.VaultError, RequestException) as e:
            raise VaultError(
                f"Failed to read secret: {e}",
                details={"operation": "get", "key": key},
            ) from e

        fields = extract_kv2_fields(response)
        if fields is None:
            logger.debug(f"No data section at {self.kv_path(key)}")
            return Secret(key=key, encoding=SecretEncoding.JSON)

        return Secret(
            key=key,
            data=json.dumps(fields).encode(),
            encoding=SecretEncoding.JSON,
        )

    def set(self, secret: Secret) -> SecretID:
        validate_secret_key(secret.key)

        try:
            fields = json.loads(secret.data or b"{}")
        except ValueError as e:
            raise VaultError(
                "hashicorp vault only stores json encoded secrets",
                details={"operation": "set", "key": secret.key},
            ) from e
        if not isinstance(fields, dict):
            raise VaultError(
                "hashicorp vault secrets must be json objects",
                details={"operation": "set", "key": secret.key},
            )

        try:
            self._get_client().secrets.kv.v2.create_or_update_secret(
                path=secret.key,
                secret=fields,
                mount_point=self.mount_point,
            )
        except (hvac.exceptions.VaultError, RequestException) as e:
            raise VaultError(
                f"Failed to write secret: {e}",
                details={"operation": "set", "key": secret.key},
            ) from e

        logger.info(f"Stored secret at {self.kv_path(secret.key)}")
        return SecretID(key=secret.key)

    def __repr__(self) -> str:
        return f"HashiCorpVault(address={self.address!r})"
