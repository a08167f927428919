"""GCP Secret Manager and Berglas vaults.

Both backends sanitize keys with :func:`infra_scan.vault.aws.sanitize_key`.
Two logical keys that differ only in ``/``, ``.`` or ``-`` collide after
sanitization; stored names stay compatible with existing secrets.
"""

import base64
import logging
import os
from threading import Lock
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from google.api_core.exceptions import AlreadyExists, GoogleAPIError, NotFound
from google.auth.exceptions import GoogleAuthError
from google.cloud import kms, secretmanager, storage

from infra_scan.config import VAULT_TIMEOUT
from infra_scan.vault.aws import sanitize_key
from infra_scan.vault.base import Vault, validate_secret_key
from infra_scan.vault.exceptions import SecretNotFoundError, VaultError
from infra_scan.vault.models import Secret, SecretID

logger = logging.getLogger(__name__)

BERGLAS_KMS_KEY_METADATA = "berglas-kms-key"
BERGLAS_STORAGE_PREFIX = "storage"
DEK_SIZE = 32
NONCE_SIZE = 12


class GcpSecretManagerVault(Vault):
    """Vault backed by GCP Secret Manager; reads always use ``latest``."""

    def __init__(self, project_id: str, timeout: float = VAULT_TIMEOUT):
        if not project_id:
            raise VaultError("gcp secret manager requires a project id")
        self.project_id = project_id
        self.timeout = timeout
        self._client: Optional[secretmanager.SecretManagerServiceClient] = None
        self._client_lock = Lock()

    def _get_client(self) -> secretmanager.SecretManagerServiceClient:
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = secretmanager.SecretManagerServiceClient()
        return self._client

    def secret_path(self, key: str) -> str:
        return f"projects/{self.project_id}/secrets/{sanitize_key(key)}"

    def get(self, secret_id: SecretID) -> Secret:
        validate_secret_key(secret_id.key)
        name = f"{self.secret_path(secret_id.key)}/versions/latest"

        try:
            response = self._get_client().access_secret_version(
                request={"name": name}, timeout=self.timeout
            )
        except NotFound as e:
            raise SecretNotFoundError(secret_id.key) from e
        except (GoogleAPIError, GoogleAuthError) as e:
            raise VaultError(
                f"Failed to access secret version: {e}",
                details={"operation": "get", "key": secret_id.key},
            ) from e

        return Secret(key=secret_id.key, data=response.payload.data)

    def set(self, secret: Secret) -> SecretID:
        validate_secret_key(secret.key)
        path = self.secret_path(secret.key)

        try:
            client = self._get_client()
            client.create_secret(
                request={
                    "parent": f"projects/{self.project_id}",
                    "secret_id": sanitize_key(secret.key),
                    "secret": {"replication": {"automatic": {}}},
                },
                timeout=self.timeout,
            )
            logger.info(f"Created secret {path}")
        except AlreadyExists:
            logger.debug(f"Secret {path} exists, adding a version")
        except (GoogleAPIError, GoogleAuthError) as e:
            raise VaultError(
                f"Failed to create secret: {e}",
                details={"operation": "set", "key": secret.key},
            ) from e

        try:
            client.add_secret_version(
                request={"parent": path, "payload": {"data": secret.data}},
                timeout=self.timeout,
            )
        except (GoogleAPIError, GoogleAuthError) as e:
            raise VaultError(
                f"Failed to add secret version: {e}",
                details={"operation": "set", "key": secret.key},
            ) from e

        return SecretID(key=secret.key)

    def __repr__(self) -> str:
        return f"GcpSecretManagerVault(project_id={self.project_id!r})"


def seal(plaintext: bytes, kms_client, kms_key: str, object_name: str, timeout: float) -> bytes:
    """Envelope-encrypt plaintext the way Berglas stores it.

    A fresh data key encrypts the payload with AES-GCM; KMS encrypts the data
    key with the object name as additional authenticated data.
    """
    dek = AESGCM.generate_key(bit_length=DEK_SIZE * 8)
    nonce = os.urandom(NONCE_SIZE)
    ciphertext = nonce + AESGCM(dek).encrypt(nonce, plaintext, None)

    response = kms_client.encrypt(
        request={
            "name": kms_key,
            "plaintext": dek,
            "additional_authenticated_data": object_name.encode(),
        },
        timeout=timeout,
    )
    return b":".join(
        [base64.b64encode(response.ciphertext), base64.b64encode(ciphertext)]
    )


def unseal(blob: bytes, kms_client, kms_key: str, object_name: str, timeout: float) -> bytes:
    """Reverse :func:`seal`.

    Raises:
        VaultError: If the blob is malformed or fails authentication.
    """
    parts = blob.split(b":")
    if len(parts) != 2:
        raise VaultError("invalid berglas ciphertext format", details={"object": object_name})
    try:
        encrypted_dek = base64.b64decode(parts[0], validate=True)
        ciphertext = base64.b64decode(parts[1], validate=True)
    except ValueError as e:
        raise VaultError("invalid berglas ciphertext encoding", details={"object": object_name}) from e

    response = kms_client.decrypt(
        request={
            "name": kms_key,
            "ciphertext": encrypted_dek,
            "additional_authenticated_data": object_name.encode(),
        },
        timeout=timeout,
    )

    nonce, sealed = ciphertext[:NONCE_SIZE], ciphertext[NONCE_SIZE:]
    try:
        return AESGCM(response.plaintext).decrypt(nonce, sealed, None)
    except (InvalidTag, ValueError) as e:
        raise VaultError("failed to decrypt berglas secret", details={"object": object_name}) from e


class GcpBerglasVault(Vault):
    """Vault storing KMS envelope-encrypted secrets in a Cloud Storage bucket.

    Keys returned from :meth:`set` have the form ``storage/{bucket}/{object}``.
    """

    def __init__(
        self,
        project_id: str = "",
        bucket: str = "",
        kms_key: Optional[str] = None,
        timeout: float = VAULT_TIMEOUT,
    ):
        self.project_id = project_id
        self.bucket = bucket
        self.kms_key = kms_key
        self.timeout = timeout
        self._storage: Optional[storage.Client] = None
        self._kms: Optional[kms.KeyManagementServiceClient] = None
        self._client_lock = Lock()

    def _clients(self) -> tuple[storage.Client, kms.KeyManagementServiceClient]:
        if self._storage is None:
            with self._client_lock:
                if self._storage is None:
                    self._kms = kms.KeyManagementServiceClient()
                    self._storage = storage.Client(project=self.project_id or None)
        return self._storage, self._kms

    @staticmethod
    def parse_key(key: str) -> tuple[str, str]:
        """Split ``storage/{bucket}/{object}`` into bucket and object.

        Raises:
            VaultError: If the key does not have exactly three segments.
        """
        parts = key.split("/")
        if len(parts) != 3 or parts[0] != BERGLAS_STORAGE_PREFIX or not all(parts):
            raise VaultError(
                "invalid berglas key, expected storage/{bucket}/{object}",
                details={"key": key},
            )
        return parts[1], parts[2]

    def get(self, secret_id: SecretID) -> Secret:
        validate_secret_key(secret_id.key)
        bucket_name, object_name = self.parse_key(secret_id.key)

        try:
            storage_client, kms_client = self._clients()
            blob = storage_client.bucket(bucket_name).get_blob(object_name, timeout=self.timeout)
        except (GoogleAPIError, GoogleAuthError) as e:
            raise VaultError(
                f"Failed to read berglas object: {e}",
                details={"operation": "get", "key": secret_id.key},
            ) from e
        if blob is None:
            raise SecretNotFoundError(secret_id.key)

        kms_key = (blob.metadata or {}).get(BERGLAS_KMS_KEY_METADATA)
        if not kms_key:
            raise VaultError(
                "berglas object carries no kms key metadata",
                details={"operation": "get", "key": secret_id.key},
            )

        try:
            data = blob.download_as_bytes(timeout=self.timeout)
            plaintext = unseal(data, kms_client, kms_key, object_name, self.timeout)
        except (GoogleAPIError, GoogleAuthError) as e:
            raise VaultError(
                f"Failed to decrypt berglas object: {e}",
                details={"operation": "get", "key": secret_id.key},
            ) from e

        return Secret(key=secret_id.key, data=plaintext)

    def set(self, secret: Secret) -> SecretID:
        validate_secret_key(secret.key)
        if not self.kms_key:
            raise VaultError(
                "berglas set requires a kms key",
                details={"operation": "set", "key": secret.key},
            )
        if not self.bucket:
            raise VaultError(
                "berglas set requires a bucket",
                details={"operation": "set", "key": secret.key},
            )

        object_name = sanitize_key(secret.key)

        try:
            storage_client, kms_client = self._clients()
            sealed = seal(secret.data, kms_client, self.kms_key, object_name, self.timeout)
            blob = storage_client.bucket(self.bucket).blob(object_name)
            blob.metadata = {BERGLAS_KMS_KEY_METADATA: self.kms_key}
            blob.upload_from_string(
                sealed,
                content_type="application/octet-stream",
                timeout=self.timeout,
            )
        except (GoogleAPIError, GoogleAuthError) as e:
            raise VaultError(
                f"Failed to write berglas object: {e}",
                details={"operation": "set", "key": secret.key},
            ) from e

        key = f"{BERGLAS_STORAGE_PREFIX}/{self.bucket}/{object_name}"
        logger.info(f"Stored berglas secret {key}")
        return SecretID(key=key)

    def __repr__(self) -> str:
        return f"GcpBerglasVault(bucket={self.bucket!r})"
