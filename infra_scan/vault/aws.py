"""AWS Secrets Manager and Parameter Store vaults."""

import logging
from functools import lru_cache
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from infra_scan.config import AWS_DEFAULT_REGION, VAULT_TIMEOUT
from infra_scan.vault.base import Vault, validate_secret_key
from infra_scan.vault.exceptions import (
    SecretNotFoundError,
    VaultError,
    VaultNotImplementedError,
)
from infra_scan.vault.models import Secret, SecretID

logger = logging.getLogger(__name__)


def sanitize_key(key: str) -> str:
    """Map a logical key onto the character set cloud secret names allow.

    The transform is lossy: ``a/b`` and ``a.b`` both become ``a-b``.
    """
    return key.replace("/", "-").replace(".", "-")


def region_from_arn(arn: str) -> str:
    """Extract the region from ``arn:partition:service:region:account:...``.

    Raises:
        VaultError: If the key is not an ARN or carries no region.
    """
    parts = arn.split(":")
    if len(parts) < 6 or parts[0] != "arn" or not parts[3]:
        raise VaultError(
            "secret key is not a valid ARN",
            details={"key": arn},
        )
    return parts[3]


@lru_cache(maxsize=32)
def get_regional_client(service: str, region: str, timeout: float = VAULT_TIMEOUT):
    """Return a boto3 client for a service in one region.

    Clients are cached per (service, region). Two threads may both build a
    client on a cold cache; either result is fine to keep.
    """
    config = BotoConfig(
        region_name=region,
        connect_timeout=timeout,
        read_timeout=timeout,
        retries={"max_attempts": 0},
    )
    return boto3.client(service, config=config)


class AwsSecretsManagerVault(Vault):
    """Vault backed by AWS Secrets Manager.

    Keys are secret ARNs; the region is taken from the ARN so a single vault
    reads secrets from any region.
    """

    def __init__(self, region: str = AWS_DEFAULT_REGION, timeout: float = VAULT_TIMEOUT):
        self.region = region
        self.timeout = timeout

    def _client(self, region: str):
        return get_regional_client("secretsmanager", region, self.timeout)

    def get(self, secret_id: SecretID) -> Secret:
        validate_secret_key(secret_id.key)
        region = region_from_arn(secret_id.key)

        try:
            response = self._client(region).get_secret_value(SecretId=secret_id.key)
        except (ClientError, BotoCoreError) as e:
            raise VaultError(
                f"Failed to read secret from AWS Secrets Manager: {e}",
                details={"operation": "get", "key": secret_id.key, "region": region},
            ) from e

        data = response.get("SecretBinary")
        if data is None:
            data = (response.get("SecretString") or "").encode()
        return Secret(key=secret_id.key, data=data)

    def set(self, secret: Secret) -> SecretID:
        validate_secret_key(secret.key)

        try:
            response = self._client(self.region).create_secret(
                Name=secret.key,
                SecretBinary=secret.data,
            )
        except (ClientError, BotoCoreError) as e:
            raise VaultError(
                f"Failed to create secret in AWS Secrets Manager: {e}",
                details={"operation": "set", "key": secret.key, "region": self.region},
            ) from e

        arn = response["ARN"]
        logger.info(f"Created secret {secret.key} in AWS Secrets Manager ({self.region})")
        return SecretID(key=arn)

    def __repr__(self) -> str:
        return f"AwsSecretsManagerVault(region={self.region!r})"


class AwsParameterStoreVault(Vault):
    """Read-only vault backed by SSM Parameter Store SecureString parameters."""

    def __init__(self, region: str = AWS_DEFAULT_REGION, timeout: float = VAULT_TIMEOUT):
        self.region = region
        self.timeout = timeout

    def get(self, secret_id: SecretID) -> Secret:
        validate_secret_key(secret_id.key)
        name = sanitize_key(secret_id.key)

        try:
            client = get_regional_client("ssm", self.region, self.timeout)
            response = client.get_parameter(Name=name, WithDecryption=True)
            value: Optional[str] = response["Parameter"]["Value"]
        except Exception as e:
            # every failure reads as "not configured" for parameters
            logger.debug(f"Parameter {name} unavailable: {type(e).__name__}")
            raise SecretNotFoundError(secret_id.key, details={"parameter": name}) from e

        return Secret(key=secret_id.key, data=(value or "").encode())

    def set(self, secret: Secret) -> SecretID:
        validate_secret_key(secret.key)
        raise VaultNotImplementedError("set")

    def __repr__(self) -> str:
        return f"AwsParameterStoreVault(region={self.region!r})"
