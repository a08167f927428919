"""AWS API connection backed by a boto3 session."""

import logging
from functools import lru_cache
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from infra_scan.config import AWS_DEFAULT_REGION, PLATFORM_ID_HOST, VAULT_TIMEOUT
from infra_scan.connection.base import CachedReport, Connection
from infra_scan.inventory.models import ConnectionConfig, Platform
from infra_scan.vault.enums import CredentialType

logger = logging.getLogger(__name__)


def account_platform_id(account_id: str) -> str:
    return f"{PLATFORM_ID_HOST}/runtime/aws/accounts/{account_id}"


class AwsConnection(Connection):
    """Connection to one AWS account.

    Options: ``region``, ``profile``. A password credential supplies the
    access key id as ``user`` and the secret access key as ``secret``; a
    ``session_token`` field is passed through when present.
    """

    def __init__(self, config: ConnectionConfig):
        super().__init__(config)
        options = config.options or {}
        self.region = options.get("region") or AWS_DEFAULT_REGION
        self.profile = options.get("profile") or None
        self.session = self._new_session()
        self.client = lru_cache(maxsize=64)(self._new_client)
        self.identity = CachedReport(self._fetch_identity)
        self.account_aliases = CachedReport(self._fetch_account_aliases)

    def _new_session(self) -> boto3.Session:
        kwargs = {"region_name": self.region}
        if self.profile:
            kwargs["profile_name"] = self.profile
        for credential in self.config.credentials:
            if credential.type == CredentialType.PASSWORD and credential.user and credential.secret:
                kwargs["aws_access_key_id"] = credential.user
                kwargs["aws_secret_access_key"] = credential.secret.decode()
                if credential.fields.get("session_token"):
                    kwargs["aws_session_token"] = credential.fields["session_token"]
                break
        return boto3.Session(**kwargs)

    def _new_client(self, service: str, region: Optional[str] = None):
        config = BotoConfig(
            region_name=region or self.region,
            connect_timeout=VAULT_TIMEOUT,
            read_timeout=VAULT_TIMEOUT,
        )
        return self.session.client(service, config=config)

    def _fetch_identity(self) -> dict:
        logger.debug("Fetching AWS caller identity")
        return self.client("sts").get_caller_identity()

    def _fetch_account_aliases(self) -> list[str]:
        try:
            return self.client("iam").list_account_aliases().get("AccountAliases", [])
        except (ClientError, BotoCoreError) as e:
            logger.debug(f"Could not list account aliases: {e}")
            return []

    @property
    def account_id(self) -> str:
        return self.identity.get()["Account"]

    def regions(self) -> list[str]:
        response = self.client("ec2").describe_regions()
        return [r["RegionName"] for r in response.get("Regions", [])]

    def platform(self) -> Platform:
        return Platform(
            name="aws",
            title="Amazon Web Services",
            family=["aws"],
            kind="api",
            runtime="aws",
        )

    def platform_ids(self, detectors: Optional[list[str]] = None) -> list[str]:
        return [account_platform_id(self.account_id)]

    def close(self) -> None:
        self.client.cache_clear()
        self.identity.reset()
        self.account_aliases.reset()
