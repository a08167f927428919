"""Helpers shared by discovery resolvers."""

import logging
from typing import Callable, Optional

from infra_scan.inventory.models import Asset, ConnectionConfig
from infra_scan.vault.models import Credential

logger = logging.getLogger(__name__)

DISCOVERY_AUTO = "auto"
DISCOVERY_ALL = "all"

QuerySecretFn = Callable[[Asset], Credential]


class DiscoveryError(Exception):
    """Raised when a resolver cannot build assets from its config."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


def includes_one_of(config: ConnectionConfig, *targets: str) -> bool:
    """Whether the config requests any of the given discovery targets."""
    requested = config.discovery_targets()
    return any(target in requested for target in targets)


def unsupported_targets(config: ConnectionConfig, available: list[str]) -> list[str]:
    return [t for t in config.discovery_targets() if t not in available]


def enrich_asset_with_secrets(asset: Asset, query_secret_fn: QuerySecretFn) -> None:
    """Attach a queried credential to ssh connections that have none.

    A failed lookup is logged and skipped; the connection stays without
    credentials and fails later when it is opened.
    """
    if query_secret_fn is None:
        return
    for connection in asset.connections:
        if connection.type != "ssh" or connection.credentials:
            continue
        try:
            credential = query_secret_fn(asset)
        except Exception as e:
            logger.warning(f"Could not find credentials for asset {asset.name}: {e}")
            continue
        if credential is not None:
            connection.credentials.append(credential)
