"""Discovery: expand root assets into every asset reachable from them.

Each connection backend has a resolver that turns one root connection config
into zero or more assets. Secrets are looked up through callables passed in
by the caller, so discovery knows nothing about inventories or vaults.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

from infra_scan.connection.registry import ProviderRegistry
from infra_scan.connection.resolver import new_connection
from infra_scan.discovery.aws import AwsResolver
from infra_scan.discovery.common import QuerySecretFn, enrich_asset_with_secrets, unsupported_targets
from infra_scan.discovery.ms365 import Ms365Resolver
from infra_scan.discovery.os_resolver import OsResolver
from infra_scan.discovery.vsphere import VsphereResolver
from infra_scan.inventory.models import Asset, AssetState, ConnectionConfig
from infra_scan.vault.exceptions import UnsupportedBackendError, VaultError
from infra_scan.vault.resolver import CredentialResolver

logger = logging.getLogger(__name__)


class Resolver(Protocol):
    """Per-platform discovery contract."""

    def name(self) -> str:
        ...

    def available_discovery_targets(self) -> list[str]:
        ...

    def resolve(
        self,
        root: Asset,
        config: ConnectionConfig,
        creds_resolver: Optional[CredentialResolver],
        query_secret_fn: Optional[QuerySecretFn],
        *id_detectors: str,
    ) -> list[Asset]:
        ...


resolvers: dict[str, Resolver] = {
    "local": OsResolver(),
    "mock": OsResolver(),
    "ssh": OsResolver(),
    "winrm": OsResolver(),
    "ms365": Ms365Resolver(),
    "aws": AwsResolver(),
    "vsphere": VsphereResolver(),
}


@dataclass
class ResolvedAssets:
    assets: list[Asset] = field(default_factory=list)
    related_assets: list[Asset] = field(default_factory=list)
    # keyed by root asset name
    errors: dict[str, Exception] = field(default_factory=dict)


def resolve_asset(
    root: Asset,
    creds_resolver: Optional[CredentialResolver] = None,
    query_secret_fn: Optional[QuerySecretFn] = None,
) -> list[Asset]:
    """Run the matching resolver for every connection of a root asset.

    Root labels, annotations, category, ``managed_by`` and id detectors are
    copied onto every resolved asset.

    Raises:
        UnsupportedBackendError: If no resolver handles a connection type.
    """
    resolved: list[Asset] = []

    enrich_asset_with_secrets(root, query_secret_fn)

    for config in root.connections:
        resolver = resolvers.get(config.type)
        if resolver is None:
            root.name = root.name or config.host
            raise UnsupportedBackendError(config.type)
        logger.debug(f"Running {resolver.name()} for {config.type}")

        available = resolver.available_discovery_targets()
        for target in unsupported_targets(config, available):
            logger.warning(
                f"{resolver.name()} does not support discovery target '{target}', "
                f"supported: {', '.join(available)}"
            )

        try:
            assets = resolver.resolve(
                root, config, creds_resolver, query_secret_fn, *root.id_detector
            )
        except Exception:
            root.name = root.name or config.host
            raise

        for asset in assets:
            asset.id_detector = list(root.id_detector)
            asset.labels.update(root.labels)
            asset.annotations.update(root.annotations)
            asset.category = root.category
            asset.managed_by = root.managed_by
            resolved.append(asset)

    return resolved


def resolve_assets(
    roots: list[Asset],
    creds_resolver: Optional[CredentialResolver] = None,
    query_secret_fn: Optional[QuerySecretFn] = None,
    registry: Optional[ProviderRegistry] = None,
) -> ResolvedAssets:
    """Resolve every root; a failing root is recorded and skipped.

    Related assets already covered by a resolved asset's platform id are
    dropped from ``related_assets``.
    """
    result = ResolvedAssets()
    resolved_ids: set[str] = set()
    related: list[Asset] = []

    for root in roots:
        try:
            assets = resolve_asset(root, creds_resolver, query_secret_fn)
        except Exception as e:
            logger.error(f"Could not resolve asset {root.name}: {e}")
            result.errors[root.name] = e
            continue

        for asset in assets:
            resolved_ids.update(pid for pid in asset.platform_ids if pid)
            related.extend(asset.related_assets)
        result.assets.extend(assets)

    _identify_related_assets(related, creds_resolver, registry)

    seen: set[int] = set()
    for asset in related:
        if id(asset) in seen:
            continue
        seen.add(id(asset))
        if any(pid in resolved_ids for pid in asset.platform_ids):
            continue
        result.related_assets.append(asset)
    return result


def _identify_related_assets(
    related: list[Asset],
    creds_resolver: Optional[CredentialResolver],
    registry: Optional[ProviderRegistry],
) -> None:
    """Fill in platform ids of related assets, connecting when needed."""
    for asset in related:
        if asset.platform_ids or not asset.connections:
            continue
        config = asset.connections[0]
        if config.platform_id:
            asset.platform_ids = [config.platform_id]
            continue

        try:
            with new_connection(config, creds_resolver, registry) as connection:
                platform = connection.platform()
                platform_ids = connection.platform_ids(connection.platform_id_detectors())
        except VaultError as e:
            logger.warning(f"Could not connect to related asset: {e}")
            continue

        asset.platform = platform
        asset.platform_ids = platform_ids
        asset.state = AssetState.ONLINE
