"""Asset discovery across platforms."""

from infra_scan.discovery.common import (
    DISCOVERY_ALL,
    DISCOVERY_AUTO,
    DiscoveryError,
    QuerySecretFn,
    enrich_asset_with_secrets,
)
from infra_scan.discovery.resolve import (
    ResolvedAssets,
    Resolver,
    resolve_asset,
    resolve_assets,
    resolvers,
)

__all__ = [
    "DISCOVERY_ALL",
    "DISCOVERY_AUTO",
    "DiscoveryError",
    "QuerySecretFn",
    "enrich_asset_with_secrets",
    "ResolvedAssets",
    "Resolver",
    "resolve_asset",
    "resolve_assets",
    "resolvers",
]
