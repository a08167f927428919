"""Connection resolution: resolve credentials and open provider connections."""

from infra_scan.connection.base import (
    PLATFORM_OVERRIDE_OPTION,
    CachedReport,
    Connection,
    LocalConnection,
    MockConnection,
)
from infra_scan.connection.registry import (
    ProviderRegistry,
    default_registry,
    providers,
    register_provider,
)
from infra_scan.connection.resolver import (
    establish_connection,
    new_connection,
    open_asset_connection,
    open_asset_connections,
)

__all__ = [
    "PLATFORM_OVERRIDE_OPTION",
    "CachedReport",
    "Connection",
    "LocalConnection",
    "MockConnection",
    "ProviderRegistry",
    "default_registry",
    "providers",
    "register_provider",
    "establish_connection",
    "new_connection",
    "open_asset_connection",
    "open_asset_connections",
]
