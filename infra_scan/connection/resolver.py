"""Turn connection configs into live connections.

Credential references are resolved on a deep copy of the config so the
caller's config keeps holding references only.
"""

import logging
from typing import Optional

from infra_scan.connection.base import PLATFORM_OVERRIDE_OPTION, Connection
from infra_scan.connection.registry import ProviderRegistry, providers
from infra_scan.inventory.models import Asset, ConnectionConfig
from infra_scan.vault.exceptions import (
    ConnectionOpenError,
    CredentialResolutionError,
    UnsupportedBackendError,
    VaultError,
)
from infra_scan.vault.resolver import CredentialResolver

logger = logging.getLogger(__name__)


def _warn_incomplete_feature(backend: str, registry: ProviderRegistry) -> None:
    status = registry.status(backend)
    if status:
        logger.warning(f"You are using an early access feature: {backend} ({status})")


def new_connection(
    config: ConnectionConfig,
    creds_resolver: Optional[CredentialResolver] = None,
    registry: Optional[ProviderRegistry] = None,
    asset_name: str = "",
) -> Connection:
    """Resolve credential references and open a connection.

    Args:
        config: Connection config, left unchanged
        creds_resolver: Resolver for credential references
        registry: Provider registry, defaults to the process-wide one
        asset_name: Asset name used in error messages

    Raises:
        CredentialResolutionError: If any credential reference fails to resolve.
        UnsupportedBackendError: If no provider handles the backend.
        ConnectionOpenError: If the provider fails to open the connection.
    """
    registry = registry or providers
    backend = config.type
    logger.debug(f"Establishing {backend} connection")
    _warn_incomplete_feature(backend, registry)

    resolved = config.deep_copy()
    if resolved.options is None:
        resolved.options = {}

    credentials = []
    for credential in resolved.credentials:
        if credential.secret_id and creds_resolver is not None:
            try:
                credential = creds_resolver.get_credential(credential)
            except Exception as e:
                logger.debug(
                    f"Could not fetch secret {credential.secret_id} for {backend} connection: "
                    f"{type(e).__name__}"
                )
                raise CredentialResolutionError(
                    credential.secret_id,
                    message=(
                        f"could not resolve credential {credential.secret_id} for asset "
                        f"{asset_name or config.host or '<unnamed>'} ({backend})"
                    ),
                    details={"asset": asset_name or config.host, "backend": backend},
                ) from e
        credentials.append(credential)
    resolved.credentials = credentials

    name = asset_name or config.host
    try:
        factory = registry.get(backend)
    except UnsupportedBackendError as e:
        raise UnsupportedBackendError(
            backend,
            message=f"unsupported backend {backend} for asset {name or '<unnamed>'}",
            details={"asset": name, "backend": backend, "supported": registry.backends()},
        ) from e

    try:
        return factory(resolved)
    except VaultError:
        raise
    except Exception as e:
        logger.debug(f"Failed to open {backend} connection for {name}: {type(e).__name__}")
        raise ConnectionOpenError(
            name,
            backend,
            message=f"could not open {backend} connection for asset {name or '<unnamed>'}: {e}",
        ) from e


def establish_connection(
    config: ConnectionConfig,
    creds_resolver: Optional[CredentialResolver] = None,
    insecure: bool = False,
    record: bool = False,
    registry: Optional[ProviderRegistry] = None,
) -> Connection:
    """Open a connection, letting global ``insecure``/``record`` flags win."""
    if insecure or record:
        config = config.deep_copy()
        if insecure:
            config.insecure = True
        if record:
            config.record = True
    return new_connection(config, creds_resolver, registry)


def open_asset_connection(
    asset: Asset,
    creds_resolver: Optional[CredentialResolver] = None,
    record: bool = False,
    registry: Optional[ProviderRegistry] = None,
) -> Connection:
    """Connect to an asset using its first connection config.

    Raises:
        VaultError: If the asset has no connection.
    """
    if not asset.connections:
        raise VaultError(
            "asset has no connection configured",
            details={"asset": asset.name},
        )
    config = asset.connections[0]
    return _open(asset, config, creds_resolver, record, registry)


def open_asset_connections(
    asset: Asset,
    creds_resolver: Optional[CredentialResolver] = None,
    record: bool = False,
    registry: Optional[ProviderRegistry] = None,
) -> list[Connection]:
    """Connect to an asset through every configured connection.

    Stops at the first failure and closes the connections already opened.
    """
    if not asset.connections:
        raise VaultError(
            "asset has no connection configured",
            details={"asset": asset.name},
        )
    connections = []
    try:
        for config in asset.connections:
            connections.append(_open(asset, config, creds_resolver, record, registry))
    except Exception:
        for connection in connections:
            connection.close()
        raise
    return connections


def _open(
    asset: Asset,
    config: ConnectionConfig,
    creds_resolver: Optional[CredentialResolver],
    record: bool,
    registry: Optional[ProviderRegistry],
) -> Connection:
    if not asset.name:
        asset.name = config.host

    config = config.deep_copy()
    if asset.platform is not None:
        # lets the provider skip platform detection
        config.runtime = asset.platform.runtime
        if config.options is None:
            config.options = {}
        config.options[PLATFORM_OVERRIDE_OPTION] = asset.platform.name
    if asset.platform_ids:
        config.platform_id = asset.platform_ids[0]
    if record:
        config.record = True

    connection = new_connection(config, creds_resolver, registry, asset_name=asset.name)
    connection.asset = asset
    return connection
