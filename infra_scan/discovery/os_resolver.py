"""Resolver for single-machine connections (ssh, winrm, local, mock)."""

import logging
from typing import Optional

from infra_scan.connection.resolver import new_connection
from infra_scan.discovery.common import DISCOVERY_ALL, DISCOVERY_AUTO, QuerySecretFn
from infra_scan.inventory.models import Asset, AssetState, ConnectionConfig
from infra_scan.vault.resolver import CredentialResolver

logger = logging.getLogger(__name__)


class OsResolver:
    """Connects to the machine and identifies its platform."""

    def name(self) -> str:
        return "OS Resolver"

    def available_discovery_targets(self) -> list[str]:
        return [DISCOVERY_AUTO, DISCOVERY_ALL]

    def resolve(
        self,
        root: Asset,
        config: ConnectionConfig,
        creds_resolver: Optional[CredentialResolver],
        query_secret_fn: Optional[QuerySecretFn],
        *id_detectors: str,
    ) -> list[Asset]:
        with new_connection(config, creds_resolver, asset_name=root.name) as connection:
            platform = root.platform or connection.platform()
            detectors = list(id_detectors) or connection.platform_id_detectors()
            platform_ids = connection.platform_ids(detectors)

        asset = Asset(
            name=root.name or config.host or platform.name,
            platform=platform,
            connections=[config],
            labels=dict(root.labels),
            state=AssetState.ONLINE,
        )
        asset.add_platform_id(*root.platform_ids)
        asset.add_platform_id(*platform_ids)
        logger.debug(f"Resolved {asset.name} with {len(asset.platform_ids)} platform id(s)")
        return [asset]
