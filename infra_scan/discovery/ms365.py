"""Microsoft 365 tenant discovery."""

import logging
from typing import Optional

from infra_scan.config import PLATFORM_ID_HOST
from infra_scan.discovery.common import (
    DISCOVERY_ALL,
    DISCOVERY_AUTO,
    DiscoveryError,
    QuerySecretFn,
    includes_one_of,
)
from infra_scan.inventory.models import Asset, AssetState, ConnectionConfig, Platform
from infra_scan.vault.resolver import CredentialResolver

logger = logging.getLogger(__name__)

DISCOVERY_TENANTS = "tenants"
TENANT_ID_OPTION = "tenant-id"


def tenant_platform_id(tenant_id: str) -> str:
    return f"{PLATFORM_ID_HOST}/microsoft/tenants/{tenant_id}"


class Ms365Resolver:
    def name(self) -> str:
        return "Microsoft 365 Resolver"

    def available_discovery_targets(self) -> list[str]:
        return [DISCOVERY_AUTO, DISCOVERY_ALL, DISCOVERY_TENANTS]

    def resolve(
        self,
        root: Asset,
        config: ConnectionConfig,
        creds_resolver: Optional[CredentialResolver],
        query_secret_fn: Optional[QuerySecretFn],
        *id_detectors: str,
    ) -> list[Asset]:
        """Return the tenant asset when any tenant target is requested.

        Raises:
            DiscoveryError: If the config has no tenant id.
        """
        if not includes_one_of(config, DISCOVERY_AUTO, DISCOVERY_ALL, DISCOVERY_TENANTS):
            return []

        tenant_id = (config.options or {}).get(TENANT_ID_OPTION, "")
        if not tenant_id:
            raise DiscoveryError(
                "ms365 connection requires a tenant-id option",
                details={"asset": root.name},
            )

        asset = Asset(
            name=root.name or f"Microsoft 365 tenant {tenant_id}",
            platform_ids=[tenant_platform_id(tenant_id)],
            platform=Platform(
                name="microsoft365",
                title="Microsoft 365",
                family=["microsoft"],
                kind="api",
                runtime="ms365",
            ),
            connections=[config],
            labels=dict(root.labels),
            state=AssetState.ONLINE,
        )
        logger.debug(f"Resolved ms365 tenant {tenant_id}")
        return [asset]
