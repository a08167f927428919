"""vSphere host and virtual machine discovery.

The vSphere API client is provided by a registered ``vsphere`` connection
implementing :class:`VsphereInventory`.
"""

import logging
from typing import Optional, Protocol

from infra_scan.config import PLATFORM_ID_HOST
from infra_scan.connection.resolver import new_connection
from infra_scan.discovery.common import (
    DISCOVERY_ALL,
    DISCOVERY_AUTO,
    QuerySecretFn,
    includes_one_of,
)
from infra_scan.discovery.states import map_vsphere_guest_state, map_vsphere_power_state
from infra_scan.inventory.models import Asset, AssetState, ConnectionConfig, Platform
from infra_scan.vault.resolver import CredentialResolver

logger = logging.getLogger(__name__)

DISCOVERY_HOST_MACHINES = "host-machines"
DISCOVERY_INSTANCES = "instances"

VSPHERE_VM_BACKEND = "vsphere-vm"


class VsphereInventory(Protocol):
    """Minimal view of a vCenter or ESXi endpoint used by discovery.

    ``hosts()`` entries carry ``moid``, ``name`` and ``power_state``;
    ``virtual_machines()`` entries additionally carry ``guest_state``,
    ``ip_address`` and ``guest_family``.
    """

    def instance_uuid(self) -> str:
        ...

    def hosts(self) -> list[dict]:
        ...

    def virtual_machines(self) -> list[dict]:
        ...


def vsphere_platform_id(instance_uuid: str, object_type: str, moid: str) -> str:
    return f"{PLATFORM_ID_HOST}/runtime/vsphere/v1/uuid/{instance_uuid}/type/{object_type}/moid/{moid}"


def vm_state(vm: dict) -> AssetState:
    """Prefer the guest state when VMware tools report one."""
    if vm.get("guest_state"):
        state = map_vsphere_guest_state(vm["guest_state"])
        if state != AssetState.UNKNOWN:
            return state
    return map_vsphere_power_state(vm.get("power_state"))


def enrich_vm_credentials(
    asset: Asset, config: ConnectionConfig, query_secret_fn: Optional[QuerySecretFn]
) -> None:
    """Give the vm connection both the vCenter and the in-guest credential.

    The guest API needs the hypervisor credential to reach the vm and a
    guest credential to log in, so the one-secret enrichment helper does not
    apply here.
    """
    for connection in asset.connections:
        if connection.type != VSPHERE_VM_BACKEND:
            continue
        connection.credentials = [c.model_copy(deep=True) for c in config.credentials]
        if query_secret_fn is None:
            continue
        try:
            guest_credential = query_secret_fn(asset)
        except Exception as e:
            logger.warning(f"Could not find guest credentials for vm {asset.name}: {e}")
            continue
        if guest_credential is not None:
            connection.credentials.append(guest_credential)


class VsphereResolver:
    def name(self) -> str:
        return "VMware vSphere Resolver"

    def available_discovery_targets(self) -> list[str]:
        return [DISCOVERY_AUTO, DISCOVERY_ALL, DISCOVERY_HOST_MACHINES, DISCOVERY_INSTANCES]

    def resolve(
        self,
        root: Asset,
        config: ConnectionConfig,
        creds_resolver: Optional[CredentialResolver],
        query_secret_fn: Optional[QuerySecretFn],
        *id_detectors: str,
    ) -> list[Asset]:
        resolved: list[Asset] = []

        with new_connection(config, creds_resolver, asset_name=root.name) as connection:
            instance_uuid = connection.instance_uuid()

            if includes_one_of(config, DISCOVERY_AUTO, DISCOVERY_ALL):
                resolved.append(
                    Asset(
                        name=root.name or config.host,
                        platform_ids=connection.platform_ids(list(id_detectors) or None),
                        platform=connection.platform(),
                        connections=[config],
                        state=AssetState.ONLINE,
                    )
                )

            if includes_one_of(config, DISCOVERY_ALL, DISCOVERY_HOST_MACHINES):
                for host in connection.hosts():
                    resolved.append(self._host_asset(config, instance_uuid, host))

            if includes_one_of(config, DISCOVERY_ALL, DISCOVERY_INSTANCES):
                for vm in connection.virtual_machines():
                    asset = self._vm_asset(config, instance_uuid, vm)
                    enrich_vm_credentials(asset, config, query_secret_fn)
                    resolved.append(asset)

        logger.debug(f"Resolved {len(resolved)} vsphere asset(s)")
        return resolved

    @staticmethod
    def _host_asset(config: ConnectionConfig, instance_uuid: str, host: dict) -> Asset:
        moid = host["moid"]
        host_config = config.deep_copy(without_discovery=True)
        host_config.options = {**(host_config.options or {}), "inventoryPath": moid}
        return Asset(
            name=host.get("name") or moid,
            platform_ids=[vsphere_platform_id(instance_uuid, "HostSystem", moid)],
            platform=Platform(name="vmware-esxi", family=["vmware"], kind="bare-metal", runtime="vsphere-hosts"),
            connections=[host_config],
            state=map_vsphere_power_state(host.get("power_state")),
        )

    @staticmethod
    def _vm_asset(config: ConnectionConfig, instance_uuid: str, vm: dict) -> Asset:
        moid = vm["moid"]
        family = [vm["guest_family"]] if vm.get("guest_family") else []
        vm_config = ConnectionConfig(
            type=VSPHERE_VM_BACKEND,
            host=config.host,
            port=config.port,
            insecure=config.insecure,
            options={"inventoryPath": moid, "ipAddress": vm.get("ip_address", "")},
            runtime="vsphere-vm",
        )
        return Asset(
            name=vm.get("name") or moid,
            platform_ids=[vsphere_platform_id(instance_uuid, "VirtualMachine", moid)],
            platform=Platform(family=family, kind="virtual-machine", runtime="vsphere-vm"),
            connections=[vm_config],
            state=vm_state(vm),
        )
