"""Platform-native state values to :class:`AssetState`.

Every mapping falls back to ``UNKNOWN`` so that an unrecognized state never
fails discovery.
"""

import logging
from typing import Mapping, Optional, Union

from infra_scan.inventory.models import AssetState

logger = logging.getLogger(__name__)

# shutting-down (32) precedes terminated
EC2_STATE_CODES: Mapping[int, AssetState] = {
    0: AssetState.PENDING,
    16: AssetState.RUNNING,
    32: AssetState.TERMINATED,
    48: AssetState.TERMINATED,
    64: AssetState.STOPPING,
    80: AssetState.STOPPED,
}

EC2_STATE_NAMES: Mapping[str, AssetState] = {
    "pending": AssetState.PENDING,
    "running": AssetState.RUNNING,
    "shutting-down": AssetState.TERMINATED,
    "terminated": AssetState.TERMINATED,
    "stopping": AssetState.STOPPING,
    "stopped": AssetState.STOPPED,
}

GCP_INSTANCE_STATUS: Mapping[str, AssetState] = {
    "RUNNING": AssetState.RUNNING,
    "PROVISIONING": AssetState.PENDING,
    "STAGING": AssetState.PENDING,
    "STOPPED": AssetState.STOPPED,
    "STOPPING": AssetState.STOPPING,
    "SUSPENDED": AssetState.STOPPED,
    "SUSPENDING": AssetState.STOPPING,
    "TERMINATED": AssetState.TERMINATED,
}

ECS_CONTAINER_INSTANCE_STATUS: Mapping[str, AssetState] = {
    "REGISTERING": AssetState.PENDING,
    "REGISTRATION_FAILED": AssetState.ERROR,
    "ACTIVE": AssetState.ONLINE,
    "INACTIVE": AssetState.OFFLINE,
    "DEREGISTERING": AssetState.STOPPING,
    "DRAINING": AssetState.STOPPING,
}

CONTAINER_STATE: Mapping[str, AssetState] = {
    "running": AssetState.RUNNING,
    "created": AssetState.PENDING,
    "paused": AssetState.STOPPED,
    "exited": AssetState.TERMINATED,
    "restarting": AssetState.PENDING,
    "dead": AssetState.ERROR,
}

SSM_PING_STATUS: Mapping[str, AssetState] = {
    "Online": AssetState.RUNNING,
    "ConnectionLost": AssetState.PENDING,
    "Inactive": AssetState.STOPPED,
}

VSPHERE_POWER_STATE: Mapping[str, AssetState] = {
    "poweredOn": AssetState.RUNNING,
    "poweredOff": AssetState.STOPPED,
    "suspended": AssetState.STOPPED,
}

VSPHERE_GUEST_STATE: Mapping[str, AssetState] = {
    "running": AssetState.RUNNING,
    "notRunning": AssetState.STOPPED,
    "shuttingDown": AssetState.STOPPING,
    "resetting": AssetState.REBOOT,
    "standby": AssetState.STOPPED,
}


def _lookup(
    table: Mapping, value: Optional[Union[str, int]], kind: str
) -> AssetState:
    if value is None:
        return AssetState.UNKNOWN
    state = table.get(value)
    if state is None:
        logger.warning(f"Unknown {kind} state: {value}")
        return AssetState.UNKNOWN
    return state


def map_ec2_instance_state(state: Optional[dict]) -> AssetState:
    """Map an EC2 ``State`` object (``{"Code": 16, "Name": "running"}``)."""
    if not state:
        return AssetState.UNKNOWN
    code = state.get("Code")
    if code is not None:
        # the high byte is internal to EC2
        return _lookup(EC2_STATE_CODES, code & 0xFF, "ec2")
    return map_ec2_instance_state_name(state.get("Name"))


def map_ec2_instance_state_name(name: Optional[str]) -> AssetState:
    return _lookup(EC2_STATE_NAMES, name, "ec2")


def map_gcp_instance_status(status: Optional[str]) -> AssetState:
    return _lookup(GCP_INSTANCE_STATUS, status, "gcp instance")


def map_ecs_container_instance_status(status: Optional[str]) -> AssetState:
    return _lookup(ECS_CONTAINER_INSTANCE_STATUS, status, "ecs container instance")


def map_container_state(state: Optional[str]) -> AssetState:
    return _lookup(CONTAINER_STATE, state.lower() if state else state, "container")


def map_ssm_ping_status(status: Optional[str]) -> AssetState:
    return _lookup(SSM_PING_STATUS, status, "ssm ping")


def map_vsphere_power_state(state: Optional[str]) -> AssetState:
    return _lookup(VSPHERE_POWER_STATE, state, "vsphere power")


def map_vsphere_guest_state(state: Optional[str]) -> AssetState:
    return _lookup(VSPHERE_GUEST_STATE, state, "vsphere guest")
