"""Pydantic models for inventories, assets and connection configurations."""

import os
import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from infra_scan.vault.enums import CredentialType
from infra_scan.vault.models import Credential, VaultConfiguration

# Label set on inventories loaded from disk, used to resolve relative key paths
INVENTORY_FILE_PATH_LABEL = "inventory.infra-scan.io/file-path"

FAMILY_UNIX = "unix"
FAMILY_LINUX = "linux"
FAMILY_WINDOWS = "windows"


class InventoryError(ValueError):
    """Raised when an inventory is inconsistent or cannot be preprocessed."""


class AssetState(str, Enum):
    UNKNOWN = "unknown"
    ERROR = "error"
    PENDING = "pending"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    SHUTDOWN = "shutdown"
    TERMINATED = "terminated"
    REBOOT = "reboot"
    ONLINE = "online"
    OFFLINE = "offline"
    DELETED = "deleted"


class AssetCategory(str, Enum):
    FLEET = "fleet"
    CICD = "cicd"


class Platform(BaseModel):
    """Detected or declared platform of an asset."""

    name: str = Field(default="", examples=["ubuntu", "aws"])
    title: str = ""
    family: list[str] = Field(default_factory=list)
    arch: str = ""
    kind: str = Field(default="", examples=["virtual-machine", "api"])
    runtime: str = Field(default="", examples=["aws-ec2", "vsphere"])

    def is_family(self, family: str) -> bool:
        return family in self.family

    def pretty_title(self) -> str:
        title = self.title or self.name
        if self.runtime:
            return f"{title}, {self.runtime}"
        return title


class Discovery(BaseModel):
    """Discovery targets requested for a connection."""

    targets: list[str] = Field(default_factory=list, examples=[["auto"]])
    filter: dict[str, str] = Field(default_factory=dict)

    def deep_copy(self) -> "Discovery":
        return Discovery(targets=list(self.targets), filter=dict(self.filter))


class ConnectionConfig(BaseModel):
    """Parameters needed to open a connection to an asset."""

    type: str = Field(..., description="Connection backend id", examples=["ssh", "aws"])
    host: str = ""
    port: int = 0
    path: str = ""
    insecure: bool = False
    record: bool = False
    credentials: list[Credential] = Field(default_factory=list)
    options: Optional[dict[str, str]] = None
    platform_id: str = ""
    runtime: str = ""
    discover: Optional[Discovery] = None

    def deep_copy(self, without_discovery: bool = False) -> "ConnectionConfig":
        """Return a fully independent copy.

        Credentials, options and discovery settings are copied, so mutating
        the copy never touches this config.
        """
        discover = None
        if without_discovery:
            discover = Discovery()
        elif self.discover is not None:
            discover = self.discover.deep_copy()

        return ConnectionConfig(
            type=self.type,
            host=self.host,
            port=self.port,
            path=self.path,
            insecure=self.insecure,
            record=self.record,
            credentials=[c.model_copy(deep=True) for c in self.credentials],
            options=dict(self.options) if self.options is not None else None,
            platform_id=self.platform_id,
            runtime=self.runtime,
            discover=discover,
        )

    def discovery_targets(self) -> list[str]:
        if self.discover is None:
            return []
        return self.discover.targets

    def to_url(self) -> str:
        schema = "tls" if "tls" in (self.options or {}) else self.type
        host = self.host.removeprefix("sha256:")
        path = self.path
        if path and not path.startswith("/"):
            path = "/" + path
        return f"{schema}://{host}{path}"

    def __repr__(self) -> str:
        return f"ConnectionConfig(type={self.type!r}, host={self.host!r})"


class Asset(BaseModel):
    """A discovered, addressable target."""

    name: str = ""
    platform_ids: list[str] = Field(default_factory=list)
    platform: Optional[Platform] = None
    connections: list[ConnectionConfig] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    state: AssetState = AssetState.UNKNOWN
    id_detector: list[str] = Field(default_factory=list)
    category: AssetCategory = AssetCategory.FLEET
    managed_by: str = ""
    related_assets: list["Asset"] = Field(default_factory=list)

    def add_platform_id(self, *ids: str) -> None:
        for platform_id in ids:
            if platform_id and platform_id not in self.platform_ids:
                self.platform_ids.append(platform_id)

    def __repr__(self) -> str:
        return f"Asset(name={self.name!r}, platform_ids={self.platform_ids!r})"


class InventoryMetadata(BaseModel):
    name: str = ""
    labels: dict[str, str] = Field(default_factory=dict)


class InventorySpec(BaseModel):
    assets: list[Asset] = Field(default_factory=list)
    credentials: dict[str, Credential] = Field(default_factory=dict)
    vault: Optional[VaultConfiguration] = None


def _clean_secrets(credential: Credential) -> None:
    credential.secret = b""
    credential.private_key = ""
    credential.private_key_path = ""
    credential.password = ""


def _clean_credential(credential: Credential) -> None:
    credential.user = ""
    credential.type = CredentialType.UNDEFINED
    _clean_secrets(credential)


class Inventory(BaseModel):
    """Assets to scan plus the credentials needed to reach them."""

    metadata: InventoryMetadata = Field(default_factory=InventoryMetadata)
    spec: InventorySpec = Field(default_factory=InventorySpec)

    @classmethod
    def from_file(cls, path: str) -> "Inventory":
        with open(path, encoding="utf-8") as f:
            inventory = cls.model_validate_json(f.read())
        inventory.metadata.labels[INVENTORY_FILE_PATH_LABEL] = os.path.abspath(path)
        return inventory

    def _resolve_key_path(self, path: str) -> str:
        if path.startswith("~"):
            return os.path.expanduser(path)
        if os.path.isabs(path):
            return path
        inventory_file = self.metadata.labels.get(INVENTORY_FILE_PATH_LABEL)
        if inventory_file:
            return os.path.join(os.path.dirname(inventory_file), path)
        return os.path.abspath(path)

    def preprocess(self) -> None:
        """Move embedded credentials into ``spec.credentials``.

        Connection credentials are replaced by references, every stored
        credential is normalized and private key files are loaded.

        Raises:
            InventoryError: If a private key file cannot be read.
        """
        for asset in self.spec.assets:
            for connection in asset.connections:
                for credential in connection.credentials:
                    if credential.secret_id:
                        # a reference wins over any inline content
                        _clean_secrets(credential)
                        continue
                    secret_id = uuid.uuid4().hex
                    credential.secret_id = secret_id
                    self.spec.credentials[secret_id] = credential.model_copy(deep=True)
                    _clean_credential(credential)

        for secret_id, credential in self.spec.credentials.items():
            credential.secret_id = secret_id
            credential.preprocess()

            if not credential.private_key_path:
                continue
            path = self._resolve_key_path(credential.private_key_path)
            try:
                with open(path, "rb") as f:
                    credential.secret = f.read()
            except OSError as e:
                raise InventoryError(f"cannot read credential: {path}") from e
            # pkcs12 credentials also use the key path
            if credential.type == CredentialType.UNDEFINED:
                credential.type = CredentialType.PRIVATE_KEY

    def validate_references(self) -> None:
        """Check connection credentials are well-formed references.

        Expects :meth:`preprocess` to have run.

        Raises:
            InventoryError: On a missing ``secret_id``, a typed reference, or
                a reference that is neither in the inventory nor backed by a
                vault.
        """
        for asset in self.spec.assets:
            for connection in asset.connections:
                for credential in connection.credentials:
                    if not credential.secret_id:
                        raise InventoryError("credential is missing the secret_id")
                    if credential.type != CredentialType.UNDEFINED:
                        raise InventoryError("credential reference has a wrong type defined")
                    if (
                        credential.secret_id not in self.spec.credentials
                        and self.spec.vault is None
                    ):
                        raise InventoryError(
                            f"credential {credential.secret_id} is not defined and no vault is configured"
                        )
