"""Pydantic models for credentials, secrets and vault configurations.

This module defines the canonical credential shape shared by every vault
backend, the secret envelope stored in vaults, and the persisted form of a
user-registered vault configuration.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from infra_scan.vault.enums import CredentialType, SecretEncoding, VaultType
from infra_scan.vault.exceptions import VaultError


class Credential(BaseModel):
    """A resolved credential or a reference to one.

    A credential with ``secret_id`` set is a reference that must be resolved
    through a vault before it can be used.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )

    type: CredentialType = Field(
        default=CredentialType.UNDEFINED,
        description="Kind of value stored in secret",
    )
    user: str = Field(default="", description="User name")
    password: str = Field(default="", description="Human-friendly password")
    private_key: str = Field(default="", description="Inline private key")
    private_key_path: str = Field(
        default="",
        alias="identity_file",
        description="Path to a private key file",
        examples=["~/.ssh/id_ed25519"],
    )
    secret: bytes = Field(default=b"", description="Resolved secret value")
    secret_id: str = Field(default="", description="Vault reference key")
    secret_encoding: SecretEncoding = Field(
        default=SecretEncoding.UNDEFINED,
        description="Encoding used when the credential is stored as a secret",
    )
    fields: dict[str, str] = Field(
        default_factory=dict,
        description="Backend specific key/value pairs",
    )

    @property
    def is_reference(self) -> bool:
        return bool(self.secret_id)

    def preprocess(self) -> "Credential":
        """Move human-friendly values into ``secret``.

        Idempotent: once moved, the source fields are empty and a second
        call changes nothing.
        """
        if self.private_key:
            self.secret = self.private_key.encode()
            self.private_key = ""
            self.type = CredentialType.PRIVATE_KEY
        elif (
            self.type in (CredentialType.UNDEFINED, CredentialType.PASSWORD)
            and self.password
        ):
            self.secret = self.password.encode()
            self.password = ""
            self.type = CredentialType.PASSWORD
        return self

    def __repr__(self) -> str:
        return (
            f"Credential(type={self.type.wire_name!r}, user={self.user!r}, "
            f"secret_id={self.secret_id!r})"
        )

    __str__ = __repr__


class Secret(BaseModel):
    """A secret as stored in a vault."""

    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    key: str = Field(..., description="Vault key, never starting with /")
    label: str = Field(default="", description="Human readable label")
    data: bytes = Field(default=b"", description="Secret payload")
    encoding: SecretEncoding = Field(
        default=SecretEncoding.UNDEFINED,
        description="Serialization of data",
    )

    def __repr__(self) -> str:
        return f"Secret(key={self.key!r}, label={self.label!r}, encoding={self.encoding.wire_name!r})"

    __str__ = __repr__


class SecretID(BaseModel):
    """Identifier returned when a secret is stored."""

    key: str


class VaultConfiguration(BaseModel):
    """Persisted configuration of a user-registered vault."""

    name: str = Field(..., description="Name the vault is registered under")
    type: VaultType = Field(..., description="Backend type tag")
    options: dict[str, str] = Field(
        default_factory=dict,
        description="Backend specific options",
        examples=[{"url": "https://vault.example.com:8200", "token": "s.xyz"}],
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate vault name."""
        if not v or not v.strip():
            raise ValueError("Vault name cannot be empty")
        return v.strip()

    def __repr__(self) -> str:
        # options may carry tokens or passwords
        return f"VaultConfiguration(name={self.name!r}, type={self.type.wire_name!r})"

    __str__ = __repr__


def secret_from_credential(
    credential: Credential,
    encoding: SecretEncoding = SecretEncoding.JSON,
) -> Secret:
    """Wrap a resolved credential into a secret for storage.

    The reference fields are dropped; the key is the credential's secret id.

    Raises:
        VaultError: If the encoding is not supported.
    """
    if encoding == SecretEncoding.JSON:
        stored = credential.model_copy(update={"secret_id": ""})
        data = stored.model_dump_json(exclude_defaults=True).encode()
    elif encoding == SecretEncoding.BINARY:
        data = bytes(credential.secret)
    else:
        raise VaultError(
            f"unsupported secret encoding: {encoding.wire_name}",
            details={"secret_id": credential.secret_id},
        )
    return Secret(key=credential.secret_id, data=data, encoding=encoding)


def credential_from_secret(secret: Secret) -> Credential:
    """Decode a stored secret back into a credential.

    Secrets without an explicit encoding are treated as JSON when they parse
    as a credential object, and as a raw password otherwise.

    Raises:
        VaultError: If the secret cannot be decoded.
    """
    encoding = secret.encoding
    if encoding in (SecretEncoding.JSON, SecretEncoding.UNDEFINED):
        try:
            credential = Credential.model_validate_json(secret.data or b"{}")
        except ValueError as e:
            if encoding == SecretEncoding.JSON:
                raise VaultError(
                    "could not decode json credential",
                    details={"key": secret.key},
                ) from e
            credential = Credential(type=CredentialType.PASSWORD, secret=secret.data)
    elif encoding == SecretEncoding.BINARY:
        credential = Credential(type=CredentialType.PASSWORD, secret=secret.data)
    else:
        raise VaultError(
            f"unsupported secret encoding: {encoding.wire_name}",
            details={"key": secret.key},
        )
    credential.secret_id = secret.key
    credential.secret_encoding = encoding
    return credential.preprocess()
