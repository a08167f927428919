"""Enums shared by credentials, secrets and vault configurations.

Enum values show up in machine-generated payloads as numeric codes and in
hand-written inventory files as names, so every enum here decodes from
either form and always encodes to its canonical name.
"""

from enum import IntEnum
from typing import Any

from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema

from infra_scan.vault.exceptions import EnumDecodeError


class FlexibleEnumMixin:
    """Code-or-name wire format for ``IntEnum`` subclasses.

    The canonical name of a member is its lower-cased Python name, with
    ``_`` replaced by the separator returned from ``_wire_separator``.
    """

    @classmethod
    def _wire_separator(cls) -> str:
        return "_"

    @classmethod
    def _legacy_prefix(cls) -> str:
        return ""

    @classmethod
    def _normalize(cls, value: str) -> str:
        name = value.strip().lower()
        prefix = cls._legacy_prefix()
        if prefix and name.startswith(prefix):
            name = name[len(prefix):]
        separator = cls._wire_separator()
        return name.replace("_", separator).replace("-", separator)

    @property
    def wire_name(self) -> str:
        """Canonical string form used when encoding."""
        return self.name.lower().replace("_", self._wire_separator())

    def encode(self) -> str:
        return self.wire_name

    @classmethod
    def decode(cls, value: Any):
        """Decode a numeric code or a case-insensitive name.

        Raises:
            EnumDecodeError: If the value matches no member.
        """
        if isinstance(value, cls):
            return value
        # bool is an int subclass, but True is never a valid code
        if isinstance(value, bool):
            raise EnumDecodeError(cls.__name__, value)
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise EnumDecodeError(cls.__name__, value) from None
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.isdigit():
                return cls.decode(int(stripped))
            name = cls._normalize(stripped)
            for member in cls:
                if member.wire_name == name:
                    return member
        raise EnumDecodeError(cls.__name__, value)

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls.decode,
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda member: member.wire_name,
            ),
        )


class CredentialType(FlexibleEnumMixin, IntEnum):
    """Kind of value a credential carries."""

    UNDEFINED = 0
    PASSWORD = 1
    PRIVATE_KEY = 2
    SSH_AGENT = 3
    BEARER = 4
    CREDENTIALS_QUERY = 5
    JSON = 6
    AWS_EC2_INSTANCE_CONNECT = 7
    AWS_EC2_SSM_SESSION = 8
    PKCS12 = 9


class SecretEncoding(FlexibleEnumMixin, IntEnum):
    """Serialization used for a secret's data."""

    UNDEFINED = 0
    JSON = 1
    PROTO = 2
    BINARY = 3

    @classmethod
    def _legacy_prefix(cls) -> str:
        return "encoding_"


class VaultType(FlexibleEnumMixin, IntEnum):
    """Secret store backends.

    The tag table is a wire contract: new backends get a new code, existing
    codes are never renumbered.
    """

    NONE = 0
    KEYRING = 1
    LINUX_KERNEL_KEYRING = 2
    ENCRYPTED_FILE = 3
    HASHICORP_VAULT = 4
    GCP_SECRET_MANAGER = 5
    AWS_SECRETS_MANAGER = 6
    AWS_PARAMETER_STORE = 7
    GCP_BERGLAS = 8
    MEMORY = 9

    @classmethod
    def _wire_separator(cls) -> str:
        return "-"
