"""Backend id to connection factory registry."""

import logging
from typing import Callable, Optional

from infra_scan.connection.base import Connection, LocalConnection, MockConnection
from infra_scan.inventory.models import ConnectionConfig
from infra_scan.vault.exceptions import UnsupportedBackendError

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[ConnectionConfig], Connection]

# Backends that work but are not yet generally available
DEVELOPMENT_STATUS = {
    "aws-ec2-ebs": "experimental",
}


class ProviderRegistry:
    """Connection factories keyed by backend id."""

    def __init__(self):
        self._factories: dict[str, ConnectionFactory] = {}
        self._status: dict[str, str] = dict(DEVELOPMENT_STATUS)

    def register(
        self,
        backend: str,
        factory: ConnectionFactory,
        status: Optional[str] = None,
    ) -> None:
        self._factories[backend] = factory
        if status:
            self._status[backend] = status

    def get(self, backend: str) -> ConnectionFactory:
        """Look up the factory for a backend.

        Raises:
            UnsupportedBackendError: If nothing is registered for the backend.
        """
        try:
            return self._factories[backend]
        except KeyError:
            raise UnsupportedBackendError(backend) from None

    def status(self, backend: str) -> str:
        return self._status.get(backend, "")

    def backends(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, backend: str) -> bool:
        return backend in self._factories


def _aws_connection(config: ConnectionConfig) -> Connection:
    from infra_scan.connection.aws import AwsConnection

    return AwsConnection(config)


def default_registry() -> ProviderRegistry:
    registry = ProviderRegistry()
    registry.register("mock", MockConnection)
    registry.register("local", LocalConnection)
    registry.register("aws", _aws_connection)
    return registry


providers = default_registry()


def register_provider(backend: str, factory: ConnectionFactory, status: Optional[str] = None) -> None:
    """Register a connection factory on the process-wide registry."""
    providers.register(backend, factory, status)
    logger.debug(f"Registered connection provider {backend}")
