"""Live connections to assets and the fetch-once report cache."""

import logging
import platform as host_platform
import socket
from abc import ABC, abstractmethod
from threading import Lock
from typing import Callable, Generic, Optional, TypeVar

from infra_scan.config import PLATFORM_ID_HOST
from infra_scan.inventory.models import Asset, ConnectionConfig, Platform

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Platform id detectors
HOSTNAME_DETECTOR = "hostname"
AWS_EC2_DETECTOR = "awsec2"

PLATFORM_OVERRIDE_OPTION = "platform-override"


class CachedReport(Generic[T]):
    """Fetch an expensive report once and share it between callers.

    Concurrent first callers block on the lock while a single fetch runs.
    A failed fetch caches nothing, so the next caller tries again.

    Example:
        >>> report = CachedReport(lambda: client.get_compliance_report())
        >>> report.get()  # fetches
        >>> report.get()  # cached
    """

    def __init__(self, fetch: Callable[[], T]):
        self._fetch = fetch
        self._value: Optional[T] = None
        self._lock = Lock()

    def get(self) -> T:
        with self._lock:
            if self._value is None:
                self._value = self._fetch()
            return self._value

    def reset(self) -> None:
        with self._lock:
            self._value = None


class Connection(ABC):
    """An open session to an asset built from a resolved config."""

    def __init__(self, config: ConnectionConfig):
        self.config = config
        self.asset: Optional[Asset] = None

    @property
    def record(self) -> bool:
        return self.config.record

    @abstractmethod
    def platform(self) -> Platform:
        """Identify the platform behind the connection."""

    def platform_id_detectors(self) -> list[str]:
        return [HOSTNAME_DETECTOR]

    def platform_ids(self, detectors: Optional[list[str]] = None) -> list[str]:
        """Compute the platform ids the given detectors can derive."""
        return []

    def close(self) -> None:
        pass

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(type={self.config.type!r}, host={self.config.host!r})"


def _platform_override(config: ConnectionConfig) -> Optional[Platform]:
    name = (config.options or {}).get(PLATFORM_OVERRIDE_OPTION)
    if not name:
        return None
    return Platform(name=name, runtime=config.runtime)


class MockConnection(Connection):
    """Connection answering from its options, used for tests and demos.

    Recognized options: ``platform-override`` or ``name``/``family``/``arch``
    for the platform, ``platform-id`` for the platform id.
    """

    def platform(self) -> Platform:
        override = _platform_override(self.config)
        if override is not None:
            return override
        options = self.config.options or {}
        family = [f for f in options.get("family", "").split(",") if f]
        return Platform(
            name=options.get("name", "mock"),
            title=options.get("title", ""),
            family=family,
            arch=options.get("arch", ""),
            kind=options.get("kind", "api"),
            runtime=self.config.runtime,
        )

    def platform_ids(self, detectors: Optional[list[str]] = None) -> list[str]:
        platform_id = (self.config.options or {}).get("platform-id") or self.config.platform_id
        return [platform_id] if platform_id else []


class LocalConnection(Connection):
    """Connection to the machine running the scan."""

    def platform(self) -> Platform:
        override = _platform_override(self.config)
        if override is not None:
            return override
        system = host_platform.system().lower()
        family = ["windows"] if system == "windows" else ["unix", system]
        return Platform(
            name=system,
            title=host_platform.platform(),
            family=family,
            arch=host_platform.machine(),
            kind="bare-metal",
            runtime=self.config.runtime,
        )

    def platform_ids(self, detectors: Optional[list[str]] = None) -> list[str]:
        detectors = detectors or self.platform_id_detectors()
        ids = []
        if HOSTNAME_DETECTOR in detectors:
            ids.append(f"{PLATFORM_ID_HOST}/hostname/{socket.gethostname()}")
        return ids
