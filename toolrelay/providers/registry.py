"""Connection manager. Discovers providers, owns the catalog and routes invocations."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from toolrelay.providers.connection import (
    ProviderConnection,
    ProviderUnreachable,
    UnsupportedProviderKind,
)
from toolrelay.providers.schema import CapabilityDescriptor, InvocationResult
from toolrelay.providers.transport import InvocationTransportError

logger = logging.getLogger(__name__)

DEFAULT_BUNDLE_PATTERNS = ("*/build/index.js", "*/server.py")


def discover_provider_paths(
    target: str,
    patterns: Sequence[str] = DEFAULT_BUNDLE_PATTERNS,
) -> List[str]:
    """
    Expand a provider location into script paths.

    A file is returned as-is. A directory is scanned one level deep for
    provider bundles, e.g. ``packages/weather/build/index.js``.
    """
    path = Path(target)
    if not path.is_dir():
        return [str(path)]

    found: List[str] = []
    for pattern in patterns:
        for match in sorted(path.glob(pattern)):
            if match.is_file() and str(match) not in found:
                found.append(str(match))
    return found


class ConnectionManager:
    """
    Owns one connection per provider process and the merged capability catalog.

    The catalog is keyed by capability name. When two providers advertise the
    same name the later registration wins: the route moves to the newer
    connection and a warning is logged. The name keeps its original position
    in the catalog order.

    Every provider failure mode is converted into an error-flagged
    ``InvocationResult`` by ``invoke()``; nothing raises past it.
    """

    def __init__(
        self,
        node_command: str = "node",
        python_command: Optional[str] = None,
        request_timeout: float = 60.0,
        env: Optional[Dict[str, str]] = None,
    ):
        self.node_command = node_command
        self.python_command = python_command
        self.request_timeout = request_timeout
        self.env = env or {}
        self._connections: List[ProviderConnection] = []
        self._catalog: Dict[str, CapabilityDescriptor] = {}
        self._routes: Dict[str, ProviderConnection] = {}
        self._lock = threading.Lock()

    # ── Connecting ────────────────────────────────────────────────────────

    def connect(self, provider_path: str) -> List[CapabilityDescriptor]:
        """
        Launch a provider and merge its capabilities into the catalog.

        Returns the capabilities the provider advertised.

        Raises:
            UnsupportedProviderKind: the script type has no known runtime.
            ProviderUnreachable: the process could not be reached.
        """
        connection = ProviderConnection.open(
            provider_path,
            node_command=self.node_command,
            python_command=self.python_command,
            timeout=self.request_timeout,
            env=self.env,
        )
        return self.register(connection)

    def register(self, connection: ProviderConnection) -> List[CapabilityDescriptor]:
        """Adopt an open connection and merge its capabilities."""
        capabilities = connection.list_capabilities()
        with self._lock:
            self._connections.append(connection)
            for capability in capabilities:
                previous = self._routes.get(capability.name)
                if previous is not None and previous is not connection:
                    logger.warning(
                        "Capability %r from %s replaces the one from %s",
                        capability.name,
                        connection.provider_path,
                        previous.provider_path,
                    )
                self._catalog[capability.name] = capability
                self._routes[capability.name] = connection
        return capabilities

    def connect_all(self, provider_paths: Iterable[str]) -> int:
        """Connect every path, logging the ones that fail. Returns the number connected."""
        connected = 0
        for provider_path in provider_paths:
            logger.info("Connecting to tool server: %s", provider_path)
            try:
                self.connect(provider_path)
            except (ProviderUnreachable, UnsupportedProviderKind) as exc:
                logger.error("Skipping provider %s: %s", provider_path, exc)
                continue
            connected += 1
        return connected

    # ── Catalog ───────────────────────────────────────────────────────────

    def list_capabilities(self) -> List[CapabilityDescriptor]:
        """Snapshot of the catalog in discovery order."""
        with self._lock:
            return list(self._catalog.values())

    def has_capability(self, name: str) -> bool:
        with self._lock:
            return name in self._catalog

    @property
    def connections(self) -> List[ProviderConnection]:
        with self._lock:
            return list(self._connections)

    def __len__(self) -> int:
        with self._lock:
            return len(self._catalog)

    # ── Dispatch ──────────────────────────────────────────────────────────

    def invoke(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> InvocationResult:
        """Route an invocation to the owning provider. Never raises."""
        with self._lock:
            connection = self._routes.get(name)

        if connection is None:
            logger.warning("Tool %r not found", name)
            return InvocationResult.error(f'Tool "{name}" not found.')

        try:
            return connection.invoke(name, arguments or {})
        except InvocationTransportError as exc:
            logger.warning("Error calling tool %r: %s", name, exc)
            return InvocationResult.error(f'Error calling tool "{name}": {exc}')

    # ── Teardown ──────────────────────────────────────────────────────────

    def shutdown(self) -> None:
        """Close every connection once and clear the catalog. Idempotent."""
        with self._lock:
            connections, self._connections = self._connections, []
            self._catalog.clear()
            self._routes.clear()

        for connection in connections:
            try:
                connection.close()
            except OSError as exc:
                logger.warning("Error closing %s: %s", connection.provider_path, exc)

    def __enter__(self) -> "ConnectionManager":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
