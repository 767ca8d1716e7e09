"""Provider connection: owns one capability provider process."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from toolrelay.providers.schema import CapabilityDescriptor, InvocationResult
from toolrelay.providers.transport import InvocationTransportError, StdioTransport

logger = logging.getLogger(__name__)


class ProviderUnreachable(InvocationTransportError):
    """Raised when a provider process cannot be started or handshaken."""


class UnsupportedProviderKind(ValueError):
    """Raised when a provider path is not a runnable script type."""


def resolve_command(
    provider_path: str,
    node_command: str = "node",
    python_command: Optional[str] = None,
) -> str:
    """Pick the runtime for a provider script from its extension."""
    suffix = Path(provider_path).suffix.lower()
    if suffix == ".js":
        return node_command
    if suffix == ".py":
        return python_command or sys.executable
    raise UnsupportedProviderKind(
        f"Provider script must be a .js or .py file: {provider_path}"
    )


class ProviderConnection:
    """
    One live connection to a capability provider.

    Created by ``open()``, long-lived, closed exactly once by ``close()``.
    A failed call never tears the process down.
    """

    def __init__(
        self,
        provider_path: str,
        transport: StdioTransport,
    ):
        self.provider_path = provider_path
        self._transport = transport
        self._capabilities: List[CapabilityDescriptor] = []
        self._closed = False

    @classmethod
    def open(
        cls,
        provider_path: str,
        node_command: str = "node",
        python_command: Optional[str] = None,
        timeout: float = 60.0,
        env: Optional[Dict[str, str]] = None,
    ) -> "ProviderConnection":
        """
        Launch the provider, perform the handshake and discover capabilities.

        Raises:
            UnsupportedProviderKind: the extension has no known runtime.
            ProviderUnreachable: the process could not be started or handshaken.
        """
        command = resolve_command(provider_path, node_command, python_command)
        if not Path(provider_path).is_file():
            raise ProviderUnreachable(f"Provider script not found: {provider_path}")

        from toolrelay import __version__

        transport = StdioTransport(
            command=command,
            args=[provider_path],
            env=env,
            timeout=timeout,
            client_version=__version__,
        )
        connection = cls(provider_path, transport)
        try:
            transport.start()
            transport.initialize()
            raw_tools = transport.list_tools()
            connection._capabilities = [
                CapabilityDescriptor.from_raw(raw)
                for raw in raw_tools
                if isinstance(raw, dict) and raw.get("name")
            ]
        except (InvocationTransportError, ValueError, TypeError) as exc:
            transport.stop()
            raise ProviderUnreachable(f"Cannot connect to {provider_path}: {exc}") from exc

        logger.info(
            "Connected to %s with tools: %s",
            provider_path,
            [c.name for c in connection._capabilities],
        )
        return connection

    @property
    def is_alive(self) -> bool:
        return not self._closed and self._transport.is_running

    def list_capabilities(self) -> List[CapabilityDescriptor]:
        return list(self._capabilities)

    def invoke(self, name: str, arguments: Dict[str, Any]) -> InvocationResult:
        """
        Call a capability on this provider.

        Raises:
            InvocationTransportError: the call failed in flight. The
                connection is left as it is.
        """
        if self._closed:
            raise InvocationTransportError(f"Connection to {self.provider_path} is closed")
        if not self._transport.is_running:
            raise InvocationTransportError(f"Provider process {self.provider_path} has exited")

        raw = self._transport.call_tool(name, arguments)
        if not raw:
            return InvocationResult.error("No result returned from tool.")
        try:
            return InvocationResult.from_provider(raw)
        except ValidationError as exc:
            logger.warning("Malformed reply from %s for %r: %s", self.provider_path, name, exc)
            return InvocationResult.error(f'Malformed result from tool "{name}": {exc}')

    def close(self) -> None:
        """Stop the provider process. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._transport.stop()
        logger.info("Disconnected from %s", self.provider_path)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"ProviderConnection({self.provider_path!r}, {state})"
