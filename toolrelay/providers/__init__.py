"""
Capability providers: external processes exposing named operations.

Each provider is a script (``.js`` or ``.py``) launched as a child process
and spoken to over stdio. The ``ConnectionManager`` keeps one connection per
provider, merges their capabilities into a single catalog and routes
invocations by capability name.
"""

from toolrelay.providers.connection import (
    ProviderConnection,
    ProviderUnreachable,
    UnsupportedProviderKind,
)
from toolrelay.providers.registry import ConnectionManager, discover_provider_paths
from toolrelay.providers.schema import (
    CapabilityDescriptor,
    InvocationRequest,
    InvocationResult,
    OpaqueItem,
    ResourceItem,
    TextItem,
    format_result,
)
from toolrelay.providers.transport import InvocationTransportError, StdioTransport

__all__ = [
    "CapabilityDescriptor",
    "ConnectionManager",
    "InvocationRequest",
    "InvocationResult",
    "InvocationTransportError",
    "OpaqueItem",
    "ProviderConnection",
    "ProviderUnreachable",
    "ResourceItem",
    "StdioTransport",
    "TextItem",
    "UnsupportedProviderKind",
    "discover_provider_paths",
    "format_result",
]
