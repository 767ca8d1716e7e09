"""Data models for capability descriptors, invocations, results and content items."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class CapabilityDescriptor(BaseModel):
    """A named operation advertised by a provider. Immutable once discovered."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=dict, alias="inputSchema")

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "CapabilityDescriptor":
        """Build a descriptor from a provider's ``tools/list`` entry."""
        schema = raw.get("inputSchema")
        return cls(
            name=str(raw["name"]),
            description=str(raw.get("description") or ""),
            input_schema=schema if isinstance(schema, dict) else {},
        )

    def prompt_block(self) -> str:
        """Multi-line representation for the system prompt."""
        return (
            f"Tool: {self.name}\n"
            f"Description: {self.description}\n"
            f"Input Schema: {json.dumps(self.input_schema, indent=2)}"
        )


class InvocationRequest(BaseModel):
    """A request, extracted from model text, to run one capability."""

    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


# ── Content items ─────────────────────────────────────────────────────────


class TextItem(BaseModel):
    type: Literal["text"] = "text"
    text: str = ""


class ResourceBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uri: Optional[str] = None
    text: Optional[str] = None
    mime_type: Optional[str] = Field(default=None, alias="mimeType")


class ResourceItem(BaseModel):
    type: Literal["resource"] = "resource"
    resource: ResourceBody = Field(default_factory=ResourceBody)


class OpaqueItem(BaseModel):
    """Any content item we do not understand (images, audio, future kinds)."""

    type: str = "unknown"
    data: Dict[str, Any] = Field(default_factory=dict)


ContentItem = Union[TextItem, ResourceItem, OpaqueItem]


def parse_content_item(raw: Any) -> ContentItem:
    """
    Map a raw provider content entry onto the closed item union.

    Raises:
        ValidationError: a resource entry carries fields of the wrong type.
    """
    if not isinstance(raw, dict):
        return OpaqueItem(data={"value": raw})

    kind = raw.get("type")
    if kind == "text" and isinstance(raw.get("text"), str):
        return TextItem(text=raw["text"])
    if kind == "resource" and isinstance(raw.get("resource"), dict):
        return ResourceItem(resource=ResourceBody.model_validate(raw["resource"]))
    return OpaqueItem(type=str(kind or "unknown"), data=dict(raw))


class InvocationResult(BaseModel):
    """Outcome of one invocation. Failures are data, never exceptions."""

    content: Union[List[ContentItem], Dict[str, Any], str] = ""
    is_error: bool = False

    @classmethod
    def error(cls, message: str) -> "InvocationResult":
        return cls(content=message, is_error=True)

    @classmethod
    def from_provider(cls, raw: Dict[str, Any]) -> "InvocationResult":
        """Build a result from a ``tools/call`` reply payload."""
        is_error = bool(raw.get("isError", False))
        items = raw.get("content")
        if isinstance(items, list):
            return cls(content=[parse_content_item(i) for i in items], is_error=is_error)
        structured = raw.get("structuredContent")
        if isinstance(structured, dict):
            return cls(content=structured, is_error=is_error)
        return cls(content={k: v for k, v in raw.items() if k != "isError"}, is_error=is_error)


def format_item(item: ContentItem) -> str:
    if isinstance(item, TextItem):
        return item.text
    if isinstance(item, ResourceItem):
        if item.resource.text is not None:
            return item.resource.text
        return json.dumps(item.model_dump(by_alias=True, exclude_none=True))
    return json.dumps(item.data)


def format_result(result: InvocationResult) -> str:
    """Render a result as display text for the user and the model."""
    content = result.content
    if isinstance(content, list):
        return "\n".join(format_item(item) for item in content)
    if isinstance(content, dict):
        return json.dumps(content, indent=2)
    return str(content)
