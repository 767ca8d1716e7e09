"""Tests for capability descriptors, content items and result formatting."""

import json

import pytest
from pydantic import ValidationError

from toolrelay.providers.schema import (
    CapabilityDescriptor,
    InvocationResult,
    OpaqueItem,
    ResourceItem,
    TextItem,
    format_result,
    parse_content_item,
)


class TestCapabilityDescriptor:
    def test_from_raw(self):
        descriptor = CapabilityDescriptor.from_raw({
            "name": "get-alerts",
            "description": "Weather alerts for a state",
            "inputSchema": {"type": "object", "properties": {"state": {"type": "string"}}},
        })
        assert descriptor.name == "get-alerts"
        assert descriptor.input_schema["properties"]["state"]["type"] == "string"

    def test_missing_description_and_schema(self):
        descriptor = CapabilityDescriptor.from_raw({"name": "ping"})
        assert descriptor.description == ""
        assert descriptor.input_schema == {}

    @pytest.mark.parametrize("schema", ["oops", ["a", "b"], 42])
    def test_non_mapping_schema_becomes_empty(self, schema):
        descriptor = CapabilityDescriptor.from_raw({"name": "t", "inputSchema": schema})
        assert descriptor.input_schema == {}

    def test_prompt_block(self):
        descriptor = CapabilityDescriptor(name="echo", description="Echo", input_schema={"type": "object"})
        block = descriptor.prompt_block()
        assert block.startswith("Tool: echo\nDescription: Echo\nInput Schema: ")
        assert '"type": "object"' in block


class TestParseContentItem:
    def test_text(self):
        item = parse_content_item({"type": "text", "text": "hello"})
        assert isinstance(item, TextItem)
        assert item.text == "hello"

    def test_resource(self):
        item = parse_content_item({
            "type": "resource",
            "resource": {"uri": "file:///a", "text": "body", "mimeType": "text/plain"},
        })
        assert isinstance(item, ResourceItem)
        assert item.resource.text == "body"
        assert item.resource.mime_type == "text/plain"

    def test_resource_with_non_string_fields(self):
        with pytest.raises(ValidationError):
            parse_content_item({"type": "resource", "resource": {"text": 5}})

    def test_unknown_kind_is_opaque(self):
        raw = {"type": "image", "data": "aGVsbG8=", "mimeType": "image/png"}
        item = parse_content_item(raw)
        assert isinstance(item, OpaqueItem)
        assert item.type == "image"
        assert item.data == raw

    def test_text_without_text_is_opaque(self):
        assert isinstance(parse_content_item({"type": "text"}), OpaqueItem)

    def test_non_dict_is_opaque(self):
        item = parse_content_item("just a string")
        assert isinstance(item, OpaqueItem)
        assert item.data == {"value": "just a string"}


class TestInvocationResult:
    def test_from_provider_content_list(self):
        result = InvocationResult.from_provider({
            "content": [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}],
        })
        assert result.is_error is False
        assert [i.text for i in result.content] == ["a", "b"]

    def test_from_provider_error_flag(self):
        result = InvocationResult.from_provider({
            "content": [{"type": "text", "text": "bad input"}],
            "isError": True,
        })
        assert result.is_error is True

    def test_from_provider_structured(self):
        result = InvocationResult.from_provider({"structuredContent": {"temp": 12}})
        assert result.content == {"temp": 12}

    def test_error(self):
        result = InvocationResult.error('Tool "x" not found.')
        assert result.is_error is True
        assert result.content == 'Tool "x" not found.'


class TestFormatResult:
    def test_text_items_joined_by_newline(self):
        result = InvocationResult(content=[TextItem(text="line 1"), TextItem(text="line 2")])
        assert format_result(result) == "line 1\nline 2"

    def test_resource_text(self):
        result = InvocationResult.from_provider({
            "content": [{"type": "resource", "resource": {"text": "playbook", "mimeType": "text/yaml"}}],
        })
        assert format_result(result) == "playbook"

    def test_resource_without_text_is_serialized(self):
        result = InvocationResult.from_provider({
            "content": [{"type": "resource", "resource": {"uri": "file:///blob"}}],
        })
        formatted = json.loads(format_result(result))
        assert formatted == {"type": "resource", "resource": {"uri": "file:///blob"}}

    def test_opaque_item_is_serialized(self):
        raw = {"type": "image", "data": "xyz"}
        result = InvocationResult.from_provider({"content": [raw]})
        assert json.loads(format_result(result)) == raw

    def test_mapping_content_is_pretty_json(self):
        result = InvocationResult(content={"a": 1})
        assert format_result(result) == '{\n  "a": 1\n}'

    def test_string_content(self):
        assert format_result(InvocationResult.error("nope")) == "nope"
