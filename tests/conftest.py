"""Shared fixtures: a scripted model backend, fake and real tool providers."""

import json
import textwrap
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from toolrelay.backends.base import ModelBackend, ModelReply
from toolrelay.providers.schema import CapabilityDescriptor, InvocationResult, TextItem


# ---------------------------------------------------------------------------
# Model backend
# ---------------------------------------------------------------------------


class ScriptedBackend(ModelBackend):
    """Returns canned replies in order and records every request."""

    backend_name = "scripted"

    def __init__(self, replies: List[Any]):
        super().__init__("test-model")
        self.replies = list(replies)
        self.requests: List[List[Dict[str, str]]] = []
        self.closed = False

    def chat(self, messages):
        self.requests.append([dict(m) for m in messages])
        item = self.replies.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, ModelReply):
            return item
        return ModelReply(content=item)

    def validate_connection(self) -> bool:
        return True

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def scripted_backend():
    def _make(*replies):
        return ScriptedBackend(list(replies))
    return _make


# ---------------------------------------------------------------------------
# In-process provider connection
# ---------------------------------------------------------------------------


class FakeConnection:
    """Stands in for a ProviderConnection without spawning a process."""

    def __init__(self, provider_path: str, tools: Dict[str, Any]):
        self.provider_path = provider_path
        self.tools = tools
        self.calls: List[tuple] = []
        self.close_count = 0

    def list_capabilities(self) -> List[CapabilityDescriptor]:
        return [
            CapabilityDescriptor(name=name, description=f"{name} tool", input_schema={"type": "object"})
            for name in self.tools
        ]

    def invoke(self, name: str, arguments: Dict[str, Any]) -> InvocationResult:
        self.calls.append((name, arguments))
        handler = self.tools[name]
        return handler(arguments)

    def close(self) -> None:
        self.close_count += 1


def echo_tool(arguments: Dict[str, Any]) -> InvocationResult:
    return InvocationResult(content=[TextItem(text=json.dumps(arguments))])


@pytest.fixture
def fake_connection():
    def _make(path: str = "fake/index.js", tools: Optional[Dict[str, Any]] = None):
        return FakeConnection(path, tools if tools is not None else {"echo": echo_tool})
    return _make


# ---------------------------------------------------------------------------
# Real stdio provider
# ---------------------------------------------------------------------------


PROVIDER_TEMPLATE = textwrap.dedent('''
    import json
    import sys
    import time

    TAG = {tag!r}
    TOOLS = [
        {{"name": "echo", "description": "Echo the arguments back (" + TAG + ")",
          "inputSchema": {{"type": "object", "properties": {{"msg": {{"type": "number"}}}}}}}},
        {{"name": "fail", "description": "Always fails", "inputSchema": {{"type": "object"}}}},
        {{"name": "sleep", "description": "Sleep for a while", "inputSchema": {{"type": "object"}}}},
        {{"name": "exit", "description": "Stop the provider", "inputSchema": {{"type": "object"}}}},
        {{"name": "resource", "description": "Return a resource", "inputSchema": {{"type": "object"}}}},
        {{"name": "malformed", "description": "Return a resource with a numeric body",
          "inputSchema": {{"type": "object"}}}},
        {{"name": "chatty", "description": "Emit notifications without answering",
          "inputSchema": {{"type": "object"}}}},
    ]

    def reply(message_id, result=None, error=None):
        message = {{"jsonrpc": "2.0", "id": message_id}}
        if error is not None:
            message["error"] = error
        else:
            message["result"] = result
        sys.stdout.write(json.dumps(message) + "\\n")
        sys.stdout.flush()

    sys.stdout.write("provider " + TAG + " starting\\n")
    sys.stdout.flush()

    for line in sys.stdin:
        request = json.loads(line)
        if "id" not in request:
            continue
        method = request["method"]
        params = request.get("params") or {{}}
        if method == "initialize":
            reply(request["id"], {{"protocolVersion": params.get("protocolVersion"),
                                   "capabilities": {{"tools": {{}}}},
                                   "serverInfo": {{"name": TAG, "version": "1.0"}}}})
        elif method == "tools/list":
            sys.stdout.write(json.dumps({{"jsonrpc": "2.0", "method": "notifications/message",
                                          "params": {{"level": "info"}}}}) + "\\n")
            reply(request["id"], {{"tools": TOOLS}})
        elif method == "tools/call":
            name = params["name"]
            arguments = params.get("arguments") or {{}}
            if name == "echo":
                reply(request["id"], {{"content": [{{"type": "text", "text": json.dumps(arguments)}}]}})
            elif name == "fail":
                reply(request["id"], error={{"code": -32000, "message": "boom"}})
            elif name == "sleep":
                time.sleep(arguments.get("seconds", 1))
                reply(request["id"], {{"content": [{{"type": "text", "text": "slept"}}]}})
            elif name == "resource":
                reply(request["id"], {{"content": [{{"type": "resource",
                                                     "resource": {{"uri": "file:///x", "text": "resource body",
                                                                   "mimeType": "text/plain"}}}}]}})
            elif name == "malformed":
                reply(request["id"], {{"content": [{{"type": "resource", "resource": {{"text": 5}}}}]}})
            elif name == "chatty":
                stop_at = time.time() + arguments.get("seconds", 1)
                while time.time() < stop_at:
                    sys.stdout.write(json.dumps({{"jsonrpc": "2.0", "method": "notifications/progress"}}) + "\\n")
                    sys.stdout.write("still working\\n")
                    sys.stdout.flush()
                    time.sleep(0.05)
                reply(request["id"], {{"content": [{{"type": "text", "text": "done"}}]}})
            elif name == "exit":
                sys.exit(0)
        else:
            reply(request["id"], error={{"code": -32601, "message": "Method not found"}})
''')


@pytest.fixture
def make_provider(tmp_path: Path):
    """Write a stdio provider script and return its path."""

    def _make(tag: str = "alpha", directory: Optional[Path] = None, filename: str = "server.py") -> str:
        target = (directory or tmp_path / tag)
        target.mkdir(parents=True, exist_ok=True)
        script = target / filename
        script.write_text(PROVIDER_TEMPLATE.format(tag=tag))
        return str(script)

    return _make
