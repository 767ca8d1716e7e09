"""Capability provider communication via stdio subprocess transport."""

from __future__ import annotations

import json
import logging
import os
import queue
import subprocess
import threading
import time
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"

_EOF = object()


class InvocationTransportError(Exception):
    """Raised when communication with a provider process fails."""


class StdioTransport:
    """
    Talk to a capability provider over stdin/stdout (line-delimited JSON-RPC).

    Unlike a lazily restarted client, the process is started once by
    ``start()`` and never respawned: a dead provider stays dead until the
    owner reconnects it. Requests are serialized; responses are read by a
    background thread so each request can time out on its own.
    """

    def __init__(
        self,
        command: str,
        args: Optional[List[str]] = None,
        env: Optional[Dict[str, str]] = None,
        timeout: float = 60.0,
        client_name: str = "toolrelay",
        client_version: str = "0.1.0",
    ):
        self.command = command
        self.args = args or []
        self.env = env or {}
        self.timeout = timeout
        self.client_name = client_name
        self.client_version = client_version
        self._process: Optional[subprocess.Popen] = None
        self._reader: Optional[threading.Thread] = None
        self._lines: "queue.Queue[Any]" = queue.Queue()
        self._request_id = 0
        self._lock = threading.Lock()

    # ── Lifecycle ─────────────────────────────────────────────────────────

    def start(self) -> None:
        """Spawn the provider subprocess."""
        if self.is_running:
            return

        merged_env = {**os.environ, **self.env}
        try:
            self._process = subprocess.Popen(
                [self.command] + self.args,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                env=merged_env,
            )
        except OSError as exc:
            raise InvocationTransportError(
                f"Cannot start provider command {self.command!r}: {exc}"
            ) from exc

        self._lines = queue.Queue()
        self._reader = threading.Thread(
            target=self._read_stdout,
            args=(self._process, self._lines),
            name=f"toolrelay-reader-{self._process.pid}",
            daemon=True,
        )
        self._reader.start()

    def stop(self) -> None:
        """Terminate the provider subprocess. Safe to call more than once."""
        process, self._process = self._process, None
        if process is None:
            return
        if process.poll() is None:
            try:
                if process.stdin:
                    process.stdin.close()
            except OSError:
                pass
            try:
                process.terminate()
                process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                process.kill()
                process.wait()
        if process.stdout:
            process.stdout.close()

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    @staticmethod
    def _read_stdout(process: subprocess.Popen, lines: "queue.Queue[Any]") -> None:
        try:
            for raw in iter(process.stdout.readline, b""):
                lines.put(raw)
        except (OSError, ValueError):
            pass
        finally:
            lines.put(_EOF)

    # ── JSON-RPC ──────────────────────────────────────────────────────────

    def _write(self, message: Dict[str, Any]) -> None:
        if not self.is_running:
            raise InvocationTransportError("Provider process is not running")
        line = json.dumps(message) + "\n"
        try:
            self._process.stdin.write(line.encode())
            self._process.stdin.flush()
        except (BrokenPipeError, OSError, ValueError) as exc:
            raise InvocationTransportError(f"Provider transport error: {exc}") from exc

    def _read_response(self, request_id: int) -> Dict[str, Any]:
        deadline = time.monotonic() + self.timeout
        while True:
            try:
                raw = self._lines.get(timeout=max(deadline - time.monotonic(), 0))
            except queue.Empty:
                raise InvocationTransportError(
                    f"Provider did not answer within {self.timeout:g}s"
                )
            if raw is _EOF:
                # Keep the marker so later requests fail fast too.
                self._lines.put(_EOF)
                raise InvocationTransportError("Provider closed connection (empty response)")
            try:
                message = json.loads(raw.decode())
            except (UnicodeDecodeError, json.JSONDecodeError):
                logger.debug("Skipping non-JSON provider output: %r", raw[:200])
                continue
            if not isinstance(message, dict) or message.get("id") != request_id:
                # Notifications, log messages or late replies to timed-out requests.
                continue
            return message

    def send(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Send a JSON-RPC request and return the result."""
        with self._lock:
            self._request_id += 1
            request: Dict[str, Any] = {
                "jsonrpc": "2.0",
                "id": self._request_id,
                "method": method,
            }
            if params is not None:
                request["params"] = params

            self._write(request)
            response = self._read_response(self._request_id)

        if "error" in response:
            err = response["error"] or {}
            if isinstance(err, dict):
                raise InvocationTransportError(
                    f"Provider error {err.get('code')}: {err.get('message')}"
                )
            raise InvocationTransportError(f"Provider error: {err}")

        result = response.get("result")
        return result if isinstance(result, dict) else {}

    def notify(self, method: str, params: Optional[Dict[str, Any]] = None) -> None:
        """Send a JSON-RPC notification (no response expected)."""
        message: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        with self._lock:
            self._write(message)

    # ── Provider Protocol ─────────────────────────────────────────────────

    def initialize(self) -> Dict[str, Any]:
        """Perform the initialize handshake."""
        result = self.send("initialize", {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": {"name": self.client_name, "version": self.client_version},
        })
        self.notify("notifications/initialized")
        return result

    def list_tools(self) -> List[Dict[str, Any]]:
        """Fetch the tool list from the provider."""
        result = self.send("tools/list", {})
        tools = result.get("tools", [])
        return tools if isinstance(tools, list) else []

    def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Call a tool on the provider."""
        return self.send("tools/call", {"name": name, "arguments": arguments or {}})
