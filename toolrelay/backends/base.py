"""
toolrelay Model Backends - Request/response clients for language model servers.

This module defines the interface a model backend must implement and the
Ollama-compatible implementation used by default.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx


class ModelBackendError(Exception):
    """Raised when the model backend returns a non-success response."""

    def __init__(self, status: Optional[int], body: str):
        self.status = status
        self.body = body
        if status is None:
            super().__init__(f"Model backend unreachable: {body}")
        else:
            super().__init__(f"Model backend error: {status} {body}")


@dataclass
class ModelReply:
    """One reply from the model backend."""

    content: Optional[str]
    role: str = "assistant"
    model: str = ""
    done: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_message(self) -> bool:
        return self.content is not None


class ModelBackend(ABC):
    """
    Abstract base class for model backends.

    A backend takes the full message history and returns the next reply.
    Streaming is never used.
    """

    def __init__(self, model: str):
        """
        Initialize the backend.

        Args:
            model: The model identifier.
        """
        self.model = model

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend name."""
        pass

    @abstractmethod
    def chat(self, messages: List[Dict[str, str]]) -> ModelReply:
        """
        Request the next reply for a conversation.

        Args:
            messages: Full history as ``{"role", "content"}`` dicts.

        Returns:
            ModelReply with the assistant's message.

        Raises:
            ModelBackendError: On a non-success response.
        """
        pass

    @abstractmethod
    def validate_connection(self) -> bool:
        """
        Validate that the backend is reachable.

        Returns:
            True if the backend answered, False otherwise.
        """
        pass

    def close(self) -> None:
        """Release any held resources."""


class OllamaBackend(ModelBackend):
    """Ollama ``/api/chat`` backend implementation."""

    def __init__(
        self,
        model: str,
        base_url: str = "http://localhost:11434",
        timeout: float = 120.0,
        client: Optional[httpx.Client] = None,
    ):
        super().__init__(model)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def backend_name(self) -> str:
        return "ollama"

    def chat(self, messages: List[Dict[str, str]]) -> ModelReply:
        """Generate the next reply using Ollama."""
        try:
            response = self._client.post(
                f"{self.base_url}/api/chat",
                json={
                    "model": self.model,
                    "messages": messages,
                    "stream": False,
                },
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise ModelBackendError(None, str(exc)) from exc

        if not response.is_success:
            raise ModelBackendError(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as exc:
            raise ModelBackendError(response.status_code, f"Invalid JSON body: {exc}") from exc

        message = data.get("message") if isinstance(data, dict) else None
        if not isinstance(message, dict):
            return ModelReply(
                content=None,
                model=data.get("model", self.model) if isinstance(data, dict) else self.model,
                done=bool(data.get("done", True)) if isinstance(data, dict) else True,
            )

        return ModelReply(
            content=str(message.get("content") or ""),
            role=str(message.get("role") or "assistant"),
            model=data.get("model", self.model),
            done=bool(data.get("done", True)),
            metadata={
                k: v for k, v in data.items()
                if k in ("created_at", "total_duration", "eval_count", "prompt_eval_count")
            },
        )

    def validate_connection(self) -> bool:
        """Validate Ollama connection."""
        try:
            response = self._client.get(f"{self.base_url}/api/tags", timeout=5)
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
