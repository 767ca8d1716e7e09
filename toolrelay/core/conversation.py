"""
toolrelay Conversation Engine - Message history and model turns.

History is the single source of truth the model sees: every user prompt,
assistant reply and tool observation is appended in order and sent in full
on each turn. Nothing is summarized or hidden.
"""

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from toolrelay.backends.base import ModelBackend, ModelReply
from toolrelay.providers.schema import CapabilityDescriptor

ROLES = ("system", "user", "assistant")

SYSTEM_PROMPT_TEMPLATE = """You are an assistant with access to the following tools:

{tools}

When you need to use a tool, respond using this exact JSON format:
{{
  "tool_calls": [
    {{
      "name": "tool_name",
      "arguments": {{
        "arg1": "value1",
        "arg2": "value2"
      }}
    }}
  ]
}}

Only use tool_calls when a query requires external data. Otherwise, respond normally."""


@dataclass(frozen=True)
class Message:
    """A single conversation message."""

    role: str
    content: str

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Invalid message role: {self.role}")

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


def build_system_prompt(catalog: Sequence[CapabilityDescriptor]) -> str:
    """Describe every capability and the tool-call response contract."""
    tools = "\n\n".join(c.prompt_block() for c in catalog) or "(no tools available)"
    return SYSTEM_PROMPT_TEMPLATE.format(tools=tools)


class ConversationEngine:
    """
    Owns the message history and the request/response cycle with the model.

    Example:
        >>> engine = ConversationEngine(OllamaBackend("llama3.2:3b"))
        >>> engine.prime_system_prompt(manager.list_capabilities())
        >>> reply = engine.send_turn("What's the weather in Oslo?")
    """

    def __init__(self, backend: ModelBackend):
        self.backend = backend
        self._messages: List[Message] = []
        self._catalog: List[CapabilityDescriptor] = []
        self._primed = False
        self._lock = threading.RLock()

    @property
    def history(self) -> List[Message]:
        """Copy of the message history."""
        with self._lock:
            return list(self._messages)

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)

    # === SYSTEM PROMPT ===

    def prime_system_prompt(self, catalog: Sequence[CapabilityDescriptor]) -> Message:
        """
        Install the system prompt describing ``catalog``.

        The prompt is always the first message. Priming again replaces it.
        """
        with self._lock:
            self._catalog = list(catalog)
            message = Message("system", build_system_prompt(self._catalog))
            if self._primed and self._messages:
                self._messages[0] = message
            else:
                self._messages.insert(0, message)
                self._primed = True
            return message

    def reset(self) -> None:
        """Clear history and re-prime with the last catalog, atomically."""
        with self._lock:
            self._messages = []
            self._primed = False
            self.prime_system_prompt(self._catalog)

    # === TURNS ===

    def send_turn(self, prompt_text: str) -> ModelReply:
        """
        Append a user message, ask the model, and record its reply.

        Raises:
            ModelBackendError: The backend answered with a non-success status.
        """
        with self._lock:
            self._messages.append(Message("user", prompt_text))
            return self._request()

    def continue_turn(self) -> ModelReply:
        """Ask the model to reply to the history as it stands."""
        with self._lock:
            return self._request()

    def inject_observation(self, text: str) -> Message:
        """Append a system-role message carrying a tool result."""
        with self._lock:
            message = Message("system", text)
            self._messages.append(message)
            return message

    def _request(self) -> ModelReply:
        reply = self.backend.chat([m.to_dict() for m in self._messages])
        if reply.has_message:
            role = reply.role if reply.role in ROLES else "assistant"
            self._messages.append(Message(role, reply.content))
        return reply
