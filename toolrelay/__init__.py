"""
toolrelay - Tool-augmented chat for local language models.

Connects a language model to external tool providers. The model is told
which tools exist; when its reply asks for one, toolrelay runs the tool in
the provider process, hands the result back to the model and returns the
combined answer.

Architecture:
- Providers are separate processes (``.js`` or ``.py`` scripts) spoken to
  over stdio
- One conversation history per session, sent in full on every turn
- One query at a time: model turn, tool calls, analysis turns
- Front ends (interactive CLI, HTTP) share one orchestrator
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"

from toolrelay.core.conversation import ConversationEngine, Message
from toolrelay.core.extractor import CallExtractor
from toolrelay.core.orchestrator import Orchestrator, SessionState
from toolrelay.providers.registry import ConnectionManager

__all__ = [
    "CallExtractor",
    "ConnectionManager",
    "ConversationEngine",
    "Message",
    "Orchestrator",
    "SessionState",
    "__version__",
]
