"""
toolrelay core module.

Provides the conversation loop: call extraction, message history and the
per-query orchestrator.
"""

from toolrelay.core.conversation import ConversationEngine, Message
from toolrelay.core.extractor import CallExtractor
from toolrelay.core.orchestrator import Orchestrator, QueryPhase, SessionState

__all__ = [
    "CallExtractor",
    "ConversationEngine",
    "Message",
    "Orchestrator",
    "QueryPhase",
    "SessionState",
]
