"""
toolrelay Orchestrator - One query at a time, start to finish.

Every query:
1. Send the query to the model
2. Look for tool calls in the reply
3. If none, publish the reply as-is
4. Otherwise, for each call in order: dispatch, record the result as an
   observation, and ask the model to analyze it
5. Publish the assembled response to subscribers

Failures never escape ``process_query``: they become the published response.
"""

import json
import logging
import threading
from enum import Enum
from typing import Callable, List, Optional

from toolrelay.core.conversation import ConversationEngine
from toolrelay.core.extractor import CallExtractor
from toolrelay.providers.registry import ConnectionManager
from toolrelay.providers.schema import CapabilityDescriptor, InvocationRequest, format_result

logger = logging.getLogger(__name__)

ANALYSIS_PROMPT = "Analyze the following data and provide insights."

Subscriber = Callable[[str], None]


class QueryPhase(str, Enum):
    """Where a query is in its lifecycle."""

    AWAITING_MODEL = "awaiting_model"
    EXTRACTING_CALLS = "extracting_calls"
    NO_CALLS = "no_calls"
    DISPATCHING = "dispatching"
    ANALYZING = "analyzing"
    DONE = "done"


class SessionState:
    """
    The last finalized response plus the subscribers who want to hear about it.

    Reads and replacements are atomic. Subscribers run after the value is
    replaced, on the publishing thread.
    """

    def __init__(self):
        self._last_response = ""
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    @property
    def last_response(self) -> str:
        with self._lock:
            return self._last_response

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, response: str) -> None:
        with self._lock:
            self._last_response = response
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(response)
            except Exception:
                logger.exception("Response subscriber %r failed", callback)


class Orchestrator:
    """
    Per-query control loop over a conversation and a shared connection manager.

    Only one query runs at a time; concurrent callers wait their turn because
    each query mutates the conversation history in place.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        conversation: ConversationEngine,
        extractor: Optional[CallExtractor] = None,
        state: Optional[SessionState] = None,
    ):
        self.manager = manager
        self.conversation = conversation
        self.extractor = extractor or CallExtractor()
        self.state = state or SessionState()
        self._query_lock = threading.Lock()

    # === PUBLIC API ===

    @property
    def last_response(self) -> str:
        return self.state.last_response

    @property
    def capabilities(self) -> List[CapabilityDescriptor]:
        return self.manager.list_capabilities()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        return self.state.subscribe(callback)

    def prime(self) -> None:
        """Describe the manager's current catalog to the model."""
        with self._query_lock:
            self.conversation.prime_system_prompt(self.manager.list_capabilities())

    def reset_conversation(self) -> None:
        """Start a fresh conversation with the same tools."""
        with self._query_lock:
            self.conversation.reset()

    def process_query(self, query: str) -> str:
        """Run one query to completion and publish the result. Never raises."""
        with self._query_lock:
            try:
                response = self._run(query)
            except Exception as e:
                logger.warning("Query failed: %s", e)
                response = f"An error occurred while processing your query: {e}"
            self.state.publish(response)
            return response

    def close(self) -> None:
        """Shut down providers and the model backend."""
        with self._query_lock:
            self.manager.shutdown()
            self.conversation.backend.close()

    # === QUERY LIFECYCLE ===

    def _run(self, query: str) -> str:
        self._enter(QueryPhase.AWAITING_MODEL)
        reply = self.conversation.send_turn(query)
        reply_text = reply.content if reply.content else "No response"

        self._enter(QueryPhase.EXTRACTING_CALLS)
        calls = self.extractor.extract(reply_text)
        logger.debug("Parsed tool calls: %s", calls)

        if not calls:
            self._enter(QueryPhase.NO_CALLS)
            self._enter(QueryPhase.DONE)
            return reply_text

        blocks = [self._dispatch(call) for call in calls]

        self._enter(QueryPhase.DONE)
        return f"{reply_text}\n\n" + "\n\n".join(blocks)

    def _dispatch(self, call: InvocationRequest) -> str:
        """Run one tool call and its analysis turn; return its response block."""
        self._enter(QueryPhase.DISPATCHING)
        arguments = self.extractor.normalize(call.arguments)
        block = [f"[Calling tool {call.name} with args {json.dumps(arguments)}]\n"]

        result = self.manager.invoke(call.name, arguments)
        formatted = format_result(result)
        block.append(f"\nTool result:\n{formatted}\n")

        self._enter(QueryPhase.ANALYZING)
        self.conversation.inject_observation(
            f"Tool result from {call.name}: {formatted}\n\n{ANALYSIS_PROMPT}"
        )
        analysis = self.conversation.continue_turn()
        block.append(f"\nAnalysis:\n{analysis.content or 'No analysis provided.'}")
        return "".join(block)

    def _enter(self, phase: QueryPhase) -> None:
        logger.debug("Query phase: %s", phase.value)
