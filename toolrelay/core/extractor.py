"""
toolrelay Call Extractor - Find tool invocations embedded in model text.

Models are asked to answer with a ``{"tool_calls": [...]}`` object when they
need a tool. They do not always comply cleanly: the object may be wrapped in
prose and a ```json fence, or the model may merely talk about JSON. Parsing is
therefore lenient, and anything that does not parse is a plain answer.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from toolrelay.providers.schema import InvocationRequest

logger = logging.getLogger(__name__)

INVOCATION_KEY = "tool_calls"

_FENCED_JSON = re.compile(r"```json\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)
_JSON_NUMBER = re.compile(r"-?(?:0|[1-9]\d*)(\.\d+)?([eE][+-]?\d+)?")


class CallExtractor:
    """
    Extracts at most one batch of invocation requests per model reply.

    Policy:
    - the first ```json fenced block is the only candidate when one exists;
    - otherwise the whole trimmed text is tried, but only when it starts
      with ``{`` and ends with ``}``.

    Later fenced blocks are ignored.
    """

    def extract(self, model_text: Optional[str]) -> Optional[List[InvocationRequest]]:
        """Return the invocation requests in ``model_text``, or None if there are none."""
        text = (model_text or "").strip()
        if not text:
            return None

        match = _FENCED_JSON.search(text)
        if match:
            candidate = match.group(1)
        elif text.startswith("{") and text.endswith("}"):
            candidate = text
        else:
            return None

        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError as exc:
            logger.debug("No valid tool calls found in response: %s", exc)
            return None

        if not isinstance(payload, dict):
            return None
        raw_calls = payload.get(INVOCATION_KEY)
        if not isinstance(raw_calls, list):
            return None

        calls: List[InvocationRequest] = []
        for raw in raw_calls:
            if not isinstance(raw, dict) or not isinstance(raw.get("name"), str):
                logger.debug("Skipping malformed tool call entry: %r", raw)
                continue
            arguments = raw.get("arguments")
            if not isinstance(arguments, dict):
                arguments = {}
            calls.append(InvocationRequest(name=raw["name"], arguments=arguments))

        return calls or None

    def normalize(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """
        Coerce numeric-looking strings to numbers, recursively through mappings.

        ``{"a": "3", "b": {"c": "4.5"}, "d": "x"}`` becomes
        ``{"a": 3, "b": {"c": 4.5}, "d": "x"}``. Lists and non-numeric
        strings are left alone.
        """
        normalized: Dict[str, Any] = {}
        for key, value in arguments.items():
            if isinstance(value, str):
                normalized[key] = _to_number(value)
            elif isinstance(value, dict):
                normalized[key] = self.normalize(value)
            else:
                normalized[key] = value
        return normalized


def _to_number(value: str) -> Any:
    match = _JSON_NUMBER.fullmatch(value)
    if not match:
        return value
    if match.group(1) is None and match.group(2) is None:
        return int(value)
    number = float(value)
    # "1e999" would become inf; keep the text instead.
    if number in (float("inf"), float("-inf")):
        return value
    return number
