"""Tolerant extraction of an ``AgentDecision`` from model text.

Models wrap JSON in prose or code fences often enough that a strict
``json.loads`` is not sufficient. The parser tries, in order:

1. the whole text,
2. the body of the first fenced code block,
3. the span from the first ``{`` to the last ``}``.

The first candidate that parses as a JSON object is validated against
``AgentDecision``. Any failure raises ``DecisionParseError`` with the raw text
attached for the audit record.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterator, Optional

from pydantic import ValidationError

from ..errors import DecisionParseError
from ..schemas.decision import AgentDecision

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")


def _candidates(text: str) -> Iterator[str]:
    yield text
    fence = _FENCE.search(text)
    if fence:
        yield fence.group(1).strip()
    span = _OBJECT_SPAN.search(text)
    if span:
        yield span.group(0)


def _load_object(text: str) -> Optional[Any]:
    for candidate in _candidates(text):
        try:
            value = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(value, dict):
            return value
    return None


def parse_decision(raw: str) -> AgentDecision:
    text = (raw or "").strip()
    if not text:
        raise DecisionParseError("Empty response from reasoning collaborator", raw or "")

    payload = _load_object(text)
    if payload is None:
        raise DecisionParseError("No JSON object found in response", raw)

    try:
        return AgentDecision.model_validate(payload)
    except ValidationError as exc:
        logger.debug(f"Decision validation failed: {exc}")
        raise DecisionParseError(f"Response JSON is not a valid decision: {exc.error_count()} error(s)", raw) from exc
