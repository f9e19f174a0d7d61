"""Recover a ``TradeDecision`` from free-form oracle text.

``parse_decision`` never raises: anything it cannot read becomes a PASS,
so an unreadable response can never turn into an order.
"""
from __future__ import annotations

import logging
from typing import Callable, List, Optional

from pydantic import ValidationError

from kalshi_oracle.models.schemas import TradeDecision

logger = logging.getLogger(__name__)

JSON_FENCE = "```json"
FENCE = "```"


def from_json_fence(raw: str) -> Optional[str]:
    start = raw.find(JSON_FENCE)
    if start < 0:
        return None
    start += len(JSON_FENCE)
    end = raw.find(FENCE, start)
    return raw[start:] if end < 0 else raw[start:end]


def from_bare_object(raw: str) -> Optional[str]:
    trimmed = raw.strip()
    return trimmed if trimmed.startswith("{") else None


def from_brace_span(raw: str) -> Optional[str]:
    start = raw.find("{")
    end = raw.rfind("}")
    if start < 0 or end < start:
        return None
    return raw[start : end + 1]


EXTRACTORS: List[Callable[[str], Optional[str]]] = [
    from_json_fence,
    from_bare_object,
    from_brace_span,
]


def extract_json(raw: str) -> Optional[str]:
    """Return the first candidate JSON span, trying each extractor in order."""
    for extract in EXTRACTORS:
        candidate = extract(raw)
        if candidate is not None:
            return candidate.strip()
    return None


def parse_decision(raw: Optional[str]) -> TradeDecision:
    if not raw:
        logger.warning("Empty oracle response, defaulting to PASS")
        return TradeDecision.failed()

    payload = extract_json(raw)
    if payload is None:
        logger.warning("No JSON found in oracle response, defaulting to PASS")
        return TradeDecision.failed()

    try:
        return TradeDecision.model_validate_json(payload)
    except ValidationError as err:
        logger.warning("JSON parse failed (%d errors), defaulting to PASS", err.error_count())
        logger.debug("Unparseable oracle payload: %s", payload[:500])
        return TradeDecision.failed()
