"""Turning free-text oracle replies into validated models, with fallbacks."""

import json
import math
import re
from typing import Any, Iterable, List, Optional

from hypesignal.types import SentimentResult, TokenSignal

_SENTIMENTS = ("bullish", "bearish", "neutral")
_MENTION_TYPES = ("cashtag", "ticker", "project", "narrative", "other")

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```$")
_JSON_ARRAY = re.compile(r"\[.*\]", re.DOTALL)


def clean_json_response(raw: str) -> str:
    """Strip a leading ```json / ``` fence and its closing marker."""
    cleaned = (raw or "").strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN.sub("", cleaned, count=1)
        cleaned = _FENCE_CLOSE.sub("", cleaned)
    return cleaned.strip()


def extract_json_array(raw: str) -> Optional[str]:
    cleaned = clean_json_response(raw)
    if cleaned.startswith("[") and cleaned.endswith("]"):
        return cleaned
    m = _JSON_ARRAY.search(cleaned)
    return m.group(0) if m else None


def parse_json_payload(raw: str) -> Any:
    """Raises ValueError when the reply is not JSON after fence stripping."""
    return json.loads(clean_json_response(raw))


def parse_string_list(raw: str, allow_prose: bool = False) -> List[str]:
    segment = extract_json_array(raw) if allow_prose else clean_json_response(raw)
    if segment is None:
        raise ValueError("No JSON array found in response")
    data = json.loads(segment)
    if not isinstance(data, list):
        return []
    return [str(x).strip() for x in data if isinstance(x, str) and x.strip()]


def _coerce_int(value: Any) -> int:
    try:
        num = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(num):
        return 0
    return int(max(0, min(100, round(num))))


def normalize_token_signal(raw: Any) -> Optional[TokenSignal]:
    if not isinstance(raw, dict):
        return None
    token = str(raw.get("token") or "").strip().upper()
    if not token:
        return None
    sentiment = str(raw.get("sentiment") or "").strip().lower()
    mention = str(raw.get("mentionType") or raw.get("mention_type") or "other").lower()
    return TokenSignal(
        token=token,
        sentiment=sentiment if sentiment in _SENTIMENTS else "neutral",
        conviction=_coerce_int(raw.get("conviction")),
        reasoning=str(raw.get("reasoning") or ""),
        evidence=str(raw.get("evidence") or ""),
        mention_type=mention if mention in _MENTION_TYPES else "other",
    )


def parse_sentiment_payload(raw: str, tokens: List[str], minimum_confidence: int) -> SentimentResult:
    data = parse_json_payload(raw)
    if not isinstance(data, dict):
        raise ValueError("sentiment payload is not an object")
    sentiment = str(data.get("sentiment") or "").strip().lower()
    if sentiment not in _SENTIMENTS:
        sentiment = "neutral"
    confidence = _coerce_int(data.get("confidence"))
    return SentimentResult(
        sentiment=sentiment,
        confidence=confidence,
        reasoning=str(data.get("reasoning") or ""),
        is_positive=sentiment == "bullish" and confidence >= minimum_confidence,
        tokens=tokens,
    )


def parse_signals_payload(raw: str) -> List[TokenSignal]:
    data = parse_json_payload(raw)
    items = data.get("signals") if isinstance(data, dict) else None
    if not isinstance(items, list):
        return []
    out = []
    for item in items:
        sig = normalize_token_signal(item)
        if sig is not None:
            out.append(sig)
    return out


# --- Fallbacks: used whenever the oracle is down or unparseable ---


def fallback_sentiment(cashtags: Iterable[str]) -> SentimentResult:
    return SentimentResult(
        sentiment="neutral",
        confidence=0,
        reasoning="Failed to analyze sentiment",
        is_positive=False,
        tokens=list(cashtags),
    )


def fallback_token_signals(seed_tokens: Iterable[str]) -> List[TokenSignal]:
    return [
        TokenSignal(
            token=t,
            sentiment="neutral",
            conviction=0,
            reasoning="Fallback after signal extraction failure",
            mention_type="cashtag",
        )
        for t in seed_tokens
        if t and t.strip()
    ]
