"""
Recovery of a structured challenge from free-form model output.

Each tier is a pure `text -> TierOutcome` function. Tiers run in order and the
first success wins; the winning object is then validated as a whole.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from dojo.core.errors import MalformedResponse
from dojo.models.challenge import ChallengeContent

logger = logging.getLogger("dojo")

_JSON_FENCE = re.compile(r"```json\s*", re.IGNORECASE)
_PLAIN_FENCE = re.compile(r"```\s*")
_WIDEST_OBJECT = re.compile(r"\{[\s\S]*\}")
_QUOTED = re.compile(r'"([^"]*?)"')

SCALAR_FIELDS = ("title", "problem", "teachingPoint")
LIST_FIELDS = ("hints", "keyMetrics", "tools")

_SCALAR_PATTERNS = {name: re.compile(rf'"{name}"\s*:\s*"([^"]+)"') for name in SCALAR_FIELDS}
_LIST_PATTERNS = {name: re.compile(rf'"{name}"\s*:\s*\[(.*?)\]', re.DOTALL) for name in LIST_FIELDS}


@dataclass(frozen=True)
class TierOutcome:
    tier: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.data is not None


def strip_fences(raw: str) -> str:
    cleaned = _JSON_FENCE.sub("", raw)
    return _PLAIN_FENCE.sub("", cleaned).strip()


def widest_object(text: str) -> str:
    match = _WIDEST_OBJECT.search(text)
    return match.group(0) if match else text


def trim_to_braces(text: str) -> str:
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end != -1:
        return text[start:end + 1]
    return text


def collapse_quoted_newlines(text: str) -> str:
    def _fix(match: re.Match) -> str:
        content = match.group(1).replace("\n", " ").replace("\r", "")
        return f'"{content}"'

    return _QUOTED.sub(_fix, text)


def _load_object(text: str) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    try:
        data = json.loads(text)
    except ValueError as exc:
        return None, str(exc)
    if not isinstance(data, dict):
        return None, f"expected a JSON object, got {type(data).__name__}"
    return data, None


def strip_and_parse(raw: str) -> TierOutcome:
    data, error = _load_object(widest_object(strip_fences(raw)))
    return TierOutcome("strip_and_parse", data, error)


def sanitize_and_parse(raw: str) -> TierOutcome:
    text = collapse_quoted_newlines(trim_to_braces(widest_object(strip_fences(raw))))
    data, error = _load_object(text)
    return TierOutcome("sanitize_and_parse", data, error)


def _decode_scalar(value: str) -> str:
    try:
        decoded = json.loads(f'"{value}"')
    except ValueError:
        return value
    return decoded if isinstance(decoded, str) else value


def reconstruct_fields(raw: str) -> TierOutcome:
    text = collapse_quoted_newlines(trim_to_braces(widest_object(strip_fences(raw))))

    data: Dict[str, Any] = {}
    missing = []
    for name, pattern in _SCALAR_PATTERNS.items():
        match = pattern.search(text)
        if match:
            data[name] = _decode_scalar(match.group(1))
        else:
            missing.append(name)
    for name, pattern in _LIST_PATTERNS.items():
        match = pattern.search(text)
        if not match:
            missing.append(name)
            continue
        try:
            data[name] = json.loads(f"[{match.group(1)}]")
        except ValueError as exc:
            return TierOutcome("reconstruct_fields", error=f"{name}: {exc}")

    if missing:
        return TierOutcome("reconstruct_fields", error=f"fields not found: {', '.join(missing)}")
    return TierOutcome("reconstruct_fields", data)


TIERS: Tuple[Callable[[str], TierOutcome], ...] = (
    strip_and_parse,
    sanitize_and_parse,
    reconstruct_fields,
)


def extract(raw: str) -> TierOutcome:
    """Run the tiers first-success-wins.

    On total failure the returned outcome carries the first tier's error.
    """
    first: Optional[TierOutcome] = None
    for tier in TIERS:
        outcome = tier(raw)
        if outcome.ok:
            return outcome
        logger.debug("recovery.tier_failed", extra={"event_type": outcome.tier, "error_message": outcome.error})
        if first is None:
            first = outcome
    return first if first is not None else TierOutcome("none", error="no recovery tiers")


def recover(raw: str) -> ChallengeContent:
    """Reduce raw completion text to a validated ChallengeContent.

    Raises:
        MalformedResponse: every tier failed, or the winning tier's object
            lacks a required field or has the wrong shape
    """
    outcome = extract(raw)
    if not outcome.ok:
        raise MalformedResponse(f"Failed to parse JSON: {outcome.error}")

    try:
        return ChallengeContent.model_validate(outcome.data)
    except PydanticValidationError as exc:
        logger.warning(
            "recovery.invalid_record",
            extra={"event_type": outcome.tier, "error_message": f"{exc.error_count()} validation error(s)"},
        )
        raise MalformedResponse("missing required fields") from exc
