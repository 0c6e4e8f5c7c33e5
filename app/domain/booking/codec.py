"""
Persistence codec for booking sessions

JSON has no set type, so every set is written as {"__set__": [...]} with
members sorted. Only the step-tracking fields hold sets, so only those are
unwrapped on the way back in; user-supplied dicts that happen to look like a
marker stay dicts. Decimals are written as strings so cents survive the trip
exactly.
"""

import json
import logging
from decimal import Decimal
from typing import Any, Optional

from pydantic import ValidationError

from .schemas import BookingConfiguration

logger = logging.getLogger(__name__)

SET_MARKER = "__set__"


def _to_storable(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return {SET_MARKER: sorted(_to_storable(member) for member in value)}
    if isinstance(value, dict):
        return {str(key): _to_storable(member) for key, member in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_storable(member) for member in value]
    if isinstance(value, Decimal):
        return str(value)
    return value


def _unwrap_set(value: Any) -> set:
    if not isinstance(value, dict) or set(value) != {SET_MARKER}:
        raise ValueError("expected a set marker")
    members = value[SET_MARKER]
    if not isinstance(members, list):
        raise ValueError("set marker must wrap a list")
    return set(members)


def _restore_sets(data: Any) -> Any:
    if not isinstance(data, dict):
        return data
    if "completed_steps_global" in data:
        data["completed_steps_global"] = _unwrap_set(data["completed_steps_global"])
    per_item = data.get("completed_steps_per_item")
    if isinstance(per_item, dict):
        data["completed_steps_per_item"] = {key: _unwrap_set(steps) for key, steps in per_item.items()}
    return data


def encode(state: BookingConfiguration) -> str:
    return json.dumps(_to_storable(state.model_dump(mode="python")), separators=(",", ":"))


def decode(raw: Optional[str]) -> Optional[BookingConfiguration]:
    """Rebuild a session; any malformed input means "no prior session" (None)"""
    if not raw:
        return None
    try:
        data = _restore_sets(json.loads(raw))
        return BookingConfiguration.model_validate(data)
    except (ValueError, TypeError, ValidationError) as e:
        logger.warning(f"⚠️ Discarding malformed booking session: {e}")
        return None
