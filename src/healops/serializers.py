"""Helpers that turn domain models into JSON-ready dictionaries."""

from __future__ import annotations

from typing import Any, Dict

from fastapi.encoders import jsonable_encoder

from .healing.conditions import Condition

_ENCODERS = {Condition: lambda condition: condition.source}


def serialize(value: Any) -> Any:
    """Convert dataclasses, datetimes and conditions to plain JSON data."""

    return jsonable_encoder(value, custom_encoder=_ENCODERS)


def serialize_run(run: Any) -> Dict[str, Any]:
    payload = serialize(run)
    payload.pop("cancel_requested", None)
    return payload
