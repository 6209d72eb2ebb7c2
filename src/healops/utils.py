"""Shared utility helpers for HealOps services."""

from __future__ import annotations

import uuid


def new_id(prefix: str) -> str:
    """Return a short unique identifier such as ``run_3f9a1c2b4d5e``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def to_float(value: object) -> float | None:
    """Coerce a signal value to float, returning None when it is not numeric."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            return float(stripped)
        except ValueError:
            return None
    return None
