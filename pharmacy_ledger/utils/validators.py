# utils/validators.py
from __future__ import annotations

import math
from typing import Any, Mapping

from ..database.repositories.errors import ValidationError


def non_empty(text: str) -> bool:
    """
    True if `text` is not None/empty after stripping whitespace.
    """
    return bool(text and str(text).strip())


# ---- Numeric parsing & validators ----

def try_parse_float(x):
    """
    Best-effort parse to float.

    Returns:
        (ok: bool, value: float|None)

    ok == False means parsing failed (or gave inf/nan) and value is None.
    """
    if isinstance(x, bool):
        return False, None
    try:
        val = float(x)
    except (TypeError, ValueError):
        return False, None
    if not math.isfinite(val):
        return False, None
    return True, val


def is_strictly_positive_number(x) -> bool:
    """
    True iff x parses to a float and value > 0.
    """
    ok, val = try_parse_float(x)
    return bool(ok and val is not None and val > 0)


# ---- Payload guards (raise ValidationError) ----

def require_text(payload: Mapping[str, Any], key: str, label: str | None = None) -> str:
    value = payload.get(key)
    if not non_empty(value):
        raise ValidationError(f"{label or key} is required.")
    return str(value).strip()


def require_id(payload: Mapping[str, Any], key: str, label: str | None = None) -> int:
    value = payload.get(key)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label or key} is required.") from None


def optional_id(payload: Mapping[str, Any], key: str) -> int | None:
    value = payload.get(key)
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer id, got {value!r}.") from None


def amount(payload: Mapping[str, Any], key: str, *, default: float = 0.0, label: str | None = None) -> float:
    """
    Read a non-negative money/quantity field; missing or None -> default.
    """
    value = payload.get(key)
    if value is None or value == "":
        return float(default)
    ok, val = try_parse_float(value)
    if not ok:
        raise ValidationError(f"{label or key} must be a number, got {value!r}.")
    if val < 0:
        raise ValidationError(f"{label or key} cannot be negative.")
    return val


def positive_amount(payload: Mapping[str, Any], key: str, label: str | None = None) -> float:
    value = payload.get(key)
    if not is_strictly_positive_number(value):
        raise ValidationError(f"{label or key} must be greater than zero.")
    return float(value)
