from __future__ import annotations

from typing import Any

from ..core.exceptions import ValidationError


def require_int_at_least(value: Any, field_name: str, minimum: int) -> int:
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"{field_name} must be an integer")
    if number < minimum:
        raise ValidationError(f"{field_name} must be at least {minimum}")
    return number


def require_bool(value: Any, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ValidationError(f"{field_name} must be true or false")
