# Overview: Shared request-parameter parsing for API routes.

from __future__ import annotations

from typing import Any


class ParamError(ValueError):
    """Raised for missing or malformed request parameters (HTTP 400)."""


def optional_int(data: dict[str, Any], key: str, *, minimum: int | None = None) -> int | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ParamError(f"{key} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ParamError(f"{key} must be an integer")
    if minimum is not None and number < minimum:
        raise ParamError(f"{key} must be >= {minimum}")
    return number


def required_int(data: dict[str, Any], key: str, *, minimum: int | None = None) -> int:
    number = optional_int(data, key, minimum=minimum)
    if number is None:
        raise ParamError(f"{key} is required")
    return number


def int_list(raw: str | None, key: str) -> list[int] | None:
    """Parse "1,2,3" into [1, 2, 3]; None or "" means no filter."""
    if not raw:
        return None
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise ParamError(f"{key} must be a comma-separated list of integers")
