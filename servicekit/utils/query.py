"""Readers for path and query string parameters."""
from __future__ import annotations

from typing import List, Mapping, Optional

from servicekit.errors import BadRequestError
from servicekit.validator import Validator


def read_id_param(value: Optional[str]) -> int:
    """Parse a positive integer record id from a path parameter."""

    try:
        record_id = int(value or "")
    except ValueError:
        record_id = 0
    if record_id < 1:
        raise BadRequestError("invalid id parameter")
    return record_id


def read_string(qs: Mapping[str, str], key: str, default: str) -> str:
    return qs.get(key) or default


def read_csv(qs: Mapping[str, str], key: str, default: List[str]) -> List[str]:
    value = qs.get(key)
    if not value:
        return default
    return value.split(",")


def read_int(qs: Mapping[str, str], key: str, default: int, v: Validator) -> int:
    """Return the integer at ``key``; a non-integer is recorded on ``v`` and the default returned."""

    value = qs.get(key)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        v.add_error(key, "must be an integer value")
        return default
