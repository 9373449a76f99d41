"""Accumulate field validation errors and a few reusable checks."""
from __future__ import annotations

import re
from typing import Dict, Hashable, Iterable, Pattern

BETTER_GUID_RX = re.compile(r"^[a-zA-Z0-9_-]{20}")
EMAIL_RX = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
USERNAME_RX = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{3,30}[A-Za-z0-9]")


class Validator:
    """Maps field names to the first error message recorded for them."""

    def __init__(self) -> None:
        self.errors: Dict[str, str] = {}

    @property
    def valid(self) -> bool:
        return not self.errors

    def add_error(self, key: str, message: str) -> None:
        self.errors.setdefault(key, message)

    def check(self, ok: bool, key: str, message: str) -> None:
        if not ok:
            self.add_error(key, message)


def permitted_value(value: Hashable, *permitted: Hashable) -> bool:
    return value in permitted


def matches(value: str, rx: Pattern[str]) -> bool:
    return rx.match(value) is not None


def unique(values: Iterable[Hashable]) -> bool:
    items = list(values)
    return len(items) == len(set(items))


def validate_email(v: Validator, email: str) -> None:
    v.check(email != "", "email", "must be provided")
    v.check(matches(email, EMAIL_RX), "email", "must be a valid email address")


def validate_str_len_bytes(v: Validator, value: str, key: str, min_len: int, max_len: int) -> None:
    """Check the UTF-8 encoded length of ``value``."""

    length = len(value.encode("utf-8"))
    if length < min_len:
        v.add_error(key, f"must be at least {min_len} bytes long")
    elif length > max_len:
        v.add_error(key, f"must not be more than {max_len} bytes long")


def validate_str_len_chars(v: Validator, value: str, key: str, min_len: int, max_len: int) -> None:
    length = len(value)
    if length < min_len:
        v.add_error(key, f"must be at least {min_len} characters long")
    elif length > max_len:
        v.add_error(key, f"must not be more than {max_len} characters long")
