"""
Input validation helpers.

A Validator collects field-keyed error messages for one request. Handlers
run all of their checks, then refuse to touch storage unless the validator
is empty.
"""

import re
from typing import Any, Iterable, Pattern


EMAIL_RX: Pattern[str] = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)


class Validator:
    """Accumulates field errors; the first message recorded for a key wins."""

    def __init__(self):
        self.errors: dict[str, str] = {}

    def is_empty(self) -> bool:
        return not self.errors

    def add_error(self, key: str, message: str) -> None:
        if key not in self.errors:
            self.errors[key] = message

    def check(self, ok: bool, key: str, message: str) -> None:
        """Record ``message`` under ``key`` unless ``ok`` holds."""
        if not ok:
            self.add_error(key, message)


def permitted_value(value: Any, *permitted: Any) -> bool:
    return value in permitted


def matches(value: str, rx: Pattern[str]) -> bool:
    return rx.match(value) is not None


def unique(values: Iterable[Any]) -> bool:
    seen = list(values)
    return len(seen) == len(set(seen))


def byte_length(value: str) -> int:
    """Length of ``value`` in UTF-8 bytes, which is what column limits count."""
    return len(value.encode("utf-8"))
