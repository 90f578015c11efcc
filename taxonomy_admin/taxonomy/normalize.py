"""
Loose-input coercion shared by store writes, bulk patches and imports.

Each field type has exactly one normalizer; callers look the normalizer up
through ``coerce_field`` rather than re-implementing token handling.
"""

from __future__ import annotations

import math
from typing import Any, Callable, Dict

TRUE_TOKENS = frozenset({"true", "1", "yes", "y", "active", "on"})
FALSE_TOKENS = frozenset({"false", "0", "no", "n", "inactive", "off"})


def normalize_text(value: Any) -> str | None:
    """Strip strings and collapse blanks to ``None``."""
    if value is None:
        return None
    token = str(value).strip()
    return token or None


def normalize_bool(value: Any, default: bool | None = None) -> bool | None:
    """
    Interpret ``value`` as a boolean.

    Recognised tokens are matched case-insensitively; anything else (including
    blanks) yields ``default``.
    """
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    if isinstance(value, (int, float)):
        if value == 1:
            return True
        if value == 0:
            return False
        return default
    token = str(value).strip().lower()
    if token in TRUE_TOKENS:
        return True
    if token in FALSE_TOKENS:
        return False
    return default


def normalize_float(value: Any, default: float | None = None) -> float | None:
    """Return a finite float or ``default``."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        token = str(value).strip()
        if not token:
            return default
        try:
            number = float(token)
        except ValueError:
            return default
    if not math.isfinite(number):
        return default
    return number


def normalize_int(value: Any, default: int | None = None) -> int | None:
    """Return an integer for finite numeric input, truncating fractions."""
    number = normalize_float(value)
    if number is None:
        return default
    return int(number)


class DisplayOrderCounter:
    """Hands out display orders after ``seed`` for records lacking one."""

    def __init__(self, seed: int) -> None:
        self.value = seed

    def next(self) -> int:
        self.value += 1
        return self.value


def normalize_display_order(value: Any, counter: DisplayOrderCounter) -> int:
    """Keep finite numeric orders; otherwise draw the next counter value."""
    order = normalize_int(value)
    if order is None:
        return counter.next()
    return order


def _text_or_default(value: Any, default: str | None = None) -> str | None:
    text = normalize_text(value)
    return default if text is None else text


_NORMALIZERS: Dict[str, Callable[..., Any]] = {
    "text": _text_or_default,
    "bool": normalize_bool,
    "int": normalize_int,
    "float": normalize_float,
}


def coerce_field(field_type: str, value: Any, default: Any = None) -> Any:
    """Dispatch ``value`` to the normalizer registered for ``field_type``."""
    try:
        normalizer = _NORMALIZERS[field_type]
    except KeyError as exc:
        raise ValueError(f"Unknown field type '{field_type}'") from exc
    return normalizer(value, default)
