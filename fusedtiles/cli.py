"""Lookup of flag values in a command-line argument list."""

from __future__ import annotations

import re
from collections.abc import Sequence

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(
    r"\s*([+-]?(?:inf(?:inity)?|nan|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?))",
    re.IGNORECASE,
)


def _value_after(argv: Sequence[str], arg: str) -> str | None:
    """The argument following the first occurrence of ``arg``, if there is one."""
    for current, following in zip(argv, argv[1:]):
        if current == arg:
            return following
    return None


def _leading_int(text: str) -> int:
    match = _INT_PREFIX.match(text)
    return int(match.group(1)) if match else 0


def _leading_float(text: str) -> float:
    match = _FLOAT_PREFIX.match(text)
    return float(match.group(1)) if match else 0.0


def get_int_arg(argv: Sequence[str], arg: str, default: int) -> int:
    """Integer after ``arg``; its leading digits only, 0 when there are none."""
    value = _value_after(argv, arg)
    return default if value is None else _leading_int(value)


def get_float_arg(argv: Sequence[str], arg: str, default: float) -> float:
    """Number after ``arg``; its leading numeric part only, 0.0 when there is none."""
    value = _value_after(argv, arg)
    return default if value is None else _leading_float(value)


def get_string_arg(argv: Sequence[str], arg: str, default: str | None) -> str | None:
    """String after ``arg``, or the default."""
    value = _value_after(argv, arg)
    return default if value is None else value