"""Input validation helpers for Okta tool parameters."""

import re
from typing import Any, Dict, Iterable

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ToolInputError(ValueError):
    """A handler rejected its arguments before calling Okta."""


def clamp_int(val, default: int, lo: int, hi: int) -> int:
    """Clamp an integer parameter to safe range."""
    try:
        v = int(val) if val is not None else default
    except (TypeError, ValueError):
        return default
    if v == 0:
        v = default
    return max(lo, min(hi, v))


def require_value(args: Dict[str, Any], key: str, hint: str = "") -> Any:
    value = args.get(key)
    if not value:
        raise ToolInputError(f"{key} is required{f' ({hint})' if hint else ''}")
    return value


def missing_fields(obj: Dict[str, Any], fields: Iterable[str]) -> list:
    return [f for f in fields if not obj.get(f)]


def check_email(email: str) -> None:
    if not EMAIL_RE.match(email or ""):
        raise ToolInputError("Invalid email format")
