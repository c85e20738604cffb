"""Sanitizers for best-effort values coming from game server queries.

Query libraries hand back whatever the server advertised, so names can be
blank, numbers can be NaN and ids can be padded with whitespace.
"""

from __future__ import annotations

import math
from typing import Any, Optional


def sanitize_text(value: Any) -> Optional[str]:
    """Return the trimmed string, or None for non-strings and blank strings."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def sanitize_number(value: Any) -> Optional[float]:
    """Return finite numbers as-is; anything else (bool, NaN, inf, str) is None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def sanitize_int(value: Any) -> Optional[int]:
    number = sanitize_number(value)
    if number is None:
        return None
    return int(number)


def normalize_player_name(value: Any, placeholder: str) -> str:
    return sanitize_text(value) or placeholder
