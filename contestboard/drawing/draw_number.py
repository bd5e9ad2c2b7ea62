"""Helpers for normalizing and displaying drawing numbers."""

from __future__ import annotations

import math
import re
from typing import Any

from ..errors import ValidationError
from ..models.participant import (
    MAX_DRAWING_NUMBER,
    MIN_DRAWING_NUMBER,
    UNASSIGNED_DRAWING_NUMBER,
)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def normalize_drawing_number(raw: Any) -> int:
    """Clamp a submitted drawing number into ``[1, 999]``.

    Parameters
    ----------
    raw : Any
        User input. Strings are read up to the first non-digit, so ``"12.7"``
        becomes ``12``. Anything without a leading integer becomes ``1``.

    Returns
    -------
    int
        The clamped number, e.g. ``"-5" -> 1`` and ``"1500" -> 999``.
    """
    if isinstance(raw, bool):
        value = None
    elif isinstance(raw, int):
        value = raw
    elif isinstance(raw, float):
        value = int(raw) if math.isfinite(raw) else None
    elif isinstance(raw, str):
        match = _LEADING_INT.match(raw)
        value = int(match.group(1)) if match else None
    else:
        value = None

    # An unparseable or zero value falls back to the lowest number.
    if not value:
        return MIN_DRAWING_NUMBER
    return min(MAX_DRAWING_NUMBER, max(MIN_DRAWING_NUMBER, value))


def validate_drawing_number(number: Any) -> int:
    """Return ``number`` if it is an ``int`` in ``[1, 999]``, else raise.

    Raises
    ------
    ValidationError
        If ``number`` is not an integer or lies outside the valid range.
    """
    if isinstance(number, bool) or not isinstance(number, int):
        raise ValidationError(f"drawing number must be an integer, got {number!r}")
    if not MIN_DRAWING_NUMBER <= number <= MAX_DRAWING_NUMBER:
        raise ValidationError(
            f"drawing number must be between {MIN_DRAWING_NUMBER} and "
            f"{MAX_DRAWING_NUMBER}, got {number}"
        )
    return number


def format_drawing_number(number: Any) -> str:
    """Render a drawing number as three digits, or ``"-"`` while unassigned."""
    if not isinstance(number, int) or number <= UNASSIGNED_DRAWING_NUMBER:
        return "-"
    return f"{number:03d}"


__all__ = [
    "format_drawing_number",
    "normalize_drawing_number",
    "validate_drawing_number",
]
