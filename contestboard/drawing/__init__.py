"""Drawing-number allocation."""

from .allocator import DrawOutcome, DrawingNumberAllocator
from .draw_number import (
    format_drawing_number,
    normalize_drawing_number,
    validate_drawing_number,
)

__all__ = [
    "DrawOutcome",
    "DrawingNumberAllocator",
    "format_drawing_number",
    "normalize_drawing_number",
    "validate_drawing_number",
]
