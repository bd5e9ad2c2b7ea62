"""Live scoring, ranking, and drawing-number dashboard for a small selection contest."""

from .errors import (
    AuthorizationError,
    ConflictError,
    ContestError,
    DrawExhaustedError,
    DrawingClosedError,
    IllegalTransitionError,
    NotFoundError,
    StoreError,
    ValidationError,
)

__all__ = [
    "AuthorizationError",
    "ConflictError",
    "ContestError",
    "DrawExhaustedError",
    "DrawingClosedError",
    "IllegalTransitionError",
    "NotFoundError",
    "StoreError",
    "ValidationError",
]
