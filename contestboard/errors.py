"""Exception hierarchy shared by the scoring, drawing, and store layers."""

from __future__ import annotations

from typing import Optional


class ContestError(Exception):
    """Base class for every error raised by :mod:`contestboard`."""


class ValidationError(ContestError, ValueError):
    """Input that cannot be coerced into a valid value for the operation."""


class ConflictError(ContestError):
    """A drawing number is already held by another participant.

    Attributes
    ----------
    drawing_number : Optional[int]
        The contested number, when known.
    holder_id : Optional[int]
        Identifier of the participant currently holding the number, when known.
        Conflicts reported late by the store usually do not carry it.
    """

    def __init__(
        self,
        message: str,
        *,
        drawing_number: Optional[int] = None,
        holder_id: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.drawing_number = drawing_number
        self.holder_id = holder_id


class NotFoundError(ContestError, LookupError):
    """Unknown participant name or id."""


class StoreError(ContestError):
    """Transport or backend failure reported by a store."""


class DrawExhaustedError(ContestError):
    """No drawing number is left to pick from."""


class IllegalTransitionError(ContestError):
    """The requested status transition is not allowed from the current phase."""


class AuthorizationError(ContestError):
    """An administrator-only action was attempted without an admin session."""


class DrawingClosedError(ContestError):
    """A participant tried to draw while the drawing phase is not open."""


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
