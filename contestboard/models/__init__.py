from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .participant import (  # noqa: F401
    DrawState,
    MAX_DRAWING_NUMBER,
    MIN_DRAWING_NUMBER,
    Participant,
    UNASSIGNED_DRAWING_NUMBER,
)
from .contest_status import ContestPhase, ContestStatus, STATUS_ROW_ID  # noqa: F401

__all__ = [
    "Base",
    "ContestPhase",
    "ContestStatus",
    "DrawState",
    "MAX_DRAWING_NUMBER",
    "MIN_DRAWING_NUMBER",
    "Participant",
    "STATUS_ROW_ID",
    "UNASSIGNED_DRAWING_NUMBER",
]
