"""Store backends for participants and the contest status."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from .base import ChangeFeed, ContestStore, Subscription
from .rest import RestContestStore
from .sql import SqlContestStore

if TYPE_CHECKING:
    from ..config import Settings


def make_store(settings: Optional["Settings"] = None) -> ContestStore:
    """Build the backend selected by ``settings.store_backend``."""
    from ..config import Settings

    settings = settings or Settings.from_env()
    if settings.store_backend == "rest":
        return RestContestStore(settings.supabase_url, settings.supabase_key)
    return SqlContestStore.from_url(settings.database_url)


__all__ = [
    "ChangeFeed",
    "ContestStore",
    "RestContestStore",
    "SqlContestStore",
    "Subscription",
    "make_store",
]
