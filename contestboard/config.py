"""Runtime configuration read from the environment (and ``.env`` when present)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .db.utils import parse_dt, resolve_sqlite_url

logger = logging.getLogger(__name__)

# Project root directory (repo root)
ROOT_DIR = Path(__file__).resolve().parents[1]

DEFAULT_DB_URL = "sqlite:///./dev.db"
DEFAULT_ROSTER: tuple[str, ...] = (
    "Yantika",
    "Agung",
    "Khomsa",
    "Intan",
    "Aldo",
    "Firman",
    "Siti",
    "Agus",
    "Amri",
    "Martha",
)
MAX_PARTICIPANTS = 10
DEFAULT_ONGOING_MINUTES = 120
DEFAULT_NEXT_STAGE_MINUTES = 60

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r; using %d", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r; using %d", name, raw, default)
        return default
    return value


def _bool_setting(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in _TRUTHY:
        return True
    if normalized in _FALSY:
        return False
    logger.warning("Ignoring malformed %s=%r; using %s", name, raw, default)
    return default


def _roster_setting(env: Mapping[str, str]) -> tuple[str, ...]:
    raw = env.get("CONTEST_ROSTER")
    if not raw:
        return DEFAULT_ROSTER
    names = tuple(name.strip() for name in raw.split(",") if name.strip())
    return names or DEFAULT_ROSTER


def _scheduled_start_setting(env: Mapping[str, str]) -> Optional[datetime]:
    raw = env.get("CONTEST_SCHEDULED_START")
    if not raw:
        return None
    try:
        return parse_dt(raw.strip())
    except ValueError:
        logger.warning("Ignoring malformed CONTEST_SCHEDULED_START=%r", raw)
        return None


@dataclass(frozen=True)
class Settings:
    """Resolved application settings.

    Attributes
    ----------
    database_url : str
        SQLAlchemy URL used by the SQL store.
    store_backend : str
        ``"sql"`` or ``"rest"``.
    supabase_url : Optional[str]
        Base URL of the REST backend.
    supabase_key : Optional[str]
        API key for the REST backend. Never logged.
    roster : tuple[str, ...]
        Participant names created by a bulk reset.
    ongoing_minutes : int
        Duration stamped on entering ``ongoing``.
    next_stage_minutes : int
        Duration stamped on entering ``next_stage``.
    auto_transition : bool
        Whether an elapsed ``ongoing`` timer moves the contest to
        ``under_correction`` without waiting for the administrator.
    admin_code : Optional[str]
        Static admin access code. Never logged.
    scheduled_start : Optional[datetime]
        When the test is scheduled to begin, for the pre-start countdown.
    """

    database_url: str = DEFAULT_DB_URL
    store_backend: str = "sql"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = field(default=None, repr=False)
    roster: tuple[str, ...] = DEFAULT_ROSTER
    ongoing_minutes: int = DEFAULT_ONGOING_MINUTES
    next_stage_minutes: int = DEFAULT_NEXT_STAGE_MINUTES
    auto_transition: bool = False
    admin_code: Optional[str] = field(default=None, repr=False)
    scheduled_start: Optional[datetime] = None

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        *,
        project_root: Path = ROOT_DIR,
    ) -> "Settings":
        """Build settings from ``env`` (defaults to ``os.environ`` after ``load_dotenv``)."""
        if env is None:
            load_dotenv()
            env = os.environ

        backend = (env.get("CONTEST_STORE") or "sql").strip().lower()
        if backend not in ("sql", "rest"):
            logger.warning("Unknown CONTEST_STORE=%r; falling back to 'sql'", backend)
            backend = "sql"

        return cls(
            database_url=resolve_sqlite_url(
                env.get("DB_URL") or DEFAULT_DB_URL, project_root
            ),
            store_backend=backend,
            supabase_url=env.get("SUPABASE_URL") or None,
            supabase_key=env.get("SUPABASE_KEY") or None,
            roster=_roster_setting(env),
            ongoing_minutes=_int_setting(
                env, "CONTEST_ONGOING_MINUTES", DEFAULT_ONGOING_MINUTES
            ),
            next_stage_minutes=_int_setting(
                env, "CONTEST_NEXT_STAGE_MINUTES", DEFAULT_NEXT_STAGE_MINUTES
            ),
            auto_transition=_bool_setting(env, "CONTEST_AUTO_TRANSITION", False),
            admin_code=env.get("CONTEST_ADMIN_CODE") or None,
            scheduled_start=_scheduled_start_setting(env),
        )


__all__ = [
    "DEFAULT_DB_URL",
    "DEFAULT_NEXT_STAGE_MINUTES",
    "DEFAULT_ONGOING_MINUTES",
    "DEFAULT_ROSTER",
    "MAX_PARTICIPANTS",
    "ROOT_DIR",
    "Settings",
]
