"""PostgREST/Supabase-compatible :class:`ContestStore` over HTTP."""

from __future__ import annotations

import json as _json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Sequence
from urllib.parse import urljoin

import requests
from dotenv import load_dotenv

from ..db.utils import dt_iso
from ..errors import ConflictError, NotFoundError, StoreError
from ..models import STATUS_ROW_ID, ContestStatus, Participant
from .base import ChangeFeed, ContestStore
from .utils import open_session

logger = logging.getLogger(__name__)

PARTICIPANTS_PATH = "/rest/v1/participants"
STATUS_PATH = "/rest/v1/contest_status"

_RETURN_REPRESENTATION = {"Prefer": "return=representation"}
_UPSERT = {"Prefer": "resolution=merge-duplicates,return=representation"}


class RestContestStore(ContestStore):
    """Talk to a hosted ``participants``/``contest_status`` schema over HTTP.

    Drawing-number uniqueness is enforced by the remote database; a ``409``
    response is reported as :class:`~contestboard.errors.ConflictError`.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        timeout: int = 45,
        session: Optional[requests.Session] = None,
        feed: Optional[ChangeFeed] = None,
    ) -> None:
        super().__init__(feed)
        load_dotenv()
        url = base_url or os.getenv("SUPABASE_URL")
        if not url:
            raise ValueError("Environment variable 'SUPABASE_URL' is not set")
        self.base_url = url.rstrip("/")
        if session is None:
            key = api_key or os.getenv("SUPABASE_KEY")
            if not key:
                raise ValueError("Environment variable 'SUPABASE_KEY' is not set")
            session = open_session(key)
        self.session = session
        self.timeout = timeout
        self._participants_fingerprint: Optional[str] = None
        self._status_fingerprint: Optional[str] = None

    # -------- core request --------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        json: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        action: str,
    ) -> Any:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        try:
            r = self.session.request(
                method=method.upper(),
                url=url,
                headers=dict(headers or {}),
                params=dict(params or {}),
                json=json,
                timeout=self.timeout,
            )
            r.raise_for_status()
        except requests.HTTPError as exc:
            status_code = getattr(exc.response, "status_code", None)
            logger.error("REST store failed to %s: HTTP %s", action, status_code)
            if status_code == 409:
                raise ConflictError(f"Conflict while trying to {action}") from exc
            raise StoreError(f"Failed to {action}: HTTP {status_code}") from exc
        except requests.RequestException as exc:
            logger.error("REST store failed to %s: %s", action, exc)
            raise StoreError(f"Failed to {action}: {exc}") from exc
        return r.json() if r.content else None

    def _patch_participant(
        self, participant_id: int, payload: dict[str, Any], *, action: str
    ) -> Participant:
        rows = self._request(
            "PATCH",
            PARTICIPANTS_PATH,
            params={"id": f"eq.{participant_id}"},
            json=payload,
            headers=_RETURN_REPRESENTATION,
            action=action,
        )
        if not rows:
            raise NotFoundError(f"No participant with id {participant_id}")
        return Participant.from_json(rows[0])

    # -------- reads --------
    def fetch_all_participants(self) -> list[Participant]:
        rows = self._request(
            "GET",
            PARTICIPANTS_PATH,
            params={"select": "*", "order": "id.asc"},
            action="fetch participants",
        )
        return [Participant.from_json(row) for row in rows or []]

    def fetch_status(self) -> Optional[ContestStatus]:
        rows = self._request(
            "GET",
            STATUS_PATH,
            params={"select": "*", "id": f"eq.{STATUS_ROW_ID}"},
            action="fetch contest status",
        )
        if not rows:
            return None
        return ContestStatus.from_json(rows[0])

    def find_participant_by_name(self, name: str) -> Optional[Participant]:
        rows = self._request(
            "GET",
            PARTICIPANTS_PATH,
            params={"select": "*", "name": f"eq.{name.strip()}"},
            action="find participant by name",
        )
        if not rows:
            return None
        return Participant.from_json(rows[0])

    # -------- writes --------
    def save_participant(self, participant: Participant) -> Participant:
        payload = participant.to_json()
        for key in ("id", "name", "drawing_number"):
            payload.pop(key)
        saved = self._patch_participant(
            participant.id, payload, action=f"save participant {participant.id}"
        )
        self.feed.publish_participants_changed()
        return saved

    def reassign_drawing_number(self, participant_id: int, new_number: int) -> Participant:
        action = f"assign drawing number {new_number} to participant {participant_id}"
        if new_number > 0:
            holders = self._request(
                "GET",
                PARTICIPANTS_PATH,
                params={"select": "id,name", "drawing_number": f"eq.{new_number}"},
                action=action,
            )
            for holder in holders or []:
                if holder.get("id") != participant_id:
                    raise ConflictError(
                        f"Drawing number {new_number} is already held by {holder.get('name')}",
                        drawing_number=new_number,
                        holder_id=holder.get("id"),
                    )
        saved = self._patch_participant(
            participant_id,
            {
                "drawing_number": new_number,
                "last_updated": _now_iso(),
            },
            action=action,
        )
        self.feed.publish_participants_changed()
        return saved

    def bulk_reset_participants(
        self, participants: Sequence[Participant]
    ) -> list[Participant]:
        # PostgREST refuses an unfiltered DELETE; ids are always positive.
        self._request(
            "DELETE",
            PARTICIPANTS_PATH,
            params={"id": "gt.0"},
            action="clear participants",
        )
        payload = []
        for participant in participants:
            row = participant.to_json()
            if row["id"] is None:
                row.pop("id")
            payload.append(row)
        rows = self._request(
            "POST",
            PARTICIPANTS_PATH,
            json=payload,
            headers=_RETURN_REPRESENTATION,
            action="insert participants",
        )
        self.feed.publish_participants_changed()
        return [Participant.from_json(row) for row in rows or []]

    def save_status(self, **changes) -> ContestStatus:
        current = self.fetch_status() or ContestStatus()
        current.apply(changes)
        rows = self._request(
            "POST",
            STATUS_PATH,
            json=current.to_json(),
            headers=_UPSERT,
            action="save contest status",
        )
        self.feed.publish_status_changed()
        return ContestStatus.from_json(rows[0]) if rows else current

    def save_next_stage_score(
        self, participant_id: int, score: Optional[float]
    ) -> Participant:
        saved = self._patch_participant(
            participant_id,
            {"next_stage_score": score, "last_updated": _now_iso()},
            action=f"save next stage score for participant {participant_id}",
        )
        self.feed.publish_participants_changed()
        return saved

    # -------- change detection --------
    def poll(self) -> tuple[bool, bool]:
        """Detect changes made by other clients since the previous poll.

        The first call only records a baseline. Later calls publish to the
        change feed for whichever side changed.

        Returns
        -------
        tuple[bool, bool]
            ``(participants_changed, status_changed)``.
        """
        participants_fp = _fingerprint([p.to_json() for p in self.fetch_all_participants()])
        status = self.fetch_status()
        status_fp = _fingerprint(status.to_json() if status is not None else None)

        first_poll = self._participants_fingerprint is None
        participants_changed = (
            not first_poll and participants_fp != self._participants_fingerprint
        )
        status_changed = not first_poll and status_fp != self._status_fingerprint
        self._participants_fingerprint = participants_fp
        self._status_fingerprint = status_fp

        if participants_changed:
            self.feed.publish_participants_changed()
        if status_changed:
            self.feed.publish_status_changed()
        return participants_changed, status_changed


def _now_iso() -> Optional[str]:
    return dt_iso(datetime.now(timezone.utc))


def _fingerprint(payload: Any) -> str:
    return _json.dumps(payload, sort_keys=True, default=str)


__all__ = ["RestContestStore"]
