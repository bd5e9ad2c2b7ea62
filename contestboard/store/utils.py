import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)


def open_session(api_key: str, *, schema: Optional[str] = None) -> requests.Session:
    """Open a requests session pre-configured for a PostgREST/Supabase backend.

    Parameters
    ----------
    api_key : str
        Service or anon key. Sent both as ``apikey`` and as a bearer token.
    schema : Optional[str]
        Database schema to target via ``Accept-Profile``/``Content-Profile``.

    Returns
    -------
    requests.Session
        Session carrying the authentication headers.

    Raises
    ------
    ValueError
        If ``api_key`` is empty.
    """
    if not api_key:
        raise ValueError("An API key is required to open a REST store session")

    session = requests.Session()
    session.headers.update(
        {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }
    )
    if schema:
        session.headers.update({"Accept-Profile": schema, "Content-Profile": schema})
    # Never log the key itself.
    logger.debug("REST store session opened")
    return session
