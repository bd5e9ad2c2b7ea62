import os
from typing import Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from ..config import DEFAULT_DB_URL, ROOT_DIR
from .utils import resolve_sqlite_url

# Get DB url
load_dotenv()
DEFAULT_SQLITE_URL = resolve_sqlite_url(os.getenv("DB_URL", DEFAULT_DB_URL), ROOT_DIR)


def make_engine(database_url: Optional[str] = None, echo: bool = False):
    url = database_url or DEFAULT_SQLITE_URL
    engine = create_engine(
        url,
        echo=echo,
        future=True,
    )
    return engine


def get_sessionmaker(engine):
    return sessionmaker(
        bind=engine,
        expire_on_commit=False,  # Stores hand detached rows back to callers
        future=True,
    )
