"""Declarative base shared by the contest tables."""

from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import DeclarativeBase

from ..db.metadata import metadata_obj

# Surrogate keys: BIGINT on PostgreSQL, INTEGER on SQLite so AUTOINCREMENT applies.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    """Base for :class:`Participant` and :class:`ContestStatus`."""

    metadata = metadata_obj
