"""Compare the contest models with the live database schema.

Exit codes: 0 when the schema matches, 1 when it drifted, 2 on errors.
"""

from __future__ import annotations

import sys

from alembic.autogenerate import compare_metadata
from alembic.runtime.migration import MigrationContext
from sqlalchemy import inspect
from sqlalchemy.engine import Connection

from contestboard.config import Settings
from contestboard.db.engine import make_engine
from contestboard.models import Base

DRAWING_NUMBER_INDEX = "uq_participants_drawing_number"
PHASE_CHECK = "ck_contest_status_phase_enum"
DRAWING_NUMBER_CHECK = "ck_participants_drawing_number_range"


def contest_constraint_problems(connection: Connection) -> list[str]:
    """Return the guards on drawing numbers and phases missing from the database.

    Autogenerate does not compare CHECK constraints or partial index
    predicates, so these are inspected directly.
    """
    insp = inspect(connection)
    tables = set(insp.get_table_names())
    problems: list[str] = []
    if "participants" in tables:
        indexes = {ix["name"]: ix for ix in insp.get_indexes("participants")}
        index = indexes.get(DRAWING_NUMBER_INDEX)
        if index is None:
            problems.append(f"participants: missing unique index {DRAWING_NUMBER_INDEX}")
        elif not index.get("unique"):
            problems.append(f"participants: index {DRAWING_NUMBER_INDEX} is not unique")
        checks = {ck["name"] for ck in insp.get_check_constraints("participants")}
        if DRAWING_NUMBER_CHECK not in checks:
            problems.append(f"participants: missing check {DRAWING_NUMBER_CHECK}")
    if "contest_status" in tables:
        checks = {ck["name"] for ck in insp.get_check_constraints("contest_status")}
        if PHASE_CHECK not in checks:
            problems.append(f"contest_status: missing check {PHASE_CHECK}")
    return problems


def main() -> int:
    settings = Settings.from_env()
    engine = make_engine(settings.database_url)
    url_display = engine.url.render_as_string(hide_password=True)
    try:
        with engine.connect() as connection:
            context = MigrationContext.configure(
                connection=connection,
                opts={
                    "compare_type": True,
                    "compare_server_default": True,
                },
            )
            diffs = compare_metadata(context, Base.metadata)
            problems = contest_constraint_problems(connection)
    except Exception as exc:
        print(f"Schema drift check: ERROR for {url_display}: {exc}", file=sys.stderr)
        return 2

    if not diffs and not problems:
        print(f"Schema drift check: OK for {url_display}.")
        return 0
    print(f"Schema drift check: FAILED for {url_display}.")
    for diff in diffs:
        print(f"- {diff}")
    for problem in problems:
        print(f"- {problem}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
