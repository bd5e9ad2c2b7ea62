"""Alembic environment for the contest schema.

The database URL comes from :class:`contestboard.config.Settings`, so
``DB_URL`` in the environment or ``.env`` drives migrations, the stores and
the scripts alike.
"""

from __future__ import annotations

import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))
load_dotenv(ROOT_DIR / ".env")

from contestboard.config import Settings  # noqa: E402
from contestboard.db.engine import make_engine  # noqa: E402
from contestboard.models import Base  # noqa: E402

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# An explicit -x db_url=... wins over the environment, e.g. for a scratch database.
DATABASE_URL = context.get_x_argument(as_dictionary=True).get("db_url") or (
    Settings.from_env(project_root=ROOT_DIR).database_url
)
config.set_main_option("sqlalchemy.url", DATABASE_URL.replace("%", "%%"))

COMPARE_OPTIONS = {"compare_type": True, "compare_server_default": True}


def run_migrations_offline() -> None:
    """Emit the migration SQL without connecting."""
    context.configure(
        url=DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **COMPARE_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations over a live connection.

    SQLite cannot ALTER constraints in place, so batch mode rebuilds tables there.
    """
    engine = make_engine(database_url=DATABASE_URL)
    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                render_as_batch=connection.dialect.name == "sqlite",
                **COMPARE_OPTIONS,
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
