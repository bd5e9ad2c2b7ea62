"""initial schema: participants and contest_status

Revision ID: 0001
Revises:
Create Date: 2025-04-12 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "participants",
        sa.Column(
            "id",
            sa.BigInteger().with_variant(sa.Integer(), "sqlite"),
            autoincrement=True,
            nullable=False,
        ),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("education", sa.String(length=20), nullable=False),
        sa.Column("experience", sa.String(length=50), nullable=False),
        sa.Column("test_score", sa.Float(), nullable=True),
        sa.Column("next_stage_score", sa.Float(), nullable=True),
        sa.Column("total_score", sa.Float(), nullable=False),
        sa.Column(
            "drawing_number", sa.Integer(), server_default=sa.text("0"), nullable=False
        ),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "drawing_number >= 0 AND drawing_number <= 999",
            name=op.f("ck_participants_drawing_number_range"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_participants")),
        sa.UniqueConstraint("name", name=op.f("uq_participants_name")),
    )
    op.create_index(
        "uq_participants_drawing_number",
        "participants",
        ["drawing_number"],
        unique=True,
        sqlite_where=sa.text("drawing_number > 0"),
        postgresql_where=sa.text("drawing_number > 0"),
    )
    op.create_table(
        "contest_status",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("phase", sa.String(length=20), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "has_tie", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column(
            "drawing_open", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "phase IN ('not_started','ongoing','under_correction','finished','next_stage')",
            name=op.f("ck_contest_status_phase_enum"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_contest_status")),
    )


def downgrade() -> None:
    op.drop_table("contest_status")
    op.drop_index("uq_participants_drawing_number", table_name="participants")
    op.drop_table("participants")
