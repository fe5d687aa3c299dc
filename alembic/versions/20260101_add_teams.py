"""Add teams and user_teams tables, seed default team.

Revision ID: 001_add_teams
Revises:
Create Date: 2026-01-01

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_add_teams"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

DEFAULT_TEAM_ID = "00000000-0000-0000-0000-000000000001"


def upgrade() -> None:
    op.create_table(
        "teams",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_by", sa.String(255), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_teams_name", "teams", ["name"], unique=True)
    op.create_index("ix_teams_is_default", "teams", ["is_default"])
    op.create_index("ix_teams_created_by", "teams", ["created_by"])

    op.create_table(
        "user_teams",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        # Token subject from the identity provider
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column(
            "team_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("teams.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("assigned_by", sa.String(255), nullable=False),
        sa.Column(
            "assigned_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("user_id", "team_id", name="uq_user_teams_user_team"),
    )
    op.create_index("ix_user_teams_user_id", "user_teams", ["user_id"])
    op.create_index("ix_user_teams_team_id", "user_teams", ["team_id"])

    op.execute(
        "INSERT INTO teams (id, name, description, is_default, created_by) "
        f"VALUES ('{DEFAULT_TEAM_ID}', 'Default Team', 'Default team for all users', true, 'system') "
        "ON CONFLICT (id) DO NOTHING"
    )


def downgrade() -> None:
    op.drop_index("ix_user_teams_team_id", table_name="user_teams")
    op.drop_index("ix_user_teams_user_id", table_name="user_teams")
    op.drop_table("user_teams")

    op.drop_index("ix_teams_created_by", table_name="teams")
    op.drop_index("ix_teams_is_default", table_name="teams")
    op.drop_index("ix_teams_name", table_name="teams")
    op.drop_table("teams")
