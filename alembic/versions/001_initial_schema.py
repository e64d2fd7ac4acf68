"""Initial schema — sessions, participants, matches and reference data.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── 1. sessions ─────────────────────────────────────────────────
    op.create_table(
        "sessions",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("invite_token", sa.String(32), nullable=False),
        sa.Column(
            "status",
            sa.String,
            server_default="active",
            nullable=False,
            comment="active / matched / expired",
        ),
        sa.Column("location_lat", sa.Float, nullable=True),
        sa.Column("location_lng", sa.Float, nullable=True),
        sa.Column("group_size_hint", sa.Integer, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_sessions_invite_token", "sessions", ["invite_token"], unique=True
    )

    # ── 2. participants ─────────────────────────────────────────────
    op.create_table(
        "participants",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "session_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("display_name", sa.String, nullable=True),
        sa.Column("device_fingerprint", sa.String, nullable=True),
        sa.Column("is_host", sa.Boolean, server_default="false", nullable=False),
        sa.Column(
            "state",
            sa.String,
            server_default="joined",
            nullable=False,
            comment="joined / swiping / completed",
        ),
        sa.Column(
            "top_vibes",
            postgresql.JSONB,
            nullable=True,
            comment="Ranked shortlist, at most 3",
        ),
        sa.Column(
            "raw_swipes",
            postgresql.JSONB,
            nullable=True,
            comment="vibe key -> signed vote",
        ),
        sa.Column("version", sa.Integer, server_default="1", nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(
        "ix_participants_session_id", "participants", ["session_id"]
    )

    # ── 3. matches ──────────────────────────────────────────────────
    op.create_table(
        "matches",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "session_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("sessions.id", ondelete="CASCADE"),
            unique=True,
            nullable=False,
        ),
        sa.Column(
            "group_vibe",
            postgresql.JSONB,
            nullable=False,
            comment="{key, confidence}",
        ),
        sa.Column(
            "suggestions",
            postgresql.JSONB,
            nullable=False,
            comment="Up to 5 {title, description, url}",
        ),
        sa.Column(
            "computed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    # ── 4. vibes (reference table) ──────────────────────────────────
    op.create_table(
        "vibes",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("title", sa.String, nullable=False),
        sa.Column("emoji", sa.String, nullable=False),
        sa.Column("tags", postgresql.JSONB, nullable=False),
    )

    # ── 5. recommendations (reference table) ────────────────────────
    op.create_table(
        "recommendations",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "vibe_combo_key",
            sa.String,
            nullable=False,
            comment="Single vibe key or 'a|b' pair",
        ),
        sa.Column(
            "items",
            postgresql.JSONB,
            nullable=False,
            comment="Ordered suggestion templates",
        ),
    )
    op.create_index(
        "ix_recommendations_vibe_combo_key",
        "recommendations",
        ["vibe_combo_key"],
        unique=True,
    )


def downgrade() -> None:
    # Drop in reverse order (children / dependents first).
    op.drop_index("ix_recommendations_vibe_combo_key", table_name="recommendations")
    op.drop_table("recommendations")
    op.drop_table("vibes")
    op.drop_table("matches")
    op.drop_index("ix_participants_session_id", table_name="participants")
    op.drop_table("participants")
    op.drop_index("ix_sessions_invite_token", table_name="sessions")
    op.drop_table("sessions")
