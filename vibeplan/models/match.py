"""
VibePlan — Match record model.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, func
from sqlalchemy.dialects.postgresql import JSONB, UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column

from vibeplan.database import Base


class MatchRow(Base):
    """The single current group decision for a session.

    ``session_id`` is unique: every recompute replaces the previous row.
    """

    __tablename__ = "matches"

    id: Mapped[str] = mapped_column(PgUUID(as_uuid=False), primary_key=True)
    session_id: Mapped[str] = mapped_column(
        PgUUID(as_uuid=False),
        ForeignKey("sessions.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    group_vibe: Mapped[dict] = mapped_column(
        JSONB, nullable=False, comment="{key, confidence}"
    )
    suggestions: Mapped[list] = mapped_column(
        JSONB, nullable=False, comment="Up to 5 {title, description, url}"
    )
    computed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<MatchRow session={self.session_id} vibe={self.group_vibe!r}>"
