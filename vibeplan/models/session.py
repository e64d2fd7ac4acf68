"""
VibePlan — Planning session and participant models.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vibeplan.database import Base


class PlanSession(Base):
    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(PgUUID(as_uuid=False), primary_key=True)
    invite_token: Mapped[str] = mapped_column(
        String(32), unique=True, index=True, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String, nullable=False, server_default="active",
        comment="active / matched / expired",
    )
    location_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    group_size_hint: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    # ── Relationships ──────────────────────────────────────────────
    participants: Mapped[list["ParticipantRow"]] = relationship(
        "ParticipantRow", back_populates="session", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<PlanSession {self.id} status={self.status!r}>"


class ParticipantRow(Base):
    __tablename__ = "participants"

    id: Mapped[str] = mapped_column(PgUUID(as_uuid=False), primary_key=True)
    session_id: Mapped[str] = mapped_column(
        PgUUID(as_uuid=False),
        ForeignKey("sessions.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    display_name: Mapped[str | None] = mapped_column(String, nullable=True)
    device_fingerprint: Mapped[str | None] = mapped_column(String, nullable=True)
    is_host: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    state: Mapped[str] = mapped_column(
        String, nullable=False, server_default="joined",
        comment="joined / swiping / completed",
    )
    top_vibes: Mapped[list | None] = mapped_column(
        JSONB, nullable=True, comment="Ranked shortlist, at most 3"
    )
    raw_swipes: Mapped[dict | None] = mapped_column(
        JSONB, nullable=True, comment="vibe key -> signed vote"
    )
    version: Mapped[int] = mapped_column(
        Integer, default=1, server_default="1", nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # ── Relationships ──────────────────────────────────────────────
    session: Mapped["PlanSession"] = relationship(
        "PlanSession", back_populates="participants"
    )

    def __repr__(self) -> str:
        return f"<Participant {self.id} session={self.session_id} state={self.state!r}>"
