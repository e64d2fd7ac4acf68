"""
VibePlan — Reference data: vibes and recommendation catalogue.
"""

import uuid

from sqlalchemy import String
from sqlalchemy.dialects.postgresql import JSONB, UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column

from vibeplan.database import Base


class VibeRow(Base):
    __tablename__ = "vibes"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    emoji: Mapped[str] = mapped_column(String, nullable=False)
    tags: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<Vibe {self.id!r}>"


class RecommendationRow(Base):
    __tablename__ = "recommendations"

    id: Mapped[str] = mapped_column(
        PgUUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    vibe_combo_key: Mapped[str] = mapped_column(
        String, unique=True, index=True, nullable=False,
        comment="Single vibe key or 'a|b' pair",
    )
    items: Mapped[list] = mapped_column(
        JSONB, nullable=False, comment="Ordered suggestion templates"
    )

    def __repr__(self) -> str:
        return f"<Recommendation {self.vibe_combo_key!r}>"
