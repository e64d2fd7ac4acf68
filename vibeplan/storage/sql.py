"""
VibePlan — PostgreSQL tier (SQLAlchemy asyncio + asyncpg).

The only durable, multi-process backend.  Each operation runs in its own
short transaction; ``update_participant`` is a conditional UPDATE on the
row version, so two writers for the same participant cannot interleave.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import select, text, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from vibeplan.config import Settings
from vibeplan.database import build_engine, build_session_factory
from vibeplan.errors import (
    ConcurrentUpdateError,
    ParticipantNotFoundError,
    SessionNotFoundError,
    TokenCollisionError,
)
from vibeplan.models.catalogue import RecommendationRow
from vibeplan.models.match import MatchRow
from vibeplan.models.session import ParticipantRow, PlanSession
from vibeplan.schemas.core import (
    MatchRecord,
    Participant,
    Recommendation,
    Session,
    SessionStatus,
)
from vibeplan.storage.base import VibeStore
from vibeplan.storage.mapping import (
    match_record_values,
    participant_to_row,
    participant_values,
    row_to_match_record,
    row_to_participant,
    row_to_recommendation,
    row_to_session,
    session_to_row,
)

logger = structlog.get_logger("vibeplan.storage.sql")


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except (ValueError, TypeError, AttributeError):
        return False
    return True


class SqlStore(VibeStore):
    backend = "sql"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine = engine

    @classmethod
    def from_settings(cls, settings: Settings) -> "SqlStore":
        engine = build_engine(settings)
        return cls(build_session_factory(engine), engine=engine)

    # ── Sessions ──────────────────────────────────────────────────────────

    async def create_session(self, session: Session, host: Participant) -> None:
        async with self._session_factory() as db:
            db.add(session_to_row(session))
            db.add(participant_to_row(host))
            try:
                await db.commit()
            except IntegrityError as exc:
                await db.rollback()
                if "invite_token" in str(exc.orig):
                    raise TokenCollisionError() from exc
                raise
        logger.debug("sql_session_created", session_id=session.id)

    async def get_session(self, session_id: str) -> Session | None:
        if not _is_uuid(session_id):
            return None
        async with self._session_factory() as db:
            row = await db.get(PlanSession, session_id)
            return row_to_session(row) if row else None

    async def get_session_by_token(self, invite_token: str) -> Session | None:
        async with self._session_factory() as db:
            stmt = select(PlanSession).where(PlanSession.invite_token == invite_token).limit(1)
            row = (await db.execute(stmt)).scalar_one_or_none()
            return row_to_session(row) if row else None

    async def update_session_status(self, session_id: str, status: SessionStatus) -> None:
        if not _is_uuid(session_id):
            raise SessionNotFoundError()
        async with self._session_factory() as db:
            result = await db.execute(
                update(PlanSession).where(PlanSession.id == session_id).values(status=status)
            )
            if result.rowcount == 0:
                await db.rollback()
                raise SessionNotFoundError()
            await db.commit()

    # ── Participants ──────────────────────────────────────────────────────

    async def add_participant(self, participant: Participant) -> None:
        async with self._session_factory() as db:
            db.add(participant_to_row(participant))
            try:
                await db.commit()
            except IntegrityError as exc:
                await db.rollback()
                raise SessionNotFoundError() from exc

    async def list_participants(self, session_id: str) -> list[Participant]:
        if not _is_uuid(session_id):
            return []
        async with self._session_factory() as db:
            stmt = (
                select(ParticipantRow)
                .where(ParticipantRow.session_id == session_id)
                .order_by(ParticipantRow.created_at.asc(), ParticipantRow.id.asc())
            )
            rows = (await db.execute(stmt)).scalars().all()
            return [row_to_participant(r) for r in rows]

    async def update_participant(
        self, participant: Participant, expected_version: int
    ) -> Participant:
        if not (_is_uuid(participant.id) and _is_uuid(participant.session_id)):
            raise ParticipantNotFoundError()

        stored = participant.model_copy(update={"version": expected_version + 1})
        values = participant_values(stored)
        for immutable in ("id", "session_id", "created_at"):
            values.pop(immutable)

        async with self._session_factory() as db:
            stmt = (
                update(ParticipantRow)
                .where(
                    ParticipantRow.id == participant.id,
                    ParticipantRow.session_id == participant.session_id,
                    ParticipantRow.version == expected_version,
                )
                .values(**values)
            )
            result = await db.execute(stmt)
            if result.rowcount == 0:
                exists = await db.execute(
                    select(ParticipantRow.id).where(
                        ParticipantRow.id == participant.id,
                        ParticipantRow.session_id == participant.session_id,
                    )
                )
                await db.rollback()
                if exists.scalar_one_or_none() is None:
                    raise ParticipantNotFoundError()
                raise ConcurrentUpdateError()
            await db.commit()
        return stored

    # ── Matches ───────────────────────────────────────────────────────────

    async def upsert_match(self, record: MatchRecord) -> None:
        values = match_record_values(record)
        stmt = pg_insert(MatchRow).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[MatchRow.session_id],
            set_={
                "id": stmt.excluded.id,
                "group_vibe": stmt.excluded.group_vibe,
                "suggestions": stmt.excluded.suggestions,
                "computed_at": stmt.excluded.computed_at,
            },
        )
        async with self._session_factory() as db:
            await db.execute(stmt)
            await db.commit()

    async def get_match(self, session_id: str) -> MatchRecord | None:
        if not _is_uuid(session_id):
            return None
        async with self._session_factory() as db:
            stmt = select(MatchRow).where(MatchRow.session_id == session_id).limit(1)
            row = (await db.execute(stmt)).scalar_one_or_none()
            return row_to_match_record(row) if row else None

    # ── Catalogue ─────────────────────────────────────────────────────────

    async def list_recommendations(self) -> list[Recommendation]:
        async with self._session_factory() as db:
            stmt = select(RecommendationRow).order_by(RecommendationRow.vibe_combo_key)
            rows = (await db.execute(stmt)).scalars().all()
            return [row_to_recommendation(r) for r in rows]

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def ping(self) -> None:
        async with self._session_factory() as db:
            await db.execute(text("SELECT 1"))

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("database_pool_closed")
