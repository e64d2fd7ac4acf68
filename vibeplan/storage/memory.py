"""
VibePlan — In-process fallback store.

Lives exactly as long as the ``MemoryStore`` instance the application
creates at startup.  A restart loses every session; callers then get an
honest "session not found".  Writes take a per-session ``asyncio.Lock``
and reads hand out deep copies, so no caller can change stored state
except through this interface.
"""

from __future__ import annotations

import asyncio
import weakref

import structlog

from vibeplan.errors import (
    ConcurrentUpdateError,
    ParticipantNotFoundError,
    SessionNotFoundError,
    TokenCollisionError,
)
from vibeplan.schemas.core import (
    MatchRecord,
    Participant,
    Recommendation,
    Session,
    SessionStatus,
)
from vibeplan.services.catalogue import default_recommendations
from vibeplan.storage.base import VibeStore

logger = structlog.get_logger("vibeplan.storage.memory")


class MemoryStore(VibeStore):
    backend = "memory"

    def __init__(self, catalogue: list[Recommendation] | None = None) -> None:
        self._sessions: dict[str, Session] = {}
        self._by_token: dict[str, str] = {}
        # session id -> participant id -> participant (insertion ordered)
        self._participants: dict[str, dict[str, Participant]] = {}
        self._matches: dict[str, MatchRecord] = {}
        self._catalogue = catalogue if catalogue is not None else default_recommendations()
        self._session_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._token_lock = asyncio.Lock()

    def _lock(self, session_id: str) -> asyncio.Lock:
        # Dropped once no coroutine holds or waits on it.
        lock = self._session_locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._session_locks[session_id] = lock
        return lock

    # ── Sessions ──────────────────────────────────────────────────────────

    async def create_session(self, session: Session, host: Participant) -> None:
        async with self._token_lock:
            if session.invite_token in self._by_token:
                raise TokenCollisionError()
            self._by_token[session.invite_token] = session.id
            self._sessions[session.id] = session.model_copy(deep=True)
            self._participants[session.id] = {host.id: host.model_copy(deep=True)}
        logger.debug("memory_session_created", session_id=session.id)

    async def get_session(self, session_id: str) -> Session | None:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def get_session_by_token(self, invite_token: str) -> Session | None:
        session_id = self._by_token.get(invite_token)
        if session_id is None:
            return None
        return await self.get_session(session_id)

    async def update_session_status(self, session_id: str, status: SessionStatus) -> None:
        async with self._lock(session_id):
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError()
            self._sessions[session_id] = session.model_copy(update={"status": status})

    # ── Participants ──────────────────────────────────────────────────────

    async def add_participant(self, participant: Participant) -> None:
        async with self._lock(participant.session_id):
            members = self._participants.get(participant.session_id)
            if members is None:
                raise SessionNotFoundError()
            members[participant.id] = participant.model_copy(deep=True)

    async def list_participants(self, session_id: str) -> list[Participant]:
        members = self._participants.get(session_id, {})
        return [p.model_copy(deep=True) for p in members.values()]

    async def update_participant(
        self, participant: Participant, expected_version: int
    ) -> Participant:
        async with self._lock(participant.session_id):
            members = self._participants.get(participant.session_id, {})
            current = members.get(participant.id)
            if current is None:
                raise ParticipantNotFoundError()
            if current.version != expected_version:
                raise ConcurrentUpdateError()
            stored = participant.model_copy(deep=True, update={"version": expected_version + 1})
            members[participant.id] = stored
            return stored.model_copy(deep=True)

    # ── Matches ───────────────────────────────────────────────────────────

    async def upsert_match(self, record: MatchRecord) -> None:
        async with self._lock(record.session_id):
            self._matches[record.session_id] = record.model_copy(deep=True)

    async def get_match(self, session_id: str) -> MatchRecord | None:
        record = self._matches.get(session_id)
        return record.model_copy(deep=True) if record else None

    # ── Catalogue ─────────────────────────────────────────────────────────

    async def list_recommendations(self) -> list[Recommendation]:
        return [r.model_copy(deep=True) for r in self._catalogue]
