"""
VibePlan — Redis key-value tier.

Namespaced keys, all values serialised as JSON::

    {prefix}:session:{session_id}        session document
    {prefix}:token:{invite_token}        session id (claimed with SET NX)
    {prefix}:participants:{session_id}   hash: participant id -> participant
    {prefix}:match:{session_id}          current match record

Every write refreshes the key TTL.  Sessions survive process restarts only
as long as the Redis instance keeps them.
"""

from __future__ import annotations

from typing import Any

import structlog
from redis.exceptions import WatchError

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

logger = structlog.get_logger("vibeplan.storage.redis")


class RedisStore(VibeStore):
    backend = "redis"

    def __init__(
        self,
        client: Any,
        prefix: str = "vibe",
        ttl_seconds: int = 7 * 24 * 3600,
        catalogue: list[Recommendation] | None = None,
    ) -> None:
        self._redis = client
        self._prefix = prefix
        self._ttl = ttl_seconds
        self._catalogue = catalogue if catalogue is not None else default_recommendations()

    @classmethod
    def from_url(cls, url: str, *, prefix: str, ttl_seconds: int, timeout: float) -> "RedisStore":
        import redis.asyncio as aioredis

        client = aioredis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=timeout,
            socket_timeout=timeout,
        )
        return cls(client, prefix=prefix, ttl_seconds=ttl_seconds)

    # ── Keys ──────────────────────────────────────────────────────────────

    def _session_key(self, session_id: str) -> str:
        return f"{self._prefix}:session:{session_id}"

    def _token_key(self, token: str) -> str:
        return f"{self._prefix}:token:{token}"

    def _participants_key(self, session_id: str) -> str:
        return f"{self._prefix}:participants:{session_id}"

    def _match_key(self, session_id: str) -> str:
        return f"{self._prefix}:match:{session_id}"

    # ── Sessions ──────────────────────────────────────────────────────────

    async def create_session(self, session: Session, host: Participant) -> None:
        claimed = await self._redis.set(
            self._token_key(session.invite_token), session.id, nx=True, ex=self._ttl
        )
        if not claimed:
            raise TokenCollisionError()

        participants_key = self._participants_key(session.id)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.set(self._session_key(session.id), session.model_dump_json(), ex=self._ttl)
                pipe.hset(participants_key, host.id, host.model_dump_json())
                pipe.expire(participants_key, self._ttl)
                await pipe.execute()
        except Exception:
            # Release the claimed token so it does not point at a missing session.
            await self._redis.delete(self._token_key(session.invite_token))
            raise
        logger.debug("redis_session_created", session_id=session.id)

    async def get_session(self, session_id: str) -> Session | None:
        raw = await self._redis.get(self._session_key(session_id))
        if raw is None:
            return None
        return Session.model_validate_json(raw)

    async def get_session_by_token(self, invite_token: str) -> Session | None:
        session_id = await self._redis.get(self._token_key(invite_token))
        if session_id is None:
            return None
        return await self.get_session(session_id)

    async def update_session_status(self, session_id: str, status: SessionStatus) -> None:
        session = await self.get_session(session_id)
        if session is None:
            raise SessionNotFoundError()
        session.status = status
        await self._redis.set(
            self._session_key(session_id), session.model_dump_json(), ex=self._ttl
        )

    # ── Participants ──────────────────────────────────────────────────────

    async def add_participant(self, participant: Participant) -> None:
        key = self._participants_key(participant.session_id)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.hset(key, participant.id, participant.model_dump_json())
            pipe.expire(key, self._ttl)
            await pipe.execute()

    async def list_participants(self, session_id: str) -> list[Participant]:
        raw = await self._redis.hgetall(self._participants_key(session_id))
        participants = [Participant.model_validate_json(v) for v in (raw or {}).values()]
        participants.sort(key=lambda p: (p.created_at, p.id))
        return participants

    async def update_participant(
        self, participant: Participant, expected_version: int
    ) -> Participant:
        key = self._participants_key(participant.session_id)
        stored = participant.model_copy(update={"version": expected_version + 1})

        async with self._redis.pipeline(transaction=True) as pipe:
            await pipe.watch(key)
            raw = await pipe.hget(key, participant.id)
            if raw is None:
                raise ParticipantNotFoundError()
            current = Participant.model_validate_json(raw)
            if current.version != expected_version:
                raise ConcurrentUpdateError()

            pipe.multi()
            pipe.hset(key, participant.id, stored.model_dump_json())
            pipe.expire(key, self._ttl)
            try:
                await pipe.execute()
            except WatchError as exc:
                raise ConcurrentUpdateError() from exc
        return stored

    # ── Matches ───────────────────────────────────────────────────────────

    async def upsert_match(self, record: MatchRecord) -> None:
        await self._redis.set(
            self._match_key(record.session_id), record.model_dump_json(), ex=self._ttl
        )

    async def get_match(self, session_id: str) -> MatchRecord | None:
        raw = await self._redis.get(self._match_key(session_id))
        if raw is None:
            return None
        return MatchRecord.model_validate_json(raw)

    # ── Catalogue ─────────────────────────────────────────────────────────

    async def list_recommendations(self) -> list[Recommendation]:
        return [r.model_copy(deep=True) for r in self._catalogue]

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def ping(self) -> None:
        await self._redis.ping()

    async def close(self) -> None:
        await self._redis.aclose()
