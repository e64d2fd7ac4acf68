"""
VibePlan — Persistence gateway.

Wraps whichever ``VibeStore`` was selected at startup.  Every call is
bounded by ``STORAGE_TIMEOUT_SECONDS``; timeouts and driver errors become
``StorageError`` so the HTTP layer can answer with a retryable 503.  The
gateway never switches backend mid-request: selection happens once in
``build_gateway``.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

import structlog
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from vibeplan.config import Settings
from vibeplan.errors import StorageError, VibePlanError
from vibeplan.schemas.core import (
    MatchRecord,
    Participant,
    Recommendation,
    Session,
    SessionStatus,
)
from vibeplan.storage.base import VibeStore

logger = structlog.get_logger("vibeplan.storage.gateway")

T = TypeVar("T")


class StorageGateway:
    def __init__(self, store: VibeStore, timeout_seconds: float = 5.0) -> None:
        self.store = store
        self.timeout_seconds = timeout_seconds

    @property
    def backend(self) -> str:
        return self.store.backend

    @property
    def is_durable(self) -> bool:
        return self.store.backend == "sql"

    async def _run(self, operation: str, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self.timeout_seconds)
        except VibePlanError:
            raise
        except asyncio.TimeoutError as exc:
            logger.error(
                "storage_timeout",
                backend=self.backend,
                operation=operation,
                timeout=self.timeout_seconds,
            )
            raise StorageError(f"Storage operation '{operation}' timed out.") from exc
        except (SQLAlchemyError, RedisError, OSError) as exc:
            logger.error(
                "storage_failure",
                backend=self.backend,
                operation=operation,
                error=str(exc),
            )
            raise StorageError(f"Storage operation '{operation}' failed.") from exc

    # ── Delegated operations ──────────────────────────────────────────────

    async def create_session(self, session: Session, host: Participant) -> None:
        await self._run("create_session", self.store.create_session(session, host))

    async def get_session(self, session_id: str) -> Session | None:
        return await self._run("get_session", self.store.get_session(session_id))

    async def get_session_by_token(self, invite_token: str) -> Session | None:
        return await self._run(
            "get_session_by_token", self.store.get_session_by_token(invite_token)
        )

    async def update_session_status(self, session_id: str, status: SessionStatus) -> None:
        await self._run(
            "update_session_status", self.store.update_session_status(session_id, status)
        )

    async def add_participant(self, participant: Participant) -> None:
        await self._run("add_participant", self.store.add_participant(participant))

    async def list_participants(self, session_id: str) -> list[Participant]:
        return await self._run("list_participants", self.store.list_participants(session_id))

    async def update_participant(
        self, participant: Participant, expected_version: int
    ) -> Participant:
        return await self._run(
            "update_participant",
            self.store.update_participant(participant, expected_version),
        )

    async def upsert_match(self, record: MatchRecord) -> None:
        await self._run("upsert_match", self.store.upsert_match(record))

    async def get_match(self, session_id: str) -> MatchRecord | None:
        return await self._run("get_match", self.store.get_match(session_id))

    async def list_recommendations(self) -> list[Recommendation]:
        return await self._run("list_recommendations", self.store.list_recommendations())

    async def ping(self) -> None:
        await self._run("ping", self.store.ping())

    async def close(self) -> None:
        await self.store.close()


# ──────────────────────────────────────────────────────────────────────────────
# Backend selection
# ──────────────────────────────────────────────────────────────────────────────

def build_store(settings: Settings) -> VibeStore:
    """Instantiate the backend ``settings`` resolves to.

    An explicitly requested backend without its connection settings is a
    configuration error, not a reason to fall back silently.
    """
    backend = settings.resolved_backend

    if backend == "sql":
        if not settings.DATABASE_URL:
            raise ValueError("STORAGE_BACKEND=sql requires DATABASE_URL")
        from vibeplan.storage.sql import SqlStore

        return SqlStore.from_settings(settings)

    if backend == "redis":
        if not settings.REDIS_URL:
            raise ValueError("STORAGE_BACKEND=redis requires REDIS_URL")
        from vibeplan.storage.redis_store import RedisStore

        return RedisStore.from_url(
            settings.REDIS_URL,
            prefix=settings.REDIS_KEY_PREFIX,
            ttl_seconds=settings.REDIS_KEY_TTL_SECONDS,
            timeout=settings.STORAGE_TIMEOUT_SECONDS,
        )

    from vibeplan.storage.memory import MemoryStore

    return MemoryStore()


def build_gateway(settings: Settings) -> StorageGateway:
    store = build_store(settings)
    gateway = StorageGateway(store, timeout_seconds=settings.STORAGE_TIMEOUT_SECONDS)

    logger.info(
        "storage_backend_selected",
        backend=gateway.backend,
        requested=settings.STORAGE_BACKEND,
        durable=gateway.is_durable,
    )
    if not gateway.is_durable:
        logger.warning(
            "storage_not_durable",
            backend=gateway.backend,
            note="sessions will not survive a restart without DATABASE_URL",
        )
    return gateway
