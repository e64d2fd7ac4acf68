"""Tests for backend selection, the storage gateway and settings."""
import asyncio
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import OperationalError

from vibeplan.config import Settings
from vibeplan.database import normalise_database_url
from vibeplan.errors import SessionNotFoundError, StorageError
from vibeplan.services.catalogue import default_vibes
from vibeplan.storage.gateway import StorageGateway, build_gateway, build_store
from vibeplan.storage.memory import MemoryStore
from vibeplan.storage.redis_store import RedisStore


def _settings(**overrides):
    return Settings(_env_file=None, **overrides)


class TestBackendSelection:
    @pytest.mark.parametrize(
        "overrides, expected",
        [
            ({}, "memory"),
            ({"REDIS_URL": "redis://localhost:6379/0"}, "redis"),
            ({"DATABASE_URL": "postgresql://u:p@db/vibe", "REDIS_URL": "redis://r"}, "sql"),
            ({"STORAGE_BACKEND": "memory", "DATABASE_URL": "postgresql://u:p@db/vibe"}, "memory"),
        ],
    )
    def test_auto_priority(self, overrides, expected):
        overrides.setdefault("STORAGE_BACKEND", "auto")
        overrides.setdefault("DATABASE_URL", "")
        overrides.setdefault("REDIS_URL", "")
        assert _settings(**overrides).resolved_backend == expected

    def test_explicit_backend_without_credentials(self):
        with pytest.raises(ValueError):
            build_store(_settings(STORAGE_BACKEND="sql", DATABASE_URL=""))
        with pytest.raises(ValueError):
            build_store(_settings(STORAGE_BACKEND="redis", REDIS_URL=""))

    def test_memory_gateway(self):
        gateway = build_gateway(_settings(STORAGE_BACKEND="memory"))
        assert isinstance(gateway.store, MemoryStore)
        assert gateway.backend == "memory"
        assert gateway.is_durable is False

    def test_redis_store_is_built_lazily(self):
        store = build_store(_settings(STORAGE_BACKEND="redis", REDIS_URL="redis://localhost:6379/0"))
        assert isinstance(store, RedisStore)

    def test_database_url_scheme_upgrade(self):
        assert normalise_database_url("postgres://u@h/db") == "postgresql+asyncpg://u@h/db"
        assert normalise_database_url("postgresql://u@h/db") == "postgresql+asyncpg://u@h/db"
        assert normalise_database_url("postgresql+asyncpg://u@h/db") == "postgresql+asyncpg://u@h/db"


class TestSettingsValidation:
    def test_threshold_range(self):
        with pytest.raises(ValidationError):
            _settings(FINAL_CONFIDENCE_THRESHOLD=1.5)

    def test_timeout_positive(self):
        with pytest.raises(ValidationError):
            _settings(STORAGE_TIMEOUT_SECONDS=0)

    def test_allowed_origins_list(self):
        assert _settings(ALLOWED_ORIGINS="https://a.example, https://b.example").allowed_origins_list == [
            "https://a.example",
            "https://b.example",
        ]


class TestGatewayErrors:
    @pytest.mark.asyncio
    async def test_timeout_becomes_storage_error(self):
        store = MemoryStore()

        async def slow(_session_id):
            await asyncio.sleep(1)

        store.get_session = slow
        gateway = StorageGateway(store, timeout_seconds=0.01)
        with pytest.raises(StorageError) as exc_info:
            await gateway.get_session("s-1")
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            RedisConnectionError("refused"),
            OperationalError("SELECT 1", {}, Exception("gone")),
            OSError("reset"),
        ],
    )
    async def test_driver_errors_are_translated(self, error):
        store = MemoryStore()
        store.list_participants = AsyncMock(side_effect=error)
        gateway = StorageGateway(store)
        with pytest.raises(StorageError) as exc_info:
            await gateway.list_participants("s-1")
        assert exc_info.value.code == "storage_unavailable"
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_domain_errors_pass_through(self):
        gateway = StorageGateway(MemoryStore())
        with pytest.raises(SessionNotFoundError):
            await gateway.update_session_status("missing", "matched")

    @pytest.mark.asyncio
    async def test_memory_ping_and_close(self):
        gateway = StorageGateway(MemoryStore())
        await gateway.ping()
        await gateway.close()


def test_default_vibes():
    vibes = default_vibes()
    assert len(vibes) == 10
    assert len({v.id for v in vibes}) == 10
    assert all(v.emoji and v.tags for v in vibes)
