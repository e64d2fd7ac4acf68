"""Shared pytest fixtures for VibePlan tests."""
import uuid
from collections import defaultdict
from unittest.mock import MagicMock, patch

import pytest
from redis.exceptions import WatchError

from vibeplan.config import Settings
from vibeplan.schemas.core import Participant, Session
from vibeplan.services.matching_service import MatchingService
from vibeplan.services.session_service import SessionService
from vibeplan.storage.gateway import StorageGateway
from vibeplan.storage.memory import MemoryStore

T0 = 1_700_000_000_000  # fixed "now" in epoch ms


def _mock_settings(**overrides):
    settings = MagicMock()
    settings.PROVISIONAL_QUORUM = 2
    settings.FINAL_CONFIDENCE_THRESHOLD = 0.70
    settings.MAX_SUGGESTIONS = 5
    for name, value in overrides.items():
        setattr(settings, name, value)
    return settings


@pytest.fixture
def matching_service():
    with patch("vibeplan.services.matching_service.get_settings") as mock:
        mock.return_value = _mock_settings()
        service = MatchingService()
    return service


@pytest.fixture
def make_participant():
    """Factory for participants; ``completed`` ones need ``top_vibes``."""
    counter = {"n": 0}

    def _make(top_vibes=None, state="completed", session_id="s-1", **kwargs):
        counter["n"] += 1
        return Participant(
            id=kwargs.pop("id", f"p-{counter['n']}"),
            session_id=session_id,
            state=state,
            top_vibes=top_vibes,
            created_at=kwargs.pop("created_at", T0 + counter["n"]),
            updated_at=kwargs.pop("updated_at", T0 + counter["n"]),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_session():
    def _make(session_id=None, invite_token="abcdefghijk1", **kwargs):
        return Session(
            id=session_id or str(uuid.uuid4()),
            invite_token=invite_token,
            created_at=kwargs.pop("created_at", T0),
            expires_at=kwargs.pop("expires_at", T0 + 48 * 3600 * 1000),
            **kwargs,
        )

    return _make


@pytest.fixture
def settings():
    return Settings(_env_file=None, STORAGE_BACKEND="memory")


@pytest.fixture
def clock():
    """Controllable clock; advance with ``clock.now += ms``."""

    class _Clock:
        now = T0

        def __call__(self):
            return self.now

    return _Clock()


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def gateway(memory_store):
    return StorageGateway(memory_store, timeout_seconds=1.0)


@pytest.fixture
def session_service(gateway, matching_service, settings, clock):
    return SessionService(gateway, matching_service=matching_service, settings=settings, clock=clock)


# ── Fake Redis client ─────────────────────────────────────────────────────────

class FakePipeline:
    """Buffers commands until ``execute``; after ``watch`` runs them at once."""

    def __init__(self, redis):
        self._redis = redis
        self._commands = []
        self._watched = {}
        self._immediate = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self._commands.clear()
        self._watched.clear()
        return False

    async def watch(self, *keys):
        self._immediate = True
        for key in keys:
            self._watched[key] = self._redis.versions[key]

    def multi(self):
        self._immediate = False

    def _command(self, name, *args, **kwargs):
        if self._immediate:
            return getattr(self._redis, name)(*args, **kwargs)
        self._commands.append((name, args, kwargs))
        return self

    def set(self, *args, **kwargs):
        return self._command("set", *args, **kwargs)

    def hset(self, *args, **kwargs):
        return self._command("hset", *args, **kwargs)

    def hget(self, *args, **kwargs):
        return self._command("hget", *args, **kwargs)

    def expire(self, *args, **kwargs):
        return self._command("expire", *args, **kwargs)

    async def execute(self):
        hook, self._redis.before_execute = self._redis.before_execute, None
        if hook is not None:
            await hook()
        for key, version in self._watched.items():
            if self._redis.versions[key] != version:
                raise WatchError("Watched variable changed.")
        results = []
        for name, args, kwargs in self._commands:
            results.append(await getattr(self._redis, name)(*args, **kwargs))
        self._commands.clear()
        self._watched.clear()
        return results


class FakeRedis:
    """Just enough of ``redis.asyncio.Redis`` (decode_responses=True)."""

    def __init__(self):
        self.strings = {}
        self.hashes = {}
        self.ttls = {}
        self.versions = defaultdict(int)
        self.before_execute = None
        self.closed = False

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.strings:
            return None
        self.strings[key] = value
        self.versions[key] += 1
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def get(self, key):
        return self.strings.get(key)

    async def hset(self, key, field, value):
        self.hashes.setdefault(key, {})[field] = value
        self.versions[key] += 1
        return 1

    async def hget(self, key, field):
        return self.hashes.get(key, {}).get(field)

    async def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    async def expire(self, key, seconds):
        self.ttls[key] = seconds
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.strings.pop(key, None) is not None or self.hashes.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
            self.versions[key] += 1
        return removed

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def ping(self):
        return True

    async def aclose(self):
        self.closed = True


@pytest.fixture
def fake_redis():
    return FakeRedis()
