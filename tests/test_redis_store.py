"""Tests for the Redis store against an in-memory fake client."""
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from vibeplan.errors import (
    ConcurrentUpdateError,
    ParticipantNotFoundError,
    SessionNotFoundError,
    TokenCollisionError,
)
from vibeplan.schemas.core import Location, MatchRecord, MatchResult, Suggestion
from vibeplan.storage.redis_store import RedisStore


@pytest.fixture
def store(fake_redis):
    return RedisStore(fake_redis, prefix="test", ttl_seconds=60)


@pytest.fixture
def host_and_session(make_session, make_participant):
    session = make_session(session_id="s-1", location=Location(lat=1.0, lng=2.0))
    host = make_participant(None, state="joined", session_id="s-1", is_host=True, display_name="Host")
    return session, host


class TestKeyLayout:
    @pytest.mark.asyncio
    async def test_keys_are_namespaced_and_expire(self, store, fake_redis, host_and_session):
        session, host = host_and_session
        await store.create_session(session, host)

        assert fake_redis.strings["test:token:" + session.invite_token] == "s-1"
        assert "test:session:s-1" in fake_redis.strings
        assert host.id in fake_redis.hashes["test:participants:s-1"]
        for key in ("test:token:" + session.invite_token, "test:session:s-1", "test:participants:s-1"):
            assert fake_redis.ttls[key] == 60


class TestSessions:
    @pytest.mark.asyncio
    async def test_create_and_read_back(self, store, host_and_session):
        session, host = host_and_session
        await store.create_session(session, host)

        assert await store.get_session("s-1") == session
        assert await store.get_session_by_token(session.invite_token) == session
        assert await store.list_participants("s-1") == [host]

    @pytest.mark.asyncio
    async def test_token_claimed_once(self, store, host_and_session, make_session, make_participant):
        session, host = host_and_session
        await store.create_session(session, host)

        clash = make_session(session_id="s-2", invite_token=session.invite_token)
        with pytest.raises(TokenCollisionError):
            await store.create_session(clash, make_participant(None, session_id="s-2"))
        assert await store.get_session("s-2") is None

    @pytest.mark.asyncio
    async def test_failed_write_releases_token(self, store, fake_redis, host_and_session):
        session, host = host_and_session

        async def connection_lost():
            raise RedisConnectionError("connection lost")

        fake_redis.before_execute = connection_lost
        with pytest.raises(RedisConnectionError):
            await store.create_session(session, host)

        assert "test:token:" + session.invite_token not in fake_redis.strings
        assert await store.get_session_by_token(session.invite_token) is None

        await store.create_session(session, host)
        assert await store.get_session_by_token(session.invite_token) == session

    @pytest.mark.asyncio
    async def test_missing(self, store):
        assert await store.get_session("nope") is None
        assert await store.get_session_by_token("nope") is None
        assert await store.list_participants("nope") == []
        assert await store.get_match("nope") is None

    @pytest.mark.asyncio
    async def test_update_status(self, store, host_and_session):
        await store.create_session(*host_and_session)
        await store.update_session_status("s-1", "matched")
        assert (await store.get_session("s-1")).status == "matched"

        with pytest.raises(SessionNotFoundError):
            await store.update_session_status("nope", "matched")


class TestParticipants:
    @pytest.mark.asyncio
    async def test_list_ordered_by_creation(self, store, host_and_session, make_participant):
        await store.create_session(*host_and_session)
        later = make_participant(None, state="joined", session_id="s-1", id="zz", created_at=10**13)
        earlier = make_participant(None, state="joined", session_id="s-1", id="aa", created_at=10**13 - 1)
        await store.add_participant(later)
        await store.add_participant(earlier)

        ids = [p.id for p in await store.list_participants("s-1")]
        assert ids == [host_and_session[1].id, "aa", "zz"]

    @pytest.mark.asyncio
    async def test_versioned_update(self, store, host_and_session):
        session, host = host_and_session
        await store.create_session(session, host)

        changed = host.model_copy(update={"state": "completed", "top_vibes": ["a", None]})
        stored = await store.update_participant(changed, expected_version=1)
        assert stored.version == 2

        reread = (await store.list_participants("s-1"))[0]
        assert reread.top_vibes == ["a", None]
        assert reread.version == 2

        with pytest.raises(ConcurrentUpdateError):
            await store.update_participant(changed, expected_version=1)

    @pytest.mark.asyncio
    async def test_concurrent_write_between_watch_and_exec(self, store, fake_redis, host_and_session):
        session, host = host_and_session
        await store.create_session(session, host)

        async def racing_writer():
            await fake_redis.hset("test:participants:s-1", host.id, host.model_dump_json())

        fake_redis.before_execute = racing_writer
        with pytest.raises(ConcurrentUpdateError):
            await store.update_participant(host.model_copy(update={"state": "swiping"}), 1)

    @pytest.mark.asyncio
    async def test_update_unknown_participant(self, store, host_and_session, make_participant):
        await store.create_session(*host_and_session)
        with pytest.raises(ParticipantNotFoundError):
            await store.update_participant(make_participant(["a"], session_id="s-1"), 1)


class TestMatchesAndLifecycle:
    @pytest.mark.asyncio
    async def test_upsert_match(self, store, host_and_session):
        await store.create_session(*host_and_session)
        record = MatchRecord(
            id="m-1",
            session_id="s-1",
            group_vibe=MatchResult(key="a", confidence=1.0),
            suggestions=[Suggestion(title="Walk", description="Around the park")],
            computed_at=5,
        )
        await store.upsert_match(record)
        assert await store.get_match("s-1") == record

    @pytest.mark.asyncio
    async def test_ping_and_close(self, store, fake_redis):
        await store.ping()
        await store.close()
        assert fake_redis.closed
