"""
VibePlan — Storage contract shared by every backend.

Each backend guarantees read-after-write within one process.  Only the
relational tier survives restarts or is shared between processes; the
Redis and in-process tiers lose sessions on a cold start and report them
as not found rather than inventing them.
"""

from __future__ import annotations

import abc

from vibeplan.schemas.core import (
    MatchRecord,
    Participant,
    Recommendation,
    Session,
    SessionStatus,
)


class VibeStore(abc.ABC):
    """Persistence operations the session service depends on."""

    backend: str = "abstract"

    @abc.abstractmethod
    async def create_session(self, session: Session, host: Participant) -> None:
        """Persist a new session together with its host participant.

        Raises ``TokenCollisionError`` when ``session.invite_token`` is
        already taken; nothing is written in that case.
        """

    @abc.abstractmethod
    async def get_session(self, session_id: str) -> Session | None: ...

    @abc.abstractmethod
    async def get_session_by_token(self, invite_token: str) -> Session | None: ...

    @abc.abstractmethod
    async def update_session_status(self, session_id: str, status: SessionStatus) -> None: ...

    @abc.abstractmethod
    async def add_participant(self, participant: Participant) -> None: ...

    @abc.abstractmethod
    async def list_participants(self, session_id: str) -> list[Participant]:
        """All participants of a session, oldest first."""

    @abc.abstractmethod
    async def update_participant(
        self, participant: Participant, expected_version: int
    ) -> Participant:
        """Overwrite a participant if its stored version is ``expected_version``.

        Returns the stored participant with ``version = expected_version + 1``.
        Raises ``ConcurrentUpdateError`` on a version mismatch and
        ``ParticipantNotFoundError`` if the participant is not part of
        ``participant.session_id``.
        """

    @abc.abstractmethod
    async def upsert_match(self, record: MatchRecord) -> None:
        """Replace the session's current match record."""

    @abc.abstractmethod
    async def get_match(self, session_id: str) -> MatchRecord | None: ...

    @abc.abstractmethod
    async def list_recommendations(self) -> list[Recommendation]: ...

    async def ping(self) -> None:
        return None

    async def close(self) -> None:
        return None
