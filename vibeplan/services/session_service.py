"""
VibePlan — Planning session lifecycle and group-decision orchestration.

Session states:      active -> matched -> expired
Participant states:  joined -> swiping -> completed   (forward only)

``expired`` is never written; any session whose ``expires_at`` has passed
simply reads as expired.  A session is written as ``matched``
the first time a recompute reaches a final decision.

Every preference submission triggers a recompute over the full participant
list, and the resulting match record replaces the previous one for the
session.  Submissions for one session are serialised by an in-process lock;
the store's participant version check covers writers in other processes.
"""

from __future__ import annotations

import asyncio
import math
import uuid
import weakref
from typing import Callable, Mapping, Sequence

import structlog
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt

from vibeplan.config import Settings, get_settings
from vibeplan.errors import (
    InvalidInputError,
    InviteNotFoundError,
    ParticipantNotFoundError,
    SessionExpiredError,
    SessionNotFoundError,
    StorageError,
    TokenCollisionError,
    VibePlanError,
)
from vibeplan.schemas.core import (
    PARTICIPANT_STATE_ORDER,
    Location,
    MatchRecord,
    Participant,
    ParticipantSummary,
    Session,
    SessionSnapshot,
    SnapshotCounts,
)
from vibeplan.services.catalogue import fallback_suggestions
from vibeplan.services.matching_service import MatchingService
from vibeplan.storage.gateway import StorageGateway
from vibeplan.utils.timeutil import now_ms
from vibeplan.utils.tokens import generate_invite_token, is_valid_invite_token, mask_token

logger = structlog.get_logger("vibeplan.session_service")

MAX_TOP_VIBES = 3
MIN_GROUP_SIZE = 1
MAX_GROUP_SIZE = 12
HOST_DEFAULT_NAME = "Host"
GUEST_DEFAULT_NAME = "Guest"

# Match records get a stable id per session since each recompute replaces the last.
_MATCH_ID_NAMESPACE = uuid.UUID("6f1c2a53-9d0e-4c1b-8b9a-3e5f7d2c4a10")


def _log_token_collision(retry_state: RetryCallState) -> None:
    logger.warning("invite_token_collision", attempt=retry_state.attempt_number)


class SessionService:
    """Entry point for every operation the HTTP layer exposes."""

    def __init__(
        self,
        gateway: StorageGateway,
        matching_service: MatchingService | None = None,
        settings: Settings | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.gateway = gateway
        self.matching = matching_service or MatchingService()
        self.settings = settings or get_settings()
        self._clock = clock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    # ── Helpers ───────────────────────────────────────────────────────────

    def _session_lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    def join_url(self, invite_token: str) -> str:
        base = self.settings.PUBLIC_BASE_URL.rstrip("/")
        return f"{base}/s/{invite_token}"

    def effective_status(self, session: Session) -> str:
        if session.status != "expired" and self._clock() >= session.expires_at:
            return "expired"
        return session.status

    def _ensure_open(self, session: Session) -> None:
        if self.effective_status(session) == "expired":
            raise SessionExpiredError(f"Session {session.id} has expired.")

    async def _require_session(self, session_id: str) -> Session:
        session = await self.gateway.get_session(session_id)
        if session is None:
            message = f"Session {session_id} not found."
            if not self.gateway.is_durable:
                message += (
                    f" Sessions on the {self.gateway.backend} backend do not"
                    " survive a restart."
                )
            raise SessionNotFoundError(message)
        return session

    async def _require_participant(self, session_id: str, participant_id: str) -> Participant:
        for p in await self.gateway.list_participants(session_id):
            if p.id == participant_id:
                return p
        raise ParticipantNotFoundError(
            f"Participant {participant_id} not found in session {session_id}."
        )

    @staticmethod
    def _validate_top_vibes(top_vibes: Sequence[str | None]) -> list[str | None]:
        if not isinstance(top_vibes, (list, tuple)):
            raise InvalidInputError("topVibes must be a list.")
        if len(top_vibes) > MAX_TOP_VIBES:
            raise InvalidInputError(f"topVibes accepts at most {MAX_TOP_VIBES} entries.")
        cleaned: list[str | None] = []
        for entry in top_vibes:
            if entry is not None and (not isinstance(entry, str) or not entry.strip()):
                raise InvalidInputError("topVibes entries must be non-empty strings or null.")
            cleaned.append(entry)
        named = [entry for entry in cleaned if entry is not None]
        if not named:
            raise InvalidInputError("topVibes must name at least one vibe.")
        if len(set(named)) != len(named):
            raise InvalidInputError("topVibes may rank each vibe only once.")
        return cleaned

    @staticmethod
    def _validate_raw_swipes(raw_swipes: Mapping[str, float]) -> dict[str, float]:
        if not isinstance(raw_swipes, Mapping):
            raise InvalidInputError("rawSwipes must be a mapping of vibe key to score.")
        cleaned: dict[str, float] = {}
        for key, value in raw_swipes.items():
            if not isinstance(key, str) or not key:
                raise InvalidInputError("rawSwipes keys must be non-empty strings.")
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidInputError(f"rawSwipes[{key!r}] must be a number.")
            if not math.isfinite(value):
                raise InvalidInputError(f"rawSwipes[{key!r}] must be finite.")
            cleaned[key] = float(value)
        return cleaned

    # ── Session creation & invites ────────────────────────────────────────

    async def create_session(
        self,
        display_name: str | None = None,
        group_size_hint: int | None = None,
        location: Location | None = None,
    ) -> tuple[Session, Participant]:
        """Create an active session and its host participant.

        A fresh invite token is drawn on every attempt; a collision with an
        existing token is retried up to ``TOKEN_GENERATION_ATTEMPTS`` times.
        """
        if group_size_hint is not None and not MIN_GROUP_SIZE <= group_size_hint <= MAX_GROUP_SIZE:
            raise InvalidInputError(
                f"groupSizeHint must be between {MIN_GROUP_SIZE} and {MAX_GROUP_SIZE}."
            )

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(TokenCollisionError),
                stop=stop_after_attempt(self.settings.TOKEN_GENERATION_ATTEMPTS),
                before_sleep=_log_token_collision,
                reraise=True,
            ):
                with attempt:
                    created = self._clock()
                    session = Session(
                        id=str(uuid.uuid4()),
                        invite_token=generate_invite_token(self.settings.INVITE_TOKEN_LENGTH),
                        status="active",
                        created_at=created,
                        expires_at=created + self.settings.SESSION_TTL_HOURS * 3600 * 1000,
                        location=location,
                        group_size_hint=group_size_hint,
                    )
                    host = Participant(
                        id=str(uuid.uuid4()),
                        session_id=session.id,
                        display_name=display_name or HOST_DEFAULT_NAME,
                        is_host=True,
                        state="joined",
                        created_at=created,
                        updated_at=created,
                    )
                    await self.gateway.create_session(session, host)
        except TokenCollisionError as exc:
            logger.error("invite_token_exhausted", attempts=self.settings.TOKEN_GENERATION_ATTEMPTS)
            raise StorageError("Could not allocate a unique invite token.") from exc

        logger.info(
            "session_created",
            session_id=session.id,
            host_id=host.id,
            invite_token=mask_token(session.invite_token),
            backend=self.gateway.backend,
        )
        return session, host

    async def resolve_invite(self, invite_token: str) -> Session:
        """Look a session up by its public invite token."""
        if not is_valid_invite_token(invite_token, self.settings.INVITE_TOKEN_LENGTH):
            raise InviteNotFoundError("Invite token is not valid.")
        session = await self.gateway.get_session_by_token(invite_token)
        if session is None:
            logger.info("invite_not_found", invite_token=mask_token(invite_token))
            raise InviteNotFoundError("Invite token is not valid.")
        return session

    async def preview_invite(self, invite_token: str) -> dict:
        """What a would-be participant sees before joining."""
        session = await self.resolve_invite(invite_token)
        participants = await self.gateway.list_participants(session.id)
        return {
            "status": self.effective_status(session),
            "expires_at": session.expires_at,
            "participant_count": len(participants),
        }

    async def get_invite(self, session_id: str) -> dict:
        session = await self._require_session(session_id)
        return {
            "join_url": self.join_url(session.invite_token),
            "invite_token": session.invite_token,
        }

    # ── Participants ──────────────────────────────────────────────────────

    async def add_participant(
        self,
        session_id: str,
        display_name: str | None = None,
        device_fingerprint: str | None = None,
    ) -> Participant:
        """Append a non-host participant in ``joined`` state."""
        session = await self._require_session(session_id)
        self._ensure_open(session)

        created = self._clock()
        participant = Participant(
            id=str(uuid.uuid4()),
            session_id=session.id,
            display_name=display_name or GUEST_DEFAULT_NAME,
            device_fingerprint=device_fingerprint or None,
            is_host=False,
            state="joined",
            created_at=created,
            updated_at=created,
        )
        await self.gateway.add_participant(participant)
        logger.info("participant_added", session_id=session.id, participant_id=participant.id)
        return participant

    async def join_session(
        self,
        invite_token: str,
        display_name: str | None = None,
        device_fingerprint: str | None = None,
    ) -> tuple[Session, Participant, bool]:
        """Join via invite token.

        A device that already joined this session gets its existing
        participant back instead of a second vote.  Returns
        ``(session, participant, created)``.
        """
        session = await self.resolve_invite(invite_token)
        self._ensure_open(session)

        async with self._session_lock(session.id):
            if device_fingerprint:
                for p in await self.gateway.list_participants(session.id):
                    if p.device_fingerprint == device_fingerprint:
                        logger.info(
                            "participant_rejoined",
                            session_id=session.id,
                            participant_id=p.id,
                        )
                        return session, p, False
            participant = await self.add_participant(session.id, display_name, device_fingerprint)
        return session, participant, True

    async def start_swiping(self, session_id: str, participant_id: str) -> Participant:
        """Advisory ``joined -> swiping`` move; later states are left alone."""
        async with self._session_lock(session_id):
            session = await self._require_session(session_id)
            self._ensure_open(session)
            participant = await self._require_participant(session_id, participant_id)
            if PARTICIPANT_STATE_ORDER[participant.state] >= PARTICIPANT_STATE_ORDER["swiping"]:
                return participant
            updated = participant.model_copy(
                update={"state": "swiping", "updated_at": self._clock()}
            )
            return await self.gateway.update_participant(updated, participant.version)

    async def submit_preferences(
        self,
        session_id: str,
        participant_id: str,
        raw_swipes: Mapping[str, float],
        top_vibes: Sequence[str | None],
    ) -> dict:
        """Store a participant's swipes and shortlist, then recompute.

        The participant always ends ``completed``.  Returns the saved
        participant together with the recompute outcome.
        """
        log = logger.bind(session_id=session_id, participant_id=participant_id)
        top_vibes = self._validate_top_vibes(top_vibes)
        raw_swipes = self._validate_raw_swipes(raw_swipes)

        async with self._session_lock(session_id):
            session = await self._require_session(session_id)
            self._ensure_open(session)
            participant = await self._require_participant(session_id, participant_id)

            updated = participant.model_copy(
                update={
                    "raw_swipes": raw_swipes,
                    "top_vibes": top_vibes,
                    "state": "completed",
                    "updated_at": self._clock(),
                }
            )
            saved = await self.gateway.update_participant(updated, participant.version)
            log.info("preferences_submitted", top_vibes=top_vibes, swipe_count=len(raw_swipes))

            try:
                outcome = await self._recompute(session)
            except VibePlanError:
                await self._restore_participant(participant, saved.version, log)
                raise

        outcome["participant"] = saved
        return outcome

    async def _restore_participant(
        self, previous: Participant, current_version: int, log
    ) -> None:
        """Put back the pre-submission participant after a failed recompute."""
        try:
            await self.gateway.update_participant(previous, current_version)
        except VibePlanError as exc:
            log.error("submission_rollback_failed", error=exc.message)
        else:
            log.warning("submission_rolled_back")

    # ── Group decision ────────────────────────────────────────────────────

    async def recompute(self, session_id: str) -> dict:
        async with self._session_lock(session_id):
            session = await self._require_session(session_id)
            return await self._recompute(session)

    async def _recompute(self, session: Session) -> dict:
        participants = await self.gateway.list_participants(session.id)
        evaluation = self.matching.evaluate(participants)
        decision = evaluation["decision"]

        record: MatchRecord | None = None
        suggestions = []
        if decision is not None:
            catalogue = await self.gateway.list_recommendations()
            suggestions = self.matching.resolve_suggestions(
                decision.key, catalogue, fallback_suggestions
            )
            record = MatchRecord(
                id=str(uuid.uuid5(_MATCH_ID_NAMESPACE, session.id)),
                session_id=session.id,
                group_vibe=decision,
                suggestions=suggestions,
                computed_at=self._clock(),
            )
            await self.gateway.upsert_match(record)

            if evaluation["final"] and session.status == "active":
                await self.gateway.update_session_status(session.id, "matched")

        logger.info(
            "match_recomputed",
            session_id=session.id,
            completed=evaluation["completed"],
            total=evaluation["total"],
            vibe=decision.key if decision else None,
            confidence=decision.confidence if decision else None,
            provisional=evaluation["provisional"],
            final=evaluation["final"],
        )
        return {
            "provisional": evaluation["provisional"],
            "final": evaluation["final"],
            "match": decision,
            "suggestions": suggestions,
            "completed": evaluation["completed"],
            "total": evaluation["total"],
            "record": record,
        }

    async def get_snapshot(self, session_id: str) -> SessionSnapshot:
        """Read-only view for display.

        Provisional and final flags are recomputed from the current
        participant rows; suggestions come from the stored match record.
        """
        session = await self._require_session(session_id)
        participants = await self.gateway.list_participants(session_id)
        record = await self.gateway.get_match(session_id)
        evaluation = self.matching.evaluate(participants)
        decision = evaluation["decision"]

        return SessionSnapshot(
            status=self.effective_status(session),
            participants=[
                ParticipantSummary(
                    id=p.id,
                    name=p.display_name or GUEST_DEFAULT_NAME,
                    state=p.state,
                )
                for p in participants
            ],
            counts=SnapshotCounts(completed=evaluation["completed"], total=evaluation["total"]),
            provisional_match=decision if evaluation["provisional"] else None,
            final_match=decision if evaluation["final"] else None,
            suggestions=record.suggestions if record else None,
        )
