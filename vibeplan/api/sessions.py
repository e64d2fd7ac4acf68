"""
VibePlan — Sessions API

Endpoints for creating a planning session, sharing its invite, submitting
participant preferences and reading the group decision.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, status

from vibeplan.api.deps import get_session_service
from vibeplan.schemas.core import SessionSnapshot
from vibeplan.schemas.session import (
    DecisionResponse,
    InviteResponse,
    ParticipantStateResponse,
    PreferencesSubmit,
    SessionCreate,
    SessionCreateResponse,
)
from vibeplan.services.session_service import SessionService

logger = structlog.get_logger("vibeplan.api.sessions")

router = APIRouter()


def _decision_response(outcome: dict) -> DecisionResponse:
    return DecisionResponse(
        provisional=outcome["provisional"],
        final=outcome["final"],
        match=outcome["match"],
        suggestions=outcome["suggestions"],
        completed=outcome["completed"],
        total=outcome["total"],
    )


# ──────────────────────────────────────────────────────────────────────────────
# POST / — Create a session and its host participant
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "",
    response_model=SessionCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a planning session",
)
async def create_session(
    payload: Optional[SessionCreate] = None,
    service: SessionService = Depends(get_session_service),
) -> SessionCreateResponse:
    """Create an ``active`` session plus the host participant.

    The returned ``joinUrl`` and ``inviteToken`` are what the host shares;
    the session id itself is never needed by guests.
    """
    payload = payload or SessionCreate()
    session, host = await service.create_session(
        display_name=payload.display_name,
        group_size_hint=payload.group_size_hint,
        location=payload.location,
    )
    return SessionCreateResponse(
        session_id=session.id,
        invite_token=session.invite_token,
        join_url=service.join_url(session.invite_token),
        host_participant_id=host.id,
        expires_at=session.expires_at,
    )


# ──────────────────────────────────────────────────────────────────────────────
# GET /{session_id}/invite — Invite link for the host to share
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/{session_id}/invite",
    response_model=InviteResponse,
    summary="Get invite info",
)
async def get_invite(
    session_id: str,
    service: SessionService = Depends(get_session_service),
) -> InviteResponse:
    invite = await service.get_invite(session_id)
    return InviteResponse(**invite)


# ──────────────────────────────────────────────────────────────────────────────
# GET /{session_id}/status — Session snapshot
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/{session_id}/status",
    response_model=SessionSnapshot,
    summary="Get session status",
)
async def get_status(
    session_id: str,
    service: SessionService = Depends(get_session_service),
) -> SessionSnapshot:
    """Participants, completion counts and the current group decision.

    Provisional and final matches are recomputed from the participant
    rows on every call; suggestions are the last stored ones.
    """
    return await service.get_snapshot(session_id)


# ──────────────────────────────────────────────────────────────────────────────
# POST /{session_id}/swipes — Submit a participant's preferences
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/{session_id}/swipes",
    response_model=DecisionResponse,
    summary="Submit preferences",
)
async def submit_swipes(
    session_id: str,
    payload: PreferencesSubmit,
    service: SessionService = Depends(get_session_service),
) -> DecisionResponse:
    log = logger.bind(session_id=session_id, participant_id=payload.participant_id)
    log.info("submit_swipes_start", top_vibes=payload.top_vibes)

    outcome = await service.submit_preferences(
        session_id=session_id,
        participant_id=payload.participant_id,
        raw_swipes=payload.raw_swipes,
        top_vibes=payload.top_vibes,
    )

    log.info(
        "submit_swipes_complete",
        provisional=outcome["provisional"],
        final=outcome["final"],
    )
    return _decision_response(outcome)


# ──────────────────────────────────────────────────────────────────────────────
# POST /{session_id}/participants/{participant_id}/start — Begin swiping
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/{session_id}/participants/{participant_id}/start",
    response_model=ParticipantStateResponse,
    summary="Mark a participant as swiping",
)
async def start_swiping(
    session_id: str,
    participant_id: str,
    service: SessionService = Depends(get_session_service),
) -> ParticipantStateResponse:
    participant = await service.start_swiping(session_id, participant_id)
    return ParticipantStateResponse(participant_id=participant.id, state=participant.state)


# ──────────────────────────────────────────────────────────────────────────────
# POST /{session_id}/compute — Explicit recompute
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/{session_id}/compute",
    response_model=DecisionResponse,
    summary="Recompute the group decision",
)
async def compute(
    session_id: str,
    service: SessionService = Depends(get_session_service),
) -> DecisionResponse:
    outcome = await service.recompute(session_id)
    return _decision_response(outcome)
