"""
VibePlan — Join API

Public endpoints addressed by invite token.  Guests never see the
session id until they have joined.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Response, status

from vibeplan.api.deps import get_session_service
from vibeplan.schemas.session import JoinPreviewResponse, JoinRequest, JoinResponse
from vibeplan.services.session_service import SessionService
from vibeplan.utils.tokens import mask_token

logger = structlog.get_logger("vibeplan.api.join")

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# GET /{token} — Invite preview
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/{token}",
    response_model=JoinPreviewResponse,
    summary="Preview an invite",
)
async def preview_invite(
    token: str,
    service: SessionService = Depends(get_session_service),
) -> JoinPreviewResponse:
    preview = await service.preview_invite(token)
    return JoinPreviewResponse(**preview)


# ──────────────────────────────────────────────────────────────────────────────
# POST /{token} — Join a session
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/{token}",
    response_model=JoinResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Join a session by invite token",
)
async def join_session(
    token: str,
    response: Response,
    payload: Optional[JoinRequest] = None,
    service: SessionService = Depends(get_session_service),
) -> JoinResponse:
    """Add the caller as a participant.

    A device that already joined gets its existing participant back with
    ``200`` instead of ``201``.
    """
    payload = payload or JoinRequest()
    log = logger.bind(invite_token=mask_token(token))

    session, participant, created = await service.join_session(
        token,
        display_name=payload.display_name,
        device_fingerprint=payload.device_fingerprint,
    )
    if not created:
        response.status_code = status.HTTP_200_OK

    log.info("join_complete", session_id=session.id, participant_id=participant.id, created=created)
    return JoinResponse(
        participant_id=participant.id,
        session_id=session.id,
        rejoined=not created,
    )
