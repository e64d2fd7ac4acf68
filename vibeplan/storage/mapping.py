"""
Row <-> domain conversion for the relational tier.

Domain objects carry epoch-millisecond timestamps; rows carry
``timestamptz``.  JSON blob columns may come back already decoded (JSONB)
or as text from older rows, so both are accepted.
"""

from __future__ import annotations

import json
from typing import Any

from vibeplan.models.catalogue import RecommendationRow
from vibeplan.models.match import MatchRow
from vibeplan.models.session import ParticipantRow, PlanSession
from vibeplan.schemas.core import (
    Location,
    MatchRecord,
    Participant,
    Recommendation,
    Session,
)
from vibeplan.utils.timeutil import datetime_to_ms, ms_to_datetime


def load_json_blob(value: Any) -> Any:
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


# ── Sessions ──────────────────────────────────────────────────────────────────

def row_to_session(row: PlanSession) -> Session:
    location = None
    if row.location_lat is not None and row.location_lng is not None:
        location = Location(lat=float(row.location_lat), lng=float(row.location_lng))
    return Session(
        id=str(row.id),
        invite_token=row.invite_token,
        status=row.status,
        created_at=datetime_to_ms(row.created_at),
        expires_at=datetime_to_ms(row.expires_at),
        location=location,
        group_size_hint=int(row.group_size_hint) if row.group_size_hint else None,
    )


def session_to_row(session: Session) -> PlanSession:
    return PlanSession(
        id=session.id,
        invite_token=session.invite_token,
        status=session.status,
        location_lat=session.location.lat if session.location else None,
        location_lng=session.location.lng if session.location else None,
        group_size_hint=session.group_size_hint,
        created_at=ms_to_datetime(session.created_at),
        expires_at=ms_to_datetime(session.expires_at),
    )


# ── Participants ──────────────────────────────────────────────────────────────

def row_to_participant(row: ParticipantRow) -> Participant:
    return Participant(
        id=str(row.id),
        session_id=str(row.session_id),
        display_name=row.display_name,
        device_fingerprint=row.device_fingerprint,
        is_host=bool(row.is_host),
        state=row.state,
        top_vibes=load_json_blob(row.top_vibes),
        raw_swipes=load_json_blob(row.raw_swipes),
        created_at=datetime_to_ms(row.created_at),
        updated_at=datetime_to_ms(row.updated_at),
        version=row.version or 1,
    )


def participant_values(participant: Participant) -> dict[str, Any]:
    """Column values for an INSERT or UPDATE of ``participant``."""
    return {
        "id": participant.id,
        "session_id": participant.session_id,
        "display_name": participant.display_name,
        "device_fingerprint": participant.device_fingerprint,
        "is_host": participant.is_host,
        "state": participant.state,
        "top_vibes": participant.top_vibes,
        "raw_swipes": participant.raw_swipes,
        "version": participant.version,
        "created_at": ms_to_datetime(participant.created_at),
        "updated_at": ms_to_datetime(participant.updated_at),
    }


def participant_to_row(participant: Participant) -> ParticipantRow:
    return ParticipantRow(**participant_values(participant))


# ── Matches ───────────────────────────────────────────────────────────────────

def row_to_match_record(row: MatchRow) -> MatchRecord:
    return MatchRecord(
        id=str(row.id),
        session_id=str(row.session_id),
        group_vibe=load_json_blob(row.group_vibe),
        suggestions=load_json_blob(row.suggestions) or [],
        computed_at=datetime_to_ms(row.computed_at),
    )


def match_record_values(record: MatchRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "session_id": record.session_id,
        "group_vibe": record.group_vibe.model_dump(mode="json"),
        "suggestions": [s.model_dump(mode="json", exclude_none=True) for s in record.suggestions],
        "computed_at": ms_to_datetime(record.computed_at),
    }


# ── Catalogue ─────────────────────────────────────────────────────────────────

def row_to_recommendation(row: RecommendationRow) -> Recommendation:
    items = load_json_blob(row.items)
    return Recommendation(
        vibe_combo_key=row.vibe_combo_key,
        items=items if isinstance(items, list) else [],
    )
