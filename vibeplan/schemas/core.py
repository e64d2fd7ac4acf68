"""
VibePlan — Core domain types.

These are the objects every storage backend reads and writes.  Timestamps
are wall-clock epoch milliseconds; the relational tier converts them to
``timestamptz`` at its boundary.  Field names are snake_case in Python and
camelCase on the wire.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SessionStatus = Literal["active", "matched", "expired"]
ParticipantState = Literal["joined", "swiping", "completed"]

# Forward-only ordering of participant states.
PARTICIPANT_STATE_ORDER: dict[str, int] = {"joined": 0, "swiping": 1, "completed": 2}


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Location(CamelModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class Session(CamelModel):
    id: str
    invite_token: str
    status: SessionStatus = "active"
    created_at: int
    expires_at: int
    location: Optional[Location] = None
    group_size_hint: Optional[int] = None


class Participant(CamelModel):
    id: str
    session_id: str
    display_name: Optional[str] = None
    device_fingerprint: Optional[str] = None
    is_host: bool = False
    state: ParticipantState = "joined"
    # Rank position matters: ``None`` is an explicit gap at that rank.
    top_vibes: Optional[list[Optional[str]]] = None
    raw_swipes: Optional[dict[str, float]] = None
    created_at: int
    updated_at: int
    version: int = 1

    @property
    def has_ranking(self) -> bool:
        return bool(self.top_vibes) and any(self.top_vibes)


class MatchResult(CamelModel):
    key: str
    confidence: float


class Suggestion(CamelModel):
    title: str
    description: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("description", "desc"),
    )
    url: Optional[str] = None


class MatchRecord(CamelModel):
    id: str
    session_id: str
    group_vibe: MatchResult
    suggestions: list[Suggestion] = []
    computed_at: int


class Recommendation(CamelModel):
    vibe_combo_key: str
    items: list[Suggestion]


class Vibe(CamelModel):
    id: str
    title: str
    emoji: str
    tags: list[str] = []


class ParticipantSummary(CamelModel):
    id: str
    name: str
    state: ParticipantState


class SnapshotCounts(CamelModel):
    completed: int
    total: int


class SessionSnapshot(CamelModel):
    status: SessionStatus
    participants: list[ParticipantSummary]
    counts: SnapshotCounts
    provisional_match: Optional[MatchResult] = None
    final_match: Optional[MatchResult] = None
    suggestions: Optional[list[Suggestion]] = None
