from typing import Optional

from pydantic import Field, FiniteFloat, field_validator

from vibeplan.schemas.core import CamelModel, Location, MatchResult, ParticipantState, SessionStatus, Suggestion


class SessionCreate(CamelModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    group_size_hint: Optional[int] = Field(default=None, ge=1, le=12)
    location: Optional[Location] = None


class SessionCreateResponse(CamelModel):
    session_id: str
    invite_token: str
    join_url: str
    host_participant_id: str
    expires_at: int


class InviteResponse(CamelModel):
    join_url: str
    invite_token: str


class JoinPreviewResponse(CamelModel):
    status: SessionStatus
    expires_at: int
    participant_count: int


class JoinRequest(CamelModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    device_fingerprint: Optional[str] = Field(default=None, min_length=1, max_length=255)


class JoinResponse(CamelModel):
    participant_id: str
    session_id: str
    rejoined: bool = False


class PreferencesSubmit(CamelModel):
    participant_id: str = Field(min_length=1)
    raw_swipes: dict[str, FiniteFloat] = {}
    # Position is rank: index 0 is the first choice, null leaves that rank empty.
    top_vibes: list[Optional[str]] = Field(min_length=1, max_length=3)

    @field_validator("top_vibes")
    @classmethod
    def _top_vibes_must_name_a_vibe(cls, v: list[Optional[str]]) -> list[Optional[str]]:
        if any(entry is not None and not entry.strip() for entry in v):
            raise ValueError("entries must be non-empty strings or null")
        named = [entry for entry in v if entry is not None]
        if not named:
            raise ValueError("at least one vibe must be ranked")
        if len(set(named)) != len(named):
            raise ValueError("a vibe may be ranked only once")
        return v


class DecisionResponse(CamelModel):
    provisional: bool
    final: bool
    match: Optional[MatchResult] = None
    suggestions: list[Suggestion] = []
    completed: int
    total: int


class ParticipantStateResponse(CamelModel):
    participant_id: str
    state: ParticipantState
