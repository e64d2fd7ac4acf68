"""Tests for row <-> domain mapping used by the relational tier."""
import json
import uuid

from vibeplan.models.catalogue import RecommendationRow
from vibeplan.models.match import MatchRow
from vibeplan.schemas.core import Location, MatchRecord, MatchResult, Suggestion
from vibeplan.storage.mapping import (
    load_json_blob,
    match_record_values,
    participant_to_row,
    row_to_match_record,
    row_to_participant,
    row_to_recommendation,
    row_to_session,
    session_to_row,
)
from vibeplan.utils.timeutil import ms_to_datetime

T0 = 1_700_000_000_000


class TestSessionMapping:
    def test_location_is_split_into_columns(self, make_session):
        session = make_session(location=Location(lat=51.5, lng=-0.12), group_size_hint=4)
        row = session_to_row(session)
        assert row.location_lat == 51.5
        assert row.location_lng == -0.12
        assert row.expires_at == ms_to_datetime(session.expires_at)
        assert row_to_session(row) == session

    def test_missing_location(self, make_session):
        session = make_session()
        row = session_to_row(session)
        assert row.location_lat is None
        assert row_to_session(row).location is None


class TestParticipantMapping:
    def test_round_trip(self, make_participant):
        participant = make_participant(
            ["a", None, "c"],
            session_id=str(uuid.uuid4()),
            id=str(uuid.uuid4()),
            raw_swipes={"a": 1.0, "b": -1.0},
            display_name="Sam",
            version=3,
        )
        row = participant_to_row(participant)
        assert row.top_vibes == ["a", None, "c"]
        assert row_to_participant(row) == participant

    def test_text_blobs_are_decoded(self, make_participant):
        participant = make_participant(["a"], session_id=str(uuid.uuid4()), id=str(uuid.uuid4()))
        row = participant_to_row(participant)
        row.top_vibes = json.dumps(["a", "b"])
        row.raw_swipes = json.dumps({"a": 1})
        restored = row_to_participant(row)
        assert restored.top_vibes == ["a", "b"]
        assert restored.raw_swipes == {"a": 1.0}


class TestMatchMapping:
    def test_values_and_back(self):
        record = MatchRecord(
            id=str(uuid.uuid4()),
            session_id=str(uuid.uuid4()),
            group_vibe=MatchResult(key="a|b", confidence=0.83),
            suggestions=[Suggestion(title="Trivia", description="Pub quiz")],
            computed_at=T0,
        )
        values = match_record_values(record)
        assert values["group_vibe"] == {"key": "a|b", "confidence": 0.83}
        assert values["suggestions"] == [{"title": "Trivia", "description": "Pub quiz"}]
        assert row_to_match_record(MatchRow(**values)) == record


class TestRecommendationMapping:
    def test_desc_alias_accepted(self):
        row = RecommendationRow(
            vibe_combo_key="a|b",
            items=[{"title": "One", "desc": "first"}, {"title": "Two"}],
        )
        rec = row_to_recommendation(row)
        assert rec.vibe_combo_key == "a|b"
        assert rec.items[0].description == "first"
        assert rec.items[1].description is None

    def test_non_list_items_become_empty(self):
        row = RecommendationRow(vibe_combo_key="a", items=json.dumps({"oops": True}))
        assert row_to_recommendation(row).items == []


def test_load_json_blob_passthrough():
    assert load_json_blob({"a": 1}) == {"a": 1}
    assert load_json_blob('{"a": 1}') == {"a": 1}
    assert load_json_blob(None) is None
