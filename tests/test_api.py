"""HTTP-level tests for the sessions and join endpoints."""
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from vibeplan.config import Settings
from vibeplan.errors import StorageError
from vibeplan.main import create_app


@pytest.fixture
def client():
    settings = Settings(_env_file=None, STORAGE_BACKEND="memory")
    with TestClient(create_app(settings)) as test_client:
        yield test_client


def _create(client, **body):
    response = client.post("/api/v1/sessions", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def _join(client, token, **body):
    response = client.post(f"/api/v1/join/{token}", json=body)
    assert response.status_code in (200, 201), response.text
    return response.json()


class TestHealth:
    def test_liveness(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_deep(self, client):
        body = client.get("/health/deep").json()
        assert body["status"] == "healthy"
        assert body["backend"] == "memory"
        assert body["durable"] is False

    def test_deep_degraded(self, client):
        client.app.state.gateway.ping = AsyncMock(side_effect=StorageError("down"))
        body = client.get("/health/deep").json()
        assert body["status"] == "degraded"


class TestCreateAndInvite:
    def test_create_session(self, client):
        body = _create(client, displayName="Alex", groupSizeHint=4, location={"lat": 1.5, "lng": 2.5})
        assert set(body) == {"sessionId", "inviteToken", "joinUrl", "hostParticipantId", "expiresAt"}
        assert body["joinUrl"] == f"/s/{body['inviteToken']}"

    def test_create_without_body(self, client):
        response = client.post("/api/v1/sessions")
        assert response.status_code == 201

    @pytest.mark.parametrize(
        "payload",
        [
            {"groupSizeHint": 0},
            {"groupSizeHint": 13},
            {"displayName": ""},
            {"location": {"lat": 91, "lng": 0}},
        ],
    )
    def test_create_validation(self, client, payload):
        response = client.post("/api/v1/sessions", json=payload)
        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"

    def test_invite_info(self, client):
        created = _create(client)
        response = client.get(f"/api/v1/sessions/{created['sessionId']}/invite")
        assert response.status_code == 200
        assert response.json() == {
            "joinUrl": created["joinUrl"],
            "inviteToken": created["inviteToken"],
        }

    def test_invite_unknown_session(self, client):
        response = client.get("/api/v1/sessions/does-not-exist/invite")
        assert response.status_code == 404
        body = response.json()
        assert body["code"] == "session_not_found"
        assert body["retryable"] is False


class TestJoin:
    def test_preview_then_join(self, client):
        created = _create(client)
        token = created["inviteToken"]

        preview = client.get(f"/api/v1/join/{token}").json()
        assert set(preview) == {"status", "expiresAt", "participantCount"}
        assert preview["expiresAt"] == created["expiresAt"]
        assert preview["status"] == "active"
        assert preview["participantCount"] == 1

        response = client.post(f"/api/v1/join/{token}", json={"displayName": "Sam"})
        assert response.status_code == 201
        joined = response.json()
        assert joined["sessionId"] == created["sessionId"]
        assert joined["rejoined"] is False

    def test_same_device_gets_200(self, client):
        token = _create(client)["inviteToken"]
        first = client.post(f"/api/v1/join/{token}", json={"deviceFingerprint": "dev-1"})
        second = client.post(f"/api/v1/join/{token}", json={"deviceFingerprint": "dev-1"})
        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json()["participantId"] == first.json()["participantId"]

    @pytest.mark.parametrize("token", ["abcdefghijk1", "bad", "0000000000OO"])
    def test_unknown_token(self, client, token):
        response = client.post(f"/api/v1/join/{token}", json={})
        assert response.status_code == 404
        assert response.json()["code"] == "invalid_token"


class TestSwipes:
    def test_full_flow(self, client):
        created = _create(client)
        sid, host_id = created["sessionId"], created["hostParticipantId"]
        guest_id = _join(client, created["inviteToken"])["participantId"]

        start = client.post(f"/api/v1/sessions/{sid}/participants/{guest_id}/start")
        assert start.json() == {"participantId": guest_id, "state": "swiping"}

        first = client.post(
            f"/api/v1/sessions/{sid}/swipes",
            json={"participantId": host_id, "rawSwipes": {"chill-social": 1}, "topVibes": ["chill-social", "lowkey-game"]},
        ).json()
        assert first["provisional"] is False
        assert first["match"] == {"key": "chill-social", "confidence": 1.0}

        second = client.post(
            f"/api/v1/sessions/{sid}/swipes",
            json={"participantId": guest_id, "rawSwipes": {}, "topVibes": ["lowkey-game", None, "chill-social"]},
        ).json()
        # chill-social: 3 + 1 = 4, lowkey-game: 2 + 3 = 5 of 6
        assert second["match"] == {"key": "lowkey-game", "confidence": 0.83}
        assert second["provisional"] is True
        assert second["final"] is True
        assert second["completed"] == 2 and second["total"] == 2
        assert second["suggestions"][0]["title"] == "Low-rules party game"

        status = client.get(f"/api/v1/sessions/{sid}/status").json()
        assert status["status"] == "matched"
        assert status["counts"] == {"completed": 2, "total": 2}
        assert status["finalMatch"] == second["match"]
        assert status["provisionalMatch"] == second["match"]
        assert [p["name"] for p in status["participants"]] == ["Host", "Guest"]
        assert status["suggestions"] == second["suggestions"]

        recomputed = client.post(f"/api/v1/sessions/{sid}/compute").json()
        assert recomputed["match"] == second["match"]

    def test_catalogue_suggestions_carry_description(self, client):
        created = _create(client)
        sid, host_id = created["sessionId"], created["hostParticipantId"]
        body = client.post(
            f"/api/v1/sessions/{sid}/swipes",
            json={"participantId": host_id, "topVibes": ["chill-social|lowkey-game"]},
        ).json()
        assert body["suggestions"][0] == {
            "title": "Board Game Cafe",
            "description": "Cozy spot with coffee and strategy games",
            "url": None,
        }

    @pytest.mark.parametrize(
        "payload",
        [
            {"topVibes": ["a"]},
            {"participantId": "p", "topVibes": []},
            {"participantId": "p", "topVibes": [None, None]},
            {"participantId": "p", "topVibes": ["a", "b", "c", "d"]},
            {"participantId": "p", "topVibes": ["a", "a"]},
            {"participantId": "p", "topVibes": [""]},
            {"participantId": "p", "topVibes": ["a"], "rawSwipes": {"a": "yes"}},
        ],
    )
    def test_payload_validation(self, client, payload):
        sid = _create(client)["sessionId"]
        response = client.post(f"/api/v1/sessions/{sid}/swipes", json=payload)
        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"

    def test_participant_from_other_session(self, client):
        first = _create(client)
        second = _create(client)
        response = client.post(
            f"/api/v1/sessions/{second['sessionId']}/swipes",
            json={"participantId": first["hostParticipantId"], "topVibes": ["a"]},
        )
        assert response.status_code == 404
        assert response.json()["code"] == "participant_not_found"

    def test_storage_failure_is_retryable_503(self, client):
        sid = _create(client)["sessionId"]
        client.app.state.gateway.store.get_session = AsyncMock(side_effect=OSError("connection reset"))
        response = client.get(f"/api/v1/sessions/{sid}/status")
        assert response.status_code == 503
        assert response.json() == {
            "detail": "Storage operation 'get_session' failed.",
            "code": "storage_unavailable",
            "retryable": True,
        }
