"""Tests for the HTTP surface."""

import json

import pytest
from fastapi.testclient import TestClient

from conftest import PET_SURVEY, TENANT
from survey_engine.core.config import Settings
from survey_engine.main import create_app

HEADERS = {"X-Tenant-ID": TENANT}


def build_settings(tmp_path, **overrides):
    definitions = tmp_path / "surveys"
    definitions.mkdir(exist_ok=True)
    (definitions / "pets.json").write_text(json.dumps(PET_SURVEY), encoding="utf-8")
    fields = dict(
        definitions_path=definitions,
        responses_path=tmp_path / "responses",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
        admin_username="admin",
        admin_password="secret",
    )
    fields.update(overrides)
    return Settings(**fields)


@pytest.fixture
def client(tmp_path):
    with TestClient(create_app(build_settings(tmp_path))) as test_client:
        yield test_client


def start_session(client):
    response = client.post(
        "/api/sessions", json={"surveyId": "pets", "participantId": "p-1"}, headers=HEADERS
    )
    assert response.status_code == 201
    return response.json()["sessionId"]


def submit(client, session_id, question_id, value):
    return client.post(
        f"/api/sessions/{session_id}/responses",
        json={"questionId": question_id, "value": value},
        headers=HEADERS,
    )


def admin_headers(client):
    token = client.post("/api/admin/login", json={"username": "admin", "password": "secret"}).json()
    return {**HEADERS, "Authorization": f"Bearer {token['access_token']}"}


class TestBasics:
    def test_root_and_health(self, client):
        assert client.get("/").status_code == 200
        health = client.get("/health")
        assert health.status_code == 200
        assert health.json() == {"status": "ok", "storage": "filesystem"}

    def test_list_surveys(self, client):
        response = client.get("/api/surveys", headers=HEADERS)
        assert response.status_code == 200
        assert response.json() == [
            {
                "id": "pets",
                "title": "Pets",
                "description": "Questions about pets",
                "estimatedDuration": "5 minutes",
                "questionCount": 6,
            }
        ]

    def test_missing_tenant_header(self, client):
        response = client.get("/api/surveys")
        assert response.status_code == 400
        assert response.json() == {
            "detail": "Tenant ID is required for this operation",
            "code": "InvalidRequest",
            "context": {},
        }


class TestConversation:
    def test_start_session(self, client):
        response = client.post(
            "/api/sessions",
            json={"surveyId": "pets", "participantId": "p-1", "metadata": {"source": "test"}},
            headers=HEADERS,
        )
        body = response.json()
        assert response.status_code == 201
        assert body["sessionId"].startswith("sess_")
        assert body["survey"]["totalQuestions"] == 6
        assert [q["id"] for q in body["nextSuggestedQuestions"]] == ["Q1", "Q4", "Q5"]
        assert body["allQuestions"][1]["currentlyEligible"] is False
        assert "Q1" in body["guidanceForLLM"]
        assert "guidanceForLlm" not in body

    def test_unknown_survey_is_404(self, client):
        response = client.post(
            "/api/sessions", json={"surveyId": "nope", "participantId": "p-1"}, headers=HEADERS
        )
        assert response.status_code == 404
        assert response.json()["code"] == "NotFound"

    def test_get_question(self, client):
        session_id = start_session(client)
        response = client.get(f"/api/sessions/{session_id}/questions/Q2", headers=HEADERS)
        body = response.json()
        assert response.status_code == 200
        assert body["question"]["currentlyEligible"] is False
        assert body["question"]["eligibilityReason"] == "Conditional: depends on unanswered question Q1"
        assert "Do not ask question Q2" in body["guidanceForLLM"]

    def test_submit_unlocks_follow_up(self, client):
        session_id = start_session(client)
        response = submit(client, session_id, "Q1", True)
        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["updatedEligibility"][0]["questionId"] == "Q2"
        assert body["updatedEligibility"][0]["nowEligible"] is True
        assert body["progress"]["percentComplete"] == 17
        assert "Newly available questions: Q2" in body["guidanceForLLM"]

    def test_validation_failure_is_returned_as_data(self, client):
        session_id = start_session(client)
        response = submit(client, session_id, "Q5", 2)
        body = response.json()
        assert response.status_code == 200
        assert body["success"] is False
        assert body["validation"]["errors"][0]["constraint"] == "step"
        assert "ask the question again" in body["guidanceForLLM"]

    def test_ineligible_question_is_400(self, client):
        session_id = start_session(client)
        response = submit(client, session_id, "Q2", "Rex")
        assert response.status_code == 400
        assert response.json()["context"]["questionId"] == "Q2"

    def test_unknown_session_is_404(self, client):
        response = client.get("/api/sessions/sess_missing/progress", headers=HEADERS)
        assert response.status_code == 404

    def test_progress_complete_and_resume(self, client):
        session_id = start_session(client)
        submit(client, session_id, "Q1", True)

        progress = client.get(f"/api/sessions/{session_id}/progress", headers=HEADERS).json()
        assert progress["canComplete"] is False
        assert progress["completionBlockers"][0]["questionId"] == "Q2"

        blocked = client.post(f"/api/sessions/{session_id}/complete", headers=HEADERS)
        assert blocked.status_code == 400
        assert blocked.json()["context"]["blockers"][0]["type"] == "required-question"

        resumed = client.post(f"/api/sessions/{session_id}/resume", headers=HEADERS).json()
        assert resumed["elapsedTimeSinceLastActivity"] == "0 minutes"
        assert resumed["answeredQuestions"] == [{"id": "Q1", "text": "Do you own a pet?", "answer": True}]

        submit(client, session_id, "Q2", "Rex")
        done = client.post(f"/api/sessions/{session_id}/complete", headers=HEADERS)
        assert done.status_code == 200
        assert done.json()["session"]["status"] == "completed"
        assert done.json()["summary"]["answeredQuestions"] == 2
        assert "Thank the participant" in done.json()["guidanceForLLM"]

        again = client.post(f"/api/sessions/{session_id}/complete", headers=HEADERS)
        assert again.status_code == 400


class TestAdmin:
    def test_login(self, client):
        bad = client.post("/api/admin/login", json={"username": "admin", "password": "wrong"})
        assert bad.status_code == 401
        good = client.post("/api/admin/login", json={"username": "admin", "password": "secret"})
        assert good.json() == {"access_token": "static-admin-token-for-admin", "token_type": "bearer"}

    def test_export_requires_token(self, client):
        response = client.post("/api/admin/surveys/pets/export", json={"format": "json"}, headers=HEADERS)
        assert response.status_code == 401
        wrong = client.post(
            "/api/admin/surveys/pets/export",
            json={"format": "json"},
            headers={**HEADERS, "Authorization": "Bearer nope"},
        )
        assert wrong.status_code == 401

    def test_json_export(self, client):
        start_session(client)
        response = client.post(
            "/api/admin/surveys/pets/export",
            json={"format": "json", "filters": {"status": "in-progress"}},
            headers=admin_headers(client),
        )
        body = response.json()
        assert response.status_code == 200
        assert body["recordCount"] == 1
        assert json.loads(body["data"])[0]["surveyId"] == "pets"

    def test_csv_download(self, client):
        session_id = start_session(client)
        submit(client, session_id, "Q1", False)
        response = client.get("/api/admin/surveys/pets/export/csv", headers=admin_headers(client))
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "survey_pets_export.csv" in response.headers["content-disposition"]
        header, row = response.text.split("\n")
        assert header.endswith("Q1,Q2,Q3,Q4,Q5,Q6")
        assert row.startswith(f'"{session_id}"')


class TestDatabaseStorage:
    def test_session_flow_against_sqlite(self, tmp_path):
        settings = build_settings(tmp_path, storage="database")
        with TestClient(create_app(settings)) as client:
            assert client.get("/health").json() == {"status": "ok", "storage": "database"}
            session_id = start_session(client)
            assert submit(client, session_id, "Q1", True).json()["success"] is True
            progress = client.get(f"/api/sessions/{session_id}/progress", headers=HEADERS).json()
            assert progress["session"]["responses"]["Q1"]["value"] is True
            assert progress["session"]["version"] == 1
