from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import build_repository

from assessment_app.constants.assessment_constants import TAKE_TEST_ACTION
from assessment_app.core.assessment_manager import AssessmentManager
from assessment_app.core.services.access_control import StaticAccessControl
from assessment_app.server.api_server import create_api_app


@pytest.fixture
def client(response_store, score_store, scheduler):
    access = StaticAccessControl(superusers={"admin"})
    access.grant("therapist", 1, {TAKE_TEST_ACTION})
    manager = AssessmentManager(
        content=build_repository({1: [[0, 1]]}),
        responses=response_store,
        scores=score_store,
        access=access,
        scheduler=scheduler,
        timeout_seconds=None,
    )
    return TestClient(create_api_app(manager))


def test_session_flow(client, scheduler):
    started = client.post("/sessions", params={"actor": "therapist"}, json={"patient_id": 1})
    assert started.status_code == 201
    view = started.json()
    assert view["state"] == "presenting"
    assert view["prompt"] == "L1 S1 Q1"
    assert view["prompt_html"] == "<p>L1 S1 Q1</p>\n"

    picked = client.post(
        "/sessions/1/select",
        params={"actor": "therapist"},
        json={"image_id": view["images"][0]["id"]},
    )
    assert picked.status_code == 200
    assert picked.json()["saved"] is True
    assert picked.json()["answered"] is True

    moved = client.post("/sessions/1/next", params={"actor": "therapist"})
    assert moved.json()["changed"] is True
    assert moved.json()["question_number"] == 2

    blocked = client.post("/sessions/1/next", params={"actor": "therapist"})
    assert blocked.status_code == 200
    assert blocked.json()["changed"] is False

    back = client.post("/sessions/1/previous", params={"actor": "therapist"})
    assert back.json()["question_number"] == 1

    ended = client.post("/sessions/1/exit", params={"actor": "therapist"})
    assert ended.json() == {"state": "ended", "ended": True, "changed": True}


def test_error_mapping(client):
    client.post("/sessions", params={"actor": "therapist"}, json={"patient_id": 1})

    assert client.post("/sessions/1/select", params={"actor": "therapist"}, json={"image_id": 999}).status_code == 422
    assert client.get("/sessions/1", params={"actor": "stranger"}).status_code == 403
    assert client.get("/sessions/2", params={"actor": "admin"}).status_code == 404
    assert client.get("/reports/nope", params={"actor": "admin"}).status_code == 404


def test_scoring_and_reports(client):
    client.post("/sessions", params={"actor": "therapist"}, json={"patient_id": 1})
    session = client.get("/sessions/1", params={"actor": "therapist"}).json()
    client.post("/sessions/1/select", params={"actor": "therapist"}, json={"image_id": session["images"][0]["id"]})

    assert client.post("/patients/1/score", params={"actor": "therapist"}).status_code == 403
    scored = client.post("/patients/1/score", params={"actor": "admin"})
    assert scored.status_code == 200
    assert scored.json()["score"] == 1

    listed = client.get("/patients/1/reports", params={"actor": "admin"}).json()["reports"]
    assert [report["id"] for report in listed] == [scored.json()["report_id"]]
    detail = listed[0]["detail"][0]
    assert detail["question_text"] == "L1 S1 Q1"
    assert detail["is_correct"] is True
    assert [image["label"] for image in detail["images"]] == ["A", "B"]

    single = client.get(f"/reports/{listed[0]['id']}", params={"actor": "admin"}).json()
    assert single == listed[0]

    future = client.get(
        "/patients/1/reports",
        params={"actor": "admin", "start_date": "2999-01-01T00:00:00Z"},
    ).json()
    assert future == {"reports": []}


def test_patient_registration(client):
    created = client.post("/patients", json={"patient_id": 5, "display_name": "Meera"})
    assert created.status_code == 201
    assert created.json() == {"id": 5, "display_name": "Meera", "score": 0}
    assert client.post("/patients", json={"patient_id": 5, "display_name": "Meera"}).status_code == 422
    assert client.get("/patients/5", params={"actor": "admin"}).json()["display_name"] == "Meera"
