import pytest
from fastapi.testclient import TestClient

from conftest import FakeGenerator
from recruit_triage.config import Settings
from recruit_triage.main import app
from recruit_triage.routers.triage import get_pipeline
from recruit_triage.tiered_extraction import TieredExtractor
from recruit_triage.triage_pipeline import TriagePipeline


@pytest.fixture
def generator():
    return FakeGenerator({"job_title": "Chief Astronaut", "category": "Developer", "confidence": 0.99})


@pytest.fixture
def client(generator):
    pipeline = TriagePipeline(TieredExtractor(generator, None, Settings()))
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_extract_fast_path(client, generator):
    r = client.post("/api/triage/extract", json={"subject": "Application for Senior Backend Developer", "body": ""})
    assert r.status_code == 200
    data = r.json()
    assert data["job_title"] == "Senior Backend Developer"
    assert data["category"] == "Developer"
    assert data["experience_status"] == "unclear"
    assert data["source_tier"] == "fast_path"
    assert generator.calls == 0


def test_extract_never_returns_ungrounded_title(client):
    r = client.post("/api/triage/extract", json={
        "subject": "Re: Opportunity",
        "body": "Hello, I saw your post and would like to know if there are any openings for me.",
    })
    assert r.status_code == 200
    assert r.json()["job_title"] == "unclear"
    assert r.json()["confidence"] < 0.5


def test_process_routes_email(client):
    r = client.post("/api/triage/process", json={
        "email_id": "m1",
        "subject": "Application for Web Designer",
        "body": "",
        "attachments": [{"filename": "Jane_Resume.pdf"}, {"filename": "Cover Letter.pdf"}],
    })
    assert r.status_code == 200
    data = r.json()
    assert data["has_resume"] is True
    assert data["has_cover_letter"] is True
    assert data["extraction"]["category"] == "Web Designer"
    assert data["next_action"] == "send_questionnaire"
    assert data["template_id"] == "templates-request_key_details-creative"
    assert data["add_labels"] == ["Web Designer", "Stage1 Interview"]


def test_batch_marks_duplicates(client):
    payload = [{"email_id": "d1", "subject": "Hello", "body": "Hi"}]
    assert client.post("/api/triage/batch", json=payload).json()[0]["next_action"] == "request_missing_info"
    assert client.post("/api/triage/batch", json=payload).json()[0]["next_action"] == "skipped_duplicate"


def test_invalid_payload_is_rejected(client):
    assert client.post("/api/triage/extract", json={"subject": ["not", "a", "string"]}).status_code == 422
