"""API route tests using FastAPI's TestClient and a scripted service."""

import pytest
from fastapi.testclient import TestClient

from velvet.llm import MISSING_KEY_MESSAGE, FailureKind, GenerationError, ImageAsset

from tests.helpers import StubService, verification

PROFILE = {
    "name": "Mika",
    "bio": "I like quiet mornings.",
    "personality": "Zen & Minimalist",
    "interests": ["Tea"],
    "tone": "Calm",
    "pace": 1,
}


@pytest.fixture
def service() -> StubService:
    return StubService()


@pytest.fixture
def client(data_dir, service) -> TestClient:
    from backend.app import create_app

    return TestClient(create_app(data_dir, service=service))


@pytest.fixture
def session_id(client) -> str:
    resp = client.post("/api/sessions", json=PROFILE)
    assert resp.status_code == 200
    return resp.json()["id"]


@pytest.fixture
def keyless_client(data_dir) -> TestClient:
    from backend.app import create_app

    return TestClient(create_app(data_dir))


# ── settings ─────────────────────────────────────────────────


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_get_settings_hides_key(client):
    client.put("/api/settings/api-key", json={"api_key": "secret"})
    data = client.get("/api/settings").json()
    assert "api_key" not in data
    assert data["has_api_key"] is True


def test_patch_settings(client):
    resp = client.patch("/api/settings", json={"refine_passes": 2, "text_model": "m"})
    assert resp.status_code == 200
    assert resp.json()["refine_passes"] == 2
    assert client.get("/api/settings").json()["text_model"] == "m"


def test_patch_settings_validates(client):
    assert client.patch("/api/settings", json={"refine_passes": 0}).status_code == 422


def test_api_key_set_and_clear(keyless_client):
    assert keyless_client.get("/api/health").json()["has_api_key"] is False
    keyless_client.put("/api/settings/api-key", json={"api_key": "k"})
    assert keyless_client.get("/api/health").json()["has_api_key"] is True
    keyless_client.delete("/api/settings/api-key")
    assert keyless_client.get("/api/health").json()["has_api_key"] is False


def test_blank_api_key_rejected(client):
    assert client.put("/api/settings/api-key", json={"api_key": " "}).status_code == 422


def test_presets(client):
    data = client.get("/api/presets").json()
    assert "Make it Dark Mode" in data["visual_mutations"]
    assert data["headline_tones"] == ["Punchy", "Mysterious", "Friendly", "Corporate"]
    assert data["subheadline_tones"] == ["Detailed", "Concise", "Emotional", "Data-focused"]


# ── credentials ──────────────────────────────────────────────


def test_missing_key_is_503(keyless_client):
    resp = keyless_client.post("/api/calibrate", json={"name": "Mika", "bio": "b"})
    assert resp.status_code == 503
    assert resp.json()["detail"] == MISSING_KEY_MESSAGE
    assert keyless_client.post("/api/sessions", json=PROFILE).status_code == 503


def test_missing_key_mid_cycle_is_503(client, service):
    service.responses["blueprint"] = GenerationError(FailureKind.MISSING_CREDENTIAL, "no key")
    assert client.post("/api/sessions", json=PROFILE).status_code == 503


# ── calibration & sessions ───────────────────────────────────


def test_calibrate(client):
    resp = client.post("/api/calibrate", json={"name": "Mika", "bio": "I like tea."})
    assert resp.status_code == 200
    data = resp.json()
    assert data["personality"] == "Zen & Minimalist"
    assert data["pace"] == 2


def test_calibrate_blank_bio(client):
    assert client.post("/api/calibrate", json={"name": "Mika", "bio": " "}).status_code == 422


def test_create_session_runs_cycle(client):
    resp = client.post("/api/sessions", json=PROFILE)
    data = resp.json()
    assert data["stage"] == "COMPLETE"
    assert data["draft"]["verification"]["score"] == 90
    assert data["draft"]["content"]["hero_image_url"].startswith("data:image/png;base64,")
    assert data["logs"][0]["message"] == "Analyzing vector: Zen & Minimalist | Pace: 1"


def test_create_session_validates_pace(client):
    assert client.post("/api/sessions", json={**PROFILE, "pace": 9}).status_code == 422


def test_failed_cycle_is_reported(client, service):
    service.responses["verify"] = GenerationError(FailureKind.TRANSPORT, "down")
    data = client.post("/api/sessions", json=PROFILE).json()
    assert data["stage"] == "IDLE"
    assert data["failure"]["kind"] == "transport"


def test_unknown_session_is_404(client):
    assert client.get("/api/sessions/nope").status_code == 404
    assert client.post("/api/sessions/nope/remix").status_code == 404


def test_get_and_reset_session(client, session_id):
    assert client.get(f"/api/sessions/{session_id}").json()["id"] == session_id
    assert client.delete(f"/api/sessions/{session_id}").status_code == 200
    assert client.get(f"/api/sessions/{session_id}").status_code == 404


# ── tools ────────────────────────────────────────────────────


def test_remix(client, session_id):
    data = client.post(f"/api/sessions/{session_id}/remix").json()
    assert data["stage"] == "COMPLETE"
    assert data["memory"][0]["type"] == "REMIX"
    assert data["memory"][0]["status"] == "confirmed"


def test_remix_not_permitted_is_409(client, service):
    service.responses["verify"] = GenerationError(FailureKind.TRANSPORT, "down")
    sid = client.post("/api/sessions", json=PROFILE).json()["id"]
    assert client.post(f"/api/sessions/{sid}/remix").status_code == 409


def test_chat(client, session_id):
    data = client.post(f"/api/sessions/{session_id}/chat", json={"message": "Hi?"}).json()
    assert data["reply"] == "I would read this slowly, twice."
    assert [m["role"] for m in data["chat_history"]] == ["user", "persona"]


def test_chat_before_draft_is_409(client, service):
    service.responses["blueprint"] = GenerationError(FailureKind.TRANSPORT, "down")
    sid = client.post("/api/sessions", json=PROFILE).json()["id"]
    assert client.post(f"/api/sessions/{sid}/chat", json={"message": "Hi"}).status_code == 409


def test_visual(client, session_id):
    resp = client.post(f"/api/sessions/{session_id}/visual", json={"instruction": "Make it Dark Mode"})
    data = resp.json()
    assert data["applied"] is True
    assert data["session"]["draft"]["design"]["background_color"] == "#000000"


def test_copy(client, session_id):
    resp = client.post(
        f"/api/sessions/{session_id}/copy", json={"target": "headline", "tone": "Punchy"}
    )
    assert resp.json()["session"]["draft"]["content"]["headline"] == "Still. Sharp. Yours."


def test_copy_unknown_target_is_422(client, session_id):
    resp = client.post(f"/api/sessions/{session_id}/copy", json={"target": "cta", "tone": "Punchy"})
    assert resp.status_code == 422


def test_image_edit(client, session_id):
    resp = client.post(
        f"/api/sessions/{session_id}/image-edit",
        json={"target": "product", "instruction": "in walnut", "index": 0},
    )
    assert resp.status_code == 200
    concepts = resp.json()["session"]["draft"]["content"]["product_concepts"]
    assert concepts[0]["image_url"] == ImageAsset(data=b"png:edit_image").data_url


def test_image_edit_bad_slot_is_409(client, session_id):
    resp = client.post(
        f"/api/sessions/{session_id}/image-edit",
        json={"target": "product", "instruction": "in walnut", "index": 5},
    )
    assert resp.status_code == 409


def test_third_interaction_applies_drift(client, service, session_id):
    service.responses["drift"] = {
        "hasDrifted": True,
        "newProfile": {"tone": "Punchy"},
        "reasoning": "Bolder every time",
        "detectedPattern": "Prefers punchy copy",
    }
    for _ in range(3):
        client.post(f"/api/sessions/{session_id}/copy", json={"target": "headline", "tone": "Punchy"})
    data = client.get(f"/api/sessions/{session_id}").json()
    assert data["profile"]["tone"] == "Punchy"
    assert data["drift_alert"]["pattern"] == "Prefers punchy copy"

    client.delete(f"/api/sessions/{session_id}/drift-alert")
    assert client.get(f"/api/sessions/{session_id}").json()["drift_alert"] is None


def test_clear_memory(client, session_id, data_dir):
    client.post(f"/api/sessions/{session_id}/chat", json={"message": "Hi?"})
    assert list((data_dir / "memory").glob("mika-*.json"))
    client.delete(f"/api/sessions/{session_id}/memory")
    assert client.get(f"/api/sessions/{session_id}").json()["memory"] == []
    assert not list((data_dir / "memory").glob("mika-*.json"))


# ── thumbnail ────────────────────────────────────────────────


def test_thumbnail_download(client, session_id):
    assert client.get(f"/api/sessions/{session_id}/thumbnail").status_code == 404
    assert client.post(f"/api/sessions/{session_id}/thumbnail").json() == {"ok": True}
    resp = client.get(f"/api/sessions/{session_id}/thumbnail")
    assert resp.status_code == 200
    assert resp.content == b"png:thumbnail"
    assert resp.headers["content-type"] == "image/png"
    assert 'filename="Velvet_Project_Mika.png"' in resp.headers["content-disposition"]


def test_refinement_visible_over_http(client, service):
    service.responses["verify"] = verification(60, False, paceFriction=True)
    data = client.post("/api/sessions", json=PROFILE).json()
    assert data["draft"]["verification"] == {
        **data["draft"]["verification"], "score": 75, "aligned": True,
    }
