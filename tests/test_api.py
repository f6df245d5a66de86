"""Summary: API integration tests.

Importance: Validates FastAPI endpoints against the onboarding and learning workflows.
Alternatives: Use manual curl testing only.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi.testclient import TestClient

from inboxforge.api import create_app
from inboxforge.config import AppConfig


def _build_config(db_path: str, api_key: str = "") -> AppConfig:
    """Summary: Build an AppConfig for API tests.

    Importance: Ensures tests use isolated storage and a small refinement batch.
    Alternatives: Load AppConfig from environment variables.
    """

    return AppConfig(
        db_path=db_path,
        ai_provider="mock",
        openai_api_key=None,
        openai_model="gpt-4o-mini",
        ollama_url="http://localhost:11434",
        ollama_model="llama3.1",
        api_host="127.0.0.1",
        api_port=8000,
        api_key=api_key,
        gmail_api_base="https://gmail.googleapis.com",
        graph_api_base="https://graph.microsoft.com/v1.0",
        http_timeout_seconds=10,
        http_max_attempts=1,
        similarity_minor=0.9,
        similarity_moderate=0.7,
        similarity_major=0.4,
        refinement_threshold=2,
        min_voice_confidence=0.35,
        learning_lock_timeout_seconds=600,
        log_level="INFO",
    )


def _document() -> dict[str, Any]:
    return {
        "businessName": "Blue Lagoon Pools",
        "industryTypes": ["Pools"],
        "team": [{"name": "Alice", "email": "alice@bluelagoon.com", "roles": ["sales_manager"]}],
        "suppliers": [{"name": "Aqua Parts", "domains": ["aquaparts.com"]}],
    }


def _send_event(**overrides: Any) -> dict[str, Any]:
    event: dict[str, Any] = {
        "business_id": "biz-1",
        "email_id": "m-1",
        "thread_id": "t-1",
        "ai_draft_text": "Hi Sam,\n\nYour pool opening is booked for Monday.",
        "final_text": "Hi Sam,\n\nSorry for the delay! Your pool opening is booked for Monday.",
        "category": "Support",
    }
    event.update(overrides)
    return event


def test_api_health(tmp_path: Path) -> None:
    """Summary: Verify the health endpoint responds.

    Importance: Ensures API can be monitored in deployments.
    Alternatives: Use external uptime checks without a health endpoint.
    """

    client = TestClient(create_app(_build_config(str(tmp_path / "test.db"))))
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_api_requires_key_when_configured(tmp_path: Path) -> None:
    """Summary: Verify API key enforcement when a key is configured.

    Importance: Protects endpoints from unauthorized access.
    Alternatives: Disable authentication for local usage.
    """

    client = TestClient(create_app(_build_config(str(tmp_path / "test.db"), api_key="secret")))
    assert client.get("/health").status_code == 200
    assert client.get("/businesses/biz-1/config").status_code == 401
    assert client.get("/businesses/biz-1/config", headers={"X-API-Key": "wrong"}).status_code == 401
    response = client.get("/businesses/biz-1/config", headers={"X-API-Key": "secret"})
    assert response.status_code == 404


def test_api_config_prompt_and_taxonomy(tmp_path: Path) -> None:
    """Summary: Verify onboarding from configuration to a deployed prompt.

    Importance: This is the path every new business takes.
    Alternatives: Onboard through the CLI only.
    """

    client = TestClient(create_app(_build_config(str(tmp_path / "test.db"))))
    put_response = client.put("/businesses/biz-1/config", json=_document())
    assert put_response.status_code == 200
    assert put_response.json()["business_domains"] == ["bluelagoon.com"]
    assert client.get("/businesses/biz-1/config").json()["department_scope"] == ["all"]

    taxonomy = client.get("/businesses/biz-1/taxonomy").json()
    paths = [node["path"] for node in taxonomy]
    assert "Manager/Alice" in paths
    assert "Suppliers/Aqua Parts" in paths

    assert client.get("/businesses/biz-1/prompt").status_code == 404
    deployed = client.post("/businesses/biz-1/prompt").json()
    assert deployed["version"].startswith("v3-")
    assert client.get("/businesses/biz-1/prompt").json()["version"] == deployed["version"]


def test_api_rejects_invalid_configuration(tmp_path: Path) -> None:
    """Summary: Verify unknown roles are reported as unprocessable."""

    client = TestClient(create_app(_build_config(str(tmp_path / "test.db"))))
    document = {**_document(), "team": [{"name": "Carol", "roles": ["wizard"]}]}
    response = client.put("/businesses/biz-1/config", json=document)
    assert response.status_code == 422
    assert client.get("/businesses/biz-1/config").status_code == 404
    assert client.post("/businesses/biz-1/prompt").status_code == 404


def test_api_reconcile_requires_token(tmp_path: Path) -> None:
    """Summary: Verify reconciliation requests without a token are rejected."""

    client = TestClient(create_app(_build_config(str(tmp_path / "test.db"))))
    client.put("/businesses/biz-1/config", json=_document())
    response = client.post(
        "/businesses/biz-1/reconcile", json={"provider": "gmail", "access_token": ""}
    )
    assert response.status_code == 422
    assert client.get("/businesses/biz-1/folders").json() == []


def test_api_send_events_refine_profile(tmp_path: Path) -> None:
    """Summary: Verify send events accumulate corrections and trigger refinement.

    Importance: The learning loop is driven entirely by send notifications.
    Alternatives: Trigger refinement on a schedule.
    """

    client = TestClient(create_app(_build_config(str(tmp_path / "test.db"))))
    skipped = client.post("/send-events", json=_send_event(ai_draft_text=None)).json()
    assert skipped["skipped"] is True
    assert skipped["correction"] is None

    first = client.post("/send-events", json=_send_event()).json()
    assert first["correction"]["learning_status"] == "pending"
    assert first["refined"] is False
    second = client.post("/send-events", json=_send_event(email_id="m-2")).json()
    assert second["refined"] is True
    assert second["profile"]["iteration_count"] == 1
    assert second["profile"]["tone"]["apology"] == 1.0

    profile = client.get("/businesses/biz-1/voice-profile").json()
    assert profile["sample_count"] == 2
    assert profile["metrics"]["correction_count"] == 2
    assert profile["metrics"]["learning_in_progress"] is False
    applied = client.get("/businesses/biz-1/corrections", params={"status": "applied"}).json()
    assert len(applied) == 2

    baseline = client.post(
        "/businesses/biz-1/voice-profile/baseline", json={"samples": ["Sorry, all set."]}
    )
    assert baseline.status_code == 422

    erased = client.delete("/businesses/biz-1/learning").json()
    assert erased["corrections_removed"] == 2
    assert client.get("/businesses/biz-1/voice-profile").status_code == 404


def test_api_baseline_profile(tmp_path: Path) -> None:
    """Summary: Verify a baseline profile can be seeded from sample emails."""

    client = TestClient(create_app(_build_config(str(tmp_path / "test.db"))))
    response = client.post(
        "/businesses/biz-2/voice-profile/baseline",
        json={"samples": ["Hey Jo!\n\nSorry about that, fixed now!", "Hey Sam, sorry. Cheers"]},
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["iteration_count"] == 0
    assert payload["sample_count"] == 2
    assert payload["tone"]["apology"] > 0
    empty = client.post("/businesses/biz-2/voice-profile/baseline", json={"samples": []})
    assert empty.status_code == 422


def test_api_classify_with_mock_provider(tmp_path: Path) -> None:
    """Summary: Verify classification works end to end with the mock provider.

    Importance: The mock echoes the email, so the keyword fallback is exercised.
    Alternatives: Stub the classifier service.
    """

    client = TestClient(create_app(_build_config(str(tmp_path / "test.db"))))
    email = {
        "sender": "sam@gmail.com",
        "subject": "Reschedule",
        "body": "Can we reschedule my appointment next week?",
    }
    assert client.post("/businesses/biz-1/classify", json=email).status_code == 404
    client.put("/businesses/biz-1/config", json=_document())
    response = client.post("/businesses/biz-1/classify", json=email)
    assert response.status_code == 200
    result = response.json()
    assert result["primary_category"] == "Support"
    assert result["ai_can_reply"] is False
    assert client.get("/businesses/biz-1/prompt").status_code == 200
