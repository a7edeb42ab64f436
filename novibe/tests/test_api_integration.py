"""Integration tests for the FastAPI endpoints.

Uses TestClient against an in-memory database and the mock AI client, with
real bearer tokens minted for a test secret.
"""
from __future__ import annotations

from unittest.mock import patch

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from novibe.auth import create_access_token
from novibe.config import get_settings
from novibe.credits import CreditLedger
from novibe.llm import MockLLMClient
from novibe.models import Base

SECRET = "integration-test-secret-0123456789abcdef"


@pytest.fixture()
def test_db():
    """Shared in-memory database (StaticPool keeps one connection)."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return engine, TestSession


@pytest.fixture()
def client(test_db, monkeypatch):
    """TestClient with the database and AI client overridden.

    Yields ``(client, TestSession, mock_llm)``; tests switch failure modes by
    setting ``mock_llm.scenario``.
    """
    monkeypatch.setenv("AUTH_JWT_SECRET", SECRET)
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("MOCK_MODE", "true")
    monkeypatch.setenv("DEFAULT_CREDITS", "3")
    monkeypatch.setenv("CREDIT_SYSTEM_ENABLED", "true")
    get_settings.cache_clear()

    _, TestSession = test_db
    from novibe.app import app, db_session, get_llm_client

    def override_db_session():
        session = TestSession()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    mock_llm = MockLLMClient("success")
    app.dependency_overrides[db_session] = override_db_session
    app.dependency_overrides[get_llm_client] = lambda: mock_llm
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c, TestSession, mock_llm
    app.dependency_overrides.clear()
    get_settings.cache_clear()


def auth(user_id: str = "user-1", tier: str | None = "free") -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, tier)}"}


def analyze(c: TestClient, idea: str = "An AI recipe app", user_id: str = "user-1", tier: str = "free"):
    return c.post("/analyze", json={"idea": idea, "locale": "en"}, headers=auth(user_id, tier))


class TestHealth:
    def test_health(self, client):
        c, _, _ = client
        resp = c.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
        assert resp.json()["mockMode"] is True


class TestAuthentication:
    def test_missing_token(self, client):
        c, _, mock_llm = client
        resp = c.post("/analyze", json={"idea": "An idea"})
        assert resp.status_code == 401
        assert resp.json() == {
            "success": False,
            "error": {"message": "Authentication required", "code": "AUTHENTICATION_ERROR"},
        }
        assert mock_llm.calls == []

    def test_garbage_token(self, client):
        c, _, _ = client
        resp = c.get("/credits/balance", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Invalid or expired token"

    def test_expired_token(self, client):
        c, _, _ = client
        token = create_access_token("user-1", "free", expires_in=-60)
        resp = c.get("/credits/balance", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_wrong_secret(self, client):
        c, _, _ = client
        token = jwt.encode({"sub": "user-1", "aud": "authenticated", "exp": 4102444800},
                           "some-other-secret-0123456789abcdef", algorithm="HS256")
        resp = c.get("/credits/balance", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_token_without_tier_defaults_to_free(self, client):
        c, _, _ = client
        resp = c.get("/credits/balance", headers=auth("user-9", tier=None))
        assert resp.json() == {"credits": 3, "tier": "free"}


class TestAnalyze:
    def test_success(self, client):
        c, _, _ = client
        resp = analyze(c)
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["finalScore"] == 3.6
        assert len(body["data"]["scoringRubric"]) == 5
        assert body["meta"]["creditsRemaining"] == 2
        assert body["meta"]["mockMode"] is True
        assert body["meta"]["ideaId"]
        assert body["meta"]["documentId"]

    def test_balance_and_history(self, client):
        c, _, _ = client
        op = analyze(c).json()["meta"]["operationId"]
        assert c.get("/credits/balance", headers=auth()).json() == {"credits": 2, "tier": "free"}
        history = c.get("/credits/transactions", headers=auth()).json()
        assert len(history) == 1
        assert history[0]["amount"] == -1
        assert history[0]["type"] == "deduct"
        assert history[0]["operationId"] == op

    def test_out_of_credits(self, client):
        c, _, mock_llm = client
        for _ in range(3):
            assert analyze(c).status_code == 200
        resp = analyze(c)
        assert resp.status_code == 429
        body = resp.json()
        assert body["success"] is False
        assert body["error"]["code"] == "INSUFFICIENT_CREDITS"
        assert body["details"] == {"credits": 0, "tier": "free"}
        assert len(mock_llm.calls) == 3

    def test_admin_is_unlimited(self, client):
        c, _, _ = client
        for _ in range(4):
            resp = analyze(c, user_id="admin-1", tier="admin")
            assert resp.status_code == 200
        assert resp.json()["meta"]["creditsRemaining"] == 3

    def test_malformed_reply(self, client):
        c, _, mock_llm = client
        mock_llm.scenario = "invalid_response"
        resp = analyze(c)
        assert resp.status_code == 500
        assert resp.json()["error"] == {
            "message": "The AI returned an invalid format. Please try again.",
            "code": "MALFORMED_RESPONSE",
        }
        assert c.get("/credits/balance", headers=auth()).json()["credits"] == 3

    def test_provider_error(self, client):
        c, _, mock_llm = client
        mock_llm.scenario = "api_error"
        resp = analyze(c)
        assert resp.status_code == 500
        assert resp.json()["error"]["message"] == "Failed to analyze idea"
        assert c.get("/ideas", headers=auth()).json() == []

    def test_blank_idea(self, client):
        c, _, mock_llm = client
        resp = analyze(c, idea="   ")
        assert resp.status_code == 400
        assert resp.json()["error"] == {"message": "Idea is required", "code": "VALIDATION_ERROR"}
        assert mock_llm.calls == []

    def test_missing_idea_field(self, client):
        c, _, _ = client
        resp = c.post("/analyze", json={"locale": "en"}, headers=auth())
        assert resp.status_code == 400
        assert resp.json()["success"] is False


class TestErrorEnvelope:
    def test_database_error_in_pipeline(self, client):
        c, _, mock_llm = client
        with patch.object(CreditLedger, "ensure_profile",
                          side_effect=OperationalError("SELECT", {}, Exception("database is locked"))):
            resp = analyze(c)
        assert resp.status_code == 500
        assert resp.json() == {
            "success": False,
            "error": {"message": "Failed to analyze idea", "code": "DATABASE_ERROR"},
        }
        assert mock_llm.calls == []

    def test_unexpected_error_outside_pipeline(self, client):
        c, _, _ = client
        raw = TestClient(c.app, raise_server_exceptions=False)
        with patch("novibe.app.repositories.list_ideas", side_effect=RuntimeError("boom")):
            resp = raw.get("/ideas", headers=auth())
        assert resp.status_code == 500
        assert resp.json() == {
            "success": False,
            "error": {"message": "Internal server error", "code": "INTERNAL_ERROR"},
        }


class TestHackathon:
    def test_success(self, client):
        c, _, _ = client
        resp = c.post("/hackathon/analyze", headers=auth(), json={
            "submission": {
                "description": "A haunted IDE that resurrects COBOL",
                "selectedCategory": "frankenstein",
                "kiroUsage": "Specs and hooks",
            },
            "locale": "en",
        })
        assert resp.status_code == 200
        assert resp.json()["data"]["finalScore"] == 3.7

    def test_unknown_category(self, client):
        c, _, _ = client
        resp = c.post("/hackathon/analyze", headers=auth(), json={
            "submission": {"description": "x", "selectedCategory": "werewolf"},
        })
        assert resp.status_code == 400


class TestDoctorFrankenstein:
    BODY = {"elements": [{"name": "Twilio"}, {"name": "Stripe"}], "mode": "companies", "language": "en"}

    def test_free_tier_forbidden(self, client):
        c, _, _ = client
        resp = c.post("/doctor-frankenstein/generate", json=self.BODY, headers=auth())
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "AUTHORIZATION_ERROR"

    def test_paid_tier(self, client):
        c, _, _ = client
        headers = auth("user-2", "paid")
        resp = c.post("/doctor-frankenstein/generate", json=self.BODY, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["idea_title"] == "Spoken Ledger"
        ideas = c.get("/ideas", params={"source": "frankenstein"}, headers=headers).json()
        assert len(ideas) == 1
        assert ideas[0]["tags"] == ["Twilio", "Stripe"]

    def test_empty_elements(self, client):
        c, _, _ = client
        resp = c.post("/doctor-frankenstein/generate", headers=auth("user-2", "paid"),
                      json={"elements": [], "mode": "aws"})
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Elements array is required"


class TestTextToSpeech:
    def test_audio(self, client):
        c, _, _ = client
        resp = c.post("/tts", json={"text": "Hello founders", "locale": "en"}, headers=auth())
        assert resp.status_code == 200
        assert resp.json()["data"]["audio"]
        assert c.get("/credits/balance", headers=auth()).json()["credits"] == 3

    def test_empty_text(self, client):
        c, _, _ = client
        resp = c.post("/tts", json={"text": ""}, headers=auth())
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Text is required"

    def test_text_too_long(self, client):
        c, _, _ = client
        resp = c.post("/tts", json={"text": "x" * 5001}, headers=auth())
        assert resp.status_code == 400


class TestIdeas:
    def test_crud(self, client):
        c, _, _ = client
        resp = c.post("/ideas", json={"ideaText": "Pet translator", "tags": ["pets"]}, headers=auth())
        assert resp.status_code == 201
        idea = resp.json()
        assert idea["ideaText"] == "Pet translator"
        assert idea["projectStatus"] == "idea"
        assert idea["documentCount"] == 0

        assert len(c.get("/ideas", headers=auth()).json()) == 1

        resp = c.patch(f"/ideas/{idea['id']}", json={"projectStatus": "in_progress"}, headers=auth())
        assert resp.status_code == 200
        assert resp.json()["projectStatus"] == "in_progress"
        assert resp.json()["tags"] == ["pets"]

        assert c.delete(f"/ideas/{idea['id']}", headers=auth()).status_code == 200
        assert c.get(f"/ideas/{idea['id']}", headers=auth()).status_code == 404

    def test_other_users_idea(self, client):
        c, _, _ = client
        idea_id = c.post("/ideas", json={"ideaText": "Secret idea"}, headers=auth()).json()["id"]
        resp = c.get(f"/ideas/{idea_id}", headers=auth("user-2"))
        assert resp.status_code == 404
        assert resp.json()["error"] == {"message": "Idea not found", "code": "NOT_FOUND"}
        assert c.delete(f"/ideas/{idea_id}", headers=auth("user-2")).status_code == 404

    def test_invalid_status(self, client):
        c, _, _ = client
        idea_id = c.post("/ideas", json={"ideaText": "Idea"}, headers=auth()).json()["id"]
        resp = c.patch(f"/ideas/{idea_id}", json={"projectStatus": "shipped"}, headers=auth())
        assert resp.status_code == 400


class TestDocuments:
    def test_analysis_document_listed(self, client):
        c, _, _ = client
        idea_id = analyze(c).json()["meta"]["ideaId"]
        docs = c.get(f"/ideas/{idea_id}/documents", headers=auth()).json()
        assert len(docs) == 1
        assert docs[0]["documentType"] == "startup_analysis"
        assert docs[0]["content"]["analysis"]["finalScore"] == 3.6
        filtered = c.get(f"/ideas/{idea_id}/documents", params={"documentType": "prd"}, headers=auth())
        assert filtered.json() == []

    def test_generate_prd(self, client):
        c, _, _ = client
        idea_id = analyze(c).json()["meta"]["ideaId"]
        resp = c.post(f"/ideas/{idea_id}/documents/generate", json={"documentType": "prd"}, headers=auth())
        assert resp.status_code == 200
        assert resp.json()["data"]["markdown"].startswith("# Product Requirements Document (PRD)")
        assert resp.json()["meta"]["creditsRemaining"] == 1
        assert len(c.get(f"/ideas/{idea_id}/documents", headers=auth()).json()) == 2

    def test_export_markdown_and_text(self, client):
        c, _, _ = client
        doc_id = analyze(c).json()["meta"]["documentId"]
        md = c.get(f"/documents/{doc_id}/export", params={"format": "md"}, headers=auth())
        assert md.status_code == 200
        assert md.headers["content-type"].startswith("text/markdown")
        assert f"{doc_id}.md" in md.headers["content-disposition"]
        assert "**Viability Verdict**: 3.6/5" in md.text

        txt = c.get(f"/documents/{doc_id}/export", params={"format": "txt"}, headers=auth())
        assert "====== FINAL SCORE ======" in txt.text
        assert "**" not in txt.text

    def test_export_unknown_format(self, client):
        c, _, _ = client
        doc_id = analyze(c).json()["meta"]["documentId"]
        resp = c.get(f"/documents/{doc_id}/export", params={"format": "pdf"}, headers=auth())
        assert resp.status_code == 400

    def test_other_users_document(self, client):
        c, _, _ = client
        doc_id = analyze(c).json()["meta"]["documentId"]
        resp = c.get(f"/documents/{doc_id}", headers=auth("user-2"))
        assert resp.status_code == 404
        assert resp.json()["error"]["message"] == "Document not found"

    def test_delete_document_keeps_idea(self, client):
        c, _, _ = client
        meta = analyze(c).json()["meta"]
        assert c.delete(f"/documents/{meta['documentId']}", headers=auth()).status_code == 200
        assert c.get(f"/documents/{meta['documentId']}", headers=auth()).status_code == 404
        idea = c.get(f"/ideas/{meta['ideaId']}", headers=auth())
        assert idea.status_code == 200
        assert idea.json()["documentCount"] == 0


class TestAdminCredits:
    def test_non_admin_forbidden(self, client):
        c, _, _ = client
        resp = c.post("/admin/credits", json={"userId": "user-1", "amount": 5}, headers=auth())
        assert resp.status_code == 403

    def test_grant(self, client):
        c, _, _ = client
        resp = c.post("/admin/credits", json={"userId": "user-1", "amount": 5, "description": "Promo"},
                      headers=auth("admin-1", "admin"))
        assert resp.status_code == 200
        assert resp.json() == {"credits": 8, "tier": "free"}

    def test_cannot_go_negative(self, client):
        c, _, _ = client
        resp = c.post("/admin/credits", json={"userId": "user-1", "amount": -10},
                      headers=auth("admin-1", "admin"))
        assert resp.status_code == 400

    def test_zero_amount(self, client):
        c, _, _ = client
        resp = c.post("/admin/credits", json={"userId": "user-1", "amount": 0},
                      headers=auth("admin-1", "admin"))
        assert resp.status_code == 400


class TestDashboard:
    def test_stats(self, client):
        c, _, _ = client
        analyze(c)
        c.post("/ideas", json={"ideaText": "Second idea"}, headers=auth())
        stats = c.get("/dashboard/stats", headers=auth()).json()
        assert stats["totalIdeas"] == 2
        assert stats["totalDocuments"] == 1
        assert stats["ideasBySource"] == {"manual": 2}
        assert stats["documentsByType"] == {"startup_analysis": 1}
        assert stats["credits"] == 2
        assert stats["tier"] == "free"
