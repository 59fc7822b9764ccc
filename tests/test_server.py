"""
Tests for the HTTP server
"""

import pytest
from fastapi.testclient import TestClient

from verification_engine.engine import VerificationEngine
from verification_engine.main import Domain, EngineConfig
from verification_engine.modules import MockModule
from verification_engine.server import create_app


def verify_body(text="The agreement is governed by the laws of Delaware.", **overrides):
    body = {
        "content": {"id": "doc-1", "extracted_text": text},
        "domain": "legal",
        "urgency": "medium",
    }
    body.update(overrides)
    return body


@pytest.fixture
def engine():
    return VerificationEngine(modules=[
        MockModule(Domain.LEGAL, confidence=90),
        MockModule(Domain.FINANCIAL, confidence=80),
    ])


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine))


class TestHealthAndModules:
    """Tests for service introspection endpoints"""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["active_verifications"] == 0
        assert data["modules"]["legal"]["provider"] == "mock"

    def test_modules(self, client):
        response = client.get("/modules")

        assert response.status_code == 200
        assert sorted(response.json()["modules"]) == ["financial", "legal"]


class TestVerifyEndpoint:
    """Tests for POST /verify"""

    def test_verify_success(self, client):
        response = client.post("/verify", json=verify_body())

        assert response.status_code == 200
        data = response.json()
        assert data["overall_confidence"] == 90
        assert data["risk_level"] == "low"
        assert data["issues"] == []
        assert [e["action"] for e in data["audit_trail"]][0] == "verification_started"
        assert data["audit_trail"][-1]["action"] == "verification_completed"

    def test_domain_is_case_insensitive(self, client):
        response = client.post("/verify", json=verify_body(domain="LEGAL"))
        assert response.status_code == 200

    def test_invalid_domain(self, client):
        response = client.post("/verify", json=verify_body(domain="astrology"))

        assert response.status_code == 400
        assert "Invalid domain" in response.json()["detail"]

    def test_invalid_urgency(self, client):
        response = client.post("/verify", json=verify_body(urgency="whenever"))
        assert response.status_code == 400

    def test_empty_text_rejected(self, client):
        response = client.post("/verify", json=verify_body(text=""))

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "invalid_request"
        assert data["verification_id"]

    def test_threshold_out_of_range(self, client):
        body = verify_body(options={"confidence_threshold": 150})

        response = client.post("/verify", json=body)

        assert response.status_code == 422

    def test_threshold_adds_issue(self, client):
        body = verify_body(options={"confidence_threshold": 95})

        response = client.post("/verify", json=body)

        assert response.status_code == 200
        descriptions = [i["description"] for i in response.json()["issues"]]
        assert "Overall confidence (90%) is below threshold (95%)" in descriptions

    def test_at_capacity(self):
        engine = VerificationEngine(
            config=EngineConfig(max_concurrent_verifications=0),
            modules=[MockModule(Domain.LEGAL)],
        )
        client = TestClient(create_app(engine))

        response = client.post("/verify", json=verify_body())

        assert response.status_code == 429
        assert response.json()["error"] == "resource_exhausted"


class TestVerificationLookup:
    """Tests for status, cancellation and result lookup"""

    def test_status_of_unknown_verification(self, client):
        response = client.get("/verifications/unknown/status")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_cancel_unknown_verification(self, client):
        response = client.post("/verifications/unknown/cancel")

        assert response.status_code == 200
        assert response.json() == {"verification_id": "unknown", "cancelled": False}

    def test_result_lookup(self, client):
        verification_id = client.post("/verify", json=verify_body()).json()["verification_id"]

        response = client.get(f"/results/{verification_id}")

        assert response.status_code == 200
        assert response.json()["verification_id"] == verification_id

    def test_result_not_found(self, client):
        response = client.get("/results/unknown")
        assert response.status_code == 404


class TestCacheAndMetrics:
    """Tests for cache and metrics endpoints"""

    def test_repeat_request_served_from_cache(self, client, engine):
        client.post("/verify", json=verify_body())
        client.post("/verify", json=verify_body())

        stats = client.get("/cache/stats").json()

        assert stats["hits"] == 1
        assert stats["size"] == 1
        assert engine.get_module(Domain.LEGAL).calls == ["doc-1", "doc-1"]

    def test_invalidate_all(self, client):
        client.post("/verify", json=verify_body())

        response = client.delete("/cache")

        assert response.json() == {"invalidated": "all"}
        assert client.get("/cache/stats").json()["size"] == 0

    def test_metrics(self, client):
        client.post("/verify", json=verify_body())
        client.post("/verify", json=verify_body(domain="financial"))

        data = client.get("/metrics").json()

        assert data["total_processed"] == 2
        assert data["risk_distribution"]["low"] >= 1
