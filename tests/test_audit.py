"""
Tests for the Audit Trail and audit sinks
"""

import json

import httpx
import pytest

from verification_engine.audit import (
    AuditAction,
    AuditEntry,
    AuditSinkError,
    AuditTrail,
    HttpAuditSink,
    InMemoryAuditSink,
)


def make_entry(session_id="v-1", action=AuditAction.VERIFICATION_STARTED):
    return AuditEntry(
        id="e-1",
        session_id=session_id,
        action=action,
        component="VerificationEngine",
        details={"domain": "legal"},
    )


class TestAuditTrail:
    """Tests for per-verification trails"""

    def test_records_in_order(self):
        trail = AuditTrail("v-1", user_id="u-1")

        trail.record(AuditAction.VERIFICATION_STARTED, "VerificationEngine")
        trail.record(AuditAction.MODULE_STARTED, "legal-module", {"module_version": "1.0.0"})
        trail.record(AuditAction.MODULE_COMPLETED, "legal-module")

        assert trail.actions() == [
            "verification_started",
            "module_started",
            "module_completed",
        ]
        assert len(trail) == 3
        assert all(e.session_id == "v-1" for e in trail)
        assert all(e.user_id == "u-1" for e in trail)

    def test_details_default_to_empty(self):
        trail = AuditTrail("v-1")

        entry = trail.record(AuditAction.VERIFICATION_COMPLETED, "VerificationEngine")

        assert entry.details == {}
        assert entry.id

    def test_entry_serialization(self):
        data = make_entry().to_dict()

        assert data["session_id"] == "v-1"
        assert data["action"] == "verification_started"
        assert data["details"] == {"domain": "legal"}
        assert "timestamp" in data


class TestInMemoryAuditSink:
    """Tests for the in-process sink"""

    @pytest.mark.asyncio
    async def test_filters_by_session(self):
        sink = InMemoryAuditSink()

        await sink.create_entry(make_entry("v-1"))
        await sink.create_entry(make_entry("v-2"))
        await sink.create_entry(make_entry("v-1", AuditAction.VERIFICATION_COMPLETED))

        assert len(sink.entries) == 3
        assert [e.action for e in sink.for_session("v-1")] == [
            "verification_started",
            "verification_completed",
        ]


class TestHttpAuditSink:
    """Tests for the HTTP sink"""

    @pytest.mark.asyncio
    async def test_posts_entry(self):
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(request)
            return httpx.Response(201, json={"ok": True})

        sink = HttpAuditSink(
            "http://audit.local/",
            service="verification-engine",
            transport=httpx.MockTransport(handler),
        )

        await sink.create_entry(make_entry())

        assert len(received) == 1
        request = received[0]
        assert request.method == "POST"
        assert str(request.url) == "http://audit.local/audit/entries"
        body = json.loads(request.content)
        assert body["service"] == "verification-engine"
        assert body["session_id"] == "v-1"
        assert body["action"] == "verification_started"

    @pytest.mark.asyncio
    async def test_rejected_entry_raises(self):
        sink = HttpAuditSink(
            "http://audit.local",
            transport=httpx.MockTransport(lambda request: httpx.Response(503)),
        )

        with pytest.raises(AuditSinkError, match="HTTP 503"):
            await sink.create_entry(make_entry())

    @pytest.mark.asyncio
    async def test_unreachable_sink_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        sink = HttpAuditSink("http://audit.local", transport=httpx.MockTransport(handler))

        with pytest.raises(AuditSinkError, match="unreachable"):
            await sink.create_entry(make_entry())
