# tests/test_middleware.py
"""Tests for removals/transport/middleware.py — request ID, logging, error handling."""
from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from removals.transport.middleware import (
    ErrorHandlingMiddleware,
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    _session_id_from_path,
)


def _build_app(raise_for: set[str] | None = None, logging_enabled: bool = True):
    """Build a minimal FastAPI app with middleware for testing."""
    app = FastAPI()
    # Order matters: RequestID is outermost, ErrorHandling sees its request id
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware, enabled=logging_enabled)
    app.add_middleware(RequestIDMiddleware)

    raise_for = raise_for or set()

    @app.get("/test")
    def test_endpoint():
        if "/test" in raise_for:
            raise RuntimeError("boom")
        return {"ok": True}

    @app.post("/quote-sessions/{session_id}/answer")
    def answer_endpoint(session_id: str):
        if "/answer" in raise_for:
            raise RuntimeError("answer boom")
        return {"session_id": session_id}

    return app


class TestSessionIdFromPath:
    @pytest.mark.parametrize("path,expected", [
        ("/quote-sessions/abc123", "abc123"),
        ("/quote-sessions/abc123/answer", "abc123"),
        ("quote-sessions/abc123/", "abc123"),
        ("/quote-sessions", None),
        ("/health", None),
        ("/metrics/quote-sessions", None),
    ])
    def test_extracts_session_id(self, path, expected):
        assert _session_id_from_path(path) == expected


# ============================================================================
# RequestIDMiddleware
# ============================================================================

class TestRequestIDMiddleware:
    def test_generates_request_id(self):
        client = TestClient(_build_app())
        resp = client.get("/test")
        assert resp.status_code == 200
        # uuid4 with dashes
        assert len(resp.headers["X-Request-ID"]) == 36

    def test_preserves_existing_request_id(self):
        client = TestClient(_build_app())
        resp = client.get("/test", headers={"X-Request-ID": "my-custom-request-id-123"})
        assert resp.headers["X-Request-ID"] == "my-custom-request-id-123"


# ============================================================================
# RequestLoggingMiddleware
# ============================================================================

class TestRequestLoggingMiddleware:
    def test_logs_request_with_session(self, caplog):
        client = TestClient(_build_app())
        with caplog.at_level("INFO", logger="removals.transport.middleware"):
            resp = client.post("/quote-sessions/s-42/answer")

        assert resp.json() == {"session_id": "s-42"}
        records = [r for r in caplog.records if "status=200" in r.getMessage()]
        assert records
        assert records[0].session_id == "s-42"
        assert records[0].path == "/quote-sessions/s-42/answer"

    def test_disabled_logs_nothing(self, caplog):
        client = TestClient(_build_app(logging_enabled=False))
        with caplog.at_level("INFO", logger="removals.transport.middleware"):
            client.get("/test")
        assert not [r for r in caplog.records if "status=" in r.getMessage()]


# ============================================================================
# ErrorHandlingMiddleware
# ============================================================================

class TestErrorHandlingMiddleware:
    def test_normal_request_passes_through(self):
        client = TestClient(_build_app(), raise_server_exceptions=False)
        resp = client.get("/test")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True}

    def test_unhandled_error_returns_500(self):
        client = TestClient(_build_app(raise_for={"/test"}), raise_server_exceptions=False)
        resp = client.get("/test", headers={"X-Request-ID": "req-1"})

        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error", "request_id": "req-1"}
        assert resp.headers["X-Request-ID"] == "req-1"

    def test_error_does_not_leak_message(self):
        client = TestClient(_build_app(raise_for={"/answer"}), raise_server_exceptions=False)
        resp = client.post("/quote-sessions/s-1/answer")
        assert resp.status_code == 500
        assert "answer boom" not in resp.text
