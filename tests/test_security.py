# tests/test_security.py
"""Tests for removals/transport/security.py"""
from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from removals.transport.security import require_metrics_auth, sanitize_error_message


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestRequireMetricsAuth:
    @patch("removals.transport.security.settings")
    def test_disabled_is_404(self, mock_settings):
        mock_settings.enable_metrics = False
        with pytest.raises(HTTPException) as exc_info:
            require_metrics_auth(_bearer("anything"))
        assert exc_info.value.status_code == 404

    @patch("removals.transport.security.settings")
    def test_open_without_token(self, mock_settings):
        mock_settings.enable_metrics = True
        mock_settings.metrics_token = None
        assert require_metrics_auth(None) is None

    @patch("removals.transport.security.settings")
    def test_missing_credentials(self, mock_settings):
        mock_settings.enable_metrics = True
        mock_settings.metrics_token = "s3cret-token"
        with pytest.raises(HTTPException) as exc_info:
            require_metrics_auth(None)
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Authentication required"
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

    @patch("removals.transport.security.settings")
    def test_wrong_token(self, mock_settings):
        mock_settings.enable_metrics = True
        mock_settings.metrics_token = "s3cret-token"
        with pytest.raises(HTTPException) as exc_info:
            require_metrics_auth(_bearer("guess"))
        assert exc_info.value.detail == "Invalid credentials"

    @patch("removals.transport.security.settings")
    def test_valid_token(self, mock_settings):
        mock_settings.enable_metrics = True
        mock_settings.metrics_token = "s3cret-token"
        assert require_metrics_auth(_bearer("s3cret-token")) is None


class TestSanitizeErrorMessage:
    def test_production_hides_details(self):
        exc = ValueError("password=hunter2")
        assert sanitize_error_message(exc, is_production=True) == "Internal server error"

    def test_dev_shows_details(self):
        exc = ValueError("bad slider")
        assert sanitize_error_message(exc, is_production=False) == "ValueError: bad slider"
