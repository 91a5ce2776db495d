"""Tests for log redaction and the shared error format."""

import logging

from app.config import Environment, Settings
from app.exceptions import ExternalServiceError, GitHubRateLimitError, RateLimitError
from app.logging_config import QUIET_LOGGERS, _filter_pii, _filter_sensitive_data, setup_logging


class TestLogRedaction:
    """Secrets and profile PII never reach the renderer."""

    def test_secrets_redacted(self):
        event = {"event": "x", "supabase_service_role_key": "abc", "authorization": "Bearer t"}
        out = _filter_sensitive_data(None, "info", event)
        assert out["supabase_service_role_key"] == "[REDACTED]"
        assert out["authorization"] == "[REDACTED]"
        assert out["event"] == "x"

    def test_pii_redacted(self):
        out = _filter_pii(None, "info", {"email": "a@b.c", "username": "octocat", "repo": "o/r"})
        assert out == {"email": "[PII_REDACTED]", "username": "[PII_REDACTED]", "repo": "o/r"}

    def test_pii_match_is_exact(self):
        out = _filter_pii(None, "info", {"username_length": 7})
        assert out == {"username_length": 7}


class TestSetupLogging:
    """Root logger wiring."""

    def test_single_root_handler(self):
        settings = Settings(environment=Environment.TESTING, log_level="debug")
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging(settings)
            setup_logging(settings)

            assert len(root.handlers) == 1
            assert root.level == logging.DEBUG
            for name in QUIET_LOGGERS:
                assert logging.getLogger(name).level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestErrorFormat:
    """Every application error renders the same envelope."""

    def test_external_service_code(self):
        exc = ExternalServiceError("supabase", "down")
        assert exc.status_code == 502
        assert exc.to_dict() == {"error": {"code": "SUPABASE_SERVICE_ERROR", "message": "down"}}

    def test_rate_limit_details(self):
        exc = RateLimitError("api", retry_after=60)
        assert exc.status_code == 429
        assert exc.to_dict()["error"]["details"] == {"retry_after_seconds": 60, "limit_type": "api"}

    def test_github_rate_limit_without_retry_after(self):
        assert "details" not in GitHubRateLimitError().to_dict()["error"]
