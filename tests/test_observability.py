"""Tests for logging setup and Sentry event scrubbing"""

import io
import logging
from logging.handlers import RotatingFileHandler
from unittest.mock import patch

import pytest

from src.shared import sentry_integration
from src.shared.logging_config import _is_console_handler, setup_logging


@pytest.fixture
def clean_root_logger():
    """Restore the root logger's handlers after each test."""
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    root.handlers = []
    yield root
    for handler in root.handlers:
        if isinstance(handler, RotatingFileHandler) or _is_console_handler(handler):
            handler.close()
    root.handlers = saved_handlers
    root.setLevel(saved_level)


class TestSetupLogging:
    """Tests for setup_logging()"""

    def test_idempotent(self, tmp_path, clean_root_logger):
        log_file = str(tmp_path / "logs" / "locator.log")
        setup_logging(log_file)
        setup_logging(log_file)

        file_handlers = [h for h in clean_root_logger.handlers if isinstance(h, RotatingFileHandler)]
        console_handlers = [h for h in clean_root_logger.handlers if _is_console_handler(h)]
        assert len(file_handlers) == 1
        assert len(console_handlers) == 1
        assert (tmp_path / "logs").is_dir()

    def test_in_memory_stream_handler_is_not_a_console(self, tmp_path, clean_root_logger):
        """A buffer-backed StreamHandler (e.g. a log capture) still gets a console added."""
        capture = logging.StreamHandler(io.StringIO())
        clean_root_logger.addHandler(capture)

        setup_logging(str(tmp_path / "locator.log"))

        assert not _is_console_handler(capture)
        assert len([h for h in clean_root_logger.handlers if _is_console_handler(h)]) == 1
        assert capture in clean_root_logger.handlers

    def test_rotation_change_replaces_handler(self, tmp_path, clean_root_logger):
        log_file = str(tmp_path / "locator.log")
        setup_logging(log_file, max_bytes=1000)
        setup_logging(log_file, max_bytes=2000)

        file_handlers = [h for h in clean_root_logger.handlers if isinstance(h, RotatingFileHandler)]
        assert [h.maxBytes for h in file_handlers] == [2000]

    def test_level(self, tmp_path, clean_root_logger):
        setup_logging(str(tmp_path / "locator.log"), level=logging.DEBUG)
        assert clean_root_logger.level == logging.DEBUG


class TestSentryScrubbing:
    def test_widget_tokens_redacted(self):
        text = "GET https://api.storepoint.co/v1/x?token=abc123&custID=555&q=1"
        scrubbed = sentry_integration._scrub_sensitive_data(text)
        assert "abc123" not in scrubbed
        assert "555" not in scrubbed
        assert "q=1" in scrubbed

    def test_url_credentials_redacted(self):
        scrubbed = sentry_integration._scrub_sensitive_data("https://user:pw@proxy.example:8080/")
        assert scrubbed == "https://[REDACTED]@proxy.example:8080/"

    def test_before_send_scrubs_exception_and_breadcrumbs(self):
        event = {
            "exception": {"values": [{"value": "failed ?api_key=secret1"}]},
            "breadcrumbs": {"values": [{"message": "retry ?password=hunter2"}]},
        }
        event = sentry_integration._before_send(event, {})
        assert event["exception"]["values"][0]["value"] == "failed ?api_key=[REDACTED]"
        assert event["breadcrumbs"]["values"][0]["message"] == "retry ?password=[REDACTED]"


class TestSentryLifecycle:
    def test_disabled_without_dsn(self, monkeypatch):
        monkeypatch.delenv("SENTRY_DSN", raising=False)
        monkeypatch.setattr(sentry_integration, "_sentry_initialized", False)
        assert sentry_integration.init_sentry() is False
        assert sentry_integration.capture_brand_error(RuntimeError("x"), "acme") is None

    def test_capture_tags_brand(self, monkeypatch):
        monkeypatch.setattr(sentry_integration, "_sentry_initialized", True)
        with patch.object(sentry_integration.sentry_sdk, "new_scope") as mock_scope, \
             patch.object(sentry_integration.sentry_sdk, "capture_exception", return_value="evt-1"):
            scope = mock_scope.return_value.__enter__.return_value
            event_id = sentry_integration.capture_brand_error(
                RuntimeError("boom"), "acme", {"locator_url": "https://x.com/?token=t"}
            )

        assert event_id == "evt-1"
        scope.set_tag.assert_called_once_with("brand", "acme")
        scope.set_context.assert_called_once_with(
            "locator_context", {"locator_url": "https://x.com/?token=[REDACTED]"}
        )
