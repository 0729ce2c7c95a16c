"""Tests for pinpoint.core.logging — structured logging setup."""

from __future__ import annotations

import io
import json
import logging

import structlog

from pinpoint.core.logging import bind_pr_context, get_logger, redact_tokens, setup_logging


class TestSetupLogging:
    def test_sets_root_level(self):
        setup_logging("DEBUG")
        assert logging.getLogger().level == logging.DEBUG

    def test_case_insensitive(self):
        setup_logging("warning")
        assert logging.getLogger().level == logging.WARNING

    def test_default_level(self):
        setup_logging()
        assert logging.getLogger().level == logging.INFO

    def test_no_duplicate_handlers_on_repeat_calls(self):
        setup_logging("INFO")
        setup_logging("INFO")
        assert len(logging.getLogger().handlers) == 1

    def test_silences_noisy_loggers(self):
        setup_logging("DEBUG")
        for name in ("httpx", "httpcore", "uvicorn.access"):
            assert logging.getLogger(name).level >= logging.WARNING

    def test_custom_stream_receives_json(self):
        stream = io.StringIO()
        setup_logging("INFO", stream=stream)
        get_logger("pinpoint.test").info("review_created", review_id=101)

        record = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert record["event"] == "review_created"
        assert record["review_id"] == 101
        assert record["level"] == "info"
        assert record["logger"] == "pinpoint.test"


class TestGetLogger:
    def test_logger_can_bind_context(self):
        setup_logging("INFO")
        bound = get_logger("test_module").bind(review_id=101)
        assert bound is not None

    def test_logger_has_expected_methods(self):
        setup_logging("INFO")
        logger = get_logger("test")
        for method in ("debug", "info", "warning", "error"):
            assert callable(getattr(logger, method, None))


class TestRedactTokens:
    def test_masks_token_values(self):
        event = redact_tokens(None, "info", {"event": "auth", "header": "Bearer ghp_abcdefghijklmnop1234"})
        assert event["header"] == "Bearer ***"

    def test_masks_fine_grained_tokens(self):
        event = redact_tokens(None, "info", {"event": "token github_pat_11ABCDEFG_xyz123456 rejected"})
        assert "github_pat_" not in event["event"]

    def test_leaves_other_values(self):
        event = redact_tokens(None, "info", {"event": "review_created", "review_id": 101, "path": "src/gh.ts"})
        assert event == {"event": "review_created", "review_id": 101, "path": "src/gh.ts"}

    def test_token_never_reaches_output(self):
        stream = io.StringIO()
        setup_logging("INFO", stream=stream)
        get_logger("pinpoint.test").warning("auth_failed", error="bad credentials for ghp_abcdefghijklmnop1234")
        assert "ghp_abcdefghijklmnop1234" not in stream.getvalue()


class TestBindPRContext:
    def test_context_is_attached_to_log_lines(self):
        stream = io.StringIO()
        setup_logging("INFO", stream=stream)
        structlog.contextvars.clear_contextvars()
        try:
            bind_pr_context("octo", "repo", 42)
            get_logger("pinpoint.test").info("review_created")
        finally:
            structlog.contextvars.clear_contextvars()

        record = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert record["repository"] == "octo/repo"
        assert record["pr_number"] == 42
