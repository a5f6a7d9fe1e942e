"""
Tests for the logging module.

Tests verify:
- Log context carries run_id / stage / workspace
- log_step emits start/end events with duration and restores context
- Failures inside log_step emit an error event and re-raise
"""

import logging
import os
import time
from unittest.mock import patch

import pytest
from structlog.testing import capture_logs

from changescribe.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_context,
    get_logger,
    is_configured,
    log_step,
    push_context,
    set_context,
)
from changescribe.logging.context import add_context_processor


class TestLogContext:
    """Test LogContext dataclass."""

    def test_to_dict_excludes_none(self):
        ctx = LogContext(run_id="abc12345", stage=None)
        d = ctx.to_dict()
        assert d == {"run_id": "abc12345"}

    def test_merge_creates_new_context(self):
        ctx1 = LogContext(run_id="abc12345")
        ctx2 = ctx1.merge(workspace="packages/dto")

        assert ctx1.workspace is None
        assert ctx2.run_id == "abc12345"
        assert ctx2.workspace == "packages/dto"


class TestContextManagement:
    """Test context set/get/bind/push operations."""

    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_set_and_clear(self):
        set_context(run_id="r1", repo="/repo")
        assert get_context().repo == "/repo"

        clear_context()
        assert get_context().run_id is None

    def test_bind_context_merges(self):
        set_context(run_id="r1")
        bind_context(stage="classify")
        ctx = get_context()

        assert ctx.run_id == "r1"
        assert ctx.stage == "classify"

    def test_push_context_restores(self):
        set_context(run_id="r1")
        token = push_context(workspace="apps/rx")
        assert get_context().workspace == "apps/rx"

        token.restore()
        assert get_context().workspace is None
        assert get_context().run_id == "r1"

    def test_processor_adds_context_without_overwriting(self):
        set_context(run_id="r1", workspace="apps/rx")
        event = add_context_processor(None, "info", {"event": "x", "workspace": "explicit"})

        assert event["run_id"] == "r1"
        assert event["workspace"] == "explicit"


class TestLogStep:
    """Test log_step context manager."""

    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_sets_stage_and_restores(self):
        with log_step("classify"):
            assert get_context().stage == "classify"
            assert get_context().span_id is not None

        assert get_context().stage is None

    def test_nested_steps_record_parent_span(self):
        with log_step("emit"):
            outer = get_context().span_id
            with log_step("write") as inner:
                assert get_context().parent_span_id == outer
        assert inner.parent_span_id == outer

    def test_emits_start_and_end_with_metrics(self):
        with capture_logs() as logs:
            with log_step("classify", files=3) as timer:
                timer.add_metric("workspaces", 2)

        events = [entry["event"] for entry in logs]
        assert events == ["classify.start", "classify.end"]
        end = logs[-1]
        assert end["files"] == 3
        assert end["workspaces"] == 2
        assert "duration_ms" in end

    def test_measures_duration(self):
        with log_step("collect") as timer:
            time.sleep(0.01)

        assert timer.duration_ms >= 10

    def test_error_is_logged_and_reraised(self):
        with capture_logs() as logs:
            with pytest.raises(RuntimeError):
                with log_step("collect"):
                    raise RuntimeError("boom")

        error = logs[-1]
        assert error["event"] == "collect.error"
        assert error["error_type"] == "RuntimeError"
        assert get_context().stage is None


class TestConfigureLogging:
    """Test logging configuration."""

    def test_sets_level(self):
        configure_logging(level="ERROR", force=True)

        assert logging.getLogger("changescribe").level == logging.ERROR
        assert is_configured()

    def test_respects_env_var(self):
        with patch.dict(os.environ, {"CHANGESCRIBE_LOG_LEVEL": "DEBUG"}):
            configure_logging(force=True)

        assert logging.getLogger("changescribe").level == logging.DEBUG

    def test_get_logger_returns_bound_logger(self):
        log = get_logger("changescribe.test")

        assert hasattr(log, "info")
        assert hasattr(log, "warning")
