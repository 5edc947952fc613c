"""Tests for the logging helpers."""

import logging

import pytest

from concord.utils.logger import (
    AsyncPerformanceLogger,
    agent_name_var,
    get_logger,
    log_context,
    monitor_performance,
    session_id_var,
    user_id_var
)


class TestLogContext:

    def test_sets_and_resets(self):
        with log_context(session_id="collab_1", user_id="user_1"):
            assert session_id_var.get() == "collab_1"
            assert user_id_var.get() == "user_1"
            assert agent_name_var.get() is None

            with log_context(agent_name="credit_analyst"):
                assert agent_name_var.get() == "credit_analyst"
                assert session_id_var.get() == "collab_1"

        assert session_id_var.get() is None
        assert user_id_var.get() is None


class TestPerformanceLogging:

    def test_get_logger_namespace(self):
        assert get_logger("orchestrator.consensus").name == "concord.orchestrator.consensus"
        assert get_logger("concord.cli").name == "concord.cli"

    @pytest.mark.asyncio
    async def test_success_is_timed(self, caplog):
        caplog.set_level(logging.INFO, logger="concord")

        async with AsyncPerformanceLogger(get_logger("tests"), "merge_contexts") as perf:
            pass

        assert perf.duration is not None
        assert "Completed merge_contexts" in caplog.text

    @pytest.mark.asyncio
    async def test_failure_is_logged_and_reraised(self, caplog):
        caplog.set_level(logging.INFO, logger="concord")

        with pytest.raises(RuntimeError):
            async with AsyncPerformanceLogger(get_logger("tests"), "execute_handoff"):
                raise RuntimeError("boom")

        assert "Failed execute_handoff" in caplog.text

    @pytest.mark.asyncio
    async def test_monitor_performance_decorator(self, caplog):
        caplog.set_level(logging.INFO, logger="concord")

        @monitor_performance("answer")
        async def answer():
            """Return the answer."""
            return 42

        assert await answer() == 42
        assert answer.__name__ == "answer"
        assert "Completed answer" in caplog.text
