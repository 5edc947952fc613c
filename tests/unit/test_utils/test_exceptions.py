"""Tests for the exception hierarchy."""

from concord.utils.exceptions import (
    AgentExecutionError,
    AgentNotRegisteredError,
    AgentTimeoutError,
    ConcordError,
    ConfigurationError,
    ErrorCategory,
    ErrorSeverity,
    HandoffMismatchError,
    NotFoundError,
    OrchestrationError,
    is_recoverable_error,
    wrap_exception
)


class TestConcordError:

    def test_defaults(self):
        error = ConcordError("Something broke")

        assert error.message == "Something broke"
        assert error.error_code == "ConcordError"
        assert error.severity == ErrorSeverity.MEDIUM
        assert error.recoverable
        assert str(error) == "[ConcordError] Something broke"

    def test_to_dict(self):
        error = OrchestrationError("Orchestration failed", session_id="collab_1",
                                   original_exception=RuntimeError("boom"))

        data = error.to_dict()

        assert data["error_type"] == "OrchestrationError"
        assert data["category"] == "orchestration"
        assert data["severity"] == "high"
        assert data["context"] == {"session_id": "collab_1"}
        assert data["original_exception"] == "boom"


class TestSubclasses:

    def test_agent_errors_carry_agent_name(self):
        timeout = AgentTimeoutError("too slow", agent_name="credit_analyst", timeout_seconds=5)

        assert timeout.category == ErrorCategory.TIMEOUT
        assert timeout.context == {"timeout_seconds": 5, "agent_name": "credit_analyst"}
        assert AgentExecutionError("failed", "co_founder").category == ErrorCategory.AGENT

    def test_not_registered_is_not_recoverable(self):
        error = AgentNotRegisteredError("impact_analyst")

        assert not error.recoverable
        assert "impact_analyst" in error.message

    def test_handoff_mismatch_context(self):
        error = HandoffMismatchError("handoff_1", ("co_founder", "business_advisor"),
                                     ("co_founder", "credit_analyst"))

        assert error.context["expected"] == "co_founder->business_advisor"
        assert error.context["received"] == "co_founder->credit_analyst"

    def test_not_found_resource(self):
        error = NotFoundError("missing", "context", "ctx_1")

        assert error.resource_id == "ctx_1"
        assert error.severity == ErrorSeverity.LOW


class TestHelpers:

    def test_wrap_exception(self):
        original = ValueError("bad value")
        wrapped = wrap_exception(original, error_class=ConfigurationError, config_key="x")

        assert isinstance(wrapped, ConfigurationError)
        assert wrapped.original_exception is original
        assert wrapped.context["config_key"] == "x"

        existing = ConcordError("already wrapped")
        assert wrap_exception(existing) is existing

    def test_is_recoverable(self):
        assert is_recoverable_error(RuntimeError("x"))
        assert not is_recoverable_error(MemoryError())
        assert not is_recoverable_error(ConfigurationError("bad"))
