"""
Concord Test Suite

Structure:
    unit/                   - Unit tests for individual components
        test_agents/        - Agent interface and registry tests
        test_orchestrator/  - Messaging, context, consensus, handoff and façade tests
        test_persistence/   - Archive and database tests
        test_ui/            - Display component tests
        test_utils/         - Helpers, errors and settings tests
    integration/            - End-to-end collaboration scenarios

Running Tests:
    # All tests
    pytest

    # Unit tests only
    pytest tests/unit

    # Integration tests only
    pytest -m integration
"""
