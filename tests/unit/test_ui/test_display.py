"""Tests for the UI display components."""

import pytest
from datetime import datetime
from rich.panel import Panel
from rich.table import Table

from concord.agents.base import AgentType
from concord.orchestrator.collaboration import CollaborationOptions
from concord.orchestrator.consensus import ConsensusLabel, Perspective
from concord.ui.display import DisplayManager, DisplayTheme

LOAN_AGENTS = [AgentType.CO_FOUNDER, AgentType.BUSINESS_ADVISOR, AgentType.CREDIT_ANALYST]


def rendered(console) -> str:
    return console.file.getvalue()


class TestDisplayTheme:
    """Test the DisplayTheme configuration."""

    def test_default_theme(self):
        theme = DisplayTheme()

        assert theme.primary == "bright_blue"
        assert theme.co_agent_color == "bright_magenta"
        assert theme.functional_color == "bright_green"
        assert theme.orchestrator_color == "bright_blue"

    def test_custom_theme(self):
        theme = DisplayTheme(primary="red", co_agent_color="yellow")

        assert theme.primary == "red"
        assert theme.co_agent_color == "yellow"
        # Should keep defaults for non-specified values
        assert theme.secondary == "bright_cyan"


class TestDisplayManager:
    """Test the DisplayManager class."""

    @pytest.fixture
    def display_manager(self, mock_console):
        return DisplayManager(console=mock_console)

    def test_agent_colors(self, display_manager):
        assert display_manager.get_agent_color(AgentType.CO_FOUNDER) == "bright_magenta"
        assert display_manager.get_agent_color("credit_analyst") == "bright_green"
        assert display_manager.get_agent_color(AgentType.PLATFORM_ORCHESTRATOR) == "bright_blue"
        assert display_manager.get_agent_color("external_bot") == "bright_white"

    def test_format_duration(self, display_manager):
        assert display_manager.format_duration(500) == "500ms"
        assert display_manager.format_duration(1500) == "1.5s"
        assert display_manager.format_duration(90000) == "1.5m"

    def test_format_timestamp(self, display_manager):
        assert display_manager.format_timestamp(datetime(2024, 1, 1, 9, 5, 7)) == "09:05:07"

    def test_synthesis_panel(self, display_manager, engine, clock):
        synthesis = engine.synthesize([
            Perspective("p_1", "co_founder", {"decision": "approve", "key_points": ["Strong team"]}, 0.9, "", clock()),
            Perspective("p_2", "credit_analyst", {"decision": "decline"}, 0.6, "", clock()),
        ])

        panel = display_manager.create_synthesis_panel(synthesis)
        display_manager.console.print(panel)

        assert isinstance(panel, Panel)
        output = rendered(display_manager.console)
        assert "Strong team" in output
        assert "Disagreement on:" in output

    def test_label_styles(self, display_manager):
        assert display_manager._label_style(ConsensusLabel.STRONG) == "bright_green"
        assert display_manager._label_style(ConsensusLabel.LIMITED) == "bright_yellow"

    @pytest.mark.asyncio
    async def test_task_result_panel(self, display_manager, orchestrator, user_context):
        result = await orchestrator.orchestrate_task(
            "Should we take the loan?", LOAN_AGENTS + [AgentType.IMPACT_ANALYST], user_context,
            CollaborationOptions(require_consensus=True, handoff_to=AgentType.CREDIT_ANALYST)
        )

        display_manager.console.print(display_manager.create_task_result_panel(result))

        output = rendered(display_manager.console)
        assert "Collaboration Summary" in output
        assert "Consensus Summary" in output
        assert "Co-Founder™" in output
        assert "AgentNotRegisteredError" in output
        assert "Transition Steps" in output

    @pytest.mark.asyncio
    async def test_analytics_table(self, display_manager, orchestrator, user_context):
        await orchestrator.orchestrate_task("Should we take the loan?", LOAN_AGENTS, user_context)
        analytics = await orchestrator.get_collaboration_analytics("user_1")

        table = display_manager.create_analytics_table(analytics)

        assert isinstance(table, Table)
        assert table.row_count == 5

    def test_error_panel(self, display_manager):
        panel = display_manager.create_error_panel("Delegation failed", {"agent": "credit_analyst"})
        display_manager.console.print(panel)

        output = rendered(display_manager.console)
        assert "Delegation failed" in output
        assert "credit_analyst" in output
