"""
Display components for the Concord Rich terminal UI.

This module renders collaboration results, consensus syntheses, handoff
packages and analytics as Rich panels and tables.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from dataclasses import dataclass

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from concord.agents.base import AgentRef, AgentResult, agent_key
from concord.agents.profiles import AgentCategory, classify_agent, display_name
from concord.orchestrator.collaboration import AgentFailure, ConsensusOutcome, TaskResult
from concord.orchestrator.consensus import ConsensusLabel, Synthesis
from concord.orchestrator.handoff import HandoffPackage
from concord.utils.helpers import short_id, truncate_text
from concord.utils.logger import get_logger

logger = get_logger("ui.display")


@dataclass
class DisplayTheme:
    """Theme configuration for display components."""
    primary: str = "bright_blue"
    secondary: str = "bright_cyan"
    success: str = "bright_green"
    warning: str = "bright_yellow"
    error: str = "bright_red"
    info: str = "bright_white"
    muted: str = "dim white"

    # Agent category colors
    co_agent_color: str = "bright_magenta"
    functional_color: str = "bright_green"
    orchestrator_color: str = "bright_blue"


class DisplayManager:
    """
    Manager for creating Rich display components.

    Every component uses the same theme so agents keep their color across
    result, consensus and handoff views.
    """

    def __init__(self, console: Optional[Console] = None, theme: Optional[DisplayTheme] = None):
        self.console = console or Console()
        self.theme = theme or DisplayTheme()
        self.logger = get_logger("ui.display_manager")

    def get_agent_color(self, agent_type: AgentRef) -> str:
        """Get color for an agent type."""
        key = agent_key(agent_type)
        if key == "platform_orchestrator":
            return self.theme.orchestrator_color

        color_map = {
            AgentCategory.CO_AGENT: self.theme.co_agent_color,
            AgentCategory.FUNCTIONAL: self.theme.functional_color,
        }
        return color_map.get(classify_agent(key), self.theme.info)

    def format_timestamp(self, timestamp: datetime) -> str:
        """Format timestamp for display."""
        return timestamp.strftime("%H:%M:%S")

    def format_duration(self, duration_ms: float) -> str:
        """Format duration for display."""
        if duration_ms < 1000:
            return f"{duration_ms:.0f}ms"
        elif duration_ms < 60000:
            return f"{duration_ms/1000:.1f}s"
        else:
            return f"{duration_ms/60000:.1f}m"

    def _label_style(self, label: ConsensusLabel) -> str:
        return {
            ConsensusLabel.STRONG: self.theme.success,
            ConsensusLabel.MODERATE: self.theme.secondary,
            ConsensusLabel.LIMITED: self.theme.warning,
        }.get(label, self.theme.info)

    def create_synthesis_panel(self, synthesis: Synthesis, title: str = "Synthesis") -> Panel:
        """Create a panel displaying a consensus synthesis."""
        content = []

        summary_table = Table(show_header=False, box=None)
        summary_table.add_column(style="bold")
        summary_table.add_column()

        summary_table.add_row(
            "Consensus:",
            Text(synthesis.consensus_label.value.title(), style=self._label_style(synthesis.consensus_label))
        )
        summary_table.add_row("Confidence:", f"{synthesis.confidence:.2f}")
        summary_table.add_row("Agreement:", f"{synthesis.agreement_level:.2f}")
        summary_table.add_row("Perspectives:", str(synthesis.perspective_count))
        if synthesis.leading_decision is not None:
            summary_table.add_row("Leading decision:", str(synthesis.leading_decision))

        content.append(summary_table)
        content.append(Text(synthesis.consensus_summary, style=self.theme.muted))

        if synthesis.key_points:
            points_tree = Tree("Key Points", style=self.theme.secondary)
            for point in synthesis.key_points:
                points_tree.add(truncate_text(point, 120))
            content.append(points_tree)

        if synthesis.recommendations:
            rec_tree = Tree("Recommendations", style=self.theme.secondary)
            for rec in synthesis.recommendations:
                rec_tree.add(truncate_text(rec, 120))
            content.append(rec_tree)

        if synthesis.areas_of_disagreement:
            content.append(Text(
                "Disagreement on: " + ", ".join(synthesis.areas_of_disagreement),
                style=self.theme.warning
            ))

        return Panel(
            Group(*content),
            title=title,
            style=self.theme.primary
        )

    def create_consensus_panel(self, outcome: ConsensusOutcome) -> Panel:
        """Create a panel displaying a concluded consensus round."""
        summary_table = Table(title="Consensus Summary", style=self.theme.primary)
        summary_table.add_column("Metric", style="bold")
        summary_table.add_column("Value", style=self.theme.success)

        summary_table.add_row("Consensus ID", short_id(outcome.consensus_id))
        summary_table.add_row("Decision", truncate_text(outcome.decision, 80))
        summary_table.add_row("Final decision", str(outcome.final_decision))
        summary_table.add_row("Confidence", f"{outcome.confidence:.2f}")
        summary_table.add_row("Perspectives", str(outcome.perspectives))
        summary_table.add_row("Conflicts", f"{outcome.conflicts} ({len(outcome.resolved_conflicts)} resolved)")

        content = [summary_table, self.create_synthesis_panel(outcome.synthesis)]
        if outcome.failures:
            content.append(self.create_error_panel(
                f"{len(outcome.failures)} agent(s) gave no perspective",
                {agent: failure.message for agent, failure in outcome.failures.items()}
            ))

        return Panel(
            Group(*content),
            title="Consensus Results",
            style=self.theme.primary
        )

    def create_task_result_panel(self, result: TaskResult, detailed: bool = True) -> Panel:
        """Create a panel displaying the outcome of an orchestrated task."""
        content = []

        summary_table = Table(title="Collaboration Summary", style=self.theme.primary)
        summary_table.add_column("Metric", style="bold")
        summary_table.add_column("Value", style=self.theme.success)

        summary_table.add_row("Session ID", short_id(result.session_id))
        summary_table.add_row("Status", result.status.replace("_", " ").title())
        summary_table.add_row("Success", "✅ Yes" if result.success else "❌ No")
        summary_table.add_row("Quality", f"{result.quality_score:.2f}")
        summary_table.add_row("Duration", self.format_duration(result.total_duration * 1000))
        summary_table.add_row(
            "Agents",
            f"{len(result.successful_agents)}/{len(result.participating_agents)} succeeded"
        )

        content.append(summary_table)

        if detailed:
            results_tree = Tree("Agent Results", style=self.theme.secondary)
            for agent, outcome in result.results.items():
                color = self.get_agent_color(agent)
                if isinstance(outcome, AgentResult):
                    node = results_tree.add(
                        f"✅ {display_name(agent)} (confidence: {outcome.confidence:.2f})", style=color
                    )
                    summary = outcome.content.get("summary") or outcome.reasoning
                    if summary:
                        node.add(Text(truncate_text(str(summary), 150), style="dim"))
                elif isinstance(outcome, AgentFailure):
                    node = results_tree.add(f"❌ {display_name(agent)}", style=self.theme.error)
                    node.add(Text(f"{outcome.error_type}: {outcome.message}", style="dim"))
            content.append(results_tree)

        if result.consensus is not None:
            content.append(self.create_consensus_panel(result.consensus))
        else:
            response = result.synthesized_response
            content.append(Panel(
                Text(str(response.get("summary", "")), style=self.theme.info),
                title="Synthesized Response",
                style=self.theme.success if result.success else self.theme.warning
            ))

        if result.handoff is not None:
            content.append(self.create_handoff_panel(result.handoff))

        return Panel(
            Group(*content),
            title=f"Task: {truncate_text(result.task, 60)}",
            style=self.theme.primary
        )

    def create_handoff_panel(self, package: HandoffPackage) -> Panel:
        """Create a panel displaying a completed handoff package."""
        info_table = Table(show_header=False, box=None)
        info_table.add_column(style="bold")
        info_table.add_column()

        info_table.add_row("Handoff ID:", short_id(package.handoff_id))
        info_table.add_row("From:", Text(display_name(package.from_agent),
                                         style=self.get_agent_color(package.from_agent)))
        info_table.add_row("To:", Text(display_name(package.to_agent),
                                       style=self.get_agent_color(package.to_agent)))
        info_table.add_row("Transition:", str(package.transition_plan.get("category", "unknown")))
        info_table.add_row(
            "Expected:",
            f"{package.transition_plan.get('estimated_duration_minutes', 0)} min"
        )
        info_table.add_row("At:", self.format_timestamp(package.timestamp))

        steps_tree = Tree("Transition Steps", style=self.theme.secondary)
        for step in package.transition_plan.get("steps", []):
            steps_tree.add(step)

        return Panel(
            Group(info_table, steps_tree, Text(package.notification, style=self.theme.info)),
            title="🔀 Handoff",
            style=self.theme.secondary
        )

    def create_analytics_table(self, analytics: Dict[str, Any]) -> Table:
        """Create a table from the combined collaboration analytics."""
        overall = analytics.get("overall", {})

        table = Table(title="Collaboration Analytics", style=self.theme.primary)
        table.add_column("Area", style="bold")
        table.add_column("Total", style=self.theme.info)
        table.add_column("Success Rate", style=self.theme.success)
        table.add_column("Avg Duration", style=self.theme.warning)

        rows = [
            ("Communication", "communication", "total_collaborations"),
            ("Context", "context", "total_contexts"),
            ("Consensus", "consensus", "total_sessions"),
            ("Handoffs", "handoffs", "total_handoffs"),
        ]
        for label, key, total_key in rows:
            area = analytics.get(key, {})
            rate = area.get("success_rate")
            duration = area.get("average_duration_minutes")
            table.add_row(
                label,
                str(area.get(total_key, 0)),
                f"{rate:.1%}" if rate is not None else "-",
                f"{duration:.1f}m" if duration is not None else "-"
            )

        table.add_row(
            "Overall",
            str(overall.get("total_interactions", 0)),
            f"{overall.get('success_rate', 0):.1%}",
            f"{overall.get('average_duration_minutes', 0):.1f}m",
            style="bold"
        )
        return table

    def create_error_panel(self, error_message: str, details: Optional[Dict[str, Any]] = None) -> Panel:
        """Create a panel displaying error information."""
        content = [Text(error_message, style=self.theme.error)]

        if details:
            details_table = Table(show_header=False, box=None)
            details_table.add_column(style="bold")
            details_table.add_column(style=self.theme.muted)

            for key, value in details.items():
                details_table.add_row(f"{key}:", str(value))

            content.append(details_table)

        return Panel(
            Group(*content),
            title="⚠️ Error",
            style=self.theme.error
        )
