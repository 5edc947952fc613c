"""
Interactive terminal interface for Concord.

Runs a local collaboration session against a set of rule-based advisory
agents so the messaging, context, consensus and handoff layers can be
exercised without any model backend.
"""

import asyncio
import shlex
import sys
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from concord.agents.base import AgentType, FunctionAgent, TaskContext, UserContext
from concord.agents.profiles import agent_keywords, display_name
from concord.orchestrator.collaboration import (
    CollaborationOptions,
    CollaborationOrchestrator,
    DelegationOptions
)
from concord.persistence.archive import ArchiveSink, DatabaseArchive, InMemoryArchive
from concord.persistence.database import DatabaseManager
from concord.ui.display import DisplayManager
from concord.utils.exceptions import ConcordError
from concord.utils.helpers import generate_id, short_id
from concord.utils.logger import get_logger, setup_logging
from config.settings import settings

logger = get_logger("cli")

DEFAULT_PARTICIPANTS = [
    AgentType.CO_FOUNDER,
    AgentType.BUSINESS_ADVISOR,
    AgentType.CREDIT_ANALYST,
]

# Per-agent appetite for risk; drives the canned decision each demo agent gives.
_RISK_APPETITE = {
    AgentType.CO_FOUNDER: 0.8,
    AgentType.CO_INVESTOR: 0.6,
    AgentType.CO_BUILDER: 0.7,
    AgentType.BUSINESS_ADVISOR: 0.6,
    AgentType.INVESTMENT_ANALYST: 0.5,
    AgentType.CREDIT_ANALYST: 0.3,
    AgentType.IMPACT_ANALYST: 0.6,
    AgentType.PROGRAM_MANAGER: 0.5,
    AgentType.PLATFORM_ORCHESTRATOR: 0.5,
}

_RISK_WORDS = ("loan", "debt", "borrow", "risk", "credit", "leverage")


def advisory_agent(agent_type: AgentType) -> FunctionAgent:
    """Build a rule-based agent whose answer depends on its risk appetite and the task wording."""
    appetite = _RISK_APPETITE[agent_type]

    async def handler(context: TaskContext) -> Dict[str, Any]:
        task = context.task.lower()
        risky = any(word in task for word in _RISK_WORDS)
        matched = [kw for kw in agent_keywords(agent_type) if kw in task]
        approve = appetite >= (0.5 if risky else 0.3)

        return {
            "decision": "approve" if approve else "decline",
            "summary": f"{display_name(agent_type)} {'supports' if approve else 'advises against'} this",
            "key_points": [f"Assessed from a {kw} perspective" for kw in matched] or ["General assessment"],
            "recommendations": (
                ["Proceed with staged milestones"] if approve else ["Strengthen cash flow before committing"]
            ),
            "risk_level": "medium" if risky else "low",
            "confidence": round(0.6 + 0.3 * (len(matched) / max(len(agent_keywords(agent_type)), 1)), 2),
            "reasoning": f"Risk appetite {appetite:.1f}; shared context items: {len(context.shared_context)}",
        }

    return FunctionAgent(agent_type, handler, name=display_name(agent_type))


class CLI:
    """
    Command-line interface for Concord.

    Plain input runs a collaboration across the selected agents; slash
    commands reach consensus, delegation, handoff and analytics directly.
    """

    def __init__(self, orchestrator: CollaborationOrchestrator, user_context: UserContext,
                 console: Optional[Console] = None):
        self.orchestrator = orchestrator
        self.user_context = user_context
        self.console = console or Console()
        self.display = DisplayManager(self.console)
        self.participants: List[AgentType] = list(DEFAULT_PARTICIPANTS)
        self.require_consensus = True
        self.running = False

    async def run(self) -> None:
        """Run the CLI interface."""
        self.show_welcome()
        self.running = True

        while self.running:
            try:
                user_input = await asyncio.to_thread(
                    Prompt.ask, "[bold blue]concord>[/bold blue]", console=self.console
                )
                if not user_input.strip():
                    continue

                if user_input.startswith("/"):
                    await self.handle_command(user_input)
                else:
                    await self.handle_collaboration_request(user_input)

            except KeyboardInterrupt:
                self.console.print("\n[yellow]Use /exit to quit properly[/yellow]")
            except EOFError:
                break
            except ConcordError as e:
                self.console.print(self.display.create_error_panel(e.message, {"code": e.error_code}))

    def show_welcome(self) -> None:
        agents = ", ".join(display_name(a) for a in self.participants)
        self.console.print(Panel.fit(
            f"""[bold cyan]Concord - Multi-Agent Collaboration Core[/bold cyan]
[dim]Version {settings.app_version} | Environment: {settings.app_env.value}[/dim]

Participants: {agents}

Type a task to start a collaboration, or use commands:
[cyan]/help[/cyan] - Show all commands
[cyan]/exit[/cyan] - Quit application""",
            title="Welcome",
            border_style="bright_blue"
        ))

    async def handle_command(self, command: str) -> None:
        """Handle CLI commands."""
        try:
            parts = shlex.split(command.strip())
        except ValueError:
            # Unbalanced quotes, e.g. an apostrophe in free text
            parts = command.split()
        cmd, args = parts[0].lower(), parts[1:]

        if cmd == "/help":
            self.show_help()
        elif cmd in ("/exit", "/quit"):
            self.console.print("[yellow]Goodbye![/yellow]")
            self.running = False
        elif cmd == "/agents":
            self.select_agents(args)
        elif cmd == "/consensus":
            if not args:
                self.console.print("[red]Usage: /consensus <decision>[/red]")
                return
            outcome = await self.orchestrator.build_consensus(" ".join(args), self.participants, self.user_context)
            self.console.print(self.display.create_consensus_panel(outcome))
        elif cmd == "/delegate":
            if len(args) < 2:
                self.console.print("[red]Usage: /delegate <agent> <task>[/red]")
                return
            if args[0] not in {a.value for a in AgentType}:
                self.console.print(f"[red]Unknown agent: {args[0]}[/red]")
                return
            result = await self.orchestrator.handle_delegation(
                AgentType.PLATFORM_ORCHESTRATOR, args[0], " ".join(args[1:]), self.user_context,
                DelegationOptions(require_handoff=True)
            )
            if result.handoff is not None:
                self.console.print(self.display.create_handoff_panel(result.handoff))
            self.console.print(f"Delegation {short_id(result.delegation_id)}: "
                               f"{'[green]done[/green]' if result.success else '[red]failed[/red]'}")
        elif cmd == "/analytics":
            analytics = await self.orchestrator.get_collaboration_analytics(self.user_context.user_id)
            self.console.print(self.display.create_analytics_table(analytics))
            for rec in analytics["overall"]["recommendations"]:
                self.console.print(f"  • {rec}")
        elif cmd == "/active":
            await self.show_active()
        elif cmd == "/end":
            for session in await self.orchestrator.get_active_collaborations(self.user_context.user_id):
                await self.orchestrator.end_collaboration(session.session_id)
                self.console.print(f"Ended {short_id(session.session_id)}")
        elif cmd == "/consensus-mode":
            self.require_consensus = not self.require_consensus
            self.console.print(f"Consensus {'on' if self.require_consensus else 'off'}")
        else:
            self.console.print(f"[red]Unknown command: {cmd}[/red]")

    async def handle_collaboration_request(self, task: str) -> None:
        with self.console.status("[bold green]Agents are collaborating..."):
            result = await self.orchestrator.orchestrate_task(
                task,
                self.participants,
                self.user_context,
                CollaborationOptions(require_consensus=self.require_consensus)
            )
        self.user_context.conversation_history.append({"role": "user", "content": task})
        self.console.print(self.display.create_task_result_panel(result))

    def select_agents(self, names: List[str]) -> None:
        if not names:
            self.console.print("Available: " + ", ".join(a.value for a in AgentType))
            return
        try:
            self.participants = [AgentType(name) for name in names]
        except ValueError as e:
            self.console.print(f"[red]{e}[/red]")
            return
        self.console.print("Participants: " + ", ".join(display_name(a) for a in self.participants))

    async def show_active(self) -> None:
        table = Table(title="Active Collaborations")
        table.add_column("Session", style="bold")
        table.add_column("Status")
        table.add_column("Agents")
        table.add_column("Task")
        for session in await self.orchestrator.get_active_collaborations(self.user_context.user_id):
            table.add_row(short_id(session.session_id), session.status.value,
                          str(len(session.participating_agents)), session.task)
        self.console.print(table)

    def show_help(self) -> None:
        table = Table(title="Commands", show_header=False)
        table.add_column(style="cyan")
        table.add_column()
        table.add_row("<task>", "Run a collaboration over the selected agents")
        table.add_row("/agents [names...]", "List or select participating agents")
        table.add_row("/consensus <decision>", "Collect perspectives and conclude a decision")
        table.add_row("/consensus-mode", "Toggle consensus for collaborations")
        table.add_row("/delegate <agent> <task>", "Delegate a task with a handoff")
        table.add_row("/active", "List open collaboration sessions")
        table.add_row("/end", "Complete all open collaboration sessions")
        table.add_row("/analytics", "Show collaboration analytics")
        table.add_row("/exit", "Quit")
        self.console.print(table)


async def build_archive() -> Optional[ArchiveSink]:
    if not settings.archive_enabled:
        return None
    if settings.database_url:
        db_manager = DatabaseManager()
        await db_manager.initialize()
        return DatabaseArchive(db_manager)
    return InMemoryArchive()


async def main() -> None:
    """Main application entry point."""
    setup_logging()
    archive = None
    try:
        archive = await build_archive()
        orchestrator = CollaborationOrchestrator(
            agents=[advisory_agent(agent_type) for agent_type in AgentType],
            archive=archive
        )
        user_context = UserContext(user_id="local_user", user_type="founder", session_id=generate_id("session"))
        await CLI(orchestrator, user_context).run()
    except KeyboardInterrupt:
        logger.info("CLI shutdown requested")
    except ConcordError as e:
        logger.error(f"Concord failed to start: {e.message}")
        sys.exit(1)
    finally:
        if isinstance(archive, DatabaseArchive):
            await archive.db_manager.close()


def cli_main():
    """Entry point for the concord console script."""
    asyncio.run(main())


if __name__ == "__main__":
    cli_main()
