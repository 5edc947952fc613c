"""
Concord - Multi-Agent Collaboration Core

Message passing, shared context, consensus building and handoffs for a
set of cooperating advisory agents.
"""

__version__ = "1.0.0"
__author__ = "Concord Team"
__description__ = "Multi-Agent Collaboration Core"

# Core imports for easy access
from config.settings import settings

# Agent types for external use
from concord.agents.base import AgentType, BaseAgent, FunctionAgent, UserContext

# Main orchestrator for external integrations
from concord.orchestrator.collaboration import CollaborationOrchestrator, CollaborationOptions

# Archive persistence
from concord.persistence.database import DatabaseManager

# Logging setup
from concord.utils.logger import setup_logging, get_logger

__all__ = [
    "__version__",
    "__author__",
    "__description__",
    "settings",
    "AgentType",
    "BaseAgent",
    "FunctionAgent",
    "UserContext",
    "CollaborationOrchestrator",
    "CollaborationOptions",
    "DatabaseManager",
    "setup_logging",
    "get_logger"
]
