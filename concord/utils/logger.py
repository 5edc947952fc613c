"""
Logging configuration for Concord.

Structured logging with loguru, performance monitoring, and context tracking
for multi-agent collaboration sessions.
"""

import contextlib
import logging
import sys
import time
from typing import Any, Dict, List, Optional
from contextvars import ContextVar

from loguru import logger as loguru_logger
from config import settings
from concord.utils.helpers import short_id


# Context variables for session tracking
session_id_var: ContextVar[Optional[str]] = ContextVar('session_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)
agent_name_var: ContextVar[Optional[str]] = ContextVar('agent_name', default=None)


class AsyncPerformanceLogger:
    """Context manager for performance logging of async operations."""

    def __init__(
        self,
        logger: logging.Logger,
        operation: str,
        level: int = logging.INFO,
        **context_data
    ):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.context_data = context_data
        self.start_time: Optional[float] = None
        self.duration: Optional[float] = None

    async def __aenter__(self):
        """Start performance monitoring."""
        self.start_time = time.perf_counter()
        self.logger.log(
            self.level,
            f"Started {self.operation}",
            extra={"operation": self.operation, "event": "start", **self.context_data}
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """End performance monitoring and log results."""
        if self.start_time is None:
            return
        self.duration = time.perf_counter() - self.start_time

        if exc_type is None:
            self.logger.log(
                self.level,
                f"Completed {self.operation} in {self.duration:.3f}s",
                extra={
                    "operation": self.operation,
                    "event": "complete",
                    "duration_seconds": self.duration,
                    "success": True,
                    **self.context_data
                }
            )
        else:
            self.logger.error(
                f"Failed {self.operation} after {self.duration:.3f}s: {exc_val}",
                extra={
                    "operation": self.operation,
                    "event": "error",
                    "duration_seconds": self.duration,
                    "success": False,
                    "error_type": exc_type.__name__,
                    **self.context_data
                }
            )


@contextlib.contextmanager
def log_context(
    session_id: Optional[str] = None,
    user_id: Optional[str] = None,
    agent_name: Optional[str] = None
):
    """Context manager for setting logging context variables."""
    token_session = session_id_var.set(session_id) if session_id else None
    token_user = user_id_var.set(user_id) if user_id else None
    token_agent = agent_name_var.set(agent_name) if agent_name else None

    try:
        yield
    finally:
        if token_session:
            session_id_var.reset(token_session)
        if token_user:
            user_id_var.reset(token_user)
        if token_agent:
            agent_name_var.reset(token_agent)


def setup_logging() -> None:
    """Set up logging configuration for the application."""

    if settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)

    loguru_logger.remove()
    loguru_logger.configure(extra={"session_id": None, "user_id": None, "agent_name": None})

    if settings.ui_enable_colors:
        console_format = (
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        )
    else:
        console_format = (
            "{time:YYYY-MM-DD HH:mm:ss} | "
            "{level: <8} | "
            "{name}:{function}:{line} | "
            "{message}"
        )

    loguru_logger.add(
        sys.stderr,
        format=console_format,
        level=settings.log_level.value,
        colorize=settings.ui_enable_colors,
        backtrace=settings.debug,
        diagnose=settings.debug
    )

    if settings.log_file:
        file_format = (
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{name}:{function}:{line} | "
            "session:{extra[session_id]} | "
            "user:{extra[user_id]} | "
            "agent:{extra[agent_name]} | "
            "{message}"
        )

        loguru_logger.add(
            str(settings.log_file),
            format=file_format,
            level=settings.log_level.value,
            rotation=settings.log_max_size,
            retention=settings.log_backup_count,
            compression="gz",
            backtrace=settings.debug,
            diagnose=settings.debug,
            enqueue=True
        )

    # Route standard library logging through loguru
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.INFO if settings.database_echo else logging.WARNING)


class InterceptHandler(logging.Handler):
    """Intercept standard library logs and redirect to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        """Emit log record through loguru."""
        try:
            level = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where the logged message originated
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        loguru_logger.bind(
            session_id=session_id_var.get(),
            user_id=user_id_var.get(),
            agent_name=agent_name_var.get()
        ).opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance namespaced under concord."""
    if not name.startswith("concord"):
        name = f"concord.{name}"
    return logging.getLogger(name)


class ConsensusLogger:
    """Specialized logger for consensus operations."""

    def __init__(self):
        self.logger = get_logger("orchestrator.consensus")

    def log_consensus_start(self, consensus_id: str, decision: str, participants: List[str]):
        """Log start of a consensus session."""
        self.logger.info(
            f"Starting consensus {short_id(consensus_id)} with {len(participants)} agents: {decision[:60]}",
            extra={
                "consensus_id": consensus_id,
                "participants": participants,
                "event": "consensus_start"
            }
        )

    def log_perspective(self, consensus_id: str, agent: str, confidence: float, status: str):
        """Log an added perspective and the resulting status."""
        self.logger.info(
            f"Perspective from {agent} on {short_id(consensus_id)} "
            f"(confidence: {confidence:.2f}, status: {status})",
            extra={
                "consensus_id": consensus_id,
                "agent": agent,
                "confidence": confidence,
                "status": status,
                "event": "perspective_added"
            }
        )

    def log_conflict(self, consensus_id: str, conflict_id: str, kind: str, severity: float):
        """Log a recorded conflict."""
        self.logger.warning(
            f"Conflict {short_id(conflict_id)} on {short_id(consensus_id)}: {kind} (severity: {severity:.2f})",
            extra={
                "consensus_id": consensus_id,
                "conflict_id": conflict_id,
                "kind": kind,
                "severity": severity,
                "event": "conflict_detected"
            }
        )

    def log_consensus_end(self, consensus_id: str, decision: str, confidence: float):
        """Log the final decision of a consensus session."""
        self.logger.info(
            f"Consensus {short_id(consensus_id)} reached: {decision[:60]} (confidence: {confidence:.2f})",
            extra={
                "consensus_id": consensus_id,
                "final_decision": decision,
                "confidence": confidence,
                "event": "consensus_end"
            }
        )


class HandoffLogger:
    """Specialized logger for handoff operations."""

    def __init__(self):
        self.logger = get_logger("orchestrator.handoff")

    def log_handoff_initiated(self, handoff_id: str, from_agent: str, to_agent: str, category: str):
        """Log a planned handoff."""
        self.logger.info(
            f"Handoff {short_id(handoff_id)} initiated: {from_agent} -> {to_agent} ({category})",
            extra={
                "handoff_id": handoff_id,
                "from_agent": from_agent,
                "to_agent": to_agent,
                "category": category,
                "event": "handoff_initiated"
            }
        )

    def log_handoff_completed(self, handoff_id: str, duration_seconds: float):
        """Log a completed handoff."""
        self.logger.info(
            f"Handoff {short_id(handoff_id)} completed in {duration_seconds:.3f}s",
            extra={
                "handoff_id": handoff_id,
                "duration_seconds": duration_seconds,
                "event": "handoff_completed"
            }
        )

    def log_handoff_cancelled(self, handoff_id: str, reason: str):
        """Log a cancelled handoff."""
        self.logger.info(
            f"Handoff {short_id(handoff_id)} cancelled: {reason}",
            extra={"handoff_id": handoff_id, "reason": reason, "event": "handoff_cancelled"}
        )


def monitor_performance(operation_name: str = None):
    """Decorator for monitoring async function performance."""

    def decorator(func):
        async def wrapper(*args, **kwargs):
            op_name = operation_name or f"{func.__module__}.{func.__name__}"
            logger = get_logger(func.__module__)

            async with AsyncPerformanceLogger(logger, op_name):
                return await func(*args, **kwargs)

        wrapper.__name__ = func.__name__
        wrapper.__doc__ = func.__doc__
        return wrapper
    return decorator


def log_collaboration_event(event_type: str, details: Dict[str, Any] = None):
    """Log collaboration events."""
    logger = get_logger("orchestrator.collaboration")

    logger.info(
        f"Collaboration event: {event_type}",
        extra={
            "event_type": event_type,
            "details": details or {},
            "event": "collaboration"
        }
    )
