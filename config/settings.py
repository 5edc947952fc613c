"""
Settings configuration for Concord.

Configuration for the collaboration core using Pydantic settings. Every value
has a working default so the library runs without a .env file; the heuristic
thresholds used by the consensus engine and context store are exposed here
so deployments can tune them.
"""

from pathlib import Path
from typing import Optional
from enum import Enum
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Application settings with validation."""

    model_config = SettingsConfigDict(
        env_prefix="CONCORD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================
    # Application Settings
    # ============================================
    app_name: str = Field(default="Concord")
    app_env: Environment = Field(default=Environment.DEVELOPMENT)
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)

    # Logging Configuration
    log_level: LogLevel = Field(default=LogLevel.INFO)
    log_file: Optional[Path] = Field(default=None)
    log_max_size: int = Field(default=10485760)  # 10MB
    log_backup_count: int = Field(default=5)

    # ============================================
    # Archive Configuration
    # ============================================
    archive_enabled: bool = Field(default=True)
    database_url: Optional[str] = Field(default=None)
    database_echo: bool = Field(default=False)

    # ============================================
    # Message Channel
    # ============================================
    message_history_limit: int = Field(default=100, ge=1)
    collaboration_consensus_ratio: float = Field(default=0.6, ge=0.0, le=1.0)
    result_success_confidence: float = Field(default=0.7, ge=0.0, le=1.0)

    # ============================================
    # Context Store
    # ============================================
    context_history_limit: int = Field(default=50, ge=1)
    context_similarity_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    context_recency_window_hours: float = Field(default=24.0, gt=0.0)
    context_cleanup_max_age_days: int = Field(default=30, ge=0)

    # ============================================
    # Consensus Engine
    # ============================================
    consensus_contradiction_level: float = Field(default=0.9, ge=0.0, le=1.0)
    consensus_difference_level: float = Field(default=0.7, ge=0.0, le=1.0)
    consensus_confidence_gap_level: float = Field(default=0.5, ge=0.0, le=1.0)
    consensus_conflict_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    consensus_numeric_tolerance: float = Field(default=0.3, ge=0.0)
    consensus_confidence_gap: float = Field(default=0.5, ge=0.0, le=1.0)
    consensus_high_confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    consensus_agreement_ratio: float = Field(default=0.6, ge=0.0, le=1.0)
    consensus_history_limit: int = Field(default=50, ge=1)

    # ============================================
    # Handoff Coordinator
    # ============================================
    handoff_snapshot_turns: int = Field(default=10, ge=0)
    handoff_history_limit: int = Field(default=50, ge=1)

    # ============================================
    # Agent Execution
    # ============================================
    agent_timeout_seconds: Optional[float] = Field(default=120.0)
    enable_parallel_execution: bool = Field(default=True)

    # ============================================
    # UI Configuration
    # ============================================
    ui_enable_colors: bool = Field(default=True)
    ui_max_display_width: int = Field(default=120)

    @model_validator(mode='before')
    @classmethod
    def apply_testing_defaults(cls, values):
        """Keep test runs quiet and file-free unless told otherwise."""
        if isinstance(values, dict):
            env = values.get('app_env')
            if env in (Environment.TESTING, Environment.TESTING.value):
                values.setdefault('log_level', LogLevel.WARNING)
        return values

    @field_validator('log_file', mode='before')
    @classmethod
    def expand_paths(cls, v):
        """Expand user paths."""
        if v in (None, ""):
            return None
        return Path(v).expanduser()

    @field_validator('agent_timeout_seconds', mode='before')
    @classmethod
    def disable_zero_timeout(cls, v):
        """A timeout of zero or less disables the per-agent limit."""
        if v is not None and float(v) <= 0:
            return None
        return v

    @property
    def is_testing(self) -> bool:
        return self.app_env == Environment.TESTING

    @property
    def is_production(self) -> bool:
        return self.app_env == Environment.PRODUCTION


# Global settings instance
settings = Settings()
