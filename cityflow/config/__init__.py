"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="cityflow-crm", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/cityflow",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA Monitoring ==========
    sla_evaluation_interval: int = Field(
        default=300,
        description="Seconds between SLA status refreshes (0 disables the job)",
        ge=0
    )

    # ========== Escalation Webhook (Slack compatible) ==========
    escalation_webhook_url: Optional[str] = Field(
        default=None,
        description="Webhook URL for escalation and breach notifications"
    )
    escalation_channel: str = Field(
        default="#cityflow-escalations",
        description="Channel named in escalation notifications"
    )
    escalation_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for webhook calls",
        ge=0.1,
        le=30
    )
    ticket_base_url: str = Field(
        default="https://crm.cityflow.local/tickets",
        description="Base URL used to link tickets in notifications"
    )

    # ========== Object Storage ==========
    storage_url: str = Field(
        default="http://localhost:54321/storage/v1",
        description="Object storage API base URL"
    )
    storage_bucket: str = Field(default="ticket-attachments", description="Attachment bucket")
    storage_api_key: Optional[str] = Field(default=None, description="Object storage service key")
    max_attachment_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Largest accepted attachment",
        ge=1
    )

    # ========== Sessions ==========
    session_ttl_seconds: int = Field(
        default=300,
        description="How long a cached profile is trusted before it is reloaded",
        ge=0
    )

    # ========== Seed data ==========
    seed_path: Path = Field(
        default=Path("seed.yaml"),
        description="YAML file with reference data for scripts/seed_directory.py"
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:5173", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class TicketStatus(str, Enum):
    """Ticket lifecycle statuses."""
    NEW = "new"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    PENDING = "pending"
    RESOLVED = "resolved"
    CLOSED = "closed"


class Priority(str, Enum):
    """Ticket priority levels."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class SLAStatus(str, Enum):
    """Live SLA buckets."""
    ON_TRACK = "on-track"
    WARNING = "warning"
    BREACHED = "breached"


class TeamType(str, Enum):
    """Team kinds. A city team is the tier-2 escalation team of a region."""
    FUNCTIONAL = "functional"
    CITY_TEAM = "city_team"
    CUSTOM = "custom"


class GroupStatus(str, Enum):
    """Ticket group statuses."""
    ACTIVE = "active"
    RESOLVED = "resolved"


class UserRole(str, Enum):
    """Staff roles."""
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    AGENT = "agent"


# ========== Lists for validation ==========

VALID_STATUSES = [s.value for s in TicketStatus]
VALID_PRIORITIES = [p.value for p in Priority]
VALID_SLA_STATUSES = [s.value for s in SLAStatus]
VALID_TEAM_TYPES = [t.value for t in TeamType]
COMPLETED_STATUSES = (TicketStatus.RESOLVED, TicketStatus.CLOSED)
OPEN_STATUSES = tuple(s for s in TicketStatus if s not in COMPLETED_STATUSES)
