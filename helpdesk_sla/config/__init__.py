"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="helpdesk-sla", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/helpdesk",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA Defaults ==========
    sla_default_timezone: str = Field(
        default="America/Sao_Paulo",
        description="Timezone applied to new SLA configs when none is given"
    )
    sla_default_business_hours_start: str = Field(default="09:00", description="HH:MM")
    sla_default_business_hours_end: str = Field(default="18:00", description="HH:MM")
    sla_default_business_days: List[int] = Field(
        default=[1, 2, 3, 4, 5],
        description="ISO weekdays (1=Monday, 7=Sunday)"
    )
    sla_at_risk_threshold_percent: float = Field(
        default=25.0,
        description="A leg is at risk when this percentage or less of its window remains",
        gt=0,
        lt=100
    )
    sla_due_date_mode: str = Field(
        default="linear",
        description="'linear' wall-clock arithmetic or 'business_hours' calendar walk"
    )

    # ========== SLA Sweep ==========
    sla_sweep_enabled: bool = Field(
        default=False,
        description="Run the background SLA recalculation job"
    )
    sla_evaluation_interval: int = Field(
        default=60,
        description="Seconds between SLA sweeps",
        ge=10
    )

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL for SLA alert notifications"
    )
    slack_channel: str = Field(
        default="#sla-alerts",
        description="Slack channel for SLA notifications"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
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
        allowed = {"development", "test", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("sla_due_date_mode")
    @classmethod
    def validate_due_date_mode(cls, v: str) -> str:
        allowed = {DueDateMode.LINEAR, DueDateMode.BUSINESS_HOURS}
        if v not in allowed:
            raise ValueError(f"sla_due_date_mode must be one of {allowed}")
        return v

    @property
    def sla_at_risk_ratio(self) -> float:
        """At-risk threshold as a fraction of the allotted window."""
        return self.sla_at_risk_threshold_percent / 100


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# ========== Constants ==========

class Priority(str):
    """Ticket priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SLAStatus(str):
    """Compliance status of a single SLA leg."""
    COMPLIANT = "compliant"
    AT_RISK = "at_risk"
    BREACHED = "breached"


class SLALeg(str):
    """The two independently tracked SLA timers of a ticket."""
    FIRST_RESPONSE = "first_response"
    RESOLUTION = "resolution"


class SLALogAction(str):
    """Audit trail actions."""
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    VIOLATION = "violation"
    RESOLUTION = "resolution"


class AlertType(str):
    """SLA alert types."""
    FIRST_RESPONSE_WARNING = "first_response_warning"
    RESOLUTION_WARNING = "resolution_warning"
    FIRST_RESPONSE_BREACH = "first_response_breach"
    RESOLUTION_BREACH = "resolution_breach"


class UserRole(str):
    """Roles recognised by the SLA endpoints."""
    GLOBAL_ADMIN = "global_admin"
    TENANT_ADMIN = "tenant_admin"
    AGENT = "agent"
    CUSTOMER = "customer"


class DueDateMode(str):
    """How due dates are derived from the allotted minutes."""
    LINEAR = "linear"
    BUSINESS_HOURS = "business_hours"


# ========== Lists for validation ==========

VALID_PRIORITIES = [
    Priority.LOW, Priority.MEDIUM,
    Priority.HIGH, Priority.CRITICAL
]
VALID_SLA_LEGS = [SLALeg.FIRST_RESPONSE, SLALeg.RESOLUTION]
ADMIN_ROLES = [UserRole.TENANT_ADMIN, UserRole.GLOBAL_ADMIN]


# Global settings instance
settings = get_settings()
