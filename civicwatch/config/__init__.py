"""
Configuration Module
====================

Application settings and domain constants.

Settings are loaded from environment variables (and `.env`) using
pydantic-settings. Enumerations used across the bounded contexts live
here so every layer speaks the same vocabulary.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="civicwatch", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/civicwatch",
        description="Async SQLAlchemy connection URL"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA Policy ==========
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="Path to SLA policy YAML file (hot-reloaded)"
    )
    sla_duration_seconds: int = Field(
        default=86400,
        description="Service window granted at admission and after every escalation",
        ge=1
    )

    # ========== SLA Watchdog ==========
    watchdog_enabled: bool = Field(default=True, description="Run the background watchdog")
    watchdog_interval_seconds: int = Field(
        default=60,
        description="Seconds between scheduled watchdog ticks",
        ge=1
    )
    watchdog_batch_size: int = Field(
        default=250,
        description="Maximum overdue complaints advanced per tick",
        ge=1
    )
    watchdog_start_jitter_min_seconds: float = Field(default=0.5, ge=0.0)
    watchdog_start_jitter_max_seconds: float = Field(default=2.0, ge=0.0)

    # ========== Classification / Advisory LLM ==========
    llm_api_key: Optional[str] = Field(
        default=None,
        description="API key for the OpenAI-compatible classification endpoint"
    )
    llm_base_url: Optional[str] = Field(
        default="https://generativelanguage.googleapis.com/v1beta/openai/",
        description="OpenAI-compatible base URL (Gemini by default)"
    )
    llm_model: str = Field(default="gemini-2.0-flash", description="Vision-capable chat model")
    llm_temperature: float = Field(default=0.2, ge=0.0, le=1.0)
    llm_max_tokens: int = Field(default=800, ge=1, le=8000)
    mock_llm: bool = Field(
        default=False,
        description="Use mock LLM responses (no API calls)"
    )
    classification_timeout_seconds: float = Field(
        default=60.0,
        description="Upper bound for one classification call",
        gt=0
    )
    advisory_timeout_seconds: float = Field(
        default=15.0,
        description="Upper bound for one escalation justification call",
        gt=0
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:8080", "http://127.0.0.1:8080"],
        description="Allowed CORS origins"
    )

    # ========== Grafana OTLP Metrics ==========
    grafana_host: Optional[str] = Field(default=None, description="Grafana OTLP gateway URL")
    grafana_api_key: Optional[str] = Field(default=None, description="Grafana API key")
    grafana_instance_id: Optional[str] = Field(default=None, description="Grafana instance ID")

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

    @model_validator(mode="after")
    def validate_jitter_window(self) -> "Settings":
        if self.watchdog_start_jitter_max_seconds < self.watchdog_start_jitter_min_seconds:
            raise ValueError("watchdog_start_jitter_max_seconds must be >= the minimum")
        return self


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

# Submissions scoring below this are rejected without creating a record.
CONFIDENCE_FLOOR = 0.2

# Authenticity bands over the classifier confidence.
UNCERTAIN_THRESHOLD = 0.2
REAL_THRESHOLD = 0.6

MAX_ESCALATION_LEVEL = 3


class ComplaintStatus(str, Enum):
    """Complaint lifecycle statuses."""
    SUBMITTED = "submitted"
    ANALYZED = "analyzed"
    ASSIGNED = "assigned"
    ACKNOWLEDGED = "acknowledged"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    SLA_WARNING = "sla_warning"
    ESCALATED = "escalated"
    RESOLVED = "resolved"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AuthenticityStatus(str, Enum):
    """How believable the classifier found the report."""
    FAKE = "fake"
    UNCERTAIN = "uncertain"
    REAL = "real"


class Actor(str, Enum):
    """Who performed an audited action."""
    SYSTEM = "system"
    CITIZEN = "citizen"
    OFFICIAL = "official"


class DecisionSource(str, Enum):
    """Where a classification decision came from."""
    EXTERNAL = "external"
    FALLBACK = "fallback"


class IssueCategory(str, Enum):
    """Civic issue categories accepted from the classifier."""
    POTHOLE = "pothole"
    GARBAGE = "garbage"
    STREETLIGHT = "streetlight"
    DRAINAGE = "drainage"
    WATER_LEAK = "water_leak"
    ROAD_DAMAGE = "road_damage"
    PUBLIC_PROPERTY = "public_property"
    ILLEGAL_DUMPING = "illegal_dumping"
    TRAFFIC_SIGN = "traffic_sign"
    SIDEWALK = "sidewalk"
    OTHER = "other"


# ========== Lists for validation ==========

ISSUE_CATEGORIES = [c.value for c in IssueCategory]
SEVERITY_LEVELS = [s.value for s in Severity]

ACTIVE_STATUSES = [s for s in ComplaintStatus if s != ComplaintStatus.RESOLVED]

# Routing table: departments are fixed by category, never by model output.
CATEGORY_DEPARTMENTS: Dict[IssueCategory, str] = {
    IssueCategory.POTHOLE: "Roads & Highways",
    IssueCategory.ROAD_DAMAGE: "Roads & Highways",
    IssueCategory.SIDEWALK: "Roads & Highways",
    IssueCategory.TRAFFIC_SIGN: "Traffic Management",
    IssueCategory.GARBAGE: "Sanitation",
    IssueCategory.ILLEGAL_DUMPING: "Sanitation",
    IssueCategory.STREETLIGHT: "Electrical",
    IssueCategory.DRAINAGE: "Drainage & Sewerage",
    IssueCategory.WATER_LEAK: "Water Supply",
    IssueCategory.PUBLIC_PROPERTY: "Public Works",
    IssueCategory.OTHER: "Public Works",
}
