"""
Configuration Module
====================

Application settings and configuration management using Pydantic.

Cache TTLs and the coalescing window are named per-namespace settings,
never literals at call sites.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="caseflow", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Admin API ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    # ========== Backing API ==========
    api_base_url: str = Field(
        default="http://localhost:8000/api",
        description="Base URL of the ticket/resource persistence API"
    )
    api_token: Optional[str] = Field(default=None, description="Bearer token for the backing API")
    api_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for backing API calls",
        gt=0,
        le=120
    )
    api_max_retries: int = Field(
        default=2,
        description="Retries for idempotent reads on transport errors",
        ge=0,
        le=5
    )
    circuit_failure_threshold: int = Field(
        default=5,
        description="Consecutive failures before the circuit opens",
        ge=1
    )
    circuit_recovery_seconds: float = Field(
        default=30.0,
        description="Seconds an open circuit waits before a trial request",
        gt=0
    )

    # ========== Cache ==========
    cache_default_ttl_seconds: float = Field(default=600, description="Fallback TTL", gt=0)
    cache_ttl_specializations_seconds: float = Field(default=120, gt=0)
    cache_ttl_workload_seconds: float = Field(default=120, gt=0)
    cache_ttl_staff_seconds: float = Field(default=300, gt=0)
    cache_ttl_tickets_seconds: float = Field(default=60, gt=0)
    cache_ttl_help_categories_seconds: float = Field(default=1800, gt=0)
    cache_ttl_help_faqs_seconds: float = Field(default=900, gt=0)
    cache_expiry_multiplier: float = Field(
        default=3,
        description="Cleanup drops entries older than multiplier x ttl",
        ge=1
    )
    cache_cleanup_interval_seconds: int = Field(
        default=300,
        description="Seconds between cache cleanup sweeps (0 disables)",
        ge=0
    )
    cache_policy_path: Path = Field(
        default=Path("cache_policy.yaml"),
        description="Optional YAML file overriding namespace TTLs"
    )
    coalesce_window_seconds: float = Field(
        default=2.0,
        description="An identical in-flight request younger than this is joined",
        gt=0
    )

    # ========== Bulk Operations ==========
    bulk_max_concurrency: int = Field(
        default=5,
        description="Max simultaneous per-item calls in a bulk operation",
        ge=1,
        le=50
    )

    # ========== Notifications ==========
    notification_webhook_url: Optional[str] = Field(
        default=None,
        description="Webhook receiving user-facing notifications"
    )
    notification_timeout_seconds: float = Field(default=5.0, gt=0, le=30)

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

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()

    def namespace_ttls(self) -> Dict[str, float]:
        """TTL in seconds for every cache namespace."""
        return {
            CacheNamespace.SPECIALIZATIONS: self.cache_ttl_specializations_seconds,
            CacheNamespace.WORKLOAD: self.cache_ttl_workload_seconds,
            CacheNamespace.STAFF: self.cache_ttl_staff_seconds,
            CacheNamespace.TICKETS: self.cache_ttl_tickets_seconds,
            CacheNamespace.HELP_CATEGORIES: self.cache_ttl_help_categories_seconds,
            CacheNamespace.HELP_FAQS: self.cache_ttl_help_faqs_seconds,
        }


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class CacheNamespace:
    """Cache key prefixes. Keys look like ``<namespace>:<detail>``."""
    SPECIALIZATIONS = "specializations"
    WORKLOAD = "workload"
    STAFF = "staff"
    TICKETS = "tickets"
    HELP = "help"
    HELP_CATEGORIES = "help:categories"
    HELP_FAQS = "help:faqs"


class PriorityTier(str, Enum):
    """Ranking of a counselor within a category."""
    PRIMARY = "primary"
    SECONDARY = "secondary"
    BACKUP = "backup"


class UserRole(str, Enum):
    """Platform roles."""
    ADMIN = "admin"
    COUNSELOR = "counselor"
    ADVISOR = "advisor"
    STUDENT = "student"


class TicketStatus(str, Enum):
    """Ticket lifecycle statuses."""
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    CLOSED = "Closed"


class TicketPriority(str, Enum):
    """Ticket priority levels."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"


class SortKey(str, Enum):
    """Sort keys recognised by the registry view."""
    COUNSELOR_NAME = "counselor_name"
    CATEGORY_NAME = "category_name"
    PRIORITY_TIER = "priority_tier"
    WORKLOAD = "workload"
    UTILIZATION = "utilization"
    SCORE = "score"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


# ========== Lists for validation ==========

PRIORITY_TIERS = [PriorityTier.PRIMARY, PriorityTier.SECONDARY, PriorityTier.BACKUP]
STAFF_ROLES = [UserRole.COUNSELOR, UserRole.ADVISOR]
MAX_WORKLOAD_LIMIT = 50
DEFAULT_EXPERTISE_RATING = 3
