"""Application configuration using Pydantic Settings.

All settings are loaded from environment variables or .env file.
Secrets are handled via SecretStr to prevent accidental logging.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class RecencyPolicy(str, Enum):
    """How issue age feeds the recency term."""

    SOFT_DECAY = "soft_decay"
    HARD_CUTOFF = "hard_cutoff"


class LanguagePolicy(str, Enum):
    """How the viewer's language ranking feeds the issue language term."""

    LINEAR_RANK = "linear_rank"
    EXPONENTIAL_DECAY = "exponential_decay"


DEFAULT_SOURCE_REPOSITORIES = [
    "microsoft/vscode",
    "facebook/react",
    "vercel/next.js",
    "nodejs/node",
    "rust-lang/rust",
    "golang/go",
    "tensorflow/tensorflow",
    "kubernetes/kubernetes",
    "ansible/ansible",
    "django/django",
]

DEFAULT_GOOD_FIRST_ISSUE_LABELS = [
    "good first issue",
    "good-first-issue",
    "beginner",
    "easy",
    "starter",
    "first-timers-only",
    "help wanted",
]


class Settings(BaseSettings):
    """Application settings with validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="GT_",
    )

    # Application
    app_name: str = "gitTogether"
    app_version: str = "0.1.0"
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # CORS
    cors_origins: list[str] = Field(default=["http://localhost:3000", "http://127.0.0.1:3000"])

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    github_cache_ttl: int = 900  # 15 minutes
    issue_feed_ttl: int = 600  # 10 minutes

    # GitHub API
    github_api_base: str = "https://api.github.com"
    github_token: SecretStr | None = None
    github_timeout: float = 30.0
    github_max_retries: int = 3
    source_repositories: list[str] = Field(default=DEFAULT_SOURCE_REPOSITORIES)
    good_first_issue_labels: list[str] = Field(default=DEFAULT_GOOD_FIRST_ISSUE_LABELS)
    max_issue_age_months: int = 12
    language_sample_size: int = 10
    owned_repos_page_size: int = 100

    # Supabase
    supabase_url: str | None = None
    supabase_anon_key: SecretStr | None = None
    supabase_service_role_key: SecretStr | None = None

    # Scoring
    recency_policy: RecencyPolicy = RecencyPolicy.SOFT_DECAY
    language_policy: LanguagePolicy = LanguagePolicy.LINEAR_RANK
    recency_window_days: int = Field(default=180, gt=0)
    legacy_cutoff_days: int = Field(default=90, gt=0)
    max_recommended_issues: int = 50
    max_recommended_repositories: int = 6
    max_recommended_mentors: int = 3

    # Celery
    celery_broker_url: str = "redis://localhost:6379/1"
    celery_result_backend: str = "redis://localhost:6379/2"
    digest_hour_utc: int = Field(default=9, ge=0, le=23)

    # SMTP (daily issue digest)
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: SecretStr | None = None
    smtp_from: str | None = None
    site_url: str = "http://localhost:3000"

    # Rate Limiting
    rate_limit_requests_per_minute: int = 30

    # Prometheus
    metrics_enabled: bool = True

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        return v.lower()

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
