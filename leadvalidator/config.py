"""
leadvalidator/config.py — Central configuration loaded from environment variables.

Process-level knobs live in `settings`. Everything the pipeline needs per
submission is frozen into a ProjectConfig and passed in explicitly, so
scoring never reads shared mutable state.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DISPOSABLE_DOMAINS = [
    "10minutemail.com",
    "guerrillamail.com",
    "mailinator.com",
    "tempmail.org",
    "yopmail.com",
    "throwaway.email",
]

# canonical field -> alias substring looked for in raw form field names
DEFAULT_FIELD_MAP = {
    "email": "email",
    "first_name": "first_name",
    "last_name": "last_name",
    "phone": "phone",
    "company": "company",
    "message": "message",
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Database ──────────────────────────────────────────────────────────────
    database_url: str = Field(..., description="SQLAlchemy connection URI")

    # ── Qualification ─────────────────────────────────────────────────────────
    default_min_score: int = Field(
        default=70,
        ge=0,
        le=100,
        description="Minimum quality score (0–100) for a lead to be qualified",
    )
    disposable_domains: list[str] = Field(
        default_factory=lambda: list(DEFAULT_DISPOSABLE_DOMAINS),
        description="Email domains treated as throwaway addresses",
    )
    default_phone_region: Optional[str] = Field(
        default=None,
        description="ISO region used to parse phone numbers without a leading '+'",
    )

    # ── Webhook delivery ──────────────────────────────────────────────────────
    webhook_max_attempts: int = Field(default=3, gt=0)
    webhook_backoff_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Backoff time unit; waits are 2, 4, 8 … units",
    )
    webhook_timeout_seconds: float = Field(default=10.0, gt=0)
    webhook_user_agent: str = "LeadValidator-Webhook/1.0"

    # ── API keys ──────────────────────────────────────────────────────────────
    api_key_prefix: str = "lv_live_"

    # ── Owner notifications ───────────────────────────────────────────────────
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 465
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    notifier_dry_run: bool = Field(
        default=True,
        description="If True, print notification emails instead of sending them",
    )

    log_level: str = "INFO"


# Singleton — import this everywhere
settings = Settings()


class ProjectConfig(BaseModel):
    """Immutable per-project view handed to the qualification pipeline."""

    model_config = ConfigDict(frozen=True)

    project_id: str
    name: str = ""
    min_score: int = Field(default=70, ge=0, le=100)
    webhook_url: Optional[str] = None
    deliver_all: bool = False
    field_map: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_FIELD_MAP))
    disposable_domains: frozenset[str] = frozenset(DEFAULT_DISPOSABLE_DOMAINS)
    phone_region: Optional[str] = None
    email_notifications: bool = False
    notification_email: Optional[str] = None

    @classmethod
    def from_project(cls, project: Any, base: Settings = settings) -> "ProjectConfig":
        """Build the config for a stored Project row, filling gaps from `base`."""
        return cls(
            project_id=project.id,
            name=project.name or "",
            min_score=project.min_score if project.min_score is not None else base.default_min_score,
            webhook_url=project.webhook_url or None,
            deliver_all=bool(project.deliver_all),
            field_map=project.field_map or dict(DEFAULT_FIELD_MAP),
            disposable_domains=frozenset(d.lower() for d in base.disposable_domains),
            phone_region=base.default_phone_region,
            email_notifications=bool(project.email_notifications),
            notification_email=project.notification_email,
        )
