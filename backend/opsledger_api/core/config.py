import os
from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from opsledger.timeclock_rules import TimeclockRules

BASE_DIR = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    env: str = Field(default="dev", description="Deployment environment")
    app_name: str = "Operations Ledger API"
    database_url: str = Field(
        default="sqlite:///./opsledger.db",
        description="Database connection string",
    )
    cors_origins: list[AnyHttpUrl] = []
    log_level: str = "INFO"
    sentry_dsn: str | None = Field(default=None, description="Sentry DSN for error monitoring")
    otlp_endpoint: str | None = Field(default=None, description="OTLP endpoint for traces/metrics")
    timezone: str = Field(default="UTC", description="Zone used to bucket clock-ins into days")

    po_auto_approval_enabled: bool = False
    po_auto_approval_threshold: Decimal = Decimal("500.00")

    timeclock_rounding_mode: str = "none"
    timeclock_break_deduction_enabled: bool = False
    timeclock_break_deduction_after_hours: float = 6.0
    timeclock_break_deduction_minutes: int = 30
    timeclock_min_duration_enabled: bool = False
    timeclock_min_duration_seconds: int = 60
    timeclock_min_duration_action: str = "flag"
    timeclock_auto_approve_enabled: bool = False
    timeclock_auto_approve_min_hours: float = 0.0
    timeclock_auto_approve_max_hours: float = 12.0
    timeclock_auto_approve_block_on_overtime: bool = True

    model_config = SettingsConfigDict(env_prefix="OPSLEDGER_", extra="ignore")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_origins(cls, value: str | list[AnyHttpUrl]) -> list[AnyHttpUrl]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin]
        return value

    def timeclock_rules(self) -> TimeclockRules:
        return TimeclockRules(
            rounding_mode=self.timeclock_rounding_mode,
            break_deduction_enabled=self.timeclock_break_deduction_enabled,
            break_deduction_after_hours=self.timeclock_break_deduction_after_hours,
            break_deduction_minutes=self.timeclock_break_deduction_minutes,
            min_duration_enabled=self.timeclock_min_duration_enabled,
            min_duration_seconds=self.timeclock_min_duration_seconds,
            min_duration_action=self.timeclock_min_duration_action,
            auto_approve_enabled=self.timeclock_auto_approve_enabled,
            auto_approve_min_hours=self.timeclock_auto_approve_min_hours,
            auto_approve_max_hours=self.timeclock_auto_approve_max_hours,
            auto_approve_block_on_overtime=self.timeclock_auto_approve_block_on_overtime,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings(_env_file=get_settings_env_file())


def get_settings_env_file() -> str | None:
    """Resolve environment-specific env file if it exists."""
    env = os.getenv("OPSLEDGER_ENV", "dev")
    env_file = BASE_DIR / f".env.{env}"
    default_file = BASE_DIR / ".env"
    if env_file.exists():
        return str(env_file)
    if default_file.exists():
        return str(default_file)
    return None


settings = get_settings()
