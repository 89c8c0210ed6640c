"""Configuration management for the RentLedger service."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_DIR = Path(__file__).resolve().parent / "../.." / "configs"


def _load_default_private_key() -> str:
    default_path = CONFIG_DIR / "dev-jwt.pem"
    if default_path.exists():
        return default_path.read_text(encoding="utf-8")
    raise FileNotFoundError("Default JWT private key not found. Provide RENTLEDGER_JWT_PRIVATE_KEY.")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RENTLEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    app_name: str = Field(default="RentLedger")
    version: str = Field(default="0.1.0")
    docs_url: str | None = Field(default="/docs")
    redoc_url: str | None = Field(default="/redoc")
    openapi_url: str = Field(default="/openapi.json")
    public_base_url: str = Field(default="https://rentledger.co.uk")

    database_url: str = Field(default="postgresql+psycopg://rentledger:rentledger@db:5432/rentledger")

    aws_region: str = Field(default="eu-west-2")
    s3_endpoint_url: str | None = Field(default=None)
    audit_log_bucket: str = Field(default="rentledger-audit-logs")
    audit_log_prefix: str = Field(default="audit/records")
    audit_log_sample_rate: float = Field(default=1.0)

    enable_metrics: bool = Field(default=True)
    enable_tracing: bool = Field(default=True)
    otel_exporter_endpoint: str | None = Field(default=None)

    kafka_bootstrap_servers: str = Field(default="kafka:9092")
    notification_events_topic: str = Field(default="rentledger-notifications")

    jwt_algorithm: str = Field(default="RS256")
    jwt_private_key: str = Field(default_factory=_load_default_private_key)
    access_token_expire_minutes: int = Field(default=15)
    refresh_token_expire_days: int = Field(default=7)

    # Scoring rules
    grace_period_days: int = Field(default=3, ge=0, le=5)
    streak_cap_months: int = Field(default=12, gt=0)
    require_manual_verification: bool = Field(default=False)

    # Reports and sharing
    share_ttl_days: int = Field(default=30, gt=0)
    report_ttl_days: int | None = Field(default=None)
    credit_report_history_months: int = Field(default=12, gt=0)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


__all__ = ["CONFIG_DIR", "Settings", "get_settings"]
