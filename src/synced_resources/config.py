from __future__ import annotations

from typing import ClassVar, final

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from synced_resources.domain.sync_token import SyncConfig, codec_for_format
from synced_resources.sync_utils import DEFAULT_BASE_TIME_MS


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [x.strip() for x in value.split(",") if x.strip()]


@final
class Settings(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    app_name: str = "Synced Resources"
    api_prefix: str = "/api/v1"

    # Environment (ENVIRONMENT): development | production
    environment: str = "development"

    database_url: str = "sqlite:///./dev.db"
    log_level: str = "INFO"

    cors_allow_origins: str = "*"

    # Epoch (ms) that client-held synced_at values are relative to. Must not
    # change while clients hold tokens encoded against the old value.
    sync_base_time_ms: int = DEFAULT_BASE_TIME_MS
    # json | base64
    sync_token_format: str = "json"

    @model_validator(mode="after")
    def _validate_settings(self) -> "Settings":  # pyright: ignore[reportUnusedFunction]
        errors: list[str] = []

        if self.sync_base_time_ms < 0:
            errors.append("SYNC_BASE_TIME_MS must be non-negative")

        try:
            codec_for_format(self.sync_token_format)
        except ValueError as exc:
            errors.append(f"SYNC_TOKEN_FORMAT: {exc}")

        if self.environment.strip().lower() == "production":
            cors_v = self.cors_allow_origins.strip()
            if not cors_v or cors_v == "*":
                errors.append("CORS_ALLOW_ORIGINS must be explicit (not '*') in production")

        if errors:
            raise ValueError("Invalid settings: " + "; ".join(errors))
        return self

    def cors_origins_list(self) -> list[str]:
        v = self.cors_allow_origins.strip()
        if not v:
            return []
        if v == "*":
            return ["*"]
        return _split_csv(v)

    def security_warnings(self) -> list[str]:
        warnings: list[str] = []
        if self.cors_allow_origins.strip() == "*":
            warnings.append("CORS_ALLOW_ORIGINS='*' is permissive")
        if self.sync_base_time_ms == DEFAULT_BASE_TIME_MS and self.environment == "production":
            warnings.append("SYNC_BASE_TIME_MS is using the built-in default epoch")
        return warnings


def build_sync_config(s: Settings) -> SyncConfig:
    return SyncConfig(
        base_time=s.sync_base_time_ms,
        codec=codec_for_format(s.sync_token_format),
    )


settings = Settings()
