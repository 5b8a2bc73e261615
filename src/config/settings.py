# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deadlines, cache bounds, admission ceilings,
gateway credentials and logging. Cross-field rules are enforced by
validate_config_consistency().
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from vidbrief.config.languages import DEFAULT_SUPPORTED_LANGUAGES, normalize_language


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Languages ===
    supported_languages: str = DEFAULT_SUPPORTED_LANGUAGES

    # === Result cache ===
    cache_capacity: int = 100
    cache_ttl_s: float = 3600.0
    cache_sweep_interval_s: float = 300.0

    # === Pipeline deadlines ===
    pipeline_deadline_s: float = 60.0
    metadata_timeout_s: float = 5.0
    upload_timeout_base_s: float = 10.0
    upload_timeout_per_minute_s: float = 1.0
    upload_timeout_cap_s: float = 30.0
    poll_deadline_s: float = 30.0
    poll_initial_delay_s: float = 1.0
    poll_backoff_factor: float = 2.0
    poll_max_delay_s: float = 8.0
    generation_timeout_s: float = 20.0
    cleanup_timeout_s: float = 5.0
    cleanup_max_retries: int = 2

    # === Stage retries ===
    stage_max_retries: int = 2
    stage_retry_base_delay_s: float = 0.5
    stage_retry_backoff_factor: float = 2.0
    malformed_result_retries: int = 1

    # === Admission ===
    max_concurrent_pipelines: int = 8
    max_concurrent_external_calls: int = 16
    rate_limit_per_caller: int = 10
    rate_limit_window_s: float = 60.0

    # === Tracking ===
    call_log_max_records: int = 10_000

    # === Gateways ===
    youtube_api_key: str = ""
    youtube_api_base_url: str = "https://www.googleapis.com/youtube/v3"
    google_api_key: str = ""
    generation_model: str = "gemini-1.5-flash"
    generation_temperature: float = 0.2
    media_root: Path = Path("~/.vidbrief/media")
    media_extension: str = "mp4"
    http_timeout_s: float = 10.0

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator(
        "cache_capacity",
        "max_concurrent_pipelines",
        "max_concurrent_external_calls",
        "rate_limit_per_caller",
        "call_log_max_records",
    )
    @classmethod
    def validate_positive_int(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator(
        "cache_ttl_s",
        "pipeline_deadline_s",
        "metadata_timeout_s",
        "upload_timeout_cap_s",
        "poll_deadline_s",
        "poll_initial_delay_s",
        "generation_timeout_s",
        "cleanup_timeout_s",
        "rate_limit_window_s",
    )
    @classmethod
    def validate_positive_float(cls, v: float) -> float:  # noqa: N805
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("stage_max_retries", "cleanup_max_retries", "malformed_result_retries")
    @classmethod
    def validate_retry_count(cls, v: int) -> int:  # noqa: N805
        if v < 0:
            raise ValueError("retry counts must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        for name in (
            "metadata_timeout_s",
            "upload_timeout_cap_s",
            "poll_deadline_s",
            "generation_timeout_s",
        ):
            if getattr(self, name) > self.pipeline_deadline_s:
                errors.append(f"{name.upper()} must be <= PIPELINE_DEADLINE_S")

        if self.upload_timeout_base_s > self.upload_timeout_cap_s:
            errors.append("UPLOAD_TIMEOUT_BASE_S must be <= UPLOAD_TIMEOUT_CAP_S")

        if self.poll_initial_delay_s > self.poll_max_delay_s:
            errors.append("POLL_INITIAL_DELAY_S must be <= POLL_MAX_DELAY_S")

        if self.poll_backoff_factor < 1.0:
            errors.append("POLL_BACKOFF_FACTOR must be >= 1.0")

        if not self.supported_languages_list:
            errors.append("SUPPORTED_LANGUAGES must list at least one language")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def supported_languages_list(self) -> list[str]:
        """Parse comma-separated language codes (normalized)."""
        return [
            normalize_language(code)
            for code in self.supported_languages.split(",")
            if code.strip()
        ]

    def upload_timeout_for(self, duration_s: float | None) -> float:
        """Upload timeout proportional to media duration, hard-capped."""
        minutes = (duration_s or 0.0) / 60.0
        timeout = self.upload_timeout_base_s + minutes * self.upload_timeout_per_minute_s
        return min(timeout, self.upload_timeout_cap_s)


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
