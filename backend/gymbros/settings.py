"""Settings for the GymBros discovery engine."""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_field(default, *env_names: str):
    if env_names:
        alias = AliasChoices(*env_names) if len(env_names) > 1 else env_names[0]
        return Field(default=default, validation_alias=alias)
    return Field(default=default)


class Settings(BaseSettings):
    environment: str = _env_field("production", "ENV", "APP_ENV", "ENVIRONMENT")
    service_name: str = _env_field("gymbros-discovery", "SERVICE_NAME")
    git_commit: str = _env_field("unknown", "GIT_COMMIT", "COMMIT_SHA", "SOURCE_VERSION")
    redis_url: str = _env_field("redis://localhost:6379/0", "REDIS_URL")

    obs_log_level: str = _env_field("INFO", "LOG_LEVEL")
    obs_log_sampling_rate_info: float = _env_field(1.0, "LOG_SAMPLING_RATE_INFO")

    # Feed paging. A full page implies more candidates may exist.
    feed_page_size: int = _env_field(10, "FEED_PAGE_SIZE")
    # Prefetch when this many (or fewer) unseen cards remain after an advance
    feed_prefetch_remaining: int = _env_field(2, "FEED_PREFETCH_REMAINING")
    feed_rank_batches: bool = _env_field(False, "FEED_RANK_BATCHES")
    feed_record_views: bool = _env_field(False, "FEED_RECORD_VIEWS")

    # Premium currency costs (points)
    superlike_cost: int = _env_field(20, "SUPERLIKE_COST")
    rekindle_cost: int = _env_field(10, "REKINDLE_COST")

    # Upper bound on the like/dislike round trip made while a commit holds the gate
    interaction_timeout_seconds: float = _env_field(5.0, "INTERACTION_TIMEOUT_SECONDS")

    # Interactions expire after 90 days
    interaction_ttl_seconds: int = _env_field(7_776_000, "INTERACTION_TTL_SECONDS")

    gesture_preview_threshold_px: float = _env_field(80.0, "GESTURE_PREVIEW_THRESHOLD_PX")
    gesture_commit_threshold_px: float = _env_field(100.0, "GESTURE_COMMIT_THRESHOLD_PX")

    gateway_base_url: str = _env_field("http://localhost:5000/api", "GATEWAY_BASE_URL", "API_BASE_URL")
    gateway_timeout_seconds: float = _env_field(10.0, "GATEWAY_TIMEOUT_SECONDS")
    gateway_token: Optional[str] = _env_field(None, "GATEWAY_TOKEN")

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        case_sensitive=False,
        env_nested_delimiter="__",
    )

    @field_validator("feed_page_size", "superlike_cost", "rekindle_cost", mode="after")
    def _non_negative(cls, value: int) -> int:  # type: ignore[override]
        if value < 0:
            raise ValueError("must be non-negative")
        return value

    @field_validator("feed_page_size", mode="after")
    def _page_size_positive(cls, value: int) -> int:  # type: ignore[override]
        if value < 1:
            raise ValueError("page size must be at least 1")
        return value


def _normalise_level(level: str) -> str:
    return level.upper()


settings = Settings()
settings.obs_log_level = _normalise_level(settings.obs_log_level)


# Convenience helpers
def is_true(value: str | bool | None) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in {"1", "true", "yes", "on"}
