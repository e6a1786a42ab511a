"""Centralized configuration for focusgroup.

All tunables for throttling, retries, pacing and model selection live here.
Every value can be overridden from the environment with the pattern
``FOCUSGROUP_SECTION__KEY`` (e.g. ``FOCUSGROUP_THROTTLE__CONCURRENCY=2``).
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from focusgroup.config.exceptions import ConfigError

logger = logging.getLogger(__name__)

# ============================================================================
# Constants
# ============================================================================

DEFAULT_PRO_MODEL = "gemini-3-pro-preview"
DEFAULT_FLASH_MODEL = "gemini-2.5-flash"

# 1.5s between call starts keeps us around 40 RPM, inside free-tier quota.
DEFAULT_MIN_INTERVAL = 1.5
DEFAULT_CONCURRENCY = 3

DEFAULT_MAX_RETRIES = 5
DEFAULT_BASE_DELAY = 10.0
DEFAULT_TIMEOUT = 90.0
DEFAULT_PRESSURE_PENALTY = 5.0
DEFAULT_RESEARCH_TIMEOUT = 60.0


class ModelSettings(BaseModel):
    """Model identifiers for the two generation tiers.

    - ``pro`` serves the organizer work: casting, pitch, research, analysis, pivot
    - ``flash`` serves the per-persona work: reactions, answers, discussion, decisions
    """

    pro: str = Field(
        default=DEFAULT_PRO_MODEL,
        description="High-capability model for aggregate phases",
    )
    flash: str = Field(
        default=DEFAULT_FLASH_MODEL,
        description="Fast model for per-persona phases",
    )

    @field_validator("pro", "flash")
    @classmethod
    def validate_model_name(cls, v: str) -> str:
        """Reject blank model names and strip the ``models/`` prefix if present."""
        v = v.strip()
        if not v:
            msg = "Model name must not be empty"
            raise ValueError(msg)
        return v.removeprefix("models/")


class ThrottleSettings(BaseModel):
    """Process-wide throttling of the generation backend."""

    min_interval: float = Field(
        default=DEFAULT_MIN_INTERVAL,
        ge=0.0,
        description="Minimum seconds between the starts of two generation calls",
    )
    concurrency: int = Field(
        default=DEFAULT_CONCURRENCY,
        ge=1,
        le=20,
        description="Maximum number of persona pipelines running at once",
    )


class RetrySettings(BaseModel):
    """Retry policy for a single generation call."""

    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=1, le=20)
    base_delay: float = Field(
        default=DEFAULT_BASE_DELAY,
        ge=0.0,
        description="Backoff base in seconds; attempt n waits base_delay * 2**n",
    )
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0.0, description="Per-call timeout in seconds")
    pressure_penalty: float = Field(
        default=DEFAULT_PRESSURE_PENALTY,
        ge=0.0,
        description="Extra seconds added after a rate-limit or unavailable signal",
    )
    research_timeout: float = Field(
        default=DEFAULT_RESEARCH_TIMEOUT,
        gt=0.0,
        description="Per-call timeout for web-search grounded research",
    )


class PacingSettings(BaseModel):
    """Deliberate pauses inside a persona pipeline to smooth burst traffic."""

    after_reaction: float = Field(default=1.5, ge=0.0)
    before_answer: float = Field(default=1.0, ge=0.0)
    discussion_listen: float = Field(default=1.0, ge=0.0)
    before_review: float = Field(default=0.5, ge=0.0)


class FocusGroupConfig(BaseSettings):
    """Root configuration for focusgroup.

    Supports environment variable overrides with the pattern
    FOCUSGROUP_SECTION__KEY (e.g., FOCUSGROUP_MODELS__PRO).
    """

    models: ModelSettings = Field(default_factory=ModelSettings, description="Model selection")
    throttle: ThrottleSettings = Field(default_factory=ThrottleSettings, description="Throttling")
    retry: RetrySettings = Field(default_factory=RetrySettings, description="Retry policy")
    pacing: PacingSettings = Field(default_factory=PacingSettings, description="Pipeline pacing")
    question_interest_threshold: int = Field(
        default=30,
        ge=0,
        le=100,
        description="A persona only asks its question when interest is above this level",
    )
    prompts_dir: Path | None = Field(
        default=None,
        description="Directory with Jinja prompt overrides, searched before the packaged prompts",
    )

    model_config = SettingsConfigDict(
        extra="forbid",
        validate_assignment=True,
        env_prefix="FOCUSGROUP_",
        env_nested_delimiter="__",
    )


def load_config(**overrides: object) -> FocusGroupConfig:
    """Build the configuration from the environment plus explicit overrides.

    Raises:
        ConfigError: when a value from the environment or an override is invalid

    """
    try:
        config = FocusGroupConfig(**overrides)
    except ValidationError as e:
        problems = []
        for error in e.errors():
            loc = ".".join(str(part) for part in error["loc"])
            logger.error("  %s: %s", loc, error["msg"])
            problems.append(f"{loc}: {error['msg']}")
        msg = "Invalid configuration: " + "; ".join(problems)
        raise ConfigError(msg) from e
    logger.debug(
        "Loaded config: pro=%s flash=%s interval=%.2fs concurrency=%d",
        config.models.pro,
        config.models.flash,
        config.throttle.min_interval,
        config.throttle.concurrency,
    )
    return config
