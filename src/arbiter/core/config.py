"""Core configuration - protocol parameters and logging settings.

All environment-based configuration flows through this module.

Usage:
    from arbiter.core.config import get_config
    config = get_config()

    penalty = config.penalty_percent
    window = config.commit_window
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigException

SECONDS_PER_DAY = 86400


class ArbiterSettings(BaseSettings):
    """Configuration settings for the arbitration engine.

    Settings can be configured via ARBITER_ prefixed environment variables
    or a local .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # PROTOCOL PARAMETERS
    # ==========================================================================

    penalty_percent: int = Field(
        default=20,
        ge=0,
        le=100,
        description="Percent of stake forfeited by minority and non-revealing jurors",
        validation_alias="ARBITER_PENALTY_PERCENT",
    )
    commit_window_seconds: int = Field(
        default=SECONDS_PER_DAY,
        gt=0,
        description="Length of the commit phase",
        validation_alias="ARBITER_COMMIT_WINDOW_SECONDS",
    )
    reveal_window_seconds: int = Field(
        default=SECONDS_PER_DAY,
        gt=0,
        description="Length of the reveal phase, starting at the commit deadline",
        validation_alias="ARBITER_REVEAL_WINDOW_SECONDS",
    )
    jurors_per_dispute: int = Field(
        default=3,
        ge=1,
        description="Number of jurors drawn for each dispute",
        validation_alias="ARBITER_JURORS_PER_DISPUTE",
    )
    arbitration_fee: int = Field(
        default=100,
        ge=0,
        description="Exact fee a client escrows when creating a dispute",
        validation_alias="ARBITER_ARBITRATION_FEE",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias="ARBITER_LOG_LEVEL",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
        validation_alias="ARBITER_LOG_FORMAT",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
        validation_alias="ARBITER_LOG_FILE",
    )

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def commit_window(self) -> timedelta:
        return timedelta(seconds=self.commit_window_seconds)

    @property
    def reveal_window(self) -> timedelta:
        return timedelta(seconds=self.reveal_window_seconds)


@dataclass(frozen=True)
class ProtocolParams:
    """Fixed protocol constants an engine is constructed with."""

    penalty_percent: int = 20
    commit_window: timedelta = timedelta(days=1)
    reveal_window: timedelta = timedelta(days=1)
    jurors_per_dispute: int = 3
    arbitration_fee: int = 100

    def __post_init__(self) -> None:
        if not 0 <= self.penalty_percent <= 100:
            raise ConfigException(
                f"penalty_percent must be between 0 and 100, got {self.penalty_percent}",
                setting="penalty_percent",
            )
        for name in ("commit_window", "reveal_window"):
            if getattr(self, name) <= timedelta(0):
                raise ConfigException(f"{name} must be positive", setting=name)
        if self.jurors_per_dispute < 1:
            raise ConfigException(
                f"jurors_per_dispute must be at least 1, got {self.jurors_per_dispute}",
                setting="jurors_per_dispute",
            )
        if self.arbitration_fee < 0:
            raise ConfigException("arbitration_fee must not be negative", setting="arbitration_fee")

    @classmethod
    def from_settings(cls, settings: ArbiterSettings | None = None) -> ProtocolParams:
        settings = settings or get_config()
        return cls(
            penalty_percent=settings.penalty_percent,
            commit_window=settings.commit_window,
            reveal_window=settings.reveal_window,
            jurors_per_dispute=settings.jurors_per_dispute,
            arbitration_fee=settings.arbitration_fee,
        )

    def to_dict(self) -> dict:
        return {
            "penalty_percent": self.penalty_percent,
            "commit_window_seconds": int(self.commit_window.total_seconds()),
            "reveal_window_seconds": int(self.reveal_window.total_seconds()),
            "jurors_per_dispute": self.jurors_per_dispute,
            "arbitration_fee": self.arbitration_fee,
        }


# ==========================================================================
# GLOBAL CONFIG INSTANCE (lazy loaded)
# ==========================================================================

_config: ArbiterSettings | None = None


def get_config() -> ArbiterSettings:
    """Get the global configuration instance.

    Returns:
        The singleton ArbiterSettings instance.
    """
    global _config
    if _config is None:
        _config = ArbiterSettings()
    return _config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config
    _config = None
