"""
Configuration settings for the resilience layer.

All settings are loaded from environment variables with sensible defaults.
Use .env file for local development.

Per-dependency overrides are given as JSON, e.g.:
    DEPENDENCY_OVERRIDES='{"insurance-verify": {"cooldown_seconds": 60, "max_attempts": 3}}'
"""

from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from clinic_resilience.breaker.circuit_breaker import BreakerConfig
from clinic_resilience.retry.backoff import RetryPolicy


class DependencyOverrides(BaseModel):
    """Optional per-dependency overrides; unset fields fall back to the global defaults."""

    failure_threshold: Optional[int] = Field(default=None, ge=1)
    cooldown_seconds: Optional[float] = Field(default=None, gt=0)
    half_open_success_threshold: Optional[int] = Field(default=None, ge=1)
    max_attempts: Optional[int] = Field(default=None, ge=1)
    base_delay_ms: Optional[float] = Field(default=None, ge=0)
    multiplier: Optional[float] = Field(default=None, ge=1.0)
    max_delay_ms: Optional[float] = Field(default=None, ge=0)
    jitter_fraction: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Application ===
    APP_NAME: str = "Clinic Resilience Layer"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # === Circuit Breaker ===
    BREAKER_FAILURE_THRESHOLD: int = 5  # Consecutive failures before opening
    BREAKER_COOLDOWN_SECONDS: float = 30.0  # Open -> Half-Open after this long
    BREAKER_HALF_OPEN_SUCCESSES: int = 1  # Probe successes needed to close

    # === Retry & Backoff ===
    RETRY_MAX_ATTEMPTS: int = 5  # 1 initial try + 4 retries
    RETRY_BASE_DELAY_MS: float = 100.0
    RETRY_MULTIPLIER: float = 2.0  # 100/200/400/800/1600ms
    RETRY_MAX_DELAY_MS: float = 1600.0
    RETRY_JITTER_FRACTION: float = 0.0  # Deterministic unless set

    # === Per-dependency overrides ===
    DEPENDENCY_OVERRIDES: dict[str, DependencyOverrides] = {}

    # === Redis ===
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_MAX_CONNECTIONS: int = 50
    VERSIONED_KEY_PREFIX: str = "clinic:versioned:"

    # === Monitoring ===
    PROMETHEUS_ENABLED: bool = True

    def _overrides(self, dependency_name: str) -> DependencyOverrides:
        return self.DEPENDENCY_OVERRIDES.get(dependency_name) or DependencyOverrides()

    def breaker_config(self, dependency_name: str) -> BreakerConfig:
        """Breaker configuration for a dependency, overrides merged over defaults."""
        o = self._overrides(dependency_name)
        return BreakerConfig(
            failure_threshold=o.failure_threshold or self.BREAKER_FAILURE_THRESHOLD,
            cooldown_seconds=o.cooldown_seconds or self.BREAKER_COOLDOWN_SECONDS,
            half_open_success_threshold=(
                o.half_open_success_threshold or self.BREAKER_HALF_OPEN_SUCCESSES
            ),
        )

    def retry_policy(self, dependency_name: str) -> RetryPolicy:
        """Retry policy for a dependency, overrides merged over defaults (ms -> seconds)."""
        o = self._overrides(dependency_name)

        def pick(override, default):
            return default if override is None else override

        return RetryPolicy(
            max_attempts=pick(o.max_attempts, self.RETRY_MAX_ATTEMPTS),
            base_delay=pick(o.base_delay_ms, self.RETRY_BASE_DELAY_MS) / 1000.0,
            multiplier=pick(o.multiplier, self.RETRY_MULTIPLIER),
            max_delay=pick(o.max_delay_ms, self.RETRY_MAX_DELAY_MS) / 1000.0,
            jitter_fraction=pick(o.jitter_fraction, self.RETRY_JITTER_FRACTION),
        )


# Global settings instance
settings = Settings()
