# fault_tolerance/core/config.py
from __future__ import annotations

from enum import Enum
from typing import Annotated, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from fault_tolerance.utils.error_handler import ConfigurationError


class BreakerScope(str, Enum):
    """How circuit breakers are shared between decorated endpoints."""

    SHARED = "shared"  # one breaker for every client in the process
    PER_CLIENT = "per_client"  # one breaker per named client


class ClientConfig(BaseModel):
    """
    Retry settings for one named queue client.

    Built once at startup and never mutated afterwards.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1, description="Unique queue client name")
    retry_timeout: float = Field(
        gt=0.0, description="Retry window in seconds, measured from the first attempt"
    )
    retry_attempts: Optional[int] = Field(
        default=None, ge=1, description="Optional hard cap on attempts per operation"
    )

    @field_validator("name")
    @classmethod
    def _reject_dots(cls, value: str) -> str:
        # Registry keys are "{name}.{kind}"; a dot in the name makes them ambiguous.
        if "." in value:
            raise ValueError("client name must not contain '.'")
        return value


class ClientOverride(BaseModel):
    """Per-client replacement for the global retry settings."""

    model_config = ConfigDict(extra="forbid")

    retry_timeout: Optional[float] = Field(default=None, gt=0.0)
    retry_attempts: Optional[int] = Field(default=None, ge=1)


class Settings(BaseSettings):
    """
    Fault tolerance settings, loaded from environment variables and/or .env file.
    """

    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Queue clients
    ENQUEUE_ENABLED: bool = True
    ENQUEUE_CLIENTS: Annotated[List[str], NoDecode] = Field(
        default_factory=list,
        description="Comma-delimited client names; empty means every available client",
    )
    ENQUEUE_RETRY_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0.0)
    ENQUEUE_RETRY_ATTEMPTS: Optional[int] = Field(default=None, ge=1)
    ENQUEUE_CLIENT_OVERRIDES: Dict[str, ClientOverride] = Field(default_factory=dict)

    # Circuit breaker defaults
    CIRCUIT_BREAKER_SCOPE: BreakerScope = BreakerScope.SHARED
    CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = 5
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT_SECONDS: float = 30.0
    CIRCUIT_BREAKER_HALF_OPEN_SUCCESS_THRESHOLD: int = 2
    CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS: int = 1

    # Backoff between attempts
    RETRY_BACKOFF_BASE_SECONDS: float = 0.2
    RETRY_BACKOFF_MULTIPLIER: float = 2.0
    RETRY_BACKOFF_MAX_SECONDS: float = 5.0
    RETRY_USE_JITTER: bool = True

    # Redis transport
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_QUEUE_PREFIX: str = "enqueue"

    @property
    def redis_url(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}"

    @field_validator("ENQUEUE_CLIENTS", mode="before")
    @classmethod
    def _split_clients(cls, value: str | List[str]) -> List[str]:
        """Allow comma-separated strings for the clients env var."""
        if isinstance(value, str):
            return [name.strip() for name in value.split(",") if name.strip()]
        return value

    def client_configs(self, available: Iterable[str]) -> List[ClientConfig]:
        """
        Build one ClientConfig per enabled queue client.

        Args:
            available: Client names the transport layer actually provides.

        Returns:
            Configs in the order clients are listed (or discovered).

        Raises:
            ConfigurationError: A configured or overridden client does not exist.
        """
        known = list(available)
        names = self.ENQUEUE_CLIENTS or known

        missing = [name for name in names if name not in known]
        if missing:
            raise ConfigurationError(
                f"Unknown queue clients configured: {', '.join(missing)}",
                technical_details={"missing": missing, "available": known},
            )
        stray = [name for name in self.ENQUEUE_CLIENT_OVERRIDES if name not in names]
        if stray:
            raise ConfigurationError(
                f"Overrides given for clients that are not enabled: {', '.join(stray)}",
                technical_details={"stray": stray},
            )

        configs: List[ClientConfig] = []
        for name in dict.fromkeys(names):
            override = self.ENQUEUE_CLIENT_OVERRIDES.get(name) or ClientOverride()
            configs.append(
                ClientConfig(
                    name=name,
                    retry_timeout=override.retry_timeout
                    or self.ENQUEUE_RETRY_TIMEOUT_SECONDS,
                    retry_attempts=override.retry_attempts
                    or self.ENQUEUE_RETRY_ATTEMPTS,
                )
            )
        return configs

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


settings = Settings()
