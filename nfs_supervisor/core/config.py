"""Supervisor configuration, read from environment variables."""

import logging

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from nfs_supervisor.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Runtime settings for the supervisor.

    Attributes:
        GANESHA_CONFIGFILE: Path to the nfs-ganesha configuration file.
        LISTEN_ADDR: ``host:port`` for the HTTP surface.  Empty host binds all interfaces.
        NAME: Human-readable name used as the ``name`` metric label.
        NAMESPACE: Namespace used as the ``namespace`` metric label.
        DISABLE_METRICS: Skip registering the ``/metrics`` endpoint.
        LOG_LEVEL: Log level for the supervisor's own logs.
        STARTUP_TIMEOUT: Seconds shared by all startup readiness waits.
        SHUTDOWN_TIMEOUT: Seconds shared by all component shutdowns.
        HEALTH_TIMEOUT: Seconds the health endpoint waits for a heartbeat.
    """

    model_config = SettingsConfigDict(case_sensitive=True, extra="ignore")

    GANESHA_CONFIGFILE: str
    LISTEN_ADDR: str = ":80"
    NAME: str = ""
    NAMESPACE: str = ""
    DISABLE_METRICS: bool = False
    LOG_LEVEL: str = "INFO"
    STARTUP_TIMEOUT: float = Field(default=10.0, gt=0)
    SHUTDOWN_TIMEOUT: float = Field(default=5.0, gt=0)
    HEALTH_TIMEOUT: float = Field(default=10.0, gt=0)

    @field_validator("GANESHA_CONFIGFILE")
    @classmethod
    def _config_file_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("ganesha config file must be specified")
        return v.strip()

    @field_validator("DISABLE_METRICS", mode="before")
    @classmethod
    def _empty_means_false(cls, v: object) -> object:
        # An exported-but-empty variable is treated as unset.
        if isinstance(v, str) and not v.strip():
            return False
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def _known_level(cls, v: str) -> str:
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level '{v}'")
        return level

    @field_validator("LISTEN_ADDR")
    @classmethod
    def _has_port(cls, v: str) -> str:
        host, sep, port = v.rpartition(":")
        if not sep or not port.isdigit():
            raise ValueError(f"listen address must be host:port, got '{v}'")
        return v

    @property
    def listen_host(self) -> str:
        host = self.LISTEN_ADDR.rpartition(":")[0]
        return host.strip("[]") or "0.0.0.0"

    @property
    def listen_port(self) -> int:
        return int(self.LISTEN_ADDR.rpartition(":")[2])


def load_settings() -> Settings:
    """Load settings from the environment.

    Raises:
        ConfigurationError: If a required variable is missing or a value is invalid.
    """
    try:
        return Settings()
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"invalid configuration: {problems}") from e
