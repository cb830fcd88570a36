"""Runtime settings for the cluster check.

Values come from ``CLUSTERCHECK_*`` environment variables (or ``.env``) and
may be overridden by command-line flags, see ``galera_clustercheck.main``.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

from galera_clustercheck.core.clustercheck.state import ProbeConfig
from galera_clustercheck.core.errors import ConfigError
from galera_clustercheck.core.option_file import read_credentials

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")
_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: Any) -> float:
    """Convert ``10s``, ``500ms``, ``1m30s`` or a bare number to seconds."""
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip()
        try:
            seconds = float(text)
        except ValueError:
            pos = 0
            seconds = 0.0
            for match in _DURATION_PART.finditer(text):
                if match.start() != pos:
                    break
                seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
                pos = match.end()
            if not text or pos != len(text):
                raise ValueError(f"invalid duration {value!r}")
    if seconds <= 0:
        raise ValueError(f"duration must be positive, got {value!r}")
    return seconds


class Settings(BaseSettings):
    # Database connection
    USERNAME: str = ""
    PASSWORD: str = ""
    INIFILE: str = "/etc/galera-clustercheck/my.cnf"
    SOCKET: str = "/run/mysqld/mysqld.sock"
    HOST: str = ""  # empty = connect over SOCKET
    PORT: int = 3306
    TIMEOUT: float = 10.0  # seconds; connect timeout and per-query deadline
    POOL_MINSIZE: int = 1
    POOL_MAXSIZE: int = 10

    # Availability policy
    AVAILABLE_WHEN_DONOR: bool = False
    AVAILABLE_WHEN_READONLY: bool = False
    REQUIRE_MASTER: bool = False

    # HTTP listener
    BIND_ADDR: str = ""
    BIND_PORT: int = 8000

    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # text|json

    model_config = {
        "env_prefix": "CLUSTERCHECK_",
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @field_validator("TIMEOUT", mode="before")
    @classmethod
    def _parse_timeout(cls, value: Any) -> float:
        return parse_duration(value)

    @field_validator("LOG_FORMAT")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("text", "json"):
            raise ValueError("LOG_FORMAT must be 'text' or 'json'")
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in _LOG_LEVELS:
            raise ValueError("LOG_LEVEL must be one of " + ", ".join(_LOG_LEVELS))
        return value

    @field_validator("POOL_MAXSIZE")
    @classmethod
    def _check_pool_maxsize(cls, value: int) -> int:
        if value < 1:
            raise ValueError("POOL_MAXSIZE must be at least 1")
        return value

    @model_validator(mode="after")
    def _check_pool_bounds(self) -> "Settings":
        if not 0 <= self.POOL_MINSIZE <= self.POOL_MAXSIZE:
            raise ValueError("POOL_MINSIZE must be between 0 and POOL_MAXSIZE")
        return self

    @property
    def uses_socket(self) -> bool:
        return not self.HOST

    @property
    def listen_host(self) -> str:
        return self.BIND_ADDR or "0.0.0.0"

    def probe_config(self) -> ProbeConfig:
        return ProbeConfig(
            available_when_donor=self.AVAILABLE_WHEN_DONOR,
            available_when_readonly=self.AVAILABLE_WHEN_READONLY,
            require_master_default=self.REQUIRE_MASTER,
        )

    def with_option_file_credentials(self) -> "Settings":
        """Fill USERNAME/PASSWORD from INIFILE when neither was given."""
        if self.USERNAME or self.PASSWORD:
            return self
        creds = read_credentials(self.INIFILE)
        return self.model_copy(update={"USERNAME": creds.user, "PASSWORD": creds.password})


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """Build settings from the environment plus explicit overrides.

    Raises ConfigError for invalid values or an unreadable option file.
    """
    try:
        settings = Settings(**(overrides or {}))
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
    return settings.with_option_file_credentials()


__all__ = ["Settings", "load_settings", "parse_duration"]
