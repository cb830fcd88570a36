"""Shared error codes and exceptions.

Startup errors (config, connection setup) are fatal; query errors are
contained in the probe that raised them and reported as a 500.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    CONFIG_ERROR = "CONFIG_ERROR"
    CONNECTION_SETUP_ERROR = "CONNECTION_SETUP_ERROR"
    QUERY_ERROR = "QUERY_ERROR"
    TIMEOUT = "TIMEOUT"


class ClustercheckError(Exception):
    """Base class for errors raised by the checker."""

    code: ErrorCode = ErrorCode.QUERY_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigError(ClustercheckError):
    """Missing or malformed configuration."""

    code = ErrorCode.CONFIG_ERROR

    def __init__(self, message: str, path: Optional[str] = None, line: Optional[int] = None):
        self.path = path
        self.line = line
        location = ""
        if path:
            location = f"{path}:{line}: " if line else f"{path}: "
        super().__init__(f"{location}{message}")


class ConnectionSetupError(ClustercheckError):
    """The database pool or the status statements could not be prepared."""

    code = ErrorCode.CONNECTION_SETUP_ERROR


class QueryError(ClustercheckError):
    """A status query failed at request time."""

    def __init__(self, variable: str, reason: str, timed_out: bool = False):
        self.variable = variable
        self.reason = reason
        self.timed_out = timed_out
        self.code = ErrorCode.TIMEOUT if timed_out else ErrorCode.QUERY_ERROR
        super().__init__(f"{variable}: {reason}")


__all__ = [
    "ErrorCode",
    "ClustercheckError",
    "ConfigError",
    "ConnectionSetupError",
    "QueryError",
]
