"""Replication status types and probe outcomes."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class ReplicationState(str, Enum):
    """wsrep_local_state values reported by a Galera node."""

    JOINING = "joining"
    DONOR = "donor"
    JOINED = "joined"
    SYNCED = "synced"
    UNKNOWN = "unknown"

    @classmethod
    def from_code(cls, code: int) -> "ReplicationState":
        return _STATE_CODES.get(code, cls.UNKNOWN)


_STATE_CODES = {
    1: ReplicationState.JOINING,
    2: ReplicationState.DONOR,
    3: ReplicationState.JOINED,
    4: ReplicationState.SYNCED,
}


@dataclass(frozen=True)
class LocalState:
    """Replication state together with the raw code it was read from."""

    state: ReplicationState
    code: int

    @classmethod
    def from_code(cls, code: int) -> "LocalState":
        return cls(state=ReplicationState.from_code(code), code=code)

    @property
    def label(self) -> str:
        return self.state.value.capitalize()


@dataclass
class NodeStatus:
    """What a single probe read from the node.

    Fields stay None when the corresponding query was not issued.
    """

    read_only: Optional[bool] = None
    local_state: Optional[LocalState] = None
    local_index: Optional[int] = None
    fetch_error: Optional[str] = None
    error_variable: Optional[str] = None
    error_code: Optional[str] = None


@dataclass(frozen=True)
class ProbeConfig:
    """Feature flags fixed at startup."""

    available_when_donor: bool = False
    available_when_readonly: bool = False
    require_master_default: bool = False


@dataclass(frozen=True)
class Outcome:
    """Result of one availability decision."""

    available: bool
    status_code: int
    message: str
    status: NodeStatus = field(default_factory=NodeStatus)

    @classmethod
    def ok(cls, message: str, status: Optional[NodeStatus] = None) -> "Outcome":
        return cls(True, 200, message, status or NodeStatus())

    @classmethod
    def unavailable(cls, message: str, status: Optional[NodeStatus] = None) -> "Outcome":
        return cls(False, 503, message, status or NodeStatus())

    @classmethod
    def internal_error(cls, message: str, status: Optional[NodeStatus] = None) -> "Outcome":
        return cls(False, 500, message, status or NodeStatus())

    @property
    def is_internal_error(self) -> bool:
        return self.status_code == 500


class OverrideState:
    """Operator overrides shared by every probe.

    Setting one override clears the other; concurrent writers race with
    last-write-wins semantics.
    """

    def __init__(self, forced_up: bool = False, forced_down: bool = False):
        self._lock = threading.Lock()
        self._forced_up = forced_up
        self._forced_down = forced_down

    def snapshot(self) -> Tuple[bool, bool]:
        """Return (forced_up, forced_down) read under one lock acquisition."""
        with self._lock:
            return self._forced_up, self._forced_down

    def force_up(self) -> None:
        with self._lock:
            self._forced_up = True
            self._forced_down = False

    def force_down(self) -> None:
        with self._lock:
            self._forced_down = True
            self._forced_up = False

    def reset(self) -> None:
        with self._lock:
            self._forced_up = False
            self._forced_down = False


__all__ = [
    "ReplicationState",
    "LocalState",
    "NodeStatus",
    "ProbeConfig",
    "Outcome",
    "OverrideState",
]
