"""Galera node availability check.

Provides:
- Replication status types and probe outcomes
- Status queries against the local node
- The availability decision and operator overrides
"""

from galera_clustercheck.core.clustercheck.decision import ClusterChecker, decide
from galera_clustercheck.core.clustercheck.state import (
    LocalState,
    NodeStatus,
    Outcome,
    OverrideState,
    ProbeConfig,
    ReplicationState,
)
from galera_clustercheck.core.clustercheck.status_source import (
    MySQLStatusSource,
    StatusSource,
)

__all__ = [
    # Decision
    "ClusterChecker",
    "decide",
    # State
    "LocalState",
    "NodeStatus",
    "Outcome",
    "OverrideState",
    "ProbeConfig",
    "ReplicationState",
    # Status source
    "MySQLStatusSource",
    "StatusSource",
]
