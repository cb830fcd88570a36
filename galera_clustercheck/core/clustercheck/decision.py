"""Availability decision for a Galera node.

The evaluation order below is the contract with the load balancer:

1. forced up            -> 200, no query
2. forced down          -> 503, no query
3. read_only            -> 503 when ON and not allowed
4. wsrep_local_state    -> per-state result; Synced may consult
   wsrep_local_index when a master (index 0) is required

Queries run one after another and the first failure ends the probe with a
500.
"""

from __future__ import annotations

from typing import Optional

from galera_clustercheck.core.clustercheck.state import (
    NodeStatus,
    Outcome,
    OverrideState,
    ProbeConfig,
    ReplicationState,
)
from galera_clustercheck.core.clustercheck.status_source import StatusSource
from galera_clustercheck.core.errors import QueryError
from galera_clustercheck.utils.metrics import record_overrides

MSG_FORCED_UP = "Node available by force up"
MSG_FORCED_DOWN = "Node unavailable by force down"
MSG_READ_ONLY = "Node is read-only"
MSG_QUERY_ERROR = "Error while querying {variable}"
MSG_SYNCED_MASTER = "Node in Synced state and primary-eligible (wsrep_local_index==0)"
MSG_SYNCED_NOT_MASTER = "Node in Synced state but not primary-eligible (wsrep_local_index=={index})"
MSG_UNKNOWN_STATE = "Node in an unknown state ({code})"


def _query_failed(status: NodeStatus, exc: QueryError) -> Outcome:
    status.fetch_error = str(exc)
    status.error_variable = exc.variable
    status.error_code = exc.code.value
    return Outcome.internal_error(MSG_QUERY_ERROR.format(variable=exc.variable), status)


async def decide(
    source: StatusSource,
    *,
    require_master: bool,
    forced_up: bool,
    forced_down: bool,
    config: ProbeConfig,
) -> Outcome:
    """Evaluate the node's availability once."""
    status = NodeStatus()

    if forced_up:
        return Outcome.ok(MSG_FORCED_UP, status)
    if forced_down:
        return Outcome.unavailable(MSG_FORCED_DOWN, status)

    try:
        status.read_only = await source.fetch_read_only()
    except QueryError as exc:
        return _query_failed(status, exc)
    if status.read_only and not config.available_when_readonly:
        return Outcome.unavailable(MSG_READ_ONLY, status)

    try:
        local = status.local_state = await source.fetch_local_state()
    except QueryError as exc:
        return _query_failed(status, exc)

    message = f"Node in {local.label} state"
    match local.state:
        case ReplicationState.JOINING | ReplicationState.JOINED:
            return Outcome.unavailable(message, status)
        case ReplicationState.DONOR:
            if config.available_when_donor:
                return Outcome.ok(message, status)
            return Outcome.unavailable(message, status)
        case ReplicationState.SYNCED:
            if not require_master:
                return Outcome.ok(message, status)
            try:
                status.local_index = await source.fetch_local_index()
            except QueryError as exc:
                return _query_failed(status, exc)
            if status.local_index == 0:
                return Outcome.ok(MSG_SYNCED_MASTER, status)
            return Outcome.unavailable(MSG_SYNCED_NOT_MASTER.format(index=status.local_index), status)
        case _:
            return Outcome.unavailable(MSG_UNKNOWN_STATE.format(code=local.code), status)


class ClusterChecker:
    """Binds a status source to the probe policy and the operator overrides."""

    def __init__(
        self,
        source: StatusSource,
        config: Optional[ProbeConfig] = None,
        overrides: Optional[OverrideState] = None,
    ):
        self.source = source
        self.config = config or ProbeConfig()
        self.overrides = overrides or OverrideState()

    async def check(self, require_master: Optional[bool] = None) -> Outcome:
        if require_master is None:
            require_master = self.config.require_master_default
        forced_up, forced_down = self.overrides.snapshot()
        return await decide(
            self.source,
            require_master=require_master,
            forced_up=forced_up,
            forced_down=forced_down,
            config=self.config,
        )

    async def check_master(self) -> Outcome:
        return await self.check(require_master=True)

    def force_up(self) -> None:
        self.overrides.force_up()
        record_overrides(*self.overrides.snapshot())

    def force_down(self) -> None:
        self.overrides.force_down()
        record_overrides(*self.overrides.snapshot())

    def reset(self) -> None:
        self.overrides.reset()
        record_overrides(*self.overrides.snapshot())


__all__ = ["decide", "ClusterChecker"]
