"""Status queries against the local Galera node.

Each query is a single ``SHOW GLOBAL ... LIKE`` round trip with a deadline.
Nothing is cached: every call reads the node's current value.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any, Optional, Protocol, Tuple

import aiomysql
import pymysql

from galera_clustercheck.core.clustercheck.state import LocalState
from galera_clustercheck.core.errors import ConnectionSetupError, QueryError
from galera_clustercheck.utils.metrics import (
    clustercheck_query_duration_seconds,
    clustercheck_query_errors_total,
)

if TYPE_CHECKING:
    from galera_clustercheck.core.config import Settings

logger = logging.getLogger(__name__)

READ_ONLY = "read_only"
WSREP_LOCAL_STATE = "wsrep_local_state"
WSREP_LOCAL_INDEX = "wsrep_local_index"

_QUERIES = {
    READ_ONLY: "SHOW GLOBAL VARIABLES LIKE 'read_only'",
    WSREP_LOCAL_STATE: "SHOW GLOBAL STATUS LIKE 'wsrep_local_state'",
    WSREP_LOCAL_INDEX: "SHOW GLOBAL STATUS LIKE 'wsrep_local_index'",
}

_BOOL_VALUES = {"ON": True, "1": True, "OFF": False, "0": False}


class StatusSource(Protocol):
    """Read-only view of the node's replication status."""

    async def fetch_read_only(self) -> bool:
        ...

    async def fetch_local_state(self) -> LocalState:
        ...

    async def fetch_local_index(self) -> int:
        ...


def parse_read_only(value: Any) -> bool:
    text = value.decode() if isinstance(value, bytes) else str(value)
    try:
        return _BOOL_VALUES[text.strip().upper()]
    except KeyError:
        raise QueryError(READ_ONLY, f"unexpected value {text!r}") from None


def parse_int(variable: str, value: Any) -> int:
    text = value.decode() if isinstance(value, bytes) else str(value)
    try:
        return int(text.strip())
    except ValueError:
        raise QueryError(variable, f"unexpected value {text!r}") from None


class MySQLStatusSource:
    """StatusSource backed by an aiomysql connection pool."""

    def __init__(self, pool: Any, timeout: float = 10.0):
        self._pool = pool
        self.timeout = timeout

    @classmethod
    async def connect(cls, settings: Settings) -> "MySQLStatusSource":
        """Create the pool described by ``settings`` and verify every query.

        Raises ConnectionSetupError if the node cannot be reached or one of
        the status queries cannot be run.
        """
        kwargs = {
            "user": settings.USERNAME,
            "password": settings.PASSWORD,
            "connect_timeout": settings.TIMEOUT,
            "minsize": settings.POOL_MINSIZE,
            "maxsize": settings.POOL_MAXSIZE,
            "autocommit": True,
        }
        if settings.uses_socket:
            kwargs["unix_socket"] = settings.SOCKET
            target = f"unix:{settings.SOCKET}"
        else:
            kwargs["host"] = settings.HOST
            kwargs["port"] = settings.PORT
            target = f"tcp:{settings.HOST}:{settings.PORT}"

        logger.info("Connecting to MySQL at %s (pool %d-%d)", target, settings.POOL_MINSIZE, settings.POOL_MAXSIZE)
        try:
            pool = await asyncio.wait_for(aiomysql.create_pool(**kwargs), timeout=settings.TIMEOUT)
        except (asyncio.TimeoutError, pymysql.err.MySQLError, OSError) as exc:
            raise ConnectionSetupError(f"cannot connect to {target}: {exc}") from exc

        source = cls(pool, timeout=settings.TIMEOUT)
        try:
            await source.verify()
        except QueryError as exc:
            await source.close()
            raise ConnectionSetupError(f"cannot prepare status queries: {exc}") from exc
        return source

    async def verify(self) -> None:
        """Run each status statement once.

        A missing row is accepted here: wsrep variables may not be
        registered until the provider has loaded.
        """
        for variable in _QUERIES:
            await self._execute(variable)

    async def close(self) -> None:
        self._pool.close()
        await self._pool.wait_closed()

    async def _fetch_row(self, sql: str) -> Optional[Tuple[Any, ...]]:
        async with self._pool.acquire() as conn:
            async with conn.cursor() as cur:
                await cur.execute(sql)
                return await cur.fetchone()

    async def _execute(self, variable: str) -> Optional[Tuple[Any, ...]]:
        start = time.perf_counter()
        try:
            row = await asyncio.wait_for(self._fetch_row(_QUERIES[variable]), timeout=self.timeout)
        except asyncio.TimeoutError:
            clustercheck_query_errors_total.labels(variable=variable, code="TIMEOUT").inc()
            raise QueryError(variable, f"timed out after {self.timeout}s", timed_out=True) from None
        except (pymysql.err.MySQLError, OSError) as exc:
            clustercheck_query_errors_total.labels(variable=variable, code="QUERY_ERROR").inc()
            raise QueryError(variable, str(exc)) from exc
        finally:
            clustercheck_query_duration_seconds.labels(variable=variable).observe(
                time.perf_counter() - start
            )
        return row

    async def _query(self, variable: str) -> Any:
        row = await self._execute(variable)
        if not row or len(row) < 2:
            clustercheck_query_errors_total.labels(variable=variable, code="QUERY_ERROR").inc()
            raise QueryError(variable, "no such variable")
        return row[1]

    async def fetch_read_only(self) -> bool:
        return parse_read_only(await self._query(READ_ONLY))

    async def fetch_local_state(self) -> LocalState:
        return LocalState.from_code(parse_int(WSREP_LOCAL_STATE, await self._query(WSREP_LOCAL_STATE)))

    async def fetch_local_index(self) -> int:
        index = parse_int(WSREP_LOCAL_INDEX, await self._query(WSREP_LOCAL_INDEX))
        if index < 0:
            raise QueryError(WSREP_LOCAL_INDEX, f"negative index {index}")
        return index


__all__ = [
    "StatusSource",
    "MySQLStatusSource",
    "READ_ONLY",
    "WSREP_LOCAL_STATE",
    "WSREP_LOCAL_INDEX",
    "parse_read_only",
    "parse_int",
]
