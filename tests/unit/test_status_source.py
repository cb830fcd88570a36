"""Tests for galera_clustercheck/core/clustercheck/status_source.py.

Uses an in-memory stand-in for the aiomysql pool (acquire -> cursor ->
execute/fetchone).
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pymysql
import pytest

from galera_clustercheck.core.clustercheck.state import ReplicationState
from galera_clustercheck.core.clustercheck.status_source import (
    MySQLStatusSource,
    parse_int,
    parse_read_only,
)
from galera_clustercheck.core.errors import ConnectionSetupError, ErrorCode, QueryError


class _Cursor:
    def __init__(self, pool):
        self._pool = pool
        self._row = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def execute(self, sql):
        self._pool.executed.append(sql)
        if self._pool.delay:
            await asyncio.sleep(self._pool.delay)
        error = self._pool.errors.get(sql)
        if error is not None:
            raise error
        self._row = self._pool.rows.get(sql)

    async def fetchone(self):
        return self._row


class _Conn:
    def __init__(self, pool):
        self._pool = pool

    def cursor(self):
        return _Cursor(self._pool)


class _Acquire:
    def __init__(self, pool):
        self._pool = pool

    async def __aenter__(self):
        return _Conn(self._pool)

    async def __aexit__(self, *exc):
        return False


class FakePool:
    def __init__(self, rows=None, errors=None, delay=0.0):
        self.rows = rows or {}
        self.errors = errors or {}
        self.delay = delay
        self.executed = []
        self.closed = False

    def acquire(self):
        return _Acquire(self)

    def close(self):
        self.closed = True

    async def wait_closed(self):
        return None


READ_ONLY_SQL = "SHOW GLOBAL VARIABLES LIKE 'read_only'"
STATE_SQL = "SHOW GLOBAL STATUS LIKE 'wsrep_local_state'"
INDEX_SQL = "SHOW GLOBAL STATUS LIKE 'wsrep_local_index'"


def _healthy_rows(read_only="OFF", state="4", index="0"):
    return {
        READ_ONLY_SQL: ("read_only", read_only),
        STATE_SQL: ("wsrep_local_state", state),
        INDEX_SQL: ("wsrep_local_index", index),
    }


def _settings(**overrides):
    values = dict(
        USERNAME="monitor",
        PASSWORD="secret",
        TIMEOUT=2.0,
        POOL_MINSIZE=1,
        POOL_MAXSIZE=10,
        SOCKET="/run/mysqld/mysqld.sock",
        HOST="",
        PORT=3306,
    )
    values.update(overrides)
    values["uses_socket"] = not values["HOST"]
    return SimpleNamespace(**values)


class TestParsers:
    @pytest.mark.parametrize("value,expected", [("ON", True), ("on", True), ("1", True), (b"OFF", False), ("0", False)])
    def test_parse_read_only(self, value, expected):
        assert parse_read_only(value) is expected

    def test_parse_read_only_rejects_other_values(self):
        with pytest.raises(QueryError) as exc_info:
            parse_read_only("MAYBE")
        assert exc_info.value.variable == "read_only"

    def test_parse_int(self):
        assert parse_int("wsrep_local_state", b"4") == 4
        assert parse_int("wsrep_local_state", " 2 ") == 2

    def test_parse_int_rejects_text(self):
        with pytest.raises(QueryError):
            parse_int("wsrep_local_index", "abc")


class TestQueries:
    @pytest.mark.asyncio
    async def test_fetch_read_only(self):
        source = MySQLStatusSource(FakePool(_healthy_rows(read_only="ON")))
        assert await source.fetch_read_only() is True

    @pytest.mark.asyncio
    async def test_fetch_local_state_known(self):
        source = MySQLStatusSource(FakePool(_healthy_rows(state="2")))
        local = await source.fetch_local_state()
        assert local.state is ReplicationState.DONOR
        assert local.code == 2

    @pytest.mark.asyncio
    async def test_fetch_local_state_unknown_keeps_code(self):
        source = MySQLStatusSource(FakePool(_healthy_rows(state="7")))
        local = await source.fetch_local_state()
        assert local.state is ReplicationState.UNKNOWN
        assert local.code == 7

    @pytest.mark.asyncio
    async def test_fetch_local_index(self):
        pool = FakePool(_healthy_rows(index="3"))
        source = MySQLStatusSource(pool)
        assert await source.fetch_local_index() == 3
        assert pool.executed == [INDEX_SQL]

    @pytest.mark.asyncio
    async def test_negative_index_rejected(self):
        source = MySQLStatusSource(FakePool(_healthy_rows(index="-1")))
        with pytest.raises(QueryError):
            await source.fetch_local_index()

    @pytest.mark.asyncio
    async def test_missing_row_is_query_error(self):
        source = MySQLStatusSource(FakePool({}))
        with pytest.raises(QueryError) as exc_info:
            await source.fetch_local_state()
        assert exc_info.value.variable == "wsrep_local_state"
        assert "no such variable" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_driver_error_is_query_error(self):
        error = pymysql.err.OperationalError(2013, "Lost connection to MySQL server during query")
        source = MySQLStatusSource(FakePool(_healthy_rows(), errors={READ_ONLY_SQL: error}))
        with pytest.raises(QueryError) as exc_info:
            await source.fetch_read_only()
        assert exc_info.value.code is ErrorCode.QUERY_ERROR
        assert "Lost connection" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_hung_query_times_out(self):
        source = MySQLStatusSource(FakePool(_healthy_rows(), delay=1.0), timeout=0.05)
        with pytest.raises(QueryError) as exc_info:
            await source.fetch_read_only()
        assert exc_info.value.timed_out is True
        assert exc_info.value.code is ErrorCode.TIMEOUT

    @pytest.mark.asyncio
    async def test_no_caching_between_calls(self):
        pool = FakePool(_healthy_rows(state="4"))
        source = MySQLStatusSource(pool)
        assert (await source.fetch_local_state()).state is ReplicationState.SYNCED
        pool.rows[STATE_SQL] = ("wsrep_local_state", "1")
        assert (await source.fetch_local_state()).state is ReplicationState.JOINING
        assert pool.executed == [STATE_SQL, STATE_SQL]


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_over_socket(self):
        pool = FakePool(_healthy_rows())
        with patch("aiomysql.create_pool", AsyncMock(return_value=pool)) as create_pool:
            source = await MySQLStatusSource.connect(_settings())

        kwargs = create_pool.call_args.kwargs
        assert kwargs["unix_socket"] == "/run/mysqld/mysqld.sock"
        assert "host" not in kwargs
        assert kwargs["user"] == "monitor"
        assert kwargs["connect_timeout"] == 2.0
        assert kwargs["maxsize"] == 10
        assert source.timeout == 2.0
        assert pool.executed == [READ_ONLY_SQL, STATE_SQL, INDEX_SQL]

    @pytest.mark.asyncio
    async def test_connect_over_tcp(self):
        pool = FakePool(_healthy_rows())
        with patch("aiomysql.create_pool", AsyncMock(return_value=pool)) as create_pool:
            await MySQLStatusSource.connect(_settings(HOST="10.0.0.5", PORT=3307))

        kwargs = create_pool.call_args.kwargs
        assert kwargs["host"] == "10.0.0.5"
        assert kwargs["port"] == 3307
        assert "unix_socket" not in kwargs

    @pytest.mark.asyncio
    async def test_connect_failure_is_setup_error(self):
        error = pymysql.err.OperationalError(2002, "Can't connect to local MySQL server")
        with patch("aiomysql.create_pool", AsyncMock(side_effect=error)):
            with pytest.raises(ConnectionSetupError) as exc_info:
                await MySQLStatusSource.connect(_settings())
        assert exc_info.value.code is ErrorCode.CONNECTION_SETUP_ERROR

    @pytest.mark.asyncio
    async def test_statement_failure_closes_pool(self):
        error = pymysql.err.OperationalError(1227, "Access denied; you need the PROCESS privilege")
        pool = FakePool(_healthy_rows(), errors={STATE_SQL: error})
        with patch("aiomysql.create_pool", AsyncMock(return_value=pool)):
            with pytest.raises(ConnectionSetupError, match="cannot prepare status queries"):
                await MySQLStatusSource.connect(_settings())
        assert pool.closed is True

    @pytest.mark.asyncio
    async def test_connect_accepts_missing_wsrep_rows(self):
        pool = FakePool({READ_ONLY_SQL: ("read_only", "OFF")})
        with patch("aiomysql.create_pool", AsyncMock(return_value=pool)):
            source = await MySQLStatusSource.connect(_settings())
        with pytest.raises(QueryError):
            await source.fetch_local_state()

    @pytest.mark.asyncio
    async def test_close(self):
        pool = FakePool()
        await MySQLStatusSource(pool).close()
        assert pool.closed is True
