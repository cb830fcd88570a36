import os

import pytest

from galera_clustercheck.core.errors import QueryError

_ENV_PREFIX = "CLUSTERCHECK_"
_EXTRA_ENV = ("NOTIFY_SOCKET",)


@pytest.fixture(autouse=True)
def env_isolation():
    """Run each test without CLUSTERCHECK_* / NOTIFY_SOCKET from the caller's shell."""
    keys = [k for k in os.environ if k.startswith(_ENV_PREFIX) or k in _EXTRA_ENV]
    backup = {k: os.environ.pop(k) for k in keys}
    try:
        yield
    finally:
        for k in [k for k in os.environ if k.startswith(_ENV_PREFIX) or k in _EXTRA_ENV]:
            os.environ.pop(k, None)
        os.environ.update(backup)


class FakeStatusSource:
    """In-memory StatusSource recording which queries were issued."""

    def __init__(self, read_only=False, state_code=4, local_index=0, fail=(), timeout=()):
        self.read_only = read_only
        self.state_code = state_code
        self.local_index = local_index
        self.fail = set(fail)
        self.timeout = set(timeout)
        self.calls = []

    def _maybe_fail(self, variable):
        self.calls.append(variable)
        if variable in self.fail:
            raise QueryError(variable, "Lost connection to MySQL server during query")
        if variable in self.timeout:
            raise QueryError(variable, "timed out after 10.0s", timed_out=True)

    async def fetch_read_only(self):
        from galera_clustercheck.core.clustercheck.status_source import READ_ONLY

        self._maybe_fail(READ_ONLY)
        return self.read_only

    async def fetch_local_state(self):
        from galera_clustercheck.core.clustercheck.state import LocalState
        from galera_clustercheck.core.clustercheck.status_source import WSREP_LOCAL_STATE

        self._maybe_fail(WSREP_LOCAL_STATE)
        return LocalState.from_code(self.state_code)

    async def fetch_local_index(self):
        from galera_clustercheck.core.clustercheck.status_source import WSREP_LOCAL_INDEX

        self._maybe_fail(WSREP_LOCAL_INDEX)
        return self.local_index


@pytest.fixture
def fake_source():
    """Factory for FakeStatusSource instances."""
    return FakeStatusSource
