"""Request dependencies resolved from application state."""

from fastapi import Request
from fastapi.responses import PlainTextResponse

from galera_clustercheck.core.clustercheck import ClusterChecker

MSG_NOT_READY = "Checker not ready"


class CheckerNotReady(Exception):
    """Raised while the application has no status source yet."""


def get_checker(request: Request) -> ClusterChecker:
    checker = getattr(request.app.state, "checker", None)
    if checker is None:
        raise CheckerNotReady()
    return checker


def is_debug(request: Request) -> bool:
    return bool(getattr(request.app.state, "debug", False))


async def checker_not_ready_handler(request: Request, exc: CheckerNotReady) -> PlainTextResponse:
    return PlainTextResponse(MSG_NOT_READY + "\n", status_code=503)
