"""Probe and override endpoints.

Every response is a single plain-text line. 200 means the load balancer may
route to this node, 503 means it must not, 500 means the status could not be
read.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from galera_clustercheck.api.dependencies import get_checker, is_debug
from galera_clustercheck.core.clustercheck import ClusterChecker, Outcome
from galera_clustercheck.utils.metrics import record_request

logger = logging.getLogger(__name__)

router = APIRouter()

PROBE_METHODS = ["GET", "HEAD"]
ADMIN_METHODS = ["GET", "POST"]


def _remote_addr(request: Request) -> str:
    return request.client.host if request.client else "-"


def render(request: Request, endpoint: str, outcome: Outcome, debug: bool) -> PlainTextResponse:
    """Log the decision and turn it into the HTTP response."""
    remote = _remote_addr(request)
    extra = {"remote_addr": remote, "endpoint": endpoint, "status_code": outcome.status_code}
    if outcome.is_internal_error:
        extra["variable"] = outcome.status.error_variable
        extra["error_code"] = outcome.status.error_code
        logger.error("%s %s (%s)", remote, outcome.message, outcome.status.fetch_error, extra=extra)
    elif not outcome.available:
        logger.warning("%s %s", remote, outcome.message, extra=extra)
    elif debug:
        logger.info("%s %s", remote, outcome.message, extra=extra)
    record_request(endpoint, outcome.status_code)
    return PlainTextResponse(outcome.message + "\n", status_code=outcome.status_code)


@router.api_route("/", methods=PROBE_METHODS)
async def probe(
    request: Request,
    checker: ClusterChecker = Depends(get_checker),
    debug: bool = Depends(is_debug),
):
    """Availability using the configured require-master default."""
    return render(request, "root", await checker.check(), debug)


@router.api_route("/master", methods=PROBE_METHODS)
async def probe_master(
    request: Request,
    checker: ClusterChecker = Depends(get_checker),
    debug: bool = Depends(is_debug),
):
    """Availability for master-only routing: Synced requires wsrep_local_index 0."""
    return render(request, "master", await checker.check_master(), debug)


@router.api_route("/up", methods=ADMIN_METHODS)
async def force_up(
    request: Request,
    checker: ClusterChecker = Depends(get_checker),
    debug: bool = Depends(is_debug),
):
    """Force the node available until /down or /reset."""
    checker.force_up()
    logger.warning("%s forced node up", _remote_addr(request))
    return render(request, "up", await checker.check(), debug)


@router.api_route("/down", methods=ADMIN_METHODS)
async def force_down(
    request: Request,
    checker: ClusterChecker = Depends(get_checker),
    debug: bool = Depends(is_debug),
):
    """Force the node unavailable until /up or /reset."""
    checker.force_down()
    logger.warning("%s forced node down", _remote_addr(request))
    return render(request, "down", await checker.check(), debug)


@router.api_route("/reset", methods=ADMIN_METHODS)
async def reset_overrides(
    request: Request,
    checker: ClusterChecker = Depends(get_checker),
    debug: bool = Depends(is_debug),
):
    """Clear both overrides and report the node's own status."""
    checker.reset()
    logger.warning("%s cleared overrides", _remote_addr(request))
    return render(request, "reset", await checker.check(), debug)
