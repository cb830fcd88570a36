"""
galera-clustercheck - service entry point

HTTP health check for a Galera cluster node, for use behind HAProxy or
another load balancer.
"""

from __future__ import annotations

import argparse
import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from galera_clustercheck import __version__
from galera_clustercheck.api.clustercheck import router
from galera_clustercheck.api.dependencies import CheckerNotReady, checker_not_ready_handler
from galera_clustercheck.core.clustercheck import (
    ClusterChecker,
    MySQLStatusSource,
    OverrideState,
    StatusSource,
)
from galera_clustercheck.core.config import Settings, load_settings
from galera_clustercheck.core.errors import ConfigError, ConnectionSetupError
from galera_clustercheck.utils.logging import setup_logging
from galera_clustercheck.utils.metrics import record_overrides
from galera_clustercheck.utils.systemd import notify_ready

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 2
EXIT_STARTUP_ERROR = 3


def create_app(settings: Settings, source: Optional[StatusSource] = None) -> FastAPI:
    """Build the application.

    With ``source`` given the checker is ready immediately; otherwise the
    MySQL pool is opened during startup and a failure aborts the server.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned: Optional[MySQLStatusSource] = None
        if app.state.checker is None:
            try:
                owned = await MySQLStatusSource.connect(settings)
            except ConnectionSetupError as exc:
                logger.critical("Connection setup failed: %s", exc)
                raise
            app.state.checker = ClusterChecker(owned, settings.probe_config(), app.state.overrides)
        logger.info("Listening on %s:%d", settings.listen_host, settings.BIND_PORT)
        yield
        if owned is not None:
            await owned.close()
            logger.info("MySQL pool closed")

    app = FastAPI(
        title="galera-clustercheck",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.debug = settings.DEBUG
    app.state.overrides = OverrideState()
    app.state.checker = None
    if source is not None:
        app.state.checker = ClusterChecker(source, settings.probe_config(), app.state.overrides)
    record_overrides(False, False)

    app.add_exception_handler(CheckerNotReady, checker_not_ready_handler)
    app.include_router(router)
    app.mount("/metrics", make_asgi_app())
    return app


class NotifyingServer(uvicorn.Server):
    """uvicorn server that reports readiness once its sockets are bound."""

    async def startup(self, sockets: Optional[List[Any]] = None) -> None:
        await super().startup(sockets=sockets)
        if self.started and not self.should_exit:
            notify_ready()


def build_parser() -> argparse.ArgumentParser:
    # Defaults are SUPPRESSed so only flags given on the command line
    # override environment settings.
    parser = argparse.ArgumentParser(
        prog="galera-clustercheck",
        description="HTTP availability check for a Galera cluster node",
        argument_default=argparse.SUPPRESS,
    )
    parser.add_argument("--username", dest="USERNAME", help="MySQL username")
    parser.add_argument("--password", dest="PASSWORD", help="MySQL password")
    parser.add_argument("--inifile", dest="INIFILE", help="MySQL option file (user/password)")
    parser.add_argument("--socket", dest="SOCKET", help="MySQL unix socket")
    parser.add_argument("--host", dest="HOST", help="MySQL server (TCP); socket is used when empty")
    parser.add_argument("--port", dest="PORT", type=int, help="MySQL port")
    parser.add_argument("--timeout", dest="TIMEOUT", help="MySQL connection and query timeout, e.g. 10s")
    parser.add_argument("--pool-minsize", dest="POOL_MINSIZE", type=int, help="Minimum pooled connections")
    parser.add_argument("--pool-maxsize", dest="POOL_MAXSIZE", type=int, help="Maximum pooled connections")
    parser.add_argument(
        "--donor", dest="AVAILABLE_WHEN_DONOR", action="store_true", help="Available while node is a donor"
    )
    parser.add_argument(
        "--readonly", dest="AVAILABLE_WHEN_READONLY", action="store_true", help="Available while node is read only"
    )
    parser.add_argument(
        "--requiremaster", dest="REQUIRE_MASTER", action="store_true", help="Available only while node is master"
    )
    parser.add_argument("--bindaddr", dest="BIND_ADDR", help="Bind address")
    parser.add_argument("--bindport", dest="BIND_PORT", type=int, help="Bind port")
    parser.add_argument(
        "--debug", dest="DEBUG", action="store_true", help="Also log successful 200 responses"
    )
    parser.add_argument("--log-format", dest="LOG_FORMAT", choices=["text", "json"], help="Log output format")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def parse_args(argv: Optional[List[str]] = None) -> Dict[str, Any]:
    return vars(build_parser().parse_args(argv))


def main(argv: Optional[List[str]] = None) -> int:
    try:
        settings = load_settings(parse_args(argv))
    except ConfigError as exc:
        setup_logging()
        logger.critical("Configuration error: %s", exc)
        return EXIT_CONFIG_ERROR

    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    app = create_app(settings)
    config = uvicorn.Config(
        app,
        host=settings.listen_host,
        port=settings.BIND_PORT,
        lifespan="on",
        log_config=None,
        access_log=settings.DEBUG,
    )
    server = NotifyingServer(config)
    server.run()
    if not server.started:
        logger.critical("Startup failed, see errors above")
        return EXIT_STARTUP_ERROR
    return 0


if __name__ == "__main__":
    sys.exit(main())
