"""Readiness notification for systemd (Type=notify units)."""

from __future__ import annotations

import logging
import os

import sdnotify

logger = logging.getLogger(__name__)


def notify_ready() -> bool:
    """Send READY=1 to the service manager.

    Returns False when not running under systemd or the datagram could not
    be sent; callers carry on either way.
    """
    if not os.environ.get("NOTIFY_SOCKET"):
        logger.debug("NOTIFY_SOCKET not set, skipping readiness notification")
        return False
    try:
        sdnotify.SystemdNotifier(debug=True).notify("READY=1")
    except OSError as exc:
        logger.warning("Readiness notification failed: %s", exc)
        return False
    return True
