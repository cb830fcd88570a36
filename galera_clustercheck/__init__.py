"""Galera cluster node availability check for load balancers."""

__version__ = "1.0.0"
