"""
Monitoring Module

Structured logging setup and Prometheus metrics for the jobs worker.
"""

from gla_sync.monitoring.logging import configure_logging
from gla_sync.monitoring.metrics import Metrics, get_metrics

__all__ = [
    "Metrics",
    "configure_logging",
    "get_metrics",
]
