"""
Observability module - Logging and Metrics.
"""

from studyflow.observability.logging import get_logger, log_context, setup_logging
from studyflow.observability.metrics import metrics

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
]
