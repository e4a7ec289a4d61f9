"""
Prometheus metrics for pgslice

Metrics are module-level collectors registered on the default registry.
They can be exposed during long-running fills with ``MetricsPublisher``.

Usage:
    from utils.metrics import MetricsPublisher, get_or_create_metric

    BATCHES = get_or_create_metric(
        lambda: Counter("pgslice_fill_batches_total", "Fill batches", ["table"]),
        "pgslice_fill_batches_total",
    )

    MetricsPublisher(port=9091).start()
"""

import logging
from typing import Callable, TypeVar

from prometheus_client import REGISTRY, CollectorRegistry

from .publisher import ApplicationInfo, MetricsPublisher

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_or_create_metric(
    metric_factory: Callable[[], T],
    metric_name: str,
    registry: CollectorRegistry = REGISTRY,
) -> T:
    """
    Create a metric, or return the one already registered under that name.

    Modules that define metrics can be imported more than once (e.g. by test
    collection), which would otherwise raise a duplicate timeseries error.

    Args:
        metric_factory: Callable that creates the metric (e.g., lambda: Counter(...))
        metric_name: Name of the metric for lookup if already registered
        registry: Prometheus registry to use (default: global REGISTRY)

    Returns:
        The metric instance (either newly created or existing)
    """
    try:
        return metric_factory()
    except ValueError:
        existing = registry._names_to_collectors.get(metric_name)
        if existing is not None:
            return existing
        raise


__all__ = [
    "MetricsPublisher",
    "ApplicationInfo",
    "get_or_create_metric",
]
