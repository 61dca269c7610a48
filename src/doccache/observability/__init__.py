"""Prometheus metrics."""

from doccache.observability.metrics import Metrics

__all__ = ["Metrics"]
