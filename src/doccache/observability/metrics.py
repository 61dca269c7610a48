"""Prometheus metrics for the document cache."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest, start_http_server

from doccache.core.logging import get_logger

logger = get_logger(__name__)

NAMESPACE = "doccache"


class Metrics:
    """Projection counters and the block gauge on their own registry."""

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()
        self.created_docs = Counter(
            "created_docs", "# of created documents", namespace=NAMESPACE, registry=self.registry
        )
        self.created_edges = Counter(
            "created_edges", "# of created edges", namespace=NAMESPACE, registry=self.registry
        )
        self.deleted_docs = Counter(
            "deleted_docs", "# of deleted documents", namespace=NAMESPACE, registry=self.registry
        )
        self.deleted_edges = Counter(
            "deleted_edges", "# of deleted edges", namespace=NAMESPACE, registry=self.registry
        )
        self.block_number = Gauge(
            "block_number", "Block Number", namespace=NAMESPACE, registry=self.registry
        )

    def serve(self, port: int, addr: str = "0.0.0.0") -> None:
        """Expose the registry over HTTP from a background thread."""
        start_http_server(port, addr=addr, registry=self.registry)
        logger.info("metrics_serving", port=port)

    def value(self, name: str) -> float | None:
        """Current sample value, e.g. ``value("doccache_created_docs_total")``."""
        return self.registry.get_sample_value(name)

    def export(self) -> bytes:
        return generate_latest(self.registry)


__all__ = ["Metrics"]
