"""
Prometheus metrics for upload monitoring.

Metrics Provided:
    - upload_requests_total: Counter for upload attempts by outcome
    - upload_bytes_total: Counter for payload bytes sent
    - upload_duration_seconds: Histogram for upload latency
    - transfer_errors_total: Counter for failed attempts by error type
    - spill_cleanup_failures_total: Counter for spill files that could not be deleted

Usage:
    from artifact_uploader.utils.metrics import get_metrics

    metrics = get_metrics()
    with metrics.track_upload():
        record = upload_file(source, task)

    # Expose for scraping:
    python -m artifact_uploader.utils.metrics --port 9090
"""

import os
import signal
from contextlib import nullcontext
from typing import Any, ContextManager, Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    start_http_server,
)

from artifact_uploader.utils.logging import get_logger

logger = get_logger(__name__)


class UploadMetrics:
    """
    Prometheus collectors for the upload task.

    Example:
        >>> metrics = UploadMetrics(registry=CollectorRegistry())
        >>> metrics.record_upload_success(bytes_sent=1024, compressed=True)
    """

    def __init__(self, enabled: bool = True, registry: Optional[CollectorRegistry] = None) -> None:
        """
        Initialize metrics collectors.

        Args:
            enabled: Whether metrics collection is enabled
            registry: Custom Prometheus registry (uses default if None)
        """
        self.enabled = enabled
        self.registry = registry if registry is not None else REGISTRY

        if not self.enabled:
            logger.info("Metrics collection disabled")
            return

        self.upload_requests = Counter(
            name="upload_requests_total",
            documentation="Total number of upload attempts",
            labelnames=["status", "compressed"],  # status: success/failure/cancelled
            registry=self.registry,
        )

        self.upload_bytes = Counter(
            name="upload_bytes_total",
            documentation="Total payload bytes sent to object storage",
            registry=self.registry,
        )

        self.upload_duration = Histogram(
            name="upload_duration_seconds",
            documentation="Time spent uploading one file",
            buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
            registry=self.registry,
        )

        self.transfer_errors = Counter(
            name="transfer_errors_total",
            documentation="Failed upload attempts by error type",
            labelnames=["error_type"],
            registry=self.registry,
        )

        self.spill_cleanup_failures = Counter(
            name="spill_cleanup_failures_total",
            documentation="Temporary spill files that could not be deleted",
            registry=self.registry,
        )

    def track_upload(self) -> ContextManager[Any]:
        """Context manager timing one upload attempt."""
        if not self.enabled:
            return nullcontext()
        return self.upload_duration.time()

    def record_upload_success(self, bytes_sent: int, compressed: bool) -> None:
        if not self.enabled:
            return
        self.upload_requests.labels(status="success", compressed=str(compressed).lower()).inc()
        self.upload_bytes.inc(bytes_sent)

    def record_upload_failure(self, error_type: str, compressed: bool, cancelled: bool = False) -> None:
        """
        Record a failed attempt.

        Args:
            error_type: Exception class name
            compressed: Whether the attempt gzipped its payload
            cancelled: The attempt was interrupted rather than failed
        """
        if not self.enabled:
            return
        status = "cancelled" if cancelled else "failure"
        self.upload_requests.labels(status=status, compressed=str(compressed).lower()).inc()
        self.transfer_errors.labels(error_type=error_type).inc()

    def record_cleanup_failure(self) -> None:
        if not self.enabled:
            return
        self.spill_cleanup_failures.inc()


# Global metrics instance (singleton)
_metrics_instance: Optional[UploadMetrics] = None


def get_metrics() -> UploadMetrics:
    """
    Get global metrics instance (singleton).

    Collection is switched off with METRICS_ENABLED=false.
    """
    global _metrics_instance

    if _metrics_instance is None:
        enabled = os.getenv("METRICS_ENABLED", "true").lower() == "true"
        _metrics_instance = UploadMetrics(enabled=enabled)

    return _metrics_instance


def start_metrics_server(port: int = 9090, addr: str = "0.0.0.0") -> None:
    """
    Start Prometheus metrics HTTP server and block until interrupted.

    Args:
        port: Port to listen on
        addr: Address to bind to
    """
    logger.info(f"Starting Prometheus metrics server on {addr}:{port}")
    get_metrics()
    start_http_server(port=port, addr=addr)
    logger.info(f"Metrics server running at http://{addr}:{port}/metrics")

    try:
        signal.pause()
    except KeyboardInterrupt:
        logger.info("Metrics server shutting down")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Artifact uploader metrics server")
    parser.add_argument("--port", type=int, default=9090, help="Metrics server port (default: 9090)")
    parser.add_argument("--addr", type=str, default="0.0.0.0", help="Address to bind to (default: 0.0.0.0)")
    args = parser.parse_args()

    start_metrics_server(port=args.port, addr=args.addr)
