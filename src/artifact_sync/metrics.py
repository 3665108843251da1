"""Prometheus metrics for the artifact sync service.

Metrics are exposed at the `/metrics` endpoint in Prometheus format.

Metrics Defined:
- artifact_sync_webhooks_total: Counter of deliveries by terminal outcome
- artifact_sync_install_duration_seconds: Histogram of download + install time
- artifact_sync_downloaded_bytes_total: Counter of archive bytes downloaded

Source:
- src/artifact_sync/outcome.py (SyncOutcome)
"""

from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from src.artifact_sync.outcome import SyncOutcome

# Covers small static bundles through multi-hundred-megabyte archives
DEFAULT_DURATION_BUCKETS = (
    0.1,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
    60.0,
    120.0,
    300.0,
)


class SyncMetrics:
    """Container for all artifact sync Prometheus metrics.

    Supports custom registries for testing.

    Attributes:
        registry: The Prometheus registry for these metrics.
        webhooks_total: Counter of deliveries, labelled by outcome.
        install_duration_seconds: Histogram of download and install time.
        downloaded_bytes_total: Counter of downloaded archive bytes.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize sync metrics.

        Args:
            registry: Optional Prometheus registry. If None, uses the
                      default REGISTRY. Pass a custom registry for testing.
        """
        self.registry = registry or REGISTRY

        self.webhooks_total = Counter(
            "artifact_sync_webhooks_total",
            "Total webhook deliveries by terminal outcome",
            labelnames=["outcome"],
            registry=self.registry,
        )

        self.install_duration_seconds = Histogram(
            "artifact_sync_install_duration_seconds",
            "Time spent downloading and installing an artifact in seconds",
            buckets=DEFAULT_DURATION_BUCKETS,
            registry=self.registry,
        )

        self.downloaded_bytes_total = Counter(
            "artifact_sync_downloaded_bytes_total",
            "Total artifact archive bytes downloaded",
            registry=self.registry,
        )

        # Export every outcome from the start so rate() queries see zeros
        for outcome in SyncOutcome:
            self.webhooks_total.labels(outcome=outcome.value)

    def record_outcome(self, outcome: SyncOutcome) -> None:
        self.webhooks_total.labels(outcome=outcome.value).inc()

    def record_install_duration(self, duration_seconds: float) -> None:
        self.install_duration_seconds.observe(duration_seconds)

    def record_download(self, size_bytes: int) -> None:
        self.downloaded_bytes_total.inc(size_bytes)

    def generate(self) -> bytes:
        """Render the registry in Prometheus text exposition format."""
        return generate_latest(self.registry)
