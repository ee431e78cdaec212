# src/monitoring/metrics.py
"""Prometheus metrics for policy enforcement runs."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    write_to_textfile,
)

if TYPE_CHECKING:
    from src.core.models import PolicyResult

OUTCOME_COMPLETED = "completed"
OUTCOME_ERROR = "error"


class EnforcementMetrics:
    """Collects enforcement metrics in a private registry.

    A private registry keeps repeated runs (and tests) from colliding on the
    process-wide default registry. prometheus_client metrics are thread-safe,
    so workers may record directly.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.logger = logging.getLogger(__name__)

        self.files_deleted = Counter(
            "file_cleanup_files_deleted_total",
            "Total files deleted by retention policies.",
            registry=self.registry,
        )
        self.deletion_failures = Counter(
            "file_cleanup_deletion_failures_total",
            "Total files or subdirectories that failed to be cleaned.",
            registry=self.registry,
        )
        self.policies_enforced = Counter(
            "file_cleanup_policies_enforced_total",
            "Total policies processed, by outcome.",
            ["outcome"],
            registry=self.registry,
        )
        self.unavailable_directories = Counter(
            "file_cleanup_unavailable_directories_total",
            "Policies skipped because their directory was missing or unreadable.",
            registry=self.registry,
        )
        self.policy_runtime = Histogram(
            "file_cleanup_policy_runtime_seconds",
            "Wall-clock duration of a policy traversal.",
            buckets=(0.01, 0.1, 0.5, 1, 5, 15, 60, 300, 900, 3600),
            registry=self.registry,
        )
        self.active_policies = Gauge(
            "file_cleanup_active_policies",
            "Policies currently being traversed.",
            registry=self.registry,
        )
        self.last_run_timestamp = Gauge(
            "file_cleanup_last_run_timestamp_seconds",
            "Unix time the last enforcement run finished.",
            registry=self.registry,
        )

    def policy_started(self) -> None:
        self.active_policies.inc()

    def policy_finished(self, result: PolicyResult, outcome: str = OUTCOME_COMPLETED) -> None:
        """Record the outcome of a single policy"""
        self.active_policies.dec()
        self.policies_enforced.labels(outcome=outcome).inc()
        self.files_deleted.inc(result.success_count)
        self.deletion_failures.inc(result.failure_count)
        self.policy_runtime.observe(result.policy_runtime.total_seconds())

    def record_unavailable(self) -> None:
        self.unavailable_directories.inc()

    def run_finished(self) -> None:
        self.last_run_timestamp.set(time.time())

    def get_value(self, name: str, labels: Optional[dict] = None) -> float:
        """Read a sample value back from the registry (0.0 when absent)"""
        value = self.registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0

    def write_textfile(self, path: str) -> None:
        """Write all metrics in the node-exporter textfile format"""
        write_to_textfile(path, self.registry)
        self.logger.info(f"Wrote metrics to {path}")
