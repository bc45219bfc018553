"""
DeployWatch - Prometheus Metrics
"""
import time

from prometheus_client import Counter, Histogram, Info, generate_latest
from prometheus_client import CollectorRegistry

# Custom registry so tests and multiple app instances don't collide with the default one
metrics_registry = CollectorRegistry()

# ===== Probing =====

PROBES_TOTAL = Counter(
    'deploywatch_probes_total',
    'Endpoint probes by kind and outcome',
    ['kind', 'outcome'],  # kind: liveness | metadata; outcome: online | offline | error
    registry=metrics_registry
)

PROBE_DURATION = Histogram(
    'deploywatch_probe_duration_seconds',
    'Wall-clock time of a single endpoint probe',
    ['kind'],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 8.0, 10.0),
    registry=metrics_registry
)

FLEET_SCAN_DURATION = Histogram(
    'deploywatch_fleet_scan_duration_seconds',
    'Time to check every registered endpoint',
    registry=metrics_registry
)

# ===== Version ledger =====

VERSION_CHANGES = Counter(
    'deploywatch_version_changes_total',
    'Version transitions recorded in the history ledger',
    ['change_type'],
    registry=metrics_registry
)

HEARTBEATS = Counter(
    'deploywatch_heartbeats_total',
    'Observations that matched the current version (status refresh only)',
    registry=metrics_registry
)

LEDGER_FAILURES = Counter(
    'deploywatch_ledger_failures_total',
    'Failed ledger or endpoint registry operations',
    ['operation'],
    registry=metrics_registry
)

# ===== Compliance =====

COMPLIANCE_VIOLATIONS = Counter(
    'deploywatch_compliance_violations_total',
    'Promotion-ordering violations found',
    ['severity'],
    registry=metrics_registry
)

# ===== System Info =====

SYSTEM_INFO = Info(
    'deploywatch_system',
    'System version',
    registry=metrics_registry
)


def get_metrics() -> bytes:
    """Metrics in Prometheus text exposition format"""
    return generate_latest(metrics_registry)


class MetricsTimer:
    """Context manager for timing operations"""
    def __init__(self, histogram, **labels):
        self.histogram = histogram
        self.labels = labels
    
    def __enter__(self):
        self.start = time.time()
        return self
    
    def __exit__(self, *args):
        duration = time.time() - self.start
        target = self.histogram.labels(**self.labels) if self.labels else self.histogram
        target.observe(duration)
