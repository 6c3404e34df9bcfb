"""Prometheus metrics for the cluster manager."""

from collections.abc import Collection

from prometheus_client import Counter, Gauge, Histogram

from clustermanager.types import ClusterStatus, WorkloadSummary

# Admission metrics
ADMISSION_RECONCILES = Counter(
    "clustermanager_admission_reconcile_total",
    "Admission reconcile attempts by outcome",
    ["outcome"],  # not_found, already_accepted, no_requests, accepted, all_denied, error
)

CSR_APPROVED = Counter(
    "clustermanager_csr_approved_total",
    "Certificate signing requests approved by the admission controller",
)

# Fleet scheduler metrics
TICK_DURATION = Histogram(
    "clustermanager_collect_tick_duration_seconds",
    "Duration of one fleet collection tick in seconds",
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0],
)

CLUSTER_COLLECTIONS = Counter(
    "clustermanager_cluster_collections_total",
    "Per-cluster collection attempts by result",
    ["result"],  # "success", "failed" or "timeout"
)

# Per-cluster telemetry gauges
CLUSTER_NODES = Gauge(
    "clustermanager_cluster_nodes",
    "Nodes per member cluster by Ready condition",
    ["cluster", "condition"],
)

CLUSTER_CAPACITY = Gauge(
    "clustermanager_cluster_capacity",
    "Summed node capacity (cores for cpu, bytes for memory)",
    ["cluster", "resource"],
)

CLUSTER_ALLOCATABLE = Gauge(
    "clustermanager_cluster_allocatable",
    "Summed node allocatable (cores for cpu, bytes for memory)",
    ["cluster", "resource"],
)

CLUSTER_PROBE_UP = Gauge(
    "clustermanager_cluster_probe_up",
    "Whether a member cluster health endpoint returned 200 (1) or not (0)",
    ["cluster", "endpoint"],
)

CLUSTER_WORKLOADS = Gauge(
    "clustermanager_cluster_workloads",
    "Workloads per member cluster by kind",
    ["cluster", "kind"],
)

# Label sets exported per cluster, so departed clusters can be removed
_exported: dict[str, set[tuple[Gauge, tuple[str, ...]]]] = {}


def _set(gauge: Gauge, value: float, cluster: str, label: str) -> None:
    gauge.labels(cluster, label).set(value)
    _exported.setdefault(cluster, set()).add((gauge, (cluster, label)))


def record_reconcile(outcome: str) -> None:
    """Record an admission reconcile outcome."""
    ADMISSION_RECONCILES.labels(outcome=outcome).inc()


def record_csr_approved() -> None:
    CSR_APPROVED.inc()


def record_collection(result: str) -> None:
    """Record a per-cluster collection result."""
    CLUSTER_COLLECTIONS.labels(result=result).inc()


def set_cluster_status(status: ClusterStatus) -> None:
    """Export one cluster snapshot as gauges."""
    cluster = status.cluster_name
    stats = status.node_statistics
    for condition, count in (
        ("ready", stats.ready_nodes),
        ("not_ready", stats.not_ready_nodes),
        ("unknown", stats.unknown_nodes),
        ("lost", stats.lost_nodes),
    ):
        _set(CLUSTER_NODES, count, cluster, condition)

    for resource, quantity in status.capacity.items():
        _set(CLUSTER_CAPACITY, quantity.as_float(), cluster, resource)
    for resource, quantity in status.allocatable.items():
        _set(CLUSTER_ALLOCATABLE, quantity.as_float(), cluster, resource)

    for endpoint, up in (
        ("healthz", status.healthz),
        ("livez", status.livez),
        ("readyz", status.readyz),
    ):
        _set(CLUSTER_PROBE_UP, 1 if up else 0, cluster, endpoint)


def set_workload_counts(summary: WorkloadSummary) -> None:
    """Export workload counts per kind for one cluster."""
    for kind, section in (
        ("deployment", summary.deployments),
        ("statefulset", summary.statefulsets),
        ("daemonset", summary.daemonsets),
    ):
        count = sum(len(items) for items in section.values())
        _set(CLUSTER_WORKLOADS, count, summary.cluster_name, kind)


def remove_clusters(keep: Collection[str]) -> list[str]:
    """
    Remove the gauges of every exported cluster not in keep.

    Returns:
        Names of the removed clusters.
    """
    removed = sorted(name for name in _exported if name not in keep)
    for name in removed:
        for gauge, labels in _exported.pop(name):
            try:
                gauge.remove(*labels)
            except KeyError:
                pass  # Already removed
    return removed
