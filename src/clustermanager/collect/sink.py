"""
Snapshot sinks.

- LogSink: one structured log record per snapshot
- MetricsSink: Prometheus gauges per cluster
- SnapshotStore: latest snapshots in memory, served by the status API
- MultiSink: fan-out to several sinks
"""

import json
import logging
from collections.abc import Collection, Iterable

from clustermanager.metrics import remove_clusters, set_cluster_status, set_workload_counts
from clustermanager.protocols import SnapshotSinkProtocol
from clustermanager.types import ClusterStatus, WorkloadSummary

logger = logging.getLogger(__name__)


class LogSink:
    """Emit snapshots as JSON log records."""

    def emit_cluster_status(self, status: ClusterStatus) -> None:
        logger.info(f"cluster status {json.dumps(status.to_dict(), sort_keys=True)}")

    def emit_workload_summary(self, summary: WorkloadSummary) -> None:
        logger.info(f"workload summary {json.dumps(summary.to_dict(), sort_keys=True)}")

    def retain(self, names: Collection[str]) -> None:
        pass


class MetricsSink:
    """Export snapshots as Prometheus gauges."""

    def emit_cluster_status(self, status: ClusterStatus) -> None:
        set_cluster_status(status)

    def emit_workload_summary(self, summary: WorkloadSummary) -> None:
        set_workload_counts(summary)

    def retain(self, names: Collection[str]) -> None:
        for name in remove_clusters(names):
            logger.info(f"Removed metrics of departed cluster {name}")


class SnapshotStore:
    """
    Latest snapshot per cluster.

    Entries are replaced on every tick. A cluster whose collection fails
    keeps its last snapshot, whose collected_at shows its age; a cluster
    that leaves the fleet is dropped by retain().
    """

    def __init__(self) -> None:
        self.statuses: dict[str, ClusterStatus] = {}
        self.workloads: dict[str, WorkloadSummary] = {}

    def emit_cluster_status(self, status: ClusterStatus) -> None:
        self.statuses[status.cluster_name] = status

    def emit_workload_summary(self, summary: WorkloadSummary) -> None:
        self.workloads[summary.cluster_name] = summary

    def cluster_names(self) -> list[str]:
        return sorted(self.statuses.keys() | self.workloads.keys())

    def get(self, name: str) -> tuple[ClusterStatus | None, WorkloadSummary | None]:
        return self.statuses.get(name), self.workloads.get(name)

    def retain(self, names: Collection[str]) -> None:
        for snapshots in (self.statuses, self.workloads):
            for name in [n for n in snapshots if n not in names]:
                del snapshots[name]


class MultiSink:
    """Forward every snapshot to each wrapped sink in order."""

    def __init__(self, sinks: Iterable[SnapshotSinkProtocol]) -> None:
        self.sinks = list(sinks)

    def emit_cluster_status(self, status: ClusterStatus) -> None:
        for sink in self.sinks:
            sink.emit_cluster_status(status)

    def emit_workload_summary(self, summary: WorkloadSummary) -> None:
        for sink in self.sinks:
            sink.emit_workload_summary(summary)

    def retain(self, names: Collection[str]) -> None:
        for sink in self.sinks:
            sink.retain(names)
