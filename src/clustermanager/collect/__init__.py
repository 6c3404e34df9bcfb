"""
Fleet telemetry collection.

- collect_cluster_status: version, nodes, resources, network ranges, health
- collect_workload_summary: deployments, statefulsets, daemonsets
- TelemetryCollector: both halves for one cluster, emitted to a sink
- LogSink, MetricsSink, SnapshotStore, MultiSink: snapshot destinations
"""

from clustermanager.collect.cluster import collect_cluster_status
from clustermanager.collect.collector import TelemetryCollector
from clustermanager.collect.sink import LogSink, MetricsSink, MultiSink, SnapshotStore
from clustermanager.collect.workload import collect_workload_summary

__all__ = [
    "collect_cluster_status",
    "collect_workload_summary",
    "TelemetryCollector",
    "LogSink",
    "MetricsSink",
    "MultiSink",
    "SnapshotStore",
]
