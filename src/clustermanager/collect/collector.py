"""
Telemetry collector for a single member cluster.

TelemetryCollector runs the two halves of one cluster's collection,
status then workloads, and hands the results to a sink. A failed status
collection does not prevent the workload half from running.
"""

import logging
from collections.abc import Collection

from clustermanager.collect.cluster import collect_cluster_status
from clustermanager.collect.workload import DEFAULT_SHOW_LABEL_KEY, collect_workload_summary
from clustermanager.exceptions import CollectionError
from clustermanager.protocols import MemberClusterProxyProtocol, SnapshotSinkProtocol
from clustermanager.types import ClusterStatus, WorkloadSummary

logger = logging.getLogger(__name__)


class TelemetryCollector:
    """
    Collects and emits the snapshots of one member cluster per call.

    Example:
        collector = TelemetryCollector(sink=LogSink())
        await collector.collect(proxy)
    """

    def __init__(
        self, sink: SnapshotSinkProtocol, show_label_key: str = DEFAULT_SHOW_LABEL_KEY
    ) -> None:
        self.sink = sink
        self.show_label_key = show_label_key

    async def collect(
        self, client: MemberClusterProxyProtocol
    ) -> tuple[ClusterStatus | None, WorkloadSummary]:
        """
        Collect status and workloads of one cluster and emit them.

        Returns:
            (status, summary); status is None when its collection failed.

        Raises:
            CollectionError: After the workload summary was emitted, if the
                status collection failed.
        """
        status: ClusterStatus | None = None
        error: CollectionError | None = None
        try:
            status = await collect_cluster_status(client)
        except CollectionError as e:
            error = e
        else:
            self.sink.emit_cluster_status(status)

        summary = await collect_workload_summary(client, self.show_label_key)
        self.sink.emit_workload_summary(summary)

        if error is not None:
            raise error
        logger.debug(f"Collected cluster {client.name}")
        return status, summary

    def retain(self, names: Collection[str]) -> None:
        """Drop the snapshots of clusters that are no longer in the fleet."""
        self.sink.retain(names)
