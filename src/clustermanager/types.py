"""
Core types for admission and fleet telemetry.

This module defines the data structures shared across the project:
- ApprovalState: Tri-state status of an identity request (CSR)
- NodeStatistics: Ready/NotReady/Unknown/Lost node counts
- ClusterStatus: One tick's snapshot of a member cluster
- Resources: Requests and limits summed over a pod template
- DeploymentInfo, StatefulSetInfo, DaemonSetInfo: Workload records
- WorkloadSummary: Workload records grouped by namespace

Snapshots are plain dataclasses rebuilt on every tick; to_dict()
produces the JSON-ready shape emitted to logs and the status API.
"""

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from clustermanager.quantity import ResourceList, format_resource_list


class ApprovalState(str, Enum):
    """Approval status of a certificate signing request."""

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


@dataclass
class NodeStatistics:
    """
    Node counts by Ready condition.

    Attributes:
        ready_nodes: Ready=True
        not_ready_nodes: Ready=False
        unknown_nodes: Ready=Unknown
        lost_nodes: No Ready condition reported at all
    """

    ready_nodes: int = 0
    not_ready_nodes: int = 0
    unknown_nodes: int = 0
    lost_nodes: int = 0

    @property
    def total(self) -> int:
        return self.ready_nodes + self.not_ready_nodes + self.unknown_nodes + self.lost_nodes


@dataclass
class ClusterStatus:
    """
    Telemetry snapshot of one member cluster.

    Created fresh by the collector on every tick and emitted to the
    configured sinks. Never persisted.

    Attributes:
        cluster_name: Member cluster name
        kubernetes_version: Server git version (empty if unavailable)
        platform: Server platform string (empty if unavailable)
        healthz: GET /healthz returned 200
        livez: GET /livez returned 200
        readyz: GET /readyz returned 200
        cluster_cidr: Discovered pod network range (empty if undiscoverable)
        service_cidr: Discovered service network range (empty if undiscoverable)
        node_statistics: Node counts by Ready condition
        capacity: Summed node capacity (cpu, memory)
        allocatable: Summed node allocatable (cpu, memory)
        collected_at: When the snapshot was assembled
    """

    cluster_name: str
    kubernetes_version: str = ""
    platform: str = ""
    healthz: bool = False
    livez: bool = False
    readyz: bool = False
    cluster_cidr: str = ""
    service_cidr: str = ""
    node_statistics: NodeStatistics = field(default_factory=NodeStatistics)
    capacity: ResourceList = field(default_factory=dict)
    allocatable: ResourceList = field(default_factory=dict)
    collected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "cluster_name": self.cluster_name,
            "kubernetes_version": self.kubernetes_version,
            "platform": self.platform,
            "healthz": self.healthz,
            "livez": self.livez,
            "readyz": self.readyz,
            "cluster_cidr": self.cluster_cidr,
            "service_cidr": self.service_cidr,
            "node_statistics": asdict(self.node_statistics),
            "capacity": format_resource_list(self.capacity),
            "allocatable": format_resource_list(self.allocatable),
            "collected_at": self.collected_at.isoformat(),
        }


@dataclass
class Resources:
    """Requests and limits summed over all containers of a pod template."""

    requests: ResourceList = field(default_factory=dict)
    limits: ResourceList = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "requests": format_resource_list(self.requests),
            "limits": format_resource_list(self.limits),
        }


@dataclass
class WorkloadInfo:
    """
    Fields shared by every workload record.

    Attributes:
        namespace: Workload namespace
        name: Workload name
        show_name: Display name taken from the configured label (may be empty)
        resources: Template resource rollup
    """

    namespace: str
    name: str
    show_name: str = ""
    resources: Resources = field(default_factory=Resources)

    def to_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "resources"}
        data["resources"] = self.resources.to_dict()
        return data


@dataclass
class DeploymentInfo(WorkloadInfo):
    replicas: int = 0
    ready_replicas: int = 0
    available_replicas: int = 0
    unavailable_replicas: int = 0


@dataclass
class StatefulSetInfo(WorkloadInfo):
    replicas: int = 0
    ready_replicas: int = 0
    available_replicas: int = 0


@dataclass
class DaemonSetInfo(WorkloadInfo):
    desired_number_scheduled: int = 0
    number_available: int = 0
    number_unavailable: int = 0
    collision_count: int | None = None


@dataclass
class WorkloadSummary:
    """
    Per-namespace workload records for one member cluster.

    Each section is independent: a failed list leaves only its own
    section empty.
    """

    cluster_name: str
    deployments: dict[str, list[DeploymentInfo]] = field(default_factory=dict)
    statefulsets: dict[str, list[StatefulSetInfo]] = field(default_factory=dict)
    daemonsets: dict[str, list[DaemonSetInfo]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON serialization."""

        def _section(groups: dict[str, list[Any]]) -> dict[str, list[dict[str, Any]]]:
            return {ns: [item.to_dict() for item in items] for ns, items in groups.items()}

        return {
            "cluster_name": self.cluster_name,
            "deployments": _section(self.deployments),
            "statefulsets": _section(self.statefulsets),
            "daemonsets": _section(self.daemonsets),
        }
