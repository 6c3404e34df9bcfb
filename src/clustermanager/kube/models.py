"""
Pydantic models for the Kubernetes API objects this project reads and writes.

Only the fields the admission controller and the telemetry collector use
are declared. Every model allows extra fields so that objects read from
the API round-trip unchanged on update (PUT replaces the whole object).

Notes:
- JSON keys are camelCase; models use snake_case attributes with
  camelCase aliases (populate_by_name allows either on input)
- Quantities stay strings here; clustermanager.quantity parses them
- Condition status values are the strings "True", "False", "Unknown"
"""

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from clustermanager.types import ApprovalState


class KubeModel(BaseModel):
    """Base model: camelCase aliases, unknown fields preserved."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_api(self) -> dict[str, Any]:
        """Serialize for a request body using API field names."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# =============================================================================
# Metadata
# =============================================================================


class ObjectMeta(KubeModel):
    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    resource_version: str | None = None
    uid: str | None = None


class ListMeta(KubeModel):
    resource_version: str | None = None
    continue_: str | None = Field(default=None, alias="continue")


class KubeObject(KubeModel):
    """Fields common to every top-level object."""

    api_version: str | None = None
    kind: str | None = None
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)

    @property
    def key(self) -> str:
        """Queue/log key: "namespace/name" or "name" for cluster-scoped objects."""
        if self.metadata.namespace:
            return f"{self.metadata.namespace}/{self.metadata.name}"
        return self.metadata.name


T = TypeVar("T", bound=KubeObject)


class KubeList(KubeModel, Generic[T]):
    """Response of a list call (one page)."""

    metadata: ListMeta = Field(default_factory=ListMeta)
    items: list[T] = Field(default_factory=list)


# =============================================================================
# Version
# =============================================================================


class VersionInfo(KubeModel):
    """Response of GET /version."""

    major: str = ""
    minor: str = ""
    git_version: str = ""
    platform: str = ""


# =============================================================================
# Core: nodes and pods
# =============================================================================


class NodeCondition(KubeModel):
    type: str
    status: str
    reason: str | None = None
    message: str | None = None


class NodeSpec(KubeModel):
    # Not camel-cased by the generator
    pod_cidr: str = Field(default="", alias="podCIDR")
    unschedulable: bool = False


class NodeStatus(KubeModel):
    conditions: list[NodeCondition] = Field(default_factory=list)
    capacity: dict[str, str] = Field(default_factory=dict)
    allocatable: dict[str, str] = Field(default_factory=dict)


class Node(KubeObject):
    spec: NodeSpec = Field(default_factory=NodeSpec)
    status: NodeStatus = Field(default_factory=NodeStatus)

    def get_condition(self, condition_type: str) -> NodeCondition | None:
        """Return the condition of the given type, or None if absent."""
        for condition in self.status.conditions:
            if condition.type == condition_type:
                return condition
        return None


class ResourceRequirements(KubeModel):
    requests: dict[str, str] = Field(default_factory=dict)
    limits: dict[str, str] = Field(default_factory=dict)


class Container(KubeModel):
    name: str = ""
    image: str | None = None
    command: list[str] = Field(default_factory=list)
    args: list[str] = Field(default_factory=list)
    resources: ResourceRequirements = Field(default_factory=ResourceRequirements)


class PodSpec(KubeModel):
    containers: list[Container] = Field(default_factory=list)
    node_name: str | None = None


class PodStatus(KubeModel):
    phase: str = ""


class Pod(KubeObject):
    spec: PodSpec = Field(default_factory=PodSpec)
    status: PodStatus = Field(default_factory=PodStatus)


class PodTemplateSpec(KubeModel):
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PodSpec = Field(default_factory=PodSpec)


# =============================================================================
# Apps: deployments, statefulsets, daemonsets
# =============================================================================


class WorkloadSpec(KubeModel):
    """Spec fields shared by deployments, statefulsets and daemonsets."""

    replicas: int | None = None
    template: PodTemplateSpec = Field(default_factory=PodTemplateSpec)


class DeploymentStatus(KubeModel):
    replicas: int = 0
    ready_replicas: int = 0
    available_replicas: int = 0
    unavailable_replicas: int = 0


class Deployment(KubeObject):
    spec: WorkloadSpec = Field(default_factory=WorkloadSpec)
    status: DeploymentStatus = Field(default_factory=DeploymentStatus)


class StatefulSetStatus(KubeModel):
    replicas: int = 0
    ready_replicas: int = 0
    available_replicas: int = 0


class StatefulSet(KubeObject):
    spec: WorkloadSpec = Field(default_factory=WorkloadSpec)
    status: StatefulSetStatus = Field(default_factory=StatefulSetStatus)


class DaemonSetStatus(KubeModel):
    desired_number_scheduled: int = 0
    number_available: int = 0
    number_unavailable: int = 0
    collision_count: int | None = None


class DaemonSet(KubeObject):
    spec: WorkloadSpec = Field(default_factory=WorkloadSpec)
    status: DaemonSetStatus = Field(default_factory=DaemonSetStatus)


# =============================================================================
# Certificates: identity requests
# =============================================================================


class CSRCondition(KubeModel):
    type: str
    status: str = "True"
    reason: str | None = None
    message: str | None = None
    last_update_time: datetime | None = None


class CSRStatus(KubeModel):
    conditions: list[CSRCondition] = Field(default_factory=list)


class CertificateSigningRequest(KubeObject):
    """
    certificates.k8s.io/v1 CertificateSigningRequest.

    The spec (request, signerName, usages, ...) is kept opaque; only the
    status conditions matter to the admission controller.
    """

    spec: dict[str, Any] = Field(default_factory=dict)
    status: CSRStatus = Field(default_factory=CSRStatus)

    @property
    def approval_state(self) -> ApprovalState:
        """Derive the tri-state approval status from the conditions."""
        types = {c.type for c in self.status.conditions}
        if "Approved" in types:
            return ApprovalState.APPROVED
        if "Denied" in types:
            return ApprovalState.DENIED
        return ApprovalState.PENDING


# =============================================================================
# Open Cluster Management: member clusters
# =============================================================================


class ManagedClusterSpec(KubeModel):
    hub_accepts_client: bool = False


class ManagedCluster(KubeObject):
    """
    cluster.open-cluster-management.io/v1 ManagedCluster.

    Status and the rest of the spec are preserved as extra fields.
    """

    spec: ManagedClusterSpec = Field(default_factory=ManagedClusterSpec)

    @property
    def accepted(self) -> bool:
        return self.spec.hub_accepts_client


# =============================================================================
# Watch
# =============================================================================


class WatchEvent(KubeModel):
    """One line of a watch stream: {"type": "ADDED", "object": {...}}."""

    type: str
    object: dict[str, Any] = Field(default_factory=dict)
