"""Shared fakes and object builders for cluster manager tests."""

from collections.abc import Mapping
from typing import Any

import pytest

from clustermanager.exceptions import KubeAPIError
from clustermanager.kube.models import (
    CertificateSigningRequest,
    DaemonSet,
    Deployment,
    ManagedCluster,
    Node,
    Pod,
    StatefulSet,
    VersionInfo,
)
from clustermanager.kube.resources import (
    CERTIFICATE_SIGNING_REQUESTS,
    DAEMONSETS,
    DEPLOYMENTS,
    MANAGED_CLUSTERS,
    NODES,
    PODS,
    STATEFULSETS,
    ResourceKind,
)

CLUSTER_LABEL = "open-cluster-management.io/cluster-name"


# =============================================================================
# Object builders
# =============================================================================


def make_cluster(name: str, accepted: bool = False) -> ManagedCluster:
    return ManagedCluster.model_validate(
        {
            "apiVersion": "cluster.open-cluster-management.io/v1",
            "kind": "ManagedCluster",
            "metadata": {"name": name, "resourceVersion": "1"},
            "spec": {"hubAcceptsClient": accepted, "leaseDurationSeconds": 60},
        }
    )


def make_csr(name: str, cluster: str, state: str = "pending") -> CertificateSigningRequest:
    conditions = []
    if state == "approved":
        conditions.append({"type": "Approved", "status": "True", "reason": "Manual"})
    elif state == "denied":
        conditions.append({"type": "Denied", "status": "True", "reason": "Manual"})
    return CertificateSigningRequest.model_validate(
        {
            "metadata": {"name": name, "labels": {CLUSTER_LABEL: cluster}},
            "spec": {"request": "LS0t", "signerName": "kubernetes.io/kube-apiserver-client"},
            "status": {"conditions": conditions},
        }
    )


def make_node(
    name: str,
    ready: str | None = "True",
    cpu: str = "4",
    memory: str = "8Gi",
    allocatable_cpu: str | None = None,
    allocatable_memory: str | None = None,
    pod_cidr: str = "",
) -> Node:
    conditions = [{"type": "MemoryPressure", "status": "False"}]
    if ready is not None:
        conditions.append({"type": "Ready", "status": ready})
    return Node.model_validate(
        {
            "metadata": {"name": name},
            "spec": {"podCIDR": pod_cidr},
            "status": {
                "conditions": conditions,
                "capacity": {"cpu": cpu, "memory": memory, "pods": "110"},
                "allocatable": {
                    "cpu": allocatable_cpu or cpu,
                    "memory": allocatable_memory or memory,
                    "pods": "110",
                },
            },
        }
    )


def make_pod(
    component: str,
    command: list[str] | None = None,
    args: list[str] | None = None,
    phase: str = "Running",
    name: str | None = None,
) -> Pod:
    return Pod.model_validate(
        {
            "metadata": {
                "name": name or f"{component}-master",
                "namespace": "kube-system",
                "labels": {"component": component},
            },
            "spec": {
                "containers": [
                    {"name": component, "command": command or [], "args": args or []}
                ]
            },
            "status": {"phase": phase},
        }
    )


def make_template(*containers: tuple[dict[str, str], dict[str, str]]) -> dict[str, Any]:
    return {
        "spec": {
            "containers": [
                {"name": f"c{i}", "resources": {"requests": requests, "limits": limits}}
                for i, (requests, limits) in enumerate(containers)
            ]
        }
    }


def make_deployment(name: str, namespace: str = "default", app: str | None = None, **status: int) -> Deployment:
    labels = {"app": app} if app else {}
    return Deployment.model_validate(
        {
            "metadata": {"name": name, "namespace": namespace, "labels": labels},
            "spec": {
                "replicas": status.get("replicas", 1),
                "template": make_template(({"cpu": "100m", "memory": "128Mi"}, {"cpu": "200m"})),
            },
            "status": {
                "replicas": status.get("replicas", 1),
                "readyReplicas": status.get("ready", 1),
                "availableReplicas": status.get("available", 1),
                "unavailableReplicas": status.get("unavailable", 0),
            },
        }
    )


def make_statefulset(name: str, namespace: str = "default") -> StatefulSet:
    return StatefulSet.model_validate(
        {
            "metadata": {"name": name, "namespace": namespace, "labels": {"app": name}},
            "spec": {"template": make_template(({"cpu": "1", "memory": "1Gi"}, {}))},
            "status": {"replicas": 3, "readyReplicas": 2, "availableReplicas": 2},
        }
    )


def make_daemonset(name: str, namespace: str = "kube-system") -> DaemonSet:
    return DaemonSet.model_validate(
        {
            "metadata": {"name": name, "namespace": namespace},
            "spec": {"template": make_template(({"cpu": "50m"}, {"memory": "64Mi"}))},
            "status": {
                "desiredNumberScheduled": 3,
                "numberAvailable": 3,
                "numberUnavailable": 0,
            },
        }
    )


# =============================================================================
# Fakes
# =============================================================================


class FakeHub:
    """In-memory hub implementing FleetClientProtocol."""

    def __init__(self, clusters=(), csrs=()):
        self.clusters: dict[str, ManagedCluster] = {c.metadata.name: c for c in clusters}
        self.csrs: dict[str, CertificateSigningRequest] = {c.metadata.name: c for c in csrs}
        self.updates: list[tuple[str, Any]] = []
        self.approvals: list[CertificateSigningRequest] = []
        self.errors: dict[str, KubeAPIError] = {}

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.errors:
            raise self.errors[operation]

    async def get(self, kind: ResourceKind, name: str, namespace: str | None = None):
        self._maybe_fail("get")
        assert kind is MANAGED_CLUSTERS
        if name not in self.clusters:
            raise KubeAPIError("get", name, status_code=404)
        return self.clusters[name].model_copy(deep=True)

    async def list(
        self,
        kind: ResourceKind,
        label_selector: Mapping[str, str] | None = None,
        namespace: str | None = None,
    ):
        self._maybe_fail("list")
        if kind is MANAGED_CLUSTERS:
            return [c.model_copy(deep=True) for c in self.clusters.values()]
        assert kind is CERTIFICATE_SIGNING_REQUESTS
        selector = dict(label_selector or {})
        return [
            c.model_copy(deep=True)
            for c in self.csrs.values()
            if all(c.metadata.labels.get(k) == v for k, v in selector.items())
        ]

    async def update(self, kind: ResourceKind, obj):
        self._maybe_fail("update")
        self.updates.append((kind.kind, obj))
        self.clusters[obj.metadata.name] = obj.model_copy(deep=True)
        return obj

    async def update_subresource(self, kind: ResourceKind, obj, subresource: str):
        self._maybe_fail("approve")
        assert subresource == "approval"
        self.approvals.append(obj)
        self.csrs[obj.metadata.name] = obj.model_copy(deep=True)
        return obj


class FakeMemberCluster:
    """In-memory member cluster implementing MemberClusterProxyProtocol."""

    def __init__(
        self,
        name: str = "edge-1",
        nodes=(),
        pods=(),
        deployments=(),
        statefulsets=(),
        daemonsets=(),
        probes: dict[str, int] | None = None,
        version: VersionInfo | None = None,
    ):
        self.name = name
        self.objects: dict[str, list[Any]] = {
            NODES.plural: list(nodes),
            PODS.plural: list(pods),
            DEPLOYMENTS.plural: list(deployments),
            STATEFULSETS.plural: list(statefulsets),
            DAEMONSETS.plural: list(daemonsets),
        }
        self.probes = probes if probes is not None else {"/healthz": 200, "/livez": 200, "/readyz": 200}
        self.version = version or VersionInfo(git_version="v1.28.3", platform="linux/amd64")
        self.errors: dict[str, KubeAPIError] = {}
        self.calls: list[str] = []

    async def server_version(self) -> VersionInfo:
        self.calls.append("version")
        if "version" in self.errors:
            raise self.errors["version"]
        return self.version

    async def probe(self, path: str) -> int:
        self.calls.append(f"probe {path}")
        if path in self.errors:
            raise self.errors[path]
        return self.probes.get(path, 500)

    async def list(
        self,
        kind: ResourceKind,
        label_selector: Mapping[str, str] | None = None,
        namespace: str | None = None,
    ):
        self.calls.append(f"list {kind.plural}")
        if kind.plural in self.errors:
            raise self.errors[kind.plural]
        items = self.objects[kind.plural]
        if label_selector:
            items = [
                item
                for item in items
                if all(item.metadata.labels.get(k) == v for k, v in label_selector.items())
            ]
        return list(items)


class RecordingSink:
    """Sink collecting emitted snapshots."""

    def __init__(self):
        self.statuses = []
        self.summaries = []
        self.retained = []

    def emit_cluster_status(self, status) -> None:
        self.statuses.append(status)

    def emit_workload_summary(self, summary) -> None:
        self.summaries.append(summary)

    def retain(self, names) -> None:
        self.retained.append(set(names))


def api_error(operation: str = "list", status_code: int | None = 500) -> KubeAPIError:
    return KubeAPIError(operation, "test", status_code=status_code)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
