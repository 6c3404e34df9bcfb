"""
Kubernetes API access for the cluster manager.

- KubeClient: typed get/list/update/watch over the REST API
- ClusterGatewayRegistry: member cluster clients via the cluster gateway
- ResourceKind constants for every kind the project touches
- Pydantic models for those kinds
"""

from clustermanager.kube.client import KubeClient, format_label_selector
from clustermanager.kube.gateway import ClusterGatewayRegistry, gateway_prefix
from clustermanager.kube.models import (
    CertificateSigningRequest,
    CSRCondition,
    DaemonSet,
    Deployment,
    ManagedCluster,
    Node,
    Pod,
    StatefulSet,
    VersionInfo,
    WatchEvent,
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

__all__ = [
    # Clients
    "KubeClient",
    "ClusterGatewayRegistry",
    "format_label_selector",
    "gateway_prefix",
    # Kinds
    "ResourceKind",
    "NODES",
    "PODS",
    "DEPLOYMENTS",
    "STATEFULSETS",
    "DAEMONSETS",
    "CERTIFICATE_SIGNING_REQUESTS",
    "MANAGED_CLUSTERS",
    # Models
    "CertificateSigningRequest",
    "CSRCondition",
    "DaemonSet",
    "Deployment",
    "ManagedCluster",
    "Node",
    "Pod",
    "StatefulSet",
    "VersionInfo",
    "WatchEvent",
]
