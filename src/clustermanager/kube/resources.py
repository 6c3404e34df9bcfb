"""
Resource kinds known to the REST client.

A ResourceKind ties an API group/version/plural to the pydantic model
used to decode it, and builds request paths. All lists in this project
are cluster-wide, so namespaced kinds are listed across all namespaces.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

from clustermanager.kube.models import (
    CertificateSigningRequest,
    DaemonSet,
    Deployment,
    KubeObject,
    ManagedCluster,
    Node,
    Pod,
    StatefulSet,
)

T = TypeVar("T", bound=KubeObject)


@dataclass(frozen=True)
class ResourceKind(Generic[T]):
    """
    Description of one API resource.

    Attributes:
        kind: Object kind (e.g., "Node")
        group: API group, empty for the core group
        version: API version (e.g., "v1")
        plural: Resource name in URLs (e.g., "nodes")
        model: Pydantic model decoding one object
        namespaced: Whether objects live in namespaces
    """

    kind: str
    group: str
    version: str
    plural: str
    model: type[T]
    namespaced: bool = False

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    def path(
        self,
        name: str | None = None,
        namespace: str | None = None,
        subresource: str | None = None,
    ) -> str:
        """
        Build the request path for a collection, an object or a subresource.

        Example:
            CERTIFICATE_SIGNING_REQUESTS.path("csr-1", subresource="approval")
            # "/apis/certificates.k8s.io/v1/certificatesigningrequests/csr-1/approval"
        """
        base = f"/apis/{self.group}/{self.version}" if self.group else f"/api/{self.version}"
        if self.namespaced and namespace:
            base = f"{base}/namespaces/{namespace}"
        path = f"{base}/{self.plural}"
        if name:
            path = f"{path}/{name}"
            if subresource:
                path = f"{path}/{subresource}"
        return path


NODES = ResourceKind("Node", "", "v1", "nodes", Node)
PODS = ResourceKind("Pod", "", "v1", "pods", Pod, namespaced=True)
DEPLOYMENTS = ResourceKind("Deployment", "apps", "v1", "deployments", Deployment, namespaced=True)
STATEFULSETS = ResourceKind(
    "StatefulSet", "apps", "v1", "statefulsets", StatefulSet, namespaced=True
)
DAEMONSETS = ResourceKind("DaemonSet", "apps", "v1", "daemonsets", DaemonSet, namespaced=True)
CERTIFICATE_SIGNING_REQUESTS = ResourceKind(
    "CertificateSigningRequest",
    "certificates.k8s.io",
    "v1",
    "certificatesigningrequests",
    CertificateSigningRequest,
)
MANAGED_CLUSTERS = ResourceKind(
    "ManagedCluster",
    "cluster.open-cluster-management.io",
    "v1",
    "managedclusters",
    ManagedCluster,
)
