"""
Workload collection for one member cluster.

Deployments, statefulsets and daemonsets are listed independently across
all namespaces; a failed list is logged and leaves only its own section
empty. Each workload's resources are the requests and limits summed over
every container of its pod template, per resource category.
"""

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable
from typing import TypeVar

from clustermanager.exceptions import InvalidQuantityError, KubeAPIError
from clustermanager.kube.models import DaemonSet, Deployment, KubeObject, PodTemplateSpec, StatefulSet
from clustermanager.kube.resources import DAEMONSETS, DEPLOYMENTS, STATEFULSETS, ResourceKind
from clustermanager.protocols import MemberClusterProxyProtocol
from clustermanager.quantity import ResourceList, aggregate, parse_resource_list
from clustermanager.types import (
    DaemonSetInfo,
    DeploymentInfo,
    Resources,
    StatefulSetInfo,
    WorkloadInfo,
    WorkloadSummary,
)

logger = logging.getLogger(__name__)

DEFAULT_SHOW_LABEL_KEY = "app"

W = TypeVar("W", bound=WorkloadInfo)
K = TypeVar("K", bound=KubeObject)


def build_resources(template: PodTemplateSpec, owner: str = "") -> Resources:
    """
    Sum container requests and limits of a pod template.

    A container with a malformed quantity is skipped with a warning; the
    workload is still reported.
    """
    requests: list[ResourceList] = []
    limits: list[ResourceList] = []
    for container in template.spec.containers:
        try:
            container_requests = parse_resource_list(container.resources.requests)
            container_limits = parse_resource_list(container.resources.limits)
        except InvalidQuantityError as e:
            logger.warning(f"Skipping container {container.name} of {owner}: {e}")
            continue
        requests.append(container_requests)
        limits.append(container_limits)
    return Resources(requests=aggregate(requests), limits=aggregate(limits))


def build_deployment_info(deployment: Deployment, show_label_key: str = DEFAULT_SHOW_LABEL_KEY) -> DeploymentInfo:
    meta = deployment.metadata
    return DeploymentInfo(
        namespace=meta.namespace,
        name=meta.name,
        show_name=meta.labels.get(show_label_key, ""),
        resources=build_resources(deployment.spec.template, f"deployment {deployment.key}"),
        replicas=deployment.status.replicas,
        ready_replicas=deployment.status.ready_replicas,
        available_replicas=deployment.status.available_replicas,
        unavailable_replicas=deployment.status.unavailable_replicas,
    )


def build_statefulset_info(statefulset: StatefulSet, show_label_key: str = DEFAULT_SHOW_LABEL_KEY) -> StatefulSetInfo:
    meta = statefulset.metadata
    return StatefulSetInfo(
        namespace=meta.namespace,
        name=meta.name,
        show_name=meta.labels.get(show_label_key, ""),
        resources=build_resources(statefulset.spec.template, f"statefulset {statefulset.key}"),
        replicas=statefulset.status.replicas,
        ready_replicas=statefulset.status.ready_replicas,
        available_replicas=statefulset.status.available_replicas,
    )


def build_daemonset_info(daemonset: DaemonSet, show_label_key: str = DEFAULT_SHOW_LABEL_KEY) -> DaemonSetInfo:
    meta = daemonset.metadata
    return DaemonSetInfo(
        namespace=meta.namespace,
        name=meta.name,
        show_name=meta.labels.get(show_label_key, ""),
        resources=build_resources(daemonset.spec.template, f"daemonset {daemonset.key}"),
        desired_number_scheduled=daemonset.status.desired_number_scheduled,
        number_available=daemonset.status.number_available,
        number_unavailable=daemonset.status.number_unavailable,
        collision_count=daemonset.status.collision_count,
    )


def group_by_namespace(infos: Iterable[W]) -> dict[str, list[W]]:
    """Group workload records by namespace, keeping list order."""
    groups: dict[str, list[W]] = defaultdict(list)
    for info in infos:
        groups[info.namespace].append(info)
    return dict(groups)


async def _collect_section(
    client: MemberClusterProxyProtocol,
    kind: ResourceKind[K],
    build: Callable[[K, str], W],
    show_label_key: str,
) -> dict[str, list[W]]:
    try:
        objects = await client.list(kind)
    except KubeAPIError as e:
        logger.error(f"Failed to list {kind.plural} in cluster {client.name}: {e}")
        return {}
    return group_by_namespace(build(obj, show_label_key) for obj in objects)


async def collect_workload_summary(
    client: MemberClusterProxyProtocol, show_label_key: str = DEFAULT_SHOW_LABEL_KEY
) -> WorkloadSummary:
    """
    Collect deployments, statefulsets and daemonsets of one member cluster.

    Args:
        client: Proxy for the member cluster
        show_label_key: Label whose value becomes each record's show_name

    Returns:
        WorkloadSummary; sections whose list call failed are empty.
    """
    return WorkloadSummary(
        cluster_name=client.name,
        deployments=await _collect_section(client, DEPLOYMENTS, build_deployment_info, show_label_key),
        statefulsets=await _collect_section(client, STATEFULSETS, build_statefulset_info, show_label_key),
        daemonsets=await _collect_section(client, DAEMONSETS, build_daemonset_info, show_label_key),
    )
