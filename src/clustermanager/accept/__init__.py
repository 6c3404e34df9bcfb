"""
Automatic admission of member clusters.

- WatchEventSource: typed ManagedCluster events from list+watch
- needs_acceptance: event filter
- WorkQueue / RetryConfig: keyed queue with backoff
- AdmissionController: reconcile loop approving CSRs and accepting clusters
"""

from clustermanager.accept.controller import (
    AdmissionController,
    AdmissionOutcome,
    ReconcileResult,
)
from clustermanager.accept.events import ClusterEvent, EventType, WatchEventSource
from clustermanager.accept.predicate import needs_acceptance
from clustermanager.accept.queue import QueueShutdown, RetryConfig, WorkQueue

__all__ = [
    "AdmissionController",
    "AdmissionOutcome",
    "ReconcileResult",
    "ClusterEvent",
    "EventType",
    "WatchEventSource",
    "needs_acceptance",
    "QueueShutdown",
    "RetryConfig",
    "WorkQueue",
]
