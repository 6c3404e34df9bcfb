"""Event filter for the admission controller."""

from clustermanager.accept.events import ClusterEvent, EventType

_ENQUEUED_TYPES = frozenset({EventType.ADDED, EventType.MODIFIED})


def needs_acceptance(event: ClusterEvent) -> bool:
    """
    True for created or updated clusters the hub does not accept yet.

    Deletions never enqueue; an accepted cluster has nothing left to do.
    """
    return event.type in _ENQUEUED_TYPES and not event.cluster.accepted
