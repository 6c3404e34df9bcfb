"""
Exception classes for cluster manager operations.

This module defines the errors raised across the admission and
telemetry paths:
- KubeAPIError: A Kubernetes API call failed (transport or HTTP status)
- CollectionError: A member cluster's status could not be collected
- InvalidQuantityError: A resource quantity string could not be parsed

Per project patterns:
- Inherit from a common base exception type
- Store context data in attributes for error handling
- Include descriptive message with operation and target
"""


class ClusterManagerError(Exception):
    """Base class for all cluster manager errors."""


class KubeAPIError(ClusterManagerError):
    """
    Raised when a Kubernetes API call fails.

    Wraps both transport errors (connection refused, timeouts) and HTTP
    error responses so callers can log a single message that names the
    operation and the object it targeted.

    Attributes:
        operation: Short verb for the call (e.g., "get", "list", "update")
        target: Resource path or object key the call targeted
        status_code: HTTP status code, or None for transport errors
        cause: The underlying exception, if any
    """

    def __init__(
        self,
        operation: str,
        target: str,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.operation = operation
        self.target = target
        self.status_code = status_code
        self.cause = cause
        detail = f"HTTP {status_code}" if status_code is not None else repr(cause)
        super().__init__(f"{operation} {target} failed: {detail}")

    @property
    def not_found(self) -> bool:
        """True if the API answered 404 Not Found."""
        return self.status_code == 404

    @property
    def gone(self) -> bool:
        """True if the API answered 410 Gone (expired resource version)."""
        return self.status_code == 410


class CollectionError(ClusterManagerError):
    """
    Raised when a member cluster's status collection must be aborted.

    Only structurally required data (the node list) raises this; advisory
    fields degrade to empty values instead.

    Attributes:
        cluster: Name of the member cluster
        reason: Why the collection was aborted
    """

    def __init__(self, cluster: str, reason: str) -> None:
        self.cluster = cluster
        self.reason = reason
        super().__init__(f"Collecting status of cluster {cluster} failed: {reason}")


class InvalidQuantityError(ClusterManagerError, ValueError):
    """
    Raised when a resource quantity string is malformed.

    Attributes:
        value: The offending quantity string
    """

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Invalid resource quantity: {value!r}")
