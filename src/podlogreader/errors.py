"""Custom exceptions for the podlogreader reconciliation pipeline.

Exception Hierarchy:
    PodLogReaderError (base)
    ├── OwnershipNotFoundError
    ├── LookupFailureError
    ├── WriteFailureError
    ├── ClusterUnavailableError (wraps ConnectionError)
    └── InvalidEventError (wraps TypeError)

Every error raised inside a reconciliation pass inherits from
PodLogReaderError so the orchestrator can terminate the pass with a single
except clause.

Example:
    >>> from podlogreader.errors import OwnershipNotFoundError
    >>> raise OwnershipNotFoundError("Pod", "web-7d9f-abcde", owner_kind="ReplicaSet", namespace="shop")
    OwnershipNotFoundError: Pod 'web-7d9f-abcde' in namespace 'shop' has no owner reference of kind 'ReplicaSet'
"""

from __future__ import annotations


class PodLogReaderError(Exception):
    """Base exception for all podlogreader errors.

    Attributes:
        message: Human-readable error message.
    """

    def __init__(self, message: str) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
        """
        self.message = message
        super().__init__(message)


class OwnershipNotFoundError(PodLogReaderError):
    """Raised when an object lacks the expected owner reference.

    A Pod without a ReplicaSet owner (bare Pods, StatefulSet or DaemonSet
    members) or a ReplicaSet without a Deployment owner ends the pass here.

    Attributes:
        kind: Kind of the object whose owner references were scanned.
        name: Name of that object.
        owner_kind: The owner kind that was expected.
        namespace: Namespace of the object.
    """

    def __init__(
        self,
        kind: str,
        name: str,
        *,
        owner_kind: str,
        namespace: str = "default",
    ) -> None:
        """Initialize the exception.

        Args:
            kind: Kind of the object whose owner references were scanned.
            name: Name of that object.
            owner_kind: The owner kind that was expected.
            namespace: Namespace of the object.
        """
        self.kind = kind
        self.name = name
        self.owner_kind = owner_kind
        self.namespace = namespace
        message = (
            f"{kind} '{name}' in namespace '{namespace}' has no owner reference "
            f"of kind '{owner_kind}'"
        )
        super().__init__(message)


class LookupFailureError(PodLogReaderError):
    """Raised when reading or listing an object from the API server fails.

    Attributes:
        kind: Kind of the object being read (e.g. "ReplicaSet", "Pod").
        name: Object name, or the label selector for list calls.
        namespace: Namespace of the lookup.
        status: HTTP status from the API server, if any.
        reason: Reason reported by the API server.
    """

    def __init__(
        self,
        kind: str,
        name: str,
        *,
        namespace: str = "default",
        status: int | None = None,
        reason: str = "",
    ) -> None:
        """Initialize the exception.

        Args:
            kind: Kind of the object being read.
            name: Object name or label selector.
            namespace: Namespace of the lookup.
            status: HTTP status from the API server.
            reason: Reason reported by the API server.
        """
        self.kind = kind
        self.name = name
        self.namespace = namespace
        self.status = status
        self.reason = reason
        message = f"Failed to read {kind} '{name}' in namespace '{namespace}'"
        if status is not None:
            message = f"{message} (status {status})"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class WriteFailureError(PodLogReaderError):
    """Raised when creating or replacing an RBAC object fails.

    Attributes:
        kind: Kind of the object being written.
        name: Object name.
        namespace: Namespace of the object.
        operation: "create" or "update".
        status: HTTP status from the API server, if any.
        reason: Reason reported by the API server.
    """

    def __init__(
        self,
        kind: str,
        name: str,
        *,
        operation: str,
        namespace: str = "default",
        status: int | None = None,
        reason: str = "",
    ) -> None:
        """Initialize the exception.

        Args:
            kind: Kind of the object being written.
            name: Object name.
            operation: "create" or "update".
            namespace: Namespace of the object.
            status: HTTP status from the API server.
            reason: Reason reported by the API server.
        """
        self.kind = kind
        self.name = name
        self.operation = operation
        self.namespace = namespace
        self.status = status
        self.reason = reason
        message = f"Failed to {operation} {kind} '{name}' in namespace '{namespace}'"
        if status is not None:
            message = f"{message} (status {status})"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ClusterUnavailableError(PodLogReaderError, ConnectionError):
    """Raised when no Kubernetes client configuration could be loaded.

    Attributes:
        reason: Additional context about the failure.
    """

    def __init__(self, *, reason: str = "") -> None:
        """Initialize the exception.

        Args:
            reason: Additional context about the failure.
        """
        self.reason = reason
        message = "Kubernetes API server unavailable"
        if reason:
            message = f"{message}: {reason}"
        PodLogReaderError.__init__(self, message)


class InvalidEventError(PodLogReaderError, TypeError):
    """Raised when the event source delivers something other than a Pod."""

    def __init__(self, received: object) -> None:
        self.received_type = type(received).__name__
        message = f"Expected a V1Pod event payload, got {self.received_type}"
        PodLogReaderError.__init__(self, message)


__all__ = [
    "ClusterUnavailableError",
    "InvalidEventError",
    "LookupFailureError",
    "OwnershipNotFoundError",
    "PodLogReaderError",
    "WriteFailureError",
]
