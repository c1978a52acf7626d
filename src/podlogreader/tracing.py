"""OpenTelemetry tracing helpers for reconciliation passes.

Without a configured tracer provider the OpenTelemetry API hands out a no-op
tracer, so spans cost nothing unless the process installs an SDK.

Example:
    >>> from podlogreader.tracing import get_tracer, reconcile_span
    >>> tracer = get_tracer()
    >>> with reconcile_span(tracer, "reconcile_pod", namespace="shop", pod="web-1"):
    ...     pass
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

if TYPE_CHECKING:
    from collections.abc import Iterator

TRACER_NAME = "podlogreader"

ATTR_OPERATION = "podlogreader.operation"
ATTR_NAMESPACE = "k8s.namespace.name"
ATTR_POD = "k8s.pod.name"
ATTR_DEPLOYMENT = "k8s.deployment.name"


def get_tracer() -> trace.Tracer:
    """Get the OpenTelemetry tracer for podlogreader operations.

    Returns:
        OpenTelemetry Tracer instance (no-op if no provider is configured).
    """
    return trace.get_tracer(TRACER_NAME)


@contextmanager
def reconcile_span(
    tracer: trace.Tracer,
    operation: str,
    *,
    namespace: str | None = None,
    pod: str | None = None,
    deployment: str | None = None,
    extra_attributes: dict[str, Any] | None = None,
) -> Iterator[trace.Span]:
    """Context manager for creating reconciliation spans.

    The span status is set to OK on normal exit and to ERROR when an
    exception propagates, in which case the exception is re-raised.

    Args:
        tracer: OpenTelemetry tracer instance.
        operation: Operation name (e.g., "reconcile_pod").
        namespace: Kubernetes namespace of the Pod.
        pod: Pod name.
        deployment: Owning Deployment name, when already known.
        extra_attributes: Additional span attributes.

    Yields:
        The active span for adding custom attributes.
    """
    attributes: dict[str, Any] = {ATTR_OPERATION: operation}

    if namespace is not None:
        attributes[ATTR_NAMESPACE] = namespace
    if pod is not None:
        attributes[ATTR_POD] = pod
    if deployment is not None:
        attributes[ATTR_DEPLOYMENT] = deployment
    if extra_attributes:
        attributes.update(extra_attributes)

    with tracer.start_as_current_span(f"podlogreader.{operation}", attributes=attributes) as span:
        try:
            yield span
            span.set_status(Status(StatusCode.OK))
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, type(e).__name__))
            span.set_attribute("exception.type", type(e).__name__)
            span.set_attribute("exception.message", str(e))
            raise


__all__ = [
    "ATTR_DEPLOYMENT",
    "ATTR_NAMESPACE",
    "ATTR_OPERATION",
    "ATTR_POD",
    "TRACER_NAME",
    "get_tracer",
    "reconcile_span",
]
