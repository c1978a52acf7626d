"""Event handler bridging the event source and the reconcile orchestrator."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from podlogreader.events import PodCreated, PodDeleted, PodEvent, PodUpdated

if TYPE_CHECKING:
    from kubernetes.client import V1Pod

    from podlogreader.orchestrator import ReconcileOrchestrator, ReconcileOutcome

logger = structlog.get_logger(__name__)


class PodEventHandler:
    """Receives Pod lifecycle events and runs one pass per event.

    Created, deleted and updated events are all reconciled from the
    post-event Pod state. A deleted Pod is still present in the Pod list
    until the API server removes it, so the Role converges on the next event.

    Example:
        >>> handler = PodEventHandler(orchestrator)
        >>> handler.init()
        >>> handler.handle(PodCreated(pod))
    """

    def __init__(self, orchestrator: ReconcileOrchestrator) -> None:
        self.orchestrator = orchestrator

    def init(self) -> None:
        logger.info(
            "handler.init",
            create_sa_and_rolebinding=self.orchestrator.create_sa_and_rolebinding,
        )

    def object_created(self, pod: V1Pod) -> ReconcileOutcome:
        """Handle a Pod creation."""
        return self.handle(PodCreated(pod))

    def object_deleted(self, pod: V1Pod) -> ReconcileOutcome:
        """Handle a Pod deletion."""
        return self.handle(PodDeleted(pod))

    def object_updated(self, old_pod: V1Pod | None, new_pod: V1Pod) -> ReconcileOutcome:
        """Handle a Pod update, reconciling from the new state."""
        return self.handle(PodUpdated(old_pod, new_pod))

    def handle(self, event: PodEvent) -> ReconcileOutcome:
        """Dispatch a typed Pod event to the orchestrator."""
        pod = event.current
        logger.debug(
            "handler.event",
            event_type=type(event).__name__,
            pod=pod.metadata.name,
            namespace=pod.metadata.namespace,
        )
        return self.orchestrator.reconcile(pod)


__all__ = ["PodEventHandler"]
