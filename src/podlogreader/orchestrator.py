"""Sequencing of one reconciliation pass for a single Pod event.

gate -> ReplicaSet -> Deployment -> Pod names -> synthesize -> Role
[-> ServiceAccount -> RoleBinding]

The pass runs synchronously and stops at the first error. Objects written
before the failing step keep their new state. Errors are logged and reported
in the returned ReconcileOutcome, never raised to the event source.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from podlogreader.errors import PodLogReaderError
from podlogreader.tracing import ATTR_DEPLOYMENT, get_tracer, reconcile_span

if TYPE_CHECKING:
    from kubernetes.client import V1Pod
    from opentelemetry import trace

    from podlogreader.discovery import PodSetDiscoverer
    from podlogreader.gate import LabelGate
    from podlogreader.ownership import OwnershipResolver
    from podlogreader.policy import PolicySynthesizer
    from podlogreader.reconciler import ReconcileResult, ResourceReconciler

logger = structlog.get_logger(__name__)


class PassStatus(enum.Enum):
    """Terminal state of a reconciliation pass."""

    SKIPPED = "skipped"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ReconcileOutcome:
    """What a single pass did.

    Attributes:
        pod: Name of the triggering Pod.
        namespace: Namespace of the triggering Pod.
        status: Terminal state of the pass.
        deployment: Owning Deployment name, once resolved.
        pod_names: Pod names discovered in this pass.
        results: Per-object reconcile results, in write order.
        error: The error that ended the pass, if any.
    """

    pod: str
    namespace: str
    status: PassStatus = PassStatus.SKIPPED
    deployment: str | None = None
    pod_names: list[str] = field(default_factory=list)
    results: list[ReconcileResult] = field(default_factory=list)
    error: PodLogReaderError | None = None

    @property
    def writes(self) -> int:
        return len(self.results)


class ReconcileOrchestrator:
    """Runs the reconciliation pipeline for one Pod at a time.

    Attributes:
        gate: Label gate admitting Pods.
        resolver: Ownership chain resolver.
        discoverer: Pod set discoverer.
        synthesizer: Desired policy synthesizer.
        reconciler: Resource reconciler.
        create_sa_and_rolebinding: Also reconcile ServiceAccount and RoleBinding.

    Example:
        >>> orchestrator = ReconcileOrchestrator(
        ...     gate, resolver, discoverer, synthesizer, reconciler,
        ...     create_sa_and_rolebinding=True,
        ... )
        >>> outcome = orchestrator.reconcile(pod)
        >>> outcome.status
        <PassStatus.COMPLETED: 'completed'>
    """

    def __init__(
        self,
        gate: LabelGate,
        resolver: OwnershipResolver,
        discoverer: PodSetDiscoverer,
        synthesizer: PolicySynthesizer,
        reconciler: ResourceReconciler,
        *,
        create_sa_and_rolebinding: bool = False,
        tracer: trace.Tracer | None = None,
    ) -> None:
        self.gate = gate
        self.resolver = resolver
        self.discoverer = discoverer
        self.synthesizer = synthesizer
        self.reconciler = reconciler
        self.create_sa_and_rolebinding = create_sa_and_rolebinding
        self._tracer = tracer or get_tracer()

    def reconcile(self, pod: V1Pod) -> ReconcileOutcome:
        """Run one pass for the given Pod.

        Args:
            pod: Post-event state of the Pod.

        Returns:
            ReconcileOutcome describing what was written and how the pass ended.
        """
        outcome = ReconcileOutcome(pod=pod.metadata.name, namespace=pod.metadata.namespace)

        if not self.gate.in_scope(pod):
            return outcome

        log = logger.bind(pod=outcome.pod, namespace=outcome.namespace)
        log.info(
            "orchestrator.pod_in_scope",
            label_key=self.gate.label_key,
            label_value=self.gate.label_value,
        )

        try:
            with reconcile_span(
                self._tracer,
                "reconcile_pod",
                namespace=outcome.namespace,
                pod=outcome.pod,
            ) as span:
                self._run(pod, outcome, log, span)
                span.set_attribute("podlogreader.writes", outcome.writes)
        except PodLogReaderError as e:
            outcome.status = PassStatus.FAILED
            outcome.error = e
            log.error(
                "orchestrator.pass_failed",
                error=e.message,
                error_type=type(e).__name__,
                deployment=outcome.deployment,
                writes=outcome.writes,
            )
            return outcome

        outcome.status = PassStatus.COMPLETED
        log.info(
            "orchestrator.pass_completed",
            deployment=outcome.deployment,
            writes=outcome.writes,
        )
        return outcome

    def _run(
        self,
        pod: V1Pod,
        outcome: ReconcileOutcome,
        log: structlog.typing.FilteringBoundLogger,
        span: trace.Span,
    ) -> None:
        replica_set = self.resolver.resolve_replica_set(pod)
        log.info("orchestrator.replica_set_found", replica_set=replica_set.metadata.name)

        deployment = self.resolver.resolve_deployment(replica_set)
        outcome.deployment = deployment.metadata.name
        span.set_attribute(ATTR_DEPLOYMENT, outcome.deployment)
        log = log.bind(deployment=outcome.deployment)
        log.info("orchestrator.deployment_found")

        # A failed listing ends the pass; a partial name list is never written.
        outcome.pod_names = self.discoverer.discover_pod_names(deployment)
        log.info("orchestrator.pod_names_found", pod_names=outcome.pod_names)

        policy = self.synthesizer.synthesize(
            outcome.deployment,
            deployment.metadata.namespace,
            outcome.pod_names,
        )

        result = self.reconciler.reconcile_role(policy.role)
        outcome.results.append(result)
        log.info(
            f"orchestrator.role_{result.action}",
            role=result.name,
            resource_names=policy.role.pod_names,
        )

        if not self.create_sa_and_rolebinding:
            return

        result = self.reconciler.reconcile_service_account(policy.service_account)
        outcome.results.append(result)
        log.info(f"orchestrator.service_account_{result.action}", service_account=result.name)

        result = self.reconciler.reconcile_role_binding(policy.role_binding)
        outcome.results.append(result)
        log.info(
            f"orchestrator.role_binding_{result.action}",
            role_binding=result.name,
            role=policy.role_binding.role_name,
            service_account=policy.service_account.name,
        )


__all__ = ["PassStatus", "ReconcileOrchestrator", "ReconcileOutcome"]
