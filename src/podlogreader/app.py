"""Wiring of settings and clients into a ready-to-run controller."""

from __future__ import annotations

from typing import TYPE_CHECKING

from podlogreader.discovery import PodSetDiscoverer
from podlogreader.gate import LabelGate
from podlogreader.handler import PodEventHandler
from podlogreader.orchestrator import ReconcileOrchestrator
from podlogreader.ownership import OwnershipResolver
from podlogreader.policy import PolicySynthesizer
from podlogreader.reconciler import ResourceReconciler

if TYPE_CHECKING:
    from podlogreader.client import KubeClients
    from podlogreader.config import PodLogReaderSettings


def build_orchestrator(
    settings: PodLogReaderSettings,
    clients: KubeClients,
) -> ReconcileOrchestrator:
    """Assemble the reconciliation pipeline from settings and API clients.

    Args:
        settings: Controller settings, read once here.
        clients: Kubernetes API clients.

    Returns:
        A ReconcileOrchestrator ready to process Pods.
    """
    return ReconcileOrchestrator(
        LabelGate(settings.label_key, settings.label_value),
        OwnershipResolver(clients.apps),
        PodSetDiscoverer(
            clients.core,
            page_limit=settings.pod_list_limit,
            paginate=settings.paginate_pods,
        ),
        PolicySynthesizer(settings.name_prefix),
        ResourceReconciler(clients.core, clients.rbac),
        create_sa_and_rolebinding=settings.create_sa_and_rolebinding,
    )


def build_handler(settings: PodLogReaderSettings, clients: KubeClients) -> PodEventHandler:
    """Build and initialize the Pod event handler."""
    handler = PodEventHandler(build_orchestrator(settings, clients))
    handler.init()
    return handler


__all__ = ["build_handler", "build_orchestrator"]
