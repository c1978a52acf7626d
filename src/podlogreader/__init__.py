"""podlogreader: least-privilege log access for the Pods of a Deployment.

Pods labelled ``podlogreader-affiliate: enable`` are traced back to their
Deployment, and a Role named ``podlogreader-<deployment>`` is kept in sync so
that it allows reading the logs of exactly that Deployment's current Pods.
Optionally a ServiceAccount and RoleBinding of the same name are managed too.

Example:
    >>> from podlogreader import PodLogReaderSettings, build_orchestrator
    >>> from podlogreader.client import load_clients
    >>> settings = PodLogReaderSettings(create_sa_and_rolebinding=True)
    >>> orchestrator = build_orchestrator(settings, load_clients(settings))
    >>> outcome = orchestrator.reconcile(pod)
"""

from __future__ import annotations

__version__ = "0.1.0"
__all__ = [
    "PodLogReaderSettings",
    "ReconcileOrchestrator",
    "build_orchestrator",
]


# Lazy imports to avoid circular dependencies and improve startup time
def __getattr__(name: str):
    """Lazy import of public components."""
    if name == "PodLogReaderSettings":
        from podlogreader.config import PodLogReaderSettings
        return PodLogReaderSettings
    if name == "ReconcileOrchestrator":
        from podlogreader.orchestrator import ReconcileOrchestrator
        return ReconcileOrchestrator
    if name == "build_orchestrator":
        from podlogreader.app import build_orchestrator
        return build_orchestrator
    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
