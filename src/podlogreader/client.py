"""Kubernetes client construction.

Configuration is loaded in this order:
1. Explicit kubeconfig path from settings
2. In-cluster configuration
3. Default kubeconfig (~/.kube/config)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog
from kubernetes import client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from podlogreader.errors import ClusterUnavailableError

if TYPE_CHECKING:
    from podlogreader.config import PodLogReaderSettings

logger = structlog.get_logger(__name__)

# Raised by a single API call: HTTP errors reported by the server, and urllib3
# transport errors (refused connection, DNS failure, request timeout).
API_ERRORS = (ApiException, HTTPError)


def error_status(error: BaseException) -> int | None:
    """Return the HTTP status of an API call failure, None for transport errors."""
    if isinstance(error, ApiException):
        return error.status
    return None


def error_reason(error: BaseException) -> str:
    """Return the server reason of an API call failure, or the transport error text."""
    if isinstance(error, ApiException):
        return str(error.reason or "")
    return str(error)


@dataclass(frozen=True)
class KubeClients:
    """API groups used by the controller.

    ``watch`` is a CoreV1Api without the per-request timeout so long-lived
    watch streams are bounded only by the server-side watch timeout.
    """

    core: Any
    apps: Any
    rbac: Any
    watch: Any


def load_clients(settings: PodLogReaderSettings) -> KubeClients:
    """Load client configuration and build the API group clients.

    Args:
        settings: Controller settings (kubeconfig path, context, timeout).

    Returns:
        KubeClients for the core, apps and RBAC API groups.

    Raises:
        ClusterUnavailableError: If no configuration could be loaded.
    """
    try:
        if settings.kubeconfig_path:
            k8s_config.load_kube_config(
                config_file=settings.kubeconfig_path,
                context=settings.context,
            )
            logger.info(
                "client.kubeconfig_loaded",
                kubeconfig_path=settings.kubeconfig_path,
                context=settings.context,
            )
        else:
            try:
                k8s_config.load_incluster_config()
                logger.info("client.incluster_config_loaded")
            except k8s_config.ConfigException:
                k8s_config.load_kube_config(context=settings.context)
                logger.info("client.default_kubeconfig_loaded", context=settings.context)
    except Exception as e:
        logger.exception("client.config_load_failed")
        raise ClusterUnavailableError(reason=str(e)) from e

    base_client = client.ApiClient()
    api_client: Any = base_client
    if settings.request_timeout_seconds is not None:
        api_client = _TimeoutApiClient(base_client, settings.request_timeout_seconds)

    return KubeClients(
        core=client.CoreV1Api(api_client),
        apps=client.AppsV1Api(api_client),
        rbac=client.RbacAuthorizationV1Api(api_client),
        watch=client.CoreV1Api(base_client),
    )


class _TimeoutApiClient:
    """ApiClient proxy adding a default ``_request_timeout`` to every call."""

    def __init__(self, wrapped: Any, timeout: float) -> None:
        self._wrapped = wrapped
        self._timeout = timeout

    def call_api(self, *args: Any, **kwargs: Any) -> Any:
        if kwargs.get("_request_timeout") is None:
            kwargs["_request_timeout"] = self._timeout
        return self._wrapped.call_api(*args, **kwargs)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._wrapped, name)


__all__ = ["API_ERRORS", "KubeClients", "error_reason", "error_status", "load_clients"]
