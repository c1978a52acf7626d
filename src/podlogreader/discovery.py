"""Discovery of the Pods currently selected by a Deployment."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from podlogreader.client import API_ERRORS, error_reason, error_status
from podlogreader.config import DEFAULT_POD_LIST_LIMIT
from podlogreader.errors import LookupFailureError

if TYPE_CHECKING:
    from kubernetes.client import V1Deployment, V1LabelSelector, V1LabelSelectorRequirement

logger = structlog.get_logger(__name__)


def selector_from_match_labels(match_labels: dict[str, str] | None) -> str:
    """Render a matchLabels mapping as a label selector string.

    Keys are sorted so the same mapping always yields the same selector.

    Example:
        >>> selector_from_match_labels({"tier": "web", "app": "shop"})
        'app=shop,tier=web'
    """
    if not match_labels:
        return ""
    return ",".join(f"{key}={match_labels[key]}" for key in sorted(match_labels))


def _render_requirement(requirement: V1LabelSelectorRequirement) -> str:
    key = requirement.key
    operator = requirement.operator
    if operator == "Exists":
        return key
    if operator == "DoesNotExist":
        return f"!{key}"
    if operator in {"In", "NotIn"}:
        values = ",".join(sorted(requirement.values or []))
        return f"{key} {operator.lower()} ({values})"
    msg = f"unsupported selector operator '{operator}' for key '{key}'"
    raise ValueError(msg)


def selector_from_label_selector(selector: V1LabelSelector | None) -> str:
    """Render matchLabels and matchExpressions as one label selector string.

    Example:
        >>> selector_from_label_selector(
        ...     V1LabelSelector(
        ...         match_labels={"app": "shop"},
        ...         match_expressions=[
        ...             V1LabelSelectorRequirement(key="tier", operator="In", values=["web", "api"]),
        ...         ],
        ...     )
        ... )
        'app=shop,tier in (api,web)'

    Raises:
        ValueError: If an expression uses an operator other than In, NotIn,
            Exists or DoesNotExist.
    """
    if selector is None:
        return ""
    parts = [selector_from_match_labels(selector.match_labels)]
    parts.extend(_render_requirement(req) for req in selector.match_expressions or [])
    return ",".join(part for part in parts if part)


class PodSetDiscoverer:
    """Lists the member Pods of a Deployment by its label selector.

    Only the first page of ``page_limit`` Pods is read unless ``paginate`` is
    set. A truncated first page is reported through a ``discovery.truncated``
    warning.

    Attributes:
        core_api: A ``CoreV1Api`` (or compatible) client.
        page_limit: Page size of each list request.
        paginate: Whether to follow continue tokens.
    """

    def __init__(
        self,
        core_api: Any,
        *,
        page_limit: int = DEFAULT_POD_LIST_LIMIT,
        paginate: bool = False,
    ) -> None:
        self.core_api = core_api
        self.page_limit = page_limit
        self.paginate = paginate

    def discover_pod_names(self, deployment: V1Deployment) -> list[str]:
        """Return the names of the Pods matching the Deployment's selector.

        Args:
            deployment: Deployment returned by the ownership resolver.

        Returns:
            Pod names in API server order. May be empty.

        Raises:
            LookupFailureError: If the selector is empty or unsupported, or if
                listing Pods fails.
        """
        namespace = deployment.metadata.namespace
        selector = deployment.spec.selector if deployment.spec else None
        try:
            label_selector = selector_from_label_selector(selector)
        except ValueError as e:
            raise LookupFailureError(
                "Deployment",
                deployment.metadata.name,
                namespace=namespace,
                reason=str(e),
            ) from e
        # An empty selector would list every Pod in the namespace.
        if not label_selector:
            raise LookupFailureError(
                "Deployment",
                deployment.metadata.name,
                namespace=namespace,
                reason="empty Pod selector",
            )

        names: list[str] = []
        continue_token: str | None = None
        while True:
            kwargs: dict[str, Any] = {
                "namespace": namespace,
                "label_selector": label_selector,
                "limit": self.page_limit,
            }
            if continue_token:
                kwargs["_continue"] = continue_token

            try:
                pod_list = self.core_api.list_namespaced_pod(**kwargs)
            except API_ERRORS as e:
                raise LookupFailureError(
                    "Pod",
                    label_selector,
                    namespace=namespace,
                    status=error_status(e),
                    reason=error_reason(e),
                ) from e

            names.extend(pod.metadata.name for pod in pod_list.items)

            list_meta = getattr(pod_list, "metadata", None)
            continue_token = getattr(list_meta, "_continue", None) if list_meta else None
            if not continue_token:
                break
            if not self.paginate:
                logger.warning(
                    "discovery.truncated",
                    deployment=deployment.metadata.name,
                    namespace=namespace,
                    page_limit=self.page_limit,
                    returned=len(names),
                )
                break

        return names


__all__ = ["PodSetDiscoverer", "selector_from_label_selector", "selector_from_match_labels"]
