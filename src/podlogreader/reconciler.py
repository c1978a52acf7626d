"""Get-then-create-or-update reconciliation of the synthesized RBAC objects.

Every kind follows the same transition rule:

1. Read the object by name and namespace.
2. On 404, create the desired object and report ``created=True``.
3. Otherwise replace the stored object with the desired one and report
   ``created=False``. Stored and desired contents are never compared.
4. Any other failure is raised without retry.

Example:
    >>> reconciler = ResourceReconciler(client.CoreV1Api(), client.RbacAuthorizationV1Api())
    >>> result = reconciler.reconcile_role(policy.role)
    >>> result.created
    True
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from podlogreader.client import API_ERRORS, error_reason, error_status
from podlogreader.errors import LookupFailureError, WriteFailureError

if TYPE_CHECKING:
    from podlogreader.policy import DesiredRole, DesiredRoleBinding, DesiredServiceAccount

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of reconciling one object.

    Attributes:
        kind: Object kind ("Role", "ServiceAccount", "RoleBinding").
        name: Object name.
        namespace: Object namespace.
        created: True if the object was created, False if it was replaced.
        obj: The object returned by the API server.
    """

    kind: str
    name: str
    namespace: str
    created: bool
    obj: Any = None

    @property
    def action(self) -> str:
        return "created" if self.created else "updated"


class ResourceReconciler:
    """Applies desired RBAC objects against the API server.

    Attributes:
        core_api: ``CoreV1Api`` client, used for ServiceAccounts.
        rbac_api: ``RbacAuthorizationV1Api`` client, used for Roles and RoleBindings.
    """

    def __init__(self, core_api: Any, rbac_api: Any) -> None:
        self.core_api = core_api
        self.rbac_api = rbac_api

    def reconcile_role(self, desired: DesiredRole) -> ReconcileResult:
        """Create or replace the Role."""
        return self._create_or_update(
            "Role",
            desired.name,
            desired.namespace,
            desired.to_k8s_manifest(),
            read=self.rbac_api.read_namespaced_role,
            create=self.rbac_api.create_namespaced_role,
            replace=self.rbac_api.replace_namespaced_role,
        )

    def reconcile_service_account(self, desired: DesiredServiceAccount) -> ReconcileResult:
        """Create or replace the ServiceAccount."""
        return self._create_or_update(
            "ServiceAccount",
            desired.name,
            desired.namespace,
            desired.to_k8s_manifest(),
            read=self.core_api.read_namespaced_service_account,
            create=self.core_api.create_namespaced_service_account,
            replace=self.core_api.replace_namespaced_service_account,
        )

    def reconcile_role_binding(self, desired: DesiredRoleBinding) -> ReconcileResult:
        """Create or replace the RoleBinding."""
        return self._create_or_update(
            "RoleBinding",
            desired.name,
            desired.namespace,
            desired.to_k8s_manifest(),
            read=self.rbac_api.read_namespaced_role_binding,
            create=self.rbac_api.create_namespaced_role_binding,
            replace=self.rbac_api.replace_namespaced_role_binding,
        )

    def _create_or_update(
        self,
        kind: str,
        name: str,
        namespace: str,
        body: dict[str, Any],
        *,
        read: Callable[..., Any],
        create: Callable[..., Any],
        replace: Callable[..., Any],
    ) -> ReconcileResult:
        """Run the read -> create|replace transition for one object.

        Raises:
            LookupFailureError: If the read fails with anything but 404.
            WriteFailureError: If the create or replace call fails.
        """
        try:
            read(name=name, namespace=namespace)
        except API_ERRORS as e:
            if error_status(e) != 404:
                raise LookupFailureError(
                    kind,
                    name,
                    namespace=namespace,
                    status=error_status(e),
                    reason=error_reason(e),
                ) from e
            exists = False
        else:
            exists = True

        operation = "update" if exists else "create"
        try:
            if exists:
                stored = replace(name=name, namespace=namespace, body=body)
            else:
                stored = create(namespace=namespace, body=body)
        except API_ERRORS as e:
            raise WriteFailureError(
                kind,
                name,
                operation=operation,
                namespace=namespace,
                status=error_status(e),
                reason=error_reason(e),
            ) from e

        logger.debug(
            "reconciler.applied",
            kind=kind,
            name=name,
            namespace=namespace,
            operation=operation,
        )
        return ReconcileResult(
            kind=kind,
            name=name,
            namespace=namespace,
            created=not exists,
            obj=stored,
        )


__all__ = ["ReconcileResult", "ResourceReconciler"]
