"""Ownership chain resolution: Pod -> ReplicaSet -> Deployment.

Owner references are the only cross-object link available without a
cluster-wide index. Each hop takes the first reference of the wanted kind
and reads that object from the owner's namespace.

Example:
    >>> resolver = OwnershipResolver(client.AppsV1Api())
    >>> rs = resolver.resolve_replica_set(pod)
    >>> deploy = resolver.resolve_deployment(rs)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from podlogreader.client import API_ERRORS, error_reason, error_status
from podlogreader.errors import LookupFailureError, OwnershipNotFoundError

if TYPE_CHECKING:
    from kubernetes.client import V1Deployment, V1ObjectMeta, V1Pod, V1ReplicaSet

logger = structlog.get_logger(__name__)

KIND_POD = "Pod"
KIND_REPLICA_SET = "ReplicaSet"
KIND_DEPLOYMENT = "Deployment"


def find_owner_name(metadata: V1ObjectMeta | None, owner_kind: str) -> str | None:
    """Return the name of the first owner reference of ``owner_kind``.

    Args:
        metadata: Object metadata holding the owner references.
        owner_kind: Kind to look for (e.g. "ReplicaSet").

    Returns:
        The owner name, or None if no reference of that kind exists.
    """
    if metadata is None:
        return None
    for ref in metadata.owner_references or []:
        if ref.kind == owner_kind:
            return ref.name
    return None


class OwnershipResolver:
    """Climbs the ownership chain of a Pod through the apps/v1 API.

    Attributes:
        apps_api: An ``AppsV1Api`` (or compatible) client.
    """

    def __init__(self, apps_api: Any) -> None:
        self.apps_api = apps_api

    def resolve_replica_set(self, pod: V1Pod) -> V1ReplicaSet:
        """Fetch the ReplicaSet that owns the Pod.

        Args:
            pod: The Pod from the triggering event.

        Returns:
            The owning ReplicaSet as stored in the cluster.

        Raises:
            OwnershipNotFoundError: If the Pod has no ReplicaSet owner reference.
            LookupFailureError: If reading the ReplicaSet fails.
        """
        namespace = pod.metadata.namespace
        rs_name = find_owner_name(pod.metadata, KIND_REPLICA_SET)
        if rs_name is None:
            raise OwnershipNotFoundError(
                KIND_POD,
                pod.metadata.name,
                owner_kind=KIND_REPLICA_SET,
                namespace=namespace,
            )

        try:
            replica_set = self.apps_api.read_namespaced_replica_set(
                name=rs_name,
                namespace=namespace,
            )
        except API_ERRORS as e:
            raise LookupFailureError(
                KIND_REPLICA_SET,
                rs_name,
                namespace=namespace,
                status=error_status(e),
                reason=error_reason(e),
            ) from e

        logger.debug("ownership.replica_set_found", replica_set=rs_name, namespace=namespace)
        return replica_set

    def resolve_deployment(self, replica_set: V1ReplicaSet) -> V1Deployment:
        """Fetch the Deployment that owns the ReplicaSet.

        Args:
            replica_set: ReplicaSet returned by resolve_replica_set().

        Returns:
            The owning Deployment as stored in the cluster.

        Raises:
            OwnershipNotFoundError: If the ReplicaSet has no Deployment owner reference.
            LookupFailureError: If reading the Deployment fails.
        """
        namespace = replica_set.metadata.namespace
        deploy_name = find_owner_name(replica_set.metadata, KIND_DEPLOYMENT)
        if deploy_name is None:
            raise OwnershipNotFoundError(
                KIND_REPLICA_SET,
                replica_set.metadata.name,
                owner_kind=KIND_DEPLOYMENT,
                namespace=namespace,
            )

        try:
            deployment = self.apps_api.read_namespaced_deployment(
                name=deploy_name,
                namespace=namespace,
            )
        except API_ERRORS as e:
            raise LookupFailureError(
                KIND_DEPLOYMENT,
                deploy_name,
                namespace=namespace,
                status=error_status(e),
                reason=error_reason(e),
            ) from e

        logger.debug("ownership.deployment_found", deployment=deploy_name, namespace=namespace)
        return deployment


__all__ = [
    "KIND_DEPLOYMENT",
    "KIND_POD",
    "KIND_REPLICA_SET",
    "OwnershipResolver",
    "find_owner_name",
]
