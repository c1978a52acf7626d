"""Desired RBAC objects granting log access to the Pods of one Deployment.

The synthesizer is pure: the same Deployment name, namespace and Pod names
always produce equal models and equal manifests. All three objects of a
Deployment share the name ``<prefix>-<deploymentName>``.

Example:
    >>> synthesizer = PolicySynthesizer()
    >>> policy = synthesizer.synthesize("web", "shop", ["web-1", "web-2"])
    >>> policy.role.name
    'podlogreader-web'
    >>> policy.role.to_k8s_manifest()["rules"][1]["resourceNames"]
    ['web-1', 'web-2']
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from podlogreader.config import DEFAULT_PREFIX

RBAC_API_GROUP = "rbac.authorization.k8s.io"
RBAC_API_VERSION = f"{RBAC_API_GROUP}/v1"

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"


def _default_labels() -> dict[str, str]:
    return {MANAGED_BY_LABEL: DEFAULT_PREFIX}


class PolicyRule(BaseModel):
    """A single rule of a namespaced Role.

    Attributes:
        api_groups: API groups the rule applies to ([""] for core).
        resources: Resource types (e.g. ["pods/log"]).
        verbs: Allowed operations.
        resource_names: Restrict the rule to these object names.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    api_groups: list[str] = Field(default_factory=lambda: [""])
    resources: list[str] = Field(..., min_length=1)
    verbs: list[str] = Field(..., min_length=1)
    resource_names: list[str] | None = Field(default=None)

    def to_k8s_dict(self) -> dict[str, Any]:
        rule: dict[str, Any] = {
            "apiGroups": list(self.api_groups),
            "resources": list(self.resources),
            "verbs": list(self.verbs),
        }
        if self.resource_names is not None:
            rule["resourceNames"] = list(self.resource_names)
        return rule


class DesiredRole(BaseModel):
    """Role letting its subjects list Pods and read the logs of named Pods."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    namespace: str = Field(..., min_length=1)
    rules: list[PolicyRule] = Field(..., min_length=1)
    labels: dict[str, str] = Field(default_factory=_default_labels)

    @property
    def pod_names(self) -> list[str]:
        """Pod names the ``pods/log`` rule is restricted to."""
        for rule in self.rules:
            if "pods/log" in rule.resources:
                return list(rule.resource_names or [])
        return []

    def to_k8s_manifest(self) -> dict[str, Any]:
        """Convert to a K8s Role manifest dict."""
        return {
            "apiVersion": RBAC_API_VERSION,
            "kind": "Role",
            "metadata": {
                "name": self.name,
                "namespace": self.namespace,
                "labels": dict(self.labels),
            },
            "rules": [rule.to_k8s_dict() for rule in self.rules],
        }


class DesiredServiceAccount(BaseModel):
    """ServiceAccount identity for the external log reader."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    namespace: str = Field(..., min_length=1)
    labels: dict[str, str] = Field(default_factory=_default_labels)

    def to_k8s_manifest(self) -> dict[str, Any]:
        """Convert to a K8s ServiceAccount manifest dict."""
        return {
            "apiVersion": "v1",
            "kind": "ServiceAccount",
            "metadata": {
                "name": self.name,
                "namespace": self.namespace,
                "labels": dict(self.labels),
            },
        }


class RoleBindingSubject(BaseModel):
    """ServiceAccount subject of a RoleBinding."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["ServiceAccount"] = "ServiceAccount"
    name: str
    namespace: str


class DesiredRoleBinding(BaseModel):
    """RoleBinding granting the Role to the ServiceAccount."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    namespace: str = Field(..., min_length=1)
    role_name: str = Field(..., min_length=1)
    subjects: list[RoleBindingSubject] = Field(..., min_length=1)
    labels: dict[str, str] = Field(default_factory=_default_labels)

    def to_k8s_manifest(self) -> dict[str, Any]:
        """Convert to a K8s RoleBinding manifest dict."""
        return {
            "apiVersion": RBAC_API_VERSION,
            "kind": "RoleBinding",
            "metadata": {
                "name": self.name,
                "namespace": self.namespace,
                "labels": dict(self.labels),
            },
            "roleRef": {
                "apiGroup": RBAC_API_GROUP,
                "kind": "Role",
                "name": self.role_name,
            },
            "subjects": [
                {"kind": s.kind, "name": s.name, "namespace": s.namespace}
                for s in self.subjects
            ],
        }


class DesiredPolicy(BaseModel):
    """The three objects computed for one Deployment in one pass."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    role: DesiredRole
    service_account: DesiredServiceAccount
    role_binding: DesiredRoleBinding


class PolicySynthesizer:
    """Computes the desired RBAC objects for a Deployment.

    Attributes:
        name_prefix: Prefix of every synthesized name.
        labels: Labels stamped on every synthesized object.
    """

    def __init__(
        self,
        name_prefix: str = DEFAULT_PREFIX,
        labels: dict[str, str] | None = None,
    ) -> None:
        self.name_prefix = name_prefix
        self.labels = dict(labels) if labels is not None else {MANAGED_BY_LABEL: name_prefix}

    def resource_name(self, deployment_name: str) -> str:
        """Return the shared name of the Role, ServiceAccount and RoleBinding."""
        return f"{self.name_prefix}-{deployment_name}"

    def build_role(self, name: str, namespace: str, pod_names: list[str]) -> DesiredRole:
        return DesiredRole(
            name=name,
            namespace=namespace,
            rules=[
                PolicyRule(resources=["pods"], verbs=["list"]),
                PolicyRule(
                    resources=["pods/log"],
                    verbs=["get", "list", "watch"],
                    resource_names=list(pod_names),
                ),
            ],
            labels=self.labels,
        )

    def build_service_account(self, name: str, namespace: str) -> DesiredServiceAccount:
        return DesiredServiceAccount(name=name, namespace=namespace, labels=self.labels)

    def build_role_binding(
        self,
        name: str,
        namespace: str,
        *,
        role_name: str,
        service_account_name: str,
    ) -> DesiredRoleBinding:
        return DesiredRoleBinding(
            name=name,
            namespace=namespace,
            role_name=role_name,
            subjects=[RoleBindingSubject(name=service_account_name, namespace=namespace)],
            labels=self.labels,
        )

    def synthesize(
        self,
        deployment_name: str,
        namespace: str,
        pod_names: list[str],
    ) -> DesiredPolicy:
        """Compute Role, ServiceAccount and RoleBinding for one pass.

        Args:
            deployment_name: Name of the owning Deployment.
            namespace: Namespace of the Deployment.
            pod_names: Pod names discovered in this pass, in list order.

        Returns:
            DesiredPolicy whose three objects share one name.
        """
        name = self.resource_name(deployment_name)
        role = self.build_role(name, namespace, pod_names)
        service_account = self.build_service_account(name, namespace)
        role_binding = self.build_role_binding(
            name,
            namespace,
            role_name=role.name,
            service_account_name=service_account.name,
        )
        return DesiredPolicy(role=role, service_account=service_account, role_binding=role_binding)


__all__ = [
    "DesiredPolicy",
    "DesiredRole",
    "DesiredRoleBinding",
    "DesiredServiceAccount",
    "MANAGED_BY_LABEL",
    "PolicyRule",
    "PolicySynthesizer",
    "RBAC_API_GROUP",
    "RoleBindingSubject",
]
