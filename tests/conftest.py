"""Shared fixtures for podlogreader tests.

Fixtures:
    - cluster: in-memory stand-in for the API server (core, apps, RBAC)
    - make_pod / make_replica_set / make_deployment: real kubernetes models
    - scenario: Pod p1 -> ReplicaSet rs1 -> Deployment d1 selecting p1 and p2
    - orchestrator_factory: pipeline wired against the fake cluster
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any

import pytest
from kubernetes.client import (
    V1Deployment,
    V1DeploymentSpec,
    V1LabelSelector,
    V1LabelSelectorRequirement,
    V1ListMeta,
    V1ObjectMeta,
    V1OwnerReference,
    V1Pod,
    V1PodList,
    V1PodStatus,
    V1ReplicaSet,
)
from kubernetes.client.rest import ApiException

AFFILIATE_LABEL = {"podlogreader-affiliate": "enable"}


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "requirement(id): Mark test as covering a specific requirement",
    )


# =============================================================================
# Object builders
# =============================================================================


def owner_ref(kind: str, name: str) -> V1OwnerReference:
    api_version = "apps/v1" if kind in {"ReplicaSet", "Deployment"} else "v1"
    return V1OwnerReference(
        api_version=api_version,
        kind=kind,
        name=name,
        uid=f"uid-{name}",
        controller=True,
    )


def build_pod(
    name: str,
    namespace: str = "ns1",
    *,
    labels: dict[str, str] | None = None,
    owners: list[tuple[str, str]] | None = None,
    phase: str = "Running",
    resource_version: str = "1",
) -> V1Pod:
    return V1Pod(
        metadata=V1ObjectMeta(
            name=name,
            namespace=namespace,
            labels=labels,
            owner_references=[owner_ref(k, n) for k, n in owners] if owners else None,
            resource_version=resource_version,
        ),
        status=V1PodStatus(phase=phase),
    )


def build_replica_set(
    name: str,
    namespace: str = "ns1",
    *,
    owners: list[tuple[str, str]] | None = None,
) -> V1ReplicaSet:
    return V1ReplicaSet(
        metadata=V1ObjectMeta(
            name=name,
            namespace=namespace,
            owner_references=[owner_ref(k, n) for k, n in owners] if owners else None,
        ),
    )


def build_deployment(
    name: str,
    namespace: str = "ns1",
    *,
    match_labels: dict[str, str] | None = None,
    match_expressions: list[V1LabelSelectorRequirement] | None = None,
) -> V1Deployment:
    if match_labels is None and match_expressions is None:
        match_labels = {"app": name}
    return V1Deployment(
        metadata=V1ObjectMeta(name=name, namespace=namespace),
        spec=V1DeploymentSpec(
            selector=V1LabelSelector(
                match_labels=match_labels,
                match_expressions=match_expressions,
            ),
            template={},
        ),
    )


@pytest.fixture
def make_pod() -> Callable[..., V1Pod]:
    return build_pod


@pytest.fixture
def make_replica_set() -> Callable[..., V1ReplicaSet]:
    return build_replica_set


@pytest.fixture
def make_deployment() -> Callable[..., V1Deployment]:
    return build_deployment


# =============================================================================
# Fake API server
# =============================================================================


_SET_REQUIREMENT = re.compile(r"^(?P<key>\S+) (?P<op>in|notin) \((?P<values>[^)]*)\)$")


def _requirement_matches(have: dict[str, str], requirement: str) -> bool:
    set_match = _SET_REQUIREMENT.match(requirement)
    if set_match:
        values = set(set_match["values"].split(","))
        present = set_match["key"] in have and have[set_match["key"]] in values
        return present if set_match["op"] == "in" else not present
    if requirement.startswith("!"):
        return requirement[1:] not in have
    if "=" in requirement:
        key, value = requirement.split("=", 1)
        return have.get(key) == value
    return requirement in have


def _matches(labels: dict[str, str] | None, selector: str) -> bool:
    """Evaluate equality and set-based selectors, splitting on top-level commas."""
    if not selector:
        return True
    have = labels or {}
    requirements = re.split(r",(?![^()]*\))", selector)
    return all(_requirement_matches(have, requirement) for requirement in requirements)


class FakeCluster:
    """In-memory API server exposing the client methods podlogreader calls.

    Objects are kept per (kind, namespace, name). Every call is appended to
    ``calls`` as ``(verb, kind, name)`` so tests can assert ordering. Set
    ``failures[method_name]`` to an ``ApiException`` or a urllib3 error to make
    a method fail.
    """

    WRITE_VERBS = frozenset({"create", "replace"})

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str], Any] = {}
        self.pods: list[V1Pod] = []
        self.calls: list[tuple[str, str, str]] = []
        self.failures: dict[str, Exception] = {}

    # -- seeding ------------------------------------------------------------

    def add(self, kind: str, obj: Any) -> Any:
        if kind == "Pod":
            self.pods.append(obj)
        else:
            self.objects[(kind, obj.metadata.namespace, obj.metadata.name)] = obj
        return obj

    def stored(self, kind: str, namespace: str, name: str) -> Any:
        return self.objects.get((kind, namespace, name))

    @property
    def writes(self) -> list[tuple[str, str, str]]:
        return [call for call in self.calls if call[0] in self.WRITE_VERBS]

    # -- generic verbs ------------------------------------------------------

    def _check_failure(self, method: str) -> None:
        if method in self.failures:
            raise self.failures[method]

    def _read(self, method: str, kind: str, name: str, namespace: str) -> Any:
        self.calls.append(("read", kind, name))
        self._check_failure(method)
        key = (kind, namespace, name)
        if key not in self.objects:
            raise ApiException(status=404, reason="Not Found")
        return self.objects[key]

    def _create(self, method: str, kind: str, namespace: str, body: dict[str, Any]) -> Any:
        name = body["metadata"]["name"]
        self.calls.append(("create", kind, name))
        self._check_failure(method)
        key = (kind, namespace, name)
        if key in self.objects:
            raise ApiException(status=409, reason="AlreadyExists")
        self.objects[key] = body
        return body

    def _replace(
        self, method: str, kind: str, name: str, namespace: str, body: dict[str, Any]
    ) -> Any:
        self.calls.append(("replace", kind, name))
        self._check_failure(method)
        key = (kind, namespace, name)
        if key not in self.objects:
            raise ApiException(status=404, reason="Not Found")
        self.objects[key] = body
        return body

    # -- apps/v1 --------------------------------------------------------------

    def read_namespaced_replica_set(self, name: str, namespace: str) -> Any:
        return self._read("read_namespaced_replica_set", "ReplicaSet", name, namespace)

    def read_namespaced_deployment(self, name: str, namespace: str) -> Any:
        return self._read("read_namespaced_deployment", "Deployment", name, namespace)

    # -- core/v1 --------------------------------------------------------------

    def read_namespaced_pod(self, name: str, namespace: str) -> V1Pod:
        self.calls.append(("read", "Pod", name))
        self._check_failure("read_namespaced_pod")
        for pod in self.pods:
            if pod.metadata.namespace == namespace and pod.metadata.name == name:
                return pod
        raise ApiException(status=404, reason="Not Found")

    def list_namespaced_pod(
        self,
        namespace: str,
        label_selector: str = "",
        limit: int | None = None,
        _continue: str | None = None,
    ) -> V1PodList:
        self.calls.append(("list", "Pod", label_selector))
        self._check_failure("list_namespaced_pod")
        matching = [
            pod
            for pod in self.pods
            if pod.metadata.namespace == namespace and _matches(pod.metadata.labels, label_selector)
        ]
        start = int(_continue) if _continue else 0
        end = start + limit if limit else len(matching)
        next_token = str(end) if end < len(matching) else None
        return V1PodList(
            items=matching[start:end],
            metadata=V1ListMeta(_continue=next_token, resource_version="100"),
        )

    def read_namespaced_service_account(self, name: str, namespace: str) -> Any:
        return self._read("read_namespaced_service_account", "ServiceAccount", name, namespace)

    def create_namespaced_service_account(self, namespace: str, body: dict[str, Any]) -> Any:
        return self._create("create_namespaced_service_account", "ServiceAccount", namespace, body)

    def replace_namespaced_service_account(
        self, name: str, namespace: str, body: dict[str, Any]
    ) -> Any:
        return self._replace(
            "replace_namespaced_service_account", "ServiceAccount", name, namespace, body
        )

    # -- rbac.authorization.k8s.io/v1 ------------------------------------------

    def read_namespaced_role(self, name: str, namespace: str) -> Any:
        return self._read("read_namespaced_role", "Role", name, namespace)

    def create_namespaced_role(self, namespace: str, body: dict[str, Any]) -> Any:
        return self._create("create_namespaced_role", "Role", namespace, body)

    def replace_namespaced_role(self, name: str, namespace: str, body: dict[str, Any]) -> Any:
        return self._replace("replace_namespaced_role", "Role", name, namespace, body)

    def read_namespaced_role_binding(self, name: str, namespace: str) -> Any:
        return self._read("read_namespaced_role_binding", "RoleBinding", name, namespace)

    def create_namespaced_role_binding(self, namespace: str, body: dict[str, Any]) -> Any:
        return self._create("create_namespaced_role_binding", "RoleBinding", namespace, body)

    def replace_namespaced_role_binding(
        self, name: str, namespace: str, body: dict[str, Any]
    ) -> Any:
        return self._replace(
            "replace_namespaced_role_binding", "RoleBinding", name, namespace, body
        )


@pytest.fixture
def cluster() -> FakeCluster:
    """Create an empty fake cluster."""
    return FakeCluster()


@pytest.fixture
def scenario(cluster: FakeCluster) -> FakeCluster:
    """Seed the p1 -> rs1 -> d1 chain with d1 selecting p1 and p2 in ns1.

    Returns:
        The seeded cluster; the triggering Pod is ``cluster.pods[0]``.
    """
    selector = {"app": "d1"}
    cluster.add(
        "Pod",
        build_pod("p1", labels={**selector, **AFFILIATE_LABEL}, owners=[("ReplicaSet", "rs1")]),
    )
    cluster.add(
        "Pod",
        build_pod("p2", labels={**selector, **AFFILIATE_LABEL}, owners=[("ReplicaSet", "rs1")]),
    )
    cluster.add("Pod", build_pod("other", labels={"app": "other"}))
    cluster.add("ReplicaSet", build_replica_set("rs1", owners=[("Deployment", "d1")]))
    cluster.add("Deployment", build_deployment("d1", match_labels=selector))
    return cluster


@pytest.fixture
def orchestrator_factory(cluster: FakeCluster) -> Callable[..., Any]:
    """Build a ReconcileOrchestrator against the fake cluster."""
    from podlogreader.discovery import PodSetDiscoverer
    from podlogreader.gate import LabelGate
    from podlogreader.orchestrator import ReconcileOrchestrator
    from podlogreader.ownership import OwnershipResolver
    from podlogreader.policy import PolicySynthesizer
    from podlogreader.reconciler import ResourceReconciler

    def _build(*, create_sa_and_rolebinding: bool = False, **discovery: Any) -> Any:
        return ReconcileOrchestrator(
            LabelGate(),
            OwnershipResolver(cluster),
            PodSetDiscoverer(cluster, **discovery),
            PolicySynthesizer(),
            ResourceReconciler(cluster, cluster),
            create_sa_and_rolebinding=create_sa_and_rolebinding,
        )

    return _build
