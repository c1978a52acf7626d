"""Typed Pod lifecycle events delivered by the event source.

Each variant carries exactly the Pod value; payloads are checked when the
event is built so nothing downstream has to assert types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from kubernetes.client import V1Pod

from podlogreader.errors import InvalidEventError


def ensure_pod(obj: object) -> V1Pod:
    """Return ``obj`` if it is a V1Pod.

    Raises:
        InvalidEventError: If ``obj`` is not a V1Pod.
    """
    if not isinstance(obj, V1Pod):
        raise InvalidEventError(obj)
    return obj


@dataclass(frozen=True)
class PodCreated:
    pod: V1Pod

    def __post_init__(self) -> None:
        ensure_pod(self.pod)

    @property
    def current(self) -> V1Pod:
        return self.pod


@dataclass(frozen=True)
class PodDeleted:
    """Deletion event; ``pod`` is the last known state of the deleted Pod."""

    pod: V1Pod

    def __post_init__(self) -> None:
        ensure_pod(self.pod)

    @property
    def current(self) -> V1Pod:
        return self.pod


@dataclass(frozen=True)
class PodUpdated:
    old: V1Pod | None
    new: V1Pod

    def __post_init__(self) -> None:
        if self.old is not None:
            ensure_pod(self.old)
        ensure_pod(self.new)

    @property
    def current(self) -> V1Pod:
        return self.new


PodEvent = Union[PodCreated, PodDeleted, PodUpdated]

__all__ = ["PodCreated", "PodDeleted", "PodEvent", "PodUpdated", "ensure_pod"]
