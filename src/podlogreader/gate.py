"""Label gate deciding whether a Pod event is in scope."""

from __future__ import annotations

from typing import TYPE_CHECKING

from podlogreader.config import DEFAULT_LABEL_KEY, DEFAULT_LABEL_VALUE

if TYPE_CHECKING:
    from kubernetes.client import V1Pod


class LabelGate:
    """Admission filter for reconciliation passes.

    A Pod is in scope when its labels carry ``label_key`` with exactly
    ``label_value``. Everything downstream is skipped otherwise.

    Example:
        >>> gate = LabelGate()
        >>> gate.label_key
        'podlogreader-affiliate'
    """

    def __init__(
        self,
        label_key: str = DEFAULT_LABEL_KEY,
        label_value: str = DEFAULT_LABEL_VALUE,
    ) -> None:
        self.label_key = label_key
        self.label_value = label_value

    def in_scope(self, pod: V1Pod) -> bool:
        """Return True iff the Pod carries the opt-in label with the required value."""
        metadata = pod.metadata
        if metadata is None or not metadata.labels:
            return False
        return metadata.labels.get(self.label_key) == self.label_value


__all__ = ["LabelGate"]
