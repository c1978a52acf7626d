"""Unit tests for typed Pod events and PodEventHandler."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from structlog.testing import capture_logs

from podlogreader.errors import InvalidEventError
from podlogreader.events import PodCreated, PodDeleted, PodUpdated, ensure_pod
from podlogreader.handler import PodEventHandler


class TestEvents:
    """Tests for event construction and validation."""

    @pytest.mark.requirement("EVT-001")
    @pytest.mark.parametrize("payload", [None, {"kind": "Pod"}, "p1"])
    def test_non_pod_payload_is_rejected(self, payload) -> None:
        """Test events refuse payloads that are not V1Pod."""
        with pytest.raises(InvalidEventError) as exc_info:
            PodCreated(payload)

        assert exc_info.value.received_type == type(payload).__name__
        assert isinstance(exc_info.value, TypeError)

    @pytest.mark.requirement("EVT-001")
    def test_update_checks_both_sides(self, make_pod) -> None:
        """Test PodUpdated validates the old state when one is given."""
        with pytest.raises(InvalidEventError):
            PodUpdated("stale", make_pod("p1"))

    def test_current_is_post_event_state(self, make_pod) -> None:
        """Test every variant exposes the post-event Pod as current."""
        old = make_pod("p1", resource_version="1")
        new = make_pod("p1", resource_version="2")

        assert PodCreated(new).current is new
        assert PodDeleted(old).current is old
        assert PodUpdated(old, new).current is new
        assert PodUpdated(None, new).current is new

    def test_ensure_pod_returns_input(self, make_pod) -> None:
        pod = make_pod("p1")

        assert ensure_pod(pod) is pod


class TestPodEventHandler:
    """Tests for dispatch from handler callbacks to the orchestrator."""

    @pytest.fixture
    def orchestrator(self) -> MagicMock:
        orchestrator = MagicMock()
        orchestrator.create_sa_and_rolebinding = True
        return orchestrator

    @pytest.mark.requirement("EVT-002")
    def test_each_callback_runs_one_pass(self, orchestrator, make_pod) -> None:
        """Test created, deleted and updated each run exactly one pass."""
        handler = PodEventHandler(orchestrator)
        old = make_pod("p1", resource_version="1")
        new = make_pod("p1", resource_version="2")

        handler.object_created(new)
        handler.object_deleted(old)
        handler.object_updated(old, new)

        assert [c.args[0] for c in orchestrator.reconcile.call_args_list] == [new, old, new]

    def test_handle_returns_outcome(self, orchestrator, make_pod) -> None:
        """Test the orchestrator outcome is passed back to the caller."""
        handler = PodEventHandler(orchestrator)

        outcome = handler.handle(PodCreated(make_pod("p1")))

        assert outcome is orchestrator.reconcile.return_value

    def test_invalid_payload_never_reaches_orchestrator(self, orchestrator) -> None:
        """Test a non-Pod payload raises before any pass starts."""
        handler = PodEventHandler(orchestrator)

        with pytest.raises(InvalidEventError):
            handler.object_created(object())

        orchestrator.reconcile.assert_not_called()

    def test_init_logs_flag(self, orchestrator) -> None:
        """Test init logs the ServiceAccount/RoleBinding setting."""
        with capture_logs() as logs:
            PodEventHandler(orchestrator).init()

        assert logs[0]["event"] == "handler.init"
        assert logs[0]["create_sa_and_rolebinding"] is True

    def test_handler_drives_real_pass(self, scenario, orchestrator_factory) -> None:
        """Test an update event grants access through the full pipeline."""
        handler = PodEventHandler(orchestrator_factory())
        pod = scenario.pods[0]

        outcome = handler.object_updated(None, pod)

        assert outcome.pod_names == ["p1", "p2"]
        assert scenario.writes == [("create", "Role", "podlogreader-d1")]
