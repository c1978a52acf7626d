"""List-then-watch event source feeding Pod events to the handler.

The controller lists Pods to prime its cache and resource version, handing
every listed Pod to the handler, then streams watch events and turns them
into typed events:

    ADDED    -> PodCreated
    MODIFIED -> PodUpdated (old state taken from the cache)
    DELETED  -> PodDeleted

A 410 Gone re-lists and resumes. 401/403 stop the loop. Other errors back
off with jitter, capped at 30 seconds.
"""

from __future__ import annotations

import random
import threading
from typing import TYPE_CHECKING, Any

import structlog
from kubernetes import watch
from kubernetes.client.rest import ApiException

from podlogreader.errors import InvalidEventError
from podlogreader.events import PodCreated, PodDeleted, PodEvent, PodUpdated, ensure_pod

if TYPE_CHECKING:
    from kubernetes.client import V1Pod

    from podlogreader.handler import PodEventHandler

logger = structlog.get_logger(__name__)

MAX_BACKOFF_SECONDS = 30


def _pod_key(pod: V1Pod) -> tuple[str, str]:
    return pod.metadata.namespace, pod.metadata.name


class PodWatchController:
    """Streams Pod events from the API server into a PodEventHandler.

    Attributes:
        core_api: ``CoreV1Api`` client used for list and watch.
        handler: Handler receiving typed events.
        namespace: Namespace to watch, or None for all namespaces.
        watch_timeout_seconds: Server-side timeout of one watch stream.

    Example:
        >>> controller = PodWatchController(core_api, handler, namespace="shop")
        >>> controller.run()  # blocks until stop() is called
    """

    def __init__(
        self,
        core_api: Any,
        handler: PodEventHandler,
        *,
        namespace: str | None = None,
        watch_timeout_seconds: int = 300,
    ) -> None:
        self.core_api = core_api
        self.handler = handler
        self.namespace = namespace
        self.watch_timeout_seconds = watch_timeout_seconds
        self._known: dict[tuple[str, str], V1Pod] = {}
        self._stop = threading.Event()
        self._active_watcher: watch.Watch | None = None
        self._watcher_lock = threading.Lock()

    def stop(self) -> None:
        """Request a stop and interrupt the open watch stream, if any."""
        self._stop.set()
        with self._watcher_lock:
            active = self._active_watcher
        if active is not None:
            active.stop()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def _list_pods(self, **kwargs: Any) -> Any:
        if self.namespace:
            return self.core_api.list_namespaced_pod(namespace=self.namespace, **kwargs)
        return self.core_api.list_pod_for_all_namespaces(**kwargs)

    def _list_function(self) -> Any:
        if self.namespace:
            return self.core_api.list_namespaced_pod
        return self.core_api.list_pod_for_all_namespaces

    def _relist(self) -> str | None:
        """List Pods, replace the cache and return the list's resource version.

        Pods not seen before are delivered as PodCreated, known Pods as
        PodUpdated and cached Pods missing from the list as PodDeleted.
        """
        pod_list = self._list_pods()
        listed = {_pod_key(pod): pod for pod in pod_list.items}
        events: list[PodEvent] = []
        for key, pod in listed.items():
            old = self._known.get(key)
            events.append(PodCreated(pod) if old is None else PodUpdated(old, pod))
        events.extend(PodDeleted(pod) for key, pod in self._known.items() if key not in listed)
        self._known = listed
        resource_version = getattr(pod_list.metadata, "resource_version", None)
        logger.info(
            "controller.listed",
            namespace=self.namespace or "*",
            pods=len(self._known),
            resource_version=resource_version,
        )
        for event in events:
            self._deliver(event)
        return resource_version

    def to_event(self, event_type: str, obj: Any) -> PodEvent | None:
        """Convert a raw watch event into a typed PodEvent.

        Args:
            event_type: Watch event type (ADDED, MODIFIED, DELETED, ...).
            obj: Deserialized event object.

        Returns:
            The typed event, or None for event types that carry no Pod change.

        Raises:
            InvalidEventError: If the object is not a V1Pod.
        """
        if event_type not in {"ADDED", "MODIFIED", "DELETED"}:
            return None
        pod = ensure_pod(obj)
        key = _pod_key(pod)
        if event_type == "ADDED":
            self._known[key] = pod
            return PodCreated(pod)
        if event_type == "MODIFIED":
            old = self._known.get(key)
            self._known[key] = pod
            return PodUpdated(old, pod)
        self._known.pop(key, None)
        return PodDeleted(pod)

    def dispatch(self, event_type: str, obj: Any) -> None:
        """Convert and hand one raw watch event to the handler."""
        try:
            event = self.to_event(event_type, obj)
        except InvalidEventError as e:
            logger.warning("controller.invalid_event", event_type=event_type, error=e.message)
            return
        if event is None:
            return
        self._deliver(event)

    def _deliver(self, event: PodEvent) -> None:
        """Hand one event to the handler; a failing pass never stops the stream."""
        try:
            self.handler.handle(event)
        except Exception:
            pod = event.current
            logger.exception(
                "controller.handler_failed",
                event_type=type(event).__name__,
                pod=pod.metadata.name,
                namespace=pod.metadata.namespace,
            )

    def run(self) -> None:
        """Run the list-then-watch loop until stop() is called.

        Returns early when the API server rejects the controller's
        credentials (401/403).
        """
        resource_version: str | None = None
        backoff_seconds = 1

        while not self.stopped:
            if resource_version is None:
                try:
                    resource_version = self._relist()
                except ApiException as e:
                    if e.status in {401, 403}:
                        logger.error("controller.list_denied", status=e.status)
                        return
                    logger.exception("controller.list_failed", status=e.status)
                    backoff_seconds = self._backoff(backoff_seconds)
                    continue
                except Exception:
                    logger.exception("controller.list_error")
                    backoff_seconds = self._backoff(backoff_seconds)
                    continue

            watcher = watch.Watch()
            with self._watcher_lock:
                self._active_watcher = watcher
            try:
                stream = watcher.stream(
                    self._list_function(),
                    resource_version=resource_version,
                    timeout_seconds=self.watch_timeout_seconds,
                    **({"namespace": self.namespace} if self.namespace else {}),
                )
                for raw in stream:
                    if self.stopped:
                        break
                    obj = raw.get("object")
                    metadata = getattr(obj, "metadata", None)
                    if metadata is not None and getattr(metadata, "resource_version", None):
                        resource_version = metadata.resource_version
                    self.dispatch(str(raw.get("type", "")), obj)
                backoff_seconds = 1
            except ApiException as e:
                if e.status == 410:
                    logger.warning("controller.resource_version_expired")
                    resource_version = None
                    continue
                if e.status in {401, 403}:
                    logger.error("controller.watch_denied", status=e.status)
                    return
                logger.exception("controller.watch_failed", status=e.status)
                backoff_seconds = self._backoff(backoff_seconds)
            except Exception:
                logger.exception("controller.watch_error")
                backoff_seconds = self._backoff(backoff_seconds)
            finally:
                with self._watcher_lock:
                    self._active_watcher = None

        logger.info("controller.stopped")

    def _backoff(self, backoff_seconds: int) -> int:
        jittered = backoff_seconds * (0.5 + random.random())  # noqa: S311
        self._stop.wait(timeout=jittered)
        return min(backoff_seconds * 2, MAX_BACKOFF_SECONDS)


__all__ = ["PodWatchController"]
