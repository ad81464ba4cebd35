"""Kubernetes watch and reconciliation loop."""

import asyncio
import logging
from typing import Any, Callable, Optional

from kubernetes import watch as k8s_watch
from kubernetes.client.exceptions import ApiException
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from . import machines, machinesets
from .cluster import ClusterConnection
from .config import Settings
from .controller import ControlPlaneMachineSetReconciler
from .errors import ConflictError, TransientReadError
from .models import WatchEvent
from .workqueue import WorkQueue

logger = logging.getLogger(__name__)


class ResourceWatcher:
    """Watches machine sets, machines and control plane nodes for changes."""

    def __init__(self, cluster: ClusterConnection):
        """
        Initialize resource watcher.

        Args:
            cluster: Cluster connection
        """
        self.cluster = cluster
        self.core_v1 = cluster.core_v1
        self.custom_objects = cluster.custom_objects
        self._watches: dict[str, k8s_watch.Watch] = {}
        self._handlers: dict[str, list[Callable]] = {}
        self._stopped = False

    def register_handler(
        self,
        resource_type: str,
        handler: Callable[[WatchEvent], None],
    ) -> None:
        """
        Register a handler for watch events.

        Args:
            resource_type: Type of resource (controlplanemachineset, machine, node)
            handler: Callback function that takes WatchEvent
        """
        self._handlers.setdefault(resource_type, []).append(handler)

    def _emit_event(self, event: WatchEvent) -> None:
        """
        Emit a watch event to registered handlers.

        Args:
            event: Watch event to emit
        """
        for handler in self._handlers.get(event.resource_type, []):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in watch event handler: {e}", exc_info=True)

    def _stream(
        self,
        resource_type: str,
        list_func: Callable,
        *args: Any,
        timeout_seconds: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        """
        Stream events from ``list_func`` until stopped.

        A stream closed by the server is resumed from the last seen resource
        version; an expired one (410) starts over with a fresh list.
        """
        if timeout_seconds is not None:
            kwargs["timeout_seconds"] = timeout_seconds

        logger.info(f"Starting watch on {resource_type}s")
        while not self._stopped:
            stream_watch = self._watches.get(resource_type)
            if stream_watch is None:
                stream_watch = self._watches[resource_type] = k8s_watch.Watch()
            try:
                for event in stream_watch.stream(list_func, *args, **kwargs):
                    obj = event["object"]
                    if not isinstance(obj, dict):
                        obj = self.cluster.api_client.sanitize_for_serialization(obj)
                    metadata = obj.get("metadata") or {}
                    self._emit_event(
                        WatchEvent(
                            event_type=event["type"],
                            resource_type=resource_type,
                            name=metadata.get("name", ""),
                            namespace=metadata.get("namespace"),
                            object=obj,
                        )
                    )
                if not self._stopped:
                    logger.debug(f"Watch on {resource_type}s closed, resuming")
            except ApiException as e:
                if e.status == 410:  # Resource version too old
                    logger.warning(f"Watch on {resource_type}s expired, restarting...")
                    self._watches.pop(resource_type, None)
                    continue
                logger.error(f"Error watching {resource_type}s: {e}", exc_info=True)
                raise

    def watch_machine_sets(self, namespace: str, timeout_seconds: Optional[int] = None) -> None:
        self._stream(
            "controlplanemachineset",
            self.custom_objects.list_namespaced_custom_object,
            machinesets.GROUP,
            machinesets.VERSION,
            namespace,
            machinesets.PLURAL,
            timeout_seconds=timeout_seconds,
        )

    def watch_machines(self, namespace: str, timeout_seconds: Optional[int] = None) -> None:
        self._stream(
            "machine",
            self.custom_objects.list_namespaced_custom_object,
            machines.GROUP,
            machines.VERSION,
            namespace,
            machines.PLURAL,
            timeout_seconds=timeout_seconds,
        )

    def watch_nodes(self, label_selector: str, timeout_seconds: Optional[int] = None) -> None:
        self._stream(
            "node",
            self.core_v1.list_node,
            label_selector=label_selector,
            timeout_seconds=timeout_seconds,
        )

    def stop(self) -> None:
        """Stop all active watches."""
        self._stopped = True
        for stream_watch in list(self._watches.values()):
            stream_watch.stop()


class ReconciliationLoop:
    """
    Drives reconciliation of the ControlPlaneMachineSet.

    Implements the standard Kubernetes operator pattern:
    1. Watch the set, its machines and the control plane nodes
    2. Queue the set on every event and on a periodic resync
    3. Reconcile queued keys with a bounded pool of workers
    """

    def __init__(
        self,
        cluster: ClusterConnection,
        settings: Settings,
        reconciler: Optional[ControlPlaneMachineSetReconciler] = None,
        watcher: Optional[ResourceWatcher] = None,
    ):
        """
        Initialize reconciliation loop.

        Args:
            cluster: Cluster connection
            settings: Controller settings
            reconciler: Reconciler to run, built from the cluster when None
            watcher: Resource watcher, built from the cluster when None
        """
        self.cluster = cluster
        self.settings = settings
        self.reconciler = reconciler or ControlPlaneMachineSetReconciler(cluster, settings)
        self.watcher = watcher or ResourceWatcher(cluster)
        self.queue = WorkQueue()
        self._key = (settings.namespace, settings.machine_set_name)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._running = False
        self._tasks: list[asyncio.Task] = []

    def _handle_event(self, event: WatchEvent) -> None:
        """
        Queue the machine set for a watch event.

        Called from watch threads.

        Args:
            event: Watch event
        """
        if not self._running or self._loop is None:
            return

        logger.debug(
            f"Received {event.event_type} event for {event.resource_type} "
            f"{event.namespace}/{event.name}"
        )
        self._loop.call_soon_threadsafe(self.queue.add, self._key)

    async def reconcile_with_retry(self, key: tuple[str, str]) -> None:
        """
        Reconcile a key, re-running the whole pass on conflicts and read failures.

        Args:
            key: (namespace, name) of the machine set
        """
        namespace, name = key
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type((ConflictError, TransientReadError)),
            wait=wait_exponential(
                multiplier=1,
                min=self.settings.retry_min_wait_seconds,
                max=self.settings.retry_max_wait_seconds,
            ),
            stop=stop_after_attempt(self.settings.retry_max_attempts),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(
                        f"Retrying reconciliation of {namespace}/{name} "
                        f"(attempt {attempt.retry_state.attempt_number})"
                    )
                await asyncio.to_thread(self.reconciler.reconcile, name, namespace)

    async def _worker(self) -> None:
        """Reconcile keys from the queue until cancelled."""
        while self._running:
            key = await self.queue.get()
            try:
                await self.reconcile_with_retry(key)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error reconciling {key[0]}/{key[1]}: {e}", exc_info=True)
            finally:
                self.queue.done(key)

    async def _periodic_resync(self) -> None:
        """Queue the machine set at a fixed interval."""
        while self._running:
            await asyncio.sleep(self.settings.resync_interval_seconds)
            logger.debug("Running periodic resync")
            self.queue.add(self._key)

    async def start(self) -> None:
        """Start watches, workers and the periodic resync."""
        if self._running:
            logger.warning("Reconciliation loop already running")
            return

        self._running = True
        self._loop = asyncio.get_running_loop()

        logger.info(
            f"Starting reconciliation loop for {self._key[0]}/{self._key[1]} "
            f"with {self.settings.max_concurrent_reconciles} worker(s)"
        )

        for resource_type in ("controlplanemachineset", "machine", "node"):
            self.watcher.register_handler(resource_type, self._handle_event)

        watches = [
            (self.watcher.watch_machine_sets, self.settings.namespace),
            (self.watcher.watch_machines, self.settings.namespace),
            (self.watcher.watch_nodes, self.settings.control_plane_node_label),
        ]
        for watch_method, argument in watches:
            self._tasks.append(asyncio.create_task(asyncio.to_thread(watch_method, argument)))

        for _ in range(self.settings.max_concurrent_reconciles):
            self._tasks.append(asyncio.create_task(self._worker()))

        self._tasks.append(asyncio.create_task(self._periodic_resync()))

        # Level-triggered: reconcile once on startup regardless of events.
        self.queue.add(self._key)

    async def stop(self) -> None:
        """Stop the reconciliation loop."""
        logger.info("Stopping reconciliation loop")
        self._running = False
        self.watcher.stop()

        for task in self._tasks:
            task.cancel()

        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
