"""Tests for the work queue and the reconciliation loop."""

import asyncio

import pytest
from unittest.mock import MagicMock
from kubernetes.client.exceptions import ApiException

from cpms_controller import (
    ConflictError,
    ControlPlaneMachineSetReconciler,
    ReconciliationLoop,
    ResourceWatcher,
    TransientReadError,
    WatchEvent,
)
from cpms_controller.controller import ReconcileResult
from cpms_controller.workqueue import WorkQueue

KEY = ("openshift-machine-api", "cluster")


class TestWorkQueue:
    """Per-key de-duplication and serialisation."""

    @pytest.mark.asyncio
    async def test_deduplicates(self):
        queue = WorkQueue()
        queue.add(KEY)
        queue.add(KEY)

        assert len(queue) == 1
        assert await queue.get() == KEY
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_add_while_processing_waits_for_done(self):
        """Test a key is never handed out twice at once."""
        queue = WorkQueue()
        queue.add(KEY)
        key = await queue.get()

        queue.add(KEY)
        assert len(queue) == 0

        queue.done(key)
        assert len(queue) == 1

    @pytest.mark.asyncio
    async def test_done_without_re_add(self):
        queue = WorkQueue()
        queue.add(KEY)
        queue.done(await queue.get())

        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_distinct_keys(self):
        queue = WorkQueue()
        queue.add(KEY)
        queue.add(("openshift-machine-api", "other"))

        assert len(queue) == 2


@pytest.fixture
def reconciler():
    return MagicMock(spec=ControlPlaneMachineSetReconciler)


@pytest.fixture
def loop(mock_cluster_connection, settings, reconciler):
    return ReconciliationLoop(
        mock_cluster_connection,
        settings,
        reconciler=reconciler,
        watcher=MagicMock(spec=ResourceWatcher),
    )


class TestReconcileWithRetry:
    """Retrying whole passes."""

    @pytest.mark.asyncio
    async def test_success(self, loop, reconciler):
        reconciler.reconcile.return_value = ReconcileResult()

        await loop.reconcile_with_retry(KEY)

        reconciler.reconcile.assert_called_once_with("cluster", "openshift-machine-api")

    @pytest.mark.asyncio
    async def test_retries_conflict(self, loop, reconciler):
        """Test a conflict re-runs the pass from the fetch."""
        reconciler.reconcile.side_effect = [
            ConflictError("cluster", "openshift-machine-api", "1000"),
            TransientReadError("nodes", RuntimeError("connection reset")),
            ReconcileResult(),
        ]

        await loop.reconcile_with_retry(KEY)

        assert reconciler.reconcile.call_count == 3

    @pytest.mark.asyncio
    async def test_gives_up(self, loop, reconciler, settings):
        reconciler.reconcile.side_effect = ConflictError("cluster", "openshift-machine-api", "1000")

        with pytest.raises(ConflictError):
            await loop.reconcile_with_retry(KEY)

        assert reconciler.reconcile.call_count == settings.retry_max_attempts

    @pytest.mark.asyncio
    async def test_other_errors_not_retried(self, loop, reconciler):
        reconciler.reconcile.side_effect = ValueError("boom")

        with pytest.raises(ValueError):
            await loop.reconcile_with_retry(KEY)

        assert reconciler.reconcile.call_count == 1


class TestReconciliationLoop:
    """Starting, queueing and stopping."""

    @staticmethod
    async def wait_for_calls(mock, count, timeout=2.0):
        deadline = asyncio.get_running_loop().time() + timeout
        while mock.call_count < count:
            if asyncio.get_running_loop().time() > deadline:
                raise AssertionError(f"expected {count} call(s), got {mock.call_count}")
            await asyncio.sleep(0.01)

    @pytest.mark.asyncio
    async def test_start_reconciles_once(self, loop, reconciler):
        """Test the set is reconciled on startup without any event."""
        reconciler.reconcile.return_value = ReconcileResult()

        await loop.start()
        try:
            await self.wait_for_calls(reconciler.reconcile, 1)
            assert loop.watcher.register_handler.call_count == 3
        finally:
            await loop.stop()

        loop.watcher.stop.assert_called_once()

    @pytest.mark.asyncio
    async def test_event_queues_set(self, loop, reconciler):
        """Test a watch event triggers another pass."""
        reconciler.reconcile.return_value = ReconcileResult()

        await loop.start()
        try:
            await self.wait_for_calls(reconciler.reconcile, 1)
            loop._handle_event(
                WatchEvent(
                    event_type="MODIFIED",
                    resource_type="machine",
                    name="cluster-master-0",
                    namespace="openshift-machine-api",
                    object={},
                )
            )
            await self.wait_for_calls(reconciler.reconcile, 2)
        finally:
            await loop.stop()

    @pytest.mark.asyncio
    async def test_worker_survives_failed_pass(self, loop, reconciler):
        """Test a pass that keeps failing does not stop the worker."""
        reconciler.reconcile.side_effect = ValueError("boom")

        await loop.start()
        try:
            await self.wait_for_calls(reconciler.reconcile, 1)
            loop.queue.add(KEY)
            await self.wait_for_calls(reconciler.reconcile, 2)
        finally:
            await loop.stop()

    def test_event_ignored_when_stopped(self, loop):
        loop._handle_event(
            WatchEvent(event_type="ADDED", resource_type="node", name="node-0", object={})
        )

        assert len(loop.queue) == 0


class TestResourceWatcher:
    """Dispatching watch events."""

    def test_emit_to_handlers(self, mock_cluster_connection):
        watcher = ResourceWatcher(mock_cluster_connection)
        handler = MagicMock()
        watcher.register_handler("machine", handler)
        event = WatchEvent(event_type="ADDED", resource_type="machine", name="m", object={})

        watcher._emit_event(event)
        watcher._emit_event(event.model_copy(update={"resource_type": "node"}))

        handler.assert_called_once_with(event)

    def test_handler_errors_contained(self, mock_cluster_connection):
        watcher = ResourceWatcher(mock_cluster_connection)
        failing = MagicMock(side_effect=RuntimeError("handler failed"))
        healthy = MagicMock()
        watcher.register_handler("node", failing)
        watcher.register_handler("node", healthy)

        watcher._emit_event(WatchEvent(event_type="ADDED", resource_type="node", name="n", object={}))

        healthy.assert_called_once()

    @pytest.fixture
    def watch_factory(self, monkeypatch):
        """Record watches created by the watcher instead of connecting."""
        created = []

        def build():
            stream_watch = MagicMock()
            created.append(stream_watch)
            return stream_watch

        monkeypatch.setattr("cpms_controller.watch.k8s_watch.Watch", build)
        return created

    def test_closed_stream_is_resumed(self, mock_cluster_connection, watch_factory):
        """Test a stream the server ends normally is listed again."""
        watcher = ResourceWatcher(mock_cluster_connection)
        handler = MagicMock()
        watcher.register_handler("node", handler)
        calls = []

        def stream(list_func, *args, **kwargs):
            calls.append(kwargs)
            if len(calls) == 2:
                watcher.stop()
            node = {"metadata": {"name": f"node-{len(calls)}"}}
            return iter([{"type": "MODIFIED", "object": node}])

        watcher._watches["node"] = MagicMock()
        watcher._watches["node"].stream.side_effect = stream

        watcher.watch_nodes("node-role.kubernetes.io/master")

        assert len(calls) == 2
        assert all("timeout_seconds" not in kwargs for kwargs in calls)
        assert [c.args[0].name for c in handler.call_args_list] == ["node-1", "node-2"]
        assert watch_factory == []

    def test_timeout_passed_when_set(self, mock_cluster_connection, watch_factory):
        watcher = ResourceWatcher(mock_cluster_connection)
        calls = []

        def stream(list_func, *args, **kwargs):
            calls.append(kwargs)
            watcher.stop()
            return iter([])

        watcher._watches["machine"] = MagicMock()
        watcher._watches["machine"].stream.side_effect = stream

        watcher.watch_machines("openshift-machine-api", timeout_seconds=30)

        assert calls == [{"timeout_seconds": 30}]

    def test_expired_stream_gets_fresh_watch(self, mock_cluster_connection, monkeypatch):
        """Test a 410 drops the watch and starts over with a new one."""
        watcher = ResourceWatcher(mock_cluster_connection)
        expired = MagicMock()
        expired.stream.side_effect = ApiException(status=410, reason="Gone")
        watcher._watches["machine"] = expired
        fresh = MagicMock()

        def relist(list_func, *args, **kwargs):
            watcher.stop()
            return iter([])

        fresh.stream.side_effect = relist
        monkeypatch.setattr("cpms_controller.watch.k8s_watch.Watch", MagicMock(return_value=fresh))

        watcher.watch_machines("openshift-machine-api")

        expired.stream.assert_called_once()
        fresh.stream.assert_called_once()
        assert watcher._watches["machine"] is fresh

    def test_other_api_errors_raised(self, mock_cluster_connection, watch_factory):
        watcher = ResourceWatcher(mock_cluster_connection)
        broken = MagicMock()
        broken.stream.side_effect = ApiException(status=403, reason="Forbidden")
        watcher._watches["node"] = broken

        with pytest.raises(ApiException):
            watcher.watch_nodes("node-role.kubernetes.io/master")

    def test_stop_stops_each_watch(self, mock_cluster_connection):
        watcher = ResourceWatcher(mock_cluster_connection)
        watcher._watches = {"node": MagicMock(), "machine": MagicMock()}

        watcher.stop()

        watcher._watches["node"].stop.assert_called_once()
        watcher._watches["machine"].stop.assert_called_once()
