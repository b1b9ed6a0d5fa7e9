"""
Unit Tests for the Ray Bundle Rebuild Scheduler

Tests signature gating, request coalescing and failure handling, using a
manually driven executor so completion order is under test control.
"""

import pytest
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent / 'src'))

from raytracer.geometry_index import TriangleMeshIndex
from raytracer.materials import MaterialClass
from raytracer.transmitter import Transmitter
from session.rebuild_scheduler import RayBundleScheduler


class ManualExecutor(Executor):
    """Executor that runs submitted work only when asked"""

    def __init__(self):
        self.jobs = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.jobs.append((future, fn, args, kwargs))
        return future

    def run(self, index):
        future, fn, args, kwargs = self.jobs[index]
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)

    def run_all(self):
        for i in range(len(self.jobs)):
            if not self.jobs[i][0].done():
                self.run(i)


@pytest.fixture
def ground_index():
    index = TriangleMeshIndex()
    index.add_ground_plane(500.0, MaterialClass.TERRAIN)
    return index.build()


@pytest.fixture
def tx():
    return Transmitter(id="tx-a", position=(0.0, 30.0, 0.0))


class TestSignatureGating:

    def test_first_request_submits(self, ground_index, tx):
        executor = ManualExecutor()
        scheduler = RayBundleScheduler(ground_index, executor=executor)
        assert scheduler.request((tx,)) is True
        assert len(executor.jobs) == 1

    def test_unchanged_signature_skipped(self, ground_index, tx):
        executor = ManualExecutor()
        scheduler = RayBundleScheduler(ground_index, executor=executor)
        scheduler.request((tx,))
        assert scheduler.request((tx,)) is False
        assert scheduler.request((replace(tx, color="#000000"),)) is False
        assert len(executor.jobs) == 1

    def test_change_while_running_is_queued(self, ground_index, tx):
        executor = ManualExecutor()
        scheduler = RayBundleScheduler(ground_index, executor=executor)
        scheduler.request((tx,))
        assert scheduler.request((replace(tx, power_dbm=10.0),)) is True
        assert len(executor.jobs) == 1
        assert scheduler.busy


class TestPolling:

    def test_poll_before_completion(self, ground_index, tx):
        scheduler = RayBundleScheduler(ground_index, executor=ManualExecutor())
        scheduler.request((tx,))
        assert scheduler.poll() is None
        assert scheduler.busy

    def test_adopts_finished_result(self, ground_index, tx):
        executor = ManualExecutor()
        scheduler = RayBundleScheduler(ground_index, executor=executor)
        scheduler.request((tx,))
        executor.run_all()

        bundles = scheduler.poll()
        assert set(bundles) == {"tx-a"}
        assert len(bundles["tx-a"]) > 0
        assert scheduler.bundles is bundles
        assert scheduler.is_current
        assert scheduler.poll() is None
        assert not scheduler.busy

    def test_superseded_result_still_adopted(self, ground_index, tx):
        executor = ManualExecutor()
        scheduler = RayBundleScheduler(ground_index, executor=executor)

        scheduler.request((tx,))
        moved = replace(tx, id="tx-b", position=(10.0, 30.0, 0.0))
        scheduler.request((moved,))
        executor.run_all()

        assert set(scheduler.poll()) == {"tx-a"}
        assert not scheduler.is_current
        assert scheduler.get_statistics()['superseded'] == 1
        assert len(executor.jobs) == 2

        executor.run_all()
        assert set(scheduler.poll()) == {"tx-b"}
        assert scheduler.is_current
        assert not scheduler.busy

    def test_requests_coalesce_to_latest(self, ground_index, tx):
        executor = ManualExecutor()
        scheduler = RayBundleScheduler(ground_index, executor=executor)

        scheduler.request((tx,))
        for x in (1.0, 2.0, 3.0):
            scheduler.request((replace(tx, position=(x, 30.0, 0.0)),))
        assert len(executor.jobs) == 1
        assert scheduler.coalesced_count == 2

        executor.run_all()
        scheduler.poll()
        executor.run_all()
        scheduler.poll()

        assert len(executor.jobs) == 2
        assert executor.jobs[1][2][0][0].position == (3.0, 30.0, 0.0)
        assert scheduler.is_current

    def test_continuous_motion_keeps_adopting(self, ground_index, tx):
        """A signature change on every frame still yields fresh bundles"""
        executor = ManualExecutor()
        scheduler = RayBundleScheduler(ground_index, executor=executor)

        adopted = []
        for frame in range(12):
            scheduler.request((replace(tx, position=(float(frame), 30.0, 0.0)),))
            if frame % 3 == 2:
                executor.run_all()
            result = scheduler.poll()
            if result is not None:
                adopted.append(result)

        assert len(adopted) == 4
        assert len(executor.jobs) == 5
        assert scheduler.adopted_count == 4

    def test_queued_matching_adopted_is_skipped(self, ground_index, tx):
        executor = ManualExecutor()
        scheduler = RayBundleScheduler(ground_index, executor=executor)

        scheduler.request((tx,))
        scheduler.request((replace(tx, power_dbm=1.0),))
        scheduler.request((tx,))
        executor.run_all()
        scheduler.poll()

        assert len(executor.jobs) == 1
        assert scheduler.is_current
        assert not scheduler.busy

    def test_failed_rebuild_dropped(self, tx):
        executor = ManualExecutor()
        scheduler = RayBundleScheduler(None, executor=executor)
        scheduler.tracer.build_all = lambda snapshot: 1 / 0

        scheduler.request((tx,))
        executor.run_all()
        assert scheduler.poll() is None
        assert scheduler.failed_count == 1
        assert scheduler.bundles == {}
        assert not scheduler.busy

    def test_empty_snapshot(self, ground_index):
        executor = ManualExecutor()
        scheduler = RayBundleScheduler(ground_index, executor=executor)
        assert scheduler.request(()) is True
        executor.run_all()
        assert scheduler.poll() == {}


class TestThreadPool:

    def test_background_rebuild(self, ground_index, tx):
        with ThreadPoolExecutor(max_workers=1) as pool:
            scheduler = RayBundleScheduler(ground_index, executor=pool)
            scheduler.request((tx,))
            bundles = scheduler.wait(timeout=30.0)

        assert set(bundles) == {"tx-a"}
        assert scheduler.get_statistics()['adopted'] == 1

    def test_wait_drains_queue(self, ground_index, tx):
        with ThreadPoolExecutor(max_workers=1) as pool:
            scheduler = RayBundleScheduler(ground_index, executor=pool)
            scheduler.request((tx,))
            scheduler.request((replace(tx, id="tx-b"),))
            bundles = scheduler.wait(timeout=60.0)

        assert set(bundles) == {"tx-b"}
        assert scheduler.is_current
        assert not scheduler.busy

    def test_owned_pool_shutdown(self, ground_index, tx):
        scheduler = RayBundleScheduler(ground_index)
        scheduler.request((tx,))
        scheduler.wait(timeout=30.0)
        scheduler.shutdown()
        assert "tx-a" in scheduler.bundles
