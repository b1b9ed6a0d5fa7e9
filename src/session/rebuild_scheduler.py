"""
Ray Bundle Rebuild Scheduler

Ray bundles are expensive to build, so rebuilds run on a background
worker pool and the frame loop picks up finished results when it polls.

Rules:
- A rebuild is requested only when the transmitter signature changes
  (position, power, frequency or count).
- Each rebuild works on an immutable snapshot.
- At most one rebuild is in flight. Requests made while it runs collapse
  into a single queued snapshot (the latest one), submitted when the
  in-flight rebuild finishes.
- Every finished rebuild is adopted, even if the transmitters have moved
  on since; it is still the newest result available. A moving
  transmitter therefore gets bundles refreshed at the rebuild rate.
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Dict, List, Optional, Sequence, Tuple

from common.config import RayTracingConfig
from common.logging_config import ServiceLogger, MetricsLogger
from raytracer.geometry_index import GeometryIndex
from raytracer.ray_bundle import RayBundle, RayBundleTracer, transmitter_signature
from raytracer.transmitter import Transmitter

BundleMap = Dict[str, List[RayBundle]]


class RayBundleScheduler:
    """
    Signature-gated, coalescing background ray bundle builder.

    Example:
        scheduler = RayBundleScheduler(index)
        scheduler.request(tx_set.snapshot())
        ...
        bundles = scheduler.poll()
        if bundles is not None:
            redraw(bundles)
    """

    def __init__(
        self,
        geometry_index: Optional[GeometryIndex],
        config: Optional[RayTracingConfig] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            geometry_index: City geometry shared (read-only) with workers
            config: Ray tracing parameters
            executor: Worker pool; a private pool is created if omitted
        """
        self.config = config or RayTracingConfig()
        self.tracer = RayBundleTracer(geometry_index, self.config)

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max(1, self.config.rebuild_workers),
            thread_name_prefix="ray-rebuild",
        )

        self.logger = ServiceLogger("radiocity", "ray_scheduler")
        self.metrics = MetricsLogger("radiocity")

        self._lock = threading.Lock()
        self._inflight: Optional[Tuple[Tuple, Future]] = None
        self._queued: Optional[Tuple[Tuple, Tuple[Transmitter, ...]]] = None
        self.requested_signature: Optional[Tuple] = None
        self.current_signature: Optional[Tuple] = None
        self.bundles: BundleMap = {}

        # Statistics
        self.submitted_count = 0
        self.coalesced_count = 0
        self.adopted_count = 0
        self.superseded_count = 0
        self.failed_count = 0

    def request(self, snapshot: Sequence[Transmitter]) -> bool:
        """
        Request a rebuild if the snapshot's signature differs from the last
        request. The rebuild starts now if the pool is idle, otherwise the
        snapshot replaces any queued one.

        Returns:
            True if a rebuild was submitted or queued
        """
        sig = transmitter_signature(snapshot)
        with self._lock:
            if sig == self.requested_signature:
                return False

            self.requested_signature = sig
            if self._inflight is None:
                self._submit(sig, tuple(snapshot))
            else:
                if self._queued is not None:
                    self.coalesced_count += 1
                self._queued = (sig, tuple(snapshot))

        self.logger.debug(f"Rebuild requested for {len(snapshot)} transmitters")
        return True

    def _submit(self, sig: Tuple, snapshot: Tuple[Transmitter, ...]) -> None:
        # Caller holds the lock
        future = self._executor.submit(self._rebuild, snapshot)
        self._inflight = (sig, future)
        self.submitted_count += 1

    def _rebuild(self, snapshot: Tuple[Transmitter, ...]) -> BundleMap:
        with self.metrics.timed("ray_rebuild", labels={'transmitters': str(len(snapshot))}):
            bundles = self.tracer.build_all(snapshot)

        self.metrics.log_gauge(
            "ray_bundle_count",
            sum(len(b) for b in bundles.values()),
        )
        return bundles

    def poll(self) -> Optional[BundleMap]:
        """
        Adopt the in-flight rebuild if it has finished, then start the
        queued one. Failed rebuilds are logged and dropped.

        Returns:
            The newly adopted bundles, or None if nothing new is ready
        """
        adopted: Optional[BundleMap] = None

        with self._lock:
            if self._inflight is not None and self._inflight[1].done():
                sig, future = self._inflight
                self._inflight = None

                if future.cancelled():
                    pass
                elif future.exception() is not None:
                    self.failed_count += 1
                    self.logger.error(f"Ray rebuild failed: {future.exception()}")
                else:
                    adopted = future.result()
                    self.bundles = adopted
                    self.current_signature = sig
                    self.adopted_count += 1
                    if sig != self.requested_signature:
                        self.superseded_count += 1

            if self._inflight is None and self._queued is not None:
                sig, snapshot = self._queued
                self._queued = None
                if sig != self.current_signature:
                    self._submit(sig, snapshot)

        if adopted is not None:
            self.metrics.log_counter("ray_rebuilds_adopted")
        return adopted

    @property
    def busy(self) -> bool:
        """True while a rebuild is running or queued."""
        with self._lock:
            return self._inflight is not None or self._queued is not None

    @property
    def is_current(self) -> bool:
        """True if the adopted bundles match the latest request."""
        with self._lock:
            return self.current_signature == self.requested_signature

    def wait(self, timeout: Optional[float] = None) -> Optional[BundleMap]:
        """
        Block until the in-flight and queued rebuilds finish (or timeout).

        Returns:
            The last bundles adopted while waiting, or None
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        latest: Optional[BundleMap] = None

        while True:
            with self._lock:
                future = self._inflight[1] if self._inflight is not None else None
            if future is None:
                break

            remaining = None if deadline is None else max(deadline - time.monotonic(), 0.0)
            wait([future], timeout=remaining)

            adopted = self.poll()
            if adopted is not None:
                latest = adopted
            if not future.done():
                break

        return latest

    def shutdown(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def get_statistics(self) -> Dict[str, int]:
        return {
            'submitted': self.submitted_count,
            'coalesced': self.coalesced_count,
            'adopted': self.adopted_count,
            'superseded': self.superseded_count,
            'failed': self.failed_count,
        }
