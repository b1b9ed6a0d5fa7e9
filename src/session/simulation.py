"""
Simulation Session

Per-frame orchestration of the engine around one city model:

1. Advance transmitter mobility
2. Request a background ray rebuild when the transmitters changed
3. Adopt finished ray bundles
4. Refresh the interference field slots
5. Move the probe vehicle and run the rate-limited probe at its position

The session also exposes the on-demand queries (probe_at, analyze_path,
field_at) and the two scene presets.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from common.config import RadioCityConfig, get_config
from common.logging_config import ServiceLogger, MetricsLogger
from common.vector_math import as_vec3, VectorLike
from analysis.drive_test import DriveTestAnalyzer, DriveTestResult
from analysis.probe_vehicle import ProbeVehicle
from raytracer.geometry_index import GeometryIndex, GeometryIndexError
from raytracer.interference import InterferenceFieldEvaluator
from raytracer.probe import PointProbe, ProbeResult
from raytracer.ray_bundle import RayBundle
from raytracer.transmitter import Transmitter, make_transmitter
from .rate_limiter import RateLimiter
from .rebuild_scheduler import RayBundleScheduler
from .transmitter_set import TransmitterSet


class Preset:
    """Scene presets"""
    URBAN = "urban"
    INTERFERENCE = "interference"


@dataclass
class SessionFrame:
    """State produced by one tick."""
    elapsed: float
    transmitters: Tuple[Transmitter, ...]
    bundles: Dict[str, List[RayBundle]] = field(default_factory=dict)
    bundles_updated: bool = False
    rebuild_requested: bool = False
    vehicle_position: Optional[np.ndarray] = None
    vehicle_probe: Optional[ProbeResult] = None


class SimulationSession:
    """
    Engine session bound to one geometry index.

    Example:
        session = SimulationSession(index)
        session.load_preset(Preset.INTERFERENCE)
        session.set_route([(0, 0, -200), (0, 0, 200)])

        for _ in range(600):
            frame = session.tick(1 / 60)
    """

    def __init__(
        self,
        geometry_index: Optional[GeometryIndex],
        config: Optional[RadioCityConfig] = None,
        bounds: Optional[Tuple[VectorLike, VectorLike]] = None,
        executor=None,
    ):
        """
        Initialize the session.

        Args:
            geometry_index: City geometry (None = open space)
            config: Engine configuration (defaults to get_config())
            bounds: Scene bounds (min, max); taken from the index if omitted
            executor: Worker pool for ray rebuilds
        """
        self.config = config or get_config()
        self.geometry_index = geometry_index
        self.bounds = self._resolve_bounds(geometry_index, bounds)

        self.logger = ServiceLogger("radiocity", "session")
        self.metrics = MetricsLogger("radiocity")

        self.transmitters = TransmitterSet()
        self.scheduler = RayBundleScheduler(geometry_index, self.config.ray_tracing, executor)
        self.probe = PointProbe(geometry_index, self.config.probe)
        self.drive_test = DriveTestAnalyzer(geometry_index, self.config.drive_test, self.config.probe)
        self.field = InterferenceFieldEvaluator(self.config.interference)
        self.probe_limiter = RateLimiter(self.config.drive_test.probe_interval_s)

        # Route state
        self.route: List[np.ndarray] = []
        self.route_result: Optional[DriveTestResult] = None
        self.vehicle: Optional[ProbeVehicle] = None
        self.vehicle_probe: Optional[ProbeResult] = None

        self.elapsed = 0.0
        self.tick_count = 0
        self._field_version = -1

        self.logger.info(
            f"Session initialized: bounds={self.bounds[0].round(1).tolist()}.."
            f"{self.bounds[1].round(1).tolist()}"
        )

    @staticmethod
    def _resolve_bounds(geometry_index, bounds) -> Tuple[np.ndarray, np.ndarray]:
        if bounds is not None:
            return as_vec3(bounds[0]), as_vec3(bounds[1])

        get_bounds = getattr(geometry_index, 'bounds', None)
        if get_bounds is not None:
            try:
                lo, hi = get_bounds()
                return as_vec3(lo), as_vec3(hi)
            except GeometryIndexError:
                pass

        return np.array([-250.0, 0.0, -250.0]), np.array([250.0, 100.0, 250.0])

    @property
    def center(self) -> np.ndarray:
        return (self.bounds[0] + self.bounds[1]) / 2.0

    @property
    def bundles(self) -> Dict[str, List[RayBundle]]:
        """Most recently adopted ray bundles, keyed by transmitter id."""
        return self.scheduler.bundles

    def _refresh_field(self, snapshot: Sequence[Transmitter]) -> None:
        if self._field_version != self.transmitters.version:
            self.field.set_transmitters(snapshot)
            self._field_version = self.transmitters.version

    def tick(self, dt: float) -> SessionFrame:
        """
        Advance the session by one frame.

        Args:
            dt: Frame time (s)

        Returns:
            SessionFrame
        """
        dt = max(float(dt), 0.0)
        self.elapsed += dt
        self.tick_count += 1

        self.transmitters.tick(dt)
        snapshot = self.transmitters.snapshot()

        requested = self.scheduler.request(snapshot)
        adopted = self.scheduler.poll()
        self._refresh_field(snapshot)

        frame = SessionFrame(
            elapsed=self.elapsed,
            transmitters=snapshot,
            bundles=self.scheduler.bundles,
            bundles_updated=adopted is not None,
            rebuild_requested=requested,
        )

        if self.vehicle is not None:
            frame.vehicle_position = self.vehicle.advance(dt)
            if snapshot and self.probe_limiter.try_acquire():
                self.vehicle_probe = self.probe.probe(frame.vehicle_position, snapshot)
            frame.vehicle_probe = self.vehicle_probe

        return frame

    def probe_at(self, point: VectorLike) -> ProbeResult:
        """Probe the signal environment at a point."""
        return self.probe.probe(point, self.transmitters.snapshot())

    def field_at(self, point: VectorLike, time: Optional[float] = None) -> float:
        """Interference intensity at a point (defaults to the session clock)."""
        self._refresh_field(self.transmitters.snapshot())
        return self.field.field_value(point, self.elapsed if time is None else time)

    def field_plane(self, resolution: int = 64) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Interference intensity over the reference plane: (xs, zs, grid)."""
        self._refresh_field(self.transmitters.snapshot())
        xs, zs, points = self.field.reference_plane(self.bounds[0], self.bounds[1], resolution)
        values = self.field.field_values(points, self.elapsed)
        return xs, zs, values.reshape(len(xs), len(zs))

    def analyze_path(self, points: Sequence[VectorLike]) -> DriveTestResult:
        """Drive-test analysis of a route against the current transmitters."""
        result = self.drive_test.analyze_path(points, self.transmitters.snapshot())
        self.metrics.log_gauge("drive_test_handovers", len(result.handover_events))
        return result

    def set_route(self, points: Sequence[VectorLike]) -> DriveTestResult:
        """
        Set the drive-test route: analyze it and start the probe vehicle.

        Routes with fewer than two points clear the vehicle.
        """
        self.route = [as_vec3(p) for p in points]
        self.route_result = self.analyze_path(self.route)
        self.vehicle_probe = None
        self.probe_limiter.reset()

        if len(self.route) >= 2:
            cfg = self.config.drive_test
            self.vehicle = ProbeVehicle(self.route, cfg.vehicle_speed_mps, cfg.vehicle_lift_m)
        else:
            self.vehicle = None

        return self.route_result

    def clear_route(self) -> None:
        self.route = []
        self.route_result = None
        self.vehicle = None
        self.vehicle_probe = None

    def load_preset(self, kind: str) -> Tuple[Transmitter, ...]:
        """
        Replace the transmitters with a preset layout.

        urban:        one transmitter west of centre, 20 m above the ground
        interference: three transmitters 80 m up around the centre

        Raises:
            ValueError: For an unknown preset name
        """
        lo, hi = self.bounds
        c = self.center

        if kind == Preset.URBAN:
            positions = [(c[0] - (hi[0] - lo[0]) * 0.15, lo[1] + 20.0, c[2])]
        elif kind == Preset.INTERFERENCE:
            positions = [
                (c[0] - 120.0, lo[1] + 80.0, c[2] - 60.0),
                (c[0] + 120.0, lo[1] + 80.0, c[2] - 60.0),
                (c[0], lo[1] + 80.0, c[2] + 120.0),
            ]
        else:
            raise ValueError(f"Unknown preset: {kind}")

        self.transmitters.replace_all(make_transmitter(p, i) for i, p in enumerate(positions))
        self.logger.info(f"Loaded preset '{kind}' with {len(positions)} transmitters")
        return self.transmitters.snapshot()

    def shutdown(self) -> None:
        self.scheduler.shutdown()
