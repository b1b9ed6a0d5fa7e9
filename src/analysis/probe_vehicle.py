"""
Probe Vehicle

A vehicle that drives a drive-test route back and forth (0 -> L -> 0) at
constant speed, lifted above the road surface. Its position is a pure
function of the distance travelled, so the session can probe the signal
at the vehicle without tracking segment state.
"""

import numpy as np
from typing import Optional, Sequence

from common.constants import EPSILON, PROBE_VEHICLE_SPEED_MPS, PROBE_VEHICLE_LIFT_M
from common.vector_math import as_vec3, lerp, VectorLike


class ProbeVehicle:
    """
    Ping-pong route follower.

    Example:
        vehicle = ProbeVehicle(route_points)
        for _ in range(60):
            position = vehicle.advance(1 / 60)
    """

    def __init__(
        self,
        points: Sequence[VectorLike],
        speed_mps: float = PROBE_VEHICLE_SPEED_MPS,
        lift_m: float = PROBE_VEHICLE_LIFT_M,
    ):
        """
        Initialize the vehicle at the start of the route.

        Args:
            points: Route polyline (at least two points)
            speed_mps: Travel speed (m/s)
            lift_m: Height above the route (m)
        """
        if len(points) < 2:
            raise ValueError("Probe vehicle route needs at least two points")

        self.points = np.stack([as_vec3(p) for p in points])
        self.speed_mps = speed_mps
        self.lift_m = lift_m

        seg_lengths = np.linalg.norm(np.diff(self.points, axis=0), axis=1)
        self.cumulative = np.concatenate([[0.0], np.cumsum(seg_lengths)])
        self.length_m = float(self.cumulative[-1])
        self.travelled_m = 0.0

    def position_at(self, travelled_m: float) -> np.ndarray:
        """Lifted position after travelling travelled_m along the ping-pong route."""
        total = self.length_m
        if total < EPSILON:
            p = self.points[0].copy()
        else:
            s = float(travelled_m) % (2.0 * total)
            if s > total:
                s = 2.0 * total - s
            p = self._point_at_arc(s)

        p[1] += self.lift_m
        return p

    def _point_at_arc(self, s: float) -> np.ndarray:
        i = int(np.searchsorted(self.cumulative, s, side='right')) - 1
        i = min(max(i, 0), len(self.points) - 2)
        seg_len = self.cumulative[i + 1] - self.cumulative[i]
        t = (s - self.cumulative[i]) / max(seg_len, EPSILON)
        return lerp(self.points[i], self.points[i + 1], min(max(t, 0.0), 1.0))

    @property
    def position(self) -> np.ndarray:
        return self.position_at(self.travelled_m)

    def advance(self, dt: float) -> np.ndarray:
        """Advance by dt seconds and return the new position."""
        if dt > 0:
            self.travelled_m += self.speed_mps * dt
        return self.position

    def reset(self, travelled_m: Optional[float] = None) -> None:
        self.travelled_m = travelled_m or 0.0
