"""
Interference Field Evaluator

Scalar interference intensity on a reference plane, evaluated every frame.
Each transmitter contributes a travelling wave

    E_i = A_i / d_i * cos(omega_i * t * phase_time_scale - k_i * d_i)

with A_i = sqrt(P_i [W]), k_i = 2*pi/lambda_i * spatial_scale and
omega_i = 2*pi*f_i. Contributions superpose linearly and the total is
compressed to a bounded display intensity

    I = 1 - exp(-intensity_scale * E^2)      in [0, 1)

The spatial and temporal scales are presentation parameters: fringes are
stretched ~30x and GHz oscillation is slowed to a few cycles per second.
At most 8 transmitters contribute; extra ones are ignored here only.
"""

import numpy as np
from typing import Optional, Sequence, Tuple
import logging

from common.config import InterferenceConfig
from common.constants import SPEED_OF_LIGHT, MHZ_TO_HZ, FIELD_DISTANCE_BIAS_M
from common.vector_math import as_vec3, VectorLike
from .path_loss import amplitude_from_dbm
from .transmitter import Transmitter

logger = logging.getLogger(__name__)

# Parking position for unused slots
OFFSCREEN = 1e9

# Largest float below 1, keeps intensity in [0, 1) after rounding
INTENSITY_CEILING = np.nextafter(1.0, 0.0)

# Display ramp: dark blue -> cyan -> magenta
PALETTE_LOW = np.array([0.06, 0.08, 0.22])
PALETTE_MID = np.array([0.10, 0.70, 1.00])
PALETTE_HIGH = np.array([0.98, 0.20, 0.80])


def _smoothstep(edge0: float, edge1: float, x):
    t = np.clip((x - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def field_palette(intensity) -> np.ndarray:
    """
    RGB colour for an intensity (scalar or array) in [0, 1].

    Returns an array of shape (..., 3).
    """
    x = np.clip(np.asarray(intensity, dtype=np.float64), 0.0, 1.0)[..., None]
    col = PALETTE_LOW + (PALETTE_MID - PALETTE_LOW) * _smoothstep(0.0, 0.7, x)
    col = col + (PALETTE_HIGH - col) * _smoothstep(0.6, 1.0, x)
    return col


class InterferenceFieldEvaluator:
    """
    Fixed-slot interference field evaluator.

    Transmitter parameters live in fixed 8-slot arrays that are refreshed by
    set_transmitters() whenever the transmitter set changes; field values
    are then cheap to evaluate for any point and time.

    Example:
        evaluator = InterferenceFieldEvaluator()
        evaluator.set_transmitters(transmitters)

        xs, zs, plane = evaluator.reference_plane(bounds_min, bounds_max, 64)
        intensity = evaluator.field_values(plane, t)
    """

    def __init__(self, config: Optional[InterferenceConfig] = None):
        self.config = config or InterferenceConfig()

        slots = self.config.max_transmitters
        self.positions = np.full((slots, 3), OFFSCREEN)
        self.frequencies_hz = np.zeros(slots)
        self.amplitudes = np.zeros(slots)
        self.active_count = 0

    def set_transmitters(self, transmitters: Sequence[Transmitter]) -> None:
        """Refresh slot arrays from a transmitter snapshot."""
        slots = self.config.max_transmitters
        count = min(len(transmitters), slots)

        if len(transmitters) > slots:
            logger.debug(f"Interference field uses {slots} of {len(transmitters)} transmitters")

        self.positions.fill(OFFSCREEN)
        self.frequencies_hz.fill(0.0)
        self.amplitudes.fill(0.0)

        for i in range(count):
            tx = transmitters[i]
            self.positions[i] = tx.pos
            self.frequencies_hz[i] = tx.frequency_mhz * MHZ_TO_HZ
            self.amplitudes[i] = amplitude_from_dbm(tx.power_dbm)

        self.active_count = count

    def wavenumbers(self) -> np.ndarray:
        """Spatially scaled wavenumber per active slot (rad/m)."""
        f = self.frequencies_hz[:self.active_count]
        k = np.zeros_like(f)
        live = f > 0
        k[live] = 2.0 * np.pi * f[live] / SPEED_OF_LIGHT * self.config.spatial_scale
        return k

    def field_amplitudes(self, points: np.ndarray, time: float) -> np.ndarray:
        """
        Superposed field E at each point.

        Args:
            points: Array of shape (n, 3)
            time: Elapsed time (s)

        Returns:
            Array of shape (n,)
        """
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        m = self.active_count
        if m == 0:
            return np.zeros(len(pts))

        f = self.frequencies_hz[:m]
        live = f > 0
        pos = self.positions[:m][live]
        amp = self.amplitudes[:m][live]
        k = self.wavenumbers()[live]
        omega = 2.0 * np.pi * f[live]

        d = np.linalg.norm(pts[:, None, :] - pos[None, :, :], axis=2) + FIELD_DISTANCE_BIAS_M
        phase = omega[None, :] * time * self.config.phase_time_scale - k[None, :] * d
        return np.sum(amp[None, :] / d * np.cos(phase), axis=1)

    def field_values(self, points: np.ndarray, time: float) -> np.ndarray:
        """Compressed display intensity in [0, 1) at each point."""
        e = self.field_amplitudes(points, time)
        intensity = 1.0 - np.exp(-self.config.intensity_scale * e * e)
        return np.minimum(intensity, INTENSITY_CEILING)

    def field_value(self, point: VectorLike, time: float) -> float:
        """Compressed display intensity at a single point."""
        return float(self.field_values(as_vec3(point)[None, :], time)[0])

    def reference_plane(
        self,
        bounds_min: VectorLike,
        bounds_max: VectorLike,
        resolution: int,
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Sample grid on the horizontal reference plane above the ground.

        Args:
            bounds_min: Scene bounds minimum corner
            bounds_max: Scene bounds maximum corner
            resolution: Samples per axis

        Returns:
            (xs, zs, points) where points has shape (resolution**2, 3)
        """
        lo = as_vec3(bounds_min)
        hi = as_vec3(bounds_max)
        n = max(int(resolution), 2)

        xs = np.linspace(lo[0], hi[0], n)
        zs = np.linspace(lo[2], hi[2], n)
        gx, gz = np.meshgrid(xs, zs, indexing='ij')
        gy = np.full_like(gx, lo[1] + self.config.plane_offset_m)

        points = np.column_stack([gx.ravel(), gy.ravel(), gz.ravel()])
        return xs, zs, points


def field_value(
    point: VectorLike,
    transmitters: Sequence[Transmitter],
    time: float,
    config: Optional[InterferenceConfig] = None,
) -> float:
    """
    Interference intensity at a point for a transmitter set and time.

    Returns:
        Intensity in [0, 1)
    """
    evaluator = InterferenceFieldEvaluator(config)
    evaluator.set_transmitters(transmitters)
    return evaluator.field_value(point, time)
