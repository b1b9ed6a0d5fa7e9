"""
Drive-Test Analyzer

Samples the point probe along a polyline route at a fixed spatial step
and derives:
- A colour-coded quality trace (one vertex colour per sample)
- Discrete handover events wherever the best server changes

The trace colour uses a four-bucket mapping of best received power that
is deliberately independent of the probe's five-tier quality class.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
import logging

from common.config import DriveTestConfig, ProbeConfig
from common.constants import DRIVE_TEST_COLORS, EPSILON
from common.vector_math import as_vec3, lerp, VectorLike
from raytracer.geometry_index import GeometryIndex
from raytracer.probe import PointProbe, QualityTier
from raytracer.transmitter import Transmitter

logger = logging.getLogger(__name__)


def drive_test_color(best_power_dbm: float) -> str:
    """
    Four-bucket trace colour for a best received power.

        <= -100  red
        <= -90   orange
        <= -80   amber
        else     green
    """
    if best_power_dbm <= -100.0:
        return DRIVE_TEST_COLORS['dead']
    if best_power_dbm <= -90.0:
        return DRIVE_TEST_COLORS['weak']
    if best_power_dbm <= -80.0:
        return DRIVE_TEST_COLORS['fair']
    return DRIVE_TEST_COLORS['strong']


def resample_path(points: Sequence[VectorLike], step_m: float) -> List[np.ndarray]:
    """
    Resample a polyline at a fixed spatial step.

    Each segment contributes max(2, ceil(length / step)) samples, evenly
    spaced and including both endpoints, so shared corners are sampled once
    per adjacent segment. Every sample keeps the height of its segment's
    start point.

    Args:
        points: Polyline vertices
        step_m: Target spacing (m)

    Returns:
        Sample positions
    """
    pts = [as_vec3(p) for p in points]
    samples: List[np.ndarray] = []
    if len(pts) < 2:
        return samples

    step = max(step_m, EPSILON)
    for a, b in zip(pts[:-1], pts[1:]):
        seg_len = max(float(np.linalg.norm(b - a)), EPSILON)
        count = max(2, int(np.ceil(seg_len / step)))

        for k in range(count):
            p = lerp(a, b, k / (count - 1))
            p[1] = a[1]
            samples.append(p)

    return samples


@dataclass(frozen=True)
class TraceSample:
    """One drive-test sample."""
    position: np.ndarray
    color: str
    best_power_dbm: float
    best_index: Optional[int]
    quality_tier: QualityTier


@dataclass(frozen=True)
class HandoverEvent:
    """Best-server change between consecutive samples."""
    position: np.ndarray
    from_index: int
    to_index: int
    sample_index: int


@dataclass
class DriveTestResult:
    """Quality trace plus handover markers along a route."""
    trace: List[TraceSample] = field(default_factory=list)
    handover_events: List[HandoverEvent] = field(default_factory=list)

    @property
    def positions(self) -> np.ndarray:
        """Sample positions as an (n, 3) array."""
        if not self.trace:
            return np.zeros((0, 3))
        return np.stack([s.position for s in self.trace])

    @property
    def colors(self) -> List[str]:
        return [s.color for s in self.trace]

    def summary(self) -> dict:
        """Aggregate statistics for display."""
        powers = [s.best_power_dbm for s in self.trace]
        return {
            'samples': len(self.trace),
            'handovers': len(self.handover_events),
            'min_power_dbm': float(min(powers)) if powers else None,
            'max_power_dbm': float(max(powers)) if powers else None,
            'mean_power_dbm': float(np.mean(powers)) if powers else None,
        }


class DriveTestAnalyzer:
    """
    Drive-test route analysis against one geometry index.

    Example:
        analyzer = DriveTestAnalyzer(index)
        result = analyzer.analyze_path(route_points, transmitters)

        for event in result.handover_events:
            print(f"Handover {event.from_index} -> {event.to_index}")
    """

    def __init__(
        self,
        geometry_index: Optional[GeometryIndex],
        config: Optional[DriveTestConfig] = None,
        probe_config: Optional[ProbeConfig] = None,
    ):
        self.config = config or DriveTestConfig()
        self.probe = PointProbe(geometry_index, probe_config)

    def analyze_path(
        self,
        points: Sequence[VectorLike],
        transmitters: Sequence[Transmitter],
    ) -> DriveTestResult:
        """
        Probe every resampled position along a route.

        Args:
            points: Route polyline (at least two points)
            transmitters: Transmitter snapshot

        Returns:
            DriveTestResult; empty for short routes or no transmitters
        """
        result = DriveTestResult()
        if len(points) < 2 or not transmitters:
            return result

        last_best: Optional[int] = None
        for i, p in enumerate(resample_path(points, self.config.step_m)):
            payload = self.probe.probe(p, transmitters)

            result.trace.append(TraceSample(
                position=p,
                color=drive_test_color(payload.best_power_dbm),
                best_power_dbm=payload.best_power_dbm,
                best_index=payload.best_index,
                quality_tier=payload.quality_tier,
            ))

            if last_best is not None and payload.best_index != last_best:
                result.handover_events.append(HandoverEvent(
                    position=p.copy(),
                    from_index=last_best,
                    to_index=payload.best_index,
                    sample_index=i,
                ))
            last_best = payload.best_index

        logger.info(
            f"Drive test: {len(result.trace)} samples, "
            f"{len(result.handover_events)} handovers"
        )
        return result


def analyze_path(
    points: Sequence[VectorLike],
    transmitters: Sequence[Transmitter],
    geometry_index: Optional[GeometryIndex],
    config: Optional[DriveTestConfig] = None,
) -> DriveTestResult:
    """Analyze a drive-test route in one call."""
    return DriveTestAnalyzer(geometry_index, config).analyze_path(points, transmitters)
