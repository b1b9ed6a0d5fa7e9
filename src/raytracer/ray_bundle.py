"""
Ray Propagation Engine

Geometric ray marching from a transmitter through the city model. For
each sampled launch direction the ray is marched against the geometry
index, bouncing by mirror reflection, and every segment is annotated with
its losses:

    hop 1:  power -= FSPL(d1)                         (line of sight)
    hop k:  power -= FSPL(dk) + reflection_loss(...)  (after a bounce)

Launch directions come from a Fibonacci sphere, so a bundle set is fully
deterministic for a given (transmitter, geometry, ray count).

Termination:
    - bounce count exceeds max_bounces
    - accumulated power at or below the power floor (-110 dBm)
    - no further intersection within range (5000 m)

This is a visually tuned approximation. Each hop's free-space loss is
computed over that hop's length alone.
"""

import numpy as np
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple
import logging

from common.config import RayTracingConfig
from common.constants import DEFAULT_POWER_DBM, SEGMENT_MIN_ALPHA
from common.vector_math import as_vec3, normalize, reflect, fibonacci_sphere
from .geometry_index import GeometryIndex, safe_nearest_hit
from .path_loss import free_space_path_loss, reflection_loss
from .transmitter import Transmitter

logger = logging.getLogger(__name__)

LOS_MATERIAL = "los"


class RayTermination(Enum):
    """Reason for ray termination."""
    MAX_BOUNCES = "max_bounces"    # Bounce budget exhausted
    POWER_FLOOR = "power_floor"    # Power dropped to the floor
    NO_HIT = "no_hit"              # Ray left the scene


@dataclass(frozen=True)
class RayHop:
    """
    One marched segment of a ray.

    Attributes:
        origin: Segment start (m)
        hit_point: Segment end on a surface (m)
        distance: Segment length (m)
        fspl_db: Free-space loss of this segment
        reflection_loss_db: Reflection loss applied on this hop (0 on hop 1)
        material: "los" on the first hop, otherwise the hit material value
        power_after_dbm: Received power after this hop
    """
    origin: np.ndarray
    hit_point: np.ndarray
    distance: float
    fspl_db: float
    reflection_loss_db: float
    material: str
    power_after_dbm: float

    @property
    def is_los(self) -> bool:
        return self.material == LOS_MATERIAL


@dataclass(frozen=True)
class RaySegment:
    """Renderable segment with an opacity proxy derived from power."""
    start: np.ndarray
    end: np.ndarray
    los: bool
    alpha: float


@dataclass
class RayBundle:
    """
    Ordered hops for one launch direction from one transmitter.

    Attributes:
        transmitter_id: Source transmitter
        direction: Launch direction (unit)
        hops: Ordered hop sequence
        segments: Renderable segments, one per hop
        color: Transmitter display colour
        termination: Why marching stopped
    """
    transmitter_id: str
    direction: np.ndarray
    hops: List[RayHop] = field(default_factory=list)
    segments: List[RaySegment] = field(default_factory=list)
    color: str = ""
    termination: RayTermination = RayTermination.NO_HIT

    @property
    def final_power_dbm(self) -> float:
        """Power after the last hop."""
        return self.hops[-1].power_after_dbm if self.hops else float('-inf')

    @property
    def total_path_length(self) -> float:
        """Sum of hop lengths (m)."""
        return float(sum(h.distance for h in self.hops))

    @property
    def bounce_count(self) -> int:
        return max(0, len(self.hops) - 1)


def segment_alpha(power_dbm: float, floor_dbm: float, reference_dbm: float = DEFAULT_POWER_DBM) -> float:
    """Opacity proxy in [0.15, 1] for a segment ending at power_dbm."""
    span = max(reference_dbm - floor_dbm, 1e-6)
    return float(np.clip((power_dbm - floor_dbm) / span, SEGMENT_MIN_ALPHA, 1.0))


def transmitter_signature(transmitters: Sequence[Transmitter]) -> Tuple:
    """
    Hashable summary of everything that invalidates ray bundles.

    Position, power, frequency and count changes all alter the signature;
    colour and mobility bookkeeping do not.
    """
    return tuple(
        (tx.id, tuple(round(float(c), 6) for c in tx.position), float(tx.power_dbm), float(tx.frequency_mhz))
        for tx in transmitters
    )


class RayBundleTracer:
    """
    Ray marcher for one geometry index.

    Example:
        tracer = RayBundleTracer(index)
        bundles = tracer.build_bundles(tx, ray_count=260)

        for bundle in bundles:
            print(bundle.termination, bundle.final_power_dbm)
    """

    def __init__(self, geometry_index: Optional[GeometryIndex], config: Optional[RayTracingConfig] = None):
        """
        Initialize the tracer.

        Args:
            geometry_index: Index queried for surface hits (None = open space)
            config: Ray tracing parameters
        """
        self.geometry_index = geometry_index
        self.config = config or RayTracingConfig()

    def trace_ray(
        self,
        transmitter: Transmitter,
        direction: np.ndarray,
        max_bounces: Optional[int] = None,
    ) -> RayBundle:
        """
        March a single ray from a transmitter.

        Args:
            transmitter: Source transmitter
            direction: Launch direction
            max_bounces: Bounce budget (defaults to config)

        Returns:
            RayBundle, possibly with zero hops
        """
        cfg = self.config
        if max_bounces is None:
            max_bounces = cfg.max_bounces

        launch_dir = normalize(direction)
        bundle = RayBundle(
            transmitter_id=transmitter.id,
            direction=launch_dir.copy(),
            color=transmitter.color,
        )

        dir_ = launch_dir
        origin = transmitter.pos + dir_ * cfg.origin_offset_m
        power = float(transmitter.power_dbm)
        bounces = 0
        first = True

        while True:
            if power <= cfg.min_power_dbm:
                bundle.termination = RayTermination.POWER_FLOOR
                break
            if bounces > max_bounces:
                bundle.termination = RayTermination.MAX_BOUNCES
                break

            hit = safe_nearest_hit(self.geometry_index, origin, dir_, cfg.max_range_m)
            if hit is None:
                bundle.termination = RayTermination.NO_HIT
                break

            fspl = free_space_path_loss(hit.distance, transmitter.frequency_mhz)
            refl = 0.0 if first else reflection_loss(hit.material, hit.normal, dir_)
            power -= fspl + refl

            hit_point = as_vec3(hit.point)
            bundle.hops.append(RayHop(
                origin=origin.copy(),
                hit_point=hit_point.copy(),
                distance=float(hit.distance),
                fspl_db=float(fspl),
                reflection_loss_db=float(refl),
                material=LOS_MATERIAL if first else hit.material.value,
                power_after_dbm=float(power),
            ))
            bundle.segments.append(RaySegment(
                start=origin.copy(),
                end=hit_point.copy(),
                los=first,
                alpha=segment_alpha(power, cfg.min_power_dbm),
            ))

            dir_ = reflect(dir_, hit.normal)
            origin = hit_point + dir_ * cfg.bounce_offset_m
            first = False
            bounces += 1

        return bundle

    def build_bundles(
        self,
        transmitter: Transmitter,
        ray_count: int,
        max_bounces: Optional[int] = None,
    ) -> List[RayBundle]:
        """
        Trace ray_count Fibonacci-sphere rays from a transmitter.

        Bundles with zero hops (rays that hit nothing) are dropped.
        """
        if self.geometry_index is None or ray_count <= 0:
            return []

        bundles = []
        for direction in fibonacci_sphere(ray_count):
            bundle = self.trace_ray(transmitter, direction, max_bounces)
            if bundle.hops:
                bundles.append(bundle)

        logger.debug(
            f"Built {len(bundles)}/{ray_count} bundles for TX {transmitter.id} "
            f"({transmitter.frequency_mhz:.0f} MHz, {transmitter.power_dbm:.1f} dBm)"
        )
        return bundles

    def build_all(self, transmitters: Sequence[Transmitter]) -> Dict[str, List[RayBundle]]:
        """
        Bundles for every transmitter, with the ray budget scaled by count.
        """
        ray_count = self.config.rays_per_transmitter(len(transmitters))
        return {
            tx.id: self.build_bundles(tx, ray_count)
            for tx in transmitters
        }


def build_ray_bundles(
    transmitter: Transmitter,
    geometry_index: Optional[GeometryIndex],
    ray_count: int,
    max_bounces: int = 2,
) -> List[RayBundle]:
    """
    Ray bundles for one transmitter.

    Args:
        transmitter: Source transmitter
        geometry_index: City geometry
        ray_count: Number of Fibonacci-sphere launch directions
        max_bounces: Bounce budget

    Returns:
        Bundles with at least one hop
    """
    return RayBundleTracer(geometry_index).build_bundles(transmitter, ray_count, max_bounces)


def rays_per_transmitter(tx_count: int, config: Optional[RayTracingConfig] = None) -> int:
    """Ray count per transmitter for a set of tx_count transmitters."""
    return (config or RayTracingConfig()).rays_per_transmitter(tx_count)
