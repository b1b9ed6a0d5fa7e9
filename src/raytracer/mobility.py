"""
Mobility Update

Per-tick state transition for moving transmitters. advance() is a pure
function of (mobility, dt): it returns a new mobility value and never
mutates its input, so a sequence of ticks can be replayed exactly.

- Orbit: the phase advances by angular_speed * dt.
- Waypoint: progress advances by speed * dt / segment_length. Reaching 1
  moves to the next segment (looping back to the first after the last),
  with the leftover distance carried into the new segment.
"""

import numpy as np
from dataclasses import replace

from common.constants import EPSILON
from common.vector_math import as_vec3, lerp, VectorLike
from .transmitter import (
    Mobility,
    StaticMobility,
    OrbitMobility,
    WaypointMobility,
    Transmitter,
)

# Bound on segment wraps per tick, guards a huge dt over tiny segments
MAX_SEGMENT_WRAPS_PER_TICK = 10000


def advance(mobility: Mobility, dt: float) -> Mobility:
    """
    Advance a mobility state by dt seconds.

    Args:
        mobility: Current mobility state
        dt: Elapsed time (s); non-positive dt is a no-op

    Returns:
        New mobility state
    """
    if dt <= 0 or isinstance(mobility, StaticMobility):
        return mobility

    if isinstance(mobility, OrbitMobility):
        return replace(mobility, phase=mobility.phase + mobility.angular_speed * dt)

    if isinstance(mobility, WaypointMobility):
        return _advance_waypoint(mobility, dt)

    return mobility


def _advance_waypoint(mobility: WaypointMobility, dt: float) -> WaypointMobility:
    n = mobility.segment_count
    if n == 0 or mobility.speed <= 0:
        return mobility

    idx = mobility.current_idx % n
    start, end = mobility.segment(idx)
    seg_len = max(float(np.linalg.norm(end - start)), EPSILON)
    progress = mobility.progress + (mobility.speed * dt) / seg_len

    wraps = 0
    while progress >= 1.0 and wraps < MAX_SEGMENT_WRAPS_PER_TICK:
        leftover_m = (progress - 1.0) * seg_len
        idx = (idx + 1) % n
        start, end = mobility.segment(idx)
        seg_len = max(float(np.linalg.norm(end - start)), EPSILON)
        progress = leftover_m / seg_len
        wraps += 1

    if progress >= 1.0:
        progress = 0.0

    return replace(mobility, current_idx=idx, progress=progress)


def position_for(mobility: Mobility, fallback: VectorLike) -> np.ndarray:
    """
    Scene position implied by a mobility state.

    Args:
        mobility: Mobility state
        fallback: Position used for static transmitters and degenerate routes

    Returns:
        Position (m)
    """
    if isinstance(mobility, OrbitMobility):
        c = as_vec3(mobility.center)
        return np.array([
            c[0] + np.cos(mobility.phase) * mobility.radius,
            c[1] + mobility.altitude,
            c[2] + np.sin(mobility.phase) * mobility.radius,
        ])

    if isinstance(mobility, WaypointMobility) and mobility.segment_count:
        start, end = mobility.segment(mobility.current_idx)
        return lerp(start, end, mobility.progress)

    return as_vec3(fallback)


def advance_transmitter(tx: Transmitter, dt: float) -> Transmitter:
    """
    Advance one transmitter's mobility and move it accordingly.

    Static transmitters are returned unchanged.
    """
    if isinstance(tx.mobility, StaticMobility):
        return tx

    mobility = advance(tx.mobility, dt)
    return tx.moved_to(position_for(mobility, tx.position), mobility=mobility)
