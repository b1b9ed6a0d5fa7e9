"""
Transmitter and Mobility Data Types

Transmitters are immutable values. Moving a transmitter, or changing its
power or frequency, produces a new Transmitter; the session-level
transmitter set owns the current values.

Mobility is a tagged union with one variant per mode, each carrying only
the fields that mode needs.
"""

import uuid
import numpy as np
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple, Union

from common.constants import (
    DEFAULT_POWER_DBM,
    DEFAULT_FREQUENCY_MHZ,
    TX_COLORS,
    ORBIT_PHASE_STEP_RAD,
)
from common.vector_math import as_vec3, VectorLike


@dataclass(frozen=True)
class StaticMobility:
    """Transmitter does not move."""
    kind: str = field(default="static", init=False)


@dataclass(frozen=True)
class OrbitMobility:
    """
    Circular orbit in the horizontal plane.

    Attributes:
        center: Orbit centre (m)
        radius: Orbit radius (m)
        altitude: Height above the centre (m)
        angular_speed: Radians per second
        phase: Current orbit angle (rad)
    """
    center: Tuple[float, float, float]
    radius: float
    altitude: float
    angular_speed: float
    phase: float = 0.0
    kind: str = field(default="orbit", init=False)


@dataclass(frozen=True)
class WaypointMobility:
    """
    Looping waypoint follower.

    Segment i runs from points[i] to points[(i + 1) % len(points)], so the
    route closes back onto the first point.

    Attributes:
        points: Ordered waypoints (m)
        speed: Metres per second along the segment
        current_idx: Index of the current segment start
        progress: Fraction of the current segment covered, in [0, 1)
    """
    points: Tuple[Tuple[float, float, float], ...]
    speed: float
    current_idx: int = 0
    progress: float = 0.0
    kind: str = field(default="waypoint", init=False)

    @property
    def segment_count(self) -> int:
        return len(self.points) if len(self.points) >= 2 else 0

    def segment(self, idx: int) -> Tuple[np.ndarray, np.ndarray]:
        """Start and end points of segment idx."""
        n = len(self.points)
        return as_vec3(self.points[idx % n]), as_vec3(self.points[(idx + 1) % n])


Mobility = Union[StaticMobility, OrbitMobility, WaypointMobility]


@dataclass(frozen=True)
class Transmitter:
    """
    A placed transmitter.

    Attributes:
        id: Unique identifier
        position: Scene-space position (m)
        power_dbm: Transmit power (dBm)
        frequency_mhz: Carrier frequency (MHz)
        color: Display colour (hex)
        mobility: Mobility mode
    """
    id: str
    position: Tuple[float, float, float]
    power_dbm: float = DEFAULT_POWER_DBM
    frequency_mhz: float = DEFAULT_FREQUENCY_MHZ
    color: str = TX_COLORS[0]
    mobility: Mobility = field(default_factory=StaticMobility)

    @property
    def pos(self) -> np.ndarray:
        """Position as a numpy vector."""
        return as_vec3(self.position)

    def moved_to(self, position: VectorLike, mobility: Optional[Mobility] = None) -> 'Transmitter':
        """Copy of this transmitter at a new position."""
        return replace(
            self,
            position=tuple(float(c) for c in as_vec3(position)),
            mobility=self.mobility if mobility is None else mobility,
        )


def color_for_index(index: int) -> str:
    """Palette colour for the transmitter at a given index."""
    return TX_COLORS[index % len(TX_COLORS)]


def make_transmitter(
    position: VectorLike,
    index: int,
    mobility: Optional[Mobility] = None,
    power_dbm: float = DEFAULT_POWER_DBM,
    frequency_mhz: float = DEFAULT_FREQUENCY_MHZ,
) -> Transmitter:
    """
    Create a transmitter with a fresh id and the palette colour for index.
    """
    return Transmitter(
        id=str(uuid.uuid4()),
        position=tuple(float(c) for c in as_vec3(position)),
        power_dbm=power_dbm,
        frequency_mhz=frequency_mhz,
        color=color_for_index(index),
        mobility=mobility if mobility is not None else StaticMobility(),
    )


def orbit_for_index(
    center: VectorLike,
    radius: float,
    altitude: float,
    angular_speed: float,
    index: int,
) -> OrbitMobility:
    """Orbit whose starting phase is staggered by transmitter index."""
    return OrbitMobility(
        center=tuple(float(c) for c in as_vec3(center)),
        radius=radius,
        altitude=altitude,
        angular_speed=angular_speed,
        phase=index * ORBIT_PHASE_STEP_RAD,
    )
