"""
RadioCity Ray Tracing Package

Geometric RF propagation over a 3D city model.

Core Components:
- GeometryIndex: Nearest-hit query contract (plus a numpy reference index)
- Path-loss model: Free-space and grazing-angle reflection losses
- RayBundleTracer: Fibonacci-sphere ray marching with mirror bounces
- PointProbe: Received power, best server, quality and handover metrics
- InterferenceFieldEvaluator: Time-varying superposition field for display
- Mobility: Pure per-tick update of orbiting and waypoint transmitters

All engine operations are pure functions of (transmitter snapshot,
geometry index, query point/time). The engine is a visually tuned
approximation, not an electromagnetic solver.
"""

__version__ = "0.1.0"
__author__ = "RadioCity Project"

from .materials import MaterialClass, reflection_band

from .geometry_index import (
    GeometryIndex,
    GeometryIndexError,
    SurfaceHit,
    TriangleMeshIndex,
    safe_nearest_hit,
)

from .path_loss import (
    free_space_path_loss,
    reflection_loss,
    grazing_factor,
    dbm_to_watts,
    amplitude_from_dbm,
)

from .transmitter import (
    Transmitter,
    Mobility,
    StaticMobility,
    OrbitMobility,
    WaypointMobility,
    make_transmitter,
    orbit_for_index,
    color_for_index,
)

from .mobility import advance, advance_transmitter, position_for

from .ray_bundle import (
    RayBundleTracer,
    RayBundle,
    RayHop,
    RaySegment,
    RayTermination,
    build_ray_bundles,
    rays_per_transmitter,
    transmitter_signature,
)

from .probe import (
    PointProbe,
    ProbeResult,
    ProbeRow,
    QualityTier,
    classify_quality,
    softmax_weights,
    summarize_probe,
    probe,
)

from .interference import (
    InterferenceFieldEvaluator,
    field_value,
    field_palette,
)

__all__ = [
    # Geometry
    'MaterialClass',
    'reflection_band',
    'GeometryIndex',
    'GeometryIndexError',
    'SurfaceHit',
    'TriangleMeshIndex',
    'safe_nearest_hit',
    # Path loss
    'free_space_path_loss',
    'reflection_loss',
    'grazing_factor',
    'dbm_to_watts',
    'amplitude_from_dbm',
    # Transmitters
    'Transmitter',
    'Mobility',
    'StaticMobility',
    'OrbitMobility',
    'WaypointMobility',
    'make_transmitter',
    'orbit_for_index',
    'color_for_index',
    'advance',
    'advance_transmitter',
    'position_for',
    # Ray bundles
    'RayBundleTracer',
    'RayBundle',
    'RayHop',
    'RaySegment',
    'RayTermination',
    'build_ray_bundles',
    'rays_per_transmitter',
    'transmitter_signature',
    # Probe
    'PointProbe',
    'ProbeResult',
    'ProbeRow',
    'QualityTier',
    'classify_quality',
    'softmax_weights',
    'summarize_probe',
    'probe',
    # Interference
    'InterferenceFieldEvaluator',
    'field_value',
    'field_palette',
]
