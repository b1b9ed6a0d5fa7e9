"""
RadioCity Session Layer

Owns mutable engine state around the pure propagation functions:
transmitter set, background ray rebuilds and rate-limited probing.
"""

from .transmitter_set import TransmitterSet
from .rate_limiter import RateLimiter
from .rebuild_scheduler import RayBundleScheduler
from .simulation import SimulationSession, SessionFrame, Preset

__all__ = [
    'TransmitterSet',
    'RateLimiter',
    'RayBundleScheduler',
    'SimulationSession',
    'SessionFrame',
    'Preset',
]
