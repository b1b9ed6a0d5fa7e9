"""
Path-Loss Model

Pure functions for the two loss terms of the propagation engine:
- Free space path loss (spreading loss over distance)
- Material reflection loss, dependent on grazing angle

Both are deterministic and never fail: degenerate inputs are clamped to
finite values before any logarithm or division.
"""

import numpy as np

from common.constants import (
    FSPL_CONSTANT_DB,
    MIN_PATH_DISTANCE_M,
    METERS_PER_KM,
    EPSILON,
)
from common.vector_math import normalize, VectorLike
from .materials import MaterialClass, reflection_band


def free_space_path_loss(distance_m: float, frequency_mhz: float) -> float:
    """
    Free Space Path Loss in the MHz/km form.

    FSPL(dB) = 32.4 + 20*log10(f_MHz) + 20*log10(d_km)

    Args:
        distance_m: Distance in metres, floored at 1 m
        frequency_mhz: Carrier frequency in MHz

    Returns:
        Path loss in dB
    """
    d_km = max(float(distance_m), MIN_PATH_DISTANCE_M) / METERS_PER_KM
    f_mhz = max(float(frequency_mhz), EPSILON)
    return FSPL_CONSTANT_DB + 20.0 * np.log10(f_mhz) + 20.0 * np.log10(d_km)


def grazing_factor(normal: VectorLike, incident: VectorLike) -> float:
    """
    Grazing factor 1 - |n.i|: 0 at normal incidence, 1 at grazing.
    """
    n = normalize(normal)
    i = normalize(incident)
    return float(np.clip(1.0 - abs(np.dot(n, i)), 0.0, 1.0))


def reflection_loss(material: MaterialClass, normal: VectorLike, incident: VectorLike) -> float:
    """
    Reflection loss for a bounce off a surface.

    The loss moves linearly across the material band with the grazing
    factor:
        glass            10 - 20 dB
        metal             0 -  3 dB
        concrete/other    3 -  9 dB

    Args:
        material: Material class of the hit surface
        normal: Surface normal
        incident: Incoming ray direction

    Returns:
        Reflection loss in dB
    """
    low, high = reflection_band(material)
    return low + (high - low) * grazing_factor(normal, incident)


def dbm_to_watts(power_dbm: float) -> float:
    """Convert dBm to watts."""
    return 10.0 ** ((power_dbm - 30.0) / 10.0)


def amplitude_from_dbm(power_dbm: float) -> float:
    """Field amplitude proxy, the square root of power in watts."""
    return float(np.sqrt(dbm_to_watts(power_dbm)))
