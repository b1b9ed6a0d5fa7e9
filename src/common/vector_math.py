"""
Vector Math Utilities for Scene Space

This module provides the small set of 3D vector operations the engine
needs: guarded normalization, distances, mirror reflection, interpolation
and deterministic direction sampling. Scene space is metres with Y up.
"""

import numpy as np
from typing import Sequence, Union

from .constants import EPSILON

VectorLike = Union[Sequence[float], np.ndarray]

UP = np.array([0.0, 1.0, 0.0])


def as_vec3(value: VectorLike) -> np.ndarray:
    """
    Coerce a 3-sequence to a float64 numpy vector

    Args:
        value: Any 3-element sequence

    Returns:
        Fresh numpy array of shape (3,)
    """
    vec = np.array(value, dtype=np.float64).reshape(3)
    return vec


def normalize(vec: VectorLike, fallback: VectorLike = UP) -> np.ndarray:
    """
    Return the unit vector along vec

    Zero-length (or non-finite) input returns the fallback instead of
    dividing by zero.

    Args:
        vec: Input vector
        fallback: Direction returned for degenerate input

    Returns:
        Unit vector
    """
    v = as_vec3(vec)
    length = np.linalg.norm(v)
    if not np.isfinite(length) or length < EPSILON:
        return as_vec3(fallback)
    return v / length


def distance(a: VectorLike, b: VectorLike) -> float:
    """Euclidean distance between two points (metres)"""
    return float(np.linalg.norm(as_vec3(b) - as_vec3(a)))


def direction_and_distance(origin: VectorLike, target: VectorLike):
    """
    Unit direction from origin to target, plus the distance

    Coincident points yield the UP fallback and zero distance.
    """
    delta = as_vec3(target) - as_vec3(origin)
    dist = float(np.linalg.norm(delta))
    return normalize(delta), dist


def reflect(direction: VectorLike, normal: VectorLike) -> np.ndarray:
    """
    Mirror reflection of a direction about a surface normal

    r = d - 2 (d . n) n

    Args:
        direction: Incident direction
        normal: Surface normal (normalized internally)

    Returns:
        Unit reflected direction
    """
    d = normalize(direction)
    n = normalize(normal)
    return normalize(d - 2.0 * np.dot(d, n) * n, fallback=-d)


def lerp(a: VectorLike, b: VectorLike, t: float) -> np.ndarray:
    """Linear interpolation between two points"""
    a = as_vec3(a)
    return a + (as_vec3(b) - a) * t


def fibonacci_sphere(n: int) -> np.ndarray:
    """
    Near-uniform unit directions on the sphere (Fibonacci lattice)

    Deterministic for a given n: y runs from +1 to -1 and successive
    points advance by the golden angle in azimuth.

    Args:
        n: Number of directions

    Returns:
        Array of shape (n, 3) of unit vectors
    """
    if n <= 0:
        return np.zeros((0, 3))

    golden_angle = np.pi * (3.0 - np.sqrt(5.0))
    i = np.arange(n, dtype=np.float64)

    y = 1.0 - (i / max(n - 1, 1)) * 2.0
    radius = np.sqrt(np.maximum(1.0 - y * y, 0.0))
    theta = golden_angle * i

    dirs = np.column_stack([np.cos(theta) * radius, y, np.sin(theta) * radius])
    norms = np.linalg.norm(dirs, axis=1, keepdims=True)
    return dirs / np.maximum(norms, EPSILON)
