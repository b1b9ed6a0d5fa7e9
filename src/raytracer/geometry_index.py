"""
Geometry Index Interface and Reference Triangle Index

The engine only consumes a nearest-hit query against city surfaces. The
acceleration structure itself belongs to the scene layer; this module
defines the query contract plus a numpy reference index used by the
standalone demo and the test suite.

Query contract:
    nearest_hit(origin, direction, max_distance) -> Optional[SurfaceHit]

Failures of the index degrade to "no intersection" through
safe_nearest_hit(), so callers treat a broken or unbuilt index as open
space.
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional, List, Tuple, Protocol
import logging

from common.constants import EPSILON
from common.vector_math import as_vec3, normalize, VectorLike
from .materials import MaterialClass

logger = logging.getLogger(__name__)


class GeometryIndexError(RuntimeError):
    """Raised by a geometry index that cannot answer a query."""


@dataclass(frozen=True)
class SurfaceHit:
    """
    Nearest intersection of a ray with a city surface.

    Attributes:
        point: Hit point in scene space (m)
        distance: Distance from the ray origin (m)
        normal: Unit surface normal, facing the incoming ray
        material: Material class of the surface
    """
    point: np.ndarray
    distance: float
    normal: np.ndarray
    material: MaterialClass


class GeometryIndex(Protocol):
    """Read-only nearest-hit query over city surfaces."""

    def nearest_hit(
        self,
        origin: VectorLike,
        direction: VectorLike,
        max_distance: float,
    ) -> Optional[SurfaceHit]:
        ...


def safe_nearest_hit(
    index: Optional[GeometryIndex],
    origin: VectorLike,
    direction: VectorLike,
    max_distance: float,
) -> Optional[SurfaceHit]:
    """
    Query an index, treating any failure as open space.

    Args:
        index: Geometry index, or None when the scene is not loaded
        origin: Ray origin
        direction: Ray direction (need not be normalized)
        max_distance: Query range (m)

    Returns:
        SurfaceHit or None
    """
    if index is None or max_distance <= 0:
        return None

    try:
        return index.nearest_hit(origin, direction, max_distance)
    except GeometryIndexError as e:
        logger.debug(f"Geometry index unavailable, treating as open space: {e}")
        return None
    except Exception as e:
        logger.warning(f"Geometry index query failed, treating as open space: {e}",
                       exc_info=True)
        return None


class TriangleMeshIndex:
    """
    Brute-force triangle index with vectorised Moller-Trumbore intersection.

    Triangles are two-sided. Hit normals are flipped to face the incoming
    ray so mirror reflection always sends the ray back off the surface.

    Example:
        index = TriangleMeshIndex()
        index.add_box((-10, 0, -10), (10, 40, 10), MaterialClass.GLASS)
        index.add_ground_plane(500.0, MaterialClass.TERRAIN)
        index.build()

        hit = index.nearest_hit((0, 20, -100), (0, 0, 1), 5000.0)
    """

    def __init__(self):
        self._pending_vertices: List[np.ndarray] = []
        self._pending_materials: List[MaterialClass] = []

        self._v0: Optional[np.ndarray] = None
        self._edge1: Optional[np.ndarray] = None
        self._edge2: Optional[np.ndarray] = None
        self._normals: Optional[np.ndarray] = None
        self._materials: Tuple[MaterialClass, ...] = ()

    @property
    def is_built(self) -> bool:
        return self._v0 is not None

    @property
    def triangle_count(self) -> int:
        if self.is_built:
            return len(self._materials)
        return len(self._pending_materials)

    def add_triangles(self, vertices: np.ndarray, material: MaterialClass) -> None:
        """
        Add triangles sharing one material.

        Args:
            vertices: Array of shape (n, 3, 3), three corners per triangle
            material: Material class of all the triangles
        """
        if self.is_built:
            raise GeometryIndexError("Cannot add triangles to a built index")

        tris = np.asarray(vertices, dtype=np.float64).reshape(-1, 3, 3)
        for tri in tris:
            self._pending_vertices.append(tri)
            self._pending_materials.append(material)

    def add_box(self, box_min: VectorLike, box_max: VectorLike, material: MaterialClass) -> None:
        """Add an axis-aligned box (12 triangles)."""
        x0, y0, z0 = as_vec3(box_min)
        x1, y1, z1 = as_vec3(box_max)

        c = np.array([
            [x0, y0, z0], [x1, y0, z0], [x1, y1, z0], [x0, y1, z0],
            [x0, y0, z1], [x1, y0, z1], [x1, y1, z1], [x0, y1, z1],
        ])
        faces = [
            (0, 1, 2), (0, 2, 3),  # -z
            (4, 6, 5), (4, 7, 6),  # +z
            (0, 4, 5), (0, 5, 1),  # -y
            (3, 2, 6), (3, 6, 7),  # +y
            (0, 3, 7), (0, 7, 4),  # -x
            (1, 5, 6), (1, 6, 2),  # +x
        ]
        self.add_triangles(np.array([[c[a], c[b], c[d]] for a, b, d in faces]), material)

    def add_ground_plane(self, half_size: float, material: MaterialClass, height: float = 0.0) -> None:
        """Add a square horizontal plane centred on the origin."""
        s = half_size
        h = height
        quad = np.array([
            [[-s, h, -s], [s, h, -s], [s, h, s]],
            [[-s, h, -s], [s, h, s], [-s, h, s]],
        ])
        self.add_triangles(quad, material)

    def build(self) -> 'TriangleMeshIndex':
        """Freeze pending triangles into query arrays."""
        if not self._pending_vertices:
            tris = np.zeros((0, 3, 3))
        else:
            tris = np.stack(self._pending_vertices)

        self._v0 = tris[:, 0, :]
        self._edge1 = tris[:, 1, :] - tris[:, 0, :]
        self._edge2 = tris[:, 2, :] - tris[:, 0, :]

        normals = np.cross(self._edge1, self._edge2)
        lengths = np.linalg.norm(normals, axis=1, keepdims=True)
        self._normals = normals / np.maximum(lengths, EPSILON)
        self._materials = tuple(self._pending_materials)

        self._pending_vertices = []
        self._pending_materials = []

        logger.info(f"TriangleMeshIndex built: {len(self._materials)} triangles")
        return self

    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """Axis-aligned bounds (min, max) of all triangles."""
        if not self.is_built or len(self._materials) == 0:
            raise GeometryIndexError("Index has no geometry")

        corners = np.concatenate([
            self._v0,
            self._v0 + self._edge1,
            self._v0 + self._edge2,
        ])
        return corners.min(axis=0), corners.max(axis=0)

    def nearest_hit(
        self,
        origin: VectorLike,
        direction: VectorLike,
        max_distance: float,
    ) -> Optional[SurfaceHit]:
        """
        Closest intersection along a ray within max_distance.

        Raises:
            GeometryIndexError: If build() has not been called
        """
        if not self.is_built:
            raise GeometryIndexError("Index not built")
        if len(self._materials) == 0:
            return None

        o = as_vec3(origin)
        d = normalize(direction)

        h = np.cross(d, self._edge2)
        a = np.einsum('ij,ij->i', self._edge1, h)
        valid = np.abs(a) > 1e-12
        inv_a = np.zeros_like(a)
        inv_a[valid] = 1.0 / a[valid]

        s = o - self._v0
        u = inv_a * np.einsum('ij,ij->i', s, h)
        q = np.cross(s, self._edge1)
        v = inv_a * (q @ d)
        t = inv_a * np.einsum('ij,ij->i', self._edge2, q)

        hit = (
            valid
            & (u >= 0.0) & (u <= 1.0)
            & (v >= 0.0) & (u + v <= 1.0)
            & (t > EPSILON) & (t <= max_distance)
        )
        if not np.any(hit):
            return None

        candidates = np.where(hit, t, np.inf)
        idx = int(np.argmin(candidates))
        dist = float(candidates[idx])

        normal = self._normals[idx].copy()
        if np.dot(normal, d) > 0:
            normal = -normal

        return SurfaceHit(
            point=o + d * dist,
            distance=dist,
            normal=normal,
            material=self._materials[idx],
        )
