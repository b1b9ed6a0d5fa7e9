"""
Unit Tests for Vector Math Utilities

Tests guarded normalization, reflection and Fibonacci-sphere sampling.
"""

import pytest
import numpy as np
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent / 'src'))

from common.vector_math import (
    UP,
    as_vec3,
    normalize,
    distance,
    direction_and_distance,
    reflect,
    lerp,
    fibonacci_sphere,
)


class TestNormalize:

    def test_unit_length(self):
        v = normalize((3.0, 4.0, 0.0))
        np.testing.assert_allclose(v, [0.6, 0.8, 0.0])

    def test_zero_vector_returns_fallback(self):
        np.testing.assert_array_equal(normalize((0, 0, 0)), UP)

    def test_custom_fallback(self):
        np.testing.assert_array_equal(normalize((0, 0, 0), fallback=(1, 0, 0)), [1, 0, 0])

    def test_nan_returns_fallback(self):
        np.testing.assert_array_equal(normalize((np.nan, 0, 0)), UP)

    def test_as_vec3_copies(self):
        src = np.array([1.0, 2.0, 3.0])
        out = as_vec3(src)
        out[0] = 99.0
        assert src[0] == 1.0


class TestDistances:

    def test_distance(self):
        assert distance((0, 0, 0), (1, 2, 2)) == pytest.approx(3.0)

    def test_direction_and_distance(self):
        d, dist = direction_and_distance((0, 0, 0), (0, 0, 10))
        np.testing.assert_allclose(d, [0, 0, 1])
        assert dist == pytest.approx(10.0)

    def test_coincident_points(self):
        d, dist = direction_and_distance((5, 5, 5), (5, 5, 5))
        assert dist == 0.0
        assert np.all(np.isfinite(d))

    def test_lerp(self):
        np.testing.assert_allclose(lerp((0, 0, 0), (10, 20, 30), 0.5), [5, 10, 15])


class TestReflect:

    def test_mirror_on_floor(self):
        r = reflect((1, -1, 0), (0, 1, 0))
        np.testing.assert_allclose(r, np.array([1, 1, 0]) / np.sqrt(2))

    def test_head_on_reverses(self):
        np.testing.assert_allclose(reflect((0, 0, 1), (0, 0, -1)), [0, 0, -1])

    def test_normal_sign_irrelevant(self):
        np.testing.assert_allclose(reflect((1, -2, 0.5), (0, 1, 0)), reflect((1, -2, 0.5), (0, -1, 0)))

    def test_result_is_unit(self):
        r = reflect((3, -4, 12), (0.2, 1, 0.1))
        assert np.linalg.norm(r) == pytest.approx(1.0)


class TestFibonacciSphere:

    def test_shape_and_unit_length(self):
        dirs = fibonacci_sphere(260)
        assert dirs.shape == (260, 3)
        np.testing.assert_allclose(np.linalg.norm(dirs, axis=1), 1.0)

    def test_deterministic(self):
        np.testing.assert_array_equal(fibonacci_sphere(120), fibonacci_sphere(120))

    def test_poles(self):
        dirs = fibonacci_sphere(50)
        assert dirs[0, 1] == pytest.approx(1.0)
        assert dirs[-1, 1] == pytest.approx(-1.0)

    def test_roughly_uniform(self):
        """Mean direction of a near-uniform sampling is close to zero"""
        dirs = fibonacci_sphere(500)
        assert np.linalg.norm(dirs.mean(axis=0)) < 0.05

    @pytest.mark.parametrize("n", [0, -3])
    def test_empty(self, n):
        assert fibonacci_sphere(n).shape == (0, 3)

    def test_single_direction(self):
        dirs = fibonacci_sphere(1)
        assert dirs.shape == (1, 3)
        assert np.linalg.norm(dirs[0]) == pytest.approx(1.0)
