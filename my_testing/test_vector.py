"""Unit tests for the immutable 2D vector."""

import dataclasses
import math

import numpy as np
import pytest

from launchSimulator import Vector2, safe_normalize


def test_vector_arithmetic_returns_new_instances():
    """Operators build new vectors and leave the operands untouched."""
    a = Vector2(1.0, 2.0)
    b = Vector2(3.0, -1.0)

    assert a + b == Vector2(4.0, 1.0)
    assert a - b == Vector2(-2.0, 3.0)
    assert a * 2 == Vector2(2.0, 4.0)
    assert 2 * a == Vector2(2.0, 4.0)
    assert a / 2 == Vector2(0.5, 1.0)
    assert -a == Vector2(-1.0, -2.0)
    assert a == Vector2(1.0, 2.0)


def test_vector_is_frozen():
    """Assigning to a component raises."""
    v = Vector2(1.0, 1.0)
    with pytest.raises(dataclasses.FrozenInstanceError):
        v.x = 5.0


def test_dot_and_cross():
    """Dot product and scalar cross product."""
    assert Vector2(1.0, 2.0).dot(Vector2(3.0, -1.0)) == 1.0
    assert Vector2(1.0, 0.0).cross(Vector2(0.0, 1.0)) == 1.0
    assert Vector2(0.0, 1.0).cross(Vector2(1.0, 0.0)) == -1.0


def test_magnitude_and_normalized():
    """3-4-5 triangle; the zero vector normalises to zero."""
    v = Vector2(3.0, 4.0)
    assert v.magnitude() == 5.0
    assert v.magnitude_squared() == 25.0
    assert v.normalized().equals(Vector2(0.6, 0.8))
    assert Vector2.zero().normalized() == Vector2.zero()


def test_angle_to_is_unsigned_and_zero_safe():
    """Angle between vectors in [0, pi], 0 when either is zero."""
    assert np.isclose(Vector2(1.0, 0.0).angle_to(Vector2(0.0, 2.0)), math.pi / 2)
    assert np.isclose(Vector2(1.0, 0.0).angle_to(Vector2(-1.0, 0.0)), math.pi)
    assert Vector2.zero().angle_to(Vector2(1.0, 0.0)) == 0.0


def test_rotation_helpers():
    """rotated, perpendicular and from_angle agree with each other."""
    assert Vector2(1.0, 0.0).rotated(math.pi / 2).equals(Vector2(0.0, 1.0), 1e-12)
    assert Vector2(1.0, 0.0).perpendicular() == Vector2(0.0, 1.0)
    assert Vector2.from_angle(math.pi / 2, 10.0).equals(Vector2(0.0, 10.0), 1e-9)
    assert np.isclose(Vector2(0.0, 3.0).angle(), math.pi / 2)
    assert Vector2(0.0, 0.0).distance_to(Vector2(3.0, 4.0)) == 5.0


def test_safe_normalize_falls_back_on_tiny_vectors():
    """Below 1 mm the fallback (default straight down) is returned."""
    assert safe_normalize(Vector2(0.0001, 0.0)) == Vector2(0.0, -1.0)
    assert safe_normalize(Vector2.zero(), fallback=Vector2(1.0, 0.0)) == Vector2(1.0, 0.0)
    assert safe_normalize(Vector2(0.0, 5.0)) == Vector2(0.0, 1.0)


def test_array_conversion():
    """Conversion to and from numpy arrays."""
    v = Vector2(1.5, -2.5)
    assert np.array_equal(v.as_array(), np.array([1.5, -2.5]))
    assert Vector2.from_array(np.array([1.5, -2.5])) == v
