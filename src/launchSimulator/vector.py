# Licensed under the PolyForm Noncommercial License 1.0.0
"""Immutable 2D vector used throughout the flight simulation."""

from dataclasses import dataclass
import math

import numpy as np


@dataclass(frozen=True)
class Vector2:
    """
    Value-type 2D vector (metres or metres per second).

    Every operation returns a new instance; nothing mutates in place.
    """
    x: float = 0.0
    y: float = 0.0

    @staticmethod
    def zero() -> "Vector2":
        return Vector2(0.0, 0.0)

    @staticmethod
    def up() -> "Vector2":
        return Vector2(0.0, 1.0)

    @staticmethod
    def right() -> "Vector2":
        return Vector2(1.0, 0.0)

    @staticmethod
    def from_angle(angle: float, magnitude: float = 1.0) -> "Vector2":
        """Vector of given magnitude pointing along `angle` (radians from +x)."""
        return Vector2(math.cos(angle) * magnitude, math.sin(angle) * magnitude)

    @staticmethod
    def from_array(arr) -> "Vector2":
        return Vector2(float(arr[0]), float(arr[1]))

    def __add__(self, other: "Vector2") -> "Vector2":
        return Vector2(self.x + other.x, self.y + other.y)

    def __sub__(self, other: "Vector2") -> "Vector2":
        return Vector2(self.x - other.x, self.y - other.y)

    def __mul__(self, scalar: float) -> "Vector2":
        return Vector2(self.x * scalar, self.y * scalar)

    __rmul__ = __mul__

    def __truediv__(self, scalar: float) -> "Vector2":
        return Vector2(self.x / scalar, self.y / scalar)

    def __neg__(self) -> "Vector2":
        return Vector2(-self.x, -self.y)

    def dot(self, other: "Vector2") -> float:
        return self.x * other.x + self.y * other.y

    def cross(self, other: "Vector2") -> float:
        """Scalar z-component of the 3D cross product."""
        return self.x * other.y - self.y * other.x

    def magnitude(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y)

    def magnitude_squared(self) -> float:
        return self.x * self.x + self.y * self.y

    def normalized(self) -> "Vector2":
        """Unit vector in the same direction; the zero vector stays zero."""
        mag = self.magnitude()
        return self / mag if mag > 0 else Vector2.zero()

    def angle(self) -> float:
        return math.atan2(self.y, self.x)

    def angle_to(self, other: "Vector2") -> float:
        """Unsigned angle between two vectors in [0, pi]; 0 if either is zero."""
        mag1 = self.magnitude()
        mag2 = other.magnitude()
        if mag1 == 0 or mag2 == 0:
            return 0.0
        cos_angle = self.dot(other) / (mag1 * mag2)
        return math.acos(max(-1.0, min(1.0, cos_angle)))

    def distance_to(self, other: "Vector2") -> float:
        return (self - other).magnitude()

    def rotated(self, angle: float) -> "Vector2":
        c, s = math.cos(angle), math.sin(angle)
        return Vector2(self.x * c - self.y * s, self.x * s + self.y * c)

    def perpendicular(self) -> "Vector2":
        """Vector rotated 90 degrees counter-clockwise."""
        return Vector2(-self.y, self.x)

    def equals(self, other: "Vector2", tolerance: float = 1e-10) -> bool:
        return abs(self.x - other.x) < tolerance and abs(self.y - other.y) < tolerance

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=float)

    def __str__(self) -> str:
        return f"({self.x:.2f}, {self.y:.2f})"


def safe_normalize(vector: Vector2, fallback: Vector2 = Vector2(0.0, -1.0)) -> Vector2:
    """
    Normalize `vector`, returning `fallback` when it is (nearly) zero-length.

    Degenerate vectors show up routinely (rocket exactly at rest, body at the
    planet centre), so this never raises.
    """
    magnitude = vector.magnitude()
    if magnitude < 0.001:
        return fallback
    return vector / magnitude
