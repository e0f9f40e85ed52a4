# Licensed under the PolyForm Noncommercial License 1.0.0
"""Planet model and stateless atmospheric physics helpers."""

from dataclasses import dataclass, field
from typing import Union
import math

import numpy as np

from .models import ConfigurationError, KARMAN_LINE
from .vector import Vector2, safe_normalize

AIR_GAMMA = 1.4  # Heat capacity ratio
AIR_GAS_CONSTANT = 287.0  # Specific gas constant (J/(kg K))


@dataclass(frozen=True)
class WorldParameters:
    """
    Immutable toy-planet model: small radius, Earth-like surface gravity and air.

    Attributes:
        planet_radius: Planet radius (m)
        surface_gravity: Gravitational acceleration at the surface (m/s^2)
        atmosphere_scale_height: Exponential atmosphere scale height (m)
        surface_density: Air density at sea level (kg/m^3)
        earth_rotation_rate: Planet spin rate (rad/s)
        max_dynamic_pressure: Max-Q limit used for warnings (Pa)
        gravitational_parameter: Derived mu = g * R^2 (m^3/s^2)
    """
    planet_radius: float = 350_000.0
    surface_gravity: float = 9.81
    atmosphere_scale_height: float = 7_000.0
    surface_density: float = 1.2
    earth_rotation_rate: float = 7.2921159e-5
    max_dynamic_pressure: float = 50_000.0
    gravitational_parameter: float = field(init=False)

    def __post_init__(self):
        if self.planet_radius <= 0:
            raise ConfigurationError(f"planet_radius must be positive, got {self.planet_radius}")
        if self.surface_gravity <= 0:
            raise ConfigurationError(f"surface_gravity must be positive, got {self.surface_gravity}")
        if self.atmosphere_scale_height <= 0:
            raise ConfigurationError(
                f"atmosphere_scale_height must be positive, got {self.atmosphere_scale_height}")
        if self.surface_density < 0:
            raise ConfigurationError(f"surface_density must be non-negative, got {self.surface_density}")
        object.__setattr__(self, "gravitational_parameter",
                           self.surface_gravity * self.planet_radius ** 2)

    def get_altitude(self, position_magnitude: float) -> float:
        """Altitude above the surface for a distance from the planet centre."""
        return position_magnitude - self.planet_radius

    def get_atmospheric_density(self, altitude: float) -> float:
        """Exponential density; always > 0, never exactly zero."""
        return calculate_density(altitude, self.surface_density, self.atmosphere_scale_height)

    def get_gravitational_acceleration(self, distance: float) -> float:
        return self.gravitational_parameter / (distance * distance)

    def is_below_surface(self, position_magnitude: float) -> bool:
        return position_magnitude < self.planet_radius

    def is_in_space(self, altitude: float) -> bool:
        return altitude > KARMAN_LINE

    def is_in_atmosphere(self, altitude: float) -> bool:
        return altitude < 70_000

    def get_circular_orbit_velocity(self, altitude: float) -> float:
        return math.sqrt(self.gravitational_parameter / (self.planet_radius + altitude))

    def get_escape_velocity(self, altitude: float) -> float:
        return math.sqrt(2 * self.gravitational_parameter / (self.planet_radius + altitude))

    def get_speed_of_sound(self, altitude: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
        """
        Local speed of sound from a layered temperature profile.

        Args:
            altitude: Altitude above the surface (m). Can be float or np.ndarray.

        Returns:
            Speed of sound in m/s (at least 1 m/s)
        """
        temperature = _temperature_kelvin(altitude)
        sos = np.maximum(np.sqrt(AIR_GAMMA * AIR_GAS_CONSTANT * temperature), 1.0)
        if np.ndim(altitude) == 0:
            return float(sos[0])
        return sos

    def get_ground_velocity_at(self, position: Vector2) -> Vector2:
        """Tangential velocity of the rotating surface/atmosphere under `position`."""
        omega = self.earth_rotation_rate
        r = position.magnitude()
        if r < 1e-6 or omega == 0:
            return Vector2.zero()
        return safe_normalize(position).perpendicular() * (omega * r)


def _temperature_kelvin(altitude: Union[float, np.ndarray]) -> np.ndarray:
    altitude = np.atleast_1d(np.asarray(altitude, dtype=float))
    T = np.empty_like(altitude)

    # Upper atmosphere
    mask = altitude > 25000
    T[mask] = -131.21 + 0.00299 * altitude[mask]

    # Lower stratosphere
    mask = (altitude > 11000) & (altitude <= 25000)
    T[mask] = -56.46

    # Troposphere
    mask = altitude <= 11000
    T[mask] = 15.04 - 0.00649 * altitude[mask]

    return np.maximum(T + 273.1, 1.0)


def calculate_density(altitude: float, surface_density: float, scale_height: float) -> float:
    """rho(h) = rho0 * exp(-h / H)"""
    return surface_density * math.exp(-altitude / scale_height)


def calculate_drag_force(velocity: Vector2, density: float,
                         drag_coefficient: float, cross_sectional_area: float) -> Vector2:
    """
    Drag force F = 0.5 * rho * v^2 * Cd * A, directed opposite to velocity.

    Returns the zero vector when the speed is exactly zero.
    """
    speed = velocity.magnitude()
    if speed == 0:
        return Vector2.zero()
    drag_magnitude = 0.5 * density * speed * speed * drag_coefficient * cross_sectional_area
    return velocity * (-drag_magnitude / speed)


def calculate_dynamic_pressure(velocity: Vector2, density: float) -> float:
    """q = 0.5 * rho * v^2"""
    speed = velocity.magnitude()
    return 0.5 * density * speed * speed


def calculate_heat_flux(velocity: Vector2, density: float) -> float:
    # Gameplay heating cue, proportional to rho * v^3
    speed = velocity.magnitude()
    return calculate_dynamic_pressure(velocity, density) * speed * 0.001


def is_overpressure(dynamic_pressure: float, max_q: float) -> bool:
    return dynamic_pressure > max_q


def calculate_terminal_velocity(mass: float, density: float, drag_coefficient: float,
                                cross_sectional_area: float, gravity: float) -> float:
    """
    Speed at which drag balances weight.

    Returns +inf when there is no air (density == 0).
    """
    if density == 0:
        return math.inf
    return math.sqrt((2 * mass * gravity) / (density * drag_coefficient * cross_sectional_area))


def calculate_heat_buildup(dynamic_pressure: float, delta_time: float) -> float:
    """Heat gained over `delta_time` from dynamic pressure, capped at 100 (%)."""
    if dynamic_pressure <= 0:
        return 0.0
    return min((dynamic_pressure / 1000) * delta_time, 100.0)


def is_overheating(dynamic_pressure: float) -> bool:
    return dynamic_pressure > 50_000
