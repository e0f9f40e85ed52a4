"""Unit tests for orbital mechanics, the trajectory preview and its cache."""

import math

import numpy as np

from launchSimulator import TrajectoryProjector, Vector2, WorldParameters, project_trajectory, reference_trajectory
from launchSimulator.orbital import (
    calculate_apoapsis,
    calculate_circular_velocity,
    calculate_eccentricity,
    calculate_escape_velocity,
    calculate_orbital_period,
    calculate_periapsis,
    compute_apo_peri,
    compute_orbital_elements,
    get_prograde_direction,
    get_retrograde_direction,
    is_stable_orbit,
    projection_timestep,
    two_body_acceleration,
)

WORLD = WorldParameters()
MU = WORLD.gravitational_parameter
R = WORLD.planet_radius


def circular_state(altitude):
    r = R + altitude
    return Vector2(r, 0.0), Vector2(0.0, calculate_circular_velocity(r, MU))


def test_circular_orbit_apsides():
    """A circular orbit has equal apsides and zero eccentricity."""
    position, velocity = circular_state(100_000)
    apo, peri = compute_apo_peri(position, velocity, MU, R)
    assert np.isclose(apo, 100_000, atol=1.0)
    assert np.isclose(peri, 100_000, atol=1.0)
    assert calculate_eccentricity(position, velocity, MU) < 1e-6

    elements = compute_orbital_elements(position, velocity, MU, R)
    assert elements.is_closed
    assert np.isclose(elements.semi_major_axis, R + 100_000)
    assert np.isclose(elements.periapsis_altitude, 100_000, atol=1.0)


def test_escape_trajectory_apsides():
    """Positive energy: apoapsis +inf, periapsis -inf."""
    r = R + 100_000
    position = Vector2(r, 0.0)
    velocity = Vector2(0.0, 1.1 * calculate_escape_velocity(r, MU))
    assert calculate_apoapsis(position, velocity, MU, R) == math.inf
    assert calculate_periapsis(position, velocity, MU, R) == -math.inf
    assert not compute_orbital_elements(position, velocity, MU, R).is_closed


def test_vertical_drop_apsides():
    """At rest the apoapsis is the current altitude and the periapsis is the planet centre."""
    position = Vector2(0.0, R + 10_000)
    apo, peri = compute_apo_peri(position, Vector2.zero(), MU, R)
    assert np.isclose(apo, 10_000)
    assert np.isclose(peri, -R)


def test_stable_orbit_helper_uses_70km_floor():
    """Closed, e <= 0.1 and periapsis at least 70 km."""
    assert is_stable_orbit(100_000, 100_000, 0.0)
    assert is_stable_orbit(100_000, 75_000, 0.05)
    assert not is_stable_orbit(100_000, 65_000, 0.05)
    assert not is_stable_orbit(100_000, 90_000, 0.2)
    assert not is_stable_orbit(math.inf, 90_000, 0.0)


def test_velocity_helpers():
    """Circular, escape, period and direction helpers."""
    r = R + 100_000
    assert np.isclose(calculate_escape_velocity(r, MU), math.sqrt(2) * calculate_circular_velocity(r, MU))
    assert np.isclose(calculate_orbital_period(r, MU), 2 * math.pi * math.sqrt(r ** 3 / MU))
    assert calculate_orbital_period(math.inf, MU) == math.inf
    assert get_prograde_direction(Vector2(0.0, 5.0)) == Vector2(0.0, 1.0)
    assert get_retrograde_direction(Vector2(0.0, 5.0)) == Vector2(0.0, -1.0)

    ax, ay = two_body_acceleration(r, 0.0, MU)
    assert np.isclose(ax, -MU / r ** 2)
    assert ay == 0.0


def test_projection_timestep_buckets():
    """1 s for the first hour, then 5, 15 and 30 s."""
    assert projection_timestep(0) == 1.0
    assert projection_timestep(3_600) == 5.0
    assert projection_timestep(4 * 3_600) == 15.0
    assert projection_timestep(7 * 3_600) == 30.0


def test_projection_of_stable_orbit_stops_after_one_revolution():
    """A stable ellipse is previewed for one revolution, not the full horizon."""
    position, velocity = circular_state(100_000)
    period = calculate_orbital_period(R + 100_000, MU)
    result = project_trajectory(position, velocity, WORLD)

    assert result.stable_orbit
    assert result.points.shape[1] == 2
    assert period * 0.9 < len(result.points) < period * 1.1
    assert np.isclose(result.apo_alt, 100_000, atol=1.0)
    assert result.apo_pos is not None
    assert result.peri_pos is not None


def test_projection_of_escape_trajectory():
    """Hyperbolic previews stop past six planet radii with apoapsis at infinity."""
    r = R + 100_000
    position = Vector2(r, 0.0)
    velocity = Vector2(0.0, 1.5 * calculate_escape_velocity(r, MU))
    result = project_trajectory(position, velocity, WORLD)

    assert result.apo_alt == math.inf
    assert not result.stable_orbit
    assert result.eccentricity > 1
    assert len(result.points) < 3_600
    assert np.hypot(*result.points[-1]) > 6 * R
    assert result.apo_pos is not None


def test_projection_stops_at_surface_impact():
    """A ballistic drop ends when the preview reaches the surface."""
    result = project_trajectory(Vector2(0.0, R + 10_000), Vector2.zero(), WORLD)
    assert not result.stable_orbit
    assert 30 < len(result.points) < 100
    assert np.all(np.hypot(result.points[:, 0], result.points[:, 1]) > R)


def test_projector_caches_and_rate_limits():
    """Recompute when forced, or when the velocity changed and the interval elapsed."""
    now = [0.0]
    projector = TrajectoryProjector(WORLD, clock=lambda: now[0], sim_seconds=60)
    position = Vector2(0.0, R + 50_000)
    velocity = Vector2(1_000.0, 0.0)

    projector.get(position, velocity, False, 0)
    projector.get(position, velocity, False, 0)
    assert projector.recompute_count == 1

    now[0] = 0.5
    projector.get(position, velocity + Vector2(5.0, 0.0), False, 0)
    assert projector.recompute_count == 1

    now[0] = 1.5
    projector.get(position, velocity + Vector2(5.0, 0.0), False, 0)
    assert projector.recompute_count == 2

    projector.get(position, velocity + Vector2(5.0, 0.0), True, 0)
    assert projector.recompute_count == 3

    projector.get(position, velocity + Vector2(5.0, 0.0), True, 1)
    assert projector.recompute_count == 4

    projector.invalidate()
    projector.get(position, velocity + Vector2(5.0, 0.0), True, 1)
    assert projector.recompute_count == 5


def test_projector_slows_down_while_coasting_in_vacuum():
    """Unpowered above 80 km the recompute interval is ten seconds."""
    now = [0.0]
    projector = TrajectoryProjector(WORLD, clock=lambda: now[0], sim_seconds=60)
    position, velocity = circular_state(100_000)

    projector.get(position, velocity, False, 0)
    now[0] = 5.0
    projector.get(position, velocity + Vector2(10.0, 0.0), False, 0)
    assert projector.recompute_count == 1

    now[0] = 10.5
    projector.get(position, velocity + Vector2(10.0, 0.0), False, 0)
    assert projector.recompute_count == 2


def test_reference_trajectory_keeps_circular_radius():
    """The high-accuracy propagator holds a circular orbit to within a metre."""
    position, velocity = circular_state(100_000)
    ref = reference_trajectory(position, velocity, WORLD, duration=1_000)

    assert not ref["impact"]
    assert np.isclose(ref["t"][-1], 1_000)
    assert np.allclose(ref["altitude"], 100_000, atol=1.0)


def test_reference_trajectory_detects_impact():
    """A drop from 10 km terminates at the surface."""
    ref = reference_trajectory(Vector2(0.0, R + 10_000), Vector2.zero(), WORLD, duration=500)
    assert ref["impact"]
    assert ref["t"][-1] < 100
    assert np.isclose(ref["altitude"][-1], 0.0, atol=1.0)
