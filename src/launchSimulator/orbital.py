# Licensed under the PolyForm Noncommercial License 1.0.0
"""Two-body orbital elements, trajectory preview and reference propagation."""

from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple
import logging
import math
import time

import numpy as np
from scipy.integrate import solve_ivp

from .guidance import wrap_angle
from .models import ATMOSPHERE_LIMIT_ALTITUDE, HELPER_STABLE_ORBIT_PERIAPSIS, STABLE_ORBIT_PERIAPSIS
from .vector import Vector2
from .world import WorldParameters

logger = logging.getLogger(__name__)

PROJECTION_SECONDS = 8 * 3600.0
ESCAPE_RADIUS_FACTOR = 6.0
MARKER_TOLERANCE = 1_000.0  # (m)


@dataclass
class OrbitalElements:
    """
    Instantaneous two-body elements.

    Attributes:
        eccentricity_vector: Points at periapsis, magnitude e
        eccentricity: |e|
        angular_momentum: Specific angular momentum |r x v| (m^2/s)
        energy: Specific orbital energy (J/kg)
        semi_major_axis: a, or inf when energy >= 0 (m)
        periapsis_radius: h^2 / (mu (1 + e)) (m)
        apoapsis_radius: h^2 / (mu (1 - e)), or inf when e >= 1 (m)
        periapsis_altitude: Periapsis radius minus planet radius (m)
        apoapsis_altitude: Apoapsis radius minus planet radius, or inf (m)
    """
    eccentricity_vector: Vector2
    eccentricity: float
    angular_momentum: float
    energy: float
    semi_major_axis: float
    periapsis_radius: float
    apoapsis_radius: float
    periapsis_altitude: float
    apoapsis_altitude: float

    @property
    def is_closed(self) -> bool:
        return self.eccentricity < 1 and self.energy < 0


def two_body_acceleration(x: float, y: float, mu: float) -> Tuple[float, float]:
    """Point-mass gravity at (x, y)."""
    r2 = x * x + y * y
    inv_r3 = 1.0 / (r2 * math.sqrt(r2))
    return -mu * x * inv_r3, -mu * y * inv_r3


def compute_orbital_elements(position: Vector2, velocity: Vector2, mu: float,
                             planet_radius: float) -> OrbitalElements:
    r = position.magnitude()
    v2 = velocity.magnitude_squared()
    rv = position.dot(velocity)

    e_vec = (position * (v2 - mu / r) - velocity * rv) / mu
    e = e_vec.magnitude()
    h = abs(position.cross(velocity))
    energy = v2 / 2 - mu / r

    rp = h * h / (mu * (1 + e))
    ra = h * h / (mu * (1 - e)) if e < 1 else math.inf
    a = -mu / (2 * energy) if energy < 0 else math.inf

    return OrbitalElements(
        eccentricity_vector=e_vec,
        eccentricity=e,
        angular_momentum=h,
        energy=energy,
        semi_major_axis=a,
        periapsis_radius=rp,
        apoapsis_radius=ra,
        periapsis_altitude=rp - planet_radius,
        apoapsis_altitude=ra - planet_radius if math.isfinite(ra) else math.inf,
    )


def _energy_and_eccentricity(position: Vector2, velocity: Vector2, mu: float) -> Tuple[float, float, float]:
    r = position.magnitude()
    energy = velocity.magnitude_squared() / 2 - mu / r
    h = position.cross(velocity)
    # Guard tiny negative round-off under the root for circular orbits
    e = math.sqrt(max(0.0, 1 + 2 * energy * h * h / (mu * mu)))
    return energy, h, e


def calculate_apoapsis(position: Vector2, velocity: Vector2, mu: float, planet_radius: float) -> float:
    """Apoapsis altitude (m), clamped at 0; +inf on an escape trajectory."""
    energy, _, e = _energy_and_eccentricity(position, velocity, mu)
    if energy >= 0:
        return math.inf
    a = -mu / (2 * energy)
    return max(0.0, a * (1 + e) - planet_radius)


def calculate_periapsis(position: Vector2, velocity: Vector2, mu: float, planet_radius: float) -> float:
    """Periapsis altitude (m), negative if the orbit intersects the planet; -inf on escape."""
    energy, _, e = _energy_and_eccentricity(position, velocity, mu)
    if energy >= 0:
        return -math.inf
    a = -mu / (2 * energy)
    return a * (1 - e) - planet_radius


def calculate_eccentricity(position: Vector2, velocity: Vector2, mu: float) -> float:
    return _energy_and_eccentricity(position, velocity, mu)[2]


def compute_apo_peri(position: Vector2, velocity: Vector2, mu: float,
                     planet_radius: float) -> Tuple[float, float]:
    """(apoapsis altitude, periapsis altitude) shared by telemetry and the autopilot."""
    return (calculate_apoapsis(position, velocity, mu, planet_radius),
            calculate_periapsis(position, velocity, mu, planet_radius))


def is_stable_orbit(apoapsis: float, periapsis: float, eccentricity: float) -> bool:
    """
    Closed, nearly circular orbit clear of the atmosphere.

    Uses the 70 km periapsis floor, unlike the 80 km floor of the trajectory
    projector and the orbit milestone.
    """
    if apoapsis == math.inf or eccentricity >= 1.0:
        return False
    if periapsis < HELPER_STABLE_ORBIT_PERIAPSIS:
        return False
    return eccentricity <= 0.1


def calculate_circular_velocity(radius: float, mu: float) -> float:
    return math.sqrt(mu / radius)


def calculate_escape_velocity(radius: float, mu: float) -> float:
    return math.sqrt(2 * mu / radius)


def calculate_orbital_period(semi_major_axis: float, mu: float) -> float:
    """Keplerian period (s); inf for open trajectories."""
    if not math.isfinite(semi_major_axis) or semi_major_axis <= 0:
        return math.inf
    return 2 * math.pi * math.sqrt(semi_major_axis ** 3 / mu)


def get_prograde_direction(velocity: Vector2) -> Vector2:
    return velocity.normalized()


def get_retrograde_direction(velocity: Vector2) -> Vector2:
    return -velocity.normalized()


@dataclass
class ProjectionResult:
    """
    Output of `project_trajectory`.

    Attributes:
        points: Preview positions, shape (N, 2) (m)
        apo_alt: Apoapsis altitude, inf on escape (m)
        apo_pos: Marker near apoapsis, or the farthest point on escape
        peri_alt: Periapsis altitude, clamped at 0 (m)
        peri_pos: Marker near periapsis
        stable_orbit: Closed orbit with periapsis above 80 km
        eccentricity: Eccentricity at the start of the preview
    """
    points: np.ndarray = field(default_factory=lambda: np.empty((0, 2)))
    apo_alt: float = math.inf
    apo_pos: Optional[Vector2] = None
    peri_alt: float = 0.0
    peri_pos: Optional[Vector2] = None
    stable_orbit: bool = False
    eccentricity: float = math.inf


def projection_timestep(t: float) -> float:
    """Preview step: 1 s for the first hour, then 5 s, 15 s and 30 s."""
    if t < 3600:
        return 1.0
    if t < 3 * 3600:
        return 5.0
    if t < 6 * 3600:
        return 15.0
    return 30.0


def project_trajectory(position: Vector2, velocity: Vector2, world: WorldParameters,
                       sim_seconds: float = PROJECTION_SECONDS) -> ProjectionResult:
    """
    Unpowered two-body preview of the current trajectory.

    Integrates with an adaptive step and stops early on surface impact, on
    reaching six planet radii while escaping, or after one full revolution of
    a stable ellipse.

    Args:
        position: Starting position (m)
        velocity: Starting velocity (m/s)
        world: Planet model (mu, radius)
        sim_seconds: Lookahead horizon (s)

    Returns:
        ProjectionResult
    """
    mu = world.gravitational_parameter
    R = world.planet_radius
    if position.magnitude() <= 0:
        return ProjectionResult()

    elements = compute_orbital_elements(position, velocity, mu, R)
    e = elements.eccentricity
    rp = elements.periapsis_radius
    ra = elements.apoapsis_radius
    hyperbolic = not math.isfinite(ra)

    apo_alt = math.inf if hyperbolic else max(0.0, ra - R)
    peri_alt = max(0.0, rp - R)
    stable = e < 1 and rp - R > STABLE_ORBIT_PERIAPSIS

    apo_pos: Optional[Vector2] = None
    peri_pos: Optional[Vector2] = None
    farthest = -1.0

    rx, ry = position.x, position.y
    vx, vy = velocity.x, velocity.y
    last_angle = math.atan2(ry, rx)
    swept = 0.0
    points = []

    t = 0.0
    while t < sim_seconds:
        dt = projection_timestep(t)
        r = math.hypot(rx, ry)
        if r <= R:
            break

        if hyperbolic:
            if r > farthest:
                farthest = r
                apo_pos = Vector2(rx, ry)
        else:
            if apo_pos is None and abs(r - ra) < MARKER_TOLERANCE:
                apo_pos = Vector2(rx, ry)
            if peri_pos is None and abs(r - rp) < MARKER_TOLERANCE:
                peri_pos = Vector2(rx, ry)

        points.append((rx, ry))

        ax, ay = two_body_acceleration(rx, ry, mu)
        vx += ax * dt
        vy += ay * dt
        rx += vx * dt
        ry += vy * dt
        t += dt

        energy = 0.5 * (vx * vx + vy * vy) - mu / r
        if energy > 0 and r > R * ESCAPE_RADIUS_FACTOR:
            break

        angle = math.atan2(ry, rx)
        swept += abs(wrap_angle(angle - last_angle))
        last_angle = angle
        if stable and swept >= 2 * math.pi:
            break

    return ProjectionResult(
        points=np.array(points, dtype=float).reshape(-1, 2),
        apo_alt=apo_alt,
        apo_pos=apo_pos,
        peri_alt=peri_alt,
        peri_pos=peri_pos,
        stable_orbit=stable,
        eccentricity=e,
    )


class TrajectoryProjector:
    """
    Rate-limited cache around `project_trajectory`.

    Recomputes at most once per second (every ten seconds while coasting
    unpowered above the atmosphere), unless thrust state or stage changes.
    Velocity changes above 0.5 m/s or 0.5 degrees mark the cache stale.
    """

    def __init__(self, world: WorldParameters, clock: Callable[[], float] = time.monotonic,
                 sim_seconds: float = PROJECTION_SECONDS):
        self.world = world
        self.clock = clock
        self.sim_seconds = sim_seconds
        self.cached: Optional[ProjectionResult] = None
        self.recompute_count = 0
        self._last_time = -math.inf
        self._last_velocity: Optional[Vector2] = None
        self._last_thrusting: Optional[bool] = None
        self._last_stage: Optional[int] = None

    def invalidate(self) -> None:
        self.cached = None

    def _velocity_changed(self, velocity: Vector2) -> bool:
        if self._last_velocity is None:
            return True
        if (velocity - self._last_velocity).magnitude() > 0.5:
            return True
        if self._last_velocity.magnitude() > 1e-3 and velocity.magnitude() > 1e-3:
            return self._last_velocity.angle_to(velocity) > math.radians(0.5)
        return False

    def get(self, position: Vector2, velocity: Vector2, thrusting: bool, stage: int) -> ProjectionResult:
        """
        Current projection, recomputed only when needed.

        Args:
            position: Rocket position (m)
            velocity: Rocket velocity (m/s)
            thrusting: Engine ignited with non-zero throttle
            stage: Active stage index

        Returns:
            ProjectionResult (possibly cached)
        """
        now = self.clock()
        altitude = self.world.get_altitude(position.magnitude())
        vacuum_coast = not thrusting and altitude >= ATMOSPHERE_LIMIT_ALTITUDE
        interval = 10.0 if vacuum_coast else 1.0

        forced = (self.cached is None or thrusting != self._last_thrusting
                  or stage != self._last_stage)
        stale = self._velocity_changed(velocity) and now - self._last_time >= interval

        if not forced and not stale:
            return self.cached

        self.cached = project_trajectory(position, velocity, self.world, self.sim_seconds)
        self.recompute_count += 1
        self._last_time = now
        self._last_velocity = velocity
        self._last_thrusting = thrusting
        self._last_stage = stage
        logger.debug("Trajectory projected: %d points, apo=%.0f peri=%.0f",
                     len(self.cached.points), self.cached.apo_alt, self.cached.peri_alt)
        return self.cached


def reference_trajectory(position: Vector2, velocity: Vector2, world: WorldParameters,
                         duration: float, max_step: float = 10.0, **solver_kwargs) -> Dict:
    """
    High-accuracy two-body propagation for cross-checking the preview.

    Args:
        position: Starting position (m)
        velocity: Starting velocity (m/s)
        world: Planet model
        duration: Propagation time (s)
        max_step: Maximum step size for the solver (s)
        **solver_kwargs: Additional arguments to pass to solve_ivp

    Returns:
        Dictionary with 't', 'x', 'y', 'vx', 'vy', 'altitude' arrays and
        'impact' (True if the surface was reached)
    """
    mu = world.gravitational_parameter
    R = world.planet_radius

    def equations_of_motion(t, state):
        x, y, vx, vy = state
        ax, ay = two_body_acceleration(x, y, mu)
        return [vx, vy, ax, ay]

    def impact_event(t, state):
        return math.hypot(state[0], state[1]) - R

    impact_event.terminal = True
    impact_event.direction = -1

    solver_kwargs.setdefault("rtol", 1e-10)
    solver_kwargs.setdefault("atol", 1e-6)
    sol = solve_ivp(
        equations_of_motion,
        (0.0, duration),
        [position.x, position.y, velocity.x, velocity.y],
        method="DOP853",
        max_step=max_step,
        events=[impact_event],
        **solver_kwargs
    )

    x, y, vx, vy = sol.y
    return {
        "t": sol.t,
        "x": x,
        "y": y,
        "vx": vx,
        "vy": vy,
        "altitude": np.sqrt(x ** 2 + y ** 2) - R,
        "impact": len(sol.t_events[0]) > 0,
    }
