# Licensed under the PolyForm Noncommercial License 1.0.0
"""Rigid body state and the fixed-step integrator used by live physics."""

from typing import Callable, List, Tuple
import logging
import math

from .vector import Vector2

logger = logging.getLogger(__name__)

MAX_STABLE_VELOCITY = 50_000.0  # (m/s)
MAX_STABLE_ACCELERATION = 1_000.0  # (m/s^2)


class RigidBody:
    """
    Point mass with an orientation, integrated by semi-implicit Euler.

    Rotation is in radians with 0 meaning "nose along +y"; the forward axis is
    (-sin(rotation), cos(rotation)).
    """

    def __init__(self, position: Vector2, velocity: Vector2, mass: float):
        self.position = position
        self.velocity = velocity
        self.mass = mass
        self.rotation = 0.0
        self.angular_velocity = 0.0
        self.previous_acceleration = Vector2.zero()
        self._forces: List[Vector2] = []
        self._torques: List[float] = []

    def apply_force(self, force: Vector2) -> None:
        self._forces.append(force)

    def apply_force_at_point(self, force: Vector2, application_point: Vector2) -> None:
        """
        Apply a force at a point relative to the centre of mass.

        Args:
            force: Force vector (N)
            application_point: Offset from the centre of mass (m)
        """
        self._forces.append(force)
        self._torques.append(-application_point.cross(force))

    def apply_torque(self, torque: float) -> None:
        self._torques.append(torque)

    def clear_forces(self) -> None:
        self._forces.clear()
        self._torques.clear()

    def get_acceleration(self) -> Vector2:
        if self.mass <= 0:
            return Vector2.zero()
        total = Vector2.zero()
        for force in self._forces:
            total = total + force
        return total / self.mass

    def get_angular_acceleration(self, moment_of_inertia: float) -> float:
        if moment_of_inertia <= 0:
            return 0.0
        return sum(self._torques) / moment_of_inertia

    def integrate(self, dt: float, moment_of_inertia: float = 1000.0) -> bool:
        """
        Advance the body by `dt` using the accumulated forces, then clear them.

        Args:
            dt: Integration timestep (s)
            moment_of_inertia: Moment of inertia for the torque term (kg m^2)

        Returns:
            False when the step was skipped because the state is outside the
            stable envelope, True otherwise.
        """
        acceleration = self.get_acceleration()
        angular_acceleration = self.get_angular_acceleration(moment_of_inertia)

        if not PhysicsIntegrator.is_stable(self.velocity, acceleration, dt):
            logger.warning("Physics integration unstable (|v|=%.1f, |a|=%.1f, dt=%.4f); step skipped",
                           self.velocity.magnitude(), acceleration.magnitude(), dt)
            return False

        self.position, self.velocity = PhysicsIntegrator.integrate_motion(
            self.position, self.velocity, acceleration, dt)

        self.angular_velocity += angular_acceleration * dt
        self.rotation = (self.rotation + self.angular_velocity * dt) % (2 * math.pi)

        self.previous_acceleration = acceleration
        self.clear_forces()
        return True

    def set_mass(self, new_mass: float) -> None:
        if new_mass <= 0:
            logger.warning("Ignoring non-positive mass %.3f", new_mass)
            return
        self.mass = new_mass

    def kinetic_energy(self, moment_of_inertia: float = 1000.0) -> float:
        linear = 0.5 * self.mass * self.velocity.magnitude_squared()
        rotational = 0.5 * moment_of_inertia * self.angular_velocity ** 2
        return linear + rotational

    def momentum(self) -> Vector2:
        return self.velocity * self.mass

    def forward_direction(self) -> Vector2:
        return Vector2(-math.sin(self.rotation), math.cos(self.rotation))

    def clone(self) -> "RigidBody":
        body = RigidBody(self.position, self.velocity, self.mass)
        body.rotation = self.rotation
        body.angular_velocity = self.angular_velocity
        return body


class PhysicsIntegrator:
    """
    Fixed-timestep stepper: frame time goes into an accumulator that is
    drained in `fixed_timestep` slices.
    """

    def __init__(self, fixed_timestep: float = 1 / 60, max_substeps: int = 600):
        self.fixed_timestep = fixed_timestep
        self.max_substeps = max_substeps
        self.accumulator = 0.0

    def update(self, dt: float, step: Callable[[float], None]) -> int:
        """
        Run as many fixed substeps as the accumulated time allows.

        Args:
            dt: Simulated frame time (s)
            step: Callback invoked once per substep with the fixed timestep

        Returns:
            Number of substeps executed
        """
        self.accumulator += max(0.0, dt)

        substeps = 0
        while self.accumulator >= self.fixed_timestep and substeps < self.max_substeps:
            step(self.fixed_timestep)
            self.accumulator -= self.fixed_timestep
            substeps += 1

        if substeps >= self.max_substeps and self.accumulator >= self.fixed_timestep:
            logger.warning("Physics fell behind by %.3f s; discarding", self.accumulator)
            self.accumulator = 0.0

        return substeps

    def reset(self) -> None:
        self.accumulator = 0.0

    @staticmethod
    def integrate_motion(position: Vector2, velocity: Vector2, acceleration: Vector2,
                         dt: float) -> Tuple[Vector2, Vector2]:
        """
        Semi-implicit Euler step; position advances with the average of the old
        and new velocity.

        Returns:
            Tuple of (new position, new velocity)
        """
        new_velocity = velocity + acceleration * dt
        new_position = position + (velocity + new_velocity) * (0.5 * dt)
        return new_position, new_velocity

    @staticmethod
    def is_stable(velocity: Vector2, acceleration: Vector2, dt: float) -> bool:
        return (velocity.magnitude() < MAX_STABLE_VELOCITY
                and acceleration.magnitude() < MAX_STABLE_ACCELERATION
                and 0 < dt < 1)
