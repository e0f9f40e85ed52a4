# Licensed under the PolyForm Noncommercial License 1.0.0
"""Per-tick force model: pad hold, ground rest, gravity, thrust, drag and ground contact."""

from dataclasses import dataclass
from typing import Callable, Optional, Tuple
import logging
import math

from .body import RigidBody
from .models import (
    ATMOSPHERE_LIMIT_ALTITUDE,
    GROUND_CONTACT_TOLERANCE,
    GROUND_REST_TWR,
    NOZZLE_DROP,
    SAFE_IMPACT_SPEED,
    RocketState,
)
from .rocket import RocketConfiguration
from .vector import Vector2, safe_normalize
from .world import WorldParameters, calculate_drag_force

logger = logging.getLogger(__name__)

SIDE_AREA_MULTIPLIER = 6.0
AOA_DRAG_GAIN = 4.0


@dataclass
class AeroState:
    """Effective aerodynamic values exposed to telemetry."""
    cd_eff: float
    area_eff: float
    mach: float = 0.0
    aoa_deg: float = 0.0


@dataclass
class PhysicsContext:
    """
    Everything the physics step reads or mutates.

    Attributes:
        world: Planet model
        configuration: Rocket stages and base aerodynamics
        body: Rigid body being integrated
        state: Per-flight rocket flags (ignition, throttle, clamps)
        pad_base_angle: Polar angle of the launch pad at t = 0 (rad)
        current_time: Simulation time, used to co-rotate the pad (s)
        destroy_rocket: Called with a reason string on destructive impact
        on_explosion: Optional hook receiving (position, velocity) of an explosion
    """
    world: WorldParameters
    configuration: RocketConfiguration
    body: RigidBody
    state: RocketState
    pad_base_angle: float = math.pi / 2
    current_time: float = 0.0
    destroy_rocket: Callable[[str], None] = lambda reason: None
    on_explosion: Optional[Callable[[Vector2, Vector2], None]] = None


def mach_drag_factor(mach: float) -> float:
    """
    Drag multiplier from compressibility.

    1 below Mach 0.8, a triangular transonic bump peaking at 2.5 at Mach 1,
    then 1.1 rising to 1.2 by Mach 3.
    """
    if 0.8 <= mach <= 1.2:
        return 1 + 1.5 * max(0.0, 1 - abs(mach - 1) / 0.4)
    if mach > 1.2:
        return 1.1 + 0.1 * min(1.0, (mach - 1.2) / 1.8)
    return 1.0


def compute_aerodynamics(world: WorldParameters, configuration: RocketConfiguration,
                         position: Vector2, velocity: Vector2,
                         rotation: float) -> Tuple[Vector2, AeroState]:
    """
    Attitude and Mach dependent drag.

    Args:
        world: Planet model
        configuration: Supplies the base drag coefficient and frontal area
        position: Rocket position (m)
        velocity: Rocket inertial velocity (m/s)
        rotation: Rocket rotation (rad)

    Returns:
        Tuple of (drag force, effective aerodynamic state)
    """
    base = AeroState(configuration.drag_coefficient, configuration.cross_sectional_area)
    altitude = world.get_altitude(position.magnitude())
    if altitude >= ATMOSPHERE_LIMIT_ALTITUDE:
        return Vector2.zero(), base

    density = world.get_atmospheric_density(altitude)
    air_velocity = velocity - world.get_ground_velocity_at(position)
    speed = air_velocity.magnitude()
    if speed < 0.01 or density <= 0:
        return Vector2.zero(), base

    forward = Vector2(-math.sin(rotation), math.cos(rotation))
    flow = air_velocity * (-1 / speed)
    aoa = math.acos(max(-1.0, min(1.0, forward.dot(flow))))

    mach = speed / max(1.0, world.get_speed_of_sound(altitude))

    sin2 = math.sin(aoa) ** 2
    area_eff = configuration.cross_sectional_area * ((1 - sin2) + SIDE_AREA_MULTIPLIER * sin2)
    cd_eff = configuration.drag_coefficient * (1 + AOA_DRAG_GAIN * sin2) * mach_drag_factor(mach)

    force = calculate_drag_force(air_velocity, density, cd_eff, area_eff)
    return force, AeroState(cd_eff, area_eff, mach, math.degrees(aoa))


class PhysicsSimulation:
    """Applies forces to the rocket body and integrates one fixed step at a time."""

    def __init__(self, context: PhysicsContext):
        self.context = context
        self.aero = AeroState(context.configuration.drag_coefficient,
                              context.configuration.cross_sectional_area)

    def update_physics(self, dt: float) -> AeroState:
        """
        Advance the rocket by one physics step.

        Order: pad hold, ground rest, then free flight (gravity, thrust, drag,
        integration, ground contact).

        Args:
            dt: Fixed physics timestep (s)

        Returns:
            The effective aerodynamic values after this step
        """
        ctx = self.context
        state = ctx.state
        body = ctx.body

        if not state.has_ever_launched or state.is_clamped:
            self._keep_on_pad()
            return self._publish()

        if self._should_stay_grounded():
            # Resting is not unconditional: a fast descent or a centre below
            # the surface is still resolved as an impact
            descent_speed = -body.velocity.dot(safe_normalize(body.position))
            if ctx.world.is_below_surface(body.position.magnitude()) or descent_speed > SAFE_IMPACT_SPEED:
                self.handle_ground_collision()
            else:
                self._keep_grounded(dt)
            return self._publish()

        state.is_on_ground = False
        body.clear_forces()
        body.apply_force(self.gravity_force())

        if state.is_engine_ignited and state.throttle > 0:
            body.apply_force(self.thrust_force())
            burned = ctx.configuration.consume_fuel(dt, state.throttle)
            if not burned or ctx.configuration.get_current_thrust() == 0:
                state.is_engine_ignited = False
                state.throttle = 0.0
                logger.info("Fuel depleted; engines shut down")

        altitude = ctx.world.get_altitude(body.position.magnitude())
        if altitude < ATMOSPHERE_LIMIT_ALTITUDE:
            drag, self.aero = compute_aerodynamics(ctx.world, ctx.configuration,
                                                   body.position, body.velocity, body.rotation)
            body.apply_force(drag)
        else:
            self.aero = AeroState(ctx.configuration.drag_coefficient,
                                  ctx.configuration.cross_sectional_area)

        body.set_mass(ctx.configuration.get_current_mass())
        body.integrate(dt)

        if ctx.world.is_below_surface(body.position.magnitude()):
            self.handle_ground_collision()

        return self._publish()

    def _publish(self) -> AeroState:
        state = self.context.state
        state.drag_coefficient = self.aero.cd_eff
        state.cross_sectional_area = self.aero.area_eff
        state.mach = self.aero.mach
        state.angle_of_attack_deg = self.aero.aoa_deg
        return self.aero

    def _half_height(self) -> float:
        return self.context.configuration.get_stack_height() / 2

    def _keep_on_pad(self) -> None:
        ctx = self.context
        radius = ctx.world.planet_radius + self._half_height() + NOZZLE_DROP
        omega = ctx.world.earth_rotation_rate
        angle = ctx.pad_base_angle + ctx.current_time * omega

        ctx.body.position = Vector2.from_angle(angle, radius)
        ctx.body.velocity = Vector2(-math.sin(angle), math.cos(angle)) * (omega * radius)
        ctx.state.is_on_ground = True

    def _should_stay_grounded(self) -> bool:
        ctx = self.context
        r = ctx.body.position.magnitude()
        bottom_altitude = r - (ctx.world.planet_radius + self._half_height() + NOZZLE_DROP)
        if bottom_altitude > GROUND_CONTACT_TOLERANCE:
            return False

        weight = ctx.body.mass * ctx.world.get_gravitational_acceleration(r)
        thrust = ctx.configuration.get_current_thrust() * ctx.state.throttle
        twr = thrust / weight if weight > 0 else 0.0
        return twr <= GROUND_REST_TWR

    def _keep_grounded(self, dt: float) -> None:
        # Pinned one metre above the pad height, co-rotating from where it touched down
        ctx = self.context
        radius = ctx.world.planet_radius + self._half_height() + NOZZLE_DROP + 1
        omega = ctx.world.earth_rotation_rate
        angle = ctx.body.position.angle() + omega * dt

        ctx.body.position = Vector2.from_angle(angle, radius)
        ctx.body.velocity = Vector2(-math.sin(angle), math.cos(angle)) * (omega * radius)
        ctx.state.is_on_ground = True

    def _relative_speed(self) -> float:
        body = self.context.body
        return (body.velocity - self.context.world.get_ground_velocity_at(body.position)).magnitude()

    def gravity_force(self) -> Vector2:
        body = self.context.body
        g = self.context.world.get_gravitational_acceleration(body.position.magnitude())
        return -safe_normalize(body.position) * (g * body.mass)

    def thrust_force(self) -> Vector2:
        ctx = self.context
        thrust = ctx.configuration.get_current_thrust() * ctx.state.throttle
        return ctx.body.forward_direction() * thrust

    def handle_ground_collision(self) -> None:
        """
        Resolve contact with the surface.

        Above 15 m/s relative to the rotating ground the rocket is destroyed;
        otherwise it stops dead and is lifted clear of the surface.
        """
        ctx = self.context
        body = ctx.body
        impact_speed = self._relative_speed()

        if impact_speed > SAFE_IMPACT_SPEED:
            logger.warning("High-speed ground impact at %.1f m/s", impact_speed)
            if ctx.on_explosion is not None:
                ctx.on_explosion(body.position, body.velocity)
            ctx.destroy_rocket("High-speed ground impact")
            return

        logger.info("Soft landing at %.1f m/s", impact_speed)
        body.velocity = Vector2.zero()
        ctx.state.is_on_ground = True

        desired = ctx.world.planet_radius + self._half_height() + 1
        if body.position.magnitude() < desired:
            body.position = safe_normalize(body.position) * desired
