# Licensed under the PolyForm Noncommercial License 1.0.0
"""Core game loop: wires guidance, physics, autopilot and limiter together."""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
import logging
import math
import random

import numpy as np

from .autopilot import Autopilot
from .body import PhysicsIntegrator, RigidBody
from .guidance import GuidanceInputs, update_guidance, update_visual_guidance
from .limiter import AtmosphereInputs, enforce_atmospheric_limits
from .models import (
    GROUND_CONTACT_TOLERANCE,
    KARMAN_LINE,
    NOZZLE_DROP,
    STABLE_ORBIT_PERIAPSIS,
    ConfigurationError,
    FlightEvent,
    HoldMode,
    RocketState,
)
from .orbital import ProjectionResult, TrajectoryProjector, compute_apo_peri
from .physics import PhysicsContext, PhysicsSimulation
from .rocket import RocketConfiguration, create_tutorial_rocket
from .vector import Vector2
from .world import WorldParameters

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineConfig:
    """
    Tuning of the game loop.

    Attributes:
        fixed_timestep: Physics substep (s)
        max_substeps: Substeps per frame before the backlog is dropped
        max_frame_time: Real frame time clamp before speed scaling (s)
        angular_acceleration: Turn acceleration (rad/s^2)
        max_turn_rate: Angular velocity clamp (rad/s)
        explosion_duration: Time between destruction and game over (s)
        pad_base_angle: Polar angle of the launch pad (rad)
    """
    fixed_timestep: float = 1 / 60
    max_substeps: int = 600
    max_frame_time: float = 0.1
    angular_acceleration: float = 0.5
    max_turn_rate: float = 0.12
    explosion_duration: float = 2.0
    pad_base_angle: float = math.pi / 2


class GameEngine:
    """
    Headless flight session: one rocket on one planet, advanced frame by frame.

    Implements the engine port the autopilot drives.
    """

    def __init__(self, world: Optional[WorldParameters] = None,
                 rocket_factory: Callable[[], RocketConfiguration] = create_tutorial_rocket,
                 config: EngineConfig = EngineConfig(),
                 rng: Callable[[], float] = random.random,
                 debug: bool = False):
        """
        Args:
            world: Planet model, defaults to the toy planet
            rocket_factory: Builds a fresh rocket on construction and restart
            config: Game loop tuning
            rng: Uniform [0, 1) source for structural failure rolls
            debug: Log throttled attitude debug lines
        """
        self.world = world or WorldParameters()
        self.rocket_factory = rocket_factory
        self.config = config
        self.rng = rng
        self.debug = debug
        self.autopilot = Autopilot(self)
        self._reset()

    def _reset(self) -> None:
        self.configuration = self.rocket_factory()
        radius = self.world.planet_radius + self.configuration.get_stack_height() / 2 + NOZZLE_DROP
        position = Vector2.from_angle(self.config.pad_base_angle, radius)

        self.body = RigidBody(position, Vector2.zero(), self.configuration.get_current_mass())
        self.state = RocketState(
            position=position,
            velocity=Vector2.zero(),
            mass=self.body.mass,
            fuel=self.configuration.get_total_fuel(),
            stages=self.configuration.stages,
            drag_coefficient=self.configuration.drag_coefficient,
            cross_sectional_area=self.configuration.cross_sectional_area,
        )

        self.time = 0.0
        self.physics_time = 0.0
        self.time_warp = 1.0
        self.game_speed = 1.0

        self.hold = HoldMode.NONE
        self.target_rotation: Optional[float] = None
        self.angular_velocity = 0.0
        self.turn_left = False
        self.turn_right = False
        self._last_debug_log_time = -math.inf

        self.explosion_phase = False
        self.explosion_timer = 0.0
        self.game_over = False
        self.game_over_reason = ""
        self.reached_space = False
        self.reached_orbit = False
        self.events: List[FlightEvent] = []

        self.integrator = PhysicsIntegrator(self.config.fixed_timestep, self.config.max_substeps)
        self.physics = PhysicsSimulation(PhysicsContext(
            world=self.world,
            configuration=self.configuration,
            body=self.body,
            state=self.state,
            pad_base_angle=self.config.pad_base_angle,
            destroy_rocket=self.destroy_rocket,
            on_explosion=self._record_explosion,
        ))
        self.projector = TrajectoryProjector(self.world, clock=lambda: self.time)

    def restart(self) -> None:
        """Stop any script and put a fresh rocket back on the pad."""
        self.autopilot.stop()
        self._reset()
        logger.info("Game restarted")

    # Game loop

    def update(self, frame_dt: float) -> None:
        """
        Advance the session by one rendered frame.

        Args:
            frame_dt: Real frame time (s); clamped, then scaled by time warp and game speed
        """
        dt = min(max(0.0, frame_dt), self.config.max_frame_time) * self.time_warp * self.game_speed

        if self.explosion_phase:
            self.explosion_timer += dt
            if self.explosion_timer >= self.config.explosion_duration:
                self.explosion_phase = False
                self.game_over = True
                self.events.append(FlightEvent(self.time, "game_over", self.game_over_reason))
            return
        if self.game_over:
            return

        self.time += dt

        self._update_guidance(dt)
        self.integrator.update(dt, self._physics_step)
        if self.explosion_phase:
            self._sync_state()
            return

        self.autopilot.update(dt)
        self._enforce_atmospheric_limits(dt)
        self._sync_state()
        self.state.visual_rotation = update_visual_guidance(self.state.visual_rotation, self.body.rotation, dt)
        self._check_milestones()

    def _update_guidance(self, dt: float) -> None:
        result = update_guidance(GuidanceInputs(
            rotation=self.body.rotation,
            angular_velocity=self.angular_velocity,
            velocity=self.body.velocity,
            altitude=self.get_altitude(),
            turn_left=self.turn_left,
            turn_right=self.turn_right,
            hold=self.hold,
            target_rotation=self.target_rotation,
            angular_acceleration=self.config.angular_acceleration,
            max_turn_rate=self.config.max_turn_rate,
            debug_enabled=self.debug,
            last_debug_log_time=self._last_debug_log_time,
            current_time=self.time,
        ), dt)
        self.body.rotation = result.rotation
        self.angular_velocity = result.angular_velocity
        self.target_rotation = result.target_rotation
        self._last_debug_log_time = result.last_debug_log_time
        for message in result.debug_messages:
            logger.debug(message)

    def _physics_step(self, dt: float) -> None:
        if self.explosion_phase or self.game_over:
            return
        self.physics_time += dt
        self.physics.context.current_time = self.physics_time
        self.physics.update_physics(dt)

    def _enforce_atmospheric_limits(self, dt: float) -> None:
        state = self.state
        result = enforce_atmospheric_limits(AtmosphereInputs(
            world=self.world,
            position=self.body.position,
            velocity=self.body.velocity,
            mass=self.body.mass,
            cd_eff=state.drag_coefficient,
            area_eff=state.cross_sectional_area,
            heat_level=state.heat_level,
            atmospheric_glow=state.atmospheric_glow,
            has_burned_up=state.has_burned_up,
            is_game_over=self.game_over,
            current_time=self.time,
            overspeed_time=state.overspeed_time,
        ), dt, rng=self.rng)

        self.body.velocity = result.velocity
        state.heat_level = result.heat_level
        state.atmospheric_glow = result.atmospheric_glow
        state.has_burned_up = result.has_burned_up
        state.overspeed_time = result.overspeed_time

        if result.explode:
            self._record_explosion(self.body.position, self.body.velocity)
        if result.destroy:
            self.destroy_rocket(result.game_over_reason or "Vehicle destroyed")

    def _sync_state(self) -> None:
        state = self.state
        state.position = self.body.position
        state.velocity = self.body.velocity
        state.rotation = self.body.rotation
        state.mass = self.body.mass
        state.fuel = self.configuration.get_total_fuel()
        state.current_stage = max(self.configuration.get_current_stage_index(), 0)
        state.stages = self.configuration.stages

    def _check_milestones(self) -> None:
        if not self.reached_space and self.get_altitude() >= KARMAN_LINE:
            self.reached_space = True
            self.events.append(FlightEvent(self.time, "reached_space", "Reached space"))
            logger.info("Reached space at t=%.1f s", self.time)

        if not self.reached_orbit:
            periapsis = self.get_periapsis_altitude()
            if math.isfinite(periapsis) and periapsis > STABLE_ORBIT_PERIAPSIS:
                self.reached_orbit = True
                self.events.append(FlightEvent(self.time, "reached_orbit", "Stable orbit"))
                logger.info("Stable orbit at t=%.1f s (periapsis %.0f m)", self.time, periapsis)

    # Destruction

    def _record_explosion(self, position: Vector2, velocity: Vector2) -> None:
        self.events.append(FlightEvent(self.time, "explosion", f"at {position}"))

    def destroy_rocket(self, reason: str) -> None:
        """Start the explosion phase; the session ends after `explosion_duration`."""
        if self.explosion_phase or self.game_over:
            return
        self.explosion_phase = True
        self.explosion_timer = 0.0
        self.game_over_reason = reason
        self.state.is_engine_ignited = False
        self.state.throttle = 0.0
        self.events.append(FlightEvent(self.time, "destroyed", reason))
        logger.warning("Rocket destroyed: %s", reason)

    @property
    def is_game_over(self) -> bool:
        return self.game_over

    @property
    def is_destroyed(self) -> bool:
        return self.explosion_phase or self.game_over

    # Commands

    def ignite_engines(self) -> bool:
        active = self.configuration.get_active_stage()
        if active is None or active.fuel_remaining <= 0:
            logger.info("Cannot ignite: no fuel in the current stage")
            return False
        if self.configuration.get_current_thrust() <= 0:
            logger.info("Cannot ignite: no thrust available")
            return False

        self.state.is_engine_ignited = True
        self.state.has_ever_launched = True
        self.state.throttle = 0.5
        if self.state.is_clamped:
            self.state.is_clamped = False
            logger.info("Pad clamps released")
        self.events.append(FlightEvent(self.time, "ignition"))
        return True

    def set_throttle(self, value: float) -> None:
        self.state.throttle = max(0.0, min(1.0, value))
        logger.debug("Throttle set to %.0f%%", self.state.throttle * 100)

    def nudge_throttle(self, delta: float) -> None:
        self.set_throttle(self.state.throttle + delta)

    def cut_engines(self) -> None:
        self.state.is_engine_ignited = False
        self.state.throttle = 0.0
        logger.debug("Engines cut")

    def perform_staging(self) -> bool:
        """
        Separate the current stage.

        Staging while the engine produces thrust destroys the rocket.

        Returns:
            True if a stage was separated
        """
        current_thrust = self.configuration.get_current_thrust() * self.state.throttle
        if self.configuration.would_explode_on_staging(current_thrust):
            self._record_explosion(self.body.position, self.body.velocity)
            self.destroy_rocket("Staging while engines firing")
            return False

        if not self.configuration.perform_staging():
            logger.info("Cannot stage: no more stages available")
            return False

        self.state.current_stage = self.configuration.get_current_stage_index()
        self.body.set_mass(self.configuration.get_current_mass())
        self.events.append(FlightEvent(self.time, "staging", self.configuration.get_active_stage().name))
        return True

    def set_autopilot_hold(self, mode: str) -> None:
        self.hold = HoldMode(mode)

    def set_autopilot_target_angle(self, degrees: float) -> None:
        self.target_rotation = math.radians(degrees)
        self.hold = HoldMode.TARGET

    def set_game_speed(self, speed: float) -> None:
        if speed <= 0:
            raise ConfigurationError(f"Game speed must be positive, got {speed}")
        self.game_speed = float(speed)

    def set_time_warp(self, warp: float) -> None:
        if warp <= 0:
            raise ConfigurationError(f"Time warp must be positive, got {warp}")
        self.time_warp = float(warp)

    def set_turn_left(self, active: bool) -> None:
        self.turn_left = active

    def set_turn_right(self, active: bool) -> None:
        self.turn_right = active

    # Autopilot passthrough

    def set_autopilot_logger(self, fn: Optional[Callable[[str], None]]) -> None:
        self.autopilot.set_logger(fn)

    def run_autopilot_script(self, text: str) -> bool:
        return self.autopilot.run_script(text)

    def run_autopilot_command(self, text: str) -> bool:
        return self.autopilot.run_command(text)

    def stop_autopilot(self) -> None:
        self.autopilot.stop()

    # Telemetry

    def is_engine_on(self) -> bool:
        return self.state.is_engine_ignited

    def get_altitude(self) -> float:
        return self.world.get_altitude(self.body.position.magnitude())

    def get_apoapsis_altitude(self) -> float:
        return compute_apo_peri(self.body.position, self.body.velocity,
                                self.world.gravitational_parameter, self.world.planet_radius)[0]

    def get_periapsis_altitude(self) -> float:
        return compute_apo_peri(self.body.position, self.body.velocity,
                                self.world.gravitational_parameter, self.world.planet_radius)[1]

    def get_radial_velocity(self) -> float:
        """Positive when moving away from the planet centre (m/s)."""
        r = self.body.position.magnitude()
        if r < 1e-6:
            return 0.0
        return self.body.velocity.dot(self.body.position / r)

    def get_current_twr(self) -> float:
        g = self.world.get_gravitational_acceleration(self.body.position.magnitude())
        weight = self.body.mass * g
        thrust = self.configuration.get_current_thrust() * self.state.throttle
        return thrust / weight if weight > 0 else 0.0

    def get_active_stage_fuel(self) -> float:
        """Fuel left in the active stage (kg), NaN when no stage is active."""
        index = self.configuration.get_current_stage_index()
        if index < 0:
            return math.nan
        return self.configuration.stages[index].fuel_remaining

    def is_on_ground(self) -> bool:
        r = self.body.position.magnitude()
        bottom = r - (self.world.planet_radius + self.configuration.get_stack_height() / 2 + NOZZLE_DROP)
        return (bottom <= GROUND_CONTACT_TOLERANCE or self.state.is_clamped
                or self.state.is_on_ground or not self.state.has_ever_launched)

    def get_projection(self) -> ProjectionResult:
        """Cached trajectory preview for map-style displays."""
        thrusting = self.state.is_engine_ignited and self.state.throttle > 0
        return self.projector.get(self.body.position, self.body.velocity, thrusting,
                                  self.state.current_stage)


def fly(engine: GameEngine, duration: float, frame_dt: float = 1 / 60) -> Dict:
    """
    Step `engine` until `duration` seconds of simulated time have passed or
    the session ends, recording one row per frame.

    Args:
        engine: Engine to drive (typically with an autopilot script loaded)
        duration: Simulated time to fly (s)
        frame_dt: Real frame time fed to `engine.update` (s)

    Returns:
        Dictionary of numpy arrays ('t', 'x', 'y', 'vx', 'vy', 'm', 'stage',
        'throttle', 'heat', 'altitude', 'velocity', 'apoapsis', 'periapsis')
        plus 'rocket', 'events', 'success' and 'message'
    """
    if frame_dt <= 0:
        raise ConfigurationError(f"frame_dt must be positive, got {frame_dt}")

    rows = []

    def record():
        state = engine.state
        rows.append((
            engine.time,
            state.position.x, state.position.y,
            state.velocity.x, state.velocity.y,
            state.mass,
            state.current_stage,
            state.throttle,
            state.heat_level,
            engine.get_apoapsis_altitude(),
            engine.get_periapsis_altitude(),
        ))

    record()
    while engine.time < duration and not engine.is_game_over:
        engine.update(frame_dt)
        if not engine.explosion_phase:
            record()

    data = np.array(rows, dtype=float)
    results = {
        't': data[:, 0],
        'x': data[:, 1],
        'y': data[:, 2],
        'vx': data[:, 3],
        'vy': data[:, 4],
        'm': data[:, 5],
        'stage': data[:, 6].astype(int),
        'throttle': data[:, 7],
        'heat': data[:, 8],
        'apoapsis': data[:, 9],
        'periapsis': data[:, 10],
        'rocket': engine,
        'events': list(engine.events),
        'success': not engine.is_destroyed,
        'message': engine.game_over_reason or 'Simulation completed',
    }
    results['altitude'] = np.sqrt(results['x'] ** 2 + results['y'] ** 2) - engine.world.planet_radius
    results['velocity'] = np.sqrt(results['vx'] ** 2 + results['vy'] ** 2)
    return results
