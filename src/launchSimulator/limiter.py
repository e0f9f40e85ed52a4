# Licensed under the PolyForm Noncommercial License 1.0.0
"""
Soft atmospheric speed limiting, heating and structural failure.

`enforce_atmospheric_limits` is a pure function: every accumulator it needs
(heat, glow, overspeed time) comes in through `AtmosphereInputs` and goes back
out through `AtmosphereResult`.
"""

from dataclasses import dataclass
from typing import Callable, Optional
import math
import random

from .models import ATMOSPHERE_LIMIT_ALTITUDE
from .vector import Vector2
from .world import WorldParameters, calculate_terminal_velocity

THERMAL_FAILURE = "Thermal failure (overheating)"
STRUCTURAL_FAILURE = "Aerodynamic structural failure (overspeed)"


@dataclass(frozen=True)
class LimiterConfig:
    """Tuning constants of the atmosphere limiter."""
    terminal_velocity_fallback: float = 10_000.0
    speed_multiplier: float = 1.35
    speed_buffer: float = 50.0
    vacuum_cooling_rate: float = 10.0
    air_cooling_rate: float = 15.0
    near_limit_ratio: float = 0.85
    burn_up_heat: float = 100.0
    structural_ratio: float = 1.2
    overspeed_grace: float = 1.0
    max_failure_rate: float = 0.9


@dataclass
class AtmosphereInputs:
    world: WorldParameters
    position: Vector2
    velocity: Vector2
    mass: float
    cd_eff: float
    area_eff: float
    heat_level: float = 0.0
    atmospheric_glow: float = 0.0
    has_burned_up: bool = False
    is_game_over: bool = False
    current_time: float = 0.0
    overspeed_time: float = 0.0


@dataclass
class AtmosphereResult:
    velocity: Vector2
    heat_level: float
    atmospheric_glow: float
    has_burned_up: bool
    overspeed_time: float = 0.0
    game_over_reason: Optional[str] = None
    explode: bool = False
    destroy: bool = False


def reference_speed(inputs: AtmosphereInputs, config: LimiterConfig = LimiterConfig()) -> float:
    """Soft speed reference: buffered terminal velocity at the current state (m/s)."""
    world = inputs.world
    r = inputs.position.magnitude()
    altitude = world.get_altitude(r)
    density = world.get_atmospheric_density(altitude)
    gravity = world.get_gravitational_acceleration(r)
    v_term = calculate_terminal_velocity(inputs.mass, density, inputs.cd_eff, inputs.area_eff, gravity)
    if not math.isfinite(v_term):
        v_term = config.terminal_velocity_fallback
    return v_term * config.speed_multiplier + config.speed_buffer


def enforce_atmospheric_limits(inputs: AtmosphereInputs, dt: float,
                               rng: Callable[[], float] = random.random,
                               config: LimiterConfig = LimiterConfig()) -> AtmosphereResult:
    """
    Apply one tick of atmospheric limiting.

    Args:
        inputs: Current rocket state and threaded accumulators
        dt: Simulated time step (s)
        rng: Uniform [0, 1) source for the structural failure roll
        config: Limiter tuning constants

    Returns:
        AtmosphereResult with the (possibly damped) velocity, updated
        accumulators and any destruction verdict
    """
    world = inputs.world
    velocity = inputs.velocity
    speed = velocity.magnitude()
    altitude = world.get_altitude(inputs.position.magnitude())

    if altitude >= ATMOSPHERE_LIMIT_ALTITUDE:
        return AtmosphereResult(
            velocity=velocity,
            heat_level=max(0.0, inputs.heat_level - config.vacuum_cooling_rate * dt),
            atmospheric_glow=inputs.atmospheric_glow,
            has_burned_up=inputs.has_burned_up,
            overspeed_time=0.0,
        )

    density = world.get_atmospheric_density(altitude)
    density_norm = min(1.0, density / world.surface_density)
    v_max = reference_speed(inputs, config)

    heat = inputs.heat_level
    if speed > v_max and speed > 0:
        over_ratio = speed / max(1.0, v_max)
        over = max(0.0, over_ratio - 1)
        decel = (1.5 + 8 * density_norm) * over ** 0.7
        new_speed = max(0.0, speed - decel * dt)
        velocity = velocity * (new_speed / speed)
        heat += (over_ratio - 1) * (0.4 + 0.8 * density_norm) * 50 * dt
    else:
        ratio = speed / max(1.0, v_max)
        if ratio > config.near_limit_ratio:
            heat += (ratio - config.near_limit_ratio) * 20 * density_norm * dt
        else:
            heat = max(0.0, heat - config.air_cooling_rate * dt)

    glow = max(inputs.atmospheric_glow, min(1.0, density_norm * speed / (v_max + 1)))

    result = AtmosphereResult(
        velocity=velocity,
        heat_level=heat,
        atmospheric_glow=glow,
        has_burned_up=inputs.has_burned_up,
    )

    if not result.has_burned_up and heat >= config.burn_up_heat:
        result.has_burned_up = True
        result.game_over_reason = THERMAL_FAILURE
        result.explode = True
        result.destroy = True

    overspeed_time = inputs.overspeed_time
    if (not inputs.is_game_over and not world.is_in_space(altitude)
            and math.isfinite(v_max) and speed > v_max * config.structural_ratio):
        overspeed_time += dt
        if overspeed_time > config.overspeed_grace:
            ratio = speed / v_max
            pps = min(config.max_failure_rate,
                      (ratio - config.structural_ratio) ** 2 * (0.35 + 0.65 * density_norm))
            if rng() < 1 - math.exp(-pps * dt):
                result.game_over_reason = STRUCTURAL_FAILURE
                result.explode = True
                result.destroy = True
    else:
        overspeed_time = 0.0

    result.overspeed_time = overspeed_time
    return result
