# Licensed under the PolyForm Noncommercial License 1.0.0
"""Attitude control: manual turning, autopilot hold modes and visual smoothing."""

from dataclasses import dataclass, field
from typing import List, Optional
import math

from .models import HoldMode
from .vector import Vector2

GRAVITY_TURN_START = 2_000.0  # (m)
GRAVITY_TURN_END = 15_000.0  # (m)
DEAD_ZONE = 0.02  # (rad)
ANGULAR_DAMPING = 0.98
ANGULAR_VELOCITY_EPSILON = 1e-4
VISUAL_SMOOTHING_RATE = 10.0
DEBUG_LOG_INTERVAL = 0.1  # (s)


@dataclass(frozen=True)
class GuidanceConfig:
    angular_acceleration: float = 0.5  # (rad/s^2)
    max_turn_rate: float = 0.12  # (rad/s)


@dataclass
class GuidanceInputs:
    """
    Snapshot consumed by `update_guidance`.

    Attributes:
        rotation: Current physical rotation (rad)
        angular_velocity: Current angular velocity (rad/s)
        velocity: Rocket velocity (m/s)
        altitude: Altitude above the surface (m)
        turn_left: Manual counter-clockwise input
        turn_right: Manual clockwise input
        hold: Autopilot attitude hold mode
        target_rotation: Explicit target for `HoldMode.TARGET` (rad)
        angular_acceleration: Turn acceleration (rad/s^2)
        max_turn_rate: Angular velocity clamp (rad/s)
        debug_enabled: Emit throttled attitude debug lines
        last_debug_log_time: Time of the last debug line (s)
        current_time: Simulation time (s)
    """
    rotation: float
    angular_velocity: float
    velocity: Vector2
    altitude: float
    turn_left: bool = False
    turn_right: bool = False
    hold: HoldMode = HoldMode.NONE
    target_rotation: Optional[float] = None
    angular_acceleration: float = GuidanceConfig.angular_acceleration
    max_turn_rate: float = GuidanceConfig.max_turn_rate
    debug_enabled: bool = False
    last_debug_log_time: float = float("-inf")
    current_time: float = 0.0


@dataclass
class GuidanceResult:
    rotation: float
    angular_velocity: float
    target_rotation: Optional[float]
    last_debug_log_time: float
    debug_messages: List[str] = field(default_factory=list)


def wrap_angle(angle: float) -> float:
    """Wrap an angle to (-pi, pi]."""
    while angle > math.pi:
        angle -= 2 * math.pi
    while angle < -math.pi:
        angle += 2 * math.pi
    return angle


def smoothstep(edge0: float, edge1: float, x: float) -> float:
    t = max(0.0, min(1.0, (x - edge0) / max(1.0, edge1 - edge0)))
    return t * t * (3 - 2 * t)


def velocity_heading(velocity: Vector2, fallback: float) -> float:
    """Rotation that points the nose along `velocity`; `fallback` below 0.5 m/s."""
    if velocity.magnitude() > 0.5:
        return math.atan2(-velocity.x, velocity.y)
    return fallback


def hold_target(inputs: GuidanceInputs) -> Optional[float]:
    """
    Target rotation for the active hold mode.

    Prograde and retrograde blend from straight up at 2 km to the exact
    velocity heading at 15 km (a smoothstep gravity turn).
    """
    hold = HoldMode(inputs.hold)
    if hold is HoldMode.UP:
        return 0.0
    if hold in (HoldMode.PROGRADE, HoldMode.RETROGRADE):
        heading = velocity_heading(inputs.velocity, inputs.rotation)
        if hold is HoldMode.RETROGRADE:
            heading += math.pi
        blend = smoothstep(GRAVITY_TURN_START, GRAVITY_TURN_END, inputs.altitude)
        return wrap_angle(heading) * blend
    return inputs.target_rotation


def update_guidance(inputs: GuidanceInputs, dt: float) -> GuidanceResult:
    """
    Integrate the attitude by one tick.

    Args:
        inputs: Current attitude, manual input and hold mode
        dt: Simulated time step (s)

    Returns:
        GuidanceResult with the new rotation and angular velocity
    """
    turn = int(inputs.turn_left) - int(inputs.turn_right)
    target = inputs.target_rotation

    if HoldMode(inputs.hold) is not HoldMode.NONE:
        target = hold_target(inputs)
        if target is not None:
            error = wrap_angle(target - inputs.rotation)
            turn = 1 if error > DEAD_ZONE else -1 if error < -DEAD_ZONE else 0

    angular_velocity = inputs.angular_velocity + turn * inputs.angular_acceleration * dt
    angular_velocity = max(-inputs.max_turn_rate, min(inputs.max_turn_rate, angular_velocity))
    rotation = inputs.rotation + angular_velocity * dt

    if turn == 0:
        angular_velocity *= ANGULAR_DAMPING
        if abs(angular_velocity) < ANGULAR_VELOCITY_EPSILON:
            angular_velocity = 0.0

    messages = []
    last_log = inputs.last_debug_log_time
    if inputs.debug_enabled and inputs.current_time - last_log > DEBUG_LOG_INTERVAL:
        messages.append(f"ATT dt={dt:.3f} in={turn} rot={math.degrees(rotation):.2f}deg "
                        f"av={math.degrees(angular_velocity):.2f}deg/s")
        last_log = inputs.current_time

    return GuidanceResult(rotation, angular_velocity, target, last_log, messages)


def update_visual_guidance(visual_rotation: float, target_rotation: float, dt: float) -> float:
    """Exponentially ease the rendered rotation towards the physical one."""
    delta = wrap_angle(target_rotation - visual_rotation)
    return visual_rotation + delta * (1 - math.exp(-VISUAL_SMOOTHING_RATE * max(0.0, dt)))
