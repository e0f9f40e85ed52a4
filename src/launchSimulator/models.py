# Licensed under the PolyForm Noncommercial License 1.0.0
"""Data models, constants and exceptions for the launch simulator."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .vector import Vector2

# Physical constants
G0 = 9.81  # Standard gravity used for Isp -> mass flow (m/s^2)
KARMAN_LINE = 100_000.0  # Altitude treated as "space" (m)
ATMOSPHERE_LIMIT_ALTITUDE = 80_000.0  # No aerodynamics or speed limiting above this (m)
STABLE_ORBIT_PERIAPSIS = 80_000.0  # Periapsis floor for the limiter/projector/milestone (m)
HELPER_STABLE_ORBIT_PERIAPSIS = 70_000.0  # Periapsis floor for is_stable_orbit (m)

# Launch pad geometry
NOZZLE_DROP = 6.0  # Visible nozzle below the stage bottom (m)
GROUND_CONTACT_TOLERANCE = 1.5  # Bottom altitude counted as touching the ground (m)
GROUND_REST_TWR = 1.01  # Hysteresis band for lifting off the ground
SAFE_IMPACT_SPEED = 15.0  # Relative impact speed above which landing is destructive (m/s)

# Tutorial rocket geometry
PAYLOAD_HEIGHT = 35.0  # (m)
NOSE_CONE_HEIGHT = 4.0  # (m)


class LaunchSimulatorError(Exception):
    """Base class for all launch simulator errors."""


class ConfigurationError(LaunchSimulatorError, ValueError):
    """Raised when a world, rocket or engine is constructed with invalid values."""


class ScriptParseError(LaunchSimulatorError, ValueError):
    """Raised when a single autopilot command line cannot be parsed."""

    def __init__(self, message: str, line: str = ""):
        super().__init__(message)
        self.line = line


class HoldMode(str, Enum):
    """Autopilot attitude hold modes."""
    NONE = "none"
    PROGRADE = "prograde"
    RETROGRADE = "retrograde"
    UP = "up"
    TARGET = "target"


@dataclass
class StageConfiguration:
    """
    Class representing a single rocket stage.

    Attributes:
        name: Display name of the stage
        thrust: Maximum thrust (N)
        specific_impulse: Specific impulse used for mass flow (s)
        propellant_mass: Initial propellant mass (kg)
        dry_mass: Mass of the stage without propellant (kg)
        is_active: Whether this is the currently firing stage
        fuel_remaining: Propellant left in the stage (kg)
        sea_level_isp: Optional sea-level specific impulse (s)
        vacuum_isp: Optional vacuum specific impulse (s)
        height: Stack height contributed by the stage (m)
    """
    name: str
    thrust: float
    specific_impulse: float
    propellant_mass: float
    dry_mass: float
    is_active: bool = False
    fuel_remaining: float = 0.0
    sea_level_isp: Optional[float] = None
    vacuum_isp: Optional[float] = None
    height: float = 0.0


@dataclass
class RocketState:
    """Mutable per-flight rocket state owned by the game engine."""
    position: Vector2
    velocity: Vector2
    rotation: float = 0.0
    visual_rotation: float = 0.0
    mass: float = 0.0
    fuel: float = 0.0
    throttle: float = 0.0
    is_engine_ignited: bool = False
    has_ever_launched: bool = False
    is_clamped: bool = True
    is_on_ground: bool = True
    current_stage: int = 0
    stages: List[StageConfiguration] = field(default_factory=list)

    # Aerodynamics exposed to telemetry
    drag_coefficient: float = 0.3
    cross_sectional_area: float = 10.0
    mach: float = 0.0
    angle_of_attack_deg: float = 0.0

    # Thermal / overspeed accumulators threaded through the limiter
    heat_level: float = 0.0
    atmospheric_glow: float = 0.0
    has_burned_up: bool = False
    overspeed_time: float = 0.0


@dataclass(frozen=True)
class FlightEvent:
    """Something notable that happened during a flight (explosion, staging, milestone)."""
    time: float
    kind: str
    message: str = ""
