# Licensed under the PolyForm Noncommercial License 1.0.0
"""Launch Simulator - flight physics and autopilot scripting for a 2D orbital-launch game."""

from .models import (
    G0,
    KARMAN_LINE,
    STABLE_ORBIT_PERIAPSIS,
    ConfigurationError,
    FlightEvent,
    HoldMode,
    LaunchSimulatorError,
    RocketState,
    ScriptParseError,
    StageConfiguration,
)
from .vector import Vector2, safe_normalize
from .world import WorldParameters
from .rocket import RocketConfiguration, create_tutorial_rocket
from .autopilot import Autopilot, parse_script
from .orbital import TrajectoryProjector, compute_apo_peri, project_trajectory, reference_trajectory
from .core import EngineConfig, GameEngine, fly
from .plotting import plot_results

__version__ = "0.1.0"
__all__ = [
    "Autopilot",
    "ConfigurationError",
    "EngineConfig",
    "FlightEvent",
    "G0",
    "GameEngine",
    "HoldMode",
    "KARMAN_LINE",
    "LaunchSimulatorError",
    "RocketConfiguration",
    "RocketState",
    "STABLE_ORBIT_PERIAPSIS",
    "ScriptParseError",
    "StageConfiguration",
    "TrajectoryProjector",
    "Vector2",
    "WorldParameters",
    "compute_apo_peri",
    "create_tutorial_rocket",
    "fly",
    "parse_script",
    "plot_results",
    "project_trajectory",
    "reference_trajectory",
    "safe_normalize",
]
