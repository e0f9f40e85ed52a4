# Licensed under the PolyForm Noncommercial License 1.0.0
"""Staged rocket configuration: mass, thrust, fuel flow, staging and delta-v."""

from dataclasses import replace
from typing import List, Optional
import logging
import math

from .models import (
    G0,
    NOSE_CONE_HEIGHT,
    PAYLOAD_HEIGHT,
    ConfigurationError,
    StageConfiguration,
)

logger = logging.getLogger(__name__)


class RocketConfiguration:
    """
    Ordered stack of stages plus payload and base aerodynamic values.

    Stages below the active one have been jettisoned and no longer count
    towards mass or delta-v.
    """

    def __init__(self, stages: List[StageConfiguration], payload_mass: float = 1000.0,
                 drag_coefficient: float = 0.3, cross_sectional_area: float = 10.0,
                 payload_height: float = PAYLOAD_HEIGHT + NOSE_CONE_HEIGHT):
        """
        Args:
            stages: Stage records, first to fire first. They are copied, so the
                caller's objects are never mutated; every copy starts full.
            payload_mass: Payload mass (kg)
            drag_coefficient: Base drag coefficient
            cross_sectional_area: Base frontal area (m^2)
            payload_height: Height of payload plus nose cone above the stages (m)
        """
        if not stages:
            raise ConfigurationError("A rocket needs at least one stage")
        for stage in stages:
            if stage.thrust < 0 or stage.propellant_mass < 0 or stage.dry_mass < 0:
                raise ConfigurationError(f"Stage '{stage.name}' has negative thrust or mass")
            if stage.specific_impulse <= 0:
                raise ConfigurationError(f"Stage '{stage.name}' needs a positive specific impulse")
        if payload_mass < 0:
            raise ConfigurationError(f"payload_mass must be non-negative, got {payload_mass}")

        self.stages = [replace(stage, fuel_remaining=stage.propellant_mass) for stage in stages]
        self.payload_mass = payload_mass
        self.drag_coefficient = drag_coefficient
        self.cross_sectional_area = cross_sectional_area
        self.payload_height = payload_height

    def _firing_stages(self) -> List[StageConfiguration]:
        return [stage for stage in self.stages if stage.is_active and stage.fuel_remaining > 0]

    def _attached_stages(self) -> List[StageConfiguration]:
        start = max(self.get_current_stage_index(), 0)
        return self.stages[start:]

    def get_current_mass(self) -> float:
        """Payload plus dry mass and remaining fuel of every attached stage (kg)."""
        return self.payload_mass + sum(s.dry_mass + s.fuel_remaining for s in self._attached_stages())

    def get_current_thrust(self) -> float:
        """Maximum thrust of active stages that still have fuel (N)."""
        return sum(stage.thrust for stage in self._firing_stages())

    def get_current_specific_impulse(self) -> float:
        """Thrust-weighted specific impulse of the firing stages (s); 0 if none."""
        firing = self._firing_stages()
        total_thrust = sum(stage.thrust for stage in firing)
        if total_thrust == 0:
            return 0.0
        return sum(stage.specific_impulse * stage.thrust for stage in firing) / total_thrust

    def get_thrust_to_weight_ratio(self, gravity: float) -> float:
        weight = self.get_current_mass() * gravity
        return self.get_current_thrust() / weight if weight > 0 else 0.0

    def get_fuel_consumption_rate(self, throttle: float) -> float:
        """Total mass flow at `throttle` (kg/s)."""
        return sum(stage.thrust * throttle / (stage.specific_impulse * G0) for stage in self._firing_stages())

    def consume_fuel(self, dt: float, throttle: float) -> bool:
        """
        Burn propellant from every firing stage for `dt` seconds.

        Args:
            dt: Time step (s)
            throttle: Throttle setting in [0, 1]

        Returns:
            True if any stage had fuel to burn, False otherwise
        """
        firing = self._firing_stages()
        if not firing:
            return False

        for stage in firing:
            flow = stage.thrust * throttle / (stage.specific_impulse * G0)
            burned = max(0.0, flow * dt)
            stage.fuel_remaining = max(0.0, stage.fuel_remaining - burned)
        return True

    def get_active_stage(self) -> Optional[StageConfiguration]:
        return next((stage for stage in self.stages if stage.is_active), None)

    def get_current_stage_index(self) -> int:
        """Index of the active stage, or -1 if none is active."""
        return next((i for i, stage in enumerate(self.stages) if stage.is_active), -1)

    def get_next_stage(self) -> Optional[StageConfiguration]:
        index = self.get_current_stage_index()
        if index == -1 or index >= len(self.stages) - 1:
            return None
        return self.stages[index + 1]

    def is_ready_for_staging(self) -> bool:
        active = self.get_active_stage()
        return active is not None and active.fuel_remaining <= 0

    def perform_staging(self) -> bool:
        """
        Deactivate the current stage and activate the next one.

        Staging with fuel left or engines running is allowed here; hot-staging
        policy is the caller's job.

        Returns:
            False if there is no active stage or it is already the last
        """
        index = self.get_current_stage_index()
        if index == -1 or index >= len(self.stages) - 1:
            return False

        self.stages[index].is_active = False
        self.stages[index + 1].is_active = True
        logger.info("Staged: %s -> %s", self.stages[index].name, self.stages[index + 1].name)
        return True

    def is_staging_safe(self, current_thrust: float) -> bool:
        return self.get_active_stage() is not None and current_thrust == 0

    def is_hot_staging(self, current_thrust: float) -> bool:
        return current_thrust > 0

    def would_explode_on_staging(self, current_thrust: float) -> bool:
        # Any thrust at separation is fatal
        return current_thrust > 0

    def should_auto_stage(self) -> bool:
        active = self.get_active_stage()
        return active is not None and active.fuel_remaining <= 0 and self.get_next_stage() is not None

    def get_total_fuel(self) -> float:
        return sum(stage.fuel_remaining for stage in self._attached_stages())

    def get_stack_height(self) -> float:
        """Height of the attached stack: stages plus payload and nose (m)."""
        return self.payload_height + sum(stage.height for stage in self._attached_stages())

    def get_remaining_delta_v(self) -> float:
        """
        Multi-stage Tsiolkovsky budget from the current stage upwards.

        Each stage burns its remaining fuel, then its dry mass is dropped if a
        later stage exists.

        Returns:
            Remaining delta-v (m/s), never negative
        """
        total = 0.0
        mass = self.get_current_mass()
        start = max(self.get_current_stage_index(), 0)

        for i in range(start, len(self.stages)):
            stage = self.stages[i]
            fuel = max(0.0, stage.fuel_remaining)
            if fuel > 0:
                mass_after = max(1e-6, mass - fuel)
                if mass_after < mass:
                    total += max(0.0, stage.specific_impulse * G0 * math.log(mass / mass_after))
                    mass = mass_after
            if i < len(self.stages) - 1:
                mass = max(1e-6, mass - stage.dry_mass)

        return total


def create_tutorial_rocket() -> RocketConfiguration:
    """Default two-stage rocket with a 1 t payload."""
    stages = [
        StageConfiguration(
            name="First Stage",
            thrust=480_000,
            specific_impulse=265,
            sea_level_isp=265,
            vacuum_isp=300,
            propellant_mass=25_000,
            dry_mass=3_000,
            is_active=True,
            height=130,
        ),
        StageConfiguration(
            name="Second Stage",
            thrust=120_000,
            specific_impulse=335,
            sea_level_isp=300,
            vacuum_isp=335,
            propellant_mass=5_000,
            dry_mass=1_200,
            height=70,
        ),
    ]
    return RocketConfiguration(stages, payload_mass=1000)
