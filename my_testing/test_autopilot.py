"""Unit tests for the autopilot command language and step queue."""

import math

import pytest

from launchSimulator import HoldMode, ScriptParseError, parse_script
from launchSimulator.autopilot import (
    Autopilot,
    Cut,
    Hold,
    Ignite,
    Pitch,
    SetThrottle,
    Stage,
    UntilApsis,
    UntilTwr,
    Wait,
    WaitUntilAltitude,
    WaitUntilApoapsis,
    WaitUntilPeriapsis,
    WaitUntilStageEmpty,
    normalize_script,
    parse_command,
)


class MockEngine:
    """Scriptable stand-in for the game engine."""

    def __init__(self):
        self.throttle = 0.0
        self.engine_on = False
        self.hold = HoldMode.NONE
        self.target_angle = None
        self.game_speed = 1
        self.altitude = 0.0
        self.apoapsis = 0.0
        self.periapsis = -350_000.0
        self.radial_velocity = 0.0
        self.twr = 0.0
        self.stage_fuel = 100.0
        self.calls = []

    def set_throttle(self, value):
        self.throttle = max(0.0, min(1.0, value))
        self.calls.append(("throttle", value))

    def ignite_engines(self):
        self.engine_on = True
        self.calls.append("ignite")
        return True

    def cut_engines(self):
        self.engine_on = False
        self.throttle = 0.0
        self.calls.append("cut")

    def perform_staging(self):
        self.calls.append("stage")
        return True

    def set_autopilot_hold(self, mode):
        self.hold = HoldMode(mode)

    def set_autopilot_target_angle(self, degrees):
        self.target_angle = degrees

    def set_game_speed(self, speed):
        self.game_speed = speed

    def is_engine_on(self):
        return self.engine_on

    def get_altitude(self):
        return self.altitude

    def get_apoapsis_altitude(self):
        return self.apoapsis

    def get_periapsis_altitude(self):
        return self.periapsis

    def get_radial_velocity(self):
        return self.radial_velocity

    def get_current_twr(self):
        return self.twr

    def get_active_stage_fuel(self):
        return self.stage_fuel


@pytest.fixture
def engine():
    return MockEngine()


@pytest.fixture
def pilot(engine):
    autopilot = Autopilot(engine)
    autopilot.messages = []
    autopilot.set_logger(autopilot.messages.append)
    return autopilot


# Parsing

def test_normalize_splits_on_then_separator_and_keywords():
    """'then', '////' and inline keywords each start a new line."""
    assert normalize_script("throttle 1 then ignite") == ["throttle 1", "ignite"]
    assert normalize_script("ignite////throttle 1") == ["ignite", "throttle 1"]
    assert normalize_script("ignite throttle 1 hold prograde") == ["ignite", "throttle 1", "hold prograde"]
    assert normalize_script("IGNITE Throttle 0.5") == ["IGNITE", "Throttle 0.5"]


def test_normalize_keeps_throttle_with_until_clause():
    """A trailing throttle belongs to the until/burn_until before it."""
    assert normalize_script("until apoapsis 90_000 throttle 1") == ["until apoapsis 90_000 throttle 1"]
    assert normalize_script("burn_until apoapsis 120000 throttle 0.8 then cut") == [
        "burn_until apoapsis 120000 throttle 0.8", "cut"]
    assert normalize_script("wait 5 throttle 1") == ["wait 5", "throttle 1"]


def test_normalize_drops_comments_and_blank_lines():
    """'#' and '//' start comments; blank lines vanish."""
    text = "# launch\nignite  # go\n\n// coast\nwait 3 // seconds\n"
    assert normalize_script(text) == ["ignite", "wait 3"]


def test_parse_simple_commands():
    """Engine, staging and throttle commands."""
    assert parse_command("ignite") == Ignite()
    assert parse_command("engine on") == Ignite()
    assert parse_command("start") == Ignite()
    assert parse_command("cut") == Cut()
    assert parse_command("engine off") == Cut()
    assert parse_command("stage") == Stage()
    assert parse_command("throttle 0.75") == SetThrottle(0.75)
    assert parse_command("throttle 2") == SetThrottle(1.0)
    assert parse_command("   ") is None
    assert parse_command("# just a comment") is None


def test_parse_waits():
    """Timed and conditional waits, with digit separators."""
    assert parse_command("wait 2.5") == Wait(2.5)
    assert parse_command("wait until apoapsis") == WaitUntilApoapsis()
    assert parse_command("wait until periapsis") == WaitUntilPeriapsis()
    assert parse_command("wait until altitude 10_000") == WaitUntilAltitude(10_000)
    assert parse_command("wait until stage empty") == WaitUntilStageEmpty()
    assert parse_command("until stage depleted") == WaitUntilStageEmpty()


def test_parse_attitude_commands():
    """Hold modes and pitch directions."""
    assert parse_command("hold prograde") == Hold(HoldMode.PROGRADE)
    assert parse_command("hold retrograde") == Hold(HoldMode.RETROGRADE)
    assert parse_command("hold up") == Hold(HoldMode.UP)
    assert parse_command("hold") == Hold(HoldMode.NONE)

    east = parse_command("pitch east 10")
    assert east == Pitch("east", 10)
    assert east.signed_degrees == -10
    assert parse_command("pitch west 5").signed_degrees == 5


def test_parse_until_clauses():
    """Apsis and TWR targets with optional throttle."""
    assert parse_command("until apoapsis 90_000 throttle 1") == UntilApsis("apoapsis", 90_000, 1.0)
    assert parse_command("until periapsis >= 90000") == UntilApsis("periapsis", 90_000, None)
    assert parse_command("until apoapsis") == WaitUntilApoapsis()
    assert parse_command("burn_until apoapsis 120_000") == UntilApsis("apoapsis", 120_000, 1.0)
    assert parse_command("burn_until apoapsis 120_000 throttle 0.6") == UntilApsis("apoapsis", 120_000, 0.6)
    assert parse_command("until twr <= 1.5 throttle 0.5") == UntilTwr("<=", 1.5, 0.5)
    assert parse_command("until twr > 2") == UntilTwr(">", 2.0, None)


@pytest.mark.parametrize("line", [
    "throttle abc",
    "wait forever",
    "wait 1.2.3",
    "pitch north 5",
    "until twr 2",
    "until stage soon",
    "burn_until apoapsis",
    "fly to the moon",
])
def test_parse_errors(line):
    """Malformed lines raise ScriptParseError naming the line."""
    with pytest.raises(ScriptParseError) as excinfo:
        parse_command(line)
    assert excinfo.value.line == line


def test_unknown_command_message():
    """Unknown commands are reported verbatim."""
    with pytest.raises(ScriptParseError, match="Unknown command: fly to the moon"):
        parse_command("fly to the moon")


def test_parse_script_collects_errors():
    """Every bad line is reported, good lines are still parsed."""
    commands, errors = parse_script("ignite\nbogus\nwait x")
    assert commands == [Ignite()]
    assert len(errors) == 2


# Execution

def test_instant_steps_run_one_per_tick(engine, pilot):
    """Each command takes one tick; completion releases the hold."""
    assert pilot.run_script("ignite then throttle 1 then hold prograde")
    assert pilot.queue_length == 3
    assert pilot.is_running()

    pilot.update(0.1)
    assert engine.calls == ["ignite"]
    pilot.update(0.1)
    assert engine.throttle == 1.0
    pilot.update(0.1)

    assert not pilot.is_running()
    assert engine.hold is HoldMode.NONE
    assert pilot.messages == ["Queued 3 steps.", "ignite", "throttle 1", "hold prograde", "> script complete"]


def test_hold_persists_while_script_runs(engine, pilot):
    """Hold stays engaged until the queue drains."""
    pilot.run_script("hold prograde\nwait 10")
    pilot.update(0.1)
    pilot.update(0.1)
    assert engine.hold is HoldMode.PROGRADE


def test_script_with_errors_loads_nothing(engine, pilot):
    """Any parse error rejects the whole script."""
    assert not pilot.run_script("ignite\nbogus")
    assert pilot.queue_length == 0
    pilot.update(0.1)

    assert engine.calls == []
    assert "ERR: Unknown command: bogus" in pilot.messages
    assert pilot.messages[-1] == "ERR: Script has errors; nothing started."


def test_run_command_appends_all_or_nothing(engine, pilot):
    """Commands join the running queue; a bad command adds nothing."""
    pilot.run_script("wait 10")
    assert pilot.run_command("cut")
    assert pilot.queue_length == 2

    assert not pilot.run_command("cut then explode")
    assert pilot.queue_length == 2
    assert pilot.messages[-1] == "ERR: Command has errors; nothing started."


def test_run_script_replaces_queue(engine, pilot):
    """A new script stops the old one first."""
    pilot.run_script("wait 10 then wait 10")
    pilot.run_script("ignite")
    assert pilot.queue_length == 1


def test_timed_wait(engine, pilot):
    """wait N counts simulated seconds down."""
    pilot.run_script("wait 1 then cut")
    for _ in range(2):
        pilot.update(0.4)
    assert pilot.queue_length == 2
    pilot.update(0.4)
    assert pilot.queue_length == 1
    pilot.update(0.4)
    assert engine.calls == ["cut"]


def test_wait_one_second_boundary(engine, pilot):
    """wait 1 is still running after 0.5 s and done after 1.1 s."""
    pilot.run_script("wait 1")
    pilot.update(0.5)
    assert pilot.is_running()
    pilot.update(0.6)
    assert not pilot.is_running()


def test_throttle_command_sets_throttle_once(engine, pilot):
    """A lone throttle command issues exactly one set_throttle call."""
    pilot.run_script("throttle 0.5")
    pilot.update(0.1)
    assert [call for call in engine.calls if call[0] == "throttle"] == [("throttle", 0.5)]
    assert engine.throttle == 0.5


def test_wait_until_apoapsis_boosts_game_speed(engine, pilot):
    """Coasting to apoapsis runs at 10x and restores 1x afterwards."""
    pilot.run_script("wait until apoapsis then cut")
    engine.radial_velocity = 50.0
    pilot.update(0.1)
    assert engine.game_speed == 10
    assert pilot.queue_length == 2

    engine.radial_velocity = -0.1
    pilot.update(0.1)
    assert engine.game_speed == 1
    assert pilot.queue_length == 1


def test_stop_restores_game_speed_and_hold(engine, pilot):
    """Stopping mid-wait undoes the speed boost and releases the hold."""
    pilot.run_script("hold up then wait until apoapsis")
    engine.radial_velocity = 50.0
    pilot.update(0.1)
    pilot.update(0.1)
    assert engine.game_speed == 10
    assert engine.hold is HoldMode.UP

    pilot.stop()
    assert engine.game_speed == 1
    assert engine.hold is HoldMode.NONE
    assert pilot.queue_length == 0
    assert not pilot.is_running()


def test_wait_until_periapsis_and_altitude(engine, pilot):
    """Conditions are polled every tick."""
    pilot.run_script("wait until periapsis then wait until altitude 10_000")
    engine.radial_velocity = -5.0
    pilot.update(0.1)
    assert pilot.queue_length == 2
    engine.radial_velocity = 0.0
    pilot.update(0.1)
    assert pilot.queue_length == 1

    engine.altitude = 9_999.0
    pilot.update(0.1)
    assert pilot.queue_length == 1
    engine.altitude = 10_000.0
    pilot.update(0.1)
    assert pilot.queue_length == 0


def test_wait_until_stage_empty(engine, pilot):
    """Under one kilogram counts as empty; NaN keeps waiting."""
    pilot.run_script("wait until stage empty then stage")
    pilot.update(0.1)
    engine.stage_fuel = math.nan
    pilot.update(0.1)
    assert pilot.queue_length == 2

    engine.stage_fuel = 0.5
    pilot.update(0.1)
    pilot.update(0.1)
    assert engine.calls == ["stage"]


def test_pitch_sets_signed_target(engine, pilot):
    """East is negative, west positive."""
    pilot.run_script("pitch east 10 then pitch west 5 then wait 1")
    pilot.update(0.1)
    assert engine.target_angle == -10
    pilot.update(0.1)
    assert engine.target_angle == 5


def test_until_apoapsis_burns_then_cuts(engine, pilot):
    """Throttle is held and the engine lit until the target; last step cuts."""
    pilot.run_script("until apoapsis 90_000 throttle 1")
    engine.apoapsis = 50_000.0
    pilot.update(0.1)
    assert engine.engine_on
    assert engine.throttle == 1.0
    assert pilot.queue_length == 1

    engine.apoapsis = 95_000.0
    pilot.update(0.1)
    assert pilot.queue_length == 0
    assert not engine.engine_on
    assert engine.calls[-1] == "cut"


def test_until_apoapsis_does_not_cut_mid_script(engine, pilot):
    """Engines keep running when more steps follow."""
    pilot.run_script("burn_until apoapsis 90_000 then wait 5")
    engine.apoapsis = 100_000.0
    pilot.update(0.1)
    assert pilot.queue_length == 1
    assert engine.engine_on
    assert "cut" not in engine.calls


def test_burn_until_apoapsis_defaults_to_full_throttle(engine, pilot):
    """burn_until without a throttle burns at 1.0 and cuts once past the target."""
    engine.apoapsis = 50_000.0
    pilot.run_script("burn_until apoapsis 100000")
    pilot.update(0.1)
    assert [call for call in engine.calls if call[0] == "throttle"] == [("throttle", 1.0)]
    assert pilot.is_running()
    assert "cut" not in engine.calls

    engine.apoapsis = 100_001.0
    pilot.update(0.1)
    assert engine.calls[-1] == "cut"
    assert not pilot.is_running()


def test_until_twr(engine, pilot):
    """TWR comparison with a throttle override."""
    pilot.run_script("until twr >= 1.5 throttle 0.8 then wait 1")
    engine.twr = 1.0
    pilot.update(0.1)
    assert engine.throttle == 0.8
    assert pilot.queue_length == 2

    engine.twr = 1.6
    pilot.update(0.1)
    assert pilot.queue_length == 1
