# Licensed under the PolyForm Noncommercial License 1.0.0
"""
Autopilot scripting: a small line-oriented command language and the step
queue that executes it one simulation tick at a time.

Example script::

    throttle 1 then ignite
    hold prograde
    burn_until apoapsis 120_000
    wait until apoapsis
    until periapsis >= 90000 throttle 1
"""

from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional, Protocol, Tuple, Union
import logging
import math
import operator
import re

from .models import HoldMode, ScriptParseError

logger = logging.getLogger(__name__)


class EnginePort(Protocol):
    """Everything the autopilot is allowed to ask of, or tell, the engine."""

    def set_throttle(self, value: float) -> None: ...
    def ignite_engines(self) -> bool: ...
    def cut_engines(self) -> None: ...
    def perform_staging(self) -> bool: ...
    def set_autopilot_hold(self, mode: str) -> None: ...
    def set_autopilot_target_angle(self, degrees: float) -> None: ...
    def set_game_speed(self, speed: float) -> None: ...
    def is_engine_on(self) -> bool: ...
    def get_altitude(self) -> float: ...
    def get_apoapsis_altitude(self) -> float: ...
    def get_periapsis_altitude(self) -> float: ...
    def get_radial_velocity(self) -> float: ...
    def get_current_twr(self) -> float: ...
    def get_active_stage_fuel(self) -> float: ...


# Command AST

@dataclass(frozen=True)
class Ignite:
    pass


@dataclass(frozen=True)
class Cut:
    pass


@dataclass(frozen=True)
class Stage:
    pass


@dataclass(frozen=True)
class SetThrottle:
    value: float


@dataclass(frozen=True)
class Wait:
    seconds: float


@dataclass(frozen=True)
class WaitUntilApoapsis:
    pass


@dataclass(frozen=True)
class WaitUntilPeriapsis:
    pass


@dataclass(frozen=True)
class WaitUntilAltitude:
    altitude: float


@dataclass(frozen=True)
class WaitUntilStageEmpty:
    pass


@dataclass(frozen=True)
class Hold:
    mode: HoldMode


@dataclass(frozen=True)
class Pitch:
    direction: str
    degrees: float

    @property
    def signed_degrees(self) -> float:
        # East turns clockwise, i.e. towards negative rotation
        return -abs(self.degrees) if self.direction == "east" else abs(self.degrees)


@dataclass(frozen=True)
class UntilApsis:
    kind: str  # "apoapsis" or "periapsis"
    target: float
    throttle: Optional[float] = None


@dataclass(frozen=True)
class UntilTwr:
    op: str
    value: float
    throttle: Optional[float] = None


Command = Union[Ignite, Cut, Stage, SetThrottle, Wait, WaitUntilApoapsis, WaitUntilPeriapsis,
                WaitUntilAltitude, WaitUntilStageEmpty, Hold, Pitch, UntilApsis, UntilTwr]


# Parsing

KEYWORDS = ["ignite", "ignit", "start", "engine on", "cut", "engine off", "stop",
            "hold", "throttle", "wait", "burn_until", "pitch"]

_SEPARATOR_RE = re.compile(r"\s*////\s*")
_THEN_RE = re.compile(r"\bthen\b", re.IGNORECASE)
_COMMENT_RE = re.compile(r"(#|//).*$")
_KEYWORD_RE = re.compile(r"(?!^)\b(" + "|".join(kw.replace(" ", r"\s+") for kw in KEYWORDS) + r")\b",
                         re.IGNORECASE)

_NUMBER = r"([0-9_.]+)"
_THROTTLE_ARG_RE = re.compile(r"throttle\s*([0-9.]+)", re.IGNORECASE)
_TWR_OPS = {"<=": operator.le, ">=": operator.ge, "<": operator.lt, ">": operator.gt}


def _strip_comment(line: str) -> str:
    return _COMMENT_RE.sub("", line).strip()


def _attaches_throttle(line: str) -> bool:
    lower = line.lower()
    return (lower.startswith("until") or lower.startswith("burn_until")) and "throttle" not in lower


def normalize_script(text: str) -> List[str]:
    """
    Split free-form script text into one command per line.

    Splits on '////', the word 'then', and before every command keyword. A
    trailing 'throttle N' stays with the 'until'/'burn_until' clause it
    follows. Comments after '#' or '//' are dropped.

    Args:
        text: Raw script text

    Returns:
        Non-empty, stripped command lines in order
    """
    lines: List[str] = []
    for physical in _SEPARATOR_RE.sub("\n", text).splitlines():
        physical = _THEN_RE.sub("\n", _strip_comment(physical))
        for chunk in physical.split("\n"):
            chunk = chunk.strip()
            if not chunk:
                continue
            for piece in _KEYWORD_RE.sub(lambda m: "\n" + m.group(0), chunk).split("\n"):
                piece = piece.strip()
                if not piece:
                    continue
                if lines and piece.lower().startswith("throttle") and _attaches_throttle(lines[-1]):
                    lines[-1] = f"{lines[-1]} {piece}"
                else:
                    lines.append(piece)
    return lines


def _to_number(text: str, line: str, what: str) -> float:
    try:
        value = float(text.replace("_", ""))
    except ValueError:
        raise ScriptParseError(f"{what} expects a number (in: \"{line}\")", line) from None
    if not math.isfinite(value):
        raise ScriptParseError(f"{what} expects a finite number (in: \"{line}\")", line)
    return value


def _clamp_throttle(value: float) -> float:
    return max(0.0, min(1.0, value))


def _throttle_arg(line: str) -> Optional[float]:
    m = _THROTTLE_ARG_RE.search(line)
    if not m:
        return None
    return _clamp_throttle(_to_number(m.group(1), line, "throttle"))


def parse_command(line: str) -> Optional[Command]:
    """
    Parse a single normalised line.

    Args:
        line: One command line

    Returns:
        The command, or None for a blank or comment-only line

    Raises:
        ScriptParseError: If the line is malformed or unknown
    """
    raw = _strip_comment(line)
    if not raw:
        return None
    lower = " ".join(raw.lower().split())

    if lower.startswith("throttle"):
        m = re.match(r"throttle\s+([0-9.]+)", raw, re.IGNORECASE)
        if not m:
            raise ScriptParseError(f"throttle expects a number 0..1 (in: \"{raw}\")", raw)
        return SetThrottle(_clamp_throttle(_to_number(m.group(1), raw, "throttle")))

    if lower in ("ignite", "ignit", "engine on", "start"):
        return Ignite()
    if lower in ("cut", "engine off", "stop"):
        return Cut()
    if lower == "stage":
        return Stage()

    if lower.startswith("wait"):
        if re.match(r"wait\s+until\s+apoapsis", lower):
            return WaitUntilApoapsis()
        if re.match(r"wait\s+until\s+periapsis", lower):
            return WaitUntilPeriapsis()
        if re.match(r"wait\s+until\s+stage\s+(empty|depleted)", lower):
            return WaitUntilStageEmpty()
        m = re.match(r"wait\s+until\s+altitude\s+" + _NUMBER, lower)
        if m:
            return WaitUntilAltitude(_to_number(m.group(1), raw, "wait until altitude"))
        m = re.match(r"wait\s+" + _NUMBER, lower)
        if not m:
            raise ScriptParseError(
                f"wait expects seconds or \"wait until apoapsis|periapsis|altitude N\" (in: \"{raw}\")", raw)
        return Wait(_to_number(m.group(1), raw, "wait"))

    if lower.startswith("hold"):
        m = re.match(r"hold\s+(prograde|retrograde|up|none)\b", lower)
        return Hold(HoldMode(m.group(1)) if m else HoldMode.NONE)

    if lower.startswith("pitch"):
        m = re.match(r"pitch\s+(east|west)\s+" + _NUMBER, lower)
        if not m:
            raise ScriptParseError(f"pitch expects 'pitch east|west <deg>' (in: \"{raw}\")", raw)
        return Pitch(m.group(1), _to_number(m.group(2), raw, "pitch angle"))

    for kind in ("apoapsis", "periapsis"):
        if lower.startswith(f"until {kind}"):
            m = re.search(kind + r"\s*(?:=|>=|<=)?\s*" + _NUMBER, lower)
            if not m:
                return WaitUntilApoapsis() if kind == "apoapsis" else WaitUntilPeriapsis()
            return UntilApsis(kind, _to_number(m.group(1), raw, f"until {kind}"), _throttle_arg(raw))

    if lower.startswith("until stage"):
        if re.match(r"until\s+stage\s+(empty|depleted)", lower):
            return WaitUntilStageEmpty()
        raise ScriptParseError(f"until stage expects 'empty|depleted' (in: \"{raw}\")", raw)

    if lower.startswith("burn_until apoapsis"):
        m = re.search(r"apoapsis\s*" + _NUMBER, lower)
        if not m:
            raise ScriptParseError(f"burn_until apoapsis expects a number (in: \"{raw}\")", raw)
        throttle = _throttle_arg(raw)
        return UntilApsis("apoapsis", _to_number(m.group(1), raw, "burn_until apoapsis"),
                          1.0 if throttle is None else throttle)

    if lower.startswith("until twr"):
        m = re.search(r"twr\s*(<=|>=|<|>)\s*([0-9.]+)", lower)
        if not m:
            raise ScriptParseError(f"until twr expects '<= or >=' then a number (in: \"{raw}\")", raw)
        return UntilTwr(m.group(1), _to_number(m.group(2), raw, "until twr"), _throttle_arg(raw))

    raise ScriptParseError(f"Unknown command: {raw}", raw)


def parse_script(text: str) -> Tuple[List[Command], List[ScriptParseError]]:
    """Parse every line of `text`, collecting commands and errors separately."""
    commands: List[Command] = []
    errors: List[ScriptParseError] = []
    for line in normalize_script(text):
        try:
            command = parse_command(line)
        except ScriptParseError as err:
            errors.append(err)
            continue
        if command is not None:
            commands.append(command)
    return commands, errors


# Execution

@dataclass
class Step:
    """
    One queued unit of work.

    `tick(dt)` returns True once the step is finished. `on_stop` runs only if
    the queue is stopped while this step is at its head; `on_complete`
    receives the number of steps still queued.
    """
    tick: Callable[[float], bool]
    on_stop: Optional[Callable[[], None]] = None
    on_complete: Optional[Callable[[int], None]] = None


class Autopilot:
    """FIFO of polling steps driven once per simulation tick."""

    def __init__(self, engine: EnginePort):
        self.engine = engine
        self.queue: Deque[Step] = deque()
        self.running = False
        self._log_fn: Optional[Callable[[str], None]] = None

    def set_logger(self, fn: Optional[Callable[[str], None]]) -> None:
        self._log_fn = fn

    def log(self, message: str) -> None:
        logger.debug("autopilot: %s", message)
        if self._log_fn is not None:
            self._log_fn(message)

    @property
    def queue_length(self) -> int:
        return len(self.queue)

    def is_running(self) -> bool:
        return self.running and len(self.queue) > 0

    def _load(self, text: str) -> Optional[List[Step]]:
        commands, errors = parse_script(text)
        for err in errors:
            self.log(f"ERR: {err}")
        if errors:
            return None
        return [self.build_step(command) for command in commands]

    def run_script(self, text: str) -> bool:
        """
        Replace the queue with `text`. Any parse error loads nothing.

        Returns:
            True if the script was queued
        """
        self.stop()
        steps = self._load(text)
        if steps is None:
            self.log("ERR: Script has errors; nothing started.")
            return False
        self.queue.extend(steps)
        self.running = len(self.queue) > 0
        self.log(f"Queued {len(self.queue)} steps.")
        return True

    def run_command(self, text: str) -> bool:
        """Append `text` to the running queue, all or nothing."""
        steps = self._load(text)
        if steps is None:
            self.log("ERR: Command has errors; nothing started.")
            return False
        self.queue.extend(steps)
        self.running = len(self.queue) > 0
        return True

    def update(self, dt: float) -> None:
        """Tick the head step; pop it and fire `on_complete` when it finishes."""
        if not self.running or not self.queue:
            return
        step = self.queue[0]
        if not step.tick(dt):
            return

        self.queue.popleft()
        if step.on_complete is not None:
            step.on_complete(len(self.queue))
        if not self.queue:
            self.running = False
            self.engine.set_autopilot_hold(HoldMode.NONE)
            self.engine.set_game_speed(1)
            self.log("> script complete")

    def stop(self) -> None:
        """Drop the queue, giving the head step a chance to clean up, and release holds."""
        if self.queue and self.queue[0].on_stop is not None:
            self.queue[0].on_stop()
        self.queue.clear()
        self.running = False
        self.engine.set_autopilot_hold(HoldMode.NONE)

    def build_step(self, command: Command) -> Step:
        builder = {
            Ignite: self._ignite,
            Cut: self._cut,
            Stage: self._stage,
            SetThrottle: self._set_throttle,
            Wait: self._wait,
            WaitUntilApoapsis: self._wait_apoapsis,
            WaitUntilPeriapsis: self._wait_periapsis,
            WaitUntilAltitude: self._wait_altitude,
            WaitUntilStageEmpty: self._wait_stage_empty,
            Hold: self._hold,
            Pitch: self._pitch,
            UntilApsis: self._until_apsis,
            UntilTwr: self._until_twr,
        }[type(command)]
        return builder(command)

    def _instant(self, action: Callable[[], object], message: str) -> Step:
        def tick(dt):
            action()
            self.log(message)
            return True
        return Step(tick)

    def _ignite(self, command: Ignite) -> Step:
        return self._instant(self.engine.ignite_engines, "ignite")

    def _cut(self, command: Cut) -> Step:
        return self._instant(self.engine.cut_engines, "cut")

    def _stage(self, command: Stage) -> Step:
        return self._instant(self.engine.perform_staging, "stage")

    def _set_throttle(self, command: SetThrottle) -> Step:
        return self._instant(lambda: self.engine.set_throttle(command.value), f"throttle {command.value:g}")

    def _hold(self, command: Hold) -> Step:
        return self._instant(lambda: self.engine.set_autopilot_hold(command.mode), f"hold {command.mode.value}")

    def _pitch(self, command: Pitch) -> Step:
        return self._instant(lambda: self.engine.set_autopilot_target_angle(command.signed_degrees),
                             f"pitch {command.direction} {command.degrees:g}")

    def _wait(self, command: Wait) -> Step:
        remaining = [command.seconds]

        def tick(dt):
            remaining[0] -= dt
            return remaining[0] <= 0
        return Step(tick)

    def _wait_apoapsis(self, command: WaitUntilApoapsis) -> Step:
        boosted = [False]

        def tick(dt):
            if not boosted[0]:
                self.engine.set_game_speed(10)
                boosted[0] = True
            # Radial velocity turns negative just past apoapsis
            return self.engine.get_radial_velocity() <= 0

        def restore_speed(*args):
            self.engine.set_game_speed(1)

        return Step(tick, on_stop=restore_speed, on_complete=restore_speed)

    def _wait_periapsis(self, command: WaitUntilPeriapsis) -> Step:
        return Step(lambda dt: self.engine.get_radial_velocity() >= 0)

    def _wait_altitude(self, command: WaitUntilAltitude) -> Step:
        return Step(lambda dt: self.engine.get_altitude() >= command.altitude)

    def _wait_stage_empty(self, command: WaitUntilStageEmpty) -> Step:
        def tick(dt):
            fuel = self.engine.get_active_stage_fuel()
            if not math.isfinite(fuel):
                return False
            # Anything under a kilogram counts as empty
            return fuel <= 1
        return Step(tick)

    def _until_apsis(self, command: UntilApsis) -> Step:
        read = (self.engine.get_apoapsis_altitude if command.kind == "apoapsis"
                else self.engine.get_periapsis_altitude)
        target = command.target
        prev = [math.nan]

        def tick(dt):
            if command.throttle is not None:
                self.engine.set_throttle(command.throttle)
            if not self.engine.is_engine_on() and (command.throttle or 0) > 0:
                self.engine.ignite_engines()

            value = read()
            if value >= target and not math.isnan(prev[0]):
                # Already past the target: done if still rising or back at/below it
                if value > prev[0] + 0.01 or value <= target:
                    return True
            prev[0] = value
            return value >= target

        def on_complete(remaining):
            if remaining == 0:
                self.engine.cut_engines()

        return Step(tick, on_complete=on_complete)

    def _until_twr(self, command: UntilTwr) -> Step:
        compare = _TWR_OPS[command.op]

        def tick(dt):
            if command.throttle is not None:
                self.engine.set_throttle(command.throttle)
            return compare(self.engine.get_current_twr(), command.value)
        return Step(tick)
