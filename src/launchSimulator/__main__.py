# Licensed under the PolyForm Noncommercial License 1.0.0
"""
Command-line interface for the launch simulator.
"""

import argparse
import logging
import math
import random

from .core import GameEngine, fly
from .plotting import plot_results

DEFAULT_SCRIPT = """
# Gravity turn to a 90 km apoapsis on the first stage
ignite then throttle 1
wait until altitude 1_500
pitch east 15
wait 20
hold prograde
until apoapsis 90_000 throttle 1
wait until apoapsis
"""


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        prog="python -m launchSimulator",
        description="Fly the tutorial rocket headlessly under an autopilot script",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    source = p.add_mutually_exclusive_group()
    source.add_argument("--script", metavar="FILE",
                        help="Autopilot script file (default: built-in gravity turn)")
    source.add_argument("--command", metavar="TEXT",
                        help="Inline autopilot commands, e.g. 'ignite then throttle 1'")
    p.add_argument("--duration", type=float, default=600.0,
                   help="Simulated seconds to fly")
    p.add_argument("--dt", type=float, default=1 / 60,
                   help="Frame time fed to the engine (s)")
    p.add_argument("--speed", type=float, default=1.0,
                   help="Initial game speed multiplier")
    p.add_argument("--seed", type=int, default=None,
                   help="Seed for structural failure rolls")
    p.add_argument("--plot", action="store_true",
                   help="Show plots of the recorded flight")
    p.add_argument("--save", metavar="PATH", default=None,
                   help="Save the plots to this path")
    p.add_argument("--verbose", "-v", action="store_true",
                   help="Log debug output")
    return p.parse_args(argv)


def _km(value: float) -> str:
    return f"{value / 1000:.1f} km" if math.isfinite(value) else ("escape" if value > 0 else "none")


def main(argv=None):
    """Run one scripted flight and print a mission summary."""
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    print("Launch Simulator")
    print("================")

    if args.script:
        with open(args.script, encoding="utf-8") as fh:
            script = fh.read()
    else:
        script = args.command or DEFAULT_SCRIPT

    rng = random.Random(args.seed).random
    engine = GameEngine(rng=rng)
    engine.set_autopilot_logger(lambda line: print(f"  [autopilot] {line}"))
    engine.set_game_speed(args.speed)
    if not engine.run_autopilot_script(script):
        return 1

    print("Flying...")
    results = fly(engine, args.duration, frame_dt=args.dt)

    if args.plot or args.save:
        print("Plotting results...")
        plot_results(results, show=args.plot, save_path=args.save)

    apoapsis = engine.get_apoapsis_altitude()
    periapsis = engine.get_periapsis_altitude()
    projection = engine.get_projection()

    print(f"\nSimulation {'Complete' if results['success'] else 'Ended'}: {results['message']}")
    print(f"Flight time: {results['t'][-1]:.1f} s")
    print(f"Peak altitude: {results['altitude'].max() / 1000:.1f} km")
    print(f"Final altitude: {engine.get_altitude() / 1000:.1f} km")
    print(f"Final speed: {results['velocity'][-1]:.0f} m/s")
    print(f"Apoapsis: {_km(apoapsis)}  Periapsis: {_km(periapsis)}")
    print(f"Stable orbit: {'yes' if projection.stable_orbit else 'no'}")
    print(f"Fuel left: {engine.configuration.get_total_fuel():.0f} kg")
    for event in results['events']:
        print(f"  t={event.time:7.1f} s  {event.kind}  {event.message}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
