"""
Command-line interface for eggrun.

Thin presentation layer over the Orchestrator: every subcommand builds the
DAL from the central config, performs one action and prints the outcome.
Declined actions (not enough eggs, nothing left to hatch, ...) exit with
status 1 and print the error code so scripts can branch on it.
"""
import argparse
import sys
from typing import List, Optional

from eggrun.core.orchestrator import Orchestrator
from eggrun.data_access.factory import get_dal
from eggrun.errors import EggRunError, RewardResult
from eggrun.infra import log_utils


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="eggrun", description="Hatch and evolve creatures by running.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("seed", help="Load the creature catalog on first run.")

    workout = sub.add_parser("workout", help="Log a manual workout and collect its rewards.")
    workout.add_argument("--distance", type=float, required=True, help="Distance in kilometres.")

    sub.add_parser("hatch", help="Spend an egg and a rare candy to hatch a creature.")

    evolve = sub.add_parser("evolve", help="Spend a rare candy to evolve an owned creature.")
    evolve.add_argument("instance_id", type=int)

    sub.add_parser("bag", help="Show eggs and rare candies.")
    sub.add_parser("creatures", help="List owned creatures.")

    dex = sub.add_parser("dex", help="Show the collection log.")
    dex.add_argument("--unlocked", action="store_true", help="Only show unlocked entries.")

    sub.add_parser("history", help="List saved workouts, newest first.")
    sub.add_parser("reconcile", help="Re-unlock collection entries for owned creatures.")

    prefs = sub.add_parser("settings", help="Show or change user settings.")
    prefs.add_argument("--language", choices=["es", "en"])
    prefs.add_argument("--unit", choices=["km", "mi"])
    return parser


def _report(result: RewardResult) -> int:
    if result.ok:
        print(result.message)
        return 0
    print(f"{result.error.value}: {result.message}")
    if result.inconsistent:
        print("Warning: inventory may be inconsistent, run `eggrun reconcile` and check the log.")
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Parses CLI arguments and runs the matching orchestrator action."""
    args = _build_parser().parse_args(argv)
    log_utils.log_message(f"CLI invoked for '{args.command}'.", "INFO")

    # The DAL is chosen here and injected; the orchestrator never picks one.
    orchestrator = Orchestrator(get_dal())
    try:
        names = {s.species_id: s.name for s in orchestrator.dal.list_species()}
        if args.command == "seed":
            seeded = orchestrator.seed()
            print("Catalog loaded." if seeded else "Catalog already loaded, progress kept.")
        elif args.command == "workout":
            record = orchestrator.log_manual_workout(args.distance)
            print(
                f"Saved {record.distance_km:.2f} km: +{record.eggs_earned} eggs, "
                f"+{record.candies_earned} rare candies."
            )
        elif args.command == "hatch":
            return _report(orchestrator.acquire_from_egg())
        elif args.command == "evolve":
            return _report(orchestrator.evolve(args.instance_id))
        elif args.command == "bag":
            bag = orchestrator.get_inventory()
            print(f"Eggs: {bag.eggs}  Rare candies: {bag.rare_candies}")
        elif args.command == "creatures":
            for c in orchestrator.get_owned_creatures():
                print(f"#{c.instance_id:<4} {names.get(c.current_species_id, c.current_species_id)}"
                      f"  (hatched {c.acquired_at:%Y-%m-%d})")
        elif args.command == "dex":
            entries = orchestrator.get_unlocked_entries() if args.unlocked else orchestrator.get_collection_entries()
            for e in entries:
                label = names.get(e.species_id, "?") if e.unlocked else "???"
                print(f"{e.species_id:>4}  {label}")
        elif args.command == "history":
            for w in orchestrator.get_workouts():
                print(f"{w.start_time:%Y-%m-%d %H:%M}  {w.distance_km:6.2f} km  {w.source.value:<6} "
                      f"+{w.eggs_earned}E +{w.candies_earned}C")
            print(f"Total: {orchestrator.get_total_distance_km():.2f} km")
        elif args.command == "reconcile":
            fixed = orchestrator.reconcile()
            print(f"Unlocked {len(fixed)} entries." if fixed else "Collection already consistent.")
        elif args.command == "settings":
            if args.language:
                orchestrator.update_language(args.language)
            if args.unit:
                orchestrator.update_distance_unit(args.unit)
            prefs = orchestrator.get_user_settings()
            print(f"Language: {prefs.language}  Distance unit: {prefs.distance_unit}")
    except (EggRunError, ValueError) as e:
        log_utils.log_message(f"CLI '{args.command}' failed: {e}", "ERROR")
        print(f"Error: {e}")
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
