"""Command line entry point for the traffic signal optimizer."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from signal_optimizer import OptimizerConfig, OptimizerService, SignalTiming, StorageConfig
from signal_optimizer.errors import OptimizerError
from signal_optimizer.scenarios import find_scenario, load_predefined_scenarios
from signal_optimizer.storage import InMemoryTrafficStore, open_store

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_TIMING = SignalTiming(red_seconds=30, yellow_seconds=5, green_seconds=25)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--backend", choices=["memory", "sqlite", "supabase"], default=None,
                        help="Storage backend (defaults to the environment)")
    parser.add_argument("--db", dest="db_path", help="SQLite database path")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the value table and policy")
    parser.add_argument("--epsilon", type=float, default=0.1)
    parser.add_argument("--threshold", type=float, default=0.6, help="Confidence needed to apply a change")

    commands = parser.add_subparsers(dest="command", required=True)
    optimize = commands.add_parser("optimize", help="Optimize one intersection")
    optimize.add_argument("intersection_id")
    optimize.add_argument("--scenario", help="Seed the in-memory store with a predefined window")
    commands.add_parser("status", help="Show the optimizer status")
    commands.add_parser("scenarios", help="List predefined traffic windows")
    return parser


def _emit(body: object) -> None:
    json.dump(body, sys.stdout, indent=2)
    sys.stdout.write("\n")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "scenarios":
        _emit([
            {"name": scenario.name, "description": scenario.description}
            for scenario in load_predefined_scenarios()
        ])
        return 0

    config = OptimizerConfig(epsilon=args.epsilon, confidence_threshold=args.threshold, seed=args.seed)
    storage = StorageConfig.from_env(args.backend)
    if args.db_path is not None:
        storage = StorageConfig(backend=args.backend or "sqlite", db_path=args.db_path,
                                supabase_url=storage.supabase_url, supabase_key=storage.supabase_key)
    store = open_store(storage)

    scenario_name = getattr(args, "scenario", None)
    if scenario_name is not None:
        scenario = find_scenario(scenario_name)
        if scenario is None:
            parser.error(f"unknown scenario: {scenario_name}")
        if not isinstance(store, InMemoryTrafficStore):
            parser.error("--scenario requires the memory backend")
        # samples are most recent first; insert oldest first
        for sample in reversed(scenario.samples()):
            store.add_sample(args.intersection_id, sample)
        store.set_timing(args.intersection_id, DEMO_TIMING)

    service = OptimizerService(store, config)
    try:
        if args.command == "status":
            _emit(service.status().to_dict())
            return 0
        try:
            result = service.optimize(args.intersection_id)
        except OptimizerError as exc:
            logger.error("AI optimization failed: %s", exc)
            _emit({"error": "AI optimization failed", "details": str(exc)})
            return 1
        _emit(result.to_dict())
        return 0
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
