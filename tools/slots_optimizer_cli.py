#!/usr/bin/env python3
"""
REELFORGE — Slot Reel Optimizer CLI

Usage:
    python -m tools.slots_optimizer_cli
    python -m tools.slots_optimizer_cli --rtp 96 --winrate 25 --gen 100 --pop 50
    python -m tools.slots_optimizer_cli --representation weighted --same-reels --seed 7
    python -m tools.slots_optimizer_cli --until-end --balance 1000 --win-mult 3
    python -m tools.slots_optimizer_cli --dump-config
    python -m tools.slots_optimizer_cli --json best.json          # → $OUTPUT_DIR/best.json

Unset flags fall back to the SLOTS_* environment defaults (config/settings.py).
Exit code 0 on success, 2 on invalid arguments or configuration.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

sys.path.insert(0, str(Path(__file__).parent.parent))

from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel

from config.optimizer_schema import (
    GAConfig, ReelMode, Representation, StopPolicy, build_ga_config, validate_ga_config,
)
from config.settings import OUTPUT_DIR, OptimizerDefaults
from sim_engine.slots.errors import SlotOptimizerError
from sim_engine.slots.genetic import GeneticSearch
from sim_engine.slots.report import history_to_dict, render_report

logger = logging.getLogger("reelforge")
console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="slots-optimizer",
        description="Evolve slot reel strips / symbol weights toward a target RTP and win rate",
    )
    parser.add_argument("--rtp", type=float, help="Target RTP in percent (default 95)")
    parser.add_argument("--winrate", type=float, help="Target win rate in percent (default 25)")
    parser.add_argument("--gen", type=int, help="Number of generations")
    parser.add_argument("--pop", type=int, help="Population size")
    parser.add_argument("--players", type=int, help="Simulated players per evaluation")
    parser.add_argument("--spins", type=int, help="Spins per player (fixed-spins policy)")
    parser.add_argument("--until-end", action="store_true", default=None,
                        help="Play until broke or the balance reaches --win-mult × bankroll")
    parser.add_argument("--balance", type=float, help="Starting balance per player")
    parser.add_argument("--win-mult", type=float, help="Cash-out multiple of the starting balance")
    parser.add_argument("--max-session-spins", type=int, help="Spin cap per play-to-target session")
    parser.add_argument("--same-reels", action="store_true", default=None,
                        help="Use identical reels (uniform mode)")
    parser.add_argument("--representation", choices=[r.value for r in Representation],
                        help="Strip (explicit stops) or weighted (symbol weights)")
    parser.add_argument("--bet", type=float, help="Wager per spin")
    parser.add_argument("--elite", type=int, help="Elites carried to the next generation")
    parser.add_argument("--seed", type=int, default=None, help="Seed for a reproducible run")
    parser.add_argument("--workers", type=int, default=None, help="Process pool size (1 = in-process)")
    parser.add_argument("--report-every", type=int, help="Log progress every N generations")
    parser.add_argument("--json", type=str, metavar="PATH", help="Write the result summary as JSON")
    parser.add_argument("--dump-config", action="store_true", help="Print the resolved config and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def config_from_args(args: argparse.Namespace) -> GAConfig:
    return build_ga_config(
        target_rtp=args.rtp,
        target_win_rate=args.winrate,
        generations=args.gen,
        population_size=args.pop,
        players_per_sim=args.players,
        spins_per_player=args.spins,
        stop_policy=StopPolicy.PLAY_TO_TARGET if args.until_end else None,
        start_balance=args.balance,
        win_threshold=args.win_mult,
        max_session_spins=args.max_session_spins,
        reel_mode=ReelMode.UNIFORM if args.same_reels else None,
        representation=args.representation,
        bet=args.bet,
        elite_count=args.elite,
        report_every=args.report_every,
    )


def resolve_output_path(raw: str, base: Optional[Path] = None) -> Path:
    """Relative paths land under OUTPUT_DIR; absolute paths are kept."""
    path = Path(raw)
    if path.is_absolute():
        return path
    return (base if base is not None else OUTPUT_DIR) / path


def setup_logging(verbose: bool) -> None:
    if not logger.handlers:
        _h = logging.StreamHandler()
        _h.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s %(message)s", datefmt="%H:%M:%S"))
        logger.addHandler(_h)
    logger.setLevel(logging.DEBUG if verbose else OptimizerDefaults.LOG_LEVEL.upper())


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = config_from_args(args)
    except (ValidationError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    warnings = validate_ga_config(config)

    if args.dump_config:
        print(config.model_dump_json(indent=2))
        if warnings:
            print("\n⚠️  Warnings:")
            for w in warnings:
                print(f"  - {w}")
        return 0

    search = GeneticSearch(config, seed=args.seed, workers=args.workers)
    if config.stop_policy == StopPolicy.PLAY_TO_TARGET:
        session = (f"play to {config.win_threshold:g}× bankroll "
                   f"(cap {config.max_session_spins:,} spins)")
    else:
        session = f"{config.spins_per_player} spins"
    console.print(Panel(
        f"[bold]🎰 Slot Reel Optimizer[/bold]\n\n"
        f"Representation: {config.representation.value} ({search.catalog.name} catalog, "
        f"{len(search.catalog)} symbols) | Reels: {config.reel_mode.value}\n"
        f"Targets: RTP {config.target_rtp}% | Win rate {config.target_win_rate}%\n"
        f"Search: {config.generations} generations × {config.population_size} "
        f"(elite {config.elite_count}) | Workers: {search.workers}\n"
        f"Players: {config.players_per_sim} × {session} | Bet {config.bet:g} | "
        f"Balance {config.start_balance:,.0f}\n"
        f"Seed: {args.seed if args.seed is not None else 'random'}",
        title="REELFORGE", border_style="cyan",
    ))
    for w in warnings:
        console.print(f"[yellow]⚠️ {w}[/yellow]")

    try:
        history = search.run()
    except SlotOptimizerError as e:
        logger.error(f"Search failed: {e}")
        return 2

    render_report(history, console)

    if args.json:
        path = resolve_output_path(args.json)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(history_to_dict(history), indent=2))
        console.print(f"[green]✅ Wrote {path}[/green]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
