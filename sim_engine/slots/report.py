"""
REELFORGE — Report & Export

Human output (rich tables) and machine output (JSON dict, Python weight
table) for a finished search. Nothing here mutates a configuration.
"""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config.optimizer_schema import GAConfig, ReelMode, StopPolicy, WinTier
from sim_engine.slots.analysis import rtp_contributions, theoretical_rtp
from sim_engine.slots.fitness import fitness_breakdown
from sim_engine.slots.reels import Configuration, Reel, StripReel, WeightedReel


def format_progress(generation) -> str:
    """One progress line for a Generation."""
    best = generation.best
    s = best.stats
    return (
        f"Gen {generation.index:3d} | fitness {best.fitness:9.4f} | "
        f"RTP {s.rtp:6.2f}% | win rate {s.win_rate:5.2f}% | "
        f"house {s.house_profit_pct:+6.2f}% ({s.house_profit:+,.0f})"
    )


# ═══════════════════════════════════════════════════════════════
# Export
# ═══════════════════════════════════════════════════════════════

def reel_to_data(reel: Reel):
    if isinstance(reel, StripReel):
        return [s.name for s in reel.symbols]
    return reel.as_dict()


def weight_table_source(configuration: Configuration) -> str:
    """Python source for the production engine's SYMBOL_WEIGHTS constant.

    Uniform reels export one mapping; independent reels a list of mappings.
    """
    if not isinstance(configuration.reels[0], WeightedReel):
        raise TypeError("weight table export needs a weighted configuration")

    if configuration.mode == ReelMode.UNIFORM:
        lines = ["SYMBOL_WEIGHTS = {"]
        for name, w in configuration.reels[0].as_dict().items():
            lines.append(f'    "{name}": {w},')
        lines.append("}")
        return "\n".join(lines)

    lines = ["SYMBOL_WEIGHTS = ["]
    for i, reel in enumerate(configuration.reels, 1):
        body = ", ".join(f'"{name}": {w}' for name, w in reel.as_dict().items())
        lines.append(f"    {{{body}}},  # reel {i}")
    lines.append("]")
    return "\n".join(lines)


def history_to_dict(history) -> dict:
    """JSON-serializable summary of a SearchHistory."""
    best = history.best
    cfg: GAConfig = history.config
    return {
        "config": cfg.model_dump(mode="json"),
        "catalog": history.catalog.name,
        "generations_run": len(history.generations),
        "best": {
            **best.to_dict(),
            "fitness_breakdown": {k: round(v, 4) for k, v in fitness_breakdown(best.stats, cfg).items()},
            "theoretical_rtp": round(theoretical_rtp(best.configuration), 4),
            "reel_mode": best.configuration.mode.value,
            "reels": [reel_to_data(r) for r in best.configuration.reels],
        },
        "trace": [
            {
                "generation": g.index,
                "best_fitness": round(g.best.fitness, 4),
                "mean_fitness": round(g.mean_fitness, 4),
                "rtp": round(g.best.stats.rtp, 4),
                "win_rate": round(g.best.stats.win_rate, 4),
                "origins": g.origins(),
                "elapsed_s": round(g.elapsed_s, 3),
            }
            for g in history.generations
        ],
    }


# ═══════════════════════════════════════════════════════════════
# Rich tables
# ═══════════════════════════════════════════════════════════════

def reel_table(configuration: Configuration) -> Table:
    """Per-symbol stops/weights and share, one column per reel (one column when uniform)."""
    catalog = configuration.catalog
    uniform = configuration.mode == ReelMode.UNIFORM
    reels = configuration.reels[:1] if uniform else configuration.reels
    weighted = isinstance(reels[0], WeightedReel)

    table = Table(title="Reel weights" if weighted else "Reel strips")
    table.add_column("Symbol", style="cyan")
    table.add_column("Pays 3/4/5", justify="right")
    for i in range(len(reels)):
        table.add_column("All reels" if uniform else f"Reel {i + 1}", justify="right")

    freqs = [r.effective_frequencies() for r in reels]
    for sym in catalog.symbols:
        cells = [
            f"{reel.count(sym)} ({f.get(sym.name, 0.0) * 100:.1f}%)"
            for reel, f in zip(reels, freqs)
        ]
        table.add_row(
            f"{sym.emoji} {sym.name}",
            f"{sym.payout3:g}/{sym.payout4:g}/{sym.payout5:g}",
            *cells,
        )
    totals = [str(r.total_weight if weighted else len(r)) for r in reels]
    table.add_row("[bold]Total[/bold]", "", *totals)
    return table


def stats_table(individual, config: GAConfig) -> Table:
    s = individual.stats
    table = Table(title="Best configuration")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_column("Target", justify="right")

    table.add_row("Fitness", f"{individual.fitness:.4f}", "0")
    table.add_row("RTP (simulated)", f"{s.rtp:.2f}%", f"{config.target_rtp:.2f}%")
    table.add_row("RTP (theoretical)", f"{theoretical_rtp(individual.configuration):.2f}%", "")
    table.add_row("Win rate", f"{s.win_rate:.2f}%", f"{config.target_win_rate:.2f}%")
    for tier in WinTier:
        band = config.fitness.band(tier)
        lo = f"{band.min_rate:g}" if band.min_rate is not None else "0"
        hi = f"{band.max_rate:g}" if band.max_rate is not None else "∞"
        table.add_row(
            f"  {tier.value.title()} wins",
            f"{s.tier_count(tier):,} ({s.tier_rate(tier):.3f}%)",
            f"{lo}-{hi}%",
        )
    table.add_row("Pushes", f"{s.pushes:,}", "")
    table.add_row("Spins", f"{s.spins:,}", "")
    table.add_row("Avg spins / player", f"{s.avg_spins_per_player:.1f}", "")
    table.add_row("Largest win", f"{s.largest_win:,.2f}", "")
    table.add_row("Average win", f"{s.average_win:,.2f}", "")
    table.add_row("House profit", f"{s.house_profit:+,.2f} ({s.house_profit_pct:+.2f}%)", "> 0")
    table.add_row("House edge", f"{s.house_edge:.2f}%", f"{100 - config.target_rtp:.2f}%")
    return table


def players_table(individual, config: GAConfig) -> Table:
    s = individual.stats
    table = Table(title=f"Players ({s.players})")
    table.add_column("Outcome", style="cyan")
    table.add_column("Players", justify="right")
    table.add_column("Share", justify="right")
    rows = [
        ("Broke", s.players_broke),
        (f"Cashed out (≥{config.win_threshold:g}× bankroll)", s.players_cashed_out),
        ("Still playing" if config.stop_policy == StopPolicy.FIXED_SPINS else "Hit session cap",
         s.players_still_playing),
        ("Ahead", s.players_ahead),
        ("Behind", s.players_behind),
    ]
    for label, count in rows:
        table.add_row(label, str(count), f"{s.player_share(count):.1f}%")
    table.add_row("Invested / cashed out", f"{s.total_invested:,.0f}", f"{s.total_cashed_out:,.0f}")
    return table


def fitness_table(individual, config: GAConfig) -> Table:
    parts = fitness_breakdown(individual.stats, config)
    table = Table(title="Fitness breakdown")
    table.add_column("Component", style="cyan")
    table.add_column("Penalty", justify="right")
    for name, value in parts.items():
        style = "bold" if name == "total" else ("yellow" if value > 0 else "dim")
        table.add_row(name, f"[{style}]{value:.4f}[/{style}]")
    return table


def contributions_table(configuration: Configuration) -> Table:
    table = Table(title="Theoretical RTP by symbol")
    table.add_column("Symbol", style="cyan")
    table.add_column("RTP points", justify="right")
    for name, pts in rtp_contributions(configuration).items():
        table.add_row(name, f"{pts:.3f}")
    return table


def render_report(history, console: Optional[Console] = None) -> None:
    """Print the final report of a search to a rich console."""
    console = console or Console()
    best = history.best
    cfg = history.config

    console.print(Panel(
        f"[bold]Best of generation {history.generations[-1].index}[/bold] "
        f"({best.origin.value})\n"
        f"{format_progress(history.generations[-1])}",
        title="🎰 Optimization result", border_style="green",
    ))
    console.print(reel_table(best.configuration))
    console.print(stats_table(best, cfg))
    console.print(players_table(best, cfg))
    console.print(fitness_table(best, cfg))
    console.print(contributions_table(best.configuration))

    if isinstance(best.configuration.reels[0], WeightedReel):
        console.print(Panel(
            weight_table_source(best.configuration),
            title="Production weight table", border_style="cyan",
        ))
