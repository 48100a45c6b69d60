"""
REELFORGE — Slot Reel Optimizer

Payout evaluation, Monte Carlo player simulation and genetic search for a
5-reel, 3-row, 10-payline slot.

Usage:
    from config.optimizer_schema import build_ga_config
    from sim_engine.slots import GeneticSearch, render_report

    history = GeneticSearch(build_ga_config(generations=30), seed=42).run()
    render_report(history)
"""

from sim_engine.slots.catalog import (
    CATALOGS, CLASSIC_CATALOG, EXTENDED_CATALOG, PAYLINES,
    Catalog, Payline, Symbol, get_catalog,
)
from sim_engine.slots.errors import ConfigurationError, SlotOptimizerError
from sim_engine.slots.reels import (
    Configuration, StripReel, WeightedReel,
    analytic_seed, crossover_configuration, mutate_configuration, mutate_reel, repair_strip,
)
from sim_engine.slots.evaluator import LineWin, SpinResult, evaluate_grid, spin
from sim_engine.slots.simulator import SimCounters, SimStats, simulate
from sim_engine.slots.fitness import fitness, fitness_breakdown, score_stats
from sim_engine.slots.analysis import expected_line_return, line_hit_probability, theoretical_rtp
from sim_engine.slots.report import format_progress, history_to_dict, render_report, weight_table_source
from sim_engine.slots.genetic import (
    Generation, GeneticSearch, Individual, Origin, SearchHistory, catalog_for,
)
from sim_engine.slots.production import STATIC_SYMBOL_WEIGHTS, SlotsEngine
