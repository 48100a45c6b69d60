#!/usr/bin/env python3
"""
REELFORGE — Unit Test Suite

Run: python tests.py
     python tests.py -v              # verbose
     python tests.py TestEvaluator   # run specific class

Test categories:
  TestCatalog            — Symbol lookup, payouts, catalog validation
  TestEvaluator          — Known grids, determinism, wager handling
  TestReelInvariants     — Strip/weight mutation never drops a symbol
  TestConfiguration      — Construction-time validation, analytic seeds
  TestSimulator          — Counter consistency, stop policies, entry checks
  TestFitness            — Components, bands, monotonicity
  TestAnalysis           — Exact RTP vs hand computation and simulation
  TestProductionEngine   — Fixed-weight engine + weight table hand-off
  TestSchema             — GAConfig validators, defaults, warnings
"""

import json
import random
import sys
import unittest
from dataclasses import replace
from pathlib import Path
from types import SimpleNamespace

# ── Ensure project root is on sys.path ──
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from pydantic import ValidationError

from config.optimizer_schema import (
    DistributionBand, FitnessWeights, GAConfig, ReelMode, Representation,
    StopPolicy, TierThresholds, WinTier, build_ga_config, validate_ga_config,
)
from config.settings import OptimizerDefaults
from sim_engine.slots.analysis import (
    expected_line_return, line_hit_probability, rtp_contributions, theoretical_rtp,
)
from sim_engine.slots.catalog import (
    CLASSIC_CATALOG, EXTENDED_CATALOG, PAYLINES, Catalog, Payline, Symbol, get_catalog,
)
from sim_engine.slots.errors import ConfigurationError, SlotOptimizerError
from sim_engine.slots.evaluator import evaluate_grid, line_run, spin
from sim_engine.slots.fitness import fitness, fitness_breakdown, score_stats
from sim_engine.slots.production import (
    STATIC_SYMBOL_WEIGHTS, SlotsEngine, configuration_from_weights,
)
from sim_engine.slots.reels import (
    MAX_WEIGHT, MIN_WEIGHT, Configuration, StripReel, WeightedReel,
    analytic_seed, crossover_configuration, crossover_weights, mutate_configuration,
    mutate_reel, mutate_weights, random_weights, repair_strip,
)
from sim_engine.slots.report import weight_table_source
from sim_engine.slots.simulator import SimCounters, simulate


def _grid(*reels):
    """Grid from per-reel (top, middle, bottom) symbol names."""
    return tuple(tuple(EXTENDED_CATALOG.symbol(n) for n in reel) for reel in reels)


# Middle row Cherry×3 + Grape + Lemon; no other payline has a 3-run.
CHERRY_MIDDLE = _grid(
    ("Bell", "Cherry", "Bar"),
    ("Bar", "Cherry", "Bell"),
    ("Star", "Cherry", "Diamond"),
    ("Diamond", "Grape", "Star"),
    ("Orange", "Lemon", "Clover"),
)

SEVEN_MIDDLE = _grid(
    ("Bell", "Seven", "Bar"),
    ("Bar", "Seven", "Bell"),
    ("Star", "Seven", "Diamond"),
    ("Diamond", "Seven", "Star"),
    ("Orange", "Seven", "Clover"),
)

# Three symbols with identical pays: easy closed-form expectations.
TINY_CATALOG = Catalog(
    name="tiny",
    symbols=(
        Symbol("A", "a", 1.0, 2.0, 3.0),
        Symbol("B", "b", 1.0, 2.0, 3.0),
        Symbol("C", "c", 1.0, 2.0, 3.0),
    ),
    paylines=PAYLINES,
    min_strip_length=3,
    max_strip_length=30,
)


def _tiny_strip_config():
    reel = StripReel(TINY_CATALOG.symbols)
    return Configuration((reel,) * 5, ReelMode.UNIFORM, TINY_CATALOG)


def _stats(**fields):
    """SimStats with every counter zeroed except the given fields."""
    return replace(SimCounters().finalize(), **fields)


# ============================================================
# Catalog Tests
# ============================================================

class TestCatalog(unittest.TestCase):

    def test_extended_catalog_shape(self):
        """Extended catalog: 10 symbols, 10 paylines, 5×3 grid."""
        self.assertEqual(len(EXTENDED_CATALOG), 10)
        self.assertEqual(len(EXTENDED_CATALOG.paylines), 10)
        self.assertEqual(EXTENDED_CATALOG.reel_count, 5)
        self.assertEqual(EXTENDED_CATALOG.rows, 3)
        self.assertEqual(len(CLASSIC_CATALOG), 7)

    def test_seed_counts_make_51_stop_strip(self):
        """Extended seed counts sum to the 51-stop starting strip."""
        self.assertEqual(sum(s.seed_count for s in EXTENDED_CATALOG), 51)

    def test_symbol_lookup(self):
        seven = EXTENDED_CATALOG.symbol("Seven")
        self.assertEqual(seven.payout5, 500.0)
        self.assertIn("Seven", EXTENDED_CATALOG)
        self.assertIn(seven, EXTENDED_CATALOG)
        with self.assertRaises(KeyError):
            EXTENDED_CATALOG.symbol("Banana")

    def test_payout_by_run_length(self):
        cherry = EXTENDED_CATALOG.symbol("Cherry")
        self.assertEqual(cherry.payout(2), 0.0)
        self.assertEqual(cherry.payout(3), 2.0)
        self.assertEqual(cherry.payout(4), 10.0)
        self.assertEqual(cherry.payout(5), 40.0)

    def test_duplicate_symbols_rejected(self):
        s = Symbol("A", "a", 1, 2, 3)
        with self.assertRaises(ValueError):
            Catalog("dup", (s, s), PAYLINES)

    def test_bad_payline_rejected(self):
        s = Symbol("A", "a", 1, 2, 3)
        with self.assertRaises(ValueError):
            Catalog("short", (s,), (Payline("short", (1, 1, 1)),))
        with self.assertRaises(ValueError):
            Catalog("rows", (s,), (Payline("low", (1, 1, 1, 1, 3)),))

    def test_get_catalog(self):
        self.assertIs(get_catalog("Extended"), EXTENDED_CATALOG)
        with self.assertRaises(ValueError):
            get_catalog("nope")


# ============================================================
# Evaluator Tests
# ============================================================

class TestEvaluator(unittest.TestCase):

    def test_three_cherries_middle_line(self):
        """Cherry×3 then Grape, Lemon on the middle row pays 10 × 2.0 on one line."""
        total, wins = evaluate_grid(CHERRY_MIDDLE, 10.0, EXTENDED_CATALOG)
        self.assertEqual(total, 20.0)
        self.assertEqual(len(wins), 1)
        lw = wins[0]
        self.assertEqual(lw.line_name, "middle")
        self.assertEqual(lw.line_number, 1)
        self.assertEqual(lw.symbol.name, "Cherry")
        self.assertEqual(lw.count, 3)
        self.assertEqual(lw.multiplier, 2.0)

    def test_five_sevens_middle_line(self):
        """Seven×5 on the middle row pays 10 × 500."""
        total, wins = evaluate_grid(SEVEN_MIDDLE, 10.0, EXTENDED_CATALOG)
        self.assertEqual(total, 5000.0)
        self.assertEqual([(w.symbol.name, w.count) for w in wins], [("Seven", 5)])

    def test_four_of_a_kind(self):
        grid = _grid(
            ("Bell", "Cherry", "Bar"),
            ("Bar", "Cherry", "Bell"),
            ("Star", "Cherry", "Diamond"),
            ("Diamond", "Cherry", "Star"),
            ("Orange", "Lemon", "Clover"),
        )
        total, wins = evaluate_grid(grid, 10.0, EXTENDED_CATALOG)
        self.assertEqual(total, 100.0)
        self.assertEqual(wins[0].count, 4)

    def test_run_must_start_on_reel_one(self):
        """Four Cherries on reels 2-5 pay nothing."""
        grid = _grid(
            ("Bell", "Grape", "Bar"),
            ("Bar", "Cherry", "Bell"),
            ("Star", "Cherry", "Diamond"),
            ("Diamond", "Cherry", "Star"),
            ("Orange", "Cherry", "Clover"),
        )
        total, wins = evaluate_grid(grid, 10.0, EXTENDED_CATALOG)
        self.assertEqual(total, 0.0)
        self.assertEqual(wins, ())

    def test_every_line_pays_on_full_grid(self):
        """A grid of one symbol wins on all 10 paylines at once."""
        grid = _grid(*[("Clover",) * 3] * 5)
        total, wins = evaluate_grid(grid, 10.0, EXTENDED_CATALOG)
        self.assertEqual(len(wins), 10)
        self.assertEqual(total, 10 * 12.0 * 10)

    def test_zero_and_negative_wager(self):
        total, _ = evaluate_grid(SEVEN_MIDDLE, 0.0, EXTENDED_CATALOG)
        self.assertEqual(total, 0.0)
        with self.assertRaises(ValueError):
            evaluate_grid(SEVEN_MIDDLE, -1.0, EXTENDED_CATALOG)
        config = analytic_seed(EXTENDED_CATALOG)
        with self.assertRaises(ValueError):
            spin(config, -5.0, random.Random(1))

    def test_line_run(self):
        syms = [EXTENDED_CATALOG.symbol(n) for n in ("Bar", "Bar", "Bell", "Bar", "Bar")]
        first, count = line_run(syms)
        self.assertEqual((first.name, count), ("Bar", 2))

    def test_spin_is_deterministic_given_rng(self):
        """Same configuration + same seed → same grid and payout."""
        config = analytic_seed(EXTENDED_CATALOG)
        a = spin(config, 10.0, random.Random(99))
        b = spin(config, 10.0, random.Random(99))
        self.assertEqual(a.grid, b.grid)
        self.assertEqual(a.total_win, b.total_win)

    def test_payouts_never_negative(self):
        config = analytic_seed(EXTENDED_CATALOG)
        rng = random.Random(3)
        for _ in range(2_000):
            result = spin(config, 10.0, rng)
            self.assertGreaterEqual(result.total_win, 0.0)
            self.assertEqual(len(result.grid), 5)
            self.assertTrue(all(len(reel) == 3 for reel in result.grid))

    def test_strip_window_is_consecutive(self):
        """Strip reels show 3 consecutive stops, wrapping around the end."""
        names = ["Clover", "Bell", "Bar", "Cherry", "Lemon", "Orange", "Grape", "Diamond", "Star", "Seven"]
        reel = StripReel(tuple(EXTENDED_CATALOG.symbol(n) for n in names))
        rng = random.Random(11)
        for _ in range(200):
            window = [s.name for s in reel.draw_window(rng, 3)]
            start = names.index(window[0])
            self.assertEqual(window, [names[(start + j) % len(names)] for j in range(3)])

    def test_spin_result_serializes(self):
        config = analytic_seed(CLASSIC_CATALOG, Representation.WEIGHTED, ReelMode.UNIFORM)
        result = spin(config, 10.0, random.Random(5))
        data = json.loads(json.dumps(result.to_dict()))
        self.assertEqual(len(data["reels"]), 5)
        self.assertEqual(len(result.rows()), 3)


# ============================================================
# Reel Invariant Tests
# ============================================================

class TestReelInvariants(unittest.TestCase):

    def test_strip_mutation_keeps_every_symbol(self):
        """1,000 chained strip mutations never drop a symbol or break length bounds."""
        rng = random.Random(2024)
        reel = analytic_seed(EXTENDED_CATALOG).reels[0]
        for i in range(1_000):
            reel = mutate_reel(reel, EXTENDED_CATALOG, rng, strong=i % 3 == 0)
            self.assertEqual(reel.missing(EXTENDED_CATALOG), [])
            self.assertGreaterEqual(len(reel), EXTENDED_CATALOG.min_strip_length)
            self.assertLessEqual(len(reel), EXTENDED_CATALOG.max_strip_length)

    def test_weight_mutation_stays_clamped(self):
        """1,000 chained weight mutations at rate 1.0 stay within [1, 100]."""
        rng = random.Random(7)
        reel = analytic_seed(CLASSIC_CATALOG, Representation.WEIGHTED).reels[0]
        for _ in range(1_000):
            reel = mutate_weights(reel, CLASSIC_CATALOG, rng, mutation_rate=1.0)
            self.assertEqual(reel.missing(CLASSIC_CATALOG), [])
            for _, w in reel.weights:
                self.assertGreaterEqual(w, MIN_WEIGHT)
                self.assertLessEqual(w, MAX_WEIGHT)

    def test_zero_rate_weight_mutation_is_identity(self):
        reel = analytic_seed(CLASSIC_CATALOG, Representation.WEIGHTED).reels[0]
        out = mutate_weights(reel, CLASSIC_CATALOG, random.Random(1), mutation_rate=0.0)
        self.assertEqual(out.as_dict(), reel.as_dict())

    def test_weight_mutation_restores_missing_symbol(self):
        partial = WeightedReel.from_mapping({"Cherry": 50, "Lemon": 40}, CLASSIC_CATALOG)
        out = mutate_weights(partial, CLASSIC_CATALOG, random.Random(1), mutation_rate=0.0)
        self.assertEqual(out.missing(CLASSIC_CATALOG), [])
        self.assertEqual(out.weight("Seven"), MIN_WEIGHT)

    def test_repair_appends_missing(self):
        clover = EXTENDED_CATALOG.symbol("Clover")
        repaired = repair_strip(StripReel((clover,) * 20), EXTENDED_CATALOG)
        self.assertEqual(repaired.missing(EXTENDED_CATALOG), [])
        self.assertEqual(len(repaired), 29)

    def test_repair_at_max_length_overwrites(self):
        """A full-length strip is repaired in place, never grown past the maximum."""
        clover = EXTENDED_CATALOG.symbol("Clover")
        full = StripReel((clover,) * EXTENDED_CATALOG.max_strip_length)
        repaired = repair_strip(full, EXTENDED_CATALOG)
        self.assertEqual(len(repaired), EXTENDED_CATALOG.max_strip_length)
        self.assertEqual(repaired.missing(EXTENDED_CATALOG), [])

    def test_uniform_mutation_keeps_reels_identical(self):
        rng = random.Random(5)
        config = analytic_seed(EXTENDED_CATALOG, mode=ReelMode.UNIFORM)
        for i in range(200):
            config = mutate_configuration(config, rng, strong=i % 2 == 0)
            self.assertTrue(all(r == config.reels[0] for r in config.reels))

    def test_independent_mutation_touches_few_reels(self):
        rng = random.Random(9)
        base = analytic_seed(EXTENDED_CATALOG)
        for _ in range(100):
            child = mutate_configuration(base, rng, strong=False)
            changed = sum(1 for a, b in zip(base.reels, child.reels) if a != b)
            self.assertLessEqual(changed, 3)

    def test_crossover_mixes_parent_weights(self):
        """Each child weight is parent A's, parent B's, or their average."""
        a = WeightedReel.from_mapping({s.name: 10 for s in CLASSIC_CATALOG}, CLASSIC_CATALOG)
        b = WeightedReel.from_mapping({s.name: 30 for s in CLASSIC_CATALOG}, CLASSIC_CATALOG)
        rng = random.Random(4)
        seen = set()
        for _ in range(200):
            child = crossover_weights(a, b, CLASSIC_CATALOG, rng)
            for _, w in child.weights:
                self.assertIn(w, (10, 20, 30))
                seen.add(w)
        self.assertEqual(seen, {10, 20, 30})

    def test_crossover_uniform_replicates_reel(self):
        rng = random.Random(8)
        a = analytic_seed(CLASSIC_CATALOG, Representation.WEIGHTED, ReelMode.UNIFORM)
        b = Configuration((random_weights(CLASSIC_CATALOG, rng),) * 5, ReelMode.UNIFORM, CLASSIC_CATALOG)
        child = crossover_configuration(a, b, rng)
        self.assertTrue(all(r == child.reels[0] for r in child.reels))

    def test_crossover_rejects_strips(self):
        config = analytic_seed(EXTENDED_CATALOG)
        with self.assertRaises(TypeError):
            crossover_configuration(config, config, random.Random(1))


# ============================================================
# Configuration Tests
# ============================================================

class TestConfiguration(unittest.TestCase):

    def test_configuration_error_hierarchy(self):
        self.assertTrue(issubclass(ConfigurationError, SlotOptimizerError))
        self.assertTrue(issubclass(ConfigurationError, ValueError))

    def test_wrong_reel_count(self):
        reel = analytic_seed(EXTENDED_CATALOG).reels[0]
        with self.assertRaises(ConfigurationError):
            Configuration((reel,) * 4, ReelMode.INDEPENDENT, EXTENDED_CATALOG)

    def test_missing_symbol_rejected(self):
        reel = StripReel((EXTENDED_CATALOG.symbol("Clover"),) * 20)
        with self.assertRaises(ConfigurationError):
            Configuration((reel,) * 5, ReelMode.UNIFORM, EXTENDED_CATALOG)

    def test_strip_shorter_than_window(self):
        reel = StripReel(TINY_CATALOG.symbols[:2])
        with self.assertRaises(ConfigurationError):
            Configuration((reel,) * 5, ReelMode.UNIFORM, TINY_CATALOG)

    def test_strip_longer_than_max(self):
        reel = StripReel(TINY_CATALOG.symbols * 11)
        with self.assertRaises(ConfigurationError):
            Configuration((reel,) * 5, ReelMode.UNIFORM, TINY_CATALOG)

    def test_weight_below_one_rejected(self):
        weights = dict(STATIC_SYMBOL_WEIGHTS, Seven=0)
        with self.assertRaises(ConfigurationError):
            configuration_from_weights(weights)

    def test_unknown_weight_names_rejected(self):
        """A weight table naming a symbol outside the catalog is an error, not a silent drop."""
        with self.assertRaises(ConfigurationError) as ctx:
            configuration_from_weights(dict(STATIC_SYMBOL_WEIGHTS, Banana=500))
        self.assertIn("Banana", str(ctx.exception))
        with self.assertRaises(ConfigurationError):
            WeightedReel.from_mapping({"Cherry": 10, "Clover": 10}, CLASSIC_CATALOG)

    def test_symbol_with_foreign_paytable_rejected(self):
        """Same name as a catalog symbol but different payouts does not pass."""
        forged = Symbol("A", "a", 1.0, 2.0, 3000.0)
        reel = StripReel((forged,) + TINY_CATALOG.symbols[1:])
        with self.assertRaises(ConfigurationError) as ctx:
            Configuration((reel,) * 5, ReelMode.UNIFORM, TINY_CATALOG)
        self.assertIn("differ", str(ctx.exception))
        # the genuine symbols still build
        Configuration((StripReel(TINY_CATALOG.symbols),) * 5, ReelMode.UNIFORM, TINY_CATALOG)

    def test_uniform_requires_identical_reels(self):
        seed = analytic_seed(EXTENDED_CATALOG)
        with self.assertRaises(ConfigurationError):
            Configuration(seed.reels, ReelMode.UNIFORM, EXTENDED_CATALOG)

    def test_mixed_representations_rejected(self):
        strip = analytic_seed(CLASSIC_CATALOG).reels[0]
        weighted = analytic_seed(CLASSIC_CATALOG, Representation.WEIGHTED).reels[0]
        with self.assertRaises(ConfigurationError):
            Configuration((strip, weighted, strip, strip, strip), ReelMode.INDEPENDENT, CLASSIC_CATALOG)

    def test_analytic_strip_seed_variation(self):
        """Reels 1, 3, 5 get an extra Star; the middle reel also an extra Seven."""
        config = analytic_seed(EXTENDED_CATALOG)
        self.assertEqual([len(r) for r in config.reels], [52, 51, 53, 51, 52])
        self.assertEqual(config.reels[2].count("Seven"), 2)
        self.assertEqual(config.reels[0].count("Star"), 2)
        self.assertEqual(config.reels[1].count("Star"), 1)

    def test_analytic_uniform_seed(self):
        config = analytic_seed(EXTENDED_CATALOG, mode=ReelMode.UNIFORM)
        self.assertEqual(config.mode, ReelMode.UNIFORM)
        self.assertEqual(len(config.reels[0]), 51)
        self.assertEqual(config.reels[0].count("Clover"), 15)

    def test_analytic_weighted_seed(self):
        config = analytic_seed(CLASSIC_CATALOG, Representation.WEIGHTED)
        self.assertEqual(config.representation, Representation.WEIGHTED)
        self.assertEqual(config.reels[1].as_dict(), STATIC_SYMBOL_WEIGHTS)
        self.assertEqual(config.reels[2].weight("Seven"), 3)
        self.assertEqual(config.reels[0].weight("Star"), 4)

    def test_frequency_table(self):
        freqs = analytic_seed(EXTENDED_CATALOG, mode=ReelMode.UNIFORM).frequency_table()
        self.assertEqual(len(freqs), 5)
        self.assertAlmostEqual(sum(freqs[0].values()), 1.0)
        self.assertAlmostEqual(freqs[0]["Clover"], 15 / 51)


# ============================================================
# Simulator Tests
# ============================================================

class TestSimulator(unittest.TestCase):

    def setUp(self):
        self.config = build_ga_config(players_per_sim=20, spins_per_player=100)
        self.seed_config = analytic_seed(EXTENDED_CATALOG)

    def test_counters_are_consistent(self):
        stats = simulate(self.seed_config, self.config, rng=random.Random(1))
        self.assertEqual(stats.players, 20)
        self.assertAlmostEqual(stats.total_wagered, stats.spins * self.config.bet)
        self.assertAlmostEqual(stats.rtp, stats.total_paid / stats.total_wagered * 100)
        self.assertEqual(stats.wins, stats.tier_total)
        self.assertEqual(
            stats.players_broke + stats.players_cashed_out + stats.players_still_playing, 20
        )
        self.assertLessEqual(stats.players_ahead + stats.players_behind, 20)
        self.assertAlmostEqual(stats.house_profit, stats.total_wagered - stats.total_paid)
        self.assertAlmostEqual(stats.house_edge, 100 - stats.rtp)
        self.assertAlmostEqual(stats.total_invested, 20 * self.config.start_balance)
        self.assertAlmostEqual(
            stats.total_invested - stats.total_cashed_out, stats.house_profit, places=6
        )

    def test_fixed_spins_full_sessions(self):
        """A bankroll that can't run out plays every spin."""
        config = build_ga_config(players_per_sim=10, spins_per_player=50, start_balance=100_000)
        stats = simulate(self.seed_config, config, rng=random.Random(2))
        self.assertEqual(stats.spins, 500)
        self.assertEqual(stats.players_broke, 0)
        self.assertEqual(stats.avg_spins_per_player, 50)

    def test_fixed_spins_stops_when_broke(self):
        config = build_ga_config(players_per_sim=10, spins_per_player=1_000, start_balance=30)
        stats = simulate(self.seed_config, config, rng=random.Random(3))
        self.assertLessEqual(stats.spins, 10_000)
        self.assertEqual(
            stats.players_broke + stats.players_cashed_out + stats.players_still_playing, 10
        )

    def test_play_to_target_session_cap(self):
        """20-spin cap: a 1,000 bankroll at bet 10 cannot go broke."""
        config = build_ga_config(
            players_per_sim=10, stop_policy=StopPolicy.PLAY_TO_TARGET, max_session_spins=20,
        )
        stats = simulate(self.seed_config, config, rng=random.Random(4))
        self.assertEqual(stats.players_broke, 0)
        self.assertLessEqual(stats.spins, 200)
        self.assertEqual(stats.players_cashed_out + stats.players_still_playing, 10)

    def test_play_to_target_sessions_end(self):
        config = build_ga_config(
            players_per_sim=25, stop_policy=StopPolicy.PLAY_TO_TARGET,
            start_balance=50, win_threshold=2,
        )
        stats = simulate(self.seed_config, config, rng=random.Random(5))
        self.assertEqual(
            stats.players_broke + stats.players_cashed_out + stats.players_still_playing, 25
        )
        self.assertGreater(stats.players_broke + stats.players_cashed_out, 0)

    def test_same_seed_same_stats(self):
        a = simulate(self.seed_config, self.config, rng=random.Random(77))
        b = simulate(self.seed_config, self.config, rng=random.Random(77))
        self.assertEqual(a, b)

    def test_entry_validation(self):
        zero_players = self.config.model_copy(update={"players_per_sim": 0})
        with self.assertRaises(ValueError):
            simulate(self.seed_config, zero_players)
        zero_spins = self.config.model_copy(update={"spins_per_player": 0})
        with self.assertRaises(ValueError):
            simulate(self.seed_config, zero_spins)
        with self.assertRaises(ValueError):
            simulate(self.seed_config, self.config, wager=0)
        with self.assertRaises(ValueError):
            simulate(self.seed_config, self.config, wager=-10)
        with self.assertRaises(ValueError):
            simulate(self.seed_config, self.config, wager=self.config.start_balance + 1)

    def test_zero_denominators(self):
        stats = SimCounters().finalize()
        self.assertEqual(stats.rtp, 0.0)
        self.assertEqual(stats.win_rate, 0.0)
        self.assertEqual(stats.house_edge, 0.0)
        self.assertEqual(stats.average_win, 0.0)
        self.assertEqual(stats.avg_spins_per_player, 0.0)
        self.assertEqual(stats.player_share(0), 0.0)

    def test_record_spin_tiers(self):
        tiers = TierThresholds()
        c = SimCounters()
        c.record_spin(10, 0, tiers)        # loss
        c.record_spin(10, 10, tiers)       # push, small
        c.record_spin(10, 99, tiers)       # small (9.9x)
        c.record_spin(10, 100, tiers)      # medium (10x)
        c.record_spin(10, 500, tiers)      # big (50x)
        c.record_spin(10, 1000, tiers)     # jackpot (100x)
        stats = c.finalize()
        self.assertEqual(stats.spins, 6)
        self.assertEqual(stats.wins, 5)
        self.assertEqual(stats.pushes, 1)
        self.assertEqual(
            (stats.small_wins, stats.medium_wins, stats.big_wins, stats.jackpot_wins), (2, 1, 1, 1)
        )
        self.assertEqual(stats.largest_win, 1000)
        self.assertAlmostEqual(stats.rtp, 1709 / 60 * 100)
        self.assertAlmostEqual(stats.tier_rate(WinTier.SMALL), 2 / 6 * 100)

    def test_stats_to_dict(self):
        stats = simulate(self.seed_config, self.config, rng=random.Random(6))
        data = json.loads(json.dumps(stats.to_dict()))
        self.assertIn("rtp", data)
        self.assertIn("players_cashed_out", data)


# ============================================================
# Fitness Tests
# ============================================================

class TestFitness(unittest.TestCase):

    def setUp(self):
        self.config = build_ga_config(target_rtp=95, target_win_rate=25)

    def test_perfect_stats_score_zero(self):
        stats = _stats(rtp=95.0, win_rate=25.0, small_win_rate=22.0, house_profit=500.0)
        self.assertEqual(score_stats(stats, self.config), 0.0)

    def test_components(self):
        stats = _stats(
            rtp=90.0, win_rate=20.0, house_profit=-500.0,
            small_win_rate=22.0, medium_win_rate=10.0, big_win_rate=3.0, jackpot_win_rate=0.1,
        )
        parts = fitness_breakdown(stats, self.config)
        self.assertAlmostEqual(parts["rtp"], 5.0)
        self.assertAlmostEqual(parts["win_rate"], 10.0)
        self.assertAlmostEqual(parts["house_loss"], 5.0)
        self.assertAlmostEqual(parts["small"], 0.0)
        self.assertAlmostEqual(parts["medium"], 13.0)
        self.assertAlmostEqual(parts["big"], 12.5)
        self.assertAlmostEqual(parts["jackpot"], 0.95)
        self.assertAlmostEqual(parts["total"], 5 + 10 + 5 + 13 + 12.5 + 0.95)

    def test_small_band_both_sides(self):
        low = fitness_breakdown(_stats(small_win_rate=10.0), self.config)["small"]
        high = fitness_breakdown(_stats(small_win_rate=40.0), self.config)["small"]
        self.assertAlmostEqual(low, 12.5 * 0.5)
        self.assertAlmostEqual(high, 17.5 * 0.5)

    def test_rtp_monotonic(self):
        """Moving RTP away from target never lowers fitness."""
        base = dict(win_rate=25.0, small_win_rate=22.0, house_profit=10.0)
        scores = [score_stats(_stats(rtp=r, **base), self.config) for r in (95, 96, 98, 99.5)]
        self.assertEqual(scores, sorted(scores))
        self.assertLess(scores[0], scores[-1])

    def test_shifted_targets_score_higher(self):
        """Stats 10 points off either target score strictly worse than on-target stats."""
        base = dict(rtp=95.0, win_rate=25.0, small_win_rate=22.0, house_profit=10.0)
        on_target = score_stats(_stats(**base), self.config)
        rtp_off = score_stats(_stats(**dict(base, rtp=105.0)), self.config)
        win_off = score_stats(_stats(**dict(base, win_rate=35.0)), self.config)
        self.assertLess(on_target, rtp_off)
        self.assertLess(on_target, win_off)
        self.assertAlmostEqual(rtp_off - on_target, 10.0)
        self.assertAlmostEqual(win_off - on_target, 20.0)

    def test_house_loss_only_when_negative(self):
        profit = fitness_breakdown(_stats(house_profit=1_000.0), self.config)
        loss = fitness_breakdown(_stats(house_profit=-1_000.0), self.config)
        self.assertEqual(profit["house_loss"], 0.0)
        self.assertAlmostEqual(loss["house_loss"], 10.0)

    def test_cashout_risk_penalty(self):
        stats = _stats(players=100, players_cashed_out=5)
        risky = build_ga_config(stop_policy=StopPolicy.PLAY_TO_TARGET)
        risky = risky.model_copy(update={"fitness": FitnessWeights(cashout_scale=5.0)})
        self.assertAlmostEqual(fitness_breakdown(stats, risky)["cashout_risk"], 25.0)
        # disabled by default, and never applied under fixed spins
        self.assertEqual(fitness_breakdown(stats, build_ga_config(stop_policy="play_to_target"))["cashout_risk"], 0.0)
        fixed = risky.model_copy(update={"stop_policy": StopPolicy.FIXED_SPINS})
        self.assertEqual(fitness_breakdown(stats, fixed)["cashout_risk"], 0.0)

    def test_fitness_delegates_to_stats(self):
        stats = _stats(rtp=80.0)
        ind = SimpleNamespace(stats=stats)
        self.assertEqual(fitness(ind, self.config), score_stats(stats, self.config))

    def test_distribution_band(self):
        band = DistributionBand(max_rate=8.0, target=3.5, scale=2.0)
        self.assertEqual(band.penalty(8.0), 0.0)
        self.assertAlmostEqual(band.penalty(9.0), 11.0)


# ============================================================
# Analytic Math Tests
# ============================================================

class TestAnalysis(unittest.TestCase):

    def test_closed_form_rtp(self):
        """Three equiprobable symbols paying 1/2/3: 13/81 per line, ×10 lines."""
        config = _tiny_strip_config()
        self.assertAlmostEqual(expected_line_return(config, PAYLINES[0]), 13 / 81)
        self.assertAlmostEqual(theoretical_rtp(config), 13 / 81 * 10 * 100)
        self.assertAlmostEqual(line_hit_probability(config, PAYLINES[0]), 1 / 9)

    def test_weighted_and_strip_agree(self):
        """Same effective frequencies → same theoretical RTP in both representations."""
        strip = _tiny_strip_config()
        reel = WeightedReel.from_mapping({"A": 5, "B": 5, "C": 5}, TINY_CATALOG)
        weighted = Configuration((reel,) * 5, ReelMode.UNIFORM, TINY_CATALOG)
        self.assertAlmostEqual(theoretical_rtp(strip), theoretical_rtp(weighted))

    def test_contributions_sum_to_rtp(self):
        config = analytic_seed(EXTENDED_CATALOG)
        self.assertAlmostEqual(sum(rtp_contributions(config).values()), theoretical_rtp(config))

    def test_simulation_converges_to_theory(self):
        """20,000 simulated spins land within a few points of the exact RTP."""
        config = _tiny_strip_config()
        ga = build_ga_config(players_per_sim=40, spins_per_player=500, bet=1, start_balance=1e9)
        stats = simulate(config, ga, rng=random.Random(123))
        self.assertEqual(stats.spins, 20_000)
        self.assertAlmostEqual(stats.rtp, theoretical_rtp(config), delta=8.0)


# ============================================================
# Production Engine Tests
# ============================================================

class TestProductionEngine(unittest.TestCase):

    def test_default_engine_uses_system_random(self):
        engine = SlotsEngine()
        self.assertIsInstance(engine.rng, random.SystemRandom)
        self.assertEqual(engine.configuration.mode, ReelMode.UNIFORM)
        result = engine.spin(10.0)
        self.assertGreaterEqual(result.total_win, 0.0)
        self.assertEqual(result.wager, 10.0)

    def test_seeded_engine_matches_evaluator(self):
        engine = SlotsEngine(rng=random.Random(21))
        expected = spin(engine.configuration, 5.0, random.Random(21))
        self.assertEqual(engine.spin(5.0).grid, expected.grid)

    def test_bet_validation(self):
        engine = SlotsEngine(rng=random.Random(1), min_bet=1.0, max_bet=100.0)
        for bad in (0, -1, 0.5, 101):
            with self.assertRaises(ValueError):
                engine.spin(bad)

    def test_weight_table_round_trip(self):
        """The exported SYMBOL_WEIGHTS block is what the engine ships with."""
        source = weight_table_source(configuration_from_weights(STATIC_SYMBOL_WEIGHTS))
        namespace = {}
        exec(source, namespace)
        self.assertEqual(namespace["SYMBOL_WEIGHTS"], STATIC_SYMBOL_WEIGHTS)

    def test_per_reel_weight_table(self):
        config = analytic_seed(CLASSIC_CATALOG, Representation.WEIGHTED, ReelMode.INDEPENDENT)
        namespace = {}
        exec(weight_table_source(config), namespace)
        engine = SlotsEngine(weights=namespace["SYMBOL_WEIGHTS"], rng=random.Random(2))
        self.assertEqual(engine.configuration.mode, ReelMode.INDEPENDENT)
        self.assertEqual(engine.configuration.reels, config.reels)

    def test_engine_rejects_foreign_weight_table(self):
        """The 10-symbol strip catalog's table cannot be loaded into the 7-symbol engine."""
        with self.assertRaises(ConfigurationError):
            SlotsEngine(weights={s.name: 10 for s in EXTENDED_CATALOG}, rng=random.Random(1))

    def test_strip_export_rejected(self):
        with self.assertRaises(TypeError):
            weight_table_source(analytic_seed(EXTENDED_CATALOG))

    def test_payout_table(self):
        table = SlotsEngine(rng=random.Random(1)).payout_table()
        self.assertEqual(table["Seven"], {3: 20.0, 4: 100.0, 5: 500.0})
        self.assertEqual(len(table), 7)


# ============================================================
# Schema Tests
# ============================================================

class TestSchema(unittest.TestCase):

    def test_defaults(self):
        cfg = GAConfig()
        self.assertEqual(cfg.population_size, 33)
        self.assertEqual(cfg.offspring_count, 30)
        self.assertEqual(cfg.strong_offspring_count, 10)
        self.assertEqual(cfg.win_target_balance, 3000.0)

    def test_elite_must_be_below_population(self):
        with self.assertRaises(ValidationError):
            GAConfig(population_size=5, elite_count=5)

    def test_tiers_must_ascend(self):
        with self.assertRaises(ValidationError):
            TierThresholds(medium=50, big=10, jackpot=100)
        self.assertEqual(TierThresholds().classify(9.99), WinTier.SMALL)
        self.assertEqual(TierThresholds().classify(100), WinTier.JACKPOT)

    def test_band_order(self):
        with self.assertRaises(ValidationError):
            DistributionBand(min_rate=10, max_rate=5, target=7, scale=1)

    def test_enum_strings_case_insensitive(self):
        cfg = GAConfig(representation="WEIGHTED", reel_mode="Uniform", stop_policy="play_to_target")
        self.assertEqual(cfg.representation, Representation.WEIGHTED)
        self.assertEqual(cfg.reel_mode, ReelMode.UNIFORM)

    def test_build_ignores_none(self):
        cfg = build_ga_config(target_rtp=None, generations=7)
        self.assertEqual(cfg.target_rtp, OptimizerDefaults.TARGET_RTP)
        self.assertEqual(cfg.generations, 7)

    def test_out_of_range_rejected(self):
        with self.assertRaises(ValidationError):
            build_ga_config(bet=0)
        with self.assertRaises(ValidationError):
            build_ga_config(players_per_sim=0)
        with self.assertRaises(ValidationError):
            build_ga_config(start_balance=5, bet=10)

    def test_warnings(self):
        self.assertEqual(validate_ga_config(GAConfig()), [])
        warnings = validate_ga_config(GAConfig(target_rtp=80, players_per_sim=2, spins_per_player=10))
        self.assertTrue(any("unusually low" in w for w in warnings))
        self.assertTrue(any("spins per evaluation" in w for w in warnings))

    def test_settings_snapshot(self):
        snapshot = OptimizerDefaults.as_dict()
        self.assertIn("TARGET_RTP", snapshot)
        self.assertNotIn("as_dict", snapshot)
        self.assertGreaterEqual(OptimizerDefaults.resolved_workers(), 1)


# ============================================================
# Main
# ============================================================

if __name__ == "__main__":
    # Configure logging to suppress noise during tests
    import logging
    logging.disable(logging.WARNING)

    unittest.main(verbosity=2)
