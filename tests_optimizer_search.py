#!/usr/bin/env python3
"""
Tests for the Genetic Search Driver + CLI

Validates:
1.  Generation 0 holds the analytic seeds plus seed mutants (strip)
2.  Generation 0 mixes in random weight samples (weighted)
3.  Strip offspring split: elites / normal mutants / strong mutants
4.  Elites are carried verbatim (configuration, stats, fitness)
5.  Best fitness never regresses across generations
6.  Past generations are immutable snapshots
7.  Weighted uniform search keeps reels identical
8.  Same seed → same search, in-process or in a process pool
9.  Progress callback fires every report_every generations and on the last
10. JSON export + rich report render from a finished history
11. CLI argument parsing, --dump-config, error exit code, --json output
12. Relative --json paths resolve under OUTPUT_DIR
"""

import dataclasses
import io
import json
import sys
import tempfile
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from rich.console import Console

from config.optimizer_schema import ReelMode, Representation, StopPolicy, build_ga_config
from config.settings import OUTPUT_DIR
from sim_engine.slots.catalog import CLASSIC_CATALOG, EXTENDED_CATALOG
from sim_engine.slots.genetic import GeneticSearch, Origin, SearchHistory
from sim_engine.slots.report import history_to_dict, render_report
from tools.slots_optimizer_cli import build_parser, config_from_args, main, resolve_output_path


def _tiny(**overrides):
    params = dict(
        generations=3, population_size=12, elite_count=2,
        players_per_sim=5, spins_per_player=40, report_every=1,
    )
    params.update(overrides)
    return build_ga_config(**params)


def _run(seed=1, workers=1, **overrides):
    return GeneticSearch(_tiny(**overrides), seed=seed, workers=workers).run()


# ============================================================
# Tests
# ============================================================

def test_initial_generation_strip():
    """Generation 0: 3 analytic seeds, the rest seed mutants."""
    history = _run(generations=1)
    origins = history[0].origins()
    assert origins.get("analytic") == 3, origins
    assert origins.get("seed-mutant") == 9, origins
    assert len(history[0].individuals) == 12
    assert history.catalog is EXTENDED_CATALOG
    print(f"✅ Generation 0 (strip): {origins}")


def test_initial_generation_weighted():
    """Weighted generation 0: half of the non-seed slots are random weight samples."""
    history = _run(generations=1, representation=Representation.WEIGHTED)
    origins = history[0].origins()
    assert origins == {"analytic": 3, "random": 4, "seed-mutant": 5}, origins
    assert history.catalog is CLASSIC_CATALOG
    print(f"✅ Generation 0 (weighted): {origins}")


def test_strip_offspring_split():
    """Pop 12, elite 2: 10 offspring → 3 strong mutants (1/3) + 7 normal mutants."""
    history = _run(generations=2)
    origins = history[1].origins()
    assert origins == {"elite": 2, "mutant": 7, "strong-mutant": 3}, origins
    print(f"✅ Strip offspring: {origins}")


def test_elites_carried_verbatim():
    """Top elite_count of generation g reappear unchanged in g+1."""
    history = _run(generations=4, seed=3)
    for prev, nxt in zip(history.generations, history.generations[1:]):
        elites = [i for i in nxt.individuals if i.origin == Origin.ELITE]
        assert len(elites) == 2
        for carried, original in zip(elites, prev.individuals[:2]):
            assert carried.configuration == original.configuration
            assert carried.stats == original.stats
            assert carried.fitness == original.fitness
    print("✅ Elites carried with stats and fitness intact")


def test_best_fitness_never_regresses():
    history = _run(generations=6, seed=5)
    trace = history.best_fitness_trace()
    assert all(b <= a for a, b in zip(trace, trace[1:])), trace
    assert history.best.fitness == trace[-1]
    assert history.best is history.generations[-1].individuals[0]
    print(f"✅ Best fitness trace non-increasing: {[round(f, 2) for f in trace]}")


def test_generations_are_ranked_and_frozen():
    history = _run(generations=3)
    for gen in history.generations:
        fits = [i.fitness for i in gen.individuals]
        assert fits == sorted(fits)
        assert isinstance(gen.individuals, tuple)
    try:
        history[0].index = 99
        assert False, "Generation should be frozen"
    except dataclasses.FrozenInstanceError:
        pass
    assert [g.index for g in history.generations] == [0, 1, 2]
    print("✅ Generations ranked ascending and immutable")


def test_weighted_uniform_search():
    history = _run(
        generations=3, representation=Representation.WEIGHTED,
        reel_mode=ReelMode.UNIFORM, population_size=10,
    )
    best = history.best.configuration
    assert best.representation == Representation.WEIGHTED
    assert all(r == best.reels[0] for r in best.reels)
    allowed = {"elite", "crossover", "mutant"}
    for gen in history.generations[1:]:
        assert set(gen.origins()) <= allowed, gen.origins()
    print(f"✅ Weighted uniform search: best fitness {history.best.fitness:.3f}")


def test_seeded_search_is_reproducible():
    a = _run(seed=11).best_fitness_trace()
    b = _run(seed=11).best_fitness_trace()
    assert a == b
    print("✅ Same seed → same trace")


def test_process_pool_matches_in_process():
    """Per-evaluation seeds make the result independent of the worker count."""
    serial = _run(seed=13, generations=2)
    pooled = _run(seed=13, generations=2, workers=2)
    assert serial.best_fitness_trace() == pooled.best_fitness_trace()
    assert serial.best.configuration == pooled.best.configuration
    print("✅ Process pool result matches in-process result")


def test_progress_callback():
    seen = []
    GeneticSearch(
        _tiny(generations=5, report_every=2), seed=2, workers=1,
        on_generation=lambda g: seen.append(g.index),
    ).run()
    assert seen == [0, 2, 4], seen

    seen.clear()
    GeneticSearch(
        _tiny(generations=4, report_every=2), seed=2, workers=1,
        on_generation=lambda g: seen.append(g.index),
    ).run()
    assert seen == [0, 2, 3], seen
    print("✅ Progress callback every report_every generations + last")


def test_play_to_target_search():
    history = _run(
        generations=2, stop_policy=StopPolicy.PLAY_TO_TARGET,
        start_balance=100, win_threshold=2, max_session_spins=200,
    )
    stats = history.best.stats
    assert stats.players_broke + stats.players_cashed_out + stats.players_still_playing == 5
    print(f"✅ Play-to-target search: {stats.players_cashed_out} cashed out, {stats.players_broke} broke")


def test_empty_history_has_no_best():
    history = SearchHistory(config=_tiny(), catalog=EXTENDED_CATALOG)
    try:
        history.best
        assert False, "empty history should not have a best individual"
    except ValueError:
        pass
    print("✅ Empty history raises on best")


def test_export_and_report():
    history = _run(generations=2, representation=Representation.WEIGHTED)
    data = json.loads(json.dumps(history_to_dict(history)))
    assert data["generations_run"] == 2
    assert data["catalog"] == "classic"
    assert len(data["best"]["reels"]) == 5
    assert "total" in data["best"]["fitness_breakdown"]
    assert data["config"]["representation"] == "weighted"

    buf = io.StringIO()
    render_report(history, Console(file=buf, width=140))
    out = buf.getvalue()
    assert "Fitness breakdown" in out
    assert "SYMBOL_WEIGHTS" in out
    print(f"✅ JSON export + report ({len(out):,} chars)")


def test_cli_parsing():
    args = build_parser().parse_args([
        "--rtp", "96", "--winrate", "22", "--until-end", "--same-reels",
        "--representation", "weighted", "--pop", "20", "--elite", "4",
    ])
    cfg = config_from_args(args)
    assert cfg.target_rtp == 96.0
    assert cfg.target_win_rate == 22.0
    assert cfg.stop_policy == StopPolicy.PLAY_TO_TARGET
    assert cfg.reel_mode == ReelMode.UNIFORM
    assert cfg.representation == Representation.WEIGHTED
    assert (cfg.population_size, cfg.elite_count) == (20, 4)

    defaults = config_from_args(build_parser().parse_args([]))
    assert defaults.stop_policy == StopPolicy.FIXED_SPINS
    print("✅ CLI flags map onto GAConfig")


def test_cli_dump_config_and_errors():
    assert main(["--dump-config", "--rtp", "96"]) == 0
    assert main(["--pop", "3", "--elite", "3", "--dump-config"]) == 2
    assert main(["--bet", "0", "--dump-config"]) == 2
    print("✅ CLI --dump-config exits 0, invalid config exits 2")


def test_cli_json_output():
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "out" / "best.json"
        code = main([
            "--gen", "2", "--pop", "6", "--elite", "1", "--players", "3", "--spins", "20",
            "--seed", "4", "--workers", "1", "--json", str(path),
        ])
        assert code == 0
        data = json.loads(path.read_text())
        assert data["generations_run"] == 2
        assert data["config"]["population_size"] == 6
    print("✅ CLI --json writes the result summary")


def test_cli_relative_json_path():
    with tempfile.TemporaryDirectory() as tmp:
        base = Path(tmp)
        assert resolve_output_path("best.json", base=base) == base / "best.json"
        assert resolve_output_path("runs/a.json", base=base) == base / "runs" / "a.json"
        absolute = base / "elsewhere.json"
        assert resolve_output_path(str(absolute), base=Path("/unused")) == absolute
    assert resolve_output_path("best.json") == OUTPUT_DIR / "best.json"
    print(f"✅ Relative --json paths land under {OUTPUT_DIR}")


# ============================================================
# Run all tests
# ============================================================

if __name__ == "__main__":
    import logging
    logging.disable(logging.WARNING)

    tests = [
        test_initial_generation_strip,
        test_initial_generation_weighted,
        test_strip_offspring_split,
        test_elites_carried_verbatim,
        test_best_fitness_never_regresses,
        test_generations_are_ranked_and_frozen,
        test_weighted_uniform_search,
        test_seeded_search_is_reproducible,
        test_process_pool_matches_in_process,
        test_progress_callback,
        test_play_to_target_search,
        test_empty_history_has_no_best,
        test_export_and_report,
        test_cli_parsing,
        test_cli_dump_config_and_errors,
        test_cli_json_output,
        test_cli_relative_json_path,
    ]

    print(f"\n{'='*60}")
    print(f"Genetic Search Tests — {len(tests)} tests")
    print(f"{'='*60}\n")

    passed = 0
    failed = 0
    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"❌ {test.__name__}: {e}")
            failed += 1
        print()

    print(f"{'='*60}")
    print(f"Results: {passed} passed, {failed} failed, {passed + failed} total")
    print(f"{'='*60}")

    sys.exit(0 if failed == 0 else 1)
