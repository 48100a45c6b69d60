"""
REELFORGE — Genetic Search Driver

Evolves reel configurations toward the fitness targets.

    from config.optimizer_schema import build_ga_config
    from sim_engine.slots.genetic import GeneticSearch

    history = GeneticSearch(build_ga_config(generations=20), seed=7).run()
    print(history.best.fitness)

Generation 0: `analytic_seeds` copies of the analytic seed, the rest are
mutants of it (strong with probability `seed_strong_probability`). The
weighted variant fills half of that remainder with random weight samples.

Each next generation keeps the top `elite_count` unchanged (stats and fitness
carried, not re-simulated), then fills the population:
  strip     normal mutants of the top half + strong mutants of the top third
  weighted  tournament selection → crossover (crossover_rate) → mutation

Individuals of one generation are simulated in a process pool; the driver
waits for all of them before ranking (one barrier per generation). Each
evaluation gets its own seed drawn from the driver RNG, so a seeded search is
reproducible whatever the worker count.
"""

from __future__ import annotations

import logging
import random
import time
from concurrent.futures import Executor, ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Optional, Sequence

from config.optimizer_schema import GAConfig, Representation
from config.settings import OptimizerDefaults
from sim_engine.slots.catalog import CLASSIC_CATALOG, EXTENDED_CATALOG, Catalog
from sim_engine.slots.fitness import score_stats
from sim_engine.slots.reels import (
    Configuration, analytic_seed, crossover_configuration,
    mutate_configuration, random_weighted_configuration,
)
from sim_engine.slots.report import format_progress
from sim_engine.slots.simulator import SimStats, simulate

logger = logging.getLogger("reelforge.optimizer")


class Origin(str, Enum):
    ANALYTIC      = "analytic"
    SEED_MUTANT   = "seed-mutant"
    RANDOM        = "random"
    ELITE         = "elite"
    MUTANT        = "mutant"
    STRONG_MUTANT = "strong-mutant"
    CROSSOVER     = "crossover"


# ═══════════════════════════════════════════════════════════════
# Data Structures
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Individual:
    configuration: Configuration
    stats: SimStats
    fitness: float
    origin: Origin = Origin.ANALYTIC

    def carry_over(self) -> "Individual":
        """Elite copy for the next generation. Everything inside is immutable,
        so sharing the configuration and stats is a full copy."""
        return replace(self, origin=Origin.ELITE)

    def to_dict(self) -> dict:
        return {
            "fitness": round(self.fitness, 4),
            "origin": self.origin.value,
            "stats": self.stats.to_dict(),
        }


@dataclass(frozen=True)
class Generation:
    index: int
    individuals: tuple[Individual, ...]   # ascending fitness
    elapsed_s: float = 0.0

    @property
    def best(self) -> Individual:
        return self.individuals[0]

    @property
    def mean_fitness(self) -> float:
        return sum(i.fitness for i in self.individuals) / len(self.individuals)

    def origins(self) -> dict[str, int]:
        out: dict[str, int] = {}
        for ind in self.individuals:
            out[ind.origin.value] = out.get(ind.origin.value, 0) + 1
        return out


@dataclass
class SearchHistory:
    config: GAConfig
    catalog: Catalog
    generations: list[Generation] = field(default_factory=list)

    @property
    def best(self) -> Individual:
        """Best individual of the final population."""
        if not self.generations:
            raise ValueError("search has not produced any generation yet")
        return self.generations[-1].best

    def best_fitness_trace(self) -> list[float]:
        return [g.best.fitness for g in self.generations]

    def __len__(self) -> int:
        return len(self.generations)

    def __getitem__(self, index: int) -> Generation:
        return self.generations[index]


def catalog_for(representation: Representation) -> Catalog:
    """Built-in catalog for a representation: 10 symbols for strips, 7 for weights."""
    if Representation(representation) == Representation.WEIGHTED:
        return CLASSIC_CATALOG
    return EXTENDED_CATALOG


def evaluate_configuration(configuration: Configuration, config: GAConfig,
                           seed: int) -> tuple[SimStats, float]:
    """Simulate one configuration. Module-level so the process pool can pickle it."""
    stats = simulate(configuration, config, rng=random.Random(seed))
    return stats, score_stats(stats, config)


# ═══════════════════════════════════════════════════════════════
# Driver
# ═══════════════════════════════════════════════════════════════

Candidate = tuple[Configuration, Origin]


class GeneticSearch:
    """Runs one genetic search.

    Args:
        config: GA + simulation parameters
        catalog: Symbol/payline registry (default picked by representation)
        seed: Driver RNG seed; None for a non-reproducible run
        workers: Process pool size (None = SLOTS_WORKERS or cpu count, 1 = in-process)
        on_generation: Called with each reported Generation
    """

    def __init__(self, config: GAConfig, catalog: Optional[Catalog] = None,
                 seed: Optional[int] = None, workers: Optional[int] = None,
                 on_generation: Optional[Callable[[Generation], None]] = None):
        self.config = config
        self.catalog = catalog or catalog_for(config.representation)
        self.seed = seed
        self.rng = random.Random(seed)
        self.workers = workers if workers and workers > 0 else OptimizerDefaults.resolved_workers()
        self.on_generation = on_generation
        self.history = SearchHistory(config=config, catalog=self.catalog)

    # ── Entry point ──

    def run(self) -> SearchHistory:
        cfg = self.config
        logger.info(
            f"Genetic search: {cfg.representation.value}/{cfg.reel_mode.value}, "
            f"pop={cfg.population_size} gens={cfg.generations} workers={self.workers} "
            f"targets RTP={cfg.target_rtp}% win={cfg.target_win_rate}%"
        )

        if self.workers == 1:
            self._evolve(None)
        else:
            with ProcessPoolExecutor(max_workers=self.workers) as executor:
                self._evolve(executor)

        best = self.history.best
        logger.info(
            f"Search done: best fitness {best.fitness:.4f} "
            f"(RTP {best.stats.rtp:.2f}%, win {best.stats.win_rate:.2f}%)"
        )
        return self.history

    def _evolve(self, executor: Optional[Executor]) -> None:
        cfg = self.config
        previous: Optional[Generation] = None
        for index in range(cfg.generations):
            t0 = time.time()
            if previous is None:
                individuals = self._evaluate(self.initial_candidates(), executor)
            else:
                elites = [ind.carry_over() for ind in previous.individuals[:cfg.elite_count]]
                children = self._evaluate(self.next_candidates(previous), executor)
                individuals = elites + children

            ranked = tuple(sorted(individuals, key=lambda i: i.fitness))
            generation = Generation(index=index, individuals=ranked, elapsed_s=time.time() - t0)
            self.history.generations.append(generation)
            self._report(generation, last=index == cfg.generations - 1)
            previous = generation

    def _report(self, generation: Generation, last: bool) -> None:
        if generation.index % self.config.report_every != 0 and not last:
            logger.debug(format_progress(generation))
            return
        logger.info(format_progress(generation))
        if self.on_generation:
            self.on_generation(generation)

    # ── Population construction ──

    def initial_candidates(self) -> list[Candidate]:
        cfg = self.config
        seed_config = analytic_seed(self.catalog, cfg.representation, cfg.reel_mode)
        candidates: list[Candidate] = [(seed_config, Origin.ANALYTIC)] * cfg.analytic_seeds

        remainder = cfg.population_size - len(candidates)
        n_random = remainder // 2 if cfg.representation == Representation.WEIGHTED else 0
        for _ in range(n_random):
            candidates.append(
                (random_weighted_configuration(self.catalog, cfg.reel_mode, self.rng), Origin.RANDOM)
            )
        for _ in range(remainder - n_random):
            strong = self.rng.random() < cfg.seed_strong_probability
            mutant = mutate_configuration(seed_config, self.rng, strong, cfg.mutation_rate)
            candidates.append((mutant, Origin.SEED_MUTANT))
        return candidates

    def next_candidates(self, previous: Generation) -> list[Candidate]:
        if self.config.representation == Representation.WEIGHTED:
            return self._weighted_offspring(previous.individuals)
        return self._strip_offspring(previous.individuals)

    def _strip_offspring(self, ranked: Sequence[Individual]) -> list[Candidate]:
        cfg = self.config
        n_strong = cfg.strong_offspring_count
        n_normal = cfg.offspring_count - n_strong
        top_half = ranked[:max(1, len(ranked) // 2)]
        top_third = ranked[:max(1, len(ranked) // 3)]

        children: list[Candidate] = []
        for _ in range(n_normal):
            parent = self.rng.choice(top_half)
            children.append((
                mutate_configuration(parent.configuration, self.rng, False, cfg.mutation_rate),
                Origin.MUTANT,
            ))
        for _ in range(n_strong):
            parent = self.rng.choice(top_third)
            children.append((
                mutate_configuration(parent.configuration, self.rng, True, cfg.mutation_rate),
                Origin.STRONG_MUTANT,
            ))
        return children

    def _weighted_offspring(self, ranked: Sequence[Individual]) -> list[Candidate]:
        cfg = self.config
        children: list[Candidate] = []
        for _ in range(cfg.offspring_count):
            first = self.tournament(ranked)
            if self.rng.random() < cfg.crossover_rate:
                second = self.tournament(ranked)
                child = crossover_configuration(first.configuration, second.configuration, self.rng)
                origin = Origin.CROSSOVER
            else:
                child = first.configuration
                origin = Origin.MUTANT
            child = mutate_configuration(child, self.rng, False, cfg.mutation_rate)
            children.append((child, origin))
        return children

    def tournament(self, ranked: Sequence[Individual]) -> Individual:
        """Best of `tournament_size` random picks (with replacement)."""
        contenders = [self.rng.choice(ranked) for _ in range(self.config.tournament_size)]
        return min(contenders, key=lambda i: i.fitness)

    # ── Evaluation ──

    def _evaluate(self, candidates: list[Candidate], executor: Optional[Executor]) -> list[Individual]:
        seeds = [self.rng.getrandbits(32) for _ in candidates]
        results: list[Optional[tuple[SimStats, float]]] = [None] * len(candidates)

        if executor is None:
            for i, ((configuration, _), seed) in enumerate(zip(candidates, seeds)):
                results[i] = evaluate_configuration(configuration, self.config, seed)
        else:
            futures = {
                executor.submit(evaluate_configuration, configuration, self.config, seed): i
                for i, ((configuration, _), seed) in enumerate(zip(candidates, seeds))
            }
            for future in as_completed(futures):
                results[futures[future]] = future.result()

        return [
            Individual(configuration=configuration, stats=stats, fitness=score, origin=origin)
            for (configuration, origin), (stats, score) in zip(candidates, results)
        ]
