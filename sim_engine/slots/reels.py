"""
REELFORGE — Reel Model

Two representations of one concept (which symbols a reel shows, how often):

  StripReel     explicit ordered stops; a spin picks a start offset and
                shows 3 consecutive stops (wrapping)
  WeightedReel  one integer weight per symbol; a spin draws 3 independent
                weighted samples

Both expose effective_frequencies() so the evaluator, mutator and analytic
math have one code path per operation instead of one per representation.

Structural invariant: every catalog symbol stays selectable on every reel
(count >= 1 on a strip, weight >= 1 on a weighted reel). It is enforced by
construction (repair pass, weight clamping), never detected after the fact.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Iterable, Sequence, Union

from config.optimizer_schema import ReelMode, Representation
from sim_engine.slots.catalog import Catalog, Symbol
from sim_engine.slots.errors import ConfigurationError

MIN_WEIGHT = 1
MAX_WEIGHT = 100
WEIGHT_JITTER = 0.30          # ±30% per weighted mutation
STRONG_EDITS = (3, 7)         # edits per strong strip mutation (inclusive)


# ═══════════════════════════════════════════════════════════════
# Reel representations
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StripReel:
    symbols: tuple[Symbol, ...]

    representation = Representation.STRIP

    def __len__(self) -> int:
        return len(self.symbols)

    def count(self, symbol: Union[Symbol, str]) -> int:
        name = symbol.name if isinstance(symbol, Symbol) else symbol
        return sum(1 for s in self.symbols if s.name == name)

    def counts(self) -> dict[str, int]:
        out: dict[str, int] = {}
        for s in self.symbols:
            out[s.name] = out.get(s.name, 0) + 1
        return out

    def effective_frequencies(self) -> dict[str, float]:
        n = len(self.symbols)
        if n == 0:
            return {}
        return {name: c / n for name, c in self.counts().items()}

    def missing(self, catalog: Catalog) -> list[Symbol]:
        present = self.counts()
        return [s for s in catalog.symbols if present.get(s.name, 0) < 1]

    def draw_window(self, rng: random.Random, rows: int) -> tuple[Symbol, ...]:
        n = len(self.symbols)
        start = rng.randrange(n)
        return tuple(self.symbols[(start + j) % n] for j in range(rows))


@dataclass(frozen=True)
class WeightedReel:
    weights: tuple[tuple[Symbol, int], ...]
    _population: tuple = field(default=(), init=False, repr=False, compare=False)
    _cum_weights: tuple = field(default=(), init=False, repr=False, compare=False)

    representation = Representation.WEIGHTED

    def __post_init__(self):
        population = tuple(s for s, _ in self.weights)
        cum, total = [], 0
        for _, w in self.weights:
            total += w
            cum.append(total)
        object.__setattr__(self, "_population", population)
        object.__setattr__(self, "_cum_weights", tuple(cum))

    @classmethod
    def from_mapping(cls, weights: dict[str, int], catalog: Catalog) -> "WeightedReel":
        """Catalog-ordered reel from a {symbol name: weight} mapping.

        Names the catalog doesn't know raise ConfigurationError instead of
        being dropped.
        """
        unknown = sorted(name for name in weights if name not in catalog)
        if unknown:
            raise ConfigurationError(
                f"Weights name symbols outside catalog {catalog.name!r}: {unknown}"
            )
        return cls(tuple((s, int(weights[s.name])) for s in catalog.symbols if s.name in weights))

    def __len__(self) -> int:
        return len(self.weights)

    @property
    def total_weight(self) -> int:
        return self._cum_weights[-1] if self._cum_weights else 0

    def weight(self, symbol: Union[Symbol, str]) -> int:
        name = symbol.name if isinstance(symbol, Symbol) else symbol
        for s, w in self.weights:
            if s.name == name:
                return w
        return 0

    count = weight

    def as_dict(self) -> dict[str, int]:
        return {s.name: w for s, w in self.weights}

    def effective_frequencies(self) -> dict[str, float]:
        total = self.total_weight
        if total <= 0:
            return {}
        return {s.name: w / total for s, w in self.weights}

    def missing(self, catalog: Catalog) -> list[Symbol]:
        present = self.as_dict()
        return [s for s in catalog.symbols if present.get(s.name, 0) < MIN_WEIGHT]

    def draw_window(self, rng: random.Random, rows: int) -> tuple[Symbol, ...]:
        return tuple(rng.choices(self._population, cum_weights=self._cum_weights, k=rows))


Reel = Union[StripReel, WeightedReel]


# ═══════════════════════════════════════════════════════════════
# Configuration
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Configuration:
    """Five reels of one representation. Constructing one validates it."""
    reels: tuple
    mode: ReelMode
    catalog: Catalog

    def __post_init__(self):
        object.__setattr__(self, "reels", tuple(self.reels))
        object.__setattr__(self, "mode", ReelMode(self.mode))
        validate_configuration(self)

    @property
    def representation(self) -> Representation:
        return self.reels[0].representation

    def with_reels(self, reels: Iterable[Reel]) -> "Configuration":
        return Configuration(tuple(reels), self.mode, self.catalog)

    def frequency_table(self) -> list[dict[str, float]]:
        return [r.effective_frequencies() for r in self.reels]


def validate_configuration(config: Configuration) -> None:
    """Raise ConfigurationError unless every reel can be spun as-is."""
    catalog = config.catalog
    reels = config.reels

    if len(reels) != catalog.reel_count:
        raise ConfigurationError(f"Expected {catalog.reel_count} reels, got {len(reels)}")

    kinds = {type(r) for r in reels}
    if len(kinds) != 1 or not kinds <= {StripReel, WeightedReel}:
        raise ConfigurationError(
            f"All reels must share one representation, got {sorted(k.__name__ for k in kinds)}"
        )

    for i, reel in enumerate(reels, 1):
        unknown = [s.name for s in _reel_symbols(reel) if s not in catalog]
        if unknown:
            raise ConfigurationError(f"Reel {i} uses symbols outside catalog {catalog.name!r}: {unknown}")
        # same name, different paytable
        mismatched = sorted({s.name for s in _reel_symbols(reel) if catalog.symbol(s.name) != s})
        if mismatched:
            raise ConfigurationError(
                f"Reel {i} symbols differ from catalog {catalog.name!r} definitions: {mismatched}"
            )

        if isinstance(reel, StripReel):
            if len(reel) < catalog.rows:
                raise ConfigurationError(
                    f"Reel {i} has {len(reel)} stops, shorter than the {catalog.rows}-row window"
                )
            if len(reel) > catalog.max_strip_length:
                raise ConfigurationError(
                    f"Reel {i} has {len(reel)} stops, above the maximum of {catalog.max_strip_length}"
                )
        else:
            bad = {s.name: w for s, w in reel.weights if w < MIN_WEIGHT}
            if bad:
                raise ConfigurationError(f"Reel {i} has weights below {MIN_WEIGHT}: {bad}")
            names = [s.name for s, _ in reel.weights]
            if len(names) != len(set(names)):
                raise ConfigurationError(f"Reel {i} lists a symbol weight twice")

        missing = reel.missing(catalog)
        if missing:
            raise ConfigurationError(
                f"Reel {i} is missing symbols: {[s.name for s in missing]}"
            )

    if config.mode == ReelMode.UNIFORM and any(r != reels[0] for r in reels[1:]):
        raise ConfigurationError("Uniform mode requires all reels to be identical")


def _reel_symbols(reel: Reel) -> Sequence[Symbol]:
    if isinstance(reel, StripReel):
        return reel.symbols
    return [s for s, _ in reel.weights]


# ═══════════════════════════════════════════════════════════════
# Invariant maintenance
# ═══════════════════════════════════════════════════════════════

def repair_strip(reel: StripReel, catalog: Catalog) -> StripReel:
    """Re-add every catalog symbol with zero stops.

    Missing symbols are appended; a strip already at max length instead
    overwrites a stop whose symbol has spare copies.
    """
    stops = list(reel.symbols)
    counts = reel.counts()
    for sym in catalog.symbols:
        if counts.get(sym.name, 0) >= 1:
            continue
        if len(stops) < catalog.max_strip_length:
            stops.append(sym)
        else:
            idx = next(i for i, s in enumerate(stops) if counts[s.name] > 1)
            counts[stops[idx].name] -= 1
            stops[idx] = sym
        counts[sym.name] = 1
    return StripReel(tuple(stops))


def clamp_weight(w: float) -> int:
    return max(MIN_WEIGHT, min(MAX_WEIGHT, int(w)))


# ═══════════════════════════════════════════════════════════════
# Mutation
# ═══════════════════════════════════════════════════════════════

def mutate_strip(reel: StripReel, catalog: Catalog, rng: random.Random, strong: bool = False) -> StripReel:
    stops = list(reel.symbols)
    edits = rng.randint(*STRONG_EDITS) if strong else 1

    for _ in range(edits):
        action = rng.randrange(3)
        if action == 0:      # replace a random stop
            stops[rng.randrange(len(stops))] = rng.choice(catalog.symbols)
        elif action == 1:    # append a stop
            if len(stops) < catalog.max_strip_length:
                stops.append(rng.choice(catalog.symbols))
        else:                # remove a stop, never the last copy of a symbol
            if len(stops) > catalog.min_strip_length:
                idx = rng.randrange(len(stops))
                victim = stops[idx].name
                if sum(1 for s in stops if s.name == victim) > 1:
                    del stops[idx]

    # unconditional: a single replace can still drop a symbol's last copy
    return repair_strip(StripReel(tuple(stops)), catalog)


def mutate_weights(reel: WeightedReel, catalog: Catalog, rng: random.Random,
                   mutation_rate: float) -> WeightedReel:
    weights = reel.as_dict()
    for sym in catalog.symbols:
        weights.setdefault(sym.name, MIN_WEIGHT)

    for sym in catalog.symbols:
        if rng.random() < mutation_rate:
            change = rng.uniform(-WEIGHT_JITTER, WEIGHT_JITTER)
            weights[sym.name] = clamp_weight(round(weights[sym.name] * (1.0 + change)))

    return WeightedReel.from_mapping(weights, catalog)


def mutate_reel(reel: Reel, catalog: Catalog, rng: random.Random, strong: bool = False,
                mutation_rate: float = 0.15) -> Reel:
    """Mutate one reel; the result always carries every catalog symbol.

    Strong weighted mutation doubles the per-symbol mutation rate.
    """
    if isinstance(reel, StripReel):
        return mutate_strip(reel, catalog, rng, strong)
    rate = min(1.0, mutation_rate * 2) if strong else mutation_rate
    return mutate_weights(reel, catalog, rng, rate)


def mutate_configuration(config: Configuration, rng: random.Random, strong: bool = False,
                         mutation_rate: float = 0.15) -> Configuration:
    catalog = config.catalog

    if config.mode == ReelMode.UNIFORM:
        reel = mutate_reel(config.reels[0], catalog, rng, strong, mutation_rate)
        return config.with_reels([reel] * catalog.reel_count)

    # Mutate 1-3 random reels (2-4 when strong); draws may repeat
    draws = rng.randint(2, 4) if strong else rng.randint(1, 3)
    chosen = {rng.randrange(catalog.reel_count) for _ in range(draws)}
    return config.with_reels(
        mutate_reel(r, catalog, rng, strong, mutation_rate) if i in chosen else r
        for i, r in enumerate(config.reels)
    )


# ═══════════════════════════════════════════════════════════════
# Crossover (weight representation only)
# ═══════════════════════════════════════════════════════════════

def crossover_weights(a: WeightedReel, b: WeightedReel, catalog: Catalog, rng: random.Random,
                      p_first: float = 0.4, p_second: float = 0.4) -> WeightedReel:
    wa, wb = a.as_dict(), b.as_dict()
    child = {}
    for sym in catalog.symbols:
        x, y = wa.get(sym.name, MIN_WEIGHT), wb.get(sym.name, MIN_WEIGHT)
        choice = rng.random()
        if choice < p_first:
            child[sym.name] = x
        elif choice < p_first + p_second:
            child[sym.name] = y
        else:
            child[sym.name] = clamp_weight((x + y) / 2 + 0.5)
    return WeightedReel.from_mapping(child, catalog)


def crossover_configuration(a: Configuration, b: Configuration, rng: random.Random) -> Configuration:
    if a.representation != Representation.WEIGHTED or b.representation != Representation.WEIGHTED:
        raise TypeError("crossover is only defined for weighted reels")
    catalog = a.catalog

    if a.mode == ReelMode.UNIFORM:
        reel = crossover_weights(a.reels[0], b.reels[0], catalog, rng)
        return a.with_reels([reel] * catalog.reel_count)
    return a.with_reels(
        crossover_weights(ra, rb, catalog, rng) for ra, rb in zip(a.reels, b.reels)
    )


# ═══════════════════════════════════════════════════════════════
# Seeding
# ═══════════════════════════════════════════════════════════════

def _seed_counts(catalog: Catalog, limit: int) -> dict[str, int]:
    """Catalog seed counts scaled down (each >= 1) until they fit `limit`."""
    counts = {s.name: s.seed_count for s in catalog.symbols}
    total = sum(counts.values())
    if total > limit:
        counts = {k: max(1, int(v * limit / total)) for k, v in counts.items()}
        while sum(counts.values()) > limit:
            biggest = max(counts, key=counts.get)
            counts[biggest] -= 1
    return counts


def analytic_seed_reel(catalog: Catalog, representation: Representation) -> Reel:
    """Hand-tuned starting reel: many low-pay stops, few high-pay stops."""
    if Representation(representation) == Representation.WEIGHTED:
        counts = _seed_counts(catalog, 10 ** 9)
        return WeightedReel.from_mapping({k: clamp_weight(v) for k, v in counts.items()}, catalog)

    counts = _seed_counts(catalog, catalog.max_strip_length)
    stops: list[Symbol] = []
    for sym in catalog.symbols:
        stops.extend([sym] * counts[sym.name])
    # pad short seeds with the most frequent symbol
    filler = max(catalog.symbols, key=lambda s: s.seed_count)
    while len(stops) < catalog.min_strip_length:
        stops.append(filler)
    return StripReel(tuple(stops))


def _with_extra(reel: Reel, extra: list[Symbol], catalog: Catalog) -> Reel:
    if isinstance(reel, StripReel):
        room = catalog.max_strip_length - len(reel)
        return StripReel(reel.symbols + tuple(extra[:max(0, room)]))
    weights = reel.as_dict()
    for sym in extra:
        weights[sym.name] = clamp_weight(weights[sym.name] + 1)
    return WeightedReel.from_mapping(weights, catalog)


def analytic_seed(catalog: Catalog, representation: Representation = Representation.STRIP,
                  mode: ReelMode = ReelMode.INDEPENDENT) -> Configuration:
    """Analytic starting configuration.

    In independent mode odd reels (1, 3, 5) get an extra Star and the middle
    reel an extra Seven, when the catalog has them.
    """
    base = analytic_seed_reel(catalog, representation)
    if ReelMode(mode) == ReelMode.UNIFORM:
        return Configuration((base,) * catalog.reel_count, ReelMode.UNIFORM, catalog)

    star = catalog.symbol("Star") if "Star" in catalog else None
    seven = catalog.symbol("Seven") if "Seven" in catalog else None
    middle = catalog.reel_count // 2
    reels = []
    for i in range(catalog.reel_count):
        extra = []
        if star is not None and i % 2 == 0:
            extra.append(star)
        if seven is not None and i == middle:
            extra.append(seven)
        reels.append(_with_extra(base, extra, catalog) if extra else base)
    return Configuration(tuple(reels), ReelMode.INDEPENDENT, catalog)


def random_weights(catalog: Catalog, rng: random.Random) -> WeightedReel:
    """Random weights around each symbol's seed count (±20%, at least ±1)."""
    weights = {}
    for sym in catalog.symbols:
        spread = max(1, sym.seed_count // 5)
        weights[sym.name] = clamp_weight(rng.randint(sym.seed_count - spread, sym.seed_count + spread))
    return WeightedReel.from_mapping(weights, catalog)


def random_weighted_configuration(catalog: Catalog, mode: ReelMode, rng: random.Random) -> Configuration:
    if ReelMode(mode) == ReelMode.UNIFORM:
        reel = random_weights(catalog, rng)
        return Configuration((reel,) * catalog.reel_count, ReelMode.UNIFORM, catalog)
    return Configuration(
        tuple(random_weights(catalog, rng) for _ in range(catalog.reel_count)),
        ReelMode.INDEPENDENT, catalog,
    )
