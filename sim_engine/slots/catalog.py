"""
REELFORGE — Symbol & Paytable Catalog

Static registry of symbols, their 3/4/5-of-a-kind multipliers and the active
payline table. A Catalog is built once and passed into every component;
nothing in the engine reads a module-level table behind the caller's back, so
tests can substitute a three-symbol catalog without touching global state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator


@dataclass(frozen=True)
class Symbol:
    name: str
    emoji: str
    payout3: float        # multiplier of the wager for exactly 3 on a line
    payout4: float
    payout5: float
    seed_count: int = 1   # stops in the analytic starting reel

    def payout(self, run_length: int) -> float:
        """Multiplier for a left-to-right run; runs below 3 pay nothing."""
        if run_length >= 5:
            return self.payout5
        if run_length == 4:
            return self.payout4
        if run_length == 3:
            return self.payout3
        return 0.0

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Payline:
    name: str
    rows: tuple[int, ...]   # row index (0=top, 1=middle, 2=bottom) per reel

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class Catalog:
    """Immutable process-wide registry: symbols + paylines + grid geometry."""
    name: str
    symbols: tuple[Symbol, ...]
    paylines: tuple[Payline, ...]
    reel_count: int = 5
    rows: int = 3
    min_strip_length: int = 10
    max_strip_length: int = 100
    _by_name: dict = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        if not self.symbols:
            raise ValueError(f"Catalog {self.name!r} has no symbols")
        names = [s.name for s in self.symbols]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"Catalog {self.name!r} has duplicate symbols: {dupes}")
        for s in self.symbols:
            if min(s.payout3, s.payout4, s.payout5) < 0:
                raise ValueError(f"Symbol {s.name} has a negative payout")
            if s.seed_count < 1:
                raise ValueError(f"Symbol {s.name} seed_count must be >= 1")
        for line in self.paylines:
            if len(line.rows) != self.reel_count:
                raise ValueError(
                    f"Payline {line.name!r} has {len(line.rows)} positions, expected {self.reel_count}"
                )
            bad = [r for r in line.rows if not 0 <= r < self.rows]
            if bad:
                raise ValueError(f"Payline {line.name!r} uses rows outside 0..{self.rows - 1}: {bad}")
        if self.min_strip_length < self.rows:
            raise ValueError(
                f"min_strip_length {self.min_strip_length} is shorter than the {self.rows}-row window"
            )
        if self.max_strip_length < max(self.min_strip_length, len(self.symbols)):
            raise ValueError(
                f"max_strip_length {self.max_strip_length} cannot hold every symbol once"
            )
        # frozen dataclass: populate the lookup cache through object.__setattr__
        object.__setattr__(self, "_by_name", {s.name: s for s in self.symbols})

    def symbol(self, name: str) -> Symbol:
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(f"Unknown symbol: {name}. Available: {self.names}") from None

    @property
    def names(self) -> list[str]:
        return [s.name for s in self.symbols]

    def __contains__(self, symbol) -> bool:
        name = symbol.name if isinstance(symbol, Symbol) else symbol
        return name in self._by_name

    def __iter__(self) -> Iterator[Symbol]:
        return iter(self.symbols)

    def __len__(self) -> int:
        return len(self.symbols)


# ═══════════════════════════════════════════════════════════════
# Built-in tables
# ═══════════════════════════════════════════════════════════════

# Standard 10 paylines for 5-reel, 3-row slots
PAYLINES: tuple[Payline, ...] = (
    Payline("middle",          (1, 1, 1, 1, 1)),
    Payline("top",             (0, 0, 0, 0, 0)),
    Payline("bottom",          (2, 2, 2, 2, 2)),
    Payline("v",               (0, 1, 2, 1, 0)),
    Payline("inverted_v",      (2, 1, 0, 1, 2)),
    Payline("zigzag",          (1, 0, 1, 0, 1)),
    Payline("reverse_zigzag",  (1, 2, 1, 2, 1)),
    Payline("w",               (0, 1, 0, 1, 0)),
    Payline("m",               (2, 1, 2, 1, 2)),
    Payline("diagonal",        (0, 0, 1, 2, 2)),
)

CHERRY  = Symbol("Cherry",  "🍒",  2.0,  10.0,  40.0, seed_count=8)
LEMON   = Symbol("Lemon",   "🍋",  3.0,  15.0,  60.0, seed_count=5)
ORANGE  = Symbol("Orange",  "🍊",  4.0,  20.0,  80.0, seed_count=3)
GRAPE   = Symbol("Grape",   "🍇",  5.0,  25.0, 100.0, seed_count=2)
DIAMOND = Symbol("Diamond", "💎",  8.0,  40.0, 150.0, seed_count=1)
STAR    = Symbol("Star",    "⭐", 10.0,  50.0, 200.0, seed_count=1)
SEVEN   = Symbol("Seven",   "7️⃣", 20.0, 100.0, 500.0, seed_count=1)

# Low-pay symbols for frequent small wins
BAR     = Symbol("Bar",     "━",   1.5,   5.0,  20.0, seed_count=5)
BELL    = Symbol("Bell",    "🔔",  1.2,   4.0,  15.0, seed_count=10)
CLOVER  = Symbol("Clover",  "🍀",  1.0,   3.0,  12.0, seed_count=15)

# 10 symbols, strip optimizer. Seed counts sum to a 51-stop reel:
# ~60% low pay, ~30% mid pay, ~10% high pay.
EXTENDED_CATALOG = Catalog(
    name="extended",
    symbols=(CLOVER, BELL, BAR, CHERRY, LEMON, ORANGE, GRAPE, DIAMOND, STAR, SEVEN),
    paylines=PAYLINES,
)

# 7 symbols, weight optimizer + production engine. Seed counts are the
# midpoints of the hand-tuned weight ranges (cherry most common, seven rarest).
CLASSIC_CATALOG = Catalog(
    name="classic",
    symbols=(
        Symbol("Cherry",  "🍒",  2.0,  10.0,  40.0, seed_count=85),
        Symbol("Lemon",   "🍋",  3.0,  15.0,  60.0, seed_count=75),
        Symbol("Orange",  "🍊",  4.0,  20.0,  80.0, seed_count=55),
        Symbol("Grape",   "🍇",  5.0,  25.0, 100.0, seed_count=30),
        Symbol("Diamond", "💎",  8.0,  40.0, 150.0, seed_count=10),
        Symbol("Star",    "⭐", 10.0,  50.0, 200.0, seed_count=3),
        Symbol("Seven",   "7️⃣", 20.0, 100.0, 500.0, seed_count=2),
    ),
    paylines=PAYLINES,
)

CATALOGS = {
    "extended": EXTENDED_CATALOG,
    "classic": CLASSIC_CATALOG,
}


def get_catalog(name: str) -> Catalog:
    """Get a built-in catalog by name."""
    catalog = CATALOGS.get(name.lower())
    if catalog is None:
        raise ValueError(f"Unknown catalog: {name}. Available: {list(CATALOGS)}")
    return catalog
