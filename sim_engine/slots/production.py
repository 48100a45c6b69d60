"""
REELFORGE — Production Spin Engine

Fixed-weight engine the game server spins with. No search happens here: the
weight table is pasted in from the optimizer's export
(report.weight_table_source) and stays constant between releases.

    engine = SlotsEngine()
    result = engine.spin(10.0)
    result.total_win, [lw.to_dict() for lw in result.line_wins]

Spins draw from random.SystemRandom (OS entropy) unless an explicit rng is
injected for tests.
"""

from __future__ import annotations

import random
from typing import Mapping, Optional, Sequence, Union

from config.optimizer_schema import ReelMode
from sim_engine.slots.catalog import CLASSIC_CATALOG, Catalog
from sim_engine.slots.evaluator import SpinResult, spin
from sim_engine.slots.reels import Configuration, WeightedReel

# Exported by the weighted optimizer (uniform reels). Paste a new
# SYMBOL_WEIGHTS block here to ship a re-tuned table.
STATIC_SYMBOL_WEIGHTS = {
    "Cherry": 85,
    "Lemon": 75,
    "Orange": 55,
    "Grape": 30,
    "Diamond": 10,
    "Star": 3,
    "Seven": 2,
}

WeightTable = Union[Mapping[str, int], Sequence[Mapping[str, int]]]


def configuration_from_weights(weights: WeightTable, catalog: Catalog = CLASSIC_CATALOG) -> Configuration:
    """One mapping → identical reels; a list of mappings → one per reel."""
    if isinstance(weights, Mapping):
        reel = WeightedReel.from_mapping(dict(weights), catalog)
        return Configuration((reel,) * catalog.reel_count, ReelMode.UNIFORM, catalog)
    reels = tuple(WeightedReel.from_mapping(dict(w), catalog) for w in weights)
    return Configuration(reels, ReelMode.INDEPENDENT, catalog)


class SlotsEngine:
    """Slot machine game logic for live play."""

    def __init__(self, weights: WeightTable = STATIC_SYMBOL_WEIGHTS,
                 catalog: Catalog = CLASSIC_CATALOG,
                 rng: Optional[random.Random] = None,
                 min_bet: float = 0.0, max_bet: Optional[float] = None):
        self.catalog = catalog
        self.configuration = configuration_from_weights(weights, catalog)
        self.rng = rng or random.SystemRandom()
        self.min_bet = min_bet
        self.max_bet = max_bet

    def validate_bet(self, bet: float) -> None:
        if bet <= 0:
            raise ValueError(f"bet must be > 0, got {bet}")
        if bet < self.min_bet:
            raise ValueError(f"minimum bet is {self.min_bet:.2f}")
        if self.max_bet is not None and bet > self.max_bet:
            raise ValueError(f"maximum bet is {self.max_bet:.2f}")

    def spin(self, bet: float) -> SpinResult:
        self.validate_bet(bet)
        return spin(self.configuration, bet, self.rng)

    def payout_table(self) -> dict[str, dict[int, float]]:
        """symbol → {run length: multiplier}, for display."""
        return {
            s.name: {3: s.payout3, 4: s.payout4, 5: s.payout5}
            for s in self.catalog.symbols
        }

    def symbols(self) -> list[str]:
        return self.catalog.names
