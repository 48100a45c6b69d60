"""
REELFORGE — Population Simulator

Runs N simulated players against one configuration and aggregates session
statistics. Two stopping policies:

  fixed_spins     each player spins up to `spins_per_player` times or until
                  the balance no longer covers one wager
  play_to_target  each player spins until broke, until the balance reaches
                  start_balance × win_threshold (cash out), or until
                  `max_session_spins` is hit. The cap is the stand-in for an
                  infinite horizon on an unbounded random walk.

Counters accumulate in a mutable SimCounters; finalize() computes the derived
percentages exactly once and returns a frozen SimStats.
"""

from __future__ import annotations

import logging
import random
from dataclasses import asdict, dataclass
from typing import Optional

from config.optimizer_schema import GAConfig, StopPolicy, TierThresholds, WinTier
from sim_engine.slots.evaluator import spin_payout
from sim_engine.slots.reels import Configuration

logger = logging.getLogger("reelforge.simulator")


def _pct(part: float, whole: float) -> float:
    return (part / whole) * 100 if whole else 0.0


# ═══════════════════════════════════════════════════════════════
# Data Structures
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SimStats:
    """Completed simulation. Derived fields are set once by SimCounters.finalize()."""
    # Players
    players: int
    players_broke: int
    players_cashed_out: int
    players_still_playing: int
    players_ahead: int            # ended above their starting balance
    players_behind: int

    # Spins
    spins: int
    total_wagered: float
    total_paid: float
    wins: int                     # spins with payout > 0
    pushes: int                   # spins paying exactly the wager
    small_wins: int
    medium_wins: int
    big_wins: int
    jackpot_wins: int
    largest_win: float

    # Money
    total_invested: float         # sum of starting bankrolls
    total_cashed_out: float       # sum of end balances

    # Derived (percent unless noted)
    rtp: float
    win_rate: float
    small_win_rate: float
    medium_win_rate: float
    big_win_rate: float
    jackpot_win_rate: float
    house_profit: float           # amount
    house_profit_pct: float       # of total wagered
    house_edge: float
    average_win: float            # amount per winning spin
    avg_spins_per_player: float   # count

    def tier_count(self, tier: WinTier) -> int:
        return getattr(self, f"{WinTier(tier).value}_wins")

    def tier_rate(self, tier: WinTier) -> float:
        return getattr(self, f"{WinTier(tier).value}_win_rate")

    @property
    def tier_total(self) -> int:
        return self.small_wins + self.medium_wins + self.big_wins + self.jackpot_wins

    def player_share(self, count: int) -> float:
        return _pct(count, self.players)

    def to_dict(self) -> dict:
        return {k: (round(v, 4) if isinstance(v, float) else v) for k, v in asdict(self).items()}


@dataclass
class SimCounters:
    """Mutable accumulator used only inside one simulate() call."""
    players: int = 0
    players_broke: int = 0
    players_cashed_out: int = 0
    players_still_playing: int = 0
    players_ahead: int = 0
    players_behind: int = 0
    spins: int = 0
    total_wagered: float = 0.0
    total_paid: float = 0.0
    wins: int = 0
    pushes: int = 0
    small_wins: int = 0
    medium_wins: int = 0
    big_wins: int = 0
    jackpot_wins: int = 0
    largest_win: float = 0.0
    total_invested: float = 0.0
    total_cashed_out: float = 0.0

    def record_spin(self, wager: float, payout: float, tiers: TierThresholds) -> None:
        self.spins += 1
        self.total_wagered += wager
        self.total_paid += payout
        if payout == wager:
            self.pushes += 1
        if payout > 0:
            self.wins += 1
            tier = tiers.classify(payout / wager)
            attr = f"{tier.value}_wins"
            setattr(self, attr, getattr(self, attr) + 1)
            if payout > self.largest_win:
                self.largest_win = payout

    def finalize(self) -> SimStats:
        house_profit = self.total_wagered - self.total_paid
        rtp = _pct(self.total_paid, self.total_wagered)
        return SimStats(
            **asdict(self),
            rtp=rtp,
            win_rate=_pct(self.wins, self.spins),
            small_win_rate=_pct(self.small_wins, self.spins),
            medium_win_rate=_pct(self.medium_wins, self.spins),
            big_win_rate=_pct(self.big_wins, self.spins),
            jackpot_win_rate=_pct(self.jackpot_wins, self.spins),
            house_profit=house_profit,
            house_profit_pct=_pct(house_profit, self.total_wagered),
            house_edge=(100.0 - rtp) if self.total_wagered else 0.0,
            average_win=(self.total_paid / self.wins) if self.wins else 0.0,
            avg_spins_per_player=(self.spins / self.players) if self.players else 0.0,
        )


# ═══════════════════════════════════════════════════════════════
# Sessions
# ═══════════════════════════════════════════════════════════════

BROKE = "broke"
CASHED_OUT = "cashed_out"
STILL_PLAYING = "still_playing"


def _one_spin(configuration: Configuration, wager: float, balance: float,
              rng: random.Random, counters: SimCounters, tiers: TierThresholds) -> float:
    payout = spin_payout(configuration, wager, rng)
    counters.record_spin(wager, payout, tiers)
    return balance - wager + payout


def play_fixed_spins(configuration: Configuration, config: GAConfig, wager: float,
                     rng: random.Random, counters: SimCounters) -> tuple[float, str]:
    balance = config.start_balance
    for _ in range(config.spins_per_player):
        if balance < wager:
            break
        balance = _one_spin(configuration, wager, balance, rng, counters, config.tiers)

    if balance >= config.win_target_balance:
        return balance, CASHED_OUT
    if balance < wager:
        return balance, BROKE
    return balance, STILL_PLAYING


def play_to_target(configuration: Configuration, config: GAConfig, wager: float,
                   rng: random.Random, counters: SimCounters) -> tuple[float, str]:
    balance = config.start_balance
    target = config.win_target_balance
    for _ in range(config.max_session_spins):
        if balance < wager:
            return balance, BROKE
        if balance >= target:
            return balance, CASHED_OUT
        balance = _one_spin(configuration, wager, balance, rng, counters, config.tiers)

    # session cap reached; the last spin may still have decided it
    if balance < wager:
        return balance, BROKE
    if balance >= target:
        return balance, CASHED_OUT
    return balance, STILL_PLAYING


SESSION_POLICIES = {
    StopPolicy.FIXED_SPINS: play_fixed_spins,
    StopPolicy.PLAY_TO_TARGET: play_to_target,
}


# ═══════════════════════════════════════════════════════════════
# Entry point
# ═══════════════════════════════════════════════════════════════

def _check_entry(config: GAConfig, wager: float) -> None:
    if config.players_per_sim < 1:
        raise ValueError(f"players_per_sim must be >= 1, got {config.players_per_sim}")
    if config.stop_policy == StopPolicy.FIXED_SPINS and config.spins_per_player < 1:
        raise ValueError(f"spins_per_player must be >= 1, got {config.spins_per_player}")
    if config.stop_policy == StopPolicy.PLAY_TO_TARGET and config.max_session_spins < 1:
        raise ValueError(f"max_session_spins must be >= 1, got {config.max_session_spins}")
    if wager <= 0:
        raise ValueError(f"wager must be > 0, got {wager}")
    if config.start_balance < wager:
        raise ValueError(
            f"start_balance ({config.start_balance}) cannot cover a single wager ({wager})"
        )


def simulate(configuration: Configuration, config: GAConfig, wager: Optional[float] = None,
             rng: Optional[random.Random] = None) -> SimStats:
    """Run config.players_per_sim sessions against `configuration`.

    Args:
        configuration: Reels to play (validated at construction)
        config: Simulation parameters (policy, players, bankroll, tiers)
        wager: Stake per spin (defaults to config.bet)
        rng: Seeded stream for reproducible runs; a fresh one otherwise
    """
    wager = config.bet if wager is None else wager
    _check_entry(config, wager)
    rng = rng or random.Random()
    session = SESSION_POLICIES[config.stop_policy]

    counters = SimCounters(players=config.players_per_sim)
    for _ in range(config.players_per_sim):
        counters.total_invested += config.start_balance
        balance, outcome = session(configuration, config, wager, rng, counters)

        if outcome == BROKE:
            counters.players_broke += 1
        elif outcome == CASHED_OUT:
            counters.players_cashed_out += 1
        else:
            counters.players_still_playing += 1

        if balance > config.start_balance:
            counters.players_ahead += 1
        elif balance < config.start_balance:
            counters.players_behind += 1
        counters.total_cashed_out += balance

    stats = counters.finalize()
    logger.debug(
        f"simulate: {stats.players} players, {stats.spins:,} spins, "
        f"RTP={stats.rtp:.2f}% win={stats.win_rate:.2f}%"
    )
    return stats
