"""
REELFORGE — Fitness Function

Scalar score for one simulated configuration. Lower is better; 0 means the
simulation hit both targets with an in-band win distribution and the house
made money.

    score = |rtp - target_rtp|
          + |win_rate - target_win_rate| * win_rate_weight
          + house loss / loss_scale                    (only when profit < 0)
          + Σ tier band penalties                      (small, medium, big, jackpot)
          + cashed-out players * cashout_scale         (play-to-target only, opt-in)
"""

from __future__ import annotations

from config.optimizer_schema import GAConfig, StopPolicy, WinTier
from sim_engine.slots.simulator import SimStats

COMPONENTS = ("rtp", "win_rate", "house_loss", "small", "medium", "big", "jackpot", "cashout_risk")


def fitness_breakdown(stats: SimStats, config: GAConfig) -> dict[str, float]:
    """Every fitness component plus their sum under "total"."""
    weights = config.fitness
    parts = {
        "rtp": abs(stats.rtp - config.target_rtp),
        "win_rate": abs(stats.win_rate - config.target_win_rate) * weights.win_rate_weight,
        "house_loss": abs(stats.house_profit) / weights.loss_scale if stats.house_profit < 0 else 0.0,
    }
    for tier in WinTier:
        parts[tier.value] = weights.band(tier).penalty(stats.tier_rate(tier))

    cashout = 0.0
    if (config.stop_policy == StopPolicy.PLAY_TO_TARGET and weights.cashout_scale > 0
            and stats.player_share(stats.players_cashed_out) > weights.cashout_ceiling_pct):
        cashout = stats.players_cashed_out * weights.cashout_scale
    parts["cashout_risk"] = cashout

    parts["total"] = sum(parts[name] for name in COMPONENTS)
    return parts


def score_stats(stats: SimStats, config: GAConfig) -> float:
    return fitness_breakdown(stats, config)["total"]


def fitness(individual, config: GAConfig) -> float:
    """Score an evaluated Individual (anything carrying `.stats`)."""
    return score_stats(individual.stats, config)
