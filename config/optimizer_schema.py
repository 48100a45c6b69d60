"""
REELFORGE — Optimizer Configuration Schema

Every tunable of the reel optimizer lives in one pydantic model so a run can
be dumped, diffed and replayed:

    from config.optimizer_schema import build_ga_config, Representation
    cfg = build_ga_config(target_rtp=96.0, representation=Representation.WEIGHTED)
    print(cfg.model_dump_json(indent=2))

Win-tier boundaries and distribution bands are configuration, not law: the
two historical optimizers disagreed on them, so they are exposed here.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from config.settings import OptimizerDefaults


# ═══════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════

class Representation(str, Enum):
    STRIP    = "strip"      # explicit multiset of stops per reel
    WEIGHTED = "weighted"   # one integer weight per symbol per reel


class ReelMode(str, Enum):
    UNIFORM     = "uniform"       # all 5 reels identical
    INDEPENDENT = "independent"   # reels evolve separately


class StopPolicy(str, Enum):
    FIXED_SPINS    = "fixed_spins"
    PLAY_TO_TARGET = "play_to_target"


class WinTier(str, Enum):
    SMALL   = "small"
    MEDIUM  = "medium"
    BIG     = "big"
    JACKPOT = "jackpot"


# ═══════════════════════════════════════════════════════════════
# Sub-Models
# ═══════════════════════════════════════════════════════════════

class TierThresholds(BaseModel):
    """Win-to-wager multiplier boundaries: <medium small, <big medium, <jackpot big."""
    medium: float = Field(10.0, gt=0)
    big: float = Field(50.0, gt=0)
    jackpot: float = Field(100.0, gt=0)

    @model_validator(mode="after")
    def _ascending(self):
        if not (self.medium < self.big < self.jackpot):
            raise ValueError(
                f"tier thresholds must be ascending, got "
                f"medium={self.medium} big={self.big} jackpot={self.jackpot}"
            )
        return self

    def classify(self, multiplier: float) -> WinTier:
        if multiplier >= self.jackpot:
            return WinTier.JACKPOT
        if multiplier >= self.big:
            return WinTier.BIG
        if multiplier >= self.medium:
            return WinTier.MEDIUM
        return WinTier.SMALL


class DistributionBand(BaseModel):
    """Allowed band for one tier's rate (% of spins).

    Outside the band the penalty is |rate - target| * scale; inside it is 0.
    """
    min_rate: Optional[float] = Field(None, ge=0)
    max_rate: Optional[float] = Field(None, ge=0)
    target: float = Field(..., ge=0)
    scale: float = Field(..., ge=0)

    @model_validator(mode="after")
    def _band_order(self):
        if self.min_rate is not None and self.max_rate is not None and self.min_rate > self.max_rate:
            raise ValueError(f"band min_rate {self.min_rate} > max_rate {self.max_rate}")
        return self

    def penalty(self, rate: float) -> float:
        below = self.min_rate is not None and rate < self.min_rate
        above = self.max_rate is not None and rate > self.max_rate
        if below or above:
            return abs(rate - self.target) * self.scale
        return 0.0


class FitnessWeights(BaseModel):
    """Scales for every fitness component.

    Targets (typical online slots, % of spins):
      small 20-25%, medium 2-5%, big 0.1-1%, jackpot 0.001-0.01%
    """
    win_rate_weight: float = Field(2.0, ge=0)
    loss_scale: float = Field(100.0, gt=0)
    small: DistributionBand = Field(
        default_factory=lambda: DistributionBand(min_rate=15.0, max_rate=30.0, target=22.5, scale=0.5)
    )
    medium: DistributionBand = Field(
        default_factory=lambda: DistributionBand(max_rate=8.0, target=3.5, scale=2.0)
    )
    big: DistributionBand = Field(
        default_factory=lambda: DistributionBand(max_rate=2.0, target=0.5, scale=5.0)
    )
    jackpot: DistributionBand = Field(
        default_factory=lambda: DistributionBand(max_rate=0.05, target=0.005, scale=10.0)
    )
    # Play-to-target only: too many players walking away with the target
    # bankroll is house risk. 0 disables the component.
    cashout_ceiling_pct: float = Field(1.0, ge=0)
    cashout_scale: float = Field(0.0, ge=0)

    def band(self, tier: WinTier) -> DistributionBand:
        return getattr(self, tier.value)


# ═══════════════════════════════════════════════════════════════
# Master Config
# ═══════════════════════════════════════════════════════════════

class GAConfig(BaseModel):
    """Genetic search + simulation parameters for one optimizer run."""

    representation: Representation = Representation.STRIP
    reel_mode: ReelMode = ReelMode.INDEPENDENT
    stop_policy: StopPolicy = StopPolicy.FIXED_SPINS

    # Targets (percent)
    target_rtp: float = Field(95.0, gt=0, le=200)
    target_win_rate: float = Field(25.0, ge=0, le=100)

    # Search budget
    generations: int = Field(50, ge=1)
    population_size: int = Field(33, ge=2)
    elite_count: int = Field(3, ge=1)
    analytic_seeds: int = Field(3, ge=0)
    mutation_rate: float = Field(0.15, ge=0, le=1)
    crossover_rate: float = Field(0.7, ge=0, le=1)
    tournament_size: int = Field(3, ge=1)
    strong_mutation_ratio: float = Field(1 / 3, ge=0, le=1)
    seed_strong_probability: float = Field(0.3, ge=0, le=1)
    report_every: int = Field(5, ge=1)

    # Simulation
    players_per_sim: int = Field(50, ge=1)
    spins_per_player: int = Field(100, ge=1)
    bet: float = Field(10.0, gt=0)
    start_balance: float = Field(1000.0, gt=0)
    win_threshold: float = Field(3.0, gt=1)
    max_session_spins: int = Field(10_000, ge=1)

    tiers: TierThresholds = Field(default_factory=TierThresholds)
    fitness: FitnessWeights = Field(default_factory=FitnessWeights)

    @field_validator("representation", "reel_mode", "stop_policy", mode="before")
    @classmethod
    def _lower_enum(cls, v):
        return v.lower() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _population_shape(self):
        if self.elite_count >= self.population_size:
            raise ValueError(
                f"elite_count ({self.elite_count}) must be smaller than "
                f"population_size ({self.population_size})"
            )
        if self.analytic_seeds > self.population_size:
            raise ValueError(
                f"analytic_seeds ({self.analytic_seeds}) exceeds population_size ({self.population_size})"
            )
        if self.start_balance < self.bet:
            raise ValueError(f"start_balance ({self.start_balance}) is below one bet ({self.bet})")
        return self

    @property
    def offspring_count(self) -> int:
        return self.population_size - self.elite_count

    @property
    def strong_offspring_count(self) -> int:
        return int(round(self.offspring_count * self.strong_mutation_ratio))

    @property
    def win_target_balance(self) -> float:
        return self.start_balance * self.win_threshold


# ═══════════════════════════════════════════════════════════════
# Builders / Validation
# ═══════════════════════════════════════════════════════════════

def build_ga_config(**overrides) -> GAConfig:
    """GAConfig seeded from OptimizerDefaults (env-aware), then overrides.

    None-valued overrides are ignored so argparse namespaces can be passed
    straight through.
    """
    d = OptimizerDefaults
    params = {
        "representation": d.REPRESENTATION,
        "reel_mode": ReelMode.UNIFORM if d.SAME_REELS else ReelMode.INDEPENDENT,
        "stop_policy": StopPolicy.PLAY_TO_TARGET if d.UNTIL_THE_END else StopPolicy.FIXED_SPINS,
        "target_rtp": d.TARGET_RTP,
        "target_win_rate": d.TARGET_WIN_RATE,
        "generations": d.GENERATIONS,
        "population_size": d.POPULATION,
        "elite_count": d.ELITE_COUNT,
        "analytic_seeds": d.ANALYTIC_SEEDS,
        "mutation_rate": d.MUTATION_RATE,
        "crossover_rate": d.CROSSOVER_RATE,
        "tournament_size": d.TOURNAMENT_SIZE,
        "strong_mutation_ratio": d.STRONG_MUTATION_RATIO,
        "report_every": d.REPORT_EVERY,
        "players_per_sim": d.PLAYERS_PER_SIM,
        "spins_per_player": d.SPINS_PER_PLAYER,
        "bet": d.BET,
        "start_balance": d.START_BALANCE,
        "win_threshold": d.WIN_THRESHOLD,
        "max_session_spins": d.MAX_SESSION_SPINS,
    }
    params.update({k: v for k, v in overrides.items() if v is not None})
    return GAConfig(**params)


def validate_ga_config(config: GAConfig) -> list[str]:
    """Run sanity checks on a config and return list of warnings."""
    warnings = []

    if config.target_rtp < 85:
        warnings.append(f"Target RTP {config.target_rtp}% is unusually low — most jurisdictions require ≥85%")
    if config.target_rtp > 99:
        warnings.append(f"Target RTP {config.target_rtp}% leaves a house edge of only {100 - config.target_rtp:.2f}%")
    if config.target_rtp >= 100:
        warnings.append("Target RTP ≥100% means the house loses money long-run; the loss penalty will fight the target")

    sim_spins = config.players_per_sim * config.spins_per_player
    if config.stop_policy == StopPolicy.FIXED_SPINS and sim_spins < 2_000:
        warnings.append(
            f"Only {sim_spins:,} spins per evaluation — fitness noise will dominate the search"
        )
    if config.stop_policy == StopPolicy.PLAY_TO_TARGET and config.max_session_spins < 100:
        warnings.append(
            f"max_session_spins={config.max_session_spins} truncates most play-to-target sessions"
        )
    if config.offspring_count < 2:
        warnings.append(f"Only {config.offspring_count} offspring per generation — search will barely move")

    return warnings
