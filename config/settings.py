"""
Slot Reel Optimizer - Configuration & Defaults

Every knob of the optimizer can be overridden from the environment (or a
.env file next to the working directory) so batch runs on a build box can be
tuned without touching the command line:

- SLOTS_TARGET_RTP / SLOTS_TARGET_WIN_RATE   search targets (percent)
- SLOTS_GENERATIONS / SLOTS_POPULATION       GA budget
- SLOTS_PLAYERS / SLOTS_SPINS                simulation size per individual
- SLOTS_BET / SLOTS_START_BALANCE            session economics
- SLOTS_WIN_MULT / SLOTS_MAX_SESSION_SPINS   play-to-target policy
- SLOTS_WORKERS                              process pool size (default: cores)
- OUTPUT_DIR                                 base directory for relative --json paths
"""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

OUTPUT_DIR = Path(os.getenv("OUTPUT_DIR", "./output"))


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    return int(raw) if raw.strip() else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    return float(raw) if raw.strip() else default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "")
    if not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ============================================================
# OPTIMIZER DEFAULTS
#
# Targets are based on typical online slots:
#   RTP 94-96%       - standard for online slots
#   Win rate 22-28%  - every 4th-5th spin pays something
#
# Population 33 = 3 elites + 20 normal mutants + 10 strong mutants.
# ============================================================

class OptimizerDefaults:

    # --- Targets ---
    TARGET_RTP      = _env_float("SLOTS_TARGET_RTP", 95.0)
    TARGET_WIN_RATE = _env_float("SLOTS_TARGET_WIN_RATE", 25.0)

    # --- GA budget ---
    GENERATIONS     = _env_int("SLOTS_GENERATIONS", 50)
    POPULATION      = _env_int("SLOTS_POPULATION", 33)
    ELITE_COUNT     = _env_int("SLOTS_ELITE", 3)
    ANALYTIC_SEEDS  = 3
    MUTATION_RATE   = _env_float("SLOTS_MUTATION_RATE", 0.15)
    CROSSOVER_RATE  = _env_float("SLOTS_CROSSOVER_RATE", 0.7)
    TOURNAMENT_SIZE = 3
    STRONG_MUTATION_RATIO = 1 / 3
    REPORT_EVERY    = _env_int("SLOTS_REPORT_EVERY", 5)

    # --- Simulation ---
    PLAYERS_PER_SIM   = _env_int("SLOTS_PLAYERS", 50)
    SPINS_PER_PLAYER  = _env_int("SLOTS_SPINS", 100)
    BET               = _env_float("SLOTS_BET", 10.0)
    START_BALANCE     = _env_float("SLOTS_START_BALANCE", 1000.0)
    WIN_THRESHOLD     = _env_float("SLOTS_WIN_MULT", 3.0)
    UNTIL_THE_END     = _env_bool("SLOTS_UNTIL_END", False)
    # Hard cap on spins in one play-to-target session. The session is an
    # unbounded random walk; the cap stands in for "infinite horizon".
    MAX_SESSION_SPINS = _env_int("SLOTS_MAX_SESSION_SPINS", 10_000)
    SAME_REELS        = _env_bool("SLOTS_SAME_REELS", False)
    REPRESENTATION    = os.getenv("SLOTS_REPRESENTATION", "strip")

    # --- Runtime ---
    WORKERS   = _env_int("SLOTS_WORKERS", 0)   # 0 = os.cpu_count()
    LOG_LEVEL = os.getenv("SLOTS_LOG_LEVEL", "INFO")

    @classmethod
    def as_dict(cls) -> dict:
        """Snapshot of every default (upper-case attributes only)."""
        return {
            k: v for k, v in vars(cls).items()
            if k.isupper() and not k.startswith("_")
        }

    @classmethod
    def resolved_workers(cls) -> int:
        return cls.WORKERS if cls.WORKERS > 0 else (os.cpu_count() or 1)
