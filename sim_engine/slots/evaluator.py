"""
REELFORGE — Spin Evaluator

spin(configuration, wager, rng) draws a 3-row window per reel and pays every
active payline. evaluate_grid() is the deterministic half: given a visible
grid it returns the same total and per-line breakdown every time, whatever
order the paylines are visited in.

Line rule: count a strictly left-to-right run of identical symbols starting at
reel 1; runs of 3, 4 or 5 pay wager × symbol multiplier. A spin may win on
any number of lines at once.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Optional, Sequence

from sim_engine.slots.catalog import Catalog, Payline, Symbol
from sim_engine.slots.reels import Configuration

# grid[reel][row]
Grid = tuple[tuple[Symbol, ...], ...]


@dataclass(frozen=True)
class LineWin:
    line_index: int        # 0-based index into catalog.paylines
    line_name: str
    symbol: Symbol
    count: int             # 3, 4 or 5
    multiplier: float
    win: float

    @property
    def line_number(self) -> int:
        return self.line_index + 1

    def to_dict(self) -> dict:
        return {
            "line_number": self.line_number,
            "line": self.line_name,
            "symbol": self.symbol.name,
            "count": self.count,
            "multiplier": self.multiplier,
            "win": round(self.win, 2),
        }


@dataclass(frozen=True)
class SpinResult:
    grid: Grid
    wager: float
    total_win: float
    line_wins: tuple[LineWin, ...] = field(default_factory=tuple)

    @property
    def multiplier(self) -> float:
        return self.total_win / self.wager if self.wager > 0 else 0.0

    @property
    def is_win(self) -> bool:
        return self.total_win > 0

    def rows(self) -> list[list[str]]:
        """Grid transposed to display rows (top → bottom)."""
        return [[reel[r].name for reel in self.grid] for r in range(len(self.grid[0]))]

    def to_dict(self) -> dict:
        return {
            "reels": [[s.name for s in reel] for reel in self.grid],
            "wager": self.wager,
            "total_win": round(self.total_win, 2),
            "multiplier": round(self.multiplier, 4),
            "winning_lines": [lw.to_dict() for lw in self.line_wins],
        }


def line_run(symbols: Sequence[Symbol]) -> tuple[Symbol, int]:
    """First symbol on the line and the length of its left-to-right run."""
    first = symbols[0]
    count = 1
    for sym in symbols[1:]:
        if sym.name != first.name:
            break
        count += 1
    return first, count


def evaluate_line(grid: Grid, payline: Payline, line_index: int, wager: float) -> Optional[LineWin]:
    symbols = [grid[reel][row] for reel, row in enumerate(payline.rows)]
    first, count = line_run(symbols)
    if count < 3:
        return None
    multiplier = first.payout(count)
    return LineWin(
        line_index=line_index,
        line_name=payline.name,
        symbol=first,
        count=count,
        multiplier=multiplier,
        win=wager * multiplier,
    )


def evaluate_grid(grid: Grid, wager: float, catalog: Catalog) -> tuple[float, tuple[LineWin, ...]]:
    """Pay every payline of `catalog` against a fixed grid."""
    if wager < 0:
        raise ValueError(f"wager must be >= 0, got {wager}")
    if len(grid) != catalog.reel_count:
        raise ValueError(f"grid has {len(grid)} reels, catalog expects {catalog.reel_count}")

    wins = []
    for i, payline in enumerate(catalog.paylines):
        lw = evaluate_line(grid, payline, i, wager)
        if lw is not None:
            wins.append(lw)
    return sum((lw.win for lw in wins), 0.0), tuple(wins)


def draw_grid(configuration: Configuration, rng: random.Random) -> Grid:
    rows = configuration.catalog.rows
    return tuple(reel.draw_window(rng, rows) for reel in configuration.reels)


def spin(configuration: Configuration, wager: float, rng: Optional[random.Random] = None) -> SpinResult:
    """One spin. Configuration validity is guaranteed at construction."""
    if wager < 0:
        raise ValueError(f"wager must be >= 0, got {wager}")
    rng = rng or random.Random()
    grid = draw_grid(configuration, rng)
    total, wins = evaluate_grid(grid, wager, configuration.catalog)
    return SpinResult(grid=grid, wager=wager, total_win=total, line_wins=wins)


def spin_payout(configuration: Configuration, wager: float, rng: random.Random) -> float:
    """Total payout only; what the simulator needs per spin."""
    total, _ = evaluate_grid(draw_grid(configuration, rng), wager, configuration.catalog)
    return total
