"""
REELFORGE — Analytic Math

Exact expected return of a configuration, no sampling.

Every visible row of a reel shows symbol s with probability f_r(s), the reel's
effective frequency (strip: stops / length, weighted: weight / total). Reels
are independent, so for one payline

    P(run of s is exactly k) = Π_{r<k} f_r(s) × (1 - f_k(s))     k = 3, 4
    P(run of s is 5)         = Π_{r<5} f_r(s)

and by linearity of expectation the RTP is the sum over paylines of
Σ_s Σ_k P × payout_k(s), regardless of how rows of one strip correlate.
"""

from __future__ import annotations

from sim_engine.slots.catalog import Payline, Symbol
from sim_engine.slots.reels import Configuration


def run_probabilities(frequencies: list[dict[str, float]], symbol: Symbol) -> dict[int, float]:
    """P(run length == k) for k = 3..n along any single line."""
    probs = [f.get(symbol.name, 0.0) for f in frequencies]
    n = len(probs)
    out = {}
    for k in range(3, n + 1):
        p = 1.0
        for q in probs[:k]:
            p *= q
        if k < n:
            p *= 1.0 - probs[k]
        out[k] = p
    return out


def symbol_line_return(configuration: Configuration, symbol: Symbol) -> float:
    """Expected multiplier one payline pays out through `symbol`."""
    freqs = configuration.frequency_table()
    return sum(p * symbol.payout(k) for k, p in run_probabilities(freqs, symbol).items())


def expected_line_return(configuration: Configuration, payline: Payline) -> float:
    """Expected multiplier of the wager paid by one payline.

    Rows share one marginal distribution per reel, so the pattern of the line
    does not change its expectation; it is taken for API symmetry.
    """
    return sum(symbol_line_return(configuration, s) for s in configuration.catalog.symbols)


def line_hit_probability(configuration: Configuration, payline: Payline) -> float:
    """Probability that one payline pays anything (run of 3 or more)."""
    freqs = configuration.frequency_table()
    total = 0.0
    for sym in configuration.catalog.symbols:
        p = 1.0
        for f in freqs[:3]:
            p *= f.get(sym.name, 0.0)
        total += p
    return total


def theoretical_rtp(configuration: Configuration) -> float:
    """Exact long-run RTP in percent."""
    catalog = configuration.catalog
    return sum(expected_line_return(configuration, line) for line in catalog.paylines) * 100


def rtp_contributions(configuration: Configuration) -> dict[str, float]:
    """Share of the theoretical RTP (percentage points) contributed by each symbol."""
    lines = len(configuration.catalog.paylines)
    return {
        s.name: symbol_line_return(configuration, s) * lines * 100
        for s in configuration.catalog.symbols
    }
