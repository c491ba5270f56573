"""Market margin analysis — what a set of quoted odds says before any stake.

Every function here is **pure**: no I/O, no logging, no side effects.

Given the best available odd for each outcome of a market (binary or 1X2),
:func:`analyze_market` reports the bookmaker margin, the fair (margin-free)
probabilities, the stake split that equalises every outcome, and whether
the prices alone admit an arbitrage.

Design decisions
----------------
* Fair probabilities use **proportional** normalisation, ``(1/o_i) / M``
  with ``M = Σ 1/o_j``.  Across several bookmakers there is no single book
  whose favourite-longshot bias could be modelled, so the margin is spread
  evenly.
* Balanced stakes ``T · (1/o_i) / M`` return ``T / M`` on every outcome,
  so the book profits ``T · (1/M − 1)`` regardless of the result: positive
  exactly when ``M < 1``.
* The expected value reported is that of a unit bet on the best odd at its
  fair probability.  Under proportional normalisation it equals
  ``1/M − 1`` for every outcome.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

from arbcalc.core.engine_config import EngineConfig
from arbcalc.core.rounding import round_money, round_percent
from arbcalc.core.validation import ValidationIssue, check_odd, check_stake, raise_for_issues


class MarketTier(str, Enum):
    ARBITRAGE = "arbitrage"
    LOW_MARGIN = "low_margin"
    MODERATE_MARGIN = "moderate_margin"
    HIGH_MARGIN = "high_margin"
    BALANCED = "balanced"


@dataclass(frozen=True)
class OutcomeQuote:
    """One outcome of the analysed market."""

    odd: float
    implied_pct: float
    fair_pct: float
    stake: float
    returns: float
    profit: float


@dataclass(frozen=True)
class MarketAnalysis:
    """Result of :func:`analyze_market`.

    Attributes:
        margin: ``Σ 1/odd``; below 1 is an arbitrage.
        margin_pct: ``(margin − 1) · 100``.
        has_arbitrage: ``margin < 1``.
        arbitrage_profit: ``total_stake · (1/margin − 1)`` when
            ``has_arbitrage``, else ``0``.  This is what each
            balanced stake in ``outcomes`` actually nets.
        arbitrage_profit_pct: ``(1/margin − 1) · 100`` when
            ``has_arbitrage``, else ``0``.
        best_odd_index: Index of the highest odd.
        ev: Expected value of a unit bet on the best odd.
        ev_pct: ``ev · 100``.
        tier: :class:`MarketTier`.
        outcomes: Per-outcome breakdown, in input order.
    """

    total_stake: float
    margin: float
    margin_pct: float
    has_arbitrage: bool
    arbitrage_profit: float
    arbitrage_profit_pct: float
    best_odd_index: int
    ev: float
    ev_pct: float
    tier: MarketTier
    outcomes: Tuple[OutcomeQuote, ...]


def _tier(has_arbitrage: bool, margin_pct: float, cfg: EngineConfig) -> MarketTier:
    if has_arbitrage:
        return MarketTier.ARBITRAGE
    if margin_pct > cfg.high_margin_pct:
        return MarketTier.HIGH_MARGIN
    if margin_pct > cfg.low_margin_pct:
        return MarketTier.MODERATE_MARGIN
    if margin_pct > 0:
        return MarketTier.LOW_MARGIN
    return MarketTier.BALANCED


def analyze_market(
    odds: Sequence[float],
    total_stake: float,
    *,
    config: Optional[EngineConfig] = None,
) -> MarketAnalysis:
    """Analyse the margin and balanced staking of a set of quoted odds.

    Args:
        odds: Best decimal odd per outcome, at least two, each ``> 1``.
        total_stake: Capital to split across outcomes, ``> 0``.
        config: Precision and tier thresholds.

    Returns:
        :class:`MarketAnalysis` with money rounded to cents and
        percentages to one decimal.

    Raises:
        ValidationError: Fewer than two odds, an odd ``≤ 1`` or a
            non-positive stake.

    Examples::

        analyze_market([2.10, 2.05], 100)
            → margin 0.9640, has_arbitrage True, arbitrage_profit 3.73, tier ARBITRAGE
        analyze_market([1.90, 1.90], 100)
            → margin_pct 5.3, tier MODERATE_MARGIN
    """
    issues = []
    if len(odds) < 2:
        issues.append(ValidationIssue("odds", "at least two outcomes are required"))
    for i, odd in enumerate(odds):
        issues.extend(check_odd(odd, f"odds[{i}]", allow_unset=False))
    stake_issues = check_stake(total_stake, "total_stake")
    issues.extend(stake_issues)
    if not stake_issues and total_stake <= 0:
        issues.append(ValidationIssue("total_stake", "total stake must be greater than 0"))
    raise_for_issues(issues)

    cfg = config or EngineConfig.default()
    money, pct = cfg.money_places, cfg.percent_places

    implied = [1.0 / odd for odd in odds]
    margin = math.fsum(implied)
    margin_pct = (margin - 1.0) * 100.0
    fair = [p / margin for p in implied]
    has_arbitrage = margin < 1.0

    outcomes = []
    for odd, p_implied, p_fair in zip(odds, implied, fair):
        stake = total_stake * p_fair
        returns = stake * odd
        outcomes.append(OutcomeQuote(
            odd=odd,
            implied_pct=round_percent(p_implied * 100.0, pct),
            fair_pct=round_percent(p_fair * 100.0, pct),
            stake=round_money(stake, money),
            returns=round_money(returns, money),
            profit=round_money(returns - total_stake, money),
        ))

    edge = 1.0 / margin - 1.0 if has_arbitrage else 0.0

    best = max(range(len(odds)), key=lambda i: odds[i])
    ev = fair[best] * (odds[best] - 1.0) - (1.0 - fair[best])

    return MarketAnalysis(
        total_stake=round_money(total_stake, money),
        margin=margin,
        margin_pct=round_percent(margin_pct, pct),
        has_arbitrage=has_arbitrage,
        arbitrage_profit=round_money(total_stake * edge, money),
        arbitrage_profit_pct=round_percent(edge * 100.0, pct),
        best_odd_index=best,
        ev=ev,
        ev_pct=round_percent(ev * 100.0, pct),
        tier=_tier(has_arbitrage, margin_pct, cfg),
        outcomes=tuple(outcomes),
    )
