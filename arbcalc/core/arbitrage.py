"""Arbitrage book resolution — guaranteed profit across every outcome.

All functions here are **pure**: no I/O, no logging, no side effects.

The two public entry points:

1. :func:`resolve_arbitrage` — evaluates a book of mutually exclusive legs
   and reports the **worst-case** profit and ROI across outcomes.
2. :func:`solve_stakes` — holds one reference leg's stake fixed and solves
   the other legs' stakes, either to equalise profit across outcomes
   (``AUTO``) or to push all profit onto the reference outcome
   (``DIRECTED``).

Design decisions
----------------
* The headline figure is the **minimum** profit over outcomes.  A hedge is
  only as good as the outcome that hurts most; an average or the first
  leg's figure would advertise money that one of the outcomes takes away.
* The minimum runs over **every** leg, staked or not.  A leg the user has
  listed but not covered still loses the whole book if it wins, and the
  report must say so.
* A book with fewer than two complete legs (``odd > 1`` and ``stake > 0``)
  is *incomplete*: it is a single bet, not a hedge.  Its guaranteed figures
  are ``None`` rather than ``0`` so a half-filled form can never be read as
  a verified break-even.
* All sums use :func:`math.fsum`, which is exactly rounded, so reordering
  legs or entries cannot move a result across a rounding boundary.
* Amounts are never converted between currencies.  When the accepted
  entries carry more than one distinct currency code the book has no
  total, so every figure that needs one is ``None`` and the verdict is
  ``MULTI_CURRENCY``.  Entries without a code are assumed to match the
  rest.
* ``extraction_rate`` measures a bonus book: guaranteed profit as a
  percentage of the stake placed as promotional bets.

Stake solving
-------------
With reference leg *r* at stake ``S_r`` and odds ``o_i``:

``AUTO`` equalises the return of every outcome::

    S_i = S_r · o_r / o_i                                         (1)

so every outcome profits ``S_r · o_r − Σ S_i``.

``DIRECTED`` splits the legs into a directed set *D* (containing *r*) and
the rest *U*.  Directed legs share the reference return, undirected legs
break even on the book's total stake ``T``::

    S_i = S_r · o_r / o_i                       i ∈ D, i ≠ r
    S_D = Σ_{i∈D} S_i
    u   = Σ_{i∈U} 1/o_i
    T   = S_D / (1 − u)                                           (2)
    S_i = T / o_i                               i ∈ U

Equation (2) only has a positive solution when the undirected legs'
implied probabilities sum to less than 1.  With ``D = {r}`` it reduces to
``T = S_r / (1 − Σ_{i≠r} 1/o_i)``: all profit on the reference outcome.

Run tests with::

    pytest tests/test_arbitrage.py -v
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple

from arbcalc.core.engine_config import EngineConfig
from arbcalc.core.legs import Leg, LegAnalysis, LegResolution, _evaluate, _resolve, _round_analysis
from arbcalc.core.rounding import (
    round_money,
    round_optional_money,
    round_optional_percent,
    round_percent,
    round_to_step,
)
from arbcalc.core.validation import ValidationError, ValidationIssue

#: A book needs at least this many complete legs to be a hedge.
MIN_COMPLETE_LEGS = 2

MIXED_CURRENCIES = "mixed currencies"


class ArbitrageVerdict(str, Enum):
    """Qualitative reading of a resolved book."""

    INCOMPLETE = "incomplete"        # fewer than two complete legs
    ARBITRAGE = "arbitrage"          # every outcome ≥ 0, worst > 0
    NEUTRAL = "neutral"              # every outcome ≥ 0, worst = 0
    PARTIAL_HEDGE = "partial_hedge"  # some outcomes win, some lose
    AT_RISK = "at_risk"              # no outcome wins
    MULTI_CURRENCY = "multi_currency"  # no common unit to compare outcomes


class Distribution(str, Enum):
    """How :func:`solve_stakes` distributes profit across outcomes."""

    AUTO = "auto"
    DIRECTED = "directed"


@dataclass(frozen=True)
class StakePlan:
    """Stakes solved from a fixed reference leg.

    Attributes:
        fixed_leg_index: Index of the leg whose stake was held constant.
        distribution: Strategy used to solve the other stakes.
        stakes: One stake per leg, in input order.
        total_stake: Sum of ``stakes``.
        profits: Profit of the book for each outcome, in input order.
        guaranteed_profit: ``min(profits)``.
        guaranteed_roi: ``guaranteed_profit / total_stake · 100``.
        directed_leg_indices: Legs sharing the surplus under ``DIRECTED``,
            ascending; empty for ``AUTO``.
    """

    fixed_leg_index: int
    distribution: Distribution
    stakes: Tuple[float, ...]
    total_stake: float
    profits: Tuple[float, ...]
    guaranteed_profit: float
    guaranteed_roi: float
    directed_leg_indices: Tuple[int, ...] = ()


@dataclass(frozen=True)
class ArbitrageResult:
    """Resolved book.

    ``guaranteed_*``, ``max_*`` and ``binding_leg`` are ``None`` whenever
    :attr:`is_complete` is False or :attr:`is_multi_currency` is True.

    Attributes:
        total_stake: Stake summed over every accepted entry of every leg;
            ``None`` for a multi-currency book.
        leg_analyses: One :class:`LegAnalysis` per leg, in input order.
        is_complete: At least two legs are complete.
        complete_leg_count: Number of complete legs.
        guaranteed_profit: Minimum profit over outcomes.
        guaranteed_roi: ROI of the binding outcome.
        binding_leg: Label of the leg holding the minimum.
        max_profit: Best-case profit over outcomes.
        max_roi: Best-case ROI.
        max_risk: Magnitude of the worst loss; ``0`` when no outcome loses.
        overround: ``Σ 1/odd`` over priced legs (quoted odds).
        spread_pct: ``(overround − 1) · 100``; negative means the prices
            alone admit an arbitrage.
        has_theoretical_arbitrage: Two or more priced legs and
            ``overround < 1``.
        verdict: :class:`ArbitrageVerdict`.
        bonus_stake: Stake placed as promotional bets across the book;
            ``None`` for a multi-currency book.
        extraction_rate: ``guaranteed_profit / bonus_stake · 100``; ``None``
            without bonus stake or a guaranteed profit.
        is_multi_currency: Accepted entries carry more than one currency.
        currencies: Distinct currency codes across the book.
        issues: Entries the validation gate excluded, plus a ``legs``
            issue for a multi-currency book.
        stake_plan: Solved stakes when a reference leg was given.
    """

    total_stake: Optional[float]
    leg_analyses: Tuple[LegAnalysis, ...]
    is_complete: bool
    complete_leg_count: int
    guaranteed_profit: Optional[float]
    guaranteed_roi: Optional[float]
    binding_leg: Optional[str]
    max_profit: Optional[float]
    max_roi: Optional[float]
    max_risk: Optional[float]
    overround: float
    spread_pct: float
    has_theoretical_arbitrage: bool
    verdict: ArbitrageVerdict
    bonus_stake: Optional[float] = 0.0
    extraction_rate: Optional[float] = None
    is_multi_currency: bool = False
    currencies: Tuple[str, ...] = ()
    issues: Tuple[ValidationIssue, ...] = ()
    stake_plan: Optional[StakePlan] = None

    def require_guaranteed_profit(self) -> float:
        """Return the guaranteed profit or raise if the book is incomplete.

        Raises:
            ValidationError: ``field="legs"`` when fewer than two legs are
                complete or the book mixes currencies.
        """
        if self.is_multi_currency:
            raise ValidationError.single("legs", MIXED_CURRENCIES)
        if self.guaranteed_profit is None:
            raise ValidationError.single(
                "legs",
                f"at least {MIN_COMPLETE_LEGS} complete legs (odd > 1 and stake > 0) "
                f"are required, got {self.complete_leg_count}",
            )
        return self.guaranteed_profit


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_all(legs: Sequence[Leg]) -> List[LegResolution]:
    return [_resolve(leg.entries, f"legs[{i}].") for i, leg in enumerate(legs)]


def _currencies(resolutions: Sequence[LegResolution]) -> Tuple[str, ...]:
    seen = []
    for r in resolutions:
        for code in r.currencies:
            if code not in seen:
                seen.append(code)
    return tuple(seen)


def _overround(resolutions: Sequence[LegResolution]) -> Tuple[float, int]:
    priced = [r.quoted_odd for r in resolutions if r.quoted_odd > 1]
    return math.fsum(1.0 / odd for odd in priced), len(priced)


def _verdict(profits: Sequence[float]) -> ArbitrageVerdict:
    worst = min(profits)
    if worst >= 0:
        return ArbitrageVerdict.ARBITRAGE if worst > 0 else ArbitrageVerdict.NEUTRAL
    if any(p > 0 for p in profits):
        return ArbitrageVerdict.PARTIAL_HEDGE
    return ArbitrageVerdict.AT_RISK


# ---------------------------------------------------------------------------
# Stake solving
# ---------------------------------------------------------------------------


def _directed_set(
    n: int,
    fixed_leg_index: int,
    distribution: Distribution,
    directed_leg_indices: Optional[Iterable[int]],
) -> FrozenSet[int]:
    if directed_leg_indices is None:
        return frozenset([fixed_leg_index]) if distribution is Distribution.DIRECTED else frozenset()

    directed = frozenset(directed_leg_indices)
    if distribution is not Distribution.DIRECTED:
        raise ValidationError.single(
            "directed_leg_indices", "only used with the directed distribution"
        )
    issues = [
        ValidationIssue("directed_leg_indices", f"must be between 0 and {n - 1}, got {i!r}")
        for i in sorted(directed)
        if not 0 <= i < n
    ]
    if not directed:
        issues.append(ValidationIssue("directed_leg_indices", "at least one leg must be directed"))
    elif fixed_leg_index not in directed:
        issues.append(ValidationIssue(
            "directed_leg_indices", f"must include the fixed leg {fixed_leg_index}"
        ))
    if len(directed) >= n:
        issues.append(ValidationIssue(
            "directed_leg_indices", "at least one leg must stay undirected"
        ))
    if issues:
        raise ValidationError(issues)
    return directed


def _solve_raw(
    resolutions: Sequence[LegResolution],
    fixed_leg_index: int,
    distribution: Distribution,
    step: Optional[float],
    directed: FrozenSet[int] = frozenset(),
) -> List[float]:
    ref = resolutions[fixed_leg_index]
    if ref.leg_stake <= 0 or ref.quoted_odd <= 1:
        raise ValidationError.single(
            f"legs[{fixed_leg_index}]",
            "reference leg needs a stake and an odd greater than 1",
        )
    unpriced = [
        ValidationIssue(f"legs[{i}].odd", "odd must be greater than 1 to solve its stake")
        for i, r in enumerate(resolutions)
        if i != fixed_leg_index and r.quoted_odd <= 1
    ]
    if unpriced:
        raise ValidationError(unpriced)

    # Equation (1): every leg in the returning set pays the reference return.
    target = ref.leg_stake * ref.quoted_odd
    if distribution is Distribution.AUTO:
        return [
            ref.leg_stake if i == fixed_leg_index else round_to_step(target / r.quoted_odd, step)
            for i, r in enumerate(resolutions)
        ]

    stakes: List[Optional[float]] = [None] * len(resolutions)
    for i in directed:
        r = resolutions[i]
        stakes[i] = ref.leg_stake if i == fixed_leg_index else round_to_step(target / r.quoted_odd, step)

    # Equation (2): undirected outcomes break even on the book's total.
    undirected_prob = math.fsum(
        1.0 / r.quoted_odd for i, r in enumerate(resolutions) if i not in directed
    )
    if undirected_prob >= 1.0:
        raise ValidationError.single(
            "legs",
            "implied probabilities of the undirected legs sum to 100% or more; "
            "they cannot all break even",
        )
    directed_total = math.fsum(stakes[i] for i in directed)
    total = directed_total + directed_total * undirected_prob / (1.0 - undirected_prob)
    for i, r in enumerate(resolutions):
        if i not in directed:
            stakes[i] = round_to_step(total / r.quoted_odd, step)
    return stakes


def _plan(
    resolutions: Sequence[LegResolution],
    fixed_leg_index: int,
    distribution: Distribution,
    step: Optional[float],
    cfg: EngineConfig,
    directed_leg_indices: Optional[Iterable[int]] = None,
) -> StakePlan:
    n = len(resolutions)
    if n < MIN_COMPLETE_LEGS:
        raise ValidationError.single("legs", "at least two legs are required to solve stakes")
    if not 0 <= fixed_leg_index < n:
        raise ValidationError.single(
            "fixed_leg_index", f"must be between 0 and {n - 1}, got {fixed_leg_index!r}"
        )
    if len(_currencies(resolutions)) > 1:
        raise ValidationError.single("legs", MIXED_CURRENCIES)
    directed = _directed_set(n, fixed_leg_index, distribution, directed_leg_indices)

    stakes = _solve_raw(resolutions, fixed_leg_index, distribution, step, directed)
    total = math.fsum(stakes)
    profits = [s * r.quoted_odd - total for s, r in zip(stakes, resolutions)]
    worst = min(profits)
    return StakePlan(
        fixed_leg_index=fixed_leg_index,
        distribution=distribution,
        stakes=tuple(round_money(s, cfg.money_places) for s in stakes),
        total_stake=round_money(total, cfg.money_places),
        profits=tuple(round_money(p, cfg.money_places) for p in profits),
        guaranteed_profit=round_money(worst, cfg.money_places),
        guaranteed_roi=round_percent(worst / total * 100.0 if total > 0 else 0.0, cfg.percent_places),
        directed_leg_indices=tuple(sorted(directed)),
    )


def solve_stakes(
    legs: Sequence[Leg],
    fixed_leg_index: int,
    distribution: Distribution = Distribution.AUTO,
    *,
    directed_leg_indices: Optional[Iterable[int]] = None,
    step: Optional[float] = None,
    config: Optional[EngineConfig] = None,
) -> StakePlan:
    """Solve the other legs' stakes around a fixed reference leg.

    Each leg is priced at its weighted odd, or at its first priced entry
    when it holds no stake yet.

    Args:
        legs: The book, 2..N legs.
        fixed_leg_index: Index of the leg whose stake is held constant.
        distribution: ``AUTO`` equalises profit (equation 1); ``DIRECTED``
            spreads it over the directed legs (equation 2).
        directed_leg_indices: Legs that share the surplus under
            ``DIRECTED``.  Defaults to ``{fixed_leg_index}``; must contain
            the fixed leg and leave at least one leg undirected.
        step: Round solved stakes to a multiple of this value; defaults to
            ``config.stake_rounding_step``.
        config: Precision settings.

    Returns:
        :class:`StakePlan` with money fields rounded.

    Raises:
        ValidationError: Fewer than two legs, index out of range, reference
            leg without stake or odd, an unpriced non-reference leg, a book
            mixing currencies, a bad directed set, or a ``DIRECTED`` book
            whose undirected legs cannot all break even.

    Examples::

        # 2.10 / 2.05, 100 fixed on the first leg:
        solve_stakes([Leg.single("1", 2.10, 100), Leg("2", (StakeEntry(2.05, 0),))], 0)
            → stakes (100.0, 102.44), every outcome ≈ +7.56

        # 1X2 with the profit split between "1" and "X":
        solve_stakes([Leg.single("1", 2.5, 100), Leg.single("X", 3.6, 0),
                      Leg.single("2", 3.8, 0)], 0, Distribution.DIRECTED,
                     directed_leg_indices=[0, 1])
            → stakes (100.0, 69.44, 60.52), profits (20.04, 20.04, 0.0)
    """
    cfg = config or EngineConfig.default()
    step = step if step is not None else cfg.stake_rounding_step
    return _plan(
        _resolve_all(legs), fixed_leg_index, Distribution(distribution), step, cfg,
        directed_leg_indices,
    )


# ---------------------------------------------------------------------------
# Book resolution
# ---------------------------------------------------------------------------


def resolve_arbitrage(
    legs: Sequence[Leg],
    *,
    fixed_leg_index: Optional[int] = None,
    distribution: Distribution = Distribution.AUTO,
    directed_leg_indices: Optional[Iterable[int]] = None,
    step: Optional[float] = None,
    config: Optional[EngineConfig] = None,
) -> ArbitrageResult:
    """Evaluate every outcome of a book and report its guaranteed profit.

    Algorithm
    ---------
    1. Resolve each leg to ``(weighted_odd, leg_stake)``.
    2. ``total_stake = Σ leg_stake`` over all legs.
    3. For each leg: ``profit_i = leg_stake_i · weighted_odd_i − total_stake``.
    4. ``guaranteed_profit = min_i profit_i`` when at least two legs are
       complete, else ``None``.

    Steps 2 to 4 are skipped for a book mixing currencies.  Ties for the
    minimum are broken by input order; the figures do not depend on which
    leg is named.

    Args:
        legs: The book's legs, in any order.
        fixed_leg_index: When given, also solve stakes around this leg and
            attach the :class:`StakePlan`.  The analyses always describe the
            stakes actually entered.
        distribution: Passed to :func:`solve_stakes`.
        directed_leg_indices: Passed to :func:`solve_stakes`.
        step: Passed to :func:`solve_stakes`.
        config: Precision settings.

    Returns:
        :class:`ArbitrageResult`, money rounded to cents, percentages to one
        decimal.

    Raises:
        ValidationError: Only from the stake solver, when
            ``fixed_leg_index`` is given and the book cannot be solved.
            Bad entries are reported on ``issues``, not raised.

    Examples::

        # 1/2.10 + 1/2.05 < 1, stakes proportioned to the odds:
        resolve_arbitrage([Leg.single("1", 2.10, 100), Leg.single("2", 2.05, 102.44)])
            → guaranteed_profit 7.56, guaranteed_roi 3.7, verdict ARBITRAGE

        resolve_arbitrage([Leg.single("1", 2.10, 100)])
            → is_complete False, guaranteed_profit None
    """
    cfg = config or EngineConfig.default()
    money, pct = cfg.money_places, cfg.percent_places
    resolutions = _resolve_all(legs)
    currencies = _currencies(resolutions)
    multi_currency = len(currencies) > 1
    issues = [issue for r in resolutions for issue in r.issues]

    total = math.fsum(r.leg_stake for r in resolutions)
    raw = [
        _evaluate(leg.label, r.leg_stake, r.weighted_odd, total, r.is_complete)
        for leg, r in zip(legs, resolutions)
    ]
    analyses = tuple(_round_analysis(a, cfg) for a in raw)
    complete = sum(1 for r in resolutions if r.is_complete)
    is_complete = complete >= MIN_COMPLETE_LEGS

    overround, priced_count = _overround(resolutions)
    spread = (overround - 1.0) * 100.0 if overround > 0 else 0.0

    guaranteed = guaranteed_roi = best = best_roi = risk = extraction = None
    binding = None
    bonus = math.fsum(r.bonus_stake for r in resolutions)
    verdict = ArbitrageVerdict.INCOMPLETE
    if multi_currency:
        # Each leg's own stake and return stay meaningful; nothing summed is.
        analyses = tuple(replace(a, profit=None, roi=None) for a in analyses)
        issues.append(ValidationIssue("legs", MIXED_CURRENCIES))
        verdict = ArbitrageVerdict.MULTI_CURRENCY
    elif is_complete:
        binding_raw = min(raw, key=lambda a: a.profit)
        best_raw = max(raw, key=lambda a: a.profit)
        guaranteed, guaranteed_roi = binding_raw.profit, binding_raw.roi
        best, best_roi = best_raw.profit, best_raw.roi
        risk = max(0.0, -guaranteed)
        binding = binding_raw.label
        verdict = _verdict([a.profit for a in analyses])
        if bonus > 0:
            extraction = guaranteed / bonus * 100.0

    plan = None
    if fixed_leg_index is not None:
        plan_step = step if step is not None else cfg.stake_rounding_step
        plan = _plan(
            resolutions, fixed_leg_index, Distribution(distribution), plan_step, cfg,
            directed_leg_indices,
        )

    return ArbitrageResult(
        total_stake=None if multi_currency else round_money(total, money),
        leg_analyses=analyses,
        is_complete=is_complete,
        complete_leg_count=complete,
        guaranteed_profit=round_optional_money(guaranteed, money),
        guaranteed_roi=round_optional_percent(guaranteed_roi, pct),
        binding_leg=binding,
        max_profit=round_optional_money(best, money),
        max_roi=round_optional_percent(best_roi, pct),
        max_risk=round_optional_money(risk, money),
        overround=overround,
        spread_pct=round_percent(spread, pct),
        has_theoretical_arbitrage=priced_count >= MIN_COMPLETE_LEGS and overround < 1.0,
        verdict=verdict,
        bonus_stake=None if multi_currency else round_money(bonus, money),
        extraction_rate=round_optional_percent(extraction, pct),
        is_multi_currency=multi_currency,
        currencies=currencies,
        issues=tuple(issues),
        stake_plan=plan,
    )
