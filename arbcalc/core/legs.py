"""Stake entries, legs and per-leg profit — the building blocks of a book.

All functions here are **pure**: no I/O, no logging, no side effects.
Inputs are frozen value objects; every call returns a new result object.

Two operations live here:

1. :func:`resolve_leg` — collapses the stake entries of one leg into a
   stake-weighted odd and the leg's total stake.
2. :func:`evaluate_leg_profit` — return, profit and ROI of one outcome,
   measured against the capital committed to the **whole** book.

Design decisions
----------------
* A leg is often split across several bookmakers because no single account
  has enough balance.  The effective price of the leg is the
  **stake-weighted** mean of the entry odds, ``Σ(stake·odd) / Σ stake``,
  because that is what the leg actually pays back.  A simple mean would
  overstate the leg whenever the larger stake sits at the worse price.
* Profit for an outcome is ``leg_return − total_stake`` where
  ``total_stake`` spans **every** leg.  When outcome *i* happens, the stakes
  on every other leg are lost; measuring against the leg's own stake would
  report every leg of a losing book as profitable.
* Entries that fail the validation gate are dropped from the sums and
  reported back on :attr:`LegResolution.issues` instead of raising, so a
  half-typed form still gets a partial answer.  An odd of ``0`` means "not
  entered yet" and is skipped without an issue.
* Currency codes are collected, never converted.  Deciding what a total
  across currencies means is left to the book-level resolver.

Run tests with::

    pytest tests/test_legs.py -v
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

from arbcalc.core.engine_config import EngineConfig
from arbcalc.core.rounding import round_money, round_percent
from arbcalc.core.validation import (
    ValidationIssue,
    check_odd,
    check_stake,
    raise_for_issues,
    validate_entry,
)

# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StakeEntry:
    """One wager placed (or planned) on a leg.

    Attributes:
        odd: Decimal odd.  ``0`` = not entered yet; otherwise must be ``> 1``.
        stake: Amount wagered, ``≥ 0``, in the entry's own currency.
        bookmaker_ref: Opaque venue identifier.  Carried through, never
            dereferenced.
        currency: Opaque currency code.  Carried through, never converted.
        is_bonus_stake: True when the entry is a promotional (free) bet.
    """

    odd: float
    stake: float
    bookmaker_ref: Optional[str] = None
    currency: Optional[str] = None
    is_bonus_stake: bool = False

    @property
    def is_priced(self) -> bool:
        return self.odd > 1

    @property
    def is_complete(self) -> bool:
        """True when the entry carries both a usable odd and a positive stake."""
        return self.odd > 1 and self.stake > 0


@dataclass(frozen=True)
class Leg:
    """One mutually exclusive outcome of the hedged event (e.g. ``"1"``, ``"X"``)."""

    label: str
    entries: Tuple[StakeEntry, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Accept any sequence but store a tuple so the leg stays hashable.
        if not isinstance(self.entries, tuple):
            object.__setattr__(self, "entries", tuple(self.entries))

    @classmethod
    def single(cls, label: str, odd: float, stake: float, **entry_kwargs) -> Leg:
        """Shortcut for the common one-bookmaker leg."""
        return cls(label, (StakeEntry(odd=odd, stake=stake, **entry_kwargs),))


@dataclass(frozen=True)
class LegResolution:
    """Output of :func:`resolve_leg`.

    Attributes:
        weighted_odd: Stake-weighted odd; ``0`` when the leg holds no stake.
        leg_stake: Sum of the stakes of every accepted entry.
        quoted_odd: Odd to solve stakes against: the weighted odd when the
            leg holds stake, otherwise the first priced entry's odd (``0``
            if none).  Lets a reference-leg solver size legs the user has
            priced but not staked yet.
        is_complete: True when at least one entry has ``odd > 1`` and
            ``stake > 0``.
        issues: Entries excluded by the validation gate.
        bonus_stake: Part of ``leg_stake`` placed as promotional bets.
        currencies: Distinct currency codes of the accepted entries, in
            first-seen order.  Entries without a code are not counted.
    """

    weighted_odd: float
    leg_stake: float
    quoted_odd: float
    is_complete: bool
    issues: Tuple[ValidationIssue, ...] = ()
    bonus_stake: float = 0.0
    currencies: Tuple[str, ...] = ()


@dataclass(frozen=True)
class LegAnalysis:
    """Return, profit and ROI of the book if this leg's outcome happens."""

    label: str
    weighted_odd: float
    leg_stake: float
    leg_return: float
    profit: Optional[float]
    roi: Optional[float]
    is_complete: bool = True


# ---------------------------------------------------------------------------
# Weighted odd
# ---------------------------------------------------------------------------


def _resolve(entries: Sequence[StakeEntry], prefix: str = "") -> LegResolution:
    """Unrounded leg resolution shared by every public calculator."""
    issues = []
    stakes = []
    weighted = []
    bonus = []
    currencies = []
    first_priced = 0.0
    complete = False

    for idx, entry in enumerate(entries):
        entry_issues = validate_entry(entry, f"{prefix}entries[{idx}].")
        if entry_issues:
            issues.extend(entry_issues)
            continue
        if entry.currency is not None and entry.currency not in currencies:
            currencies.append(entry.currency)
        if not entry.is_priced:
            # Unset odd: nothing to weight yet.
            continue
        if not first_priced:
            first_priced = entry.odd
        stakes.append(entry.stake)
        weighted.append(entry.stake * entry.odd)
        if entry.is_bonus_stake:
            bonus.append(entry.stake)
        complete = complete or entry.is_complete

    # fsum is exactly rounded, so the result does not depend on entry order.
    stake_sum = math.fsum(stakes)
    weighted_odd = math.fsum(weighted) / stake_sum if stake_sum > 0 else 0.0
    return LegResolution(
        weighted_odd=weighted_odd,
        leg_stake=stake_sum,
        quoted_odd=weighted_odd if stake_sum > 0 else first_priced,
        is_complete=complete,
        issues=tuple(issues),
        bonus_stake=math.fsum(bonus),
        currencies=tuple(currencies),
    )


def resolve_leg(
    entries: Sequence[StakeEntry],
    *,
    config: Optional[EngineConfig] = None,
) -> LegResolution:
    """Collapse a leg's stake entries into a weighted odd and a leg stake.

    Algorithm::

        leg_stake    = Σ stake_i
        weighted_odd = Σ (stake_i · odd_i) / leg_stake     (0 if leg_stake ≤ 0)

    over the entries that pass the validation gate and carry an odd.

    Args:
        entries: The leg's stake entries, in any order.
        config: Precision settings; defaults to :meth:`EngineConfig.default`.

    Returns:
        :class:`LegResolution` with ``leg_stake`` rounded to money
        precision.  ``weighted_odd`` is a price, not money, and is returned
        unrounded.

    Examples::

        resolve_leg([StakeEntry(2.0, 100), StakeEntry(2.2, 100)])
            → weighted_odd 2.1, leg_stake 200.0
        resolve_leg([StakeEntry(2.0, 300), StakeEntry(2.4, 100)])
            → weighted_odd 2.1, leg_stake 400.0
    """
    cfg = config or EngineConfig.default()
    raw = _resolve(entries)
    return LegResolution(
        weighted_odd=raw.weighted_odd,
        leg_stake=round_money(raw.leg_stake, cfg.money_places),
        quoted_odd=raw.quoted_odd,
        is_complete=raw.is_complete,
        issues=raw.issues,
        bonus_stake=round_money(raw.bonus_stake, cfg.money_places),
        currencies=raw.currencies,
    )


# ---------------------------------------------------------------------------
# Leg profit
# ---------------------------------------------------------------------------


def _evaluate(
    label: str,
    leg_stake: float,
    weighted_odd: float,
    total_stake: float,
    is_complete: bool = True,
) -> LegAnalysis:
    """Unrounded leg profit shared by the arbitrage resolver."""
    leg_return = leg_stake * weighted_odd
    profit = leg_return - total_stake
    roi = profit / total_stake * 100.0 if total_stake > 0 else 0.0
    return LegAnalysis(
        label=label,
        weighted_odd=weighted_odd,
        leg_stake=leg_stake,
        leg_return=leg_return,
        profit=profit,
        roi=roi,
        is_complete=is_complete,
    )


def _round_analysis(analysis: LegAnalysis, cfg: EngineConfig) -> LegAnalysis:
    return LegAnalysis(
        label=analysis.label,
        weighted_odd=analysis.weighted_odd,
        leg_stake=round_money(analysis.leg_stake, cfg.money_places),
        leg_return=round_money(analysis.leg_return, cfg.money_places),
        profit=round_money(analysis.profit, cfg.money_places),
        roi=round_percent(analysis.roi, cfg.percent_places),
        is_complete=analysis.is_complete,
    )


def evaluate_leg_profit(
    leg_stake: float,
    weighted_odd: float,
    total_stake: float,
    *,
    label: str = "",
    config: Optional[EngineConfig] = None,
) -> LegAnalysis:
    """Return, profit and ROI of one outcome against the whole book's stake.

    Formulae::

        leg_return = leg_stake · weighted_odd
        profit     = leg_return − total_stake
        roi        = profit / total_stake · 100        (0 when total_stake = 0)

    Args:
        leg_stake: Total stake on this leg (from :func:`resolve_leg`).
        weighted_odd: The leg's weighted odd; ``0`` for an unpriced leg.
        total_stake: Stake summed over **all** legs of the book.
        label: Outcome label copied onto the result.
        config: Precision settings.

    Returns:
        :class:`LegAnalysis`, money fields rounded to cents and ROI to
        one decimal.

    Raises:
        ValidationError: On a negative or non-finite stake, or an odd that
            is neither ``0`` nor ``> 1``.

    Examples::

        evaluate_leg_profit(52.0, 2.0, 100.0)  → return 104.0, profit 4.0, roi 4.0
        evaluate_leg_profit(0.0, 0.0, 0.0)     → profit 0.0, roi 0.0
    """
    raise_for_issues([
        *check_stake(leg_stake, "leg_stake"),
        *check_odd(weighted_odd, "weighted_odd"),
        *check_stake(total_stake, "total_stake"),
    ])
    cfg = config or EngineConfig.default()
    return _round_analysis(_evaluate(label, leg_stake, weighted_odd, total_stake), cfg)
