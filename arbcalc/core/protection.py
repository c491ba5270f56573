"""Progressive lay protection for doubles, trebles and accumulators.

All functions here are **pure**: no I/O, no logging, no side effects.

A multiple is one back bet of ``S0`` that only pays if every leg wins.
The capital sitting at the bookmaker is the *liability*.  Before each leg
kicks off, part of that liability is pulled out by laying the leg on an
exchange: if the leg loses (RED) the lay pays and the multiple is dead,
if it wins (GREEN) the lay loses and the liability carried into the next
leg changes.

Notation: ``P_n`` liability entering leg *n*, ``e_n`` extraction share
(``extraction_pct / 100``), ``c`` commission as a fraction, ``ob`` back
odd, ``ol`` lay odd.

Equations
---------
Per leg::

    P_1          = S0
    target_n     = P_n · e_n
    lay_n        = target_n / (1 − c)
    exposure_n   = lay_n · (ol_n − 1)
    back_profit  = S0 · (ob_n − 1)
    green_n      = back_profit − exposure_n
    P_{n+1}      = P_n − target_n − green_n          (liability if GREEN)
    red_n        = lay_n · (1 − c) = target_n        (extracted if RED)
    remaining_n  = P_n − target_n

Book-wide::

    exchange_volume   = Σ lay_n
    max_exposure      = max exposure_n
    final_capital     = red_k for the RED leg k, else S0
    efficiency        = final_capital / S0 · 100

Design decisions
----------------
* ``back_profit`` is always measured on the initial stake ``S0``, leg by
  leg.  The figure is the profit the back side shows the operator at that
  leg, not the accumulated multiple payout.
* Each unsettled leg is projected as if every earlier unsettled leg went
  GREEN, so the whole ladder of lay stakes is visible before the first
  kick-off.  The *active* leg is the first one that is not yet settled.
* Once a leg is RED the operation is closed; later legs are LOCKED with
  zero figures and contribute nothing to the book-wide sums.
* Settled legs must form a prefix: a GREEN or RED leg after an unsettled
  one, or any settled leg after a RED, is rejected.

Run tests with::

    pytest tests/test_protection.py -v
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from arbcalc.core.engine_config import EngineConfig
from arbcalc.core.rounding import round_money, round_optional_money, round_percent
from arbcalc.core.validation import (
    ValidationIssue,
    check_commission,
    check_extraction_pct,
    check_odd,
    check_stake,
    raise_for_issues,
)

#: A multiple needs at least two legs.
MIN_PROTECTION_LEGS = 2


class ProtectionLegStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    GREEN = "green"
    RED = "red"
    LOCKED = "locked"

    @property
    def is_settled(self) -> bool:
        return self in (ProtectionLegStatus.GREEN, ProtectionLegStatus.RED)


@dataclass(frozen=True)
class ProtectionLeg:
    """One leg of the multiple as entered by the operator.

    Attributes:
        back_odd: Odd of this leg inside the multiple, ``> 1``.
        lay_odd: Exchange odd available to lay the leg, ``> 1``.
        extraction_pct: Share of the current liability to pull out,
            ``[0, 100]``.
        status: ``GREEN`` or ``RED`` once the leg has settled; anything else
            counts as unsettled.
    """

    back_odd: float
    lay_odd: float
    extraction_pct: float = 100.0
    status: ProtectionLegStatus = ProtectionLegStatus.PENDING


@dataclass(frozen=True)
class ProtectionLegResult:
    """Projected figures for one leg."""

    back_odd: float
    lay_odd: float
    extraction_pct: float
    status: ProtectionLegStatus
    liability: float
    target: float
    lay_stake: float
    exchange_liability: float
    back_profit: float
    result_if_green: float
    liability_if_green: float
    extracted_if_red: float
    remaining_if_red: float


@dataclass(frozen=True)
class ProtectionResult:
    """Solved protection ladder.

    Attributes:
        initial_stake: ``S0``.
        commission_pct: Exchange commission used.
        legs: One :class:`ProtectionLegResult` per leg, in input order.
        active_leg_index: First unsettled leg; ``None`` once closed or when
            every leg is GREEN.
        exchange_volume: Sum of every lay stake.
        max_exposure: Largest exchange liability of any leg.
        max_lay_stake: Largest lay stake of any leg.
        current_liability: Liability entering the active leg.
        current_target: Target of the active leg.
        extracted_if_red_now: What a RED on the active leg returns.
        final_liability_if_all_green: Liability left after the last leg if
            every leg wins; ``None`` once a RED closed the operation.
        is_closed: A leg went RED.
        final_capital: Capital recovered by the RED leg, else ``S0``.
        efficiency: ``final_capital / S0 · 100``.
    """

    initial_stake: float
    commission_pct: float
    legs: Tuple[ProtectionLegResult, ...]
    active_leg_index: Optional[int]
    exchange_volume: float
    max_exposure: float
    max_lay_stake: float
    current_liability: Optional[float]
    current_target: Optional[float]
    extracted_if_red_now: Optional[float]
    final_liability_if_all_green: Optional[float]
    is_closed: bool
    final_capital: float
    efficiency: float

    @property
    def active_leg(self) -> Optional[ProtectionLegResult]:
        if self.active_leg_index is None:
            return None
        return self.legs[self.active_leg_index]


def _validate(initial_stake: float, legs: Sequence[ProtectionLeg], commission_pct: float) -> None:
    issues: List[ValidationIssue] = [
        *check_stake(initial_stake, "initial_stake"),
        *check_commission(commission_pct, "commission_pct"),
    ]
    if not issues and initial_stake <= 0:
        issues.append(ValidationIssue("initial_stake", "initial stake must be greater than 0"))
    if len(legs) < MIN_PROTECTION_LEGS:
        issues.append(ValidationIssue(
            "legs", f"at least {MIN_PROTECTION_LEGS} legs are required, got {len(legs)}"
        ))

    open_leg = red_leg = None
    for i, leg in enumerate(legs):
        prefix = f"legs[{i}]."
        issues.extend(check_odd(leg.back_odd, f"{prefix}back_odd", allow_unset=False))
        issues.extend(check_odd(leg.lay_odd, f"{prefix}lay_odd", allow_unset=False))
        issues.extend(check_extraction_pct(leg.extraction_pct, f"{prefix}extraction_pct"))
        try:
            status = ProtectionLegStatus(leg.status)
        except ValueError:
            issues.append(ValidationIssue(f"{prefix}status", f"unknown status {leg.status!r}"))
            continue
        if not status.is_settled:
            if open_leg is None:
                open_leg = i
        elif red_leg is not None:
            issues.append(ValidationIssue(
                f"{prefix}status", f"leg {red_leg} is already red; later legs cannot settle"
            ))
        elif open_leg is not None:
            issues.append(ValidationIssue(
                f"{prefix}status", f"leg {open_leg} has not settled yet"
            ))
        if status is ProtectionLegStatus.RED and red_leg is None:
            red_leg = i
    raise_for_issues(issues)


def _locked(leg: ProtectionLeg) -> ProtectionLegResult:
    return ProtectionLegResult(
        back_odd=leg.back_odd,
        lay_odd=leg.lay_odd,
        extraction_pct=leg.extraction_pct,
        status=ProtectionLegStatus.LOCKED,
        liability=0.0,
        target=0.0,
        lay_stake=0.0,
        exchange_liability=0.0,
        back_profit=0.0,
        result_if_green=0.0,
        liability_if_green=0.0,
        extracted_if_red=0.0,
        remaining_if_red=0.0,
    )


def _round_leg(leg: ProtectionLegResult, places: int) -> ProtectionLegResult:
    return ProtectionLegResult(
        back_odd=leg.back_odd,
        lay_odd=leg.lay_odd,
        extraction_pct=leg.extraction_pct,
        status=leg.status,
        liability=round_money(leg.liability, places),
        target=round_money(leg.target, places),
        lay_stake=round_money(leg.lay_stake, places),
        exchange_liability=round_money(leg.exchange_liability, places),
        back_profit=round_money(leg.back_profit, places),
        result_if_green=round_money(leg.result_if_green, places),
        liability_if_green=round_money(leg.liability_if_green, places),
        extracted_if_red=round_money(leg.extracted_if_red, places),
        remaining_if_red=round_money(leg.remaining_if_red, places),
    )


def solve_protection(
    initial_stake: float,
    legs: Sequence[ProtectionLeg],
    commission_pct: float,
    *,
    config: Optional[EngineConfig] = None,
) -> ProtectionResult:
    """Project the lay stake ladder that protects a multiple leg by leg.

    Args:
        initial_stake: The multiple's back stake ``S0``, ``> 0``.
        legs: The multiple's legs in kick-off order, at least two.
        commission_pct: Exchange commission, ``[0, 100)``.
        config: Precision settings.

    Returns:
        :class:`ProtectionResult` with money rounded to cents and the
        efficiency to one decimal.

    Raises:
        ValidationError: Non-positive stake, fewer than two legs, an odd
            ``≤ 1``, an extraction share outside ``[0, 100]``, a bad
            commission, or settled legs that do not form a prefix.

    Examples::

        # Double, 100 staked, 5% commission, full extraction on both legs:
        solve_protection(100, [ProtectionLeg(2.0, 2.1), ProtectionLeg(2.0, 2.2)], 5.0)
            → lay stakes (105.26, 16.62), leg 1 active,
              final liability if all green −80.06
    """
    _validate(initial_stake, legs, commission_pct)
    cfg = config or EngineConfig.default()
    c = commission_pct / 100.0

    raw: List[ProtectionLegResult] = []
    liability = initial_stake
    active = red = None
    for i, leg in enumerate(legs):
        if red is not None:
            raw.append(_locked(leg))
            continue

        target = liability * leg.extraction_pct / 100.0
        lay_stake = target / (1.0 - c)
        exposure = lay_stake * (leg.lay_odd - 1.0)
        back_profit = initial_stake * (leg.back_odd - 1.0)
        green = back_profit - exposure
        liability_if_green = liability - target - green

        status = ProtectionLegStatus(leg.status)
        if status is ProtectionLegStatus.RED:
            red = i
        elif not status.is_settled:
            if active is None:
                active = i
                status = ProtectionLegStatus.ACTIVE
            else:
                status = ProtectionLegStatus.PENDING

        raw.append(ProtectionLegResult(
            back_odd=leg.back_odd,
            lay_odd=leg.lay_odd,
            extraction_pct=leg.extraction_pct,
            status=status,
            liability=liability,
            target=target,
            lay_stake=lay_stake,
            exchange_liability=exposure,
            back_profit=back_profit,
            result_if_green=green,
            liability_if_green=liability_if_green,
            extracted_if_red=lay_stake * (1.0 - c),
            remaining_if_red=liability - target,
        ))
        liability = liability_if_green

    final_capital = raw[red].extracted_if_red if red is not None else initial_stake
    current_liability = current_target = extracted_now = None
    if active is not None:
        current_liability = raw[active].liability
        current_target = raw[active].target
        extracted_now = raw[active].extracted_if_red
    places = cfg.money_places

    return ProtectionResult(
        initial_stake=round_money(initial_stake, places),
        commission_pct=commission_pct,
        legs=tuple(_round_leg(leg, places) for leg in raw),
        active_leg_index=active,
        exchange_volume=round_money(math.fsum(leg.lay_stake for leg in raw), places),
        max_exposure=round_money(max(leg.exchange_liability for leg in raw), places),
        max_lay_stake=round_money(max(leg.lay_stake for leg in raw), places),
        current_liability=round_optional_money(current_liability, places),
        current_target=round_optional_money(current_target, places),
        extracted_if_red_now=round_optional_money(extracted_now, places),
        final_liability_if_all_green=(
            None if red is not None else round_money(raw[-1].liability_if_green, places)
        ),
        is_closed=red is not None,
        final_capital=round_money(final_capital, places),
        efficiency=round_percent(final_capital / initial_stake * 100.0, cfg.percent_places),
    )
