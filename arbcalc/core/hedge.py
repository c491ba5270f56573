"""Back/lay hedge solver for bonus extraction — the single source of truth.

All functions here are **pure**: no I/O, no logging, no side effects.
Import from this module; never re-derive a lay stake locally in a service.

Three bet types are hedged on an exchange, each with its own equation
system:

1. **QUALIFYING** — a real-money bet placed to unlock a bonus.  The back
   stake is at risk; the hedge minimises the cost of qualifying.
2. **FREE_BET_SNR** — a free bet whose stake is *not* returned on a win.
   Only the winnings ``S·(o_b − 1)`` are hedged.
3. **FREE_BET_SR** — a free bet whose stake *is* returned on a win.  The
   full return ``S·o_b`` is hedged, but a losing back still costs nothing.

Notation: ``S`` back stake, ``o_b`` back odd, ``o_l`` lay odd, ``c``
commission as a fraction (``commission_pct / 100``), ``L`` lay stake.

Equations
---------
QUALIFYING::

    L            = S · o_b / (o_l − c)                          (1)
    back wins    = S · (o_b − 1) − L · (o_l − 1)
    lay wins     = L · (1 − c) − S

FREE_BET_SNR::

    L            = S · (o_b − 1) / (o_l − c)                    (2)
    back wins    = S · (o_b − 1) − L · (o_l − 1)
    lay wins     = L · (1 − c)

FREE_BET_SR::

    L            = S · o_b / (o_l − c)                          (3)
    back wins    = S · (o_b − 1) − L · (o_l − 1)
    lay wins     = L · (1 − c)

In every mode ``liability = L · (o_l − 1)`` and the settled value is
``min(back wins, lay wins)``: the qualifying loss for (1), the extracted
profit for (2) and (3).  Equations (1) and (2) equalise both outcomes;
(3) leaves the back-wins side exactly ``S`` below the lay-wins side.

Design decisions
----------------
* The modes are three explicit branches rather than one formula with a
  ``stake_returned`` flag.  The numerator (``o_b`` vs ``o_b − 1``) and the
  lay-wins deduction (``− S`` vs nothing) vary independently, and folding
  them into flags is how the two drift apart.
* Inputs pass the validation gate before any arithmetic, so
  ``o_l − c`` is strictly positive and no result can be ``inf`` or ``NaN``.

Run tests with::

    pytest tests/test_hedge.py -v
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from arbcalc.core.engine_config import EngineConfig
from arbcalc.core.rounding import round_money, round_optional_percent
from arbcalc.core.validation import ValidationIssue, raise_for_issues, validate_hedge_inputs


class HedgeMode(str, Enum):
    QUALIFYING = "qualifying"
    FREE_BET_SR = "free_bet_sr"
    FREE_BET_SNR = "free_bet_snr"

    @property
    def is_free_bet(self) -> bool:
        return self is not HedgeMode.QUALIFYING


class HedgeRating(str, Enum):
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


@dataclass(frozen=True)
class HedgeInputs:
    """A back bet and the exchange price available to lay it.

    Attributes:
        back_stake: Back stake (face value of the free bet in FREE_BET modes).
        back_odd: Decimal odd of the back bet, ``> 1``.
        lay_odd: Decimal odd available on the exchange, ``> 1``.
        commission_pct: Exchange commission on net winnings, ``[0, 100)``.
        mode: Which equation system applies.
    """

    back_stake: float
    back_odd: float
    lay_odd: float
    commission_pct: float = 0.0
    mode: HedgeMode = HedgeMode.QUALIFYING

    @property
    def commission(self) -> float:
        """Commission as a fraction."""
        return self.commission_pct / 100.0


@dataclass(frozen=True)
class HedgeResult:
    """Solved hedge.

    Attributes:
        mode: Equation system used.
        lay_stake: Stake to lay on the exchange.
        liability: Amount at risk on the exchange, ``lay_stake · (lay_odd − 1)``.
        profit_if_back_wins: Net result if the back bet wins.
        profit_if_lay_wins: Net result if the lay bet wins.
        settled_value: ``min`` of the two outcomes.  A loss (≤ 0) for
            QUALIFYING; the extracted profit for FREE_BET modes.
        extraction_rate: ``settled_value / back_stake · 100`` for FREE_BET
            modes, ``None`` for QUALIFYING.
        back_stake: The back stake the hedge was solved for.
        loss_pct_of_stake: Qualifying loss as a percentage of the back
            stake; ``None`` for FREE_BET modes or a zero stake.
    """

    mode: HedgeMode
    lay_stake: float
    liability: float
    profit_if_back_wins: float
    profit_if_lay_wins: float
    settled_value: float
    extraction_rate: Optional[float]
    back_stake: float = 0.0
    loss_pct_of_stake: Optional[float] = None

    @property
    def qualifying_loss(self) -> Optional[float]:
        return self.settled_value if self.mode is HedgeMode.QUALIFYING else None

    @property
    def extracted_profit(self) -> Optional[float]:
        return self.settled_value if self.mode.is_free_bet else None


# ---------------------------------------------------------------------------
# Equation systems
# ---------------------------------------------------------------------------


def _qualifying(s: float, ob: float, ol: float, c: float):
    lay = s * ob / (ol - c)
    back_wins = s * (ob - 1.0) - lay * (ol - 1.0)
    lay_wins = lay * (1.0 - c) - s
    return lay, back_wins, lay_wins


def _free_bet_snr(s: float, ob: float, ol: float, c: float):
    lay = s * (ob - 1.0) / (ol - c)
    back_wins = s * (ob - 1.0) - lay * (ol - 1.0)
    lay_wins = lay * (1.0 - c)
    return lay, back_wins, lay_wins


def _free_bet_sr(s: float, ob: float, ol: float, c: float):
    lay = s * ob / (ol - c)
    back_wins = s * (ob - 1.0) - lay * (ol - 1.0)
    lay_wins = lay * (1.0 - c)
    return lay, back_wins, lay_wins


_SOLVERS = {
    HedgeMode.QUALIFYING: _qualifying,
    HedgeMode.FREE_BET_SNR: _free_bet_snr,
    HedgeMode.FREE_BET_SR: _free_bet_sr,
}


def solve_hedge(inputs: HedgeInputs, *, config: Optional[EngineConfig] = None) -> HedgeResult:
    """Solve the lay stake that hedges a back bet and report both outcomes.

    Args:
        inputs: Back stake/odd, lay odd, commission and mode.
        config: Precision settings.

    Returns:
        :class:`HedgeResult` with money rounded to cents and the extraction
        rate to one decimal.  A zero back stake solves to an all-zero hedge
        with a ``0.0`` extraction rate.

    Raises:
        ValidationError: On a negative or non-finite stake, an odd ``≤ 1``,
            or a commission outside ``[0, 100)``.

    Examples::

        # FREE_BET_SNR, 50 @ 4.0 laid @ 4.2 with 5% commission:
        solve_hedge(HedgeInputs(50, 4.0, 4.2, 5.0, HedgeMode.FREE_BET_SNR))
            → lay_stake 36.14, liability 115.66, extracted 34.34, rate 68.7

        # QUALIFYING, 100 @ 3.0 laid @ 3.0 without commission:
        solve_hedge(HedgeInputs(100, 3.0, 3.0, 0.0))
            → lay_stake 100.0, both outcomes 0.0
    """
    issues = validate_hedge_inputs(inputs)
    try:
        mode = HedgeMode(inputs.mode)
    except ValueError:
        issues.append(ValidationIssue("mode", f"unknown hedge mode {inputs.mode!r}"))
    raise_for_issues(issues)
    cfg = config or EngineConfig.default()

    lay, back_wins, lay_wins = _SOLVERS[mode](
        inputs.back_stake, inputs.back_odd, inputs.lay_odd, inputs.commission
    )
    liability = lay * (inputs.lay_odd - 1.0)
    settled = min(back_wins, lay_wins)

    rate = loss_pct = None
    if mode.is_free_bet:
        rate = settled / inputs.back_stake * 100.0 if inputs.back_stake > 0 else 0.0
    elif inputs.back_stake > 0:
        loss_pct = abs(min(settled, 0.0)) / inputs.back_stake * 100.0

    places = cfg.money_places
    return HedgeResult(
        mode=mode,
        lay_stake=round_money(lay, places),
        liability=round_money(liability, places),
        profit_if_back_wins=round_money(back_wins, places),
        profit_if_lay_wins=round_money(lay_wins, places),
        settled_value=round_money(settled, places),
        extraction_rate=round_optional_percent(rate, cfg.percent_places),
        back_stake=inputs.back_stake,
        loss_pct_of_stake=round_optional_percent(loss_pct, cfg.percent_places),
    )


def rate_hedge(result: HedgeResult, *, config: Optional[EngineConfig] = None) -> HedgeRating:
    """Grade a solved hedge for display.

    QUALIFYING is graded on the loss as a share of the back stake
    (≤ 2% GOOD, ≤ 5% FAIR); FREE_BET modes on the extraction rate
    (≥ 80% GOOD, ≥ 70% FAIR).  Thresholds come from :class:`EngineConfig`.
    """
    cfg = config or EngineConfig.default()
    if result.mode is HedgeMode.QUALIFYING:
        loss_pct = result.loss_pct_of_stake or 0.0
        if loss_pct <= cfg.qualifying_good_loss_pct:
            return HedgeRating.GOOD
        if loss_pct <= cfg.qualifying_fair_loss_pct:
            return HedgeRating.FAIR
        return HedgeRating.POOR

    rate = result.extraction_rate or 0.0
    if rate >= cfg.extraction_good_pct:
        return HedgeRating.GOOD
    if rate >= cfg.extraction_fair_pct:
        return HedgeRating.FAIR
    return HedgeRating.POOR
