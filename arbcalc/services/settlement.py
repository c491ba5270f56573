"""
Settlement reconciliation for a placed book.

Once the event is over the caller reports how each leg settled; this
module turns those outcomes into realised P&L and compares it with the
profit the book guaranteed when it was placed.  Outcomes are never
inferred here: the event result is always supplied from outside.

Per-entry return by outcome::

    GREEN       stake · odd
    HALF_GREEN  stake + stake · (odd − 1) / 2     (half won, half refunded)
    RED         0
    HALF_RED    stake / 2                          (half lost, half refunded)
    VOID        stake                              (refunded)

``realized_profit = Σ returns − total_stake``, summed over the same
entries the arbitrage resolver counts (priced and valid).
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

from arbcalc.core.arbitrage import MIXED_CURRENCIES, resolve_arbitrage
from arbcalc.core.engine_config import EngineConfig
from arbcalc.core.legs import Leg, StakeEntry
from arbcalc.core.rounding import round_money, round_optional_money, round_optional_percent
from arbcalc.core.validation import ValidationError, ValidationIssue, validate_entry

logger = logging.getLogger(__name__)


class LegOutcome(str, Enum):
    PENDING = "pending"
    GREEN = "green"
    RED = "red"
    VOID = "void"
    HALF_GREEN = "half_green"
    HALF_RED = "half_red"


@dataclass(frozen=True)
class SettlementResult:
    """Realised result of a book.

    Money fields are ``None`` while any leg is pending; ``deviation`` is
    also ``None`` when the book never guaranteed a profit (incomplete).
    """

    is_resolved: bool
    total_stake: float
    total_return: Optional[float]
    realized_profit: Optional[float]
    realized_roi: Optional[float]
    expected_profit: Optional[float]
    deviation: Optional[float]


def entry_return(entry: StakeEntry, outcome: LegOutcome) -> float:
    """Amount paid back on one entry for a settled outcome."""
    if outcome is LegOutcome.GREEN:
        return entry.stake * entry.odd
    if outcome is LegOutcome.HALF_GREEN:
        return entry.stake + entry.stake * (entry.odd - 1.0) / 2.0
    if outcome is LegOutcome.HALF_RED:
        return entry.stake / 2.0
    if outcome is LegOutcome.VOID:
        return entry.stake
    if outcome is LegOutcome.RED:
        return 0.0
    raise ValueError(f"cannot settle a {outcome.value} leg")


def _counted_entries(leg: Leg):
    # Same acceptance rule as the leg resolver: valid and priced.
    return [e for e in leg.entries if not validate_entry(e) and e.is_priced]


def _parse_outcomes(
    legs: Sequence[Leg],
    outcomes: Sequence[Union[LegOutcome, str]],
) -> Tuple[LegOutcome, ...]:
    issues = []
    if len(outcomes) > len(legs):
        issues.append(ValidationIssue(
            "outcomes", f"got {len(outcomes)} outcomes for {len(legs)} legs"
        ))
    parsed = []
    for i, raw in enumerate(outcomes):
        try:
            parsed.append(LegOutcome(raw))
        except ValueError:
            issues.append(ValidationIssue(f"outcomes[{i}]", f"unknown outcome {raw!r}"))
    if issues:
        raise ValidationError(issues)
    # Legs without a reported outcome are still pending.
    parsed.extend([LegOutcome.PENDING] * (len(legs) - len(parsed)))
    return tuple(parsed)


def settle_legs(
    legs: Sequence[Leg],
    outcomes: Sequence[Union[LegOutcome, str]],
    config: Optional[EngineConfig] = None,
) -> SettlementResult:
    """
    Compute realised P&L for a book given each leg's outcome.

    ``outcomes`` is aligned with ``legs`` by position.  A missing trailing
    outcome counts as PENDING.

    Raises:
        ValidationError: Unknown outcome value, more outcomes than legs,
            or a book whose entries mix currencies.
    """
    cfg = config or EngineConfig.default()
    parsed = _parse_outcomes(legs, outcomes)

    book = resolve_arbitrage(legs, config=cfg)
    if book.is_multi_currency:
        raise ValidationError.single("legs", MIXED_CURRENCIES)
    expected = book.guaranteed_profit

    counted = [_counted_entries(leg) for leg in legs]
    total_stake = math.fsum(e.stake for entries in counted for e in entries)

    if any(o is LegOutcome.PENDING for o in parsed):
        return SettlementResult(
            is_resolved=False,
            total_stake=round_money(total_stake, cfg.money_places),
            total_return=None,
            realized_profit=None,
            realized_roi=None,
            expected_profit=expected,
            deviation=None,
        )

    total_return = math.fsum(
        entry_return(e, outcome) for entries, outcome in zip(counted, parsed) for e in entries
    )
    realized = total_return - total_stake
    roi = realized / total_stake * 100.0 if total_stake > 0 else 0.0
    deviation = realized - expected if expected is not None else None

    logger.info(
        "Book settled: stake=%.2f return=%.2f realized=%.2f expected=%s",
        total_stake, total_return, realized, expected,
    )
    return SettlementResult(
        is_resolved=True,
        total_stake=round_money(total_stake, cfg.money_places),
        total_return=round_money(total_return, cfg.money_places),
        realized_profit=round_money(realized, cfg.money_places),
        realized_roi=round_optional_percent(roi, cfg.percent_places),
        expected_profit=expected,
        deviation=round_optional_money(deviation, cfg.money_places),
    )
