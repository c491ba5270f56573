"""
Pydantic request/response schemas for the arbcalc API.

Request models constrain shape only (non-empty lists, bounded strings).
Numeric sanity (odd > 1, stake >= 0, commission in [0, 100)) is left to
the core validation gate so every rejection carries the same
``{field, reason}`` structure.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from arbcalc.core.arbitrage import ArbitrageVerdict, Distribution
from arbcalc.core.hedge import HedgeMode, HedgeRating
from arbcalc.core.legs import Leg, StakeEntry
from arbcalc.core.market import MarketTier
from arbcalc.core.protection import ProtectionLeg, ProtectionLegStatus
from arbcalc.services.settlement import LegOutcome


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------

class IssueOut(BaseModel):
    """One field rejected by the validation gate."""
    field: str
    reason: str


class StakeEntryIn(BaseModel):
    """A single wager on a leg."""

    odd: float = Field(..., description="Decimal odd; 0 = not entered yet")
    stake: float = Field(..., description="Amount wagered")
    bookmaker_ref: Optional[str] = Field(None, max_length=120)
    currency: Optional[str] = Field(None, max_length=12)
    is_bonus_stake: bool = Field(False, description="True = promotional free bet")

    def to_entry(self) -> StakeEntry:
        return StakeEntry(
            odd=self.odd,
            stake=self.stake,
            bookmaker_ref=self.bookmaker_ref,
            currency=self.currency,
            is_bonus_stake=self.is_bonus_stake,
        )


class LegIn(BaseModel):
    """One mutually exclusive outcome and the wagers placed on it."""

    label: str = Field(..., min_length=1, max_length=60, description='e.g. "1", "X", "Over 2.5"')
    entries: List[StakeEntryIn] = Field(default_factory=list)

    def to_leg(self) -> Leg:
        return Leg(self.label, tuple(e.to_entry() for e in self.entries))


# ---------------------------------------------------------------------------
# Leg resolution
# ---------------------------------------------------------------------------

class LegResolveRequest(BaseModel):
    """Payload for POST /api/legs/resolve."""
    entries: List[StakeEntryIn] = Field(..., min_length=1)


class LegResolveResponse(BaseModel):
    weighted_odd: float
    leg_stake: float
    quoted_odd: float
    is_complete: bool
    issues: List[IssueOut]
    bonus_stake: float = 0.0
    currencies: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Arbitrage
# ---------------------------------------------------------------------------

class ArbitrageRequest(BaseModel):
    """
    Payload for POST /api/arbitrage/resolve.

    When ``fixed_leg_index`` is given the response also carries a
    ``stake_plan`` solved around that leg.
    """

    legs: List[LegIn] = Field(..., min_length=1, max_length=20)
    fixed_leg_index: Optional[int] = Field(None, description="Reference leg for stake solving")
    distribution: Distribution = Field(Distribution.AUTO)
    stake_step: Optional[float] = Field(None, gt=0, description="Round solved stakes to this step")
    directed_leg_indices: Optional[List[int]] = Field(
        None, description="Legs sharing the surplus under the directed distribution"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "legs": [
                    {"label": "1", "entries": [{"odd": 2.10, "stake": 100}]},
                    {"label": "2", "entries": [{"odd": 2.05, "stake": 102.44}]},
                ]
            }
        }
    }


class LegAnalysisOut(BaseModel):
    label: str
    weighted_odd: float
    leg_stake: float
    leg_return: float
    profit: Optional[float]
    roi: Optional[float]
    is_complete: bool


class StakePlanOut(BaseModel):
    fixed_leg_index: int
    distribution: Distribution
    stakes: List[float]
    total_stake: float
    profits: List[float]
    guaranteed_profit: float
    guaranteed_roi: float
    directed_leg_indices: List[int] = Field(default_factory=list)


class ArbitrageResponse(BaseModel):
    """Resolved book.  Guaranteed figures are null for an incomplete or multi-currency book."""
    total_stake: Optional[float]
    leg_analyses: List[LegAnalysisOut]
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
    bonus_stake: Optional[float]
    extraction_rate: Optional[float]
    is_multi_currency: bool
    currencies: List[str]
    issues: List[IssueOut]
    stake_plan: Optional[StakePlanOut] = None


# ---------------------------------------------------------------------------
# Hedge
# ---------------------------------------------------------------------------

class HedgeRequest(BaseModel):
    """
    Payload for POST /api/hedge/solve.

    ``commission_pct`` falls back to the configured exchange default.
    """

    back_stake: float
    back_odd: float
    lay_odd: float
    commission_pct: Optional[float] = Field(None, description="Exchange commission, percent")
    mode: HedgeMode = Field(HedgeMode.QUALIFYING)

    model_config = {
        "json_schema_extra": {
            "example": {
                "back_stake": 50,
                "back_odd": 4.0,
                "lay_odd": 4.2,
                "commission_pct": 5.0,
                "mode": "free_bet_snr",
            }
        }
    }


class HedgeResponse(BaseModel):
    mode: HedgeMode
    lay_stake: float
    liability: float
    profit_if_back_wins: float
    profit_if_lay_wins: float
    settled_value: float
    extraction_rate: Optional[float]
    loss_pct_of_stake: Optional[float]
    rating: HedgeRating


# ---------------------------------------------------------------------------
# Market analysis
# ---------------------------------------------------------------------------

class MarketRequest(BaseModel):
    """Payload for POST /api/market/analyze."""
    odds: List[float] = Field(..., min_length=2, max_length=3)
    total_stake: float


class OutcomeQuoteOut(BaseModel):
    odd: float
    implied_pct: float
    fair_pct: float
    stake: float
    returns: float
    profit: float


class MarketResponse(BaseModel):
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
    outcomes: List[OutcomeQuoteOut]


# ---------------------------------------------------------------------------
# Lay protection
# ---------------------------------------------------------------------------

class ProtectionLegIn(BaseModel):
    """One leg of a multiple."""

    back_odd: float
    lay_odd: float
    extraction_pct: float = Field(100.0, description="Share of the current liability to extract")
    status: ProtectionLegStatus = Field(ProtectionLegStatus.PENDING)

    def to_leg(self) -> ProtectionLeg:
        return ProtectionLeg(
            back_odd=self.back_odd,
            lay_odd=self.lay_odd,
            extraction_pct=self.extraction_pct,
            status=self.status,
        )


class ProtectionRequest(BaseModel):
    """
    Payload for POST /api/protection/solve.

    ``commission_pct`` falls back to the configured exchange default.
    """

    initial_stake: float
    legs: List[ProtectionLegIn] = Field(..., min_length=1, max_length=20)
    commission_pct: Optional[float] = Field(None, description="Exchange commission, percent")

    model_config = {
        "json_schema_extra": {
            "example": {
                "initial_stake": 100,
                "commission_pct": 5.0,
                "legs": [
                    {"back_odd": 2.0, "lay_odd": 2.1},
                    {"back_odd": 2.0, "lay_odd": 2.2},
                ],
            }
        }
    }


class ProtectionLegOut(BaseModel):
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


class ProtectionResponse(BaseModel):
    initial_stake: float
    commission_pct: float
    legs: List[ProtectionLegOut]
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


# ---------------------------------------------------------------------------
# Settlement
# ---------------------------------------------------------------------------

class SettleRequest(BaseModel):
    """
    Payload for POST /api/arbitrage/settle.

    ``outcomes`` is aligned with ``legs``; missing trailing outcomes are
    treated as pending.
    """

    legs: List[LegIn] = Field(..., min_length=1, max_length=20)
    outcomes: List[str] = Field(default_factory=list, description=f"One of {[o.value for o in LegOutcome]}")


class SettlementResponse(BaseModel):
    is_resolved: bool
    total_stake: float
    total_return: Optional[float]
    realized_profit: Optional[float]
    realized_roi: Optional[float]
    expected_profit: Optional[float]
    deviation: Optional[float]
