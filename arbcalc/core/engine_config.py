"""Engine-level configuration — every tunable constant in one place.

This module is the **registry** for the precision, default commission and
rating thresholds used by the calculators.  Nowhere else in the codebase
should a decimal-places count or a "good extraction" threshold be
hard-coded.

Architecture
------------
:class:`EngineConfig` is a frozen dataclass.  The named constructor
:meth:`EngineConfig.default` returns the production values; the service
layer layers environment overrides on top of it (see
:func:`arbcalc.services.calculator.load_engine_config`).  The core never
reads the environment itself.

Typical usage::

    from arbcalc.core.engine_config import EngineConfig

    cfg = EngineConfig.default()

    # Round suggested stakes to the nearest 5 currency units:
    from dataclasses import replace
    custom_cfg = replace(cfg, stake_rounding_step=5.0)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Final, Optional

#: Decimal places applied to every monetary output.
MONEY_PLACES: Final[int] = 2

#: Decimal places applied to every percentage output (ROI, rates, margins).
PERCENT_PLACES: Final[int] = 1

#: Exchange commission assumed when the caller does not supply one.
#: 5% is the standard Betfair/Betfair-like market base rate.
DEFAULT_COMMISSION_PCT: Final[float] = 5.0

#: Largest stake the validation gate accepts.  Keeps every product of a
#: stake and an odd far inside float range.
MAX_STAKE: Final[float] = 1e12

#: Largest decimal odd the validation gate accepts.
MAX_ODD: Final[float] = 1e6

#: Most decimal places an output may be configured to carry.
MAX_PLACES: Final[int] = 10


@dataclass(frozen=True)
class EngineConfig:
    """Immutable configuration bundle for the calculation engine.

    Attributes:
        money_places: Decimal places for stakes, returns, profits and
            liabilities.
        percent_places: Decimal places for ROI, extraction rate and market
            margin percentages.
        default_commission_pct: Exchange commission (0–100) used when a hedge
            request omits it.
        stake_rounding_step: When set, stakes solved from a fixed reference
            leg are rounded to a multiple of this step (e.g. ``1.0`` → whole
            units).  ``None`` leaves them at money precision.

        --- Qualifying-bet rating (loss as % of back stake) ---
        qualifying_good_loss_pct: Loss at or below this is GOOD.
        qualifying_fair_loss_pct: Loss at or below this is FAIR; above is POOR.

        --- Free-bet rating (extraction rate %) ---
        extraction_good_pct: Extraction at or above this is GOOD.
        extraction_fair_pct: Extraction at or above this is FAIR; below is POOR.

        --- Market margin tiers (overround − 1, in %) ---
        low_margin_pct: Upper bound of the LOW_MARGIN tier.
        high_margin_pct: Margins above this are HIGH_MARGIN.
    """

    money_places: int = MONEY_PLACES
    percent_places: int = PERCENT_PLACES
    default_commission_pct: float = DEFAULT_COMMISSION_PCT
    stake_rounding_step: Optional[float] = None

    qualifying_good_loss_pct: float = 2.0
    qualifying_fair_loss_pct: float = 5.0

    extraction_good_pct: float = 80.0
    extraction_fair_pct: float = 70.0

    low_margin_pct: float = 5.0
    high_margin_pct: float = 10.0

    @classmethod
    def default(cls) -> EngineConfig:
        """Return the production configuration."""
        return cls()

    def with_stake_step(self, step: Optional[float]) -> EngineConfig:
        """Return a copy with ``stake_rounding_step`` replaced.

        Examples::

            cfg = EngineConfig.default().with_stake_step(1.0)
            assert cfg.stake_rounding_step == 1.0
        """
        return replace(self, stake_rounding_step=step)
