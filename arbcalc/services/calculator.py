"""
Request-level orchestration of the calculators.

The core modules are pure and never read the environment or log.  This
module is the seam where both happen:

    1. Engine configuration — :func:`load_engine_config` layers
       ``ARBCALC_*`` environment overrides on top of
       :meth:`EngineConfig.default`.  A malformed value is logged and
       ignored rather than taking the service down.
    2. Call logging — every rejected request is logged at INFO with the
       offending fields, then re-raised unchanged for the HTTP layer.
    3. Hedge rating — :meth:`CalculatorService.solve_hedge` returns the
       solved hedge together with its display rating.
"""

import logging
import math
import os
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from arbcalc.core.arbitrage import ArbitrageResult, Distribution, StakePlan, resolve_arbitrage, solve_stakes
from arbcalc.core.engine_config import MAX_PLACES, EngineConfig
from arbcalc.core.hedge import HedgeInputs, HedgeMode, HedgeRating, HedgeResult, rate_hedge, solve_hedge
from arbcalc.core.legs import Leg, LegResolution, StakeEntry, resolve_leg
from arbcalc.core.market import MarketAnalysis, analyze_market
from arbcalc.core.protection import ProtectionLeg, ProtectionResult, solve_protection
from arbcalc.core.validation import ValidationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Environment configuration
# ---------------------------------------------------------------------------

def _env_int(name: str, default: int, minimum: int = 0, maximum: int = MAX_PLACES) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer, using %d", name, raw, default)
        return default
    if value < minimum:
        logger.warning("Ignoring %s=%d: must be >= %d, using %d", name, value, minimum, default)
        return default
    if value > maximum:
        logger.warning("Ignoring %s=%d: must be <= %d, using %d", name, value, maximum, default)
        return default
    return value


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number, using %s", name, raw, default)
        return default
    if not math.isfinite(value):
        logger.warning("Ignoring %s=%r: not finite, using %s", name, raw, default)
        return default
    return value


def load_engine_config(base: Optional[EngineConfig] = None) -> EngineConfig:
    """Build an :class:`EngineConfig` from ``base`` plus environment overrides.

    Recognised variables: ``ARBCALC_MONEY_PLACES``,
    ``ARBCALC_PERCENT_PLACES``, ``ARBCALC_DEFAULT_COMMISSION_PCT`` and
    ``ARBCALC_STAKE_ROUNDING_STEP``.
    """
    cfg = base or EngineConfig.default()

    commission = _env_float("ARBCALC_DEFAULT_COMMISSION_PCT", cfg.default_commission_pct)
    if commission is None or not 0 <= commission < 100:
        logger.warning(
            "Ignoring ARBCALC_DEFAULT_COMMISSION_PCT=%s: must be in [0, 100), using %s",
            commission, cfg.default_commission_pct,
        )
        commission = cfg.default_commission_pct

    step = _env_float("ARBCALC_STAKE_ROUNDING_STEP", cfg.stake_rounding_step)
    if step is not None and step <= 0:
        logger.warning("Ignoring ARBCALC_STAKE_ROUNDING_STEP=%s: must be > 0", step)
        step = cfg.stake_rounding_step

    return replace(
        cfg,
        money_places=_env_int("ARBCALC_MONEY_PLACES", cfg.money_places),
        percent_places=_env_int("ARBCALC_PERCENT_PLACES", cfg.percent_places),
        default_commission_pct=commission,
        stake_rounding_step=step,
    )


def _log_rejection(operation: str, exc: ValidationError) -> None:
    logger.info(
        "%s rejected: %s",
        operation,
        ", ".join(issue.field for issue in exc.issues) or "invalid input",
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class CalculatorService:
    """
    Stateless facade over the core calculators.

    Holds only an immutable :class:`EngineConfig`; every call is
    independent and safe to run concurrently.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or load_engine_config()

    def resolve_leg(self, entries: Sequence[StakeEntry]) -> LegResolution:
        resolution = resolve_leg(entries, config=self.config)
        if resolution.issues:
            logger.info(
                "Leg resolved with %d excluded entr%s",
                len(resolution.issues),
                "y" if len(resolution.issues) == 1 else "ies",
            )
        return resolution

    def resolve_arbitrage(
        self,
        legs: Sequence[Leg],
        fixed_leg_index: Optional[int] = None,
        distribution: Distribution = Distribution.AUTO,
        stake_step: Optional[float] = None,
        directed_leg_indices: Optional[Sequence[int]] = None,
    ) -> ArbitrageResult:
        try:
            result = resolve_arbitrage(
                legs,
                fixed_leg_index=fixed_leg_index,
                distribution=distribution,
                directed_leg_indices=directed_leg_indices,
                step=stake_step,
                config=self.config,
            )
        except ValidationError as exc:
            _log_rejection("Arbitrage", exc)
            raise

        if result.is_multi_currency:
            logger.info("Arbitrage spans currencies %s; totals withheld", ", ".join(result.currencies))
        logger.debug(
            "Arbitrage resolved: %d legs, %d complete, verdict=%s, guaranteed=%s",
            len(legs), result.complete_leg_count, result.verdict.value, result.guaranteed_profit,
        )
        return result

    def solve_stakes(
        self,
        legs: Sequence[Leg],
        fixed_leg_index: int,
        distribution: Distribution = Distribution.AUTO,
        stake_step: Optional[float] = None,
        directed_leg_indices: Optional[Sequence[int]] = None,
    ) -> StakePlan:
        try:
            return solve_stakes(
                legs,
                fixed_leg_index,
                distribution,
                directed_leg_indices=directed_leg_indices,
                step=stake_step,
                config=self.config,
            )
        except ValidationError as exc:
            _log_rejection("Stake solve", exc)
            raise

    def solve_hedge(
        self,
        back_stake: float,
        back_odd: float,
        lay_odd: float,
        mode: HedgeMode = HedgeMode.QUALIFYING,
        commission_pct: Optional[float] = None,
    ) -> Tuple[HedgeResult, HedgeRating]:
        """Solve a back/lay hedge; ``commission_pct`` defaults to the configured rate."""
        if commission_pct is None:
            commission_pct = self.config.default_commission_pct
        inputs = HedgeInputs(
            back_stake=back_stake,
            back_odd=back_odd,
            lay_odd=lay_odd,
            commission_pct=commission_pct,
            mode=mode,
        )
        try:
            result = solve_hedge(inputs, config=self.config)
        except ValidationError as exc:
            _log_rejection("Hedge", exc)
            raise
        return result, rate_hedge(result, config=self.config)

    def analyze_market(self, odds: List[float], total_stake: float) -> MarketAnalysis:
        try:
            return analyze_market(odds, total_stake, config=self.config)
        except ValidationError as exc:
            _log_rejection("Market analysis", exc)
            raise

    def solve_protection(
        self,
        initial_stake: float,
        legs: Sequence[ProtectionLeg],
        commission_pct: Optional[float] = None,
    ) -> ProtectionResult:
        """Lay protection ladder for a multiple; commission defaults to the configured rate."""
        if commission_pct is None:
            commission_pct = self.config.default_commission_pct
        try:
            result = solve_protection(initial_stake, legs, commission_pct, config=self.config)
        except ValidationError as exc:
            _log_rejection("Protection", exc)
            raise
        if result.is_closed:
            logger.info(
                "Protection closed by red leg: recovered %.2f of %.2f",
                result.final_capital, result.initial_stake,
            )
        return result


_calculator_service: Optional[CalculatorService] = None


def get_calculator_service() -> CalculatorService:
    global _calculator_service
    if _calculator_service is None:
        _calculator_service = CalculatorService()
        logger.info("Calculator service configured: %r", _calculator_service.config)
    return _calculator_service
