"""
Tests for the calculator service: env configuration and request logging
Run with: pytest tests/test_calculator.py -v
"""

import logging

import pytest

from arbcalc.core.arbitrage import ArbitrageVerdict, Distribution
from arbcalc.core.engine_config import EngineConfig
from arbcalc.core.hedge import HedgeMode, HedgeRating
from arbcalc.core.legs import Leg, StakeEntry
from arbcalc.core.protection import ProtectionLeg, ProtectionLegStatus
from arbcalc.core.validation import ValidationError
from arbcalc.services.calculator import CalculatorService, load_engine_config

_ENV_VARS = (
    "ARBCALC_MONEY_PLACES",
    "ARBCALC_PERCENT_PLACES",
    "ARBCALC_DEFAULT_COMMISSION_PCT",
    "ARBCALC_STAKE_ROUNDING_STEP",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def service():
    return CalculatorService(EngineConfig.default())


class TestLoadEngineConfig:
    """Environment overrides"""

    def test_defaults(self):
        assert load_engine_config() == EngineConfig.default()

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("ARBCALC_MONEY_PLACES", "0")
        monkeypatch.setenv("ARBCALC_PERCENT_PLACES", "2")
        monkeypatch.setenv("ARBCALC_DEFAULT_COMMISSION_PCT", "2.5")
        monkeypatch.setenv("ARBCALC_STAKE_ROUNDING_STEP", "5")

        cfg = load_engine_config()

        assert cfg.money_places == 0
        assert cfg.percent_places == 2
        assert cfg.default_commission_pct == 2.5
        assert cfg.stake_rounding_step == 5.0

    @pytest.mark.parametrize("name, value", [
        ("ARBCALC_MONEY_PLACES", "two"),
        ("ARBCALC_MONEY_PLACES", "-1"),
        ("ARBCALC_MONEY_PLACES", "11"),
        ("ARBCALC_PERCENT_PLACES", "400"),
        ("ARBCALC_DEFAULT_COMMISSION_PCT", "100"),
        ("ARBCALC_DEFAULT_COMMISSION_PCT", "abc"),
        ("ARBCALC_STAKE_ROUNDING_STEP", "0"),
        ("ARBCALC_STAKE_ROUNDING_STEP", "inf"),
    ])
    def test_malformed_falls_back_with_warning(self, monkeypatch, caplog, name, value):
        monkeypatch.setenv(name, value)

        with caplog.at_level(logging.WARNING, logger="arbcalc.services.calculator"):
            cfg = load_engine_config()

        assert cfg == EngineConfig.default()
        assert name in caplog.text

    def test_blank_is_ignored(self, monkeypatch):
        monkeypatch.setenv("ARBCALC_PERCENT_PLACES", "  ")
        assert load_engine_config().percent_places == 1

    def test_largest_places_accepted(self, monkeypatch):
        monkeypatch.setenv("ARBCALC_MONEY_PLACES", "10")
        assert load_engine_config().money_places == 10

    def test_config_repr_lists_every_field(self):
        text = repr(EngineConfig.default())

        assert text.startswith("EngineConfig(")
        assert "extraction_good_pct=" in text
        assert "stake_rounding_step=" in text


class TestCalculatorService:
    """Orchestration over the core calculators"""

    def test_hedge_uses_configured_commission(self, service):
        result, rating = service.solve_hedge(50, 4.0, 4.2, mode=HedgeMode.FREE_BET_SNR)

        assert result.lay_stake == 36.14
        assert result.extraction_rate == 68.7
        assert rating is HedgeRating.POOR

    def test_hedge_explicit_commission(self, service):
        result, rating = service.solve_hedge(100, 3.0, 3.0, commission_pct=0.0)

        assert result.qualifying_loss == 0.0
        assert rating is HedgeRating.GOOD

    def test_hedge_rejection_logged(self, service, caplog):
        with caplog.at_level(logging.INFO, logger="arbcalc.services.calculator"):
            with pytest.raises(ValidationError):
                service.solve_hedge(100, 2.0, 2.1, commission_pct=100)

        assert "Hedge rejected: commission_pct" in caplog.text

    def test_resolve_arbitrage(self, service):
        legs = [Leg.single("1", 2.10, 100), Leg.single("2", 2.05, 102.44)]
        result = service.resolve_arbitrage(legs)

        assert result.guaranteed_profit == 7.56
        assert result.verdict is ArbitrageVerdict.ARBITRAGE

    def test_resolve_arbitrage_rejection_logged(self, service, caplog):
        legs = [Leg.single("1", 2.10, 100), Leg.single("2", 2.05, 102.44)]

        with caplog.at_level(logging.INFO, logger="arbcalc.services.calculator"):
            with pytest.raises(ValidationError):
                service.resolve_arbitrage(legs, fixed_leg_index=5)

        assert "fixed_leg_index" in caplog.text

    def test_solve_stakes_with_step(self, service):
        legs = [Leg.single("1", 2.10, 100), Leg("2", (StakeEntry(2.05, 0),))]
        plan = service.solve_stakes(legs, 0, stake_step=1.0)

        assert plan.stakes == (100.0, 102.0)

    def test_resolve_leg_logs_excluded_entries(self, service, caplog):
        with caplog.at_level(logging.INFO, logger="arbcalc.services.calculator"):
            res = service.resolve_leg([StakeEntry(0.5, 10), StakeEntry(2.0, 10)])

        assert res.leg_stake == 10.0
        assert "1 excluded entry" in caplog.text

    def test_analyze_market(self, service):
        assert service.analyze_market([2.10, 2.05], 100).has_arbitrage

    def test_solve_stakes_directed_set(self, service):
        legs = [
            Leg.single("1", 2.5, 100),
            Leg("X", (StakeEntry(3.6, 0),)),
            Leg("2", (StakeEntry(3.8, 0),)),
        ]
        plan = service.solve_stakes(legs, 0, Distribution.DIRECTED, directed_leg_indices=[0, 1])

        assert plan.stakes == (100.0, 69.44, 60.52)

    def test_multi_currency_logged(self, service, caplog):
        legs = [
            Leg.single("1", 2.10, 100, currency="BRL"),
            Leg.single("2", 2.05, 20, currency="USD"),
        ]
        with caplog.at_level(logging.INFO, logger="arbcalc.services.calculator"):
            result = service.resolve_arbitrage(legs)

        assert result.guaranteed_profit is None
        assert "BRL, USD" in caplog.text

    def test_protection_uses_configured_commission(self, service):
        legs = [ProtectionLeg(2.0, 2.1), ProtectionLeg(2.0, 2.2)]
        result = service.solve_protection(100, legs)

        assert result.commission_pct == EngineConfig.default().default_commission_pct
        assert result.legs[0].lay_stake == 105.26

    def test_protection_red_logged(self, service, caplog):
        legs = [ProtectionLeg(2.0, 2.1, 50.0, ProtectionLegStatus.RED), ProtectionLeg(2.0, 2.2)]
        with caplog.at_level(logging.INFO, logger="arbcalc.services.calculator"):
            result = service.solve_protection(100, legs, commission_pct=5.0)

        assert result.final_capital == 50.0
        assert "recovered 50.00 of 100.00" in caplog.text

    def test_protection_rejection_logged(self, service, caplog):
        with caplog.at_level(logging.INFO, logger="arbcalc.services.calculator"):
            with pytest.raises(ValidationError):
                service.solve_protection(0, [ProtectionLeg(2.0, 2.1), ProtectionLeg(2.0, 2.2)])

        assert "Protection rejected: initial_stake" in caplog.text
