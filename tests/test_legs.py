"""
Tests for leg resolution and per-leg profit
Run with: pytest tests/test_legs.py -v
"""

from itertools import permutations

import pytest

from arbcalc.core.engine_config import EngineConfig
from arbcalc.core.legs import Leg, StakeEntry, evaluate_leg_profit, resolve_leg
from arbcalc.core.validation import ValidationError


class TestResolveLeg:
    """Stake-weighted odd"""

    def test_equal_stakes(self):
        res = resolve_leg([StakeEntry(2.0, 100), StakeEntry(2.2, 100)])

        assert res.weighted_odd == pytest.approx(2.1)
        assert res.leg_stake == 200.0
        assert res.is_complete
        assert res.issues == ()

    def test_weighted_not_simple_mean(self):
        res = resolve_leg([StakeEntry(2.0, 300), StakeEntry(2.4, 100)])

        assert res.weighted_odd == pytest.approx(2.1)
        assert res.leg_stake == 400.0

    def test_single_entry(self):
        res = resolve_leg([StakeEntry(3.25, 40)])
        assert res.weighted_odd == pytest.approx(3.25)
        assert res.quoted_odd == pytest.approx(3.25)

    def test_empty_leg(self):
        res = resolve_leg([])

        assert res.weighted_odd == 0.0
        assert res.leg_stake == 0.0
        assert res.quoted_odd == 0.0
        assert not res.is_complete

    def test_priced_but_unstaked(self):
        res = resolve_leg([StakeEntry(2.5, 0)])

        assert res.weighted_odd == 0.0
        assert res.quoted_odd == 2.5
        assert not res.is_complete

    def test_unset_odd_skipped_silently(self):
        res = resolve_leg([StakeEntry(0, 50), StakeEntry(2.0, 100)])

        assert res.leg_stake == 100.0
        assert res.weighted_odd == pytest.approx(2.0)
        assert res.issues == ()

    def test_invalid_entry_excluded_and_reported(self):
        res = resolve_leg([StakeEntry(0.5, 100), StakeEntry(2.0, 100)])

        assert res.leg_stake == 100.0
        assert res.weighted_odd == pytest.approx(2.0)
        assert [i.field for i in res.issues] == ["entries[0].odd"]

    def test_negative_stake_reported(self):
        res = resolve_leg([StakeEntry(2.0, -10)])

        assert not res.is_complete
        assert [i.field for i in res.issues] == ["entries[0].stake"]

    def test_leg_stake_rounded(self):
        res = resolve_leg([StakeEntry(2.0, 10.005), StakeEntry(2.0, 0.0)])
        assert res.leg_stake == 10.01

    def test_order_invariant(self):
        entries = [StakeEntry(1.91, 33.3), StakeEntry(2.07, 12.1), StakeEntry(2.2, 70.05)]
        results = {
            (r.weighted_odd, r.leg_stake)
            for r in (resolve_leg(list(p)) for p in permutations(entries))
        }
        assert len(results) == 1

    def test_custom_precision(self):
        cfg = EngineConfig(money_places=0)
        assert resolve_leg([StakeEntry(2.0, 10.4)], config=cfg).leg_stake == 10.0

    def test_wide_precision_on_largest_stake(self):
        cfg = EngineConfig(money_places=30)
        assert resolve_leg([StakeEntry(2.0, 1e12)], config=cfg).leg_stake == 1e12

    def test_bonus_stake(self):
        r = resolve_leg([
            StakeEntry(2.0, 100, is_bonus_stake=True),
            StakeEntry(2.2, 50),
            StakeEntry(0, 25, is_bonus_stake=True),
        ])
        assert r.bonus_stake == 100.0
        assert r.leg_stake == 150.0

    def test_currencies_first_seen_order(self):
        r = resolve_leg([
            StakeEntry(2.0, 10, currency="USD"),
            StakeEntry(2.1, 10),
            StakeEntry(2.2, 10, currency="BRL"),
            StakeEntry(2.3, 10, currency="USD"),
        ])
        assert r.currencies == ("USD", "BRL")


class TestLeg:
    """Leg value object"""

    def test_entries_stored_as_tuple(self):
        leg = Leg("1", [StakeEntry(2.0, 10)])
        assert isinstance(leg.entries, tuple)
        hash(leg)

    def test_single(self):
        leg = Leg.single("X", 3.4, 25, bookmaker_ref="book-a")
        assert leg.entries == (StakeEntry(3.4, 25, bookmaker_ref="book-a"),)


class TestEvaluateLegProfit:
    """Profit measured against the whole book"""

    def test_basic(self):
        a = evaluate_leg_profit(52.0, 2.0, 100.0, label="1")

        assert a.label == "1"
        assert a.leg_return == 104.0
        assert a.profit == 4.0
        assert a.roi == 4.0

    def test_losing_outcome(self):
        a = evaluate_leg_profit(40.0, 2.0, 100.0)

        assert a.profit == -20.0
        assert a.roi == -20.0

    def test_zero_book(self):
        a = evaluate_leg_profit(0.0, 0.0, 0.0)

        assert a.profit == 0.0
        assert a.roi == 0.0

    def test_unpriced_leg_loses_book(self):
        a = evaluate_leg_profit(0.0, 0.0, 150.0)
        assert a.profit == -150.0

    @pytest.mark.parametrize("args", [
        (10.0, 0.5, 100.0),
        (-1.0, 2.0, 100.0),
        (10.0, 2.0, float("nan")),
    ])
    def test_rejects_bad_inputs(self, args):
        with pytest.raises(ValidationError):
            evaluate_leg_profit(*args)
