"""
Tests for the HTTP layer
Run with: pytest tests/test_api.py -v
"""

import pytest
from fastapi.testclient import TestClient

from arbcalc.core.engine_config import EngineConfig
from arbcalc.main import app
from arbcalc.services.calculator import CalculatorService, get_calculator_service


@pytest.fixture
def client():
    app.dependency_overrides[get_calculator_service] = lambda: CalculatorService(EngineConfig.default())
    yield TestClient(app)
    app.dependency_overrides.clear()


def _legs(stake_2=102.44):
    return [
        {"label": "1", "entries": [{"odd": 2.10, "stake": 100}]},
        {"label": "2", "entries": [{"odd": 2.05, "stake": stake_2}]},
    ]


class TestPublicEndpoints:
    """Health checks"""

    def test_root(self, client):
        body = client.get("/").json()

        assert body["app"] == "arbcalc"
        assert body["status"] == "operational"
        assert "timestamp" in body

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}


class TestLegEndpoint:
    """POST /api/legs/resolve"""

    def test_resolve(self, client):
        resp = client.post("/api/legs/resolve", json={
            "entries": [{"odd": 2.0, "stake": 300}, {"odd": 2.4, "stake": 100}, {"odd": 0.5, "stake": 5}],
        })

        assert resp.status_code == 200
        body = resp.json()
        assert body["weighted_odd"] == pytest.approx(2.1)
        assert body["leg_stake"] == 400.0
        assert body["issues"] == [{"field": "entries[2].odd", "reason": "odd must be greater than 1, got 0.5"}]

    def test_empty_entries_is_shape_error(self, client):
        assert client.post("/api/legs/resolve", json={"entries": []}).status_code == 422

    def test_bonus_and_currency(self, client):
        body = client.post("/api/legs/resolve", json={
            "entries": [
                {"odd": 2.0, "stake": 50, "currency": "EUR", "is_bonus_stake": True},
                {"odd": 2.2, "stake": 50, "currency": "EUR"},
            ],
        }).json()

        assert body["bonus_stake"] == 50.0
        assert body["currencies"] == ["EUR"]


class TestArbitrageEndpoint:
    """POST /api/arbitrage/resolve"""

    def test_golden(self, client):
        resp = client.post("/api/arbitrage/resolve", json={"legs": _legs()})

        assert resp.status_code == 200
        body = resp.json()
        assert body["guaranteed_profit"] == 7.56
        assert body["guaranteed_roi"] == 3.7
        assert body["verdict"] == "arbitrage"
        assert body["binding_leg"] == "1"
        assert len(body["leg_analyses"]) == 2
        assert body["stake_plan"] is None

    def test_incomplete_serialises_null(self, client):
        body = client.post("/api/arbitrage/resolve", json={"legs": _legs()[:1]}).json()

        assert body["is_complete"] is False
        assert body["guaranteed_profit"] is None
        assert body["verdict"] == "incomplete"

    def test_stake_plan(self, client):
        body = client.post("/api/arbitrage/resolve", json={
            "legs": _legs(stake_2=0),
            "fixed_leg_index": 0,
            "distribution": "directed",
        }).json()

        assert body["stake_plan"]["stakes"] == [100.0, 95.24]
        assert body["stake_plan"]["distribution"] == "directed"

    def test_bad_fixed_leg_is_structured_422(self, client):
        resp = client.post("/api/arbitrage/resolve", json={"legs": _legs(), "fixed_leg_index": 3})

        assert resp.status_code == 422
        body = resp.json()
        assert body["detail"] == "validation failed"
        assert body["issues"][0]["field"] == "fixed_leg_index"

    def test_no_legs_is_shape_error(self, client):
        assert client.post("/api/arbitrage/resolve", json={"legs": []}).status_code == 422

    def test_directed_leg_indices(self, client):
        body = client.post("/api/arbitrage/resolve", json={
            "legs": [
                {"label": "1", "entries": [{"odd": 2.5, "stake": 100}]},
                {"label": "X", "entries": [{"odd": 3.6, "stake": 0}]},
                {"label": "2", "entries": [{"odd": 3.8, "stake": 0}]},
            ],
            "fixed_leg_index": 0,
            "distribution": "directed",
            "directed_leg_indices": [0, 1],
        }).json()

        assert body["stake_plan"]["stakes"] == [100.0, 69.44, 60.52]
        assert body["stake_plan"]["directed_leg_indices"] == [0, 1]

    def test_directed_set_covering_every_leg_rejected(self, client):
        resp = client.post("/api/arbitrage/resolve", json={
            "legs": _legs(stake_2=0),
            "fixed_leg_index": 0,
            "distribution": "directed",
            "directed_leg_indices": [0, 1],
        })

        assert resp.status_code == 422
        assert resp.json()["issues"][0]["field"] == "directed_leg_indices"

    def test_bonus_extraction(self, client):
        legs = _legs()
        legs[0]["entries"][0]["is_bonus_stake"] = True
        body = client.post("/api/arbitrage/resolve", json={"legs": legs}).json()

        assert body["bonus_stake"] == 100.0
        assert body["extraction_rate"] == 7.6

    def test_mixed_currencies(self, client):
        legs = [
            {"label": "1", "entries": [{"odd": 2.10, "stake": 100, "currency": "BRL"}]},
            {"label": "2", "entries": [{"odd": 2.05, "stake": 20, "currency": "USD"}]},
        ]
        resp = client.post("/api/arbitrage/resolve", json={"legs": legs})

        assert resp.status_code == 200
        body = resp.json()
        assert body["is_multi_currency"] is True
        assert body["guaranteed_profit"] is None
        assert body["total_stake"] is None
        assert body["verdict"] == "multi_currency"
        assert body["leg_analyses"][0]["profit"] is None
        assert {"field": "legs", "reason": "mixed currencies"} in body["issues"]

    def test_huge_stakes_reported_not_crashing(self, client):
        legs = [
            {"label": "1", "entries": [{"odd": 2.10, "stake": 1e27}]},
            {"label": "2", "entries": [{"odd": 2.05, "stake": 1e27}]},
        ]
        resp = client.post("/api/arbitrage/resolve", json={"legs": legs})

        assert resp.status_code == 200
        assert resp.json()["guaranteed_profit"] is None
        assert len(resp.json()["issues"]) == 2


class TestHedgeEndpoint:
    """POST /api/hedge/solve"""

    def test_free_bet_snr(self, client):
        resp = client.post("/api/hedge/solve", json={
            "back_stake": 50, "back_odd": 4.0, "lay_odd": 4.2,
            "commission_pct": 5.0, "mode": "free_bet_snr",
        })

        assert resp.status_code == 200
        body = resp.json()
        assert body["lay_stake"] == 36.14
        assert body["liability"] == 115.66
        assert body["settled_value"] == 34.34
        assert body["extraction_rate"] == 68.7
        assert body["rating"] == "poor"

    def test_default_commission(self, client):
        body = client.post("/api/hedge/solve", json={
            "back_stake": 50, "back_odd": 4.0, "lay_odd": 4.2, "mode": "free_bet_snr",
        }).json()
        assert body["lay_stake"] == 36.14

    def test_qualifying(self, client):
        body = client.post("/api/hedge/solve", json={
            "back_stake": 100, "back_odd": 3.0, "lay_odd": 3.0, "commission_pct": 0,
        }).json()

        assert body["mode"] == "qualifying"
        assert body["settled_value"] == 0.0
        assert body["extraction_rate"] is None
        assert body["loss_pct_of_stake"] == 0.0
        assert body["rating"] == "good"

    def test_full_commission_rejected(self, client):
        resp = client.post("/api/hedge/solve", json={
            "back_stake": 100, "back_odd": 2.0, "lay_odd": 2.1, "commission_pct": 100,
        })

        assert resp.status_code == 422
        assert resp.json()["issues"][0]["field"] == "commission_pct"

    @pytest.mark.parametrize("back_stake", [1e27, 1e308])
    def test_huge_back_stake_is_422(self, client, back_stake):
        resp = client.post("/api/hedge/solve", json={
            "back_stake": back_stake, "back_odd": 2.0, "lay_odd": 2.1, "commission_pct": 5.0,
        })

        assert resp.status_code == 422
        assert resp.json()["issues"][0]["field"] == "back_stake"


class TestMarketEndpoint:
    """POST /api/market/analyze"""

    def test_arbitrage(self, client):
        body = client.post("/api/market/analyze", json={"odds": [2.10, 2.05], "total_stake": 100}).json()

        assert body["has_arbitrage"] is True
        assert body["arbitrage_profit"] == 3.73
        assert body["tier"] == "arbitrage"
        assert len(body["outcomes"]) == 2

    def test_bad_odd(self, client):
        resp = client.post("/api/market/analyze", json={"odds": [2.0, 1.0], "total_stake": 100})

        assert resp.status_code == 422
        assert resp.json()["issues"][0]["field"] == "odds[1]"


class TestSettleEndpoint:
    """POST /api/arbitrage/settle"""

    def test_settled(self, client):
        body = client.post("/api/arbitrage/settle", json={"legs": _legs(), "outcomes": ["green", "red"]}).json()

        assert body["is_resolved"] is True
        assert body["realized_profit"] == 7.56
        assert body["deviation"] == 0.0

    def test_pending(self, client):
        body = client.post("/api/arbitrage/settle", json={"legs": _legs(), "outcomes": ["green"]}).json()

        assert body["is_resolved"] is False
        assert body["realized_profit"] is None

    def test_unknown_outcome(self, client):
        resp = client.post("/api/arbitrage/settle", json={"legs": _legs(), "outcomes": ["won", "red"]})

        assert resp.status_code == 422
        assert resp.json()["issues"][0]["field"] == "outcomes[0]"


class TestProtectionEndpoint:
    """POST /api/protection/solve"""

    def _payload(self, **overrides):
        payload = {
            "initial_stake": 100,
            "commission_pct": 5.0,
            "legs": [
                {"back_odd": 2.0, "lay_odd": 2.1},
                {"back_odd": 2.0, "lay_odd": 2.2},
            ],
        }
        payload.update(overrides)
        return payload

    def test_double(self, client):
        resp = client.post("/api/protection/solve", json=self._payload())

        assert resp.status_code == 200
        body = resp.json()
        assert [leg["lay_stake"] for leg in body["legs"]] == [105.26, 16.62]
        assert [leg["status"] for leg in body["legs"]] == ["active", "pending"]
        assert body["exchange_volume"] == 121.88
        assert body["final_liability_if_all_green"] == -80.06

    def test_default_commission(self, client):
        body = client.post("/api/protection/solve", json=self._payload(commission_pct=None)).json()
        assert body["commission_pct"] == 5.0

    def test_red_closes(self, client):
        body = client.post("/api/protection/solve", json=self._payload(legs=[
            {"back_odd": 2.0, "lay_odd": 2.1, "status": "red"},
            {"back_odd": 2.0, "lay_odd": 2.2},
        ])).json()

        assert body["is_closed"] is True
        assert body["legs"][1]["status"] == "locked"
        assert body["final_capital"] == 100.0
        assert body["final_liability_if_all_green"] is None

    def test_single_leg_is_structured_422(self, client):
        resp = client.post("/api/protection/solve", json=self._payload(legs=[{"back_odd": 2.0, "lay_odd": 2.1}]))

        assert resp.status_code == 422
        assert resp.json()["issues"][0]["field"] == "legs"

    def test_extraction_above_liability_rejected(self, client):
        resp = client.post("/api/protection/solve", json=self._payload(legs=[
            {"back_odd": 2.0, "lay_odd": 2.1, "extraction_pct": 150},
            {"back_odd": 2.0, "lay_odd": 2.2},
        ]))

        assert resp.status_code == 422
        assert resp.json()["issues"][0]["field"] == "legs[0].extraction_pct"
