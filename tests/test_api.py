"""
Tests for the SmartEdge HTTP API.
Run with: pytest tests/test_api.py -v
"""

import pytest
from fastapi.testclient import TestClient

from smartedge.core.policy import ScoringPolicy
from smartedge.main import app, get_policy


def _match(match_id="m1", home=2.10, away=2.10, league="NBA"):
    return {
        "match_id": match_id,
        "league": league,
        "start_time": "2026-10-21T23:30:00Z",
        "home": {"name": "Boston Celtics", "short_name": "BOS", "record": "9-3",
                 "recent_form": ["W", "W", "L"]},
        "away": {"name": "New York Knicks", "short_name": "NYK", "record": "5-7",
                 "recent_form": ["l", "w", "L"]},
        "quotes": [
            {"book_id": "draftkings", "home_win": home, "away_win": 1.50,
             "timestamp": "2026-10-21T12:00:00Z"},
            {"book_id": "fanduel", "home_win": 1.50, "away_win": away,
             "timestamp": "2026-10-21T18:00:00Z"},
        ],
    }


@pytest.fixture
def client():
    app.dependency_overrides[get_policy] = lambda: ScoringPolicy()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


class TestMeta:
    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        assert r.json()["app"] == "SmartEdge"

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "healthy"
        assert body["policy"]["kelly_multiplier"] == 0.25
        assert sum(body["policy"]["weights"].values()) == pytest.approx(1.0)


class TestArbitrage:
    def test_opportunity(self, client):
        r = client.post("/api/arbitrage", json={"match": _match()})
        assert r.status_code == 200
        body = r.json()
        assert body["has_opportunity"] is True
        assert body["margin_percent"] == pytest.approx(4.7619, abs=1e-3)
        assert {leg["book_id"] for leg in body["legs"]} == {"draftkings", "fanduel"}

    def test_no_opportunity(self, client):
        r = client.post("/api/arbitrage", json={"match": _match(home=1.80, away=1.80)})
        assert r.status_code == 200
        assert r.json()["has_opportunity"] is False

    def test_bad_stake(self, client):
        r = client.post("/api/arbitrage", json={"match": _match(), "total_stake": -5})
        assert r.status_code == 422

    def test_bad_form_rejected(self, client):
        match = _match()
        match["home"]["recent_form"] = ["X"]
        assert client.post("/api/arbitrage", json={"match": match}).status_code == 422


class TestPredict:
    def test_predict(self, client):
        payload = {"match": _match(), "features": {"home_rest_days": 2, "away_rest_days": 1}}
        r = client.post("/api/predict", json=payload)
        assert r.status_code == 200
        body = r.json()
        assert body["match_id"] == "m1"
        assert [p["algorithm"] for p in body["predictions"]] == ["momentum", "value", "situational"]
        assert body["consensus"]["pick"] in ("home", "away", "split")


class TestSmartScore:
    def test_with_supplied_predictions(self, client):
        preds = [
            {"match_id": "m1", "algorithm": "momentum", "recommended": "home", "confidence": 62},
            {"match_id": "m1", "algorithm": "value", "recommended": "away", "confidence": 58},
            {"match_id": "m1", "algorithm": "situational", "recommended": "home", "confidence": 65},
        ]
        r = client.post("/api/smart-score", json={"match": _match(), "predictions": preds})
        assert r.status_code == 200
        body = r.json()
        assert body["recommendation"]["bet_on"] == "home"
        assert body["has_arbitrage_opportunity"] is True
        assert body["components"]["arbitrage"] == 100.0
        assert 0.0 <= body["overall"] <= 100.0

    def test_runs_ensemble_when_no_predictions(self, client):
        r = client.post("/api/smart-score", json={"match": _match()})
        assert r.status_code == 200
        assert set(r.json()["components"]) == {
            "momentum", "value", "odds_movement", "weather", "injuries", "arbitrage"
        }

    def test_draw_rejected_without_draw_market(self, client):
        preds = [{"match_id": "m1", "algorithm": "situational", "recommended": "draw", "confidence": 40}]
        r = client.post("/api/smart-score", json={"match": _match(), "predictions": preds})
        assert r.status_code == 422
        assert "no draw market" in r.json()["detail"]

    def test_draw_accepted_with_draw_market(self, client):
        match = _match(league="EPL")
        match["quotes"][0]["draw"] = 3.40
        preds = [{"match_id": "m1", "algorithm": "situational", "recommended": "draw", "confidence": 40}]
        r = client.post("/api/smart-score", json={"match": match, "predictions": preds})
        assert r.status_code == 200
        assert r.json()["recommendation"]["bet_on"] == "draw"


class TestMetrics:
    def _pred(self, confidence=60):
        return {"match_id": "m1", "algorithm": "value", "recommended": "home", "confidence": confidence}

    def test_american_odds(self, client):
        r = client.post("/api/metrics", json={"prediction": self._pred(), "american_odds": 100})
        assert r.status_code == 200
        metrics = r.json()["metrics"]
        assert metrics["decimal_odds"] == 2.0
        assert metrics["ev_percent"] == pytest.approx(10.0)
        assert metrics["kelly_stake_units"] == pytest.approx(2.5)

    def test_invalid_american_odds(self, client):
        r = client.post("/api/metrics", json={"prediction": self._pred(), "american_odds": 50})
        assert r.status_code == 422

    def test_clv(self, client):
        payload = {"prediction": self._pred(), "decimal_odds": 2.06, "closing_odds": 2.0}
        metrics = client.post("/api/metrics", json=payload).json()["metrics"]
        assert metrics["clv_percent"] == pytest.approx(3.0)
        assert metrics["beat_closing_line"] is True

    def test_bet_decision(self, client):
        payload = {"prediction": self._pred(), "decimal_odds": 2.06, "closing_odds": 2.0}
        decision = client.post("/api/metrics", json=payload).json()["decision"]
        assert decision["should_bet"] is True
        assert decision["reason"].startswith("Good bet")

    def test_bet_decision_thresholds(self, client):
        payload = {"prediction": self._pred(), "decimal_odds": 2.06, "closing_odds": 2.0, "min_clv": 5.0}
        decision = client.post("/api/metrics", json=payload).json()["decision"]
        assert decision["should_bet"] is False
        assert decision["clv_ok"] is False

    def test_no_price_all_null(self, client):
        metrics = client.post("/api/metrics", json={"prediction": self._pred()}).json()["metrics"]
        assert all(v is None for v in metrics.values())

    def test_confidence_out_of_range(self, client):
        r = client.post("/api/metrics", json={"prediction": self._pred(120), "decimal_odds": 2.0})
        assert r.status_code == 422


class TestSimulate:
    def _payload(self, **overrides):
        payload = {
            "starting_bankroll": 1000.0,
            "paths": 50,
            "bets_per_path": 20,
            "stake_rule": {"kind": "kelly"},
            "win_prob": 0.55,
            "decimal_odds": 1.95,
            "seed": 7,
        }
        payload.update(overrides)
        return payload

    def test_seeded_run_is_reproducible(self, client):
        first = client.post("/api/simulate", json=self._payload())
        second = client.post("/api/simulate", json=self._payload())
        assert first.status_code == 200
        assert first.json() == second.json()
        assert first.json()["seed"] == 7
        assert len(first.json()["bands"]) == 21

    def test_invalid_paths(self, client):
        assert client.post("/api/simulate", json=self._payload(paths=0)).status_code == 422

    def test_two_sources_rejected(self, client):
        r = client.post("/api/simulate", json=self._payload(samples=[[0.5, 2.0]]))
        assert r.status_code == 422
        assert "exactly one" in r.json()["detail"]

    def test_settled_bets_source(self, client):
        payload = self._payload(win_prob=None, decimal_odds=None, settled_bets=[
            {"decimal_odds": 2.0, "won": True},
            {"decimal_odds": 1.9, "won": False},
        ])
        assert client.post("/api/simulate", json=payload).status_code == 200

    def test_scenarios(self, client):
        r = client.post("/api/simulate", json=self._payload(scenarios=True))
        assert r.status_code == 200
        body = r.json()
        assert set(body) == {"bull", "realistic", "bear"}
        assert body["bull"]["seed"] == body["bear"]["seed"] == 7


class TestBankrollRisk:
    def test_default_unit_is_kelly(self, client):
        r = client.post("/api/bankroll/risk", json={"bankroll": 1000, "win_prob": 0.55, "decimal_odds": 2.0})
        assert r.status_code == 200
        body = r.json()
        assert body["unit_size"] == pytest.approx(25.0)
        assert body["risk_of_ruin"] == pytest.approx((0.45 / 0.55) ** 40)

    def test_given_unit(self, client):
        payload = {"bankroll": 1000, "win_prob": 0.55, "decimal_odds": 1.95, "unit_size": 50}
        body = client.post("/api/bankroll/risk", json=payload).json()
        assert body["unit_size"] == 50.0
        assert body["risk_of_ruin"] == pytest.approx((0.45 / 0.55) ** 20)

    def test_invalid_probability(self, client):
        payload = {"bankroll": 1000, "win_prob": 1.2, "decimal_odds": 2.0}
        assert client.post("/api/bankroll/risk", json=payload).status_code == 422


class TestScoreBatch:
    def test_batch(self, client):
        payload = {
            "matches": [_match("a"), _match("b", home=1.80, away=1.80)],
            "features": {"a": {"home_injuries": [{"player": "J. Tatum", "status": "Out",
                                                  "impact_tier": "star"}]}},
            "top": 1,
        }
        r = client.post("/api/score", json=payload)
        assert r.status_code == 200
        body = r.json()
        assert body["scored"] == 2
        assert body["failed"] == 0
        assert [res["match_id"] for res in body["results"]] == ["a", "b"]
        assert len(body["top_match_ids"]) == 1
        assert [a["match_id"] for a in body["arbitrage"]] == ["a"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
