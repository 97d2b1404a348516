"""
Tests for the SmartScore composite.
Run with: pytest tests/test_smart_score.py -v
"""

import itertools
import math
import random
from dataclasses import replace

import pytest

from smartedge.core.policy import COMPONENTS, ScoringPolicy, SmartScoreWeights
from smartedge.core.types import (
    AlgorithmId,
    ConfidenceTier,
    InjuryReport,
    MatchFeatures,
    Outcome,
    WeatherConditions,
)
from smartedge.services.arbitrage import ArbitrageResult, detect_arbitrage
from smartedge.services.smart_score import (
    SmartScoreComponents,
    arbitrage_component,
    confidence_tier,
    momentum_component,
    odds_movement_component,
    overall_score,
    smart_score,
    value_component,
)

from tests.conftest import make_match, make_prediction, quote

H, A = Outcome.HOME, Outcome.AWAY


def _components(values):
    return SmartScoreComponents(**dict(zip(COMPONENTS, values)))


# ---------------------------------------------------------------------------
# Weighted sum properties
# ---------------------------------------------------------------------------

class TestOverallScore:
    def test_all_fifty_is_fifty(self):
        assert overall_score(SmartScoreComponents(), SmartScoreWeights()) == pytest.approx(50.0)

    def test_weighted_sum(self):
        comps = _components([80, 60, 40, 95, 75, 30])
        expected = 0.20 * 80 + 0.25 * 60 + 0.15 * 40 + 0.10 * 95 + 0.15 * 75 + 0.15 * 30
        assert overall_score(comps, SmartScoreWeights()) == pytest.approx(expected)

    @pytest.mark.parametrize("name", COMPONENTS)
    def test_strictly_increasing_in_each_component(self, name):
        base = SmartScoreComponents()
        raised = replace(base, **{name: getattr(base, name) + 10.0})
        weights = SmartScoreWeights()
        assert overall_score(raised, weights) > overall_score(base, weights)

    def test_monotone_for_random_points(self):
        rng = random.Random(7)
        weights = SmartScoreWeights()
        for _ in range(200):
            values = [rng.uniform(0, 90) for _ in COMPONENTS]
            base = _components(values)
            name = rng.choice(COMPONENTS)
            bumped = replace(base, **{name: getattr(base, name) + rng.uniform(0.001, 10)})
            assert overall_score(bumped, weights) > overall_score(base, weights)

    def test_invariant_under_reordering(self):
        values = [81.3, 47.2, 66.6, 95.0, 72.5, 12.9]
        weights = [0.20, 0.25, 0.15, 0.10, 0.15, 0.15]
        reference = overall_score(_components(values), SmartScoreWeights(*weights))
        for perm in itertools.islice(itertools.permutations(range(6)), 0, 720, 37):
            permuted = overall_score(
                _components([values[i] for i in perm]),
                SmartScoreWeights(*[weights[i] for i in perm]),
            )
            assert permuted == reference

    def test_stays_in_range(self):
        assert overall_score(_components([0] * 6), SmartScoreWeights()) == 0.0
        assert overall_score(_components([100] * 6), SmartScoreWeights()) == pytest.approx(100.0)


class TestConfidenceTier:
    @pytest.mark.parametrize(
        "overall, tier",
        [
            (80.0, ConfidenceTier.HIGH),
            (95.0, ConfidenceTier.HIGH),
            (79.99, ConfidenceTier.MEDIUM),
            (65.0, ConfidenceTier.MEDIUM),
            (64.99, ConfidenceTier.LOW),
            (0.0, ConfidenceTier.LOW),
        ],
    )
    def test_default_thresholds(self, overall, tier):
        assert confidence_tier(overall) is tier

    def test_policy_thresholds(self):
        policy = ScoringPolicy(tier_high=70.0, tier_medium=50.0)
        assert confidence_tier(72.0, policy) is ConfidenceTier.HIGH


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------

class TestMomentumComponent:
    def test_confident_momentum_backing_pick(self):
        # +15 high-confidence signal, +10 good form (2 of 3 wins)
        preds = [make_prediction(H, 80.0, AlgorithmId.MOMENTUM)]
        score, notes = momentum_component(make_match(), preds, H)
        assert score == 75.0
        assert "High-confidence momentum signal" in notes

    def test_momentum_disagrees(self):
        preds = [make_prediction(A, 80.0, AlgorithmId.MOMENTUM)]
        score, _ = momentum_component(make_match(), preds, H)
        assert score == 50.0

    def test_hot_streak(self):
        match = make_match(home_form=("W", "W", "W", "W", "L"))
        score, _ = momentum_component(match, [], H)
        # 80% wins +15, last three wins +8
        assert score == 73.0

    def test_no_pick_is_neutral(self):
        assert momentum_component(make_match(), [], None) == (50.0, [])


class TestValueComponent:
    def test_large_edge(self):
        match = make_match(quotes=[quote("a", 2.0, 2.0)])
        score, _ = value_component(match, [make_prediction(H, 60.0)], H)
        assert score == 75.0

    def test_market_above_model(self):
        match = make_match(quotes=[quote("a", 2.0, 2.0)])
        score, _ = value_component(match, [make_prediction(H, 45.0)], H)
        assert score == 40.0

    def test_shopping_bonus(self):
        match = make_match(quotes=[quote("a", 2.0, 2.0), quote("b", 2.3, 1.9)])
        score, notes = value_component(match, [make_prediction(H, 60.0)], H)
        assert score == 90.0
        assert any("shop the line" in n for n in notes)

    def test_no_price_is_neutral(self):
        score, _ = value_component(make_match(), [make_prediction(H, 60.0)], H)
        assert score == 50.0


class TestOddsMovementComponent:
    def test_lengthening_with_reverse_movement(self):
        match = make_match(quotes=[quote("a", 2.0, 2.0, hours=0), quote("a", 2.3, 1.7, hours=2)])
        score, notes = odds_movement_component(match, H)
        assert score == 85.0
        assert "Reverse line movement toward the pick" in notes

    def test_shortening_on_pick(self):
        match = make_match(quotes=[quote("a", 2.0, 2.0, hours=0), quote("a", 2.3, 1.7, hours=2)])
        score, _ = odds_movement_component(match, A)
        assert score == 35.0

    def test_no_history(self):
        assert odds_movement_component(make_match(), H)[0] == 50.0


class TestArbitrageComponent:
    def test_opportunity_scores_100(self):
        assert arbitrage_component(ArbitrageResult("m1", True, 0.95)) == 100.0

    def test_fair_book(self):
        assert arbitrage_component(ArbitrageResult("m1", False, 1.0)) == pytest.approx(90.0)

    def test_decays_with_overround(self):
        assert arbitrage_component(ArbitrageResult("m1", False, 1.05)) == pytest.approx(90.0 * math.exp(-1.0))

    def test_closer_to_one_scores_higher(self):
        near = arbitrage_component(ArbitrageResult("m1", False, 1.01))
        far = arbitrage_component(ArbitrageResult("m1", False, 1.08))
        assert near > far

    def test_unknown(self):
        assert arbitrage_component(None) == 30.0
        assert arbitrage_component(ArbitrageResult("m1", False)) == 30.0


# ---------------------------------------------------------------------------
# smart_score()
# ---------------------------------------------------------------------------

class TestSmartScore:
    def _preds(self):
        return [
            make_prediction(H, 62.0, AlgorithmId.MOMENTUM),
            make_prediction(A, 58.0, AlgorithmId.VALUE),
            make_prediction(H, 65.0, AlgorithmId.SITUATIONAL),
        ]

    def test_bet_on_is_weighted_majority(self, two_way_match):
        result = smart_score(two_way_match, self._preds(), detect_arbitrage(two_way_match))
        assert result.recommendation.bet_on is H
        assert result.match_id == two_way_match.match_id

    def test_indoor_and_no_injury_defaults(self, two_way_match):
        result = smart_score(two_way_match, self._preds(), None)
        assert result.components.weather == 95.0
        assert result.components.injuries == 75.0
        assert result.components.arbitrage == 30.0

    def test_outdoor_weather_and_injuries_fed_through(self):
        match = make_match(league="NFL", quotes=[quote("a", 1.9, 1.9)])
        features = MatchFeatures(
            weather=WeatherConditions(30.0, 22.0, 0.1, "cloudy"),
            home_injuries=(InjuryReport("QB", "Out", "star"),),
        )
        result = smart_score(match, self._preds(), None, features)
        assert result.components.weather == 80.0 - 25 - 15
        assert result.components.injuries == pytest.approx(73.75)

    def test_arbitrage_flag_copied_from_detector(self, two_way_match):
        arb = ArbitrageResult(two_way_match.match_id, True, 0.97)
        result = smart_score(two_way_match, self._preds(), arb)
        assert result.has_arbitrage_opportunity
        assert result.components.arbitrage == 100.0
        assert "Arbitrage available" in result.recommendation.reasoning

    def test_no_arbitrage_flag_even_with_high_confidence(self, two_way_match):
        preds = [make_prediction(H, 99.0, a) for a in AlgorithmId]
        result = smart_score(two_way_match, preds, ArbitrageResult("m1", False, 1.04))
        assert not result.has_arbitrage_opportunity

    def test_low_tier_flags_low_conviction(self, two_way_match):
        policy = ScoringPolicy(tier_high=100.0, tier_medium=99.0)
        result = smart_score(two_way_match, self._preds(), None, policy=policy)
        assert result.recommendation.tier is ConfidenceTier.LOW
        assert result.recommendation.bet_on is H
        assert result.recommendation.reasoning.startswith("Low conviction:")

    def test_high_tier_has_no_low_conviction_flag(self, two_way_match):
        policy = ScoringPolicy(tier_high=0.0, tier_medium=0.0)
        result = smart_score(two_way_match, self._preds(), None, policy=policy)
        assert result.recommendation.tier is ConfidenceTier.HIGH
        assert "Low conviction" not in result.recommendation.reasoning

    def test_no_predictions(self, two_way_match):
        result = smart_score(two_way_match, [], None)
        assert result.recommendation.bet_on is None
        assert result.recommendation.tier is ConfidenceTier.LOW
        assert result.recommendation.reasoning.startswith("Low conviction")

    def test_overall_matches_components(self, two_way_match):
        policy = ScoringPolicy()
        result = smart_score(two_way_match, self._preds(), detect_arbitrage(two_way_match), policy=policy)
        assert result.overall == overall_score(result.components, policy.weights)
        assert 0.0 <= result.overall <= 100.0

    def test_simultaneous_books_do_not_move_the_score(self):
        forward = make_match(quotes=[quote("bookA", 1.95, 2.00), quote("bookB", 2.05, 1.90)])
        backward = make_match(quotes=list(reversed(forward.quotes)))
        first = smart_score(forward, self._preds(), None)
        second = smart_score(backward, self._preds(), None)
        assert first.components.odds_movement == 50.0
        assert first.components == second.components
        assert first.overall == second.overall

    def test_to_dict(self, two_way_match):
        data = smart_score(two_way_match, self._preds(), None).to_dict()
        assert set(data["components"]) == set(COMPONENTS)
        assert data["recommendation"]["bet_on"] == "home"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
