"""
Tests for the batch scoring pass and the arbitrage scan.
Run with: pytest tests/test_scoring.py -v
"""

import logging

import pytest

from smartedge.core.errors import ConfigurationError
from smartedge.core.types import (
    AlgorithmId,
    BookQuote,
    ConsensusPick,
    MatchFeatures,
    Outcome,
    ScheduleContext,
)
from smartedge.services import scoring
from smartedge.services.arbitrage import detect_arbitrage
from smartedge.services.ensemble import consensus
from smartedge.services.metrics import pick_metrics
from smartedge.services.scoring import scan_arbitrage, score_match, score_matches

from tests.conftest import T0, make_match, make_prediction, quote


class TestEndToEnd:
    """Two-way match, three predictors all on the home side."""

    def _match(self):
        return make_match(quotes=(quote("bookA", 2.05, 1.90), quote("bookB", 1.95, 2.00)))

    def test_consensus_arbitrage_and_stake(self):
        match = self._match()
        preds = [
            make_prediction(Outcome.HOME, 62.0, AlgorithmId.MOMENTUM),
            make_prediction(Outcome.HOME, 58.0, AlgorithmId.VALUE),
            make_prediction(Outcome.HOME, 65.0, AlgorithmId.SITUATIONAL),
        ]
        verdict = consensus(preds)
        assert verdict.pick is ConsensusPick.HOME
        assert verdict.strength == 3

        arb = detect_arbitrage(match)
        assert arb.implied_sum == pytest.approx(1 / 2.05 + 1 / 2.00)
        assert arb.has_opportunity == (arb.implied_sum < 1.0)

        m = pick_metrics(verdict.pick.outcome, verdict.confidence, match)
        assert m.decimal_odds == 2.05
        assert m.true_probability == pytest.approx(0.5 * 185.0 / 300.0 + 0.5 / 2.05)
        assert m.ev_percent > 0.0
        assert m.kelly_fraction > 0.0

    def test_score_match_pipeline(self):
        match = self._match()
        result = score_match(match, MatchFeatures(schedule=ScheduleContext(2, 2)))
        assert [p.algorithm for p in result.predictions] == list(AlgorithmId)
        assert all(p.metrics is not None for p in result.predictions)
        assert result.smart_score.has_arbitrage_opportunity == result.arbitrage.has_opportunity
        data = result.to_dict()
        assert data["match_id"] == "m1"
        assert len(data["predictions"]) == 3


class TestScoreMatches:
    def _matches(self):
        return [
            make_match("a", quotes=(quote("x", 1.95, 1.95),)),
            make_match("bad", quotes=(quote("x", 1.90, 1.90),)),
            make_match("c", home_record="14-1", away_record="1-14", quotes=(quote("x", 2.10, 1.80),)),
        ]

    def test_failure_isolated(self, monkeypatch, caplog):
        real = scoring.smart_score

        def flaky(match, *args, **kwargs):
            if match.match_id == "bad":
                raise RuntimeError("corrupt feed")
            return real(match, *args, **kwargs)

        monkeypatch.setattr(scoring, "smart_score", flaky)
        with caplog.at_level(logging.INFO, logger="smartedge.services.scoring"):
            report = score_matches(self._matches())

        assert [r.match.match_id for r in report.results] == ["a", "c"]
        assert len(report.failures) == 1
        assert report.failures[0].match_id == "bad"
        assert "RuntimeError: corrupt feed" in report.failures[0].error
        assert "Scoring failed for match bad" in caplog.text
        assert "Scored 2/3 matches" in caplog.text

    def test_configuration_error_propagates(self, monkeypatch):
        def broken(*args, **kwargs):
            raise ConfigurationError("bad weights")

        monkeypatch.setattr(scoring, "smart_score", broken)
        with pytest.raises(ConfigurationError):
            score_matches(self._matches())

    def test_input_order_and_ranking(self):
        report = score_matches(self._matches())
        assert [r.match.match_id for r in report.results] == ["a", "bad", "c"]
        top = report.top_by_smart_score(2)
        assert len(top) == 2
        overall = [r.smart_score.overall for r in report.top_by_smart_score()]
        assert overall == sorted(overall, reverse=True)

    def test_features_routed_by_match_id(self):
        matches = [make_match("nfl1", league="NFL", quotes=(quote("x", 1.9, 1.9),))]
        report = score_matches(matches, {"nfl1": MatchFeatures(home_injuries=(), away_injuries=())})
        assert report.results[0].smart_score.components.injuries == 100.0

    def test_empty(self):
        report = score_matches([])
        assert report.results == ()
        assert report.top_by_smart_score() == []


class TestScanArbitrage:
    def test_sorted_by_margin(self):
        matches = [
            make_match("small", quotes=(quote("x", 2.05, 1.90), quote("y", 1.90, 2.05))),
            make_match("none", quotes=(quote("x", 1.80, 1.80),)),
            make_match("big", quotes=(quote("x", 2.10, 1.90), quote("y", 1.90, 2.10))),
        ]
        found = scan_arbitrage(matches)
        assert [r.match_id for r in found] == ["big", "small"]
        assert found[0].margin_percent > found[1].margin_percent

    def test_report_property(self):
        matches = [make_match("big", quotes=(quote("x", 2.10, 2.10),))]
        report = score_matches(matches)
        assert [r.match_id for r in report.arbitrage_opportunities] == ["big"]


class TestMixedTimestamps:
    def test_naive_and_aware_quotes_still_score(self):
        naive = BookQuote("x", 2.0, 1.9, timestamp=T0.replace(tzinfo=None))
        aware = quote("x", 2.1, 1.85, hours=2)
        report = score_matches([make_match(quotes=(naive, aware))])
        assert report.failures == ()
        assert report.results[0].smart_score.components.odds_movement != 50.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
