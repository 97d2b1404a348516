"""
Tests for the Monte Carlo bankroll simulator.
Run with: pytest tests/test_bankroll_sim.py -v
"""

import numpy as np
import pytest

from smartedge.core.errors import ConfigurationError, InvalidInputError, SimulationCancelled
from smartedge.services.bankroll_sim import (
    CancellationToken,
    SettledBet,
    SimulationConfig,
    StakeRule,
    WinProbSource,
    _bands,
    optimal_unit_size,
    risk_of_ruin,
    simulate_bankroll,
    simulate_scenarios,
)


def _cfg(**overrides):
    params = dict(
        starting_bankroll=1000.0,
        paths=200,
        bets_per_path=50,
        stake_rule=StakeRule.kelly(),
        win_prob_source=WinProbSource.fixed(0.55, 1.95),
        seed=42,
    )
    params.update(overrides)
    return SimulationConfig(**params)


# ---------------------------------------------------------------------------
# Staking rules
# ---------------------------------------------------------------------------

class TestStakeRule:
    def test_flat_capped_at_bankroll(self):
        rule = StakeRule.flat(10.0)
        assert rule.stake(500.0, 0.5, 2.0) == 10.0
        assert rule.stake(5.0, 0.5, 2.0) == 5.0

    def test_percentage(self):
        assert StakeRule.percentage(10.0).stake(200.0, 0.5, 2.0) == pytest.approx(20.0)

    def test_kelly(self):
        assert StakeRule.kelly().stake(1000.0, 0.55, 2.0) == pytest.approx(25.0)
        assert StakeRule.kelly().stake(1000.0, 0.45, 2.0) == 0.0

    def test_busted_bankroll_stakes_nothing(self):
        assert StakeRule.flat(10.0).stake(0.0, 0.5, 2.0) == 0.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            dict(kind="martingale"),
            dict(kind="flat", amount=0.0),
            dict(kind="percentage", amount=150.0),
            dict(kind="kelly", kelly_multiplier=0.0),
            dict(kind="kelly", max_fraction=1.5),
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ConfigurationError):
            StakeRule(**kwargs)


# ---------------------------------------------------------------------------
# Win probability sources
# ---------------------------------------------------------------------------

class TestWinProbSource:
    @pytest.mark.parametrize("p", [0.0, 1.0, -0.1, float("nan")])
    def test_probability_bounds(self, p):
        with pytest.raises(ConfigurationError):
            WinProbSource.fixed(p, 2.0)

    def test_odds_must_be_valid(self):
        with pytest.raises(ConfigurationError):
            WinProbSource.fixed(0.5, 1.0)

    def test_empty(self):
        with pytest.raises(ConfigurationError):
            WinProbSource.from_samples([])

    def test_from_settled_bets(self):
        bets = [SettledBet(2.0, True), SettledBet(1.8, False), SettledBet(2.2, True), SettledBet(1.9, False)]
        source = WinProbSource.from_settled_bets(bets)
        assert source.samples == ((0.5, 2.0), (0.5, 1.8), (0.5, 2.2), (0.5, 1.9))

    def test_from_settled_bets_all_won(self):
        with pytest.raises(ConfigurationError):
            WinProbSource.from_settled_bets([SettledBet(2.0, True), SettledBet(2.0, True)])


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class TestSimulationConfig:
    @pytest.mark.parametrize(
        "overrides",
        [
            dict(starting_bankroll=0.0),
            dict(starting_bankroll=float("inf")),
            dict(paths=0),
            dict(bets_per_path=-1),
            dict(paths=True),
            dict(histogram_bins=0),
            dict(workers=0),
            dict(seed=-1),
        ],
    )
    def test_invalid(self, overrides):
        with pytest.raises(ConfigurationError):
            _cfg(**overrides)


# ---------------------------------------------------------------------------
# simulate_bankroll()
# ---------------------------------------------------------------------------

class TestSimulateBankroll:
    def test_deterministic_for_seed(self):
        assert simulate_bankroll(_cfg()).to_dict() == simulate_bankroll(_cfg()).to_dict()

    def test_different_seeds_differ(self):
        a = simulate_bankroll(_cfg(seed=1))
        b = simulate_bankroll(_cfg(seed=2))
        assert a.avg_final_bankroll != b.avg_final_bankroll

    def test_parallel_matches_sequential(self):
        sequential = simulate_bankroll(_cfg(workers=None))
        parallel = simulate_bankroll(_cfg(workers=4))
        assert parallel.to_dict() == sequential.to_dict()

    def test_bands(self):
        result = simulate_bankroll(_cfg())
        assert len(result.bands) == 51
        first = result.bands[0]
        assert first.p5 == first.p50 == first.p95 == 1000.0
        assert all(b.is_ordered() for b in result.bands)
        assert [b.step for b in result.bands] == list(range(51))

    def test_probabilities_in_range(self):
        result = simulate_bankroll(_cfg())
        assert 0.0 <= result.profit_probability <= 1.0
        assert 0.0 <= result.bust_probability <= 1.0
        assert 0.0 <= result.avg_max_drawdown <= 1.0

    def test_histograms_cover_every_path(self):
        result = simulate_bankroll(_cfg(histogram_bins=8))
        assert len(result.pl_histogram) == 8
        assert sum(h.count for h in result.pl_histogram) == 200
        assert len(result.drawdown_histogram) == 10
        assert sum(h.count for h in result.drawdown_histogram) == 200

    def test_percentiles_ordered(self):
        result = simulate_bankroll(_cfg())
        values = [result.profit_percentiles[q] for q in (5, 25, 50, 75, 95)]
        assert values == sorted(values)
        assert result.final_bankroll_percentiles[50] == pytest.approx(result.profit_percentiles[50] + 1000.0)

    def test_all_in_long_shots_bust(self):
        cfg = _cfg(
            stake_rule=StakeRule.percentage(100.0),
            win_prob_source=WinProbSource.fixed(0.05, 2.0),
            bets_per_path=20,
        )
        result = simulate_bankroll(cfg)
        assert result.bust_probability > 0.99
        assert result.bands[-1].p50 == 0.0

    def test_kelly_without_edge_never_bets(self):
        cfg = _cfg(win_prob_source=WinProbSource.fixed(0.5, 2.0))
        result = simulate_bankroll(cfg)
        assert result.profit_probability == 0.0
        assert result.bust_probability == 0.0
        assert result.avg_max_drawdown == 0.0
        assert result.bands[-1].p5 == result.bands[-1].p95 == 1000.0

    def test_unseeded_run_reports_replayable_seed(self):
        first = simulate_bankroll(_cfg(seed=None, paths=20))
        replay = simulate_bankroll(_cfg(seed=first.seed, paths=20))
        assert replay.to_dict() == first.to_dict()

    def test_cancelled_before_start(self):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(SimulationCancelled) as exc:
            simulate_bankroll(_cfg(), token)
        assert exc.value.completed_paths == 0
        assert exc.value.total_paths == 200

    def test_cancelled_parallel(self):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(SimulationCancelled):
            simulate_bankroll(_cfg(workers=4), token)

    def test_to_dict_keys(self):
        data = simulate_bankroll(_cfg(paths=10, bets_per_path=5)).to_dict()
        assert data["seed"] == 42
        assert set(data["profit_percentiles"]) == {"5", "25", "50", "75", "95"}
        assert len(data["bands"]) == 6


class TestBands:
    def test_bands_are_raw_percentiles(self):
        matrix = np.array([[1000.0, 900.0], [1000.0, 1100.0], [1000.0, 1300.0], [1000.0, 0.0]])
        bands = _bands(matrix)
        assert bands[0].p5 == bands[0].p95 == 1000.0
        assert bands[1].p50 == pytest.approx(1000.0)
        assert bands[1].p5 == pytest.approx(np.percentile([0.0, 900.0, 1100.0, 1300.0], 5))

    def test_out_of_order_percentiles_rejected(self, monkeypatch):
        real = np.percentile
        monkeypatch.setattr(np, "percentile", lambda a, q, axis=None: real(a, q, axis=axis)[::-1])
        with pytest.raises(ArithmeticError):
            _bands(np.array([[1.0, 2.0], [1.0, 5.0], [1.0, 9.0]]))


# ---------------------------------------------------------------------------
# Scenarios and sizing
# ---------------------------------------------------------------------------

class TestScenarios:
    def test_shift_bounds(self):
        source = WinProbSource(((0.55, 2.0), (0.62, 1.9), (0.70, 1.5), (0.47, 2.2), (0.30, 4.0)))
        bull = source.shifted(0.05)
        bear = source.shifted(-0.05)
        assert [p for p, _ in bull.samples] == pytest.approx([0.60, 0.65, 0.70, 0.52, 0.35])
        assert [p for p, _ in bear.samples] == pytest.approx([0.50, 0.57, 0.65, 0.45, 0.30])
        assert [o for _, o in bull.samples] == [2.0, 1.9, 1.5, 2.2, 4.0]

    def test_shared_seed_and_ordering(self):
        # Flat stakes on shared draws: a higher win probability never ends lower
        cfg = _cfg(stake_rule=StakeRule.flat(20.0), paths=100, bets_per_path=40)
        result = simulate_scenarios(cfg)
        assert result.realistic.to_dict() == simulate_bankroll(cfg).to_dict()
        assert result.bull.seed == result.realistic.seed == result.bear.seed == 42
        assert (
            result.bull.avg_final_bankroll
            >= result.realistic.avg_final_bankroll
            >= result.bear.avg_final_bankroll
        )
        assert set(result.to_dict()) == {"bull", "realistic", "bear"}

    def test_unseeded_runs_share_one_seed(self):
        result = simulate_scenarios(_cfg(seed=None, paths=10, bets_per_path=5))
        assert result.bull.seed == result.realistic.seed == result.bear.seed


class TestSizing:
    def test_risk_of_ruin(self):
        assert risk_of_ruin(1000.0, 50.0, 0.55, 1.95) == pytest.approx((0.45 / 0.55) ** 20)

    def test_no_edge_is_certain_ruin(self):
        assert risk_of_ruin(1000.0, 50.0, 0.50, 1.90) == 1.0

    def test_bigger_units_raise_ruin(self):
        assert risk_of_ruin(1000.0, 100.0, 0.55, 1.95) > risk_of_ruin(1000.0, 25.0, 0.55, 1.95)

    def test_optimal_unit_size(self):
        # full Kelly 0.10 x 0.25 = 2.5% of bankroll
        assert optimal_unit_size(1000.0, 0.55, 2.0) == pytest.approx(25.0)

    def test_no_edge_unit_is_one_percent(self):
        assert optimal_unit_size(1234.0, 0.45, 2.0) == pytest.approx(12.34)

    def test_bad_multiplier(self):
        with pytest.raises(ConfigurationError):
            optimal_unit_size(1000.0, 0.55, 2.0, kelly_multiplier=1.5)

    @pytest.mark.parametrize(
        "args",
        [
            (0.0, 50.0, 0.55, 1.95),
            (1000.0, 0.0, 0.55, 1.95),
            (1000.0, 50.0, 1.0, 1.95),
            (1000.0, 50.0, 0.55, 1.0),
            (float("nan"), 50.0, 0.55, 1.95),
        ],
    )
    def test_invalid_inputs(self, args):
        with pytest.raises(InvalidInputError):
            risk_of_ruin(*args)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
