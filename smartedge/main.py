"""
FastAPI application for SmartEdge
JSON endpoints over the scoring core: predictions, arbitrage, SmartScore,
betting metrics, bankroll simulation and the batch scoring pass.
"""

from fastapi import FastAPI, Depends, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from functools import lru_cache
import logging
import os

from smartedge.core.errors import ConfigurationError, InvalidInputError, SimulationCancelled
from smartedge.core.odds_math import american_to_decimal
from smartedge.core.policy import ScoringPolicy
from smartedge.core.types import Outcome
from smartedge.services.arbitrage import detect_arbitrage
from smartedge.services.bankroll_sim import (
    optimal_unit_size,
    risk_of_ruin,
    simulate_bankroll,
    simulate_scenarios,
)
from smartedge.services.ensemble import consensus, predict
from smartedge.services.metrics import betting_metrics, should_place_bet
from smartedge.services.scoring import score_matches
from smartedge.services.smart_score import smart_score
from smartedge.schemas import (
    ArbitrageRequest,
    BankrollRiskRequest,
    MetricsRequest,
    PredictRequest,
    PredictResponse,
    ScoreRequest,
    ScoreResponse,
    SimulateRequest,
    SmartScoreRequest,
    performances_to_domain,
    prediction_to_dict,
)

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

VERSION = "1.0"


@lru_cache(maxsize=1)
def get_policy() -> ScoringPolicy:
    """Scoring policy from .env / environment, loaded once per process."""
    return ScoringPolicy.from_env()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    policy = get_policy()
    logger.info(
        "Starting SmartEdge %s (kelly x%.2f, cap %.2f, tiers %.0f/%.0f)",
        VERSION, policy.kelly_multiplier, policy.max_kelly_fraction,
        policy.tier_high, policy.tier_medium,
    )
    yield
    logger.info("Shutting down SmartEdge")


app = FastAPI(
    title="SmartEdge",
    description="Sports betting intelligence: ensemble picks, SmartScore, arbitrage and bankroll risk",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "http://localhost:3000").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _unprocessable(exc: Exception) -> HTTPException:
    logger.warning("Rejected request: %s", exc)
    return HTTPException(status_code=422, detail=str(exc))


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    return {
        "app": "SmartEdge",
        "version": VERSION,
        "status": "operational",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/health")
async def health_check(policy: ScoringPolicy = Depends(get_policy)):
    """Health check endpoint"""
    return {
        "status": "healthy",
        "policy": {
            "weights": policy.weights.as_dict(),
            "kelly_multiplier": policy.kelly_multiplier,
            "max_kelly_fraction": policy.max_kelly_fraction,
            "model_prob_weight": policy.model_prob_weight,
        },
    }


# ============================================================================
# SCORING ENDPOINTS
# ============================================================================

@app.post("/api/predict", response_model=PredictResponse)
async def predict_match(payload: PredictRequest):
    """Run the three predictors on one match and vote a consensus."""
    match = payload.match.to_domain()
    features = payload.features.to_domain() if payload.features else None
    predictions = predict(match, features, performances_to_domain(payload.performances))
    return PredictResponse(
        match_id=match.match_id,
        predictions=[prediction_to_dict(p) for p in predictions],
        consensus=consensus(predictions).to_dict(),
    )


@app.post("/api/arbitrage")
async def arbitrage(payload: ArbitrageRequest):
    try:
        result = detect_arbitrage(payload.match.to_domain(), payload.total_stake)
    except ConfigurationError as exc:
        raise _unprocessable(exc)
    return result.to_dict()


@app.post("/api/smart-score")
async def score_one(
    payload: SmartScoreRequest,
    policy: ScoringPolicy = Depends(get_policy),
):
    """
    SmartScore for one match.

    Uses the caller's predictions when given, otherwise runs the ensemble.
    """
    match = payload.match.to_domain()
    features = payload.features.to_domain() if payload.features else None
    performances = performances_to_domain(payload.performances)
    try:
        if payload.predictions is not None:
            predictions = [p.to_domain() for p in payload.predictions]
            if not match.has_draw_market and any(
                p.recommended is Outcome.DRAW for p in predictions
            ):
                raise InvalidInputError(
                    f"Match {match.match_id} has no draw market; draw predictions are not allowed."
                )
        else:
            predictions = predict(match, features, performances)
        arb = detect_arbitrage(match)
        result = smart_score(match, predictions, arb, features, performances, policy)
    except (ConfigurationError, InvalidInputError) as exc:
        raise _unprocessable(exc)
    return result.to_dict()


@app.post("/api/metrics")
async def metrics(
    payload: MetricsRequest,
    policy: ScoringPolicy = Depends(get_policy),
):
    """EV, Kelly and CLV for one prediction at a given price."""
    odds = payload.decimal_odds
    try:
        if odds is None and payload.american_odds is not None:
            odds = american_to_decimal(payload.american_odds)
        result = betting_metrics(payload.prediction.to_domain(), odds, payload.closing_odds, policy)
    except ValueError as exc:
        raise _unprocessable(exc)
    body = prediction_to_dict(result)
    body["decision"] = should_place_bet(result.metrics, payload.min_clv, payload.min_ev).to_dict()
    return body


@app.post("/api/simulate")
def simulate(payload: SimulateRequest):
    """
    Monte Carlo bankroll projection.

    Declared sync so FastAPI runs it in the threadpool; the simulator is
    CPU-bound.
    """
    try:
        cfg = payload.to_domain()
        result = simulate_scenarios(cfg) if payload.scenarios else simulate_bankroll(cfg)
    except ConfigurationError as exc:
        raise _unprocessable(exc)
    except SimulationCancelled as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return result.to_dict()


@app.post("/api/bankroll/risk")
async def bankroll_risk(payload: BankrollRiskRequest):
    """Suggested unit size and gambler's-ruin estimate for a bankroll."""
    try:
        unit = payload.unit_size or optimal_unit_size(
            payload.bankroll, payload.win_prob, payload.decimal_odds, payload.kelly_multiplier
        )
        ruin = risk_of_ruin(payload.bankroll, unit, payload.win_prob, payload.decimal_odds)
    except ValueError as exc:
        raise _unprocessable(exc)
    return {"unit_size": unit, "risk_of_ruin": ruin}


@app.post("/api/score", response_model=ScoreResponse)
def score_batch(
    payload: ScoreRequest,
    policy: ScoringPolicy = Depends(get_policy),
):
    """Batch scoring pass; per-match failures are reported, not raised."""
    matches = [m.to_domain() for m in payload.matches]
    features = {match_id: f.to_domain() for match_id, f in payload.features.items()}
    try:
        report = score_matches(
            matches, features, performances_to_domain(payload.performances), policy
        )
    except ConfigurationError as exc:
        raise _unprocessable(exc)

    return ScoreResponse(
        scored=len(report.results),
        failed=len(report.failures),
        results=[r.to_dict() for r in report.results],
        failures=[{"match_id": f.match_id, "error": f.error} for f in report.failures],
        top_match_ids=[r.match.match_id for r in report.top_by_smart_score(payload.top)],
        arbitrage=[a.to_dict() for a in report.arbitrage_opportunities],
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
