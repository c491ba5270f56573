"""
FastAPI application for the arbcalc stake and profit engine.
Exposes the leg, arbitrage, hedge, market, protection and settlement calculators.
"""

from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime, timezone
import logging
import os

from dotenv import load_dotenv
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from arbcalc import __version__
from arbcalc.core.validation import ValidationError
from arbcalc.schemas import (
    ArbitrageRequest,
    ArbitrageResponse,
    HedgeRequest,
    HedgeResponse,
    LegResolveRequest,
    LegResolveResponse,
    MarketRequest,
    MarketResponse,
    ProtectionRequest,
    ProtectionResponse,
    SettleRequest,
    SettlementResponse,
)
from arbcalc.services.calculator import CalculatorService, get_calculator_service
from arbcalc.services.settlement import settle_legs

load_dotenv()

# Logging setup
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("Starting arbcalc %s", __version__)
    get_calculator_service()
    yield
    logger.info("Shutting down arbcalc")


app = FastAPI(
    title="arbcalc",
    description="Arbitrage and bonus-extraction stake calculator",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    """Health check"""
    return {
        "app": "arbcalc",
        "version": __version__,
        "status": "operational",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


# ============================================================================
# CALCULATORS
# ============================================================================

@app.post("/api/legs/resolve", response_model=LegResolveResponse)
async def resolve_leg_endpoint(
    payload: LegResolveRequest,
    service: CalculatorService = Depends(get_calculator_service),
):
    """Collapse a leg's entries into a weighted odd and total stake."""
    resolution = service.resolve_leg([e.to_entry() for e in payload.entries])
    return LegResolveResponse.model_validate(asdict(resolution))


@app.post("/api/arbitrage/resolve", response_model=ArbitrageResponse)
async def resolve_arbitrage_endpoint(
    payload: ArbitrageRequest,
    service: CalculatorService = Depends(get_calculator_service),
):
    """Evaluate every outcome of a book; optionally solve stakes around a fixed leg."""
    result = service.resolve_arbitrage(
        [leg.to_leg() for leg in payload.legs],
        fixed_leg_index=payload.fixed_leg_index,
        distribution=payload.distribution,
        stake_step=payload.stake_step,
        directed_leg_indices=payload.directed_leg_indices,
    )
    return ArbitrageResponse.model_validate(asdict(result))


@app.post("/api/hedge/solve", response_model=HedgeResponse)
async def solve_hedge_endpoint(
    payload: HedgeRequest,
    service: CalculatorService = Depends(get_calculator_service),
):
    """Solve the lay stake for a qualifying bet or free bet."""
    result, rating = service.solve_hedge(
        back_stake=payload.back_stake,
        back_odd=payload.back_odd,
        lay_odd=payload.lay_odd,
        mode=payload.mode,
        commission_pct=payload.commission_pct,
    )
    return HedgeResponse(**asdict(result), rating=rating)


@app.post("/api/market/analyze", response_model=MarketResponse)
async def analyze_market_endpoint(
    payload: MarketRequest,
    service: CalculatorService = Depends(get_calculator_service),
):
    """Margin, fair probabilities and balanced stakes for a set of quoted odds."""
    analysis = service.analyze_market(payload.odds, payload.total_stake)
    return MarketResponse.model_validate(asdict(analysis))


@app.post("/api/protection/solve", response_model=ProtectionResponse)
async def solve_protection_endpoint(
    payload: ProtectionRequest,
    service: CalculatorService = Depends(get_calculator_service),
):
    """Lay stake ladder that protects a double, treble or accumulator."""
    result = service.solve_protection(
        payload.initial_stake,
        [leg.to_leg() for leg in payload.legs],
        commission_pct=payload.commission_pct,
    )
    return ProtectionResponse.model_validate(asdict(result))


@app.post("/api/arbitrage/settle", response_model=SettlementResponse)
async def settle_endpoint(
    payload: SettleRequest,
    service: CalculatorService = Depends(get_calculator_service),
):
    """Realised P&L of a book from externally reported leg outcomes."""
    try:
        result = settle_legs(
            [leg.to_leg() for leg in payload.legs],
            payload.outcomes,
            config=service.config,
        )
    except ValidationError as exc:
        logger.info("Settlement rejected: %s", exc)
        raise
    return SettlementResponse.model_validate(asdict(result))


# ============================================================================
# ERROR HANDLING
# ============================================================================

@app.exception_handler(ValidationError)
async def validation_exception_handler(request, exc: ValidationError):
    """Calculator input rejected by the validation gate"""
    return JSONResponse(
        status_code=422,
        content={"detail": "validation failed", "issues": exc.as_dicts()},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Catch-all exception handler"""
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": type(exc).__name__}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
