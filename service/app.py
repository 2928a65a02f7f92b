"""
Settlement Engine — FastAPI backend.

Exposes the calculators to the web front end.  Every endpoint is a pure
computation over the records in the request body; nothing is persisted.

Endpoints
---------
  GET  /api/health                         → liveness probe
  POST /api/invoices/settlement            → status of one invoice
  POST /api/invoices/settlement/batch      → statuses of many invoices
  POST /api/proformas/availability         → amount still available on a proforma
  POST /api/stocktaking/items/impact       → reservation conflict for one item (or null)
  POST /api/stocktaking/impact             → all conflicts before completing a stocktaking
  POST /api/stocktaking/statistics         → discrepancy statistics
  POST /api/quotations/calculate           → COGS breakdown
"""
import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from config import Config
from engine.cache import ServiceCache
from engine.errors import EngineError, NotAProformaError, UnsupportedFormatError, UnsupportedUnitError
from engine.quotation import QuotationCalculator
from engine.settlement import SettlementCalculator
from engine.stocktaking import StocktakingReconciler, group_reservations_by_batch
from models.settlement import SettlementStatus

from .models import (
    ItemImpactRequest,
    ProformaAvailabilityRequest,
    QuotationRequest,
    SettlementBatchRequest,
    SettlementRequest,
    StocktakingImpactRequest,
    StocktakingStatisticsRequest,
)

logger = logging.getLogger(__name__)

LABOR_MATRIX_KEY = "labor_matrix"

app = FastAPI(title="Settlement Engine", docs_url=None, redoc_url=None)


# ---------------------------------------------------------------------------
# Config + cache live on app.state, created on first request
# ---------------------------------------------------------------------------

def configure(config: Config, cache: Optional[ServiceCache] = None) -> None:
    """Install a config and optionally a cache. Used by tests and embedding apps."""
    app.state.config = config
    app.state.cache = cache or ServiceCache(ttl_seconds=config.cache_ttl_seconds)


def get_config(request: Request) -> Config:
    state = request.app.state
    if getattr(state, "config", None) is None:
        state.config = Config()
    return state.config


def get_cache(request: Request, config: Config = Depends(get_config)) -> ServiceCache:
    state = request.app.state
    if getattr(state, "cache", None) is None:
        state.cache = ServiceCache(ttl_seconds=config.cache_ttl_seconds)
    return state.cache


def get_reconciler(config: Config = Depends(get_config)) -> StocktakingReconciler:
    return StocktakingReconciler(config.quantity_precision, config.discrepancy_epsilon)


def get_quotation_calculator(
    config: Config = Depends(get_config),
    cache: ServiceCache = Depends(get_cache),
) -> QuotationCalculator:
    matrix = cache.get_or_load(LABOR_MATRIX_KEY, config.load_labor_matrix)
    return QuotationCalculator(
        labor_matrix=matrix,
        pack_weight_options=config.pack_weight_options,
        cost_per_minute=config.cost_per_minute,
        minutes_per_gram=config.minutes_per_gram,
    )


def _settlement_payload(result: SettlementStatus) -> dict:
    return {**result.model_dump(), "display_status": result.display_status}


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.exception_handler(EngineError)
def engine_error_handler(request: Request, exc: EngineError):
    status = 422 if isinstance(exc, (UnsupportedUnitError, UnsupportedFormatError)) else 400
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


@app.get("/api/health")
def health():
    return {"status": "ok"}


# ── Settlement ──────────────────────────────────────────────────────────────

@app.post("/api/invoices/settlement")
def invoice_settlement(body: SettlementRequest, config: Config = Depends(get_config)):
    tolerance = body.tolerance if body.tolerance is not None else config.settlement_tolerance
    result = SettlementCalculator(tolerance).derive_status(body.invoice, body.now)
    return _settlement_payload(result)


@app.post("/api/invoices/settlement/batch")
def invoice_settlement_batch(body: SettlementBatchRequest, config: Config = Depends(get_config)):
    tolerance = body.tolerance if body.tolerance is not None else config.settlement_tolerance
    calculator = SettlementCalculator(tolerance)
    return [
        {"id": inv.id, "number": inv.number, **_settlement_payload(calculator.derive_status(inv, body.now))}
        for inv in body.invoices
    ]


@app.post("/api/proformas/availability")
def proforma_availability(body: ProformaAvailabilityRequest, config: Config = Depends(get_config)):
    calculator = SettlementCalculator(config.settlement_tolerance)
    try:
        result = calculator.proforma_availability(body.proforma, body.applied_amount)
    except NotAProformaError as exc:
        raise HTTPException(400, str(exc))
    return result.model_dump()


# ── Stocktaking ─────────────────────────────────────────────────────────────

@app.post("/api/stocktaking/items/impact")
def item_impact(body: ItemImpactRequest, reconciler: StocktakingReconciler = Depends(get_reconciler)):
    conflict = reconciler.check_reservation_impact(body.item, body.new_quantity, body.reservations)
    return {"conflict": conflict.model_dump() if conflict else None}


@app.post("/api/stocktaking/impact")
def stocktaking_impact(body: StocktakingImpactRequest, reconciler: StocktakingReconciler = Depends(get_reconciler)):
    conflicts = reconciler.aggregate_impact(body.items, group_reservations_by_batch(body.reservations))
    return {"conflicts": [c.model_dump() for c in conflicts], "count": len(conflicts)}


@app.post("/api/stocktaking/statistics")
def stocktaking_statistics(
    body: StocktakingStatisticsRequest,
    reconciler: StocktakingReconciler = Depends(get_reconciler),
):
    return reconciler.compute_statistics(body.items).model_dump()


# ── Quotation ───────────────────────────────────────────────────────────────

@app.post("/api/quotations/calculate")
def calculate_quotation(
    body: QuotationRequest,
    calculator: QuotationCalculator = Depends(get_quotation_calculator),
):
    return calculator.calculate(body.quotation).model_dump()
