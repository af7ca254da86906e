from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from cashflow.config import Settings, configure_logging
from cashflow.forecast import calculate_forecast, forecast_summary
from cashflow.gain_loss import GainLossTotals, calculate_gain_loss
from cashflow.generation import generate_month_transactions
from cashflow.loans import apply_loan_payments
from cashflow.models import AppSettings, Loan, MonthSetup, MonthSnapshot
from cashflow.months import new_month_snapshot
from cashflow.payroll import PaycheckResult, calculate_payroll_for_month, paycheck_estimates
from cashflow.payroll_settings import PayrollConfigurationError
from cashflow.schedule import format_month_id, month_range, parse_month_id
from cashflow.state_withholding import StateWithholdingRegistry, default_registry
from cashflow.storage import DocumentStore
from cashflow.tax_tables import TaxTableError, load_tax_table_set

logger = logging.getLogger(__name__)

router = APIRouter()


class MonthLocks:
    """One lock per month id so generation runs for a month never interleave."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def for_month(self, month_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(month_id, threading.Lock())


class ForecastPointResponse(BaseModel):
    date: date
    balances: Dict[str, Decimal]
    total_cash: Decimal


class ForecastSummaryResponse(BaseModel):
    projected_end_balance: Decimal
    lowest_projected_balance: Decimal
    lowest_balance_date: date | None = None


class ForecastResponse(BaseModel):
    month_id: str
    points: List[ForecastPointResponse]
    summary: ForecastSummaryResponse


class GenerationResponse(BaseModel):
    month_id: str
    mode: str
    generated_count: int
    transaction_count: int
    generation_version: int


class TotalsResponse(BaseModel):
    cash: Decimal
    investments: Decimal
    cash_and_investments: Decimal


class MonthlyGainLossResponse(BaseModel):
    month_id: str
    month_over_month: TotalsResponse
    year_to_date: TotalsResponse


class GainLossResponse(BaseModel):
    month_id: str
    month_over_month: TotalsResponse
    year_to_date: TotalsResponse
    monthly: List[MonthlyGainLossResponse]


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the API. Serve with `uvicorn cashflow.main:create_app --factory`."""
    settings = settings or Settings.from_env()
    configure_logging(settings)

    store = DocumentStore.from_url(settings.database_url)
    store.create_all()

    app = FastAPI(title="cashflow")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.store = store
    app.state.month_locks = MonthLocks()
    app.state.settings_lock = threading.Lock()
    app.state.state_withholding = default_registry()
    app.include_router(router)
    logger.info("cashflow API ready (database %s)", store.engine.url.render_as_string())
    return app


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def require_month_id(month_id: str) -> str:
    try:
        parse_month_id(month_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return month_id


def require_month(store: DocumentStore, month_id: str) -> MonthSnapshot:
    snapshot = store.get_month(require_month_id(month_id))
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Month snapshot not found.")
    return snapshot


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/settings", response_model=AppSettings)
def get_settings(request: Request) -> AppSettings:
    return get_store(request).get_settings()


@router.put("/settings", response_model=AppSettings)
def update_settings(payload: AppSettings, request: Request) -> AppSettings:
    with request.app.state.settings_lock:
        return get_store(request).save_settings(payload)


@router.get("/tax-tables", response_model=list[int])
def list_tax_tables(request: Request) -> list[int]:
    return get_store(request).list_tax_table_years()


@router.get("/tax-tables/{tax_year}")
def get_tax_table(tax_year: int, request: Request) -> dict:
    table = get_store(request).get_tax_table(tax_year)
    if table is None:
        raise HTTPException(status_code=404, detail="Tax table not found.")
    return table.model_dump(mode="json", by_alias=True)


@router.put("/tax-tables/{tax_year}")
def save_tax_table(tax_year: int, request: Request, payload: Any = Body(...)) -> dict:
    try:
        table = load_tax_table_set(payload)
    except TaxTableError as exc:
        raise HTTPException(status_code=400, detail=exc.errors) from exc
    if table.tax_year != tax_year:
        raise HTTPException(status_code=400, detail="tax_year does not match the request path.")
    stored = get_store(request).save_tax_table(table)
    return stored.model_dump(mode="json", by_alias=True)


@router.get("/months", response_model=list[str])
def list_months(request: Request) -> list[str]:
    return get_store(request).list_months()


@router.get("/months/{month_id}", response_model=MonthSnapshot)
def get_month(month_id: str, request: Request) -> MonthSnapshot:
    return require_month(get_store(request), month_id)


@router.post("/months/{month_id}", response_model=MonthSnapshot, status_code=201)
def create_month(month_id: str, request: Request) -> MonthSnapshot:
    store = get_store(request)
    app_settings = store.get_settings()
    with request.app.state.month_locks.for_month(require_month_id(month_id)):
        if store.get_month(month_id) is not None:
            raise HTTPException(status_code=409, detail="Month snapshot already exists.")
        previous = store.get_latest_month_before(month_id)
        snapshot = new_month_snapshot(month_id, app_settings, previous)
        logger.info(
            "Opening month %s from %s", month_id, previous.id if previous else "zero balances"
        )
        return store.upsert_month(snapshot)


@router.put("/months/{month_id}", response_model=MonthSnapshot)
def save_month(month_id: str, payload: MonthSnapshot, request: Request) -> MonthSnapshot:
    require_month_id(month_id)
    if payload.id != month_id:
        raise HTTPException(status_code=400, detail="Snapshot id does not match the request path.")
    with request.app.state.month_locks.for_month(month_id):
        return get_store(request).upsert_month(payload)


@router.delete("/months/{month_id}")
def delete_month(month_id: str, request: Request) -> dict:
    require_month_id(month_id)
    with request.app.state.month_locks.for_month(month_id):
        deleted = get_store(request).delete_month(month_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Month snapshot not found.")
    return {"status": "deleted"}


@router.post("/months/{month_id}/payroll", response_model=list[PaycheckResult])
def run_payroll(
    month_id: str,
    request: Request,
    state: Optional[str] = Query(None),
) -> list[PaycheckResult]:
    store = get_store(request)
    app_settings = store.get_settings()
    payroll_settings = app_settings.payroll_settings
    if payroll_settings is None:
        raise HTTPException(status_code=400, detail="Payroll settings are not configured.")
    tax_tables = store.get_tax_table(payroll_settings.tax_year)
    if tax_tables is None:
        raise HTTPException(
            status_code=400,
            detail=f"No tax table stored for tax year {payroll_settings.tax_year}.",
        )
    registry: StateWithholdingRegistry = request.app.state.state_withholding

    with request.app.state.month_locks.for_month(require_month_id(month_id)):
        snapshot = require_month(store, month_id)
        month_setup = snapshot.month_setup or MonthSetup(
            paycheck_schedule=payroll_settings.pay_cycle,
            paycheck_anchor_date=payroll_settings.paycheck_anchor_date,
            paycheck_category_id=payroll_settings.paycheck_category_id,
        )
        try:
            state_withholding = registry.resolve(state, payroll_settings.state_withholding_flat_rate)
            results = calculate_payroll_for_month(
                month_id,
                month_setup.paycheck_schedule,
                month_setup.paycheck_anchor_date or payroll_settings.paycheck_anchor_date,
                payroll_settings,
                tax_tables,
                state_withholding=state_withholding,
            )
        except (PayrollConfigurationError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        store.upsert_month(
            replace(
                snapshot,
                month_setup=replace(month_setup, paycheck_estimates=paycheck_estimates(results)),
            )
        )
    return results


@router.post("/months/{month_id}/generate", response_model=GenerationResponse)
def generate_month(
    month_id: str,
    request: Request,
    mode: str = Query("missing"),
) -> GenerationResponse:
    store = get_store(request)
    recurring_items = store.get_settings().recurring_items
    with request.app.state.month_locks.for_month(require_month_id(month_id)):
        snapshot = require_month(store, month_id)
        try:
            result = generate_month_transactions(
                month_id,
                snapshot.month_setup or MonthSetup(),
                recurring_items,
                snapshot.transactions,
                mode,
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        store.upsert_month(
            replace(snapshot, transactions=result.transactions, month_setup=result.month_setup)
        )
    return GenerationResponse(
        month_id=month_id,
        mode=mode.strip().lower(),
        generated_count=result.generated_count,
        transaction_count=len(result.transactions),
        generation_version=result.month_setup.generation_version,
    )


@router.get("/months/{month_id}/forecast", response_model=ForecastResponse)
def month_forecast(month_id: str, request: Request) -> ForecastResponse:
    snapshot = require_month(get_store(request), month_id)
    points = calculate_forecast(snapshot)
    summary = forecast_summary(points)
    return ForecastResponse(
        month_id=month_id,
        points=[
            ForecastPointResponse(
                date=point.date,
                balances=point.balances,
                total_cash=point.total_cash,
            )
            for point in points
        ],
        summary=ForecastSummaryResponse(
            projected_end_balance=summary.projected_end_balance,
            lowest_projected_balance=summary.lowest_projected_balance,
            lowest_balance_date=summary.lowest_balance_date,
        ),
    )


@router.get("/months/{month_id}/gain-loss", response_model=GainLossResponse)
def month_gain_loss(month_id: str, request: Request) -> GainLossResponse:
    store = get_store(request)
    year, _ = parse_month_id(require_month_id(month_id))
    app_settings = store.get_settings()
    # December of the prior year is the previous month for January
    month_ids = [format_month_id(year - 1, 12)] + month_range(format_month_id(year, 1), month_id)
    report = calculate_gain_loss(
        month_id,
        app_settings.accounts,
        store.get_months(month_ids),
        app_settings.gain_loss_history,
    )
    return GainLossResponse(
        month_id=report.month_id,
        month_over_month=_totals_response(report.month_over_month),
        year_to_date=_totals_response(report.year_to_date),
        monthly=[
            MonthlyGainLossResponse(
                month_id=row.month_id,
                month_over_month=_totals_response(row.month_over_month),
                year_to_date=_totals_response(row.year_to_date),
            )
            for row in report.monthly
        ],
    )


@router.post("/months/{month_id}/loan-payments", response_model=list[Loan])
def apply_month_loan_payments(month_id: str, request: Request) -> list[Loan]:
    store = get_store(request)
    snapshot = require_month(store, month_id)
    with request.app.state.settings_lock:
        app_settings = store.get_settings()
        loans = apply_loan_payments(month_id, app_settings.loans, snapshot.transactions)
        store.save_settings(replace(app_settings, loans=loans))
    return loans


def _totals_response(totals: GainLossTotals) -> TotalsResponse:
    return TotalsResponse(
        cash=totals.cash,
        investments=totals.investments,
        cash_and_investments=totals.cash_and_investments,
    )

