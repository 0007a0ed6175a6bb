"""
Trip Expense Ledger - FastAPI Web Backend

This module serves as the main entry point for the trip expense ledger
API using FastAPI.

Features:
    - RESTful API for managing trips, members, expenses and rates
    - Integration with Firebase Firestore backend
    - Balances and settlements recomputed from scratch on every request
    - Balances and settlements presented in any supported currency
    - Analytics and transparency reports (JPY)
    - Price check of HKD/AUD amounts in JPY

Endpoints:
    POST   /trips                                    - Create a new trip
    POST   /trips/{trip_id}/participants             - Add participant
    GET    /trips/{trip_id}/participants             - List participants
    DELETE /trips/{trip_id}/participants/{pid}       - Remove participant
    POST   /trips/{trip_id}/expenses                 - Add expense
    GET    /trips/{trip_id}/expenses                 - List expenses
    PUT    /trips/{trip_id}/expenses/{expense_id}    - Edit expense
    DELETE /trips/{trip_id}/expenses/{expense_id}    - Delete expense
    GET    /trips/{trip_id}/rates                    - Current rate table
    PUT    /trips/{trip_id}/rates                    - Set rates manually
    POST   /trips/{trip_id}/rates/refresh            - Refresh live rates
    GET    /trips/{trip_id}/convert                  - Price check into JPY
    GET    /trips/{trip_id}/display-currency         - Display currency
    PUT    /trips/{trip_id}/display-currency         - Set display currency
    GET    /trips/{trip_id}/balances                 - Net balances (JPY)
    GET    /trips/{trip_id}/settlement               - Who pays whom (JPY)
    GET    /trips/{trip_id}/summary                  - Everything, in display currency
    POST   /trips/{trip_id}/calculate                - Recompute and persist snapshot
    GET    /trips/{trip_id}/results                  - Last persisted snapshot

Usage:
    uvicorn main:app --reload
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional
from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from participants import add_participant, get_participants, remove_participant, Participant
from expenses import add_expense, update_expense, delete_expense, get_expenses, Expense
from currencies import BASE_CURRENCY, SUPPORTED_CURRENCIES, convert_to_base, get_rate
from splitter import compute_balances, calculate_participant_totals
from settlement import compute_settlement, compute_minimal_settlement
from analytics import generate_analytics
from rates import fetch_live_rates
from utils import explain_all_participants, present_balances, present_settlements, round_money
from firebase_store import (
    get_display_currency,
    get_rates,
    get_saved_balances,
    get_saved_settlements,
    save_balances,
    save_display_currency,
    save_rates,
    save_settlements
)
from config.firebase_config import get_db
from config.settings import configure_logging
from errors import ValidationError

configure_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# Pydantic Models for Request/Response Validation
# =============================================================================

class TripCreate(BaseModel):
    """Request model for creating a new trip."""
    name: Optional[str] = Field(None, description="Optional trip name")


class TripResponse(BaseModel):
    """Response model for trip creation."""
    trip_id: str
    message: str


class ParticipantCreate(BaseModel):
    """Request model for adding a participant."""
    name: str = Field(..., min_length=1, description="Participant name")
    avatar: Optional[str] = Field(None, description="Optional avatar image URL")


class ParticipantResponse(BaseModel):
    """Response model for participant data."""
    participant_id: str
    name: str
    avatar: Optional[str]


class ExpenseCreate(BaseModel):
    """Request model for adding or editing an expense."""
    amount: float = Field(..., gt=0, description="Expense amount (must be > 0)")
    currency: str = Field(BASE_CURRENCY, description="Currency code (JPY, HKD, AUD)")
    category: str = Field(..., min_length=1, description="Free-text category")
    paid_by: str = Field(..., min_length=1, description="Participant ID of payer")
    split_with: list[str] = Field(..., min_length=1, description="Participant IDs sharing the cost")
    date: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$", description="Expense date (YYYY-MM-DD)")


class ExpenseResponse(BaseModel):
    """Response model for expense data."""
    expense_id: str
    amount: float
    currency: str
    category: str
    paid_by: str
    split_with: list[str]
    date: str


class RatesUpdate(BaseModel):
    """Request model for setting rates manually."""
    rates: dict[str, float] = Field(..., description="Currency -> units of JPY per unit")


class RatesResponse(BaseModel):
    """Response model for the rate table."""
    base_currency: str
    rates: dict[str, float]


class ConversionResponse(BaseModel):
    """Response model for a quick price check."""
    amount: float
    currency: str
    rate: float
    amount_in_base: float
    base_currency: str


class DisplayCurrency(BaseModel):
    """Request/response model for the display currency."""
    currency: str


class SettlementItem(BaseModel):
    from_participant: str
    to_participant: str
    amount: float


class BalancesResponse(BaseModel):
    """Response model for net balances."""
    currency: str
    balances: dict[str, float]


class SettlementResponse(BaseModel):
    """Response model for settlement suggestions."""
    currency: str
    strategy: str
    settlements: list[SettlementItem]


class SummaryResponse(BaseModel):
    """Response model for the full trip summary."""
    currency: str
    rates: dict[str, float]
    balances: dict[str, float]
    settlements: list[SettlementItem]
    analytics: dict
    warnings: list[str]
    explanations: list


class ResultsResponse(BaseModel):
    """Response model for a persisted snapshot (JPY)."""
    balances: dict[str, float]
    settlements: list[SettlementItem]


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Trip Expense Ledger",
    description="Shared multi-currency trip expenses, balances and settlements",
    version="1.0.0"
)


# =============================================================================
# Helper Functions
# =============================================================================

def _generate_trip_id() -> str:
    """
    Generate a unique trip ID.

    Format: trip_{short_uuid}
    """
    return f"trip_{uuid.uuid4().hex[:8]}"


def _http_error(e: Exception) -> HTTPException:
    """Map a ledger exception onto an HTTP error."""
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, LookupError):
        return HTTPException(status_code=404, detail=str(e).strip("'\""))
    if isinstance(e, RuntimeError):
        return HTTPException(status_code=503, detail=str(e))
    logger.exception("Unexpected error")
    return HTTPException(status_code=500, detail=str(e))


def _require_trip(trip_id: str) -> None:
    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")
    if not db.collection("trips").document(trip_id).get().exists:
        raise LookupError(f"Trip {trip_id} not found")


def _load_trip_state(trip_id: str):
    """
    Fetch everything the ledger computation needs.

    Returns:
        tuple: (participants as dicts, expenses as dicts, rate table)
    """
    _require_trip(trip_id)
    participants = [p.to_dict() for p in get_participants(trip_id)]
    expenses = [e.to_dict() for e in get_expenses(trip_id)]
    rates = get_rates(trip_id)
    return participants, expenses, rates


def _settle(balances: dict, strategy: str) -> list[dict]:
    if strategy == "minimal":
        return compute_minimal_settlement(balances)
    return compute_settlement(balances)


def _resolve_currency(trip_id: str, currency: Optional[str]) -> str:
    if currency is None:
        return get_display_currency(trip_id)
    if currency not in SUPPORTED_CURRENCIES:
        raise ValidationError(f"currency must be one of {SUPPORTED_CURRENCIES}, got: {currency}")
    return currency


def _rates_response(rates: dict) -> RatesResponse:
    return RatesResponse(
        base_currency=BASE_CURRENCY,
        rates={currency: float(rate) for currency, rate in rates.items()}
    )


def _participant_response(p: Participant) -> ParticipantResponse:
    return ParticipantResponse(participant_id=p.participant_id, name=p.name, avatar=p.avatar)


def _expense_response(e: Expense) -> ExpenseResponse:
    return ExpenseResponse(**e.to_dict())


# =============================================================================
# API Endpoints
# =============================================================================

@app.post("/trips", response_model=TripResponse, status_code=201)
async def create_trip(trip_data: Optional[TripCreate] = None):
    """
    Create a new trip.

    Request flow:
        1. Generate unique trip_id
        2. Create trip document in Firestore
        3. Return trip_id to client
    """
    try:
        db = get_db()
        if db is None:
            raise HTTPException(status_code=503, detail="Database not available")

        trip_id = _generate_trip_id()
        db.collection("trips").document(trip_id).set({
            "trip_id": trip_id,
            "name": trip_data.name if trip_data and trip_data.name else trip_id,
            "created_at": datetime.now(timezone.utc).isoformat()
        })
        logger.info("Created trip %s", trip_id)

        return TripResponse(trip_id=trip_id, message="Trip created successfully")

    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)


@app.post("/trips/{trip_id}/participants", response_model=ParticipantResponse, status_code=201)
async def add_trip_participant(trip_id: str, participant_data: ParticipantCreate):
    """Add a participant to a trip."""
    try:
        _require_trip(trip_id)
        participant = add_participant(
            trip_id=trip_id,
            name=participant_data.name,
            avatar=participant_data.avatar
        )
        return _participant_response(participant)

    except Exception as e:
        raise _http_error(e)


@app.get("/trips/{trip_id}/participants", response_model=list[ParticipantResponse])
async def list_trip_participants(trip_id: str):
    """List the trip roster."""
    try:
        _require_trip(trip_id)
        return [_participant_response(p) for p in get_participants(trip_id)]

    except Exception as e:
        raise _http_error(e)


@app.delete("/trips/{trip_id}/participants/{participant_id}", response_model=ParticipantResponse)
async def remove_trip_participant(trip_id: str, participant_id: str):
    """Remove a participant that no expense refers to."""
    try:
        _require_trip(trip_id)
        return _participant_response(remove_participant(trip_id, participant_id))

    except Exception as e:
        raise _http_error(e)


@app.post("/trips/{trip_id}/expenses", response_model=ExpenseResponse, status_code=201)
async def add_trip_expense(trip_id: str, expense_data: ExpenseCreate):
    """
    Add an expense to a trip.

    Request flow:
        1. Validate input using Pydantic model
        2. Call add_expense() from expenses.py (checks roster and currency)
        3. Return created expense data
    """
    try:
        _require_trip(trip_id)
        expense = add_expense(trip_id=trip_id, **expense_data.model_dump())
        return _expense_response(expense)

    except Exception as e:
        raise _http_error(e)


@app.get("/trips/{trip_id}/expenses", response_model=list[ExpenseResponse])
async def list_trip_expenses(trip_id: str):
    """List all expenses of a trip."""
    try:
        _require_trip(trip_id)
        return [_expense_response(e) for e in get_expenses(trip_id)]

    except Exception as e:
        raise _http_error(e)


@app.put("/trips/{trip_id}/expenses/{expense_id}", response_model=ExpenseResponse)
async def edit_trip_expense(trip_id: str, expense_id: str, expense_data: ExpenseCreate):
    """Replace an existing expense."""
    try:
        _require_trip(trip_id)
        fields = expense_data.model_dump()
        if fields["date"] is None:
            raise ValidationError("date is required when editing an expense")
        expense = update_expense(trip_id=trip_id, expense_id=expense_id, **fields)
        return _expense_response(expense)

    except Exception as e:
        raise _http_error(e)


@app.delete("/trips/{trip_id}/expenses/{expense_id}", status_code=204)
async def delete_trip_expense(trip_id: str, expense_id: str):
    """Delete an expense."""
    try:
        _require_trip(trip_id)
        delete_expense(trip_id, expense_id)

    except Exception as e:
        raise _http_error(e)


@app.get("/trips/{trip_id}/rates", response_model=RatesResponse)
async def get_trip_rates(trip_id: str):
    """Current rate table (defaults until rates are set or refreshed)."""
    try:
        _require_trip(trip_id)
        return _rates_response(get_rates(trip_id))

    except Exception as e:
        raise _http_error(e)


@app.put("/trips/{trip_id}/rates", response_model=RatesResponse)
async def set_trip_rates(trip_id: str, rates_data: RatesUpdate):
    """Set rates manually; currencies left out keep their default."""
    try:
        _require_trip(trip_id)
        return _rates_response(save_rates(trip_id, rates_data.rates))

    except Exception as e:
        raise _http_error(e)


@app.post("/trips/{trip_id}/rates/refresh", response_model=RatesResponse)
async def refresh_trip_rates(trip_id: str):
    """
    Refresh rates from the live rate service.

    A failed refresh leaves the previous rates in effect.
    """
    try:
        _require_trip(trip_id)
        rates = fetch_live_rates(get_rates(trip_id))
        return _rates_response(save_rates(trip_id, rates))

    except Exception as e:
        raise _http_error(e)


@app.get("/trips/{trip_id}/convert", response_model=ConversionResponse)
async def convert_trip_amount(
    trip_id: str,
    amount: float = Query(..., gt=0),
    currency: str = Query(...)
):
    """
    Price check: what an amount in `currency` costs in JPY at the trip's
    current rates. Nothing is stored.
    """
    try:
        _require_trip(trip_id)
        currency = _resolve_currency(trip_id, currency)
        rates = get_rates(trip_id)
        return ConversionResponse(
            amount=amount,
            currency=currency,
            rate=float(get_rate(rates, currency)),
            amount_in_base=round_money(convert_to_base(amount, currency, rates)),
            base_currency=BASE_CURRENCY
        )

    except Exception as e:
        raise _http_error(e)


@app.get("/trips/{trip_id}/display-currency", response_model=DisplayCurrency)
async def get_trip_display_currency(trip_id: str):
    try:
        _require_trip(trip_id)
        return DisplayCurrency(currency=get_display_currency(trip_id))

    except Exception as e:
        raise _http_error(e)


@app.put("/trips/{trip_id}/display-currency", response_model=DisplayCurrency)
async def set_trip_display_currency(trip_id: str, data: DisplayCurrency):
    try:
        _require_trip(trip_id)
        return DisplayCurrency(currency=save_display_currency(trip_id, data.currency))

    except Exception as e:
        raise _http_error(e)


@app.get("/trips/{trip_id}/balances", response_model=BalancesResponse)
async def get_trip_balances(trip_id: str):
    """Net balance per participant in JPY (positive = to receive)."""
    try:
        participants, expenses, rates = _load_trip_state(trip_id)
        balances = compute_balances(expenses, participants, rates)
        return BalancesResponse(
            currency=BASE_CURRENCY,
            balances={pid: round_money(b) for pid, b in balances.items()}
        )

    except Exception as e:
        raise _http_error(e)


@app.get("/trips/{trip_id}/settlement", response_model=SettlementResponse)
async def get_trip_settlement(
    trip_id: str,
    strategy: str = Query("greedy", pattern="^(greedy|minimal)$")
):
    """
    Recommended transfers in JPY.

    strategy=greedy matches largest debtors with largest creditors;
    strategy=minimal guarantees the fewest transfers for small groups.
    """
    try:
        participants, expenses, rates = _load_trip_state(trip_id)
        balances = compute_balances(expenses, participants, rates)
        settlements = _settle(balances, strategy)
        return SettlementResponse(
            currency=BASE_CURRENCY,
            strategy=strategy,
            settlements=present_settlements(settlements, BASE_CURRENCY, rates)
        )

    except Exception as e:
        raise _http_error(e)


@app.get("/trips/{trip_id}/summary", response_model=SummaryResponse)
async def get_trip_summary(
    trip_id: str,
    currency: Optional[str] = None,
    strategy: str = Query("greedy", pattern="^(greedy|minimal)$")
):
    """
    Full trip summary.

    Balances and settlements are converted into `currency` (default: the
    trip's display currency); analytics, warnings and explanations
    stay in JPY.
    """
    try:
        participants, expenses, rates = _load_trip_state(trip_id)
        currency = _resolve_currency(trip_id, currency)

        balances = compute_balances(expenses, participants, rates)
        settlements = _settle(balances, strategy)
        totals = calculate_participant_totals(expenses, participants, rates)
        analytics_result = generate_analytics(participants, expenses, rates)

        return SummaryResponse(
            currency=currency,
            rates={c: float(r) for c, r in rates.items()},
            balances=present_balances(balances, currency, rates),
            settlements=present_settlements(settlements, currency, rates),
            analytics=analytics_result["analytics"],
            warnings=analytics_result["warnings"],
            explanations=explain_all_participants(participants, expenses, rates, totals)
        )

    except Exception as e:
        raise _http_error(e)


@app.post("/trips/{trip_id}/calculate", response_model=ResultsResponse)
async def calculate_trip_results(
    trip_id: str,
    strategy: str = Query("greedy", pattern="^(greedy|minimal)$")
):
    """
    Recompute balances and settlements and persist them as a snapshot.

    Request flow:
        1. Fetch participants, expenses and rates from Firestore
        2. Calculate balances (splitter.py)
        3. Calculate settlements (settlement.py)
        4. Persist both (firebase_store.py)
    """
    try:
        participants, expenses, rates = _load_trip_state(trip_id)
        balances = compute_balances(expenses, participants, rates)
        settlements = _settle(balances, strategy)

        save_balances(trip_id, balances)
        save_settlements(trip_id, settlements)
        logger.info("Saved snapshot for trip %s: %d settlements", trip_id, len(settlements))

        return ResultsResponse(
            balances={pid: round_money(b) for pid, b in balances.items()},
            settlements=present_settlements(settlements, BASE_CURRENCY, rates)
        )

    except Exception as e:
        raise _http_error(e)


@app.get("/trips/{trip_id}/results", response_model=ResultsResponse)
async def get_trip_results(trip_id: str):
    """Last snapshot saved by /calculate."""
    try:
        _require_trip(trip_id)
        balances = get_saved_balances(trip_id)
        if not balances:
            raise LookupError(f"No results found. Call /trips/{trip_id}/calculate first.")

        settlements = [
            SettlementItem(
                from_participant=s["from_participant"],
                to_participant=s["to_participant"],
                amount=s["amount"]
            )
            for s in get_saved_settlements(trip_id)
        ]
        return ResultsResponse(balances=balances, settlements=settlements)

    except Exception as e:
        raise _http_error(e)


# =============================================================================
# Health Check Endpoint
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint to verify API is running."""
    return {"status": "healthy", "service": "Trip Expense Ledger"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
