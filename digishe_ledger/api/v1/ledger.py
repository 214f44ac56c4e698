"""Ledger endpoints: dashboard data, onboarding, entries, savings, categories, insight"""

from fastapi import APIRouter, Depends, Query

from digishe_ledger.api.v1.schemas import (
    BusinessSchema,
    CategoriesResponse,
    CategoryRequest,
    EntryRequest,
    EntryResponse,
    EntrySchema,
    IdentitySchema,
    InsightResponse,
    LedgerResponse,
    OnboardingRequest,
    SavingRequest,
    SavingResponse,
    SavingSchema,
    StatsSchema,
    WeeklyPointSchema,
)
from digishe_ledger.api.dependencies import get_insight_client, get_ledger_session, require_active_business
from digishe_ledger.domain.ledger import LedgerSession
from digishe_ledger.domain.models import EntryKind
from digishe_ledger.domain.summary import compute_stats, recent_entries, weekly_series
from digishe_ledger.infrastructure.clients.insight import InsightClient

router = APIRouter()

DEFAULT_TIP = "Keep up the great work!"


@router.get("/ledger", response_model=LedgerResponse)
async def get_ledger(session: LedgerSession = Depends(get_ledger_session)):
    """
    Reload the session from storage and return everything the dashboard shows.

    Returns:
        Identity, business, entries, savings, totals and the 7-day chart
    """
    snapshot = await session.load()
    stats = compute_stats(snapshot.entries, snapshot.savings)

    return LedgerResponse(
        identity=IdentitySchema.from_domain(snapshot.identity) if snapshot.identity else None,
        business=BusinessSchema.from_domain(snapshot.business) if snapshot.business else None,
        entries=[EntrySchema.from_domain(e) for e in snapshot.entries],
        savings=[SavingSchema.from_domain(s) for s in snapshot.savings],
        stats=StatsSchema(
            total_sales=stats.total_sales,
            total_expenses=stats.total_expenses,
            profit=stats.profit,
            total_savings=stats.total_savings,
            savings_by_destination=stats.savings_by_destination,
        ),
        weekly=[
            WeeklyPointSchema(label=p.label, day=p.day, sales=p.sales, expenses=p.expenses)
            for p in weekly_series(snapshot.entries, session.today())
        ],
    )


@router.post("/onboarding", response_model=BusinessSchema, status_code=201)
async def complete_onboarding(
    body: OnboardingRequest,
    session: LedgerSession = Depends(get_ledger_session),
):
    """Register the caller's business; it starts inactive until an admin approves it"""
    business = await session.complete_onboarding(
        name=body.name,
        category=body.category,
        location=body.location,
        start_date=body.start_date,
    )
    return BusinessSchema.from_domain(business)


@router.post(
    "/entries",
    response_model=EntryResponse,
    status_code=201,
    dependencies=[Depends(require_active_business)],
)
async def record_entry(body: EntryRequest, session: LedgerSession = Depends(get_ledger_session)):
    """Record a sale or expense; returns before the storage write completes"""
    entry = session.record_entry(body.kind, body.amount, body.category)
    return EntryResponse(
        entry=EntrySchema.from_domain(entry),
        offer_custom_category=session.take_category_prompt(),
    )


@router.post(
    "/savings",
    response_model=SavingResponse,
    status_code=201,
    dependencies=[Depends(require_active_business)],
)
async def record_saving(body: SavingRequest, session: LedgerSession = Depends(get_ledger_session)):
    saving = session.record_saving(body.amount, body.destination)
    return SavingResponse(
        saving=SavingSchema.from_domain(saving),
        offer_custom_category=session.take_category_prompt(),
    )


@router.get("/entries/recent", response_model=list[EntrySchema])
def get_recent_entries(
    kind: EntryKind = Query(..., description="sale or expense"),
    session: LedgerSession = Depends(get_ledger_session),
):
    return [EntrySchema.from_domain(e) for e in recent_entries(session.entries, kind)]


@router.get("/categories", response_model=CategoriesResponse)
def get_categories(session: LedgerSession = Depends(get_ledger_session)):
    return CategoriesResponse(
        sale=session.categories(EntryKind.SALE),
        expense=session.categories(EntryKind.EXPENSE),
    )


@router.post("/categories", response_model=CategoriesResponse, status_code=201)
def add_category(body: CategoryRequest, session: LedgerSession = Depends(get_ledger_session)):
    """Add a custom category for this session"""
    session.add_custom_category(body.kind, body.name)
    return get_categories(session)


@router.get("/insight", response_model=InsightResponse)
async def get_insight(
    session: LedgerSession = Depends(get_ledger_session),
    insight_client: InsightClient = Depends(get_insight_client),
):
    """One-sentence business tip; always answers, falling back to a static tip"""
    if session.business is None or not session.entries:
        return InsightResponse(tip=DEFAULT_TIP)
    return InsightResponse(tip=await insight_client.generate(session.business, session.entries))
