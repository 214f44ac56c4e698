"""Dashboard aggregates: totals, weekly chart series, recent entries"""

from datetime import date
from decimal import Decimal
from typing import Dict, List
from digishe_ledger.domain.models import (
    EntryKind,
    LedgerEntry,
    LedgerStats,
    SavingDestination,
    SavingEntry,
    WeeklyPoint,
)
from digishe_ledger.utils.date_utils import last_n_days, short_weekday

ZERO = Decimal("0")


def _total(entries: List[LedgerEntry], kind: EntryKind) -> Decimal:
    return sum((e.amount for e in entries if e.kind == kind), ZERO)


def compute_stats(entries: List[LedgerEntry], savings: List[SavingEntry]) -> LedgerStats:
    """
    Totals shown on the dashboard.

    Profit is sales minus expenses; savings are reported separately and do
    not reduce profit.
    """
    total_sales = _total(entries, EntryKind.SALE)
    total_expenses = _total(entries, EntryKind.EXPENSE)

    by_destination: Dict[str, Decimal] = {d.value: ZERO for d in SavingDestination}
    for s in savings:
        by_destination[s.destination.value] += s.amount

    return LedgerStats(
        total_sales=total_sales,
        total_expenses=total_expenses,
        profit=total_sales - total_expenses,
        total_savings=sum(by_destination.values(), ZERO),
        savings_by_destination=by_destination,
    )


def weekly_series(entries: List[LedgerEntry], today: date | None = None) -> List[WeeklyPoint]:
    """Sales and expenses for each of the last 7 days, oldest first"""
    points = []
    for day in last_n_days(7, today):
        daily = [e for e in entries if e.occurred_on == day]
        points.append(
            WeeklyPoint(
                label=short_weekday(day),
                day=day,
                sales=_total(daily, EntryKind.SALE),
                expenses=_total(daily, EntryKind.EXPENSE),
            )
        )
    return points


def recent_entries(entries: List[LedgerEntry], kind: EntryKind, limit: int = 5) -> List[LedgerEntry]:
    """Most recent entries of one kind, newest first"""
    return [e for e in reversed(entries) if e.kind == kind][:limit]
