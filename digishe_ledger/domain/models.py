"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class AuthIntent(str, Enum):
    LOGIN = "login"
    REGISTER = "register"


class BusinessCategory(str, Enum):
    FOOD = "Food"
    FASHION = "Fashion"
    TRADING = "Trading"
    PRODUCTION = "Production"
    SERVICES = "Services"


class EntryKind(str, Enum):
    SALE = "sale"
    EXPENSE = "expense"


class SavingDestination(str, Enum):
    BANK = "bank"
    MOBILE_MONEY = "mobile_money"


@dataclass
class Identity:
    """Verified phone-number-keyed user account"""

    phone_number: str
    display_name: str
    is_admin: bool = False
    has_completed_onboarding: bool = False


@dataclass
class Business:
    """The single commercial entity owned by one identity"""

    id: str
    owner_phone: str
    name: str
    category: BusinessCategory
    start_date: date
    location: Optional[str] = None
    is_active: bool = False


@dataclass
class LedgerEntry:
    """Recorded sale or expense"""

    id: str
    business_id: str
    kind: EntryKind
    amount: Decimal
    category: str
    occurred_on: date
    synced: bool = True
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class SavingEntry:
    """Recorded transfer to a savings destination"""

    id: str
    business_id: str
    amount: Decimal
    destination: SavingDestination
    occurred_on: date
    synced: bool = True
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class LedgerSnapshot:
    """Everything stored for one identity, read in one load"""

    identity: Optional[Identity]
    business: Optional[Business] = None
    entries: List[LedgerEntry] = field(default_factory=list)
    savings: List[SavingEntry] = field(default_factory=list)


@dataclass
class WeeklyPoint:
    """One day of the weekly sales/expenses chart"""

    label: str
    day: date
    sales: Decimal
    expenses: Decimal


@dataclass
class LedgerStats:
    """Dashboard totals"""

    total_sales: Decimal
    total_expenses: Decimal
    profit: Decimal
    total_savings: Decimal
    savings_by_destination: dict
