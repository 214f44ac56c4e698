"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from digishe_ledger.domain.models import (
    AuthIntent,
    Business,
    BusinessCategory,
    EntryKind,
    Identity,
    LedgerEntry,
    SavingDestination,
    SavingEntry,
)


class CodeRequest(BaseModel):
    """Request body for POST /v1/auth/request-code"""

    phone: str = Field(..., description="Phone number as typed by the user")
    intent: AuthIntent = Field(AuthIntent.LOGIN, description="login or register")


class CodeRequestResponse(BaseModel):
    phone: str = Field(..., description="Canonical phone the code was sent to")


class VerifyRequest(BaseModel):
    """Request body for POST /v1/auth/verify"""

    phone: str
    code: str
    name: Optional[str] = Field(None, description="Display name when registering")


class IdentitySchema(BaseModel):
    phone_number: str
    display_name: str
    is_admin: bool
    has_completed_onboarding: bool

    @classmethod
    def from_domain(cls, identity: Identity) -> "IdentitySchema":
        return cls(
            phone_number=identity.phone_number,
            display_name=identity.display_name,
            is_admin=identity.is_admin,
            has_completed_onboarding=identity.has_completed_onboarding,
        )


class VerifyResponse(BaseModel):
    """Response for POST /v1/auth/verify"""

    session_token: str
    identity: IdentitySchema


class BusinessSchema(BaseModel):
    id: str
    owner_phone: str
    name: str
    category: BusinessCategory
    location: Optional[str] = None
    is_active: bool
    start_date: date

    @classmethod
    def from_domain(cls, business: Business) -> "BusinessSchema":
        return cls(
            id=business.id,
            owner_phone=business.owner_phone,
            name=business.name,
            category=business.category,
            location=business.location,
            is_active=business.is_active,
            start_date=business.start_date,
        )


class OnboardingRequest(BaseModel):
    """Request body for POST /v1/onboarding"""

    name: str
    category: BusinessCategory
    location: Optional[str] = None
    start_date: Optional[date] = None


class EntryRequest(BaseModel):
    """
    Request body for POST /v1/entries.

    Amount is accepted as sent and validated by the ledger session.
    """

    kind: str
    amount: str | float | int | None
    category: str


class EntrySchema(BaseModel):
    id: str
    kind: EntryKind
    amount: Decimal
    category: str
    occurred_on: date
    synced: bool

    @classmethod
    def from_domain(cls, entry: LedgerEntry) -> "EntrySchema":
        return cls(
            id=entry.id,
            kind=entry.kind,
            amount=entry.amount,
            category=entry.category,
            occurred_on=entry.occurred_on,
            synced=entry.synced,
        )


class EntryResponse(BaseModel):
    """Response for POST /v1/entries"""

    entry: EntrySchema
    offer_custom_category: bool = False


class SavingRequest(BaseModel):
    amount: str | float | int | None
    destination: str


class SavingSchema(BaseModel):
    id: str
    amount: Decimal
    destination: SavingDestination
    occurred_on: date
    synced: bool

    @classmethod
    def from_domain(cls, saving: SavingEntry) -> "SavingSchema":
        return cls(
            id=saving.id,
            amount=saving.amount,
            destination=saving.destination,
            occurred_on=saving.occurred_on,
            synced=saving.synced,
        )


class SavingResponse(BaseModel):
    saving: SavingSchema
    offer_custom_category: bool = False


class StatsSchema(BaseModel):
    total_sales: Decimal
    total_expenses: Decimal
    profit: Decimal
    total_savings: Decimal
    savings_by_destination: Dict[str, Decimal]


class WeeklyPointSchema(BaseModel):
    label: str
    day: date
    sales: Decimal
    expenses: Decimal


class LedgerResponse(BaseModel):
    """Response for GET /v1/ledger"""

    identity: Optional[IdentitySchema] = None
    business: Optional[BusinessSchema] = None
    entries: List[EntrySchema]
    savings: List[SavingSchema]
    stats: StatsSchema
    weekly: List[WeeklyPointSchema]


class CategoryRequest(BaseModel):
    kind: str
    name: str


class CategoriesResponse(BaseModel):
    sale: List[str]
    expense: List[str]


class InsightResponse(BaseModel):
    tip: str


class ActivationRequest(BaseModel):
    is_active: bool = True


class AdminFlagRequest(BaseModel):
    is_admin: bool


class AdminBusinessItem(BaseModel):
    business: BusinessSchema
    owner_name: str


class AdminBusinessesResponse(BaseModel):
    businesses: List[AdminBusinessItem]
