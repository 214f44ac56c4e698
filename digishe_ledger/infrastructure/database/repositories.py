"""Data access layer for profiles, businesses, and ledger rows"""

import uuid
from typing import List, Optional, Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from digishe_ledger.domain.exceptions import BusinessInactive
from digishe_ledger.infrastructure.database.models import Profile, BusinessRow, TransactionRow, SavingRow
from digishe_ledger.domain.models import (
    Business,
    BusinessCategory,
    EntryKind,
    Identity,
    LedgerEntry,
    SavingDestination,
    SavingEntry,
)


def to_identity(profile: Profile) -> Identity:
    return Identity(
        phone_number=profile.phone,
        display_name=profile.name,
        is_admin=profile.is_admin,
        has_completed_onboarding=profile.has_completed_onboarding,
    )


def to_business(row: BusinessRow) -> Business:
    return Business(
        id=str(row.id),
        owner_phone=row.owner_phone,
        name=row.name,
        category=BusinessCategory(row.category),
        location=row.location,
        is_active=row.is_active,
        start_date=row.start_date,
    )


def to_entry(row: TransactionRow) -> LedgerEntry:
    return LedgerEntry(
        id=str(row.id),
        business_id=str(row.business_id),
        kind=EntryKind(row.kind),
        amount=row.amount,
        category=row.category,
        occurred_on=row.occurred_on,
        recorded_at=row.recorded_at,
    )


def to_saving(row: SavingRow) -> SavingEntry:
    return SavingEntry(
        id=str(row.id),
        business_id=str(row.business_id),
        amount=row.amount,
        destination=SavingDestination(row.destination),
        occurred_on=row.occurred_on,
        recorded_at=row.recorded_at,
    )


class ProfileRepository:
    """Repository for phone-keyed identities"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_phone(self, phone: str) -> Optional[Profile]:
        return self.db.get(Profile, phone)

    def exists(self, phone: str) -> bool:
        return self.get_by_phone(phone) is not None

    def get_or_create(self, phone: str, name: str, is_admin: bool = False) -> Tuple[Profile, bool]:
        """
        Atomic lookup-or-create keyed by phone.

        The insert runs in a savepoint; a concurrent insert of the same phone
        trips the primary key and we fall back to reading the winner's row.

        Returns:
            (profile, created)
        """
        profile = self.get_by_phone(phone)
        if profile is not None:
            return profile, False

        try:
            with self.db.begin_nested():
                profile = Profile(
                    phone=phone,
                    name=name,
                    is_admin=is_admin,
                    has_completed_onboarding=False,
                )
                self.db.add(profile)
        except IntegrityError:
            existing = self.get_by_phone(phone)
            if existing is None:
                raise
            return existing, False

        return profile, True

    def ensure_identity(self, phone: str, name: str, is_admin: bool = False) -> Tuple[Identity, bool]:
        """get_or_create, committed, as a domain Identity"""
        profile, created = self.get_or_create(phone, name, is_admin)
        self.db.commit()
        return to_identity(profile), created

    def mark_onboarded(self, phone: str) -> Optional[Profile]:
        profile = self.get_by_phone(phone)
        if profile is not None:
            profile.has_completed_onboarding = True
            self.db.flush()
        return profile

    def set_admin(self, phone: str, is_admin: bool) -> Optional[Profile]:
        profile = self.get_by_phone(phone)
        if profile is not None:
            profile.is_admin = is_admin
            self.db.flush()
        return profile


class BusinessRepository:
    """Repository for businesses (one per profile)"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_owner(self, owner_phone: str) -> Optional[BusinessRow]:
        return (
            self.db.query(BusinessRow)
            .filter(BusinessRow.owner_phone == owner_phone)
            .first()
        )

    def get_by_id(self, business_id: uuid.UUID) -> Optional[BusinessRow]:
        return self.db.get(BusinessRow, business_id)

    def create_business(self, business: Business) -> Tuple[BusinessRow, bool]:
        """
        Insert the owner's business unless one already exists.

        Returns:
            (business_row, created)
        """
        existing = self.get_by_owner(business.owner_phone)
        if existing is not None:
            return existing, False

        try:
            with self.db.begin_nested():
                row = BusinessRow(
                    owner_phone=business.owner_phone,
                    name=business.name,
                    category=business.category.value,
                    location=business.location,
                    is_active=business.is_active,
                    start_date=business.start_date,
                )
                self.db.add(row)
        except IntegrityError:
            existing = self.get_by_owner(business.owner_phone)
            if existing is None:
                raise
            return existing, False

        return row, True

    def list_all(self, limit: int = 200) -> List[BusinessRow]:
        """Businesses for the admin panel, newest first"""
        return (
            self.db.query(BusinessRow)
            .order_by(BusinessRow.created_at.desc())
            .limit(limit)
            .all()
        )

    def set_active(self, business_id: uuid.UUID, is_active: bool) -> Optional[BusinessRow]:
        row = self.get_by_id(business_id)
        if row is not None:
            row.is_active = is_active
            self.db.flush()
        return row


class EntryRepository:
    """Repository for transactions and savings of a business"""

    def __init__(self, db: Session):
        self.db = db

    def _active_business_id(self, business_id: str) -> uuid.UUID:
        """
        Raises:
            BusinessInactive: Business missing or not activated by an admin
        """
        key = uuid.UUID(business_id)
        row = self.db.get(BusinessRow, key)
        if row is None or not row.is_active:
            raise BusinessInactive(f"Business {business_id} is not active")
        return key

    def add_entry(self, entry: LedgerEntry) -> TransactionRow:
        row = TransactionRow(
            business_id=self._active_business_id(entry.business_id),
            kind=entry.kind.value,
            amount=entry.amount,
            category=entry.category,
            occurred_on=entry.occurred_on,
            recorded_at=entry.recorded_at,
        )
        self.db.add(row)
        self.db.flush()  # Get ID without committing
        return row

    def add_saving(self, saving: SavingEntry) -> SavingRow:
        row = SavingRow(
            business_id=self._active_business_id(saving.business_id),
            amount=saving.amount,
            destination=saving.destination.value,
            occurred_on=saving.occurred_on,
            recorded_at=saving.recorded_at,
        )
        self.db.add(row)
        self.db.flush()
        return row

    def list_entries(self, business_id: uuid.UUID) -> List[TransactionRow]:
        return (
            self.db.query(TransactionRow)
            .filter(TransactionRow.business_id == business_id)
            .order_by(TransactionRow.occurred_on, TransactionRow.recorded_at)
            .all()
        )

    def list_savings(self, business_id: uuid.UUID) -> List[SavingRow]:
        return (
            self.db.query(SavingRow)
            .filter(SavingRow.business_id == business_id)
            .order_by(SavingRow.occurred_on, SavingRow.recorded_at)
            .all()
        )
