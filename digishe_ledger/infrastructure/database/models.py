"""SQLAlchemy ORM models for profiles, businesses, and ledger rows"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import Column, String, Boolean, DateTime, Date, ForeignKey, Text, TypeDecorator, Uuid
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class ExactDecimal(TypeDecorator):
    """Decimal stored as its text form; amounts keep every digit entered"""

    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(Decimal(value))

    def process_result_value(self, value, dialect):
        return None if value is None else Decimal(value)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Profile(Base):
    """Verified phone-number identity"""

    __tablename__ = "profiles"

    # Canonical phone is the unique key that makes lookup-or-create atomic
    phone = Column(String(20), primary_key=True)
    name = Column(Text, nullable=False, default="User")
    is_admin = Column(Boolean, nullable=False, default=False)
    has_completed_onboarding = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    business = relationship("BusinessRow", back_populates="owner", uselist=False)


class BusinessRow(Base):
    """Business owned by exactly one profile"""

    __tablename__ = "businesses"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_phone = Column(
        String(20),
        ForeignKey("profiles.phone", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    name = Column(Text, nullable=False)
    category = Column(Text, nullable=False)
    location = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=False)
    start_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    owner = relationship("Profile", back_populates="business")
    transactions = relationship("TransactionRow", back_populates="business", cascade="all, delete-orphan")
    savings = relationship("SavingRow", back_populates="business", cascade="all, delete-orphan")


class TransactionRow(Base):
    """Sale or expense"""

    __tablename__ = "transactions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid(as_uuid=True), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(Text, nullable=False)
    amount = Column(ExactDecimal, nullable=False)
    category = Column(Text, nullable=False)
    occurred_on = Column(Date, nullable=False)
    # When the entry was recorded, to microseconds; orders entries within a day
    recorded_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    business = relationship("BusinessRow", back_populates="transactions")


class SavingRow(Base):
    """Transfer to a savings destination"""

    __tablename__ = "savings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid(as_uuid=True), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(ExactDecimal, nullable=False)
    destination = Column(Text, nullable=False)
    occurred_on = Column(Date, nullable=False)
    # When the entry was recorded, to microseconds; orders entries within a day
    recorded_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    business = relationship("BusinessRow", back_populates="savings")
