"""Async storage facade used by ledger sessions"""

import asyncio
import uuid
from typing import Callable, List, Optional, Tuple, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from digishe_ledger.domain.exceptions import StorageError
from digishe_ledger.domain.models import Business, Identity, LedgerEntry, SavingEntry
from digishe_ledger.infrastructure.database.repositories import (
    BusinessRepository,
    EntryRepository,
    ProfileRepository,
    to_business,
    to_entry,
    to_identity,
    to_saving,
)
from digishe_ledger.infrastructure.database.session import session_scope

T = TypeVar("T")


class LedgerStore:
    """
    Storage operations for one ledger session.

    Each call opens its own short unit of work in a worker thread, so calls
    are independent: no transaction spans two calls.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    async def _run(self, operation: Callable[[Session], T]) -> T:
        def work() -> T:
            with session_scope(self.session_factory) as db:
                return operation(db)

        try:
            return await asyncio.to_thread(work)
        except SQLAlchemyError as e:
            raise StorageError(f"Storage operation failed: {e}") from e

    async def fetch_identity(self, phone: str) -> Optional[Identity]:
        def op(db: Session) -> Optional[Identity]:
            profile = ProfileRepository(db).get_by_phone(phone)
            return to_identity(profile) if profile else None

        return await self._run(op)

    async def fetch_business(self, owner_phone: str) -> Optional[Business]:
        def op(db: Session) -> Optional[Business]:
            row = BusinessRepository(db).get_by_owner(owner_phone)
            return to_business(row) if row else None

        return await self._run(op)

    async def fetch_entries(self, business_id: str) -> Tuple[List[LedgerEntry], List[SavingEntry]]:
        def op(db: Session) -> Tuple[List[LedgerEntry], List[SavingEntry]]:
            repo = EntryRepository(db)
            key = uuid.UUID(business_id)
            return (
                [to_entry(row) for row in repo.list_entries(key)],
                [to_saving(row) for row in repo.list_savings(key)],
            )

        return await self._run(op)

    async def create_business(self, business: Business) -> Business:
        def op(db: Session) -> Business:
            row, _ = BusinessRepository(db).create_business(business)
            db.flush()
            return to_business(row)

        return await self._run(op)

    async def mark_onboarded(self, phone: str) -> Optional[Identity]:
        def op(db: Session) -> Optional[Identity]:
            profile = ProfileRepository(db).mark_onboarded(phone)
            return to_identity(profile) if profile else None

        return await self._run(op)

    async def insert_entry(self, entry: LedgerEntry) -> str:
        """Persist an entry and return its storage-assigned id"""
        return await self._run(lambda db: str(EntryRepository(db).add_entry(entry).id))

    async def insert_saving(self, saving: SavingEntry) -> str:
        return await self._run(lambda db: str(EntryRepository(db).add_saving(saving).id))
