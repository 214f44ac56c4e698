"""Ledger session: in-memory ledger state with optimistic writes synced to storage"""

import asyncio
import secrets
import time
import uuid
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Tuple, Union

from digishe_ledger.domain.exceptions import BusinessInactive, NotOnboarded, StorageError, ValidationError
from digishe_ledger.domain.models import (
    Business,
    BusinessCategory,
    EntryKind,
    Identity,
    LedgerEntry,
    LedgerSnapshot,
    SavingDestination,
    SavingEntry,
)
from digishe_ledger.infrastructure.observability.logging import log_entry_recorded, log_entry_unsynced
from digishe_ledger.infrastructure.observability.metrics import (
    entries_recorded_counter,
    sync_failure_counter,
    sync_latency_histogram,
)

DEFAULT_CATEGORIES = {
    EntryKind.SALE: [
        "Direct Product Sale",
        "Service Fee",
        "Wholesale",
        "Retail",
        "Subscription",
        "Consulting",
        "Other",
    ],
    EntryKind.EXPENSE: [
        "Rent",
        "Salary",
        "Inventory/Stock",
        "Utilities",
        "Marketing",
        "Travel",
        "Taxes",
        "Maintenance",
        "Office Supplies",
        "Other",
    ],
}

Record = Union[LedgerEntry, SavingEntry]


class LedgerStorePort(Protocol):
    async def fetch_identity(self, phone: str) -> Optional[Identity]: ...

    async def fetch_business(self, owner_phone: str) -> Optional[Business]: ...

    async def fetch_entries(self, business_id: str) -> Tuple[List[LedgerEntry], List[SavingEntry]]: ...

    async def create_business(self, business: Business) -> Business: ...

    async def mark_onboarded(self, phone: str) -> Optional[Identity]: ...

    async def insert_entry(self, entry: LedgerEntry) -> str: ...

    async def insert_saving(self, saving: SavingEntry) -> str: ...


def parse_amount(value: Any) -> Decimal:
    """
    Parse a user-entered amount.

    Amounts are kept exactly as entered: no rounding, no currency handling.

    Raises:
        ValidationError: Not a number, not finite, or not strictly positive
    """
    if value is None or isinstance(value, bool):
        raise ValidationError("Please enter a valid amount")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError("Please enter a valid amount") from None
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    return amount


def new_local_id() -> str:
    """Temporary identifier used until storage assigns one"""
    return f"tmp_{uuid.uuid4().hex[:9]}"


class LedgerSession:
    """
    One signed-in user's ledger: identity, business, entries and savings.

    Mutations are optimistic. record_entry and record_saving append to the
    in-memory lists before returning and hand the storage write to a
    background task. A write that still fails after the configured retries
    leaves the entry in memory with synced=False; nothing is rolled back.
    """

    def __init__(
        self,
        identity: Identity,
        store: LedgerStorePort,
        category_prompt_threshold: int = 3,
        sync_max_retries: int = 3,
        sync_backoff_base: float = 0.5,
        today: Callable[[], date] = date.today,
    ):
        self.identity = identity
        self.store = store
        self.business: Optional[Business] = None
        self.entries: List[LedgerEntry] = []
        self.savings: List[SavingEntry] = []
        self.entry_count = 0
        self.custom_categories: Dict[EntryKind, List[str]] = {kind: [] for kind in EntryKind}

        self.category_prompt_threshold = category_prompt_threshold
        self.sync_max_retries = max(1, sync_max_retries)
        self.sync_backoff_base = sync_backoff_base
        self.today = today

        self._category_prompt_offered = False
        self._category_prompt_pending = False
        self._pending: Dict[str, asyncio.Task] = {}

    @property
    def phone(self) -> str:
        return self.identity.phone_number

    @property
    def pending_sync_count(self) -> int:
        return len(self._pending)

    def unsynced(self) -> List[Record]:
        return [r for r in [*self.entries, *self.savings] if not r.synced]

    async def load(self) -> LedgerSnapshot:
        """
        Refresh from storage with three independent reads.

        State is updated after each read, so a failure part-way leaves
        whatever was read so far. This session's pending writes are settled
        first; entries whose write gave up are kept after the stored ones.

        Raises:
            StorageError: Any read failed
        """
        await self.wait_for_sync()

        identity = await self.store.fetch_identity(self.phone)
        if identity is None:
            return self.snapshot()
        self.identity = identity

        business = await self.store.fetch_business(self.phone)
        self.business = business
        if business is None:
            return self.snapshot()

        entries, savings = await self.store.fetch_entries(business.id)
        self.entries = entries + [e for e in self.entries if not e.synced]
        self.savings = savings + [s for s in self.savings if not s.synced]
        return self.snapshot()

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            identity=self.identity,
            business=self.business,
            entries=list(self.entries),
            savings=list(self.savings),
        )

    async def complete_onboarding(
        self,
        name: str,
        category: Union[BusinessCategory, str],
        location: Optional[str] = None,
        start_date: Optional[date] = None,
    ) -> Business:
        """
        Create the business, then flag the identity as onboarded.

        The two writes are separate. If the second fails the session keeps
        the business and the call can simply be repeated; the business
        insert is idempotent per owner.

        Raises:
            ValidationError: Missing name or unknown category
            StorageError: Either write failed
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Please enter your business name")
        try:
            category = BusinessCategory(category)
        except ValueError:
            raise ValidationError(f"Unknown business category: {category}") from None

        if self.business is None:
            self.business = await self.store.create_business(
                Business(
                    id="",
                    owner_phone=self.phone,
                    name=name,
                    category=category,
                    location=(location or "").strip() or None,
                    start_date=start_date or self.today(),
                    is_active=False,
                )
            )

        identity = await self.store.mark_onboarded(self.phone)
        if identity is None:
            raise StorageError("Profile disappeared during onboarding")
        self.identity = identity
        return self.business

    def require_active_business(self) -> Business:
        """
        Raises:
            NotOnboarded: No business yet
            BusinessInactive: Business awaiting admin activation
        """
        if self.business is None:
            raise NotOnboarded("Complete onboarding before recording entries")
        if not self.business.is_active:
            raise BusinessInactive("Your business is awaiting activation")
        return self.business

    def record_entry(self, kind: Union[EntryKind, str], amount: Any, category: str) -> LedgerEntry:
        """
        Append a sale or expense now and write it to storage in the background.

        Must be called from a running event loop.

        Raises:
            ValidationError: Bad kind, amount or category (session unchanged)
            NotOnboarded / BusinessInactive: Entry recording not allowed
        """
        try:
            kind = EntryKind(kind)
        except ValueError:
            raise ValidationError(f"Unknown entry kind: {kind}") from None
        value = parse_amount(amount)
        category = (category or "").strip()
        if not category:
            raise ValidationError("Please choose a category")
        business = self.require_active_business()

        entry = LedgerEntry(
            id=new_local_id(),
            business_id=business.id,
            kind=kind,
            amount=value,
            category=category,
            occurred_on=self.today(),
            synced=False,
        )
        self.entries.append(entry)
        self._count_entry()

        entries_recorded_counter.labels(kind=kind.value).inc()
        log_entry_recorded(business.id, entry.id, kind.value, str(value))
        self._schedule_sync(entry, self.store.insert_entry, kind.value)
        return entry

    def record_saving(self, amount: Any, destination: Union[SavingDestination, str]) -> SavingEntry:
        """Same optimistic pattern as record_entry, for savings"""
        try:
            destination = SavingDestination(destination)
        except ValueError:
            raise ValidationError(f"Unknown savings destination: {destination}") from None
        value = parse_amount(amount)
        business = self.require_active_business()

        saving = SavingEntry(
            id=new_local_id(),
            business_id=business.id,
            amount=value,
            destination=destination,
            occurred_on=self.today(),
            synced=False,
        )
        self.savings.append(saving)
        self._count_entry()

        entries_recorded_counter.labels(kind="saving").inc()
        log_entry_recorded(business.id, saving.id, "saving", str(value))
        self._schedule_sync(saving, self.store.insert_saving, "saving")
        return saving

    def _count_entry(self) -> None:
        self.entry_count += 1
        if not self._category_prompt_offered and self.entry_count >= self.category_prompt_threshold:
            self._category_prompt_offered = True
            self._category_prompt_pending = True

    def take_category_prompt(self) -> bool:
        """True exactly once, after the entry counter first reaches the threshold"""
        if self._category_prompt_pending:
            self._category_prompt_pending = False
            return True
        return False

    def categories(self, kind: Union[EntryKind, str]) -> List[str]:
        kind = EntryKind(kind)
        return DEFAULT_CATEGORIES[kind] + self.custom_categories[kind]

    def add_custom_category(self, kind: Union[EntryKind, str], name: str) -> List[str]:
        try:
            kind = EntryKind(kind)
        except ValueError:
            raise ValidationError(f"Unknown entry kind: {kind}") from None
        name = (name or "").strip()
        if not name:
            raise ValidationError("Please enter a category name")
        if name not in self.categories(kind):
            self.custom_categories[kind].append(name)
        return self.categories(kind)

    def apply_business_update(self, business: Business) -> None:
        """Adopt an externally changed business (admin activation)"""
        if self.business is None or self.business.id == business.id:
            self.business = business

    def _schedule_sync(self, record: Record, writer: Callable[[Any], Awaitable[str]], kind: str) -> None:
        local_id = record.id
        task = asyncio.get_running_loop().create_task(self._sync(record, writer, kind))
        self._pending[local_id] = task
        task.add_done_callback(lambda _: self._pending.pop(local_id, None))

    async def _sync(self, record: Record, writer: Callable[[Any], Awaitable[str]], kind: str) -> None:
        """
        Write one record with exponential backoff.

        Retry strategy:
        - Backoff: base, 2*base, 4*base, ... between attempts
        - Retries on StorageError only; any other failure is final
        - On success the temporary id is replaced by the storage id
        """
        started = time.monotonic()
        attempt = 0
        while True:
            try:
                storage_id = await writer(record)
            except BusinessInactive as e:
                # Deactivated between the local check and the write
                sync_failure_counter.inc()
                log_entry_unsynced(record.business_id, record.id, kind, attempt + 1, str(e))
                return
            except StorageError as e:
                attempt += 1
                if attempt >= self.sync_max_retries:
                    # Local and stored state now diverge; the entry stays visible
                    sync_failure_counter.inc()
                    log_entry_unsynced(record.business_id, record.id, kind, attempt, str(e))
                    return
                await asyncio.sleep(self.sync_backoff_base * (2 ** (attempt - 1)))
                continue
            except Exception as e:
                # Unexpected writer failure; the entry stays local like any other give-up
                sync_failure_counter.inc()
                log_entry_unsynced(record.business_id, record.id, kind, attempt + 1, repr(e))
                return

            record.id = storage_id
            record.synced = True
            sync_latency_histogram.observe(time.monotonic() - started)
            return

    async def wait_for_sync(self) -> None:
        """Wait until every scheduled write has succeeded or given up"""
        while self._pending:
            await asyncio.gather(*list(self._pending.values()))


class SessionRegistry:
    """
    Bearer token → LedgerSession for every signed-in user.

    A session unused for idle_timeout seconds expires. Expired sessions are
    dropped when their token is next presented, and swept on every open once
    their pending writes have settled.
    """

    def __init__(self, idle_timeout: float = 12 * 3600, clock: Callable[[], float] = time.monotonic):
        self.idle_timeout = idle_timeout
        self.clock = clock
        self._sessions: Dict[str, LedgerSession] = {}
        self._last_used: Dict[str, float] = {}

    def _is_idle(self, token: str) -> bool:
        return self.clock() - self._last_used[token] > self.idle_timeout

    def _expire_idle(self) -> None:
        for token, session in list(self._sessions.items()):
            if self._is_idle(token) and session.pending_sync_count == 0:
                self.close(token)

    def open(self, session: LedgerSession) -> str:
        self._expire_idle()
        token = secrets.token_urlsafe(32)
        self._sessions[token] = session
        self._last_used[token] = self.clock()
        return token

    def get(self, token: str) -> Optional[LedgerSession]:
        session = self._sessions.get(token)
        if session is None:
            return None
        if self._is_idle(token):
            self.close(token)
            return None
        self._last_used[token] = self.clock()
        return session

    def close(self, token: str) -> Optional[LedgerSession]:
        self._last_used.pop(token, None)
        return self._sessions.pop(token, None)

    def close_phone(self, phone: str) -> List[LedgerSession]:
        """Close every session of one identity; returns the closed sessions"""
        tokens = [t for t, s in self._sessions.items() if s.phone == phone]
        return [self.close(t) for t in tokens]

    def for_phone(self, phone: str) -> List[LedgerSession]:
        return [s for s in self._sessions.values() if s.phone == phone]

    async def drain(self) -> None:
        """Wait for pending writes of every open session"""
        for session in list(self._sessions.values()):
            await session.wait_for_sync()

    def __len__(self) -> int:
        return len(self._sessions)
