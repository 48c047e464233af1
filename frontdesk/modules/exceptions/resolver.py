"""
Per-clinic cache of exception indices, one per week.

A resolver owns one clinic. Each lookup answers from the index built for the
week that contains the requested date, so lookups for different weeks never
see each other's data. A change event for the clinic drops every cached week
and re-reads the one last viewed, so an index is never older than the last
notification.
"""
import uuid
import logging
from datetime import date, timedelta

from fastapi import Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from frontdesk.modules.events.feed import CalendarChangeFeed, ChangeEvent
from frontdesk.modules.exceptions.index import BlockResult, ExceptionIndex
from frontdesk.modules.exceptions.repository import ExceptionRepository, HolidayRepository
from frontdesk.platform.ports.event_bus import Unsubscribe

log = logging.getLogger(__name__)

MAX_CACHED_WEEKS = 8


def week_of(on: date) -> tuple[date, date]:
    start = on - timedelta(days=on.weekday())
    return start, start + timedelta(days=6)


class ExceptionResolver:
    def __init__(self, clinic_id: uuid.UUID, session_factory: async_sessionmaker):
        self.clinic_id = clinic_id
        self.session_factory = session_factory
        self.weeks: dict[tuple[date, date], ExceptionIndex] = {}
        # last range a caller asked for; refreshed first on change
        self.range: tuple[date, date] | None = None
        self._generation = 0

    @property
    def index(self) -> ExceptionIndex:
        if self.range is None:
            return ExceptionIndex()
        return self.weeks.get(self.range, ExceptionIndex())

    @property
    def _stale(self) -> bool:
        return self.range is not None and self.range not in self.weeks

    def _cached(self, on: date) -> ExceptionIndex | None:
        for (start, end), index in self.weeks.items():
            if start <= on <= end:
                return index
        return None

    def covers(self, on: date) -> bool:
        return self._cached(on) is not None

    async def set_range(self, start: date, end: date) -> ExceptionIndex:
        self.range = (start, end)
        index = self.weeks.get((start, end))
        if index is None:
            index = await self.refresh(start, end)
        return index

    async def refresh(self, start: date | None = None, end: date | None = None) -> ExceptionIndex:
        """Read `start..end` (default: the last viewed range) and return its index."""
        if start is None or end is None:
            if self.range is None:
                return ExceptionIndex()
            start, end = self.range
        generation = self._generation
        async with self.session_factory() as session:
            exceptions = await ExceptionRepository(session).list_range(self.clinic_id, start, end)
            holidays = await HolidayRepository(session).list_range(self.clinic_id, start, end)
        index = ExceptionIndex.from_rows(exceptions, holidays)
        # an invalidation during the read means these rows may predate it
        if generation == self._generation:
            self.weeks[(start, end)] = index
            while len(self.weeks) > MAX_CACHED_WEEKS:
                del self.weeks[next(iter(self.weeks))]
        log.debug(f"Exception index for clinic {self.clinic_id} refreshed for {start}..{end}")
        return index

    def invalidate(self) -> None:
        self._generation += 1
        self.weeks.clear()

    async def on_change(self, event: ChangeEvent) -> None:
        self.invalidate()
        try:
            await self.refresh()
        except Exception:
            # stays stale; the next lookup re-reads
            log.exception(f"Refreshing exception index for clinic {self.clinic_id} failed")

    async def index_for(self, on: date) -> ExceptionIndex:
        index = self._cached(on)
        if index is None:
            index = await self.set_range(*week_of(on))
        return index

    async def is_blocked(self, on: date, time: str | None = None, practitioner_id: uuid.UUID | None = None) -> BlockResult:
        index = await self.index_for(on)
        return index.is_blocked(on, time, practitioner_id)


class ExceptionResolvers:
    """Registry of resolvers, one per clinic, fed by the calendar change feed."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory
        self._by_clinic: dict[uuid.UUID, ExceptionResolver] = {}
        self._unsubscribe: Unsubscribe | None = None

    def for_clinic(self, clinic_id: uuid.UUID) -> ExceptionResolver:
        resolver = self._by_clinic.get(clinic_id)
        if resolver is None:
            resolver = ExceptionResolver(clinic_id, self.session_factory)
            self._by_clinic[clinic_id] = resolver
        return resolver

    async def is_blocked(self, clinic_id: uuid.UUID, on: date, time: str | None = None, practitioner_id: uuid.UUID | None = None) -> BlockResult:
        return await self.for_clinic(clinic_id).is_blocked(on, time, practitioner_id)

    async def handle_change(self, event: ChangeEvent) -> None:
        # global holidays carry no clinic and touch every resolver
        if event.clinic_id is None:
            targets = list(self._by_clinic.values())
        else:
            targets = [r for cid, r in self._by_clinic.items() if cid == event.clinic_id]
        for resolver in targets:
            await resolver.on_change(event)

    def attach(self, feed: CalendarChangeFeed) -> None:
        self.detach()
        self._unsubscribe = feed.on_exceptions_changed(self.handle_change)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


def get_resolvers(request: Request) -> ExceptionResolvers:
    return request.app.state.resolvers
