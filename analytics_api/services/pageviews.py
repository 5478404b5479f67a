"""
Page-view tracker — write path (ingest) and read path (rollups).

Write path, per tracked page load:
    total views            +1, never expires
    hourly / daily views   +1, retention expiry re-applied on every write
    daily visitor set      append the visitor hash if new and under the cap
    total visitors         +1 for every new hash, even when the set is full

The visitor set is a capped sample used for "today" counts; the
total-visitors counter is the exact running total. The two are updated
independently so the counter never undercounts because of the cap.

Every step is its own read-then-write against the store. Concurrent
requests for the same key can lose increments (last writer wins); the
numbers are advisory analytics, not business data. Partial updates from
an interrupted request are left as they are.

Read path: hourly and daily series read the stored buckets directly;
monthly series are always re-derived from the daily counters/sets of
every day in the month. No monthly value is persisted. All buckets and
their labels are UTC, so hour labels never repeat across a clock change.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from analytics_api.services import keys
from analytics_api.services.kv_store import (
    CounterStore,
    dump_visitor_list,
    parse_count,
    parse_visitor_list,
)
from analytics_api.services.pages import TRACKED_PAGES, resolve_page_id
from analytics_api.services.visitor_hash import hash_visitor

logger = logging.getLogger(__name__)

# ── tunables ──
DEFAULT_RETENTION_SECONDS = 400 * 24 * 60 * 60
DEFAULT_VISITOR_CAP = 10_000

MONTH_NAMES = ("jan", "feb", "mar", "apr", "mai", "jun", "jul", "aug", "sep", "okt", "nov", "des")


class Granularity(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    MONTHLY = "monthly"


class Period(str, Enum):
    DAY = "24h"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


# period → (bucket width, number of points)
PERIODS: dict[Period, tuple[Granularity, int]] = {
    Period.DAY: (Granularity.HOURLY, 24),
    Period.WEEK: (Granularity.DAILY, 7),
    Period.MONTH: (Granularity.DAILY, 30),
    Period.YEAR: (Granularity.MONTHLY, 12),
    Period.ALL: (Granularity.MONTHLY, 24),
}


@dataclass
class ViewSummary:
    page_id: str
    total_views: int
    is_new_visitor: bool


@dataclass
class PageStats:
    page_id: str
    label: str
    total_views: int
    total_visitors: int
    today_visitors: int


@dataclass
class TimeseriesPoint:
    label: str
    value: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _months_back(now: datetime, count: int) -> list[tuple[int, int]]:
    """(year, month) for the ``count`` UTC months ending with the current one, oldest first."""
    current = now.year * 12 + (now.month - 1)
    months = []
    for offset in range(count - 1, -1, -1):
        year, month0 = divmod(current - offset, 12)
        months.append((year, month0 + 1))
    return months


class PageviewTracker:
    """Records page views and reads them back as snapshots and time series."""

    def __init__(
        self,
        store: CounterStore,
        *,
        retention_seconds: int = DEFAULT_RETENTION_SECONDS,
        visitor_cap: int = DEFAULT_VISITOR_CAP,
        atomic_increments: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.retention_seconds = retention_seconds
        self.visitor_cap = visitor_cap
        self.atomic_increments = atomic_increments and store.atomic
        self.clock = clock

    # ─────────────────────────────────────────────────────────────
    # write path
    # ─────────────────────────────────────────────────────────────

    async def _increment(self, key: keys.CounterKey, expiration_seconds: Optional[int] = None) -> int:
        if self.atomic_increments:
            return await self.store.incr(key, expiration_seconds)
        value = parse_count(await self.store.get(key)) + 1
        await self.store.put(key, str(value), expiration_seconds)
        return value

    async def record_view(
        self,
        page_id: Optional[str],
        client_address: str,
        now: Optional[datetime] = None,
    ) -> ViewSummary:
        """
        Count one page load.

        Unknown or missing page ids are counted against the default page.
        Store errors propagate; callers that must never fail (the HTTP
        handler) catch them.
        """
        page_id = resolve_page_id(page_id)
        now = _as_utc(now or self.clock())
        visitor = hash_visitor(client_address or "unknown", keys.date_key(now))

        total_views = await self._increment(keys.total_key(page_id))
        await self._increment(keys.hourly_key(page_id, now), self.retention_seconds)
        await self._increment(keys.daily_key(page_id, now), self.retention_seconds)

        visitors_key = keys.visitor_set_key(page_id, now)
        visitors = parse_visitor_list(await self.store.get(visitors_key))

        is_new_visitor = visitor not in visitors
        if is_new_visitor:
            if len(visitors) < self.visitor_cap:
                visitors.append(visitor)
                await self.store.put(visitors_key, dump_visitor_list(visitors), self.retention_seconds)
            else:
                logger.debug("Visitor set %s is full (%d)", visitors_key, self.visitor_cap)

            # Counted whether or not the set had room
            await self._increment(keys.total_visitors_key(page_id))

        return ViewSummary(page_id=page_id, total_views=total_views, is_new_visitor=is_new_visitor)

    # ─────────────────────────────────────────────────────────────
    # snapshots
    # ─────────────────────────────────────────────────────────────

    async def get_page_stats(self, page_id: str, now: Optional[datetime] = None) -> PageStats:
        page_id = resolve_page_id(page_id)
        now = _as_utc(now or self.clock())
        total_views, total_visitors, today = await asyncio.gather(
            self.store.get(keys.total_key(page_id)),
            self.store.get(keys.total_visitors_key(page_id)),
            self.store.get(keys.visitor_set_key(page_id, now)),
        )
        return PageStats(
            page_id=page_id,
            label=TRACKED_PAGES[page_id].label,
            total_views=parse_count(total_views),
            total_visitors=parse_count(total_visitors),
            today_visitors=len(parse_visitor_list(today)),
        )

    async def get_all_stats(self, now: Optional[datetime] = None) -> dict[str, PageStats]:
        now = _as_utc(now or self.clock())
        stats = {}
        for page_id in TRACKED_PAGES:
            stats[page_id] = await self.get_page_stats(page_id, now)
        return stats

    # ─────────────────────────────────────────────────────────────
    # time series
    # ─────────────────────────────────────────────────────────────

    # Labels are rendered from the same UTC instant that forms the bucket key
    @staticmethod
    def _hour_label(dt: datetime) -> str:
        return _as_utc(dt).strftime("%H:00")

    @staticmethod
    def _day_label(dt: datetime) -> str:
        utc = _as_utc(dt)
        return f"{utc.day}/{utc.month}"

    @staticmethod
    def _month_label(year: int, month: int) -> str:
        return f"{MONTH_NAMES[month - 1]} {year % 100:02d}"

    @staticmethod
    def _steps(now: datetime, count: int, step: timedelta) -> list[datetime]:
        return [now - step * (count - 1 - i) for i in range(count)]

    async def _read_all(self, key_list: list[keys.CounterKey]) -> list[Optional[str]]:
        return list(await asyncio.gather(*(self.store.get(k) for k in key_list)))

    async def get_timeseries(
        self, page_id: str, period: Period | str = Period.DAY, now: Optional[datetime] = None
    ) -> list[TimeseriesPoint]:
        """Page views per bucket, oldest first, ending with the current bucket."""
        page_id = resolve_page_id(page_id)
        granularity, points = PERIODS[Period(period)]
        now = _as_utc(now or self.clock())

        if granularity is Granularity.HOURLY:
            times = self._steps(now, points, timedelta(hours=1))
            raw = await self._read_all([keys.hourly_key(page_id, t) for t in times])
            return [TimeseriesPoint(self._hour_label(t), parse_count(r)) for t, r in zip(times, raw)]

        if granularity is Granularity.DAILY:
            times = self._steps(now, points, timedelta(days=1))
            raw = await self._read_all([keys.daily_key(page_id, t) for t in times])
            return [TimeseriesPoint(self._day_label(t), parse_count(r)) for t, r in zip(times, raw)]

        series = []
        for year, month in _months_back(now, points):
            total = await self.month_total(page_id, year, month)
            series.append(TimeseriesPoint(self._month_label(year, month), total))
        return series

    async def month_total(self, page_id: str, year: int, month: int) -> int:
        """Sum of the daily view counters for every day of the month."""
        raw = await self._read_all(
            [keys.daily_key_for(page_id, d) for d in keys.month_dates(year, month)]
        )
        return sum(parse_count(r) for r in raw)

    async def month_visitors(self, page_id: str, year: int, month: int) -> int:
        """Distinct visitor hashes across the month's daily sets."""
        raw = await self._read_all(
            [keys.visitor_set_key_for(page_id, d) for d in keys.month_dates(year, month)]
        )
        unique: set[str] = set()
        for r in raw:
            unique.update(parse_visitor_list(r))
        return len(unique)

    async def get_visitors_timeseries(
        self, page_id: str, period: Period | str = Period.DAY, now: Optional[datetime] = None
    ) -> list[TimeseriesPoint]:
        """
        Unique visitors per bucket.

        Hourly buckets are not tracked: every hour reads 0 except the
        current one, which carries today's visitor count.
        """
        page_id = resolve_page_id(page_id)
        granularity, points = PERIODS[Period(period)]
        now = _as_utc(now or self.clock())

        if granularity is Granularity.HOURLY:
            today = len(parse_visitor_list(await self.store.get(keys.visitor_set_key(page_id, now))))
            times = self._steps(now, points, timedelta(hours=1))
            return [
                TimeseriesPoint(self._hour_label(t), today if i == points - 1 else 0)
                for i, t in enumerate(times)
            ]

        if granularity is Granularity.DAILY:
            times = self._steps(now, points, timedelta(days=1))
            raw = await self._read_all([keys.visitor_set_key(page_id, t) for t in times])
            return [
                TimeseriesPoint(self._day_label(t), len(parse_visitor_list(r)))
                for t, r in zip(times, raw)
            ]

        series = []
        for year, month in _months_back(now, points):
            unique = await self.month_visitors(page_id, year, month)
            series.append(TimeseriesPoint(self._month_label(year, month), unique))
        return series
