"""
Bucket key scheme — maps (page, time, granularity) to store keys.

Everything here is pure. Keys are built as typed ``CounterKey`` descriptors
and only turned into strings by the store adapter (``CounterKey.render``),
so the layout below is the single place that knows the persisted names:

    pageviews_<pageId>                     total views (never expires)
    pageviews:<pageId>:<YYYY-MM-DD-HH>     hourly views
    pageviews_daily:<pageId>:<YYYY-MM-DD>  daily views
    visitors:<pageId>:<YYYY-MM-DD>         JSON list of visitor hashes
    visitors_total:<pageId>                cumulative distinct visitors

All buckets are UTC.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum


class Namespace(str, Enum):
    TOTAL = "total"
    HOURLY = "hourly"
    DAILY = "daily"
    VISITORS = "visitors"
    TOTAL_VISITORS = "total_visitors"


_TEMPLATES = {
    Namespace.TOTAL: "pageviews_{page}",
    Namespace.HOURLY: "pageviews:{page}:{bucket}",
    Namespace.DAILY: "pageviews_daily:{page}:{bucket}",
    Namespace.VISITORS: "visitors:{page}:{bucket}",
    Namespace.TOTAL_VISITORS: "visitors_total:{page}",
}

_BUCKETED = {Namespace.HOURLY, Namespace.DAILY, Namespace.VISITORS}


@dataclass(frozen=True)
class CounterKey:
    namespace: Namespace
    page_id: str
    bucket: str | None = None

    def __post_init__(self):
        if (self.namespace in _BUCKETED) != (self.bucket is not None):
            raise ValueError(f"{self.namespace.value} key needs bucket={self.namespace in _BUCKETED}")

    def render(self) -> str:
        return _TEMPLATES[self.namespace].format(page=self.page_id, bucket=self.bucket)

    def __str__(self) -> str:
        return self.render()


def _utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def date_key(dt: datetime) -> str:
    """'YYYY-MM-DD' of ``dt`` in UTC."""
    return _utc(dt).strftime("%Y-%m-%d")


def hour_key(dt: datetime) -> str:
    """'YYYY-MM-DD-HH' of ``dt`` in UTC."""
    return _utc(dt).strftime("%Y-%m-%d-%H")


def total_key(page_id: str) -> CounterKey:
    return CounterKey(Namespace.TOTAL, page_id)


def hourly_key(page_id: str, dt: datetime) -> CounterKey:
    return CounterKey(Namespace.HOURLY, page_id, hour_key(dt))


def daily_key(page_id: str, dt: datetime) -> CounterKey:
    return CounterKey(Namespace.DAILY, page_id, date_key(dt))


def visitor_set_key(page_id: str, dt: datetime) -> CounterKey:
    return CounterKey(Namespace.VISITORS, page_id, date_key(dt))


def total_visitors_key(page_id: str) -> CounterKey:
    return CounterKey(Namespace.TOTAL_VISITORS, page_id)


def daily_key_for(page_id: str, day: date) -> CounterKey:
    return CounterKey(Namespace.DAILY, page_id, day.isoformat())


def visitor_set_key_for(page_id: str, day: date) -> CounterKey:
    return CounterKey(Namespace.VISITORS, page_id, day.isoformat())


def month_dates(year: int, month: int) -> list[date]:
    """Every calendar day of the given month."""
    days = calendar.monthrange(year, month)[1]
    return [date(year, month, d) for d in range(1, days + 1)]
