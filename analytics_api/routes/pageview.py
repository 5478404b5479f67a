"""
Fyrk Analytics — Page-view routes.

POST /pageview records one signed page-view event.
GET  /pageview returns snapshots or time series for the dashboard.

Tracking must never break the page that embeds it: the POST handler
reports success for excluded traffic, for a missing store and for store
failures. Only a bad signature gets a client error.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from analytics_api.config import settings
from analytics_api.schemas import (
    AllStatsResponse,
    PageStatsOut,
    PageStatsResponse,
    PageviewRecorded,
    TimeseriesPointOut,
    TimeseriesResponse,
    TrackingError,
    TrackingMessage,
)
from analytics_api.services.kv_store import CounterStore
from analytics_api.services.pages import TRACKED_PAGES, is_tracked
from analytics_api.services.pageviews import PageviewTracker, Period
from analytics_api.services.request_signing import verify_signed_request
from analytics_api.services.tracking_exclusion import should_exclude_request
from analytics_api.services.visitor_hash import client_address

logger = logging.getLogger(__name__)
pageview_router = APIRouter(tags=["pageview"])

# Dynamic data, never cached by CDNs or proxies
NO_STORE = {"Cache-Control": "no-store"}


def _json(content, status_code: int = 200) -> JSONResponse:
    if isinstance(content, BaseModel):
        content = content.model_dump(by_alias=True, mode="json")
    return JSONResponse(content, status_code=status_code, headers=NO_STORE)


# ═══════════════════════════════════════════════════════
#  Dependencies
# ═══════════════════════════════════════════════════════

def get_store(request: Request) -> Optional[CounterStore]:
    """The store opened at startup, or None when tracking is not configured."""
    return getattr(request.app.state, "store", None)


def get_tracker(store: Optional[CounterStore] = Depends(get_store)) -> Optional[PageviewTracker]:
    if store is None:
        return None
    return PageviewTracker(
        store,
        retention_seconds=settings.retention_seconds,
        visitor_cap=settings.max_unique_visitors_per_day,
        atomic_increments=settings.atomic_increments,
    )


# ═══════════════════════════════════════════════════════
#  API Endpoints
# ═══════════════════════════════════════════════════════

@pageview_router.post("/pageview")
async def track_pageview(
    request: Request,
    tracker: Optional[PageviewTracker] = Depends(get_tracker),
):
    """Record a page view. Body: ``{"payload": {"pageId": …}, "_ts": …, "_sig": …}``."""
    if should_exclude_request(request.headers, exclude_bots=settings.exclude_bots):
        return _json(TrackingMessage(message="Excluded from tracking"))

    if tracker is None:
        return _json(TrackingMessage(message="Tracking not configured"))

    try:
        body = await request.json()
    except ValueError:
        body = None

    check = verify_signed_request(
        body, key=settings.signing_key, max_age_ms=settings.max_request_age_ms
    )
    if not check.is_valid:
        logger.info("Rejected page view: %s", check.error)
        return _json(TrackingError(error="Invalid request signature"), status_code=400)

    peer = request.client.host if request.client else None
    try:
        summary = await tracker.record_view(
            check.payload.get("pageId"),
            client_address(request.headers, peer),
        )
    except Exception:
        logger.exception("Page view tracking error")
        return _json(TrackingMessage(message="Tracking skipped"))

    return _json(
        PageviewRecorded(
            page_id=summary.page_id,
            views=summary.total_views,
            is_new_visitor=summary.is_new_visitor,
        )
    )


@pageview_router.get("/pageview")
async def pageview_stats(
    page_id: Optional[str] = Query(None, alias="pageId", description="Tracked page id"),
    all_pages: bool = Query(False, alias="all", description="Stats for every tracked page"),
    timeseries: bool = Query(False, description="Return time series instead of totals"),
    period: Period = Query(Period.DAY, description="24h, week, month, year or all"),
    tracker: Optional[PageviewTracker] = Depends(get_tracker),
):
    """Page-view statistics, always computed fresh from the store."""
    if tracker is None:
        return _json({"stats": None, "message": "Tracking not configured"})

    try:
        if timeseries and is_tracked(page_id):
            views = await tracker.get_timeseries(page_id, period)
            visitors = await tracker.get_visitors_timeseries(page_id, period)
            return _json(
                TimeseriesResponse(
                    page_id=page_id,
                    timeseries=[TimeseriesPointOut.model_validate(p) for p in views],
                    visitors_timeseries=[TimeseriesPointOut.model_validate(p) for p in visitors],
                    period=period,
                )
            )

        if is_tracked(page_id):
            stats = await tracker.get_page_stats(page_id)
            return _json(PageStatsResponse.model_validate(stats))

        if all_pages:
            stats = await tracker.get_all_stats()
            return _json(
                AllStatsResponse(
                    stats={pid: PageStatsOut.model_validate(s) for pid, s in stats.items()}
                )
            )
    except Exception:
        logger.exception("Error fetching page view stats")
        return _json({"stats": None, "error": "Failed to fetch stats"}, status_code=500)

    return _json({"message": f"Use ?all=true or ?pageId={'|'.join(TRACKED_PAGES)}"})
