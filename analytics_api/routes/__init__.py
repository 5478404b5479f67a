"""
API Routes — health plus the page-view router.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from analytics_api.schemas import HealthResponse
from analytics_api.routes.pageview import pageview_router

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Health ──────────────────────────────────────────────

@router.get("/health", response_model=HealthResponse, tags=["system"])
async def health(request: Request):
    store = getattr(request.app.state, "store", None)
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        store=type(store).__name__ if store is not None else "disabled",
    )


router.include_router(pageview_router)
