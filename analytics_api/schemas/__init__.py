"""
Fyrk Analytics — Pydantic request/response schemas.

Field names on the wire are camelCase to match the browser snippet and
the dashboard; Python attributes stay snake_case.
"""

from pydantic import BaseModel, Field

from analytics_api.services.pageviews import Period


class PageviewRecorded(BaseModel):
    success: bool = True
    page_id: str = Field(..., alias="pageId")
    views: int
    is_new_visitor: bool = Field(..., alias="isNewVisitor")

    model_config = {"populate_by_name": True}


class TrackingMessage(BaseModel):
    success: bool = True
    message: str


class TrackingError(BaseModel):
    success: bool = False
    error: str


class PageStatsOut(BaseModel):
    label: str
    total_views: int = Field(..., alias="totalViews")
    total_visitors: int = Field(..., alias="totalVisitors")
    today_visitors: int = Field(..., alias="todayVisitors")

    model_config = {"populate_by_name": True, "from_attributes": True}


class PageStatsResponse(PageStatsOut):
    page_id: str = Field(..., alias="pageId")


class AllStatsResponse(BaseModel):
    stats: dict[str, PageStatsOut]


class TimeseriesPointOut(BaseModel):
    label: str
    value: int

    model_config = {"from_attributes": True}


class TimeseriesResponse(BaseModel):
    page_id: str = Field(..., alias="pageId")
    timeseries: list[TimeseriesPointOut]
    visitors_timeseries: list[TimeseriesPointOut] = Field(..., alias="visitorsTimeseries")
    period: Period

    model_config = {"populate_by_name": True}


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "1.0.0"
    timestamp: str | None = None
    store: str = "disabled"
