"""
Tests for API routes — health, page-view ingest and statistics.
"""

from analytics_api.services import keys
from analytics_api.services.kv_store import parse_count
from analytics_api.services.request_signing import sign_request

CHROME = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/128.0 Safari/537.36"
BROWSER = {"user-agent": CHROME}


def _signed(page_id=None):
    payload = {} if page_id is None else {"pageId": page_id}
    return sign_request(payload)


class TestHealthEndpoint:
    async def test_health(self, client):
        resp = await client.get("/api/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert "timestamp" in data


class TestRootEndpoint:
    async def test_root(self, client):
        resp = await client.get("/")
        assert resp.status_code == 200
        assert "Fyrk" in resp.json()["service"]


class TestRecordPageview:
    async def test_signed_view_is_counted(self, client, store):
        resp = await client.post("/api/pageview", json=_signed("okr"), headers=BROWSER)
        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "no-store"
        assert resp.json() == {"success": True, "pageId": "okr", "views": 1, "isNewVisitor": True}
        assert parse_count(await store.get(keys.total_key("okr"))) == 1

    async def test_repeat_visitor(self, client):
        headers = {**BROWSER, "x-forwarded-for": "5.6.7.8"}
        await client.post("/api/pageview", json=_signed("home"), headers=headers)
        resp = await client.post("/api/pageview", json=_signed("home"), headers=headers)
        data = resp.json()
        assert data["views"] == 2
        assert data["isNewVisitor"] is False

    async def test_distinct_forwarded_addresses(self, client, store):
        for ip in ("1.1.1.1", "2.2.2.2"):
            await client.post("/api/pageview", json=_signed("home"), headers={**BROWSER, "x-forwarded-for": ip})
        assert parse_count(await store.get(keys.total_visitors_key("home"))) == 2

    async def test_unknown_page_counts_as_home(self, client):
        resp = await client.post("/api/pageview", json=_signed("nope"), headers=BROWSER)
        assert resp.json()["pageId"] == "home"

    async def test_missing_page_counts_as_home(self, client):
        resp = await client.post("/api/pageview", json=_signed(), headers=BROWSER)
        assert resp.status_code == 200
        assert resp.json()["pageId"] == "home"

    async def test_unsigned_rejected(self, client, store):
        resp = await client.post("/api/pageview", json={"pageId": "okr"}, headers=BROWSER)
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "Invalid request signature"}
        assert store.keys() == []

    async def test_tampered_rejected(self, client, store):
        body = _signed("okr")
        body["payload"]["pageId"] = "home"
        resp = await client.post("/api/pageview", json=body, headers=BROWSER)
        assert resp.status_code == 400
        assert store.keys() == []

    async def test_non_json_body_rejected(self, client, store):
        resp = await client.post("/api/pageview", content=b"not json", headers=BROWSER)
        assert resp.status_code == 400
        assert store.keys() == []

    async def test_automated_browser_excluded(self, client, store):
        resp = await client.post(
            "/api/pageview", json=_signed("okr"), headers={"user-agent": "HeadlessChrome/120"}
        )
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Excluded from tracking"}
        assert store.keys() == []

    async def test_opt_out_header_excluded(self, client, store):
        resp = await client.post(
            "/api/pageview", json=_signed("okr"), headers={**BROWSER, "x-exclude-from-stats": "true"}
        )
        assert resp.json()["message"] == "Excluded from tracking"
        assert store.keys() == []

    async def test_bot_excluded(self, client, store):
        resp = await client.post("/api/pageview", json=_signed("okr"), headers={"user-agent": "Googlebot/2.1"})
        assert resp.json()["message"] == "Excluded from tracking"
        assert store.keys() == []

    async def test_not_configured(self, unconfigured_client):
        resp = await unconfigured_client.post("/api/pageview", json=_signed("okr"), headers=BROWSER)
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Tracking not configured"}

    async def test_store_failure_still_succeeds(self, broken_client):
        resp = await broken_client.post("/api/pageview", json=_signed("okr"), headers=BROWSER)
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Tracking skipped"}


class TestPageviewStats:
    async def test_single_page(self, client):
        await client.post("/api/pageview", json=_signed("konseptspeil"), headers=BROWSER)

        resp = await client.get("/api/pageview", params={"pageId": "konseptspeil"})
        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "no-store"
        assert resp.json() == {
            "pageId": "konseptspeil",
            "label": "fyrk.no/konseptspeilet",
            "totalViews": 1,
            "totalVisitors": 1,
            "todayVisitors": 1,
        }

    async def test_all_pages(self, client):
        await client.post("/api/pageview", json=_signed("okr"), headers=BROWSER)
        resp = await client.get("/api/pageview", params={"all": "true"})
        stats = resp.json()["stats"]
        assert len(stats) == 6
        assert stats["okr"]["totalViews"] == 1
        assert stats["home"] == {"label": "fyrk.no", "totalViews": 0, "totalVisitors": 0, "todayVisitors": 0}

    async def test_timeseries_default_period(self, client):
        await client.post("/api/pageview", json=_signed("home"), headers=BROWSER)
        resp = await client.get("/api/pageview", params={"pageId": "home", "timeseries": "true"})
        data = resp.json()
        assert data["pageId"] == "home"
        assert data["period"] == "24h"
        assert len(data["timeseries"]) == 24
        assert len(data["visitorsTimeseries"]) == 24
        assert data["timeseries"][-1]["value"] == 1
        assert data["visitorsTimeseries"][-1]["value"] == 1
        assert set(data["timeseries"][0]) == {"label", "value"}

    async def test_timeseries_periods(self, client):
        for period, points in (("week", 7), ("month", 30), ("year", 12), ("all", 24)):
            resp = await client.get(
                "/api/pageview", params={"pageId": "okr", "timeseries": "true", "period": period}
            )
            data = resp.json()
            assert data["period"] == period
            assert len(data["timeseries"]) == points
            assert len(data["visitorsTimeseries"]) == points

    async def test_invalid_period(self, client):
        resp = await client.get(
            "/api/pageview", params={"pageId": "okr", "timeseries": "true", "period": "decade"}
        )
        assert resp.status_code == 422

    async def test_usage_message(self, client):
        resp = await client.get("/api/pageview")
        assert resp.status_code == 200
        assert "Use ?all=true" in resp.json()["message"]

    async def test_unknown_page_gets_usage_message(self, client):
        resp = await client.get("/api/pageview", params={"pageId": "nope"})
        assert "message" in resp.json()

    async def test_not_configured(self, unconfigured_client):
        resp = await unconfigured_client.get("/api/pageview", params={"all": "true"})
        assert resp.status_code == 200
        assert resp.json() == {"stats": None, "message": "Tracking not configured"}

    async def test_store_failure(self, broken_client):
        resp = await broken_client.get("/api/pageview", params={"pageId": "okr"})
        assert resp.status_code == 500
        assert resp.json() == {"stats": None, "error": "Failed to fetch stats"}
        assert resp.headers["cache-control"] == "no-store"
