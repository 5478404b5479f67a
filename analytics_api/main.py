"""
FastAPI Application — entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from analytics_api.config import settings
from analytics_api.routes import router
from analytics_api.services.kv_store import open_store

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hook."""
    logger.info("🚀 Starting Fyrk Analytics API v%s", VERSION)

    try:
        store = await open_store(settings.analytics_store_url, key_prefix=settings.store_key_prefix)
    except Exception as e:
        # Same outcome as an unprovisioned store: tracking is skipped, pages keep working
        logger.error("Counter store init failed: %s", e)
        store = None

    app.state.store = store
    if store is not None:
        logger.info("✅ Counter store ready (%s)", type(store).__name__)
    else:
        logger.info("ℹ️ Page-view tracking disabled (no ANALYTICS_STORE_URL)")

    yield

    # Shutdown
    if store is not None:
        await store.close()
    logger.info("👋 Shutdown complete")


app = FastAPI(
    title="Fyrk Analytics API",
    description="Cookie-free page-view counters and dashboard time series for fyrk.no.",
    version=VERSION,
    lifespan=lifespan,
)

# CORS: the tracking snippet posts from the public site
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api")


@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": "Fyrk Analytics API",
        "version": VERSION,
        "docs": "/docs",
    }
