"""WINQER — FastAPI Application Entry Point.

Store-level marketing analytics: Meta Ads, GA4 and Google Business Profile
per store, with AI analysis, creative generation and Stripe plans.
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from winqer.api.admin_routes import router as admin_router
from winqer.api.ai_routes import router as ai_router
from winqer.api.auth_routes import router as auth_router
from winqer.api.billing_routes import router as billing_router
from winqer.api.dashboard_routes import router as dashboard_router
from winqer.api.google_routes import router as google_router
from winqer.api.meta_routes import router as meta_router
from winqer.api.settings_routes import router as settings_router
from winqer.api.store_routes import router as store_router
from winqer.api.strategy_routes import router as strategy_router
from winqer.config import settings
from winqer.core.errors import register_error_handlers
from winqer.core.logging import get_logger
from winqer.database import init_db, is_sqlite, masked_url, test_connection

logger = get_logger("main")

IS_SERVERLESS = bool(
    os.environ.get("VERCEL") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME")
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("🚀 WINQER starting up...")
    logger.info(f"🌍 Environment: {'SERVERLESS' if IS_SERVERLESS else 'LOCAL'}")
    if test_connection():
        try:
            init_db()
        except SQLAlchemyError as e:
            logger.error(f"❌ Table creation failed: {e}")
    else:
        logger.error("❌ Database NOT connected — endpoints will fail")
    yield
    logger.info("WINQER shut down")


app = FastAPI(
    title="WINQER",
    description="Store marketing analytics: Meta Ads, GA4 and Business Profile in one dashboard, with AI analysis and creatives.",
    version="1.0.0",
    lifespan=lifespan,
)

# Cookies carry the session, so origins must be explicit
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.app_base_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Routers
app.include_router(auth_router)
app.include_router(store_router)
app.include_router(admin_router)
app.include_router(dashboard_router)
app.include_router(meta_router)
app.include_router(google_router)
app.include_router(ai_router)
app.include_router(strategy_router)
app.include_router(billing_router)
app.include_router(settings_router)


@app.get("/health", tags=["System"])
async def health_check():
    """Health check with database reachability."""
    return {
        "status": "healthy",
        "service": "winqer",
        "version": "1.0.0",
        "database": {
            "connected": test_connection(),
            "backend": "sqlite" if is_sqlite else "postgresql",
        },
    }


@app.get("/debug/db", tags=["System"])
async def debug_db():
    """Database connectivity with the masked connection URL."""
    return {
        "connected": test_connection(),
        "backend": "sqlite" if is_sqlite else "postgresql",
        "url": masked_url(),
        "environment": "serverless" if IS_SERVERLESS else "local",
    }
