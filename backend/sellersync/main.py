"""
Seller Sync - FastAPI Backend
Pulls Amazon Selling Partner reports and transactions into the warehouse.
All data persisted to PostgreSQL. Jobs are triggered by an external scheduler.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from sellersync.database import init_db, check_db_connection
from sellersync.routers import cron

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Seller Sync...")
    try:
        await init_db()
        logger.info("Database initialized - all tables ready.")
    except Exception as e:
        logger.error(f"Startup failed (DB/init): {e}", exc_info=True)
        # Still yield so app can serve /api/health (degraded) and logs are visible
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="Seller Sync",
    description="Amazon Selling Partner API ingestion into the sales warehouse",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(cron.router, prefix="/api")  # No user auth - uses CRON_SECRET


@app.get("/api/health")
async def health_check():
    db_ok = await check_db_connection()
    return {
        "status": "healthy" if db_ok else "degraded",
        "service": "Seller Sync",
        "database": "connected" if db_ok else "disconnected",
    }
