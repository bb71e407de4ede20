"""
Ads Recommendation Engine — FastAPI Backend
Turns aggregated keyword and campaign metrics into reviewable optimization
recommendations. All data persisted to PostgreSQL.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from recengine.config import get_settings
from recengine.database import init_db, check_db_connection
from recengine.auth import require_auth
from recengine.routers import recommendations, change_log, thresholds, cron
from recengine.services.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Ads Recommendation Engine...")
    try:
        await init_db()
        logger.info("Database initialized — all tables ready.")
    except Exception as e:
        logger.error(f"Startup failed (DB/init): {e}", exc_info=True)
        # Still yield so app can serve /api/health (degraded) and logs are visible
    if settings.recommendation_scheduler_in_process and not settings.disable_recommendation_scheduler:
        start_scheduler(settings)
    yield
    stop_scheduler()
    logger.info("Shutting down...")


app = FastAPI(
    title="Ads Recommendation Engine",
    description="Keyword graduation, negative keyword, duplicate and budget/bid recommendations",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Register Routers (all require auth) ──────────────────────────────
_auth = [Depends(require_auth)]
app.include_router(recommendations.router, prefix="/api/recommendations", tags=["Recommendations"], dependencies=_auth)
app.include_router(change_log.router, prefix="/api/change-log", tags=["Change Log"], dependencies=_auth)
app.include_router(thresholds.router, prefix="/api/thresholds", tags=["Thresholds"], dependencies=_auth)
app.include_router(cron.router, prefix="/api")  # No auth; uses CRON_SECRET


@app.get("/api/health")
async def health_check():
    db_ok = await check_db_connection()
    return {
        "status": "healthy" if db_ok else "degraded",
        "service": "Ads Recommendation Engine",
        "database": "connected" if db_ok else "disconnected",
    }
