"""
Cron / Scheduled Jobs — Endpoint for an external cron (e.g. Upstash QStash).

Call weekly (Sunday 11 PM in the configured timezone) or hourly; runs on
any other day are skipped unless force=true.

  POST https://your-app/api/cron/recommendations
  Header: X-Cron-Secret: <CRON_SECRET>   (or Authorization: Bearer <CRON_SECRET>)
"""

import logging
from fastapi import APIRouter, Depends, Query

from recengine.auth import require_cron_secret
from recengine.services.scheduler import run_scheduled_recommendation_generation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["Cron"])


@router.post("/recommendations")
async def cron_recommendations(
    force: bool = Query(False),
    _: None = Depends(require_cron_secret),
):
    """Weekly recommendation generation for all active brands."""
    result = await run_scheduled_recommendation_generation(force=force)
    logger.info(
        f"Cron recommendations: skipped={result.skipped} processed={result.brands_processed} "
        f"failed={result.brands_failed}"
    )
    return {"status": "skipped" if result.skipped else "ok", "result": result.model_dump()}
