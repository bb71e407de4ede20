"""
Recommendation Scheduler — weekly generation for every active brand.

Intended to run Sunday 11 PM so recommendations are waiting Monday morning.
Driven either by POST /api/cron/recommendations from an external cron, or
in-process by APScheduler when RECOMMENDATION_SCHEDULER_IN_PROCESS is set.

Configuration (env):
  DISABLE_RECOMMENDATION_SCHEDULER   true to disable
  RECOMMENDATION_SCHEDULER_DAY       0 = Sunday ... 6 = Saturday (default 0)
  RECOMMENDATION_SCHEDULER_HOUR      default 23
  RECOMMENDATION_SCHEDULER_TZ        default America/New_York
  RECOMMENDATION_STAGGER_MS          pause between brands (default 2000)
  RECOMMENDATION_LOOKBACK_DAYS       default 30

Brands run one at a time with a pause between them so a weekly run doesn't
burst the database. Each brand gets its own session; one brand failing never
stops the run.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from pydantic import BaseModel
from sqlalchemy import select

from recengine.config import Settings, get_settings
from recengine.models import Brand
from recengine.services.recommendation_generator import generate_recommendations

logger = logging.getLogger(__name__)

LOG_PREFIX = "[Recommendation Scheduler]"
JOB_ID = "weekly_recommendations"

# Index = configured day (0 = Sunday); APScheduler wants names
DAY_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]

scheduler = AsyncIOScheduler()


class BrandGenerationResult(BaseModel):
    brand_id: str
    brand_name: str
    generated: int = 0
    skipped: int = 0
    errors: List[str] = []


class ScheduledGenerationResult(BaseModel):
    total_brands: int = 0
    brands_processed: int = 0
    brands_failed: int = 0
    results: List[BrandGenerationResult] = []
    skipped: Optional[str] = None    # "disabled" | "wrong_day" | None
    error: Optional[str] = None      # set only if the brand list itself couldn't be loaded
    duration: int = 0                # milliseconds


def current_day_of_week(tz_name: str) -> int:
    """Today in the scheduler's timezone, 0 = Sunday ... 6 = Saturday."""
    return (datetime.now(ZoneInfo(tz_name)).weekday() + 1) % 7


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


async def _load_active_brands(session_factory) -> list:
    async with session_factory() as db:
        result = await db.execute(
            select(Brand.id, Brand.name).where(Brand.is_active.is_(True)).order_by(Brand.name, Brand.id)
        )
        return result.all()


async def run_scheduled_recommendation_generation(
    force: bool = False,
    session_factory=None,
    settings: Optional[Settings] = None,
) -> ScheduledGenerationResult:
    """
    Generate recommendations for all active brands.
    force skips the day-of-week check (manual runs); the disable flag still applies.
    Never raises: failures are reported in the returned summary.
    """
    start = time.monotonic()
    settings = settings or get_settings()
    if session_factory is None:
        from recengine.database import async_session
        session_factory = async_session

    if settings.disable_recommendation_scheduler:
        logger.info(f"{LOG_PREFIX} Scheduler is disabled via DISABLE_RECOMMENDATION_SCHEDULER")
        return ScheduledGenerationResult(skipped="disabled", duration=_elapsed_ms(start))

    if not force:
        today = current_day_of_week(settings.recommendation_scheduler_tz)
        if today != settings.recommendation_scheduler_day:
            logger.info(
                f"{LOG_PREFIX} Skipping: current day ({today}) != configured day "
                f"({settings.recommendation_scheduler_day})"
            )
            return ScheduledGenerationResult(skipped="wrong_day", duration=_elapsed_ms(start))

    logger.info(f"{LOG_PREFIX} Starting scheduled recommendation generation...")
    try:
        brands = await _load_active_brands(session_factory)
    except Exception as e:
        logger.exception(f"{LOG_PREFIX} Could not load active brands")
        return ScheduledGenerationResult(error=str(e) or e.__class__.__name__, duration=_elapsed_ms(start))

    logger.info(f"{LOG_PREFIX} Processing {len(brands)} active brands")
    summary = ScheduledGenerationResult(total_brands=len(brands))

    for i, (brand_id, brand_name) in enumerate(brands):
        try:
            async with session_factory() as db:
                result = await generate_recommendations(
                    db, brand_id,
                    lookback_days=settings.recommendation_lookback_days,
                    dry_run=False,
                )
            summary.results.append(BrandGenerationResult(
                brand_id=str(brand_id),
                brand_name=brand_name,
                generated=result.generated,
                skipped=result.skipped,
                errors=result.errors,
            ))
            summary.brands_processed += 1
            # Errors with nothing generated counts as a failure too
            if result.errors and result.generated == 0:
                summary.brands_failed += 1
            logger.info(f"{LOG_PREFIX} Brand {brand_name}: {result.generated} generated, {result.skipped} skipped")
        except Exception as e:
            logger.error(f"{LOG_PREFIX} Error for brand {brand_name}: {e}", exc_info=True)
            summary.results.append(BrandGenerationResult(
                brand_id=str(brand_id),
                brand_name=brand_name,
                errors=[str(e) or e.__class__.__name__],
            ))
            summary.brands_failed += 1

        if settings.recommendation_stagger_ms > 0 and i < len(brands) - 1:
            await asyncio.sleep(settings.stagger_seconds)

    summary.duration = _elapsed_ms(start)
    logger.info(
        f"{LOG_PREFIX} Completed: {summary.brands_processed} succeeded, {summary.brands_failed} failed. "
        f"Duration: {summary.duration}ms"
    )
    return summary


# ── In-process scheduling (APScheduler) ──────────────────────────────

async def _weekly_job():
    # The cron trigger already encodes the day, so skip the day check
    await run_scheduled_recommendation_generation(force=True)


def build_trigger(settings: Settings) -> CronTrigger:
    return CronTrigger(
        day_of_week=DAY_NAMES[settings.recommendation_scheduler_day],
        hour=settings.recommendation_scheduler_hour,
        minute=0,
        timezone=ZoneInfo(settings.recommendation_scheduler_tz),
    )


def start_scheduler(settings: Optional[Settings] = None):
    settings = settings or get_settings()
    scheduler.add_job(
        _weekly_job,
        trigger=build_trigger(settings),
        id=JOB_ID,
        name="Weekly Recommendation Generation",
        replace_existing=True,
        max_instances=1,
    )
    scheduler.start()
    logger.info(
        f"{LOG_PREFIX} In-process scheduler started: {DAY_NAMES[settings.recommendation_scheduler_day]} "
        f"{settings.recommendation_scheduler_hour:02d}:00 {settings.recommendation_scheduler_tz}"
    )


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info(f"{LOG_PREFIX} In-process scheduler stopped")
