"""
Еженедельная задача: создание окон записи на выходные через неделю
"""
import logging

logger = logging.getLogger(__name__)


async def schedule_weekly_windows_job():
    """
    Runs once a week. Every house with bed sign-up enabled and at least one bed
    gets a scheduled window for the weekend after next, opening at a random
    time on Monday or Tuesday.
    """
    logger.info("🔄 Scheduling signup windows for the weekend after next...")

    try:
        from bunkhouse.database import AsyncSessionLocal
        from bunkhouse.services.window_service import WindowService

        async with AsyncSessionLocal() as session:
            created = await WindowService.schedule_weekend_windows(session)

        for window in created:
            logger.info(
                "📅 House %s: window %s for %s opens at %s",
                window.house_id, window.id, window.target_weekend_start, window.opens_at,
            )
        logger.info("✅ Weekly scheduling done: %s window(s) created", len(created))
    except Exception as e:
        logger.error(f"❌ Error in weekly window job: {e}", exc_info=True)
