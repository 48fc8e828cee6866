"""
Периодическая задача: открытие окон записи, время которых наступило
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from bunkhouse.core.exceptions import ConflictError
from bunkhouse.services.window_service import WindowService

logger = logging.getLogger(__name__)


async def open_due_windows(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Opens every scheduled window whose opens_at has passed. Returns how many opened."""
    due = await WindowService.list_due_windows(db, now)
    window_ids = [window.id for window in due]

    opened = 0
    for window_id in window_ids:
        window = await WindowService.get_window(db, window_id)
        try:
            await WindowService.open_window_if_due(db, window, now)
        except ConflictError as e:
            # Another window of the house is still open; retried on the next tick
            logger.warning("Window %s not opened: %s", window_id, e)
            continue
        opened += 1
        # Push delivery is out of scope; the opening is only logged
        logger.info("📣 Sign-up is open for window %s", window_id)

    return opened


async def open_due_windows_job():
    logger.info("🔄 Checking for signup windows to open...")

    try:
        from bunkhouse.database import AsyncSessionLocal

        async with AsyncSessionLocal() as session:
            opened = await open_due_windows(session)

        if opened:
            logger.info("✅ Opened %s signup window(s)", opened)
    except Exception as e:
        logger.error(f"❌ Error in window opener job: {e}", exc_info=True)
