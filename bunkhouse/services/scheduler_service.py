"""
Сервис планировщика: открытие окон записи и еженедельное создание новых
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from bunkhouse.core.config import settings

logger = logging.getLogger(__name__)


class SchedulerService:
    """Сервис для управления периодическими задачами"""

    def __init__(self):
        self.scheduler = AsyncIOScheduler()
        self._jobs_registered = False

    def register_jobs(self):
        """Регистрация всех периодических задач"""
        if self._jobs_registered:
            logger.warning("Jobs already registered")
            return

        # Импортируем здесь чтобы избежать циклических зависимостей
        from bunkhouse.jobs.weekly_windows_job import schedule_weekly_windows_job
        from bunkhouse.jobs.window_opener_job import open_due_windows_job

        if settings.window_open_check_interval_minutes > 0:
            self.scheduler.add_job(
                open_due_windows_job,
                IntervalTrigger(minutes=settings.window_open_check_interval_minutes),
                id="window_opener",
                name="Open due signup windows",
                replace_existing=True,
            )
            logger.info(
                "Registered window opener job (every %s minutes)",
                settings.window_open_check_interval_minutes,
            )
        else:
            logger.info("Window opener disabled (interval = 0)")

        self.scheduler.add_job(
            schedule_weekly_windows_job,
            CronTrigger(
                day_of_week=settings.weekly_schedule_day,
                hour=settings.weekly_schedule_hour,
                minute=0,
            ),
            id="weekly_windows",
            name="Schedule next weekend's signup windows",
            replace_existing=True,
        )
        logger.info(
            "Registered weekly window job (%s at %02d:00)",
            settings.weekly_schedule_day, settings.weekly_schedule_hour,
        )

        self._jobs_registered = True

    def start(self):
        """Запуск планировщика"""
        if not self.scheduler.running:
            self.register_jobs()
            self.scheduler.start()
            logger.info("Scheduler started")
        else:
            logger.warning("Scheduler already running")

    def shutdown(self):
        """Остановка планировщика"""
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler stopped")

    def get_jobs(self):
        return self.scheduler.get_jobs()


# Глобальный экземпляр
scheduler_service = SchedulerService()
