import logging
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from news_digest.core.digest_service import DigestService
from news_digest.core.exceptions import ScheduleError
from news_digest.schemas import TriggerResult
from news_digest.services.sanitizer import sanitize_error_message
from news_digest.storage.base import SCHEDULE_ENABLED, SCHEDULE_INTERVAL, Storage

logger = logging.getLogger(__name__)

JOB_ID = "digest_generation"
MIN_INTERVAL_HOURS = 1
MAX_INTERVAL_HOURS = 24
FALLBACK_INTERVAL_HOURS = 3


def next_run_time(interval_hours: int, now: datetime) -> datetime:
    """
    Next hour boundary divisible by the interval, counted from local midnight.

    Args:
        interval_hours: Hours between runs (1-24)
        now: Timezone-aware current time in the schedule's timezone

    Returns:
        The first matching boundary strictly after now
    """
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    for hour in range(now.hour + 1, 24):
        if hour % interval_hours == 0:
            return midnight.replace(hour=hour)
    return midnight + timedelta(days=1)


class DigestScheduler:
    """Runs the digest pipeline on hour boundaries with one-shot jobs"""

    def __init__(self, digest_service: DigestService, storage: Storage, timezone: str = "Asia/Kuala_Lumpur"):
        self.digest_service = digest_service
        self.storage = storage
        self.timezone = ZoneInfo(timezone)
        self.scheduler = AsyncIOScheduler(timezone=self.timezone)
        self.interval_hours: Optional[int] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """True while a pipeline run is in progress"""
        return self._running

    def next_run_time(self, interval_hours: int, now: Optional[datetime] = None) -> datetime:
        now = now.astimezone(self.timezone) if now else datetime.now(self.timezone)
        return next_run_time(interval_hours, now)

    def start_schedule(self, interval_hours: int) -> datetime:
        """Install (or replace) the recurring job; must be called inside a running event loop"""
        if not isinstance(interval_hours, int) or not MIN_INTERVAL_HOURS <= interval_hours <= MAX_INTERVAL_HOURS:
            raise ScheduleError(
                f"Interval must be between {MIN_INTERVAL_HOURS} and {MAX_INTERVAL_HOURS} hours, got {interval_hours}"
            )

        self.stop_schedule()
        if not self.scheduler.running:
            self.scheduler.start()

        self.interval_hours = interval_hours
        run_at = self._arm(interval_hours)

        self.storage.set_setting(SCHEDULE_ENABLED, "true")
        self.storage.set_setting(SCHEDULE_INTERVAL, str(interval_hours))
        self.storage.create_system_log(
            "info",
            f"Digest schedule started: every {interval_hours} hour(s)",
            {"interval_hours": interval_hours, "next_run": run_at.isoformat()},
        )
        logger.info(f"✅ Schedule started, every {interval_hours}h, next run at {run_at.isoformat()}")
        return run_at

    def _arm(self, interval_hours: int, run_at: Optional[datetime] = None) -> datetime:
        run_at = run_at or self.next_run_time(interval_hours)
        # A late boundary still runs once; only _tick re-arms the chain
        self.scheduler.add_job(
            self._tick,
            DateTrigger(run_date=run_at, timezone=self.timezone),
            id=JOB_ID,
            name=f"Digest every {interval_hours}h",
            replace_existing=True,
            misfire_grace_time=None,
            coalesce=True,
        )
        return run_at

    async def _tick(self):
        # Re-arm first so a slow run never skips the following boundary
        if self.interval_hours:
            self._arm(self.interval_hours)
        logger.info("🕘 Scheduled digest run")
        await self._run_pipeline()

    def stop_schedule(self, disable: bool = False) -> None:
        try:
            self.scheduler.remove_job(JOB_ID)
            logger.info("Digest schedule stopped")
        except JobLookupError:
            pass
        self.interval_hours = None

        if disable:
            self.storage.set_setting(SCHEDULE_ENABLED, "false")
            self.storage.create_system_log("info", "Digest schedule disabled")

    async def manual_trigger(self) -> TriggerResult:
        self.storage.create_system_log("info", "Manual digest generation triggered")
        logger.info("Manual digest generation triggered")
        return await self._run_pipeline()

    async def _run_pipeline(self) -> TriggerResult:
        if self._running:
            self.storage.create_system_log("warning", "Digest generation already in progress, run skipped")
            logger.warning("Digest generation already in progress, run skipped")
            return TriggerResult(success=False, message="Digest generation already in progress")

        self._running = True
        try:
            summary = await self.digest_service.run()
            return TriggerResult(
                success=summary.status == "sent",
                message=(
                    f"Digest {summary.status}: {summary.success_count} of "
                    f"{summary.total_recipients} emails delivered"
                ),
                digest_id=summary.digest_id,
            )
        except Exception as e:
            message = sanitize_error_message(str(e)) or type(e).__name__
            self.storage.create_system_log(
                "error",
                f"Digest generation failed: {message}",
                {"error_type": type(e).__name__},
            )
            logger.error(f"❌ Digest generation failed: {message}")
            return TriggerResult(success=False, message=f"Digest generation failed: {message}")
        finally:
            self._running = False

    def is_schedule_active(self) -> bool:
        return self.scheduler.running and self.scheduler.get_job(JOB_ID) is not None

    def get_next_run_time(self) -> Optional[datetime]:
        job = self.scheduler.get_job(JOB_ID) if self.scheduler.running else None
        return job.next_run_time if job else None

    def restore_from_settings(self) -> Optional[datetime]:
        """Resume the schedule persisted by a previous process"""
        if self.storage.get_setting_value(SCHEDULE_ENABLED, "false") != "true":
            logger.info("Digest schedule disabled in settings")
            return None

        raw = self.storage.get_setting_value(SCHEDULE_INTERVAL, str(FALLBACK_INTERVAL_HOURS))
        try:
            interval = int(raw)
        except (TypeError, ValueError):
            interval = FALLBACK_INTERVAL_HOURS
        if not MIN_INTERVAL_HOURS <= interval <= MAX_INTERVAL_HOURS:
            logger.warning(f"Stored interval {raw!r} is invalid, using {FALLBACK_INTERVAL_HOURS}h")
            interval = FALLBACK_INTERVAL_HOURS
        return self.start_schedule(interval)

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
