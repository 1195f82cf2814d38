from __future__ import annotations

import logging
from datetime import datetime

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from birthday_mailer.birthday_job import BirthdayJob
from birthday_mailer.models import ScanReport
from birthday_mailer.settings import Settings, parse_time_string

LOGGER = logging.getLogger(__name__)

DAILY_JOB_ID = "daily-birthday-emails"


def build_scheduler(settings: Settings, job: BirthdayJob) -> BackgroundScheduler:
    tz = settings.tzinfo
    hour, minute = parse_time_string(settings.daily_send_time)

    scheduler = BackgroundScheduler(timezone=tz)
    scheduler.add_job(
        job.run,
        trigger=CronTrigger(hour=hour, minute=minute, timezone=tz),
        id=DAILY_JOB_ID,
        name="Daily birthday emails",
        coalesce=True,
        max_instances=1,
        misfire_grace_time=3600,
        replace_existing=True,
    )
    LOGGER.info("Birthday emails scheduled daily at %s (%s)", settings.daily_send_time, settings.timezone)
    return scheduler


def startup_catchup(settings: Settings, job: BirthdayJob, now: datetime | None = None) -> ScanReport | None:
    """Run today's scan right away when the process starts after the daily send time."""
    if not settings.catch_up_on_startup:
        return None

    now = now or datetime.now(settings.tzinfo)
    hour, minute = parse_time_string(settings.daily_send_time)
    scheduled = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if now < scheduled:
        return None

    LOGGER.info("Started after %s; running today's birthday check now", settings.daily_send_time)
    return job.run()
