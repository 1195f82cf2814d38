from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from birthday_mailer.scheduler import DAILY_JOB_ID, build_scheduler, startup_catchup
from birthday_mailer.settings import Settings

ACCRA = ZoneInfo("Africa/Accra")


class RecordingJob:
    def __init__(self) -> None:
        self.runs = 0

    def run(self):
        self.runs += 1
        return None


def _settings(tmp_path: Path, **overrides) -> Settings:
    return Settings(
        database_path=tmp_path / "users.sqlite3",
        mail_username="team@example.com",
        mail_password="secret",
        **overrides,
    )


def test_daily_job_is_scheduled_at_send_time(tmp_path: Path) -> None:
    job = RecordingJob()
    scheduler = build_scheduler(_settings(tmp_path), job)

    scheduled = scheduler.get_job(DAILY_JOB_ID)

    assert scheduled is not None
    assert scheduled.func == job.run
    assert str(scheduled.trigger.timezone) == "Africa/Accra"
    fields = {field.name: str(field) for field in scheduled.trigger.fields}
    assert fields["hour"] == "7"
    assert fields["minute"] == "0"
    assert scheduled.max_instances == 1


def test_custom_send_time_and_timezone(tmp_path: Path) -> None:
    scheduler = build_scheduler(
        _settings(tmp_path, timezone="Europe/Berlin", daily_send_time="09:30"),
        RecordingJob(),
    )

    trigger = scheduler.get_job(DAILY_JOB_ID).trigger
    fields = {field.name: str(field) for field in trigger.fields}

    assert str(trigger.timezone) == "Europe/Berlin"
    assert (fields["hour"], fields["minute"]) == ("9", "30")


def test_catchup_runs_when_started_after_send_time(tmp_path: Path) -> None:
    job = RecordingJob()

    startup_catchup(_settings(tmp_path), job, now=datetime(2026, 3, 5, 8, 15, tzinfo=ACCRA))

    assert job.runs == 1


def test_catchup_skipped_before_send_time(tmp_path: Path) -> None:
    job = RecordingJob()

    startup_catchup(_settings(tmp_path), job, now=datetime(2026, 3, 5, 6, 59, tzinfo=ACCRA))

    assert job.runs == 0


def test_catchup_can_be_disabled(tmp_path: Path) -> None:
    job = RecordingJob()

    startup_catchup(_settings(tmp_path, catch_up_on_startup=False), job, now=datetime(2026, 3, 5, 8, 0, tzinfo=ACCRA))

    assert job.runs == 0
