from __future__ import annotations

import logging
from datetime import date, datetime
from email.message import EmailMessage
from typing import Callable, Protocol

from birthday_mailer.date_logic import birthdays_celebrated_on
from birthday_mailer.errors import DeliveryError, ScanError, StorageError
from birthday_mailer.mailer import build_birthday_message
from birthday_mailer.models import (
    STATUS_FAILED,
    STATUS_SENT,
    STATUS_UNMARKED,
    NotificationOutcome,
    ScanReport,
    User,
)
from birthday_mailer.settings import Settings
from birthday_mailer.user_store import UserStore

LOGGER = logging.getLogger(__name__)


class Mailer(Protocol):
    @property
    def sender(self) -> str: ...

    def send(self, message: EmailMessage) -> None: ...


class BirthdayJob:
    def __init__(
        self,
        *,
        store: UserStore,
        mailer: Mailer,
        settings: Settings,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._mailer = mailer
        self._settings = settings
        self._clock = clock or (lambda: datetime.now(settings.tzinfo))

    def today(self) -> date:
        return self._clock().astimezone(self._settings.tzinfo).date()

    def run(self) -> ScanReport | None:
        """Scheduler entry point; a failed scan is logged and retried on the next firing."""
        LOGGER.info("Running birthday check...")
        try:
            return self.run_for_date(self.today())
        except ScanError:
            LOGGER.exception("Birthday scan aborted")
            return None

    def run_for_date(self, today: date) -> ScanReport:
        report = ScanReport(run_date=today)
        month_days = birthdays_celebrated_on(today, self._settings.leap_day_rule)

        try:
            users = self._store.find_birthday_recipients(month_days, today.year)
        except StorageError as exc:
            raise ScanError(f"Could not query birthdays for {today.isoformat()}: {exc}") from exc

        if not users:
            LOGGER.info("No birthdays today (%s)", today.isoformat())
            return report

        LOGGER.info("Found %s birthday(s) today (%s)", len(users), today.isoformat())
        for user in users:
            report.outcomes.append(self._notify(user, today.year))

        LOGGER.info(
            "Birthday scan for %s finished: %s sent, %s failed",
            today.isoformat(),
            report.sent_count,
            report.failed_count,
        )
        return report

    def _notify(self, user: User, year: int) -> NotificationOutcome:
        try:
            message = build_birthday_message(user, self._mailer.sender)
            self._mailer.send(message)
        except DeliveryError as exc:
            LOGGER.error("Failed to send email to %s: %s", user.email, exc)
            return NotificationOutcome(user_id=user.id, email=user.email, status=STATUS_FAILED, error=str(exc))
        except Exception as exc:
            # one bad record must not stop the rest of the batch
            LOGGER.exception("Could not email user %s (%r)", user.id, user.email)
            return NotificationOutcome(user_id=user.id, email=user.email, status=STATUS_FAILED, error=str(exc))

        try:
            marked = self._store.mark_email_sent(user.id, year)
        except StorageError as exc:
            LOGGER.error("Email sent to %s but marker for %s was not saved: %s", user.email, year, exc)
            return NotificationOutcome(user_id=user.id, email=user.email, status=STATUS_UNMARKED, error=str(exc))

        if not marked:
            LOGGER.warning("User %s was already marked for %s by another run; email may have been sent twice", user.id, year)
        LOGGER.info("Email sent to %s (%s)", user.username, user.email)
        return NotificationOutcome(user_id=user.id, email=user.email, status=STATUS_SENT)
