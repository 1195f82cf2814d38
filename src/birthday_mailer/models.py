from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any


STATUS_SENT = "sent"
STATUS_FAILED = "failed"
STATUS_UNMARKED = "unmarked"


@dataclass(frozen=True)
class User:
    id: int
    username: str
    email: str
    date_of_birth: date
    last_email_sent_year: int | None
    created_at: str

    def to_public_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "dateOfBirth": self.date_of_birth.isoformat(),
            "lastEmailSentYear": self.last_email_sent_year,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class NotificationOutcome:
    user_id: int
    email: str
    status: str
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SENT


@dataclass
class ScanReport:
    run_date: date
    outcomes: list[NotificationOutcome] = field(default_factory=list)

    @property
    def sent_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.succeeded)

    @property
    def failures(self) -> list[NotificationOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.succeeded]

    @property
    def failed_count(self) -> int:
        return len(self.failures)
