from __future__ import annotations

import logging
import unicodedata
from datetime import date, datetime
from typing import Any, Callable, Mapping

from birthday_mailer.date_logic import InvalidDateOfBirthError, parse_date_of_birth
from birthday_mailer.errors import DuplicateError, ValidationError
from birthday_mailer.models import User
from birthday_mailer.settings import Settings
from birthday_mailer.user_store import UserStore

LOGGER = logging.getLogger(__name__)

REQUIRED_FIELDS = ("username", "email", "dateOfBirth")

MISSING_FIELDS_MESSAGE = "All fields are required"
INVALID_DATE_MESSAGE = "Invalid date of birth"
DUPLICATE_EMAIL_MESSAGE = "Email already registered"
INVALID_CHARACTERS_MESSAGE = "Fields must not contain control characters"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _required_text(payload: Mapping[str, Any], name: str) -> str:
    value = payload.get(name)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(MISSING_FIELDS_MESSAGE)
    text = value.strip()
    # values end up in mail headers
    if any(unicodedata.category(char) == "Cc" for char in text):
        raise ValidationError(INVALID_CHARACTERS_MESSAGE)
    return text


class RegistrationService:
    def __init__(self, store: UserStore, settings: Settings, *, today: Callable[[], date] | None = None) -> None:
        self._store = store
        self._settings = settings
        self._today = today or (lambda: datetime.now(settings.tzinfo).date())

    def register(self, payload: Mapping[str, Any]) -> User:
        """Validate ``payload`` and persist a new user.

        Raises ``ValidationError`` or ``DuplicateError`` for client mistakes and
        lets ``StorageError`` from the store propagate.
        """
        username, email, raw_dob = (_required_text(payload, name) for name in REQUIRED_FIELDS)
        email = normalize_email(email)

        try:
            date_of_birth = parse_date_of_birth(raw_dob, self._today())
        except InvalidDateOfBirthError as exc:
            raise ValidationError(INVALID_DATE_MESSAGE) from exc

        if self._store.find_by_email(email) is not None:
            raise DuplicateError(DUPLICATE_EMAIL_MESSAGE)

        # the unique index still rejects a concurrent insert that passed the check above
        user = self._store.create(username, email, date_of_birth)
        LOGGER.info("Registered user %s (%s)", user.id, user.email)
        return user
