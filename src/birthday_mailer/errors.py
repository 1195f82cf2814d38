from __future__ import annotations


class BirthdayMailerError(Exception):
    pass


class ValidationError(BirthdayMailerError):
    """Raised when a registration request is missing or has malformed fields."""


class DuplicateError(BirthdayMailerError):
    """Raised when a user with the same email already exists."""


class StorageError(BirthdayMailerError):
    """Raised when the record store cannot be read from or written to."""


class DeliveryError(BirthdayMailerError):
    """Raised when the mail transport fails to deliver a message."""


class ScanError(BirthdayMailerError):
    """Raised when the birthday scan cannot query its recipients."""
