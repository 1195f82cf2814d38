from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from birthday_mailer.date_logic import ALLOWED_LEAP_DAY_RULES

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    database_path: Path
    mail_username: str
    mail_password: str
    mail_server: str = "smtp.gmail.com"
    mail_port: int = 587
    mail_use_ssl: bool = False
    mail_timeout: float = 30.0
    store_timeout: float = 10.0
    host: str = "0.0.0.0"
    port: int = 3000
    timezone: str = "Africa/Accra"
    daily_send_time: str = "07:00"
    leap_day_rule: str = "feb28"
    catch_up_on_startup: bool = True
    public_dir: Path = Path("public")

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        raise ValueError(f"Missing required environment variable: {name}")
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = float(value.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be a number") from exc
    if parsed <= 0:
        raise ValueError(f"{name} must be positive")
    return parsed


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean")


def parse_time_string(value: str) -> tuple[int, int]:
    pieces = value.split(":")
    if len(pieces) != 2:
        raise ValueError("daily_send_time must be in HH:MM format")

    hour, minute = pieces
    if not hour.isdigit() or not minute.isdigit():
        raise ValueError("daily_send_time must contain numeric hour/minute")

    hour_i = int(hour)
    minute_i = int(minute)
    if hour_i < 0 or hour_i > 23 or minute_i < 0 or minute_i > 59:
        raise ValueError("daily_send_time must be a valid 24-hour time")
    return hour_i, minute_i


def _validate_timezone(name: str) -> str:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {name}") from exc
    return name


def load_settings() -> Settings:
    root = Path.cwd()

    mail_username = _required_env("MAIL_USERNAME")
    mail_password = _required_env("MAIL_PASSWORD")

    port = _env_int("PORT", 3000)
    if port < 1 or port > 65535:
        raise ValueError("PORT must be between 1 and 65535")

    timezone = _validate_timezone(os.getenv("BIRTHDAY_TIMEZONE", "Africa/Accra").strip())

    hour, minute = parse_time_string(os.getenv("DAILY_SEND_TIME", "07:00").strip())

    leap_day_rule = os.getenv("LEAP_DAY_RULE", "feb28").strip().lower()
    if leap_day_rule not in ALLOWED_LEAP_DAY_RULES:
        raise ValueError(f"LEAP_DAY_RULE must be one of {sorted(ALLOWED_LEAP_DAY_RULES)}")

    return Settings(
        database_path=Path(os.getenv("DATABASE_PATH", root / "data" / "users.sqlite3")),
        mail_username=mail_username,
        mail_password=mail_password,
        mail_server=os.getenv("MAIL_SERVER", "smtp.gmail.com").strip(),
        mail_port=_env_int("MAIL_PORT", 587),
        mail_use_ssl=_env_bool("MAIL_USE_SSL", False),
        mail_timeout=_env_float("MAIL_TIMEOUT", 30.0),
        store_timeout=_env_float("STORE_TIMEOUT", 10.0),
        host=os.getenv("HOST", "0.0.0.0").strip(),
        port=port,
        timezone=timezone,
        daily_send_time=f"{hour:02d}:{minute:02d}",
        leap_day_rule=leap_day_rule,
        catch_up_on_startup=_env_bool("CATCH_UP_ON_STARTUP", True),
        public_dir=Path(os.getenv("PUBLIC_DIR", root / "public")),
    )
