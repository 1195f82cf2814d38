from pathlib import Path

import pytest

from birthday_mailer.settings import load_settings, parse_time_string


@pytest.fixture
def mail_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> pytest.MonkeyPatch:
    for name in (
        "DATABASE_PATH",
        "MAIL_SERVER",
        "MAIL_PORT",
        "MAIL_USE_SSL",
        "PORT",
        "BIRTHDAY_TIMEZONE",
        "DAILY_SEND_TIME",
        "LEAP_DAY_RULE",
        "CATCH_UP_ON_STARTUP",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MAIL_USERNAME", "team@example.com")
    monkeypatch.setenv("MAIL_PASSWORD", "app-password")
    return monkeypatch


def test_defaults(mail_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    settings = load_settings()

    assert settings.database_path == tmp_path / "data" / "users.sqlite3"
    assert settings.mail_server == "smtp.gmail.com"
    assert settings.mail_port == 587
    assert settings.port == 3000
    assert settings.timezone == "Africa/Accra"
    assert settings.daily_send_time == "07:00"
    assert settings.leap_day_rule == "feb28"
    assert settings.catch_up_on_startup is True


def test_overrides(mail_env: pytest.MonkeyPatch) -> None:
    mail_env.setenv("PORT", "8080")
    mail_env.setenv("BIRTHDAY_TIMEZONE", "Europe/Berlin")
    mail_env.setenv("DAILY_SEND_TIME", "9:5")
    mail_env.setenv("LEAP_DAY_RULE", "MAR1")
    mail_env.setenv("MAIL_USE_SSL", "yes")
    mail_env.setenv("CATCH_UP_ON_STARTUP", "off")

    settings = load_settings()

    assert settings.port == 8080
    assert settings.timezone == "Europe/Berlin"
    assert settings.daily_send_time == "09:05"
    assert settings.leap_day_rule == "mar1"
    assert settings.mail_use_ssl is True
    assert settings.catch_up_on_startup is False


def test_missing_mail_credentials(mail_env: pytest.MonkeyPatch) -> None:
    mail_env.delenv("MAIL_PASSWORD")

    with pytest.raises(ValueError, match="MAIL_PASSWORD"):
        load_settings()


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("BIRTHDAY_TIMEZONE", "Mars/Olympus_Mons"),
        ("DAILY_SEND_TIME", "25:00"),
        ("LEAP_DAY_RULE", "skip"),
        ("PORT", "http"),
        ("PORT", "70000"),
        ("MAIL_USE_SSL", "maybe"),
    ],
)
def test_invalid_values_rejected(mail_env: pytest.MonkeyPatch, name: str, value: str) -> None:
    mail_env.setenv(name, value)

    with pytest.raises(ValueError):
        load_settings()


def test_parse_time_string() -> None:
    assert parse_time_string("07:00") == (7, 0)
    with pytest.raises(ValueError):
        parse_time_string("0700")
