from datetime import date
from pathlib import Path

import pytest

from birthday_mailer import main as cli
from birthday_mailer.errors import DeliveryError
from birthday_mailer.mailer import MailSender
from birthday_mailer.settings import Settings
from birthday_mailer.user_store import UserStore


def _settings(tmp_path: Path) -> Settings:
    return Settings(
        database_path=tmp_path / "users.sqlite3",
        mail_username="team@example.com",
        mail_password="secret",
    )


def test_default_command_is_serve() -> None:
    assert cli._parse_args([]).command == "serve"


def test_scan_command_accepts_date() -> None:
    args = cli._parse_args(["scan", "--date", "2026-03-05"])

    assert args.command == "scan"
    assert args.date == date(2026, 3, 5)


def test_scan_once_sends_and_reports(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    sent: list[str] = []
    monkeypatch.setattr(MailSender, "send", lambda self, message: sent.append(message["To"]))
    settings = _settings(tmp_path)
    store = UserStore(settings.database_path)
    store.initialize()
    store.create("Ama", "ama@x.com", date(1990, 3, 5))

    exit_code = cli.scan_once(settings, date(2026, 3, 5))

    assert exit_code == 0
    assert sent == ["ama@x.com"]
    assert "2026-03-05: 1 sent, 0 failed" in capsys.readouterr().out


def test_scan_once_exit_code_reflects_failures(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    def refuse(self, message):
        raise DeliveryError("relay denied")

    monkeypatch.setattr(MailSender, "send", refuse)
    settings = _settings(tmp_path)
    store = UserStore(settings.database_path)
    store.initialize()
    store.create("Ama", "ama@x.com", date(1990, 3, 5))

    exit_code = cli.scan_once(settings, date(2026, 3, 5))

    assert exit_code == 1
    assert "ama@x.com: failed (relay denied)" in capsys.readouterr().out
