from __future__ import annotations

import argparse
import logging
from datetime import date
from typing import Sequence

import uvicorn

from birthday_mailer.birthday_job import BirthdayJob
from birthday_mailer.errors import ScanError, StorageError
from birthday_mailer.mailer import MailSender
from birthday_mailer.settings import Settings, load_settings
from birthday_mailer.user_store import UserStore
from birthday_mailer.web import create_app

LOGGER = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Register users and email them on their birthday")
    subparsers = parser.add_subparsers(dest="command")
    parser.set_defaults(command="serve")

    subparsers.add_parser("serve", help="Run the HTTP server and the daily birthday job")

    scan = subparsers.add_parser("scan", help="Run one birthday scan now and exit")
    scan.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Scan as if today were this date (YYYY-MM-DD)",
    )
    return parser.parse_args(argv)


def serve(settings: Settings) -> None:
    app = create_app(settings)
    LOGGER.info("Server running on http://localhost:%s", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


def scan_once(settings: Settings, today: date | None = None) -> int:
    store = UserStore(settings.database_path, timeout=settings.store_timeout)
    job = BirthdayJob(store=store, mailer=MailSender.from_settings(settings), settings=settings)
    try:
        store.initialize()
        report = job.run_for_date(today or job.today())
    except (ScanError, StorageError) as exc:
        LOGGER.error("Birthday scan failed: %s", exc)
        return 1

    print(f"{report.run_date.isoformat()}: {report.sent_count} sent, {report.failed_count} failed")
    for outcome in report.failures:
        print(f"  {outcome.email}: {outcome.status} ({outcome.error})")
    return 1 if report.failures else 0


def main(argv: Sequence[str] | None = None) -> int:
    configure_logging()
    args = _parse_args(argv)
    settings = load_settings()

    if args.command == "scan":
        return scan_once(settings, args.date)

    serve(settings)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
