"""Outbound birthday email over SMTP.

Every send opens its own connection, authenticates when credentials are
configured, delivers one message and closes. Transport failures of any kind,
including timeouts, surface as :class:`DeliveryError` so the scan can record
them per recipient.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.message import EmailMessage
from html import escape

from birthday_mailer.errors import DeliveryError
from birthday_mailer.models import User
from birthday_mailer.settings import Settings

LOGGER = logging.getLogger(__name__)

SUBJECT_TEMPLATE = "🎉 Happy Birthday, {username}!"

TEXT_TEMPLATE = (
    "Happy Birthday, {username}! 🎂\n\n"
    "Wishing you a fantastic day filled with joy and happiness.\n\n"
    "From all of us at the team 💛\n"
)

HTML_TEMPLATE = (
    "<h2>Happy Birthday, {username}! 🎂</h2>\n"
    "<p>Wishing you a fantastic day filled with joy and happiness.</p>\n"
    "<p>From all of us at the team 💛</p>\n"
)


def build_birthday_message(user: User, sender: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = SUBJECT_TEMPLATE.format(username=user.username)
    msg["From"] = sender
    msg["To"] = user.email
    msg.set_content(TEXT_TEMPLATE.format(username=user.username))
    msg.add_alternative(HTML_TEMPLATE.format(username=escape(user.username)), subtype="html")
    return msg


class MailSender:
    def __init__(
        self,
        *,
        server: str,
        port: int,
        username: str,
        password: str,
        use_ssl: bool = False,
        timeout: float = 30.0,
    ) -> None:
        self._server = server
        self._port = port
        self._username = username
        self._password = password
        self._use_ssl = use_ssl
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "MailSender":
        return cls(
            server=settings.mail_server,
            port=settings.mail_port,
            username=settings.mail_username,
            password=settings.mail_password,
            use_ssl=settings.mail_use_ssl,
            timeout=settings.mail_timeout,
        )

    @property
    def sender(self) -> str:
        return self._username

    def _open(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self._use_ssl:
            smtp: smtplib.SMTP = smtplib.SMTP_SSL(
                self._server, self._port, timeout=self._timeout, context=context
            )
        else:
            smtp = smtplib.SMTP(self._server, self._port, timeout=self._timeout)
            try:
                smtp.starttls(context=context)
            except (smtplib.SMTPException, OSError):
                smtp.close()
                raise
        if self._username and self._password:
            try:
                smtp.login(self._username, self._password)
            except (smtplib.SMTPException, OSError):
                smtp.close()
                raise
        return smtp

    @staticmethod
    def _close(smtp: smtplib.SMTP) -> None:
        try:
            smtp.quit()
        except (smtplib.SMTPException, OSError):
            smtp.close()

    def send(self, message: EmailMessage) -> None:
        try:
            smtp = self._open()
        except smtplib.SMTPAuthenticationError as exc:
            raise DeliveryError(f"SMTP authentication failed for {self._username!r}: {exc}") from exc
        except smtplib.SMTPException as exc:
            raise DeliveryError(f"SMTP error connecting to {self._server}:{self._port}: {exc}") from exc
        except OSError as exc:
            raise DeliveryError(f"Network error connecting to {self._server}:{self._port}: {exc}") from exc

        try:
            smtp.send_message(message)
        except smtplib.SMTPException as exc:
            raise DeliveryError(f"SMTP error sending to {message['To']}: {exc}") from exc
        except OSError as exc:
            raise DeliveryError(f"Network error sending to {message['To']}: {exc}") from exc
        finally:
            self._close(smtp)

        LOGGER.debug("Delivered %r to %s", message["Subject"], message["To"])

    def verify(self) -> bool:
        try:
            smtp = self._open()
        except (smtplib.SMTPException, OSError) as exc:
            LOGGER.error("Email transporter error: %s", exc)
            return False
        self._close(smtp)
        LOGGER.info("Email transporter is ready (%s:%s)", self._server, self._port)
        return True
