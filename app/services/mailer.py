"""Outgoing mail.

Messages are rendered from Jinja2 templates in ``app/templates/email`` and
handed to a transport. Delivery runs on a small thread pool so a request
never waits on the mail server; failures are logged, not raised.
"""

import concurrent.futures
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Protocol

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.config import get_settings

logger = logging.getLogger("authgate.mail")

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"


@dataclass
class MailMessage:
    to: str
    subject: str
    text: str
    html: str | None = None


class Transport(Protocol):
    def send(self, message: MailMessage) -> None: ...


class LogTransport:
    """Writes messages to the log instead of sending them (development)."""

    def send(self, message: MailMessage) -> None:
        logger.info("MAIL to=%s subject=%r\n%s", message.to, message.subject, message.text)


class SMTPTransport:
    """Sends messages over SMTP, with STARTTLS when credentials are configured."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        from_address: str = "",
        from_name: str = "",
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.from_name = from_name

    def send(self, message: MailMessage) -> None:
        msg = EmailMessage()
        msg["From"] = f"{self.from_name} <{self.from_address}>"
        msg["To"] = message.to
        msg["Subject"] = message.subject
        msg.set_content(message.text)
        if message.html:
            msg.add_alternative(message.html, subtype="html")

        with smtplib.SMTP(self.host, self.port, timeout=30) as server:
            if self.username and self.password:
                server.starttls()
                server.login(self.username, self.password)
            server.send_message(msg)
        logger.info("Sent mail via SMTP to %s", message.to)


class Mailer:
    """Renders templated mail and dispatches it without blocking the caller."""

    def __init__(self, transport: Transport, background: bool = True) -> None:
        self.transport = transport
        self.background = background
        self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=2) if background else None
        self.template_env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=select_autoescape(["html"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, template: str, to: str, subject: str, context: dict[str, Any]) -> MailMessage:
        """Render ``<template>.txt`` and, if present, ``<template>.html``."""
        settings = get_settings()
        context = {"app_name": settings.APP_NAME, **context}
        text = self.template_env.get_template(f"{template}.txt").render(**context)
        html = None
        if (TEMPLATE_DIR / f"{template}.html").exists():
            html = self.template_env.get_template(f"{template}.html").render(**context)
        return MailMessage(to=to, subject=subject, text=text, html=html)

    def send(self, message: MailMessage) -> None:
        """Queue a message for delivery."""
        if self._executor is None:
            self._deliver(message)
            return
        self._executor.submit(self._deliver, message)

    def send_template(self, template: str, to: str, subject: str, context: dict[str, Any]) -> MailMessage:
        message = self.render(template, to, subject, context)
        self.send(message)
        return message

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)

    def _deliver(self, message: MailMessage) -> None:
        try:
            self.transport.send(message)
        except (smtplib.SMTPException, OSError):
            logger.exception("Failed to deliver mail to %s (%s)", message.to, message.subject)


def build_transport() -> Transport:
    settings = get_settings()
    if settings.MAIL_TRANSPORT == "smtp":
        return SMTPTransport(
            host=settings.MAIL_HOST,
            port=settings.MAIL_PORT,
            username=settings.MAIL_USERNAME,
            password=settings.MAIL_PASSWORD,
            from_address=settings.MAIL_FROM_ADDRESS,
            from_name=settings.MAIL_FROM_NAME,
        )
    return LogTransport()


_mailer: Mailer | None = None


def get_mailer() -> Mailer:
    """Get singleton mailer instance."""
    global _mailer
    if _mailer is None:
        _mailer = Mailer(build_transport())
    return _mailer


def close_mailer() -> None:
    """Wait for queued deliveries and drop the singleton."""
    global _mailer
    if _mailer is not None:
        _mailer.shutdown()
        _mailer = None
