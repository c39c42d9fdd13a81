"""Notification dispatchers for the data limit alert.

Dispatchers are best effort: ``send`` logs failures and returns False instead
of raising, and never retries.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Protocol

from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import TelegramError

from . import config
from .alerting import ALERT_SUBJECT, build_alert_html, build_alert_message
from .models.alerts import AlertDecision
from .models.settings import CHANNEL_EMAIL, CHANNEL_TELEGRAM

logger = logging.getLogger(__name__)


class Dispatcher(Protocol):
    def format_message(self, decision: AlertDecision, device: str) -> str: ...

    async def send(
        self,
        sender_address: str,
        sender_credential: str,
        recipient_address: str,
        message: str,
    ) -> bool: ...


class EmailDispatcher:
    """Send the alert as a plain-text email over SMTP with implicit TLS."""

    def __init__(
        self,
        smtp_host: str | None = None,
        smtp_port: int | None = None,
        timeout_s: float | None = None,
        subject: str = ALERT_SUBJECT,
    ) -> None:
        self.smtp_host = smtp_host or config.settings.SMTP_HOST
        self.smtp_port = smtp_port or config.settings.SMTP_PORT
        self.timeout_s = timeout_s or config.settings.SMTP_TIMEOUT_S
        self.subject = subject

    def format_message(self, decision: AlertDecision, device: str) -> str:
        return build_alert_message(decision, device)

    def _build(self, sender: str, recipient: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = self.subject
        msg["From"] = sender
        msg["To"] = recipient
        msg.set_content(body)
        return msg

    def _send_sync(
        self, sender: str, credential: str, recipient: str, body: str
    ) -> None:
        context = ssl.create_default_context()
        with smtplib.SMTP_SSL(
            self.smtp_host, self.smtp_port, timeout=self.timeout_s, context=context
        ) as server:
            server.login(sender, credential)
            server.send_message(self._build(sender, recipient, body))

    async def send(
        self,
        sender_address: str,
        sender_credential: str,
        recipient_address: str,
        message: str,
    ) -> bool:
        try:
            await asyncio.to_thread(
                self._send_sync,
                sender_address,
                sender_credential,
                recipient_address,
                message,
            )
        except (smtplib.SMTPException, OSError, ValueError) as exc:
            logger.error(
                "Failed to send alert email to %s via %s:%s: %s",
                recipient_address,
                self.smtp_host,
                self.smtp_port,
                exc,
            )
            return False
        logger.info("Alert email sent to %s", recipient_address)
        return True


class TelegramDispatcher:
    """Send the alert through a Telegram bot.

    The sender credential is the bot token and the recipient is a chat id.
    """

    def format_message(self, decision: AlertDecision, device: str) -> str:
        return build_alert_html(decision, device)

    async def send(
        self,
        sender_address: str,
        sender_credential: str,
        recipient_address: str,
        message: str,
    ) -> bool:
        try:
            chat_id = int(recipient_address.strip())
        except ValueError:
            logger.error(
                "Telegram recipient must be a chat id, got %r", recipient_address
            )
            return False
        try:
            async with Bot(token=sender_credential) as bot:
                await bot.send_message(
                    chat_id=chat_id, text=message, parse_mode=ParseMode.HTML
                )
        except TelegramError as exc:
            logger.error(
                "Failed sending alert via bot %s to chat_id=%s: %s",
                sender_address,
                chat_id,
                exc,
            )
            return False
        logger.info("Alert sent via bot %s to chat_id=%s", sender_address, chat_id)
        return True


def dispatcher_for(channel: str) -> Dispatcher:
    if channel == CHANNEL_EMAIL:
        return EmailDispatcher()
    if channel == CHANNEL_TELEGRAM:
        return TelegramDispatcher()
    raise ValueError(f"Unknown notification channel: {channel}")
