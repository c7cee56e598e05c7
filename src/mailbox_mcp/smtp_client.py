"""
SMTP Sender
===========

Stateless message submission: one SMTP connection per send. Port 465 uses
implicit TLS, every other port upgrades with STARTTLS.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formatdate, make_msgid

from contracts import SendFailedError, SendResult
from src.mailbox_mcp.credentials import MailConfig

logger = logging.getLogger(__name__)

IMPLICIT_TLS_PORT = 465


def build_message(
    sender: str,
    to: str,
    subject: str,
    body: str,
    cc: str | None = None,
) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = to
    if cc:
        msg["Cc"] = cc
    msg["Subject"] = subject
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid(domain=sender.rpartition("@")[2] or None)
    msg.set_content(body)
    return msg


class SMTPSender:
    def __init__(self, config: MailConfig) -> None:
        self._config = config

    def _send_sync(self, msg: EmailMessage, recipients: list[str]) -> None:
        config = self._config
        credentials = config.credentials
        context = ssl.create_default_context()
        try:
            if config.smtp_port == IMPLICIT_TLS_PORT:
                smtp = smtplib.SMTP_SSL(config.smtp_server, config.smtp_port, context=context)
            else:
                smtp = smtplib.SMTP(config.smtp_server, config.smtp_port)
            with smtp:
                if config.smtp_port != IMPLICIT_TLS_PORT:
                    smtp.starttls(context=context)
                smtp.login(credentials.username, credentials.password)
                smtp.send_message(msg, to_addrs=recipients)
        except (smtplib.SMTPException, OSError) as e:
            raise SendFailedError(str(e)) from e

    async def send_message(
        self,
        *,
        to: str,
        subject: str,
        body: str,
        cc: str | None = None,
        bcc: str | None = None,
    ) -> SendResult:
        """
        Send a plain-text message.

        Never raises for delivery problems; failures come back as
        SendResult(success=False).
        """
        msg = build_message(self._config.email_address, to, subject, body, cc)
        recipients = [addr for addr in (to, cc, bcc) if addr]
        try:
            await asyncio.to_thread(self._send_sync, msg, recipients)
        except SendFailedError as e:
            logger.warning("Send failed: %s", e)
            return SendResult(message_id="", success=False, message=f"Failed to send email: {e}")

        logger.info("Sent message to %d recipient(s)", len(recipients))
        return SendResult(
            message_id=msg["Message-ID"],
            success=True,
            message="Email sent successfully",
        )
