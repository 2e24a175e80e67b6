from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from typing import Any, Dict, Optional

from ...core.config import Settings
from ..exceptions import UpstreamError

logger = logging.getLogger(__name__)


class EmailClient:
    """SMTP relay client.

    - Port 465: implicit TLS (``SMTP_SSL``)
    - Any other port: plain connection upgraded with ``STARTTLS``

    smtplib is blocking, so every send runs in a worker thread.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @property
    def secure(self) -> bool:
        return self.settings.smtp_port == 465

    def _build_message(
        self,
        to: str,
        subject: str,
        html: str,
        from_email: str,
        from_name: Optional[str] = None,
    ) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((from_name, from_email)) if from_name else from_email
        msg["To"] = to
        msg["Message-ID"] = make_msgid()
        msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    def _send_sync(self, msg: MIMEMultipart, from_email: str, to: str) -> None:
        host = self.settings.smtp_host
        port = self.settings.smtp_port
        timeout = self.settings.smtp_timeout_seconds
        context = ssl.create_default_context()

        if self.secure:
            with smtplib.SMTP_SSL(host, port, timeout=timeout, context=context) as server:
                server.login(self.settings.smtp_user, self.settings.smtp_password)
                server.sendmail(from_email, [to], msg.as_string())
        else:
            with smtplib.SMTP(host, port, timeout=timeout) as server:
                server.ehlo()
                server.starttls(context=context)
                server.ehlo()
                server.login(self.settings.smtp_user, self.settings.smtp_password)
                server.sendmail(from_email, [to], msg.as_string())

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        *,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        self.settings.require_smtp()
        sender = from_email or self.settings.smtp_user
        msg = self._build_message(to, subject, html, sender, from_name)

        try:
            await asyncio.to_thread(self._send_sync, msg, sender, to)
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed for {self.settings.smtp_user}: {e.smtp_code}")
            raise UpstreamError("smtp", "Email relay rejected the credentials", details={"code": e.smtp_code})
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP send to {to} failed: {type(e).__name__}: {e}")
            raise UpstreamError("smtp", "Email relay failed to send the message", details={"error": type(e).__name__})

        logger.info("Email sent", extra={"component": "smtp", "details": {"to": to, "subject": subject}})
        return {"messageId": msg["Message-ID"], "accepted": [to]}
