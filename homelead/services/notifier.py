# homelead/services/notifier.py
"""
Best-effort email delivery over SendGrid.

notify() never raises: a missing API key, a rejected send or a transport
exception is logged and reported as False, so the action that triggered the
email succeeds or fails on its own.
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Callable, Iterable, List, Optional, Tuple

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Email, Mail, To

from homelead.core.config import MAIL_FROM_EMAIL, MAIL_FROM_NAME, SENDGRID_API_KEY

logger = logging.getLogger("homelead.notifier")

HTML_TAG_REGEX = re.compile("<[^<]+?>")


def strip_html(html: str) -> str:
    """Plain-text alternative for an HTML body."""
    return HTML_TAG_REGEX.sub("", html)


class Notifier:
    """SendGrid email sender for transactional notifications"""

    def __init__(self, api_key: Optional[str] = SENDGRID_API_KEY, from_email: str = MAIL_FROM_EMAIL, from_name: str = MAIL_FROM_NAME):
        self.from_email = from_email
        self.from_name = from_name
        if not api_key:
            logger.warning("SENDGRID_API_KEY not configured - emails will not be sent")
            self.client = None
        else:
            self.client = SendGridAPIClient(api_key)
            logger.info("SendGrid client initialized with from_email=%s", from_email)

    def notify(self, to: Optional[str], subject: str, html: str) -> bool:
        if not to:
            logger.info("Skipping email without recipient: %s", subject)
            return False
        if not self.client:
            logger.info("Email skipped (transport not configured) to=%s subject=%s", to, subject)
            return False
        try:
            message = Mail(
                from_email=Email(self.from_email, self.from_name),
                to_emails=To(to),
                subject=subject,
                html_content=html,
                plain_text_content=strip_html(html),
            )
            response = self.client.send(message)
            if 200 <= response.status_code < 300:
                logger.info("Email sent to=%s subject=%s", to, subject)
                return True
            logger.error("Email rejected to=%s status=%s body=%s", to, response.status_code, response.body)
            return False
        except Exception as e:
            logger.error("Exception sending email to=%s: %s", to, e)
            return False

    def notify_rendered(self, to: Optional[str], render: Callable[..., Tuple[str, str]], *args: Any) -> bool:
        """Render (subject, html) with `render(*args)` and send it. Never raises."""
        try:
            subject, html = render(*args)
            return self.notify(to, subject, html)
        except Exception as e:
            logger.error("Email via %s to=%s failed: %s", getattr(render, "__name__", "template"), to, e)
            return False

    async def notify_many(self, messages: Iterable[Tuple[str, str, str]]) -> List[bool]:
        """Send concurrently; one recipient failing never affects the others."""
        results = await asyncio.gather(
            *(asyncio.to_thread(self.notify, to, subject, html) for to, subject, html in messages),
            return_exceptions=True,
        )
        out = []
        for r in results:
            if isinstance(r, BaseException):
                logger.error("Batch email task failed: %r", r)
                out.append(False)
            else:
                out.append(bool(r))
        return out


_notifier: Optional[Notifier] = None


def get_notifier() -> Notifier:
    """Get singleton instance of Notifier"""
    global _notifier
    if _notifier is None:
        _notifier = Notifier()
    return _notifier
