# memorial/clients/mailer.py
"""
Moderation notifications sent through the Resend HTTP API.

One email per recipient, because every approver gets links carrying
their own approver id.
"""
import asyncio
import logging
from html import escape
from typing import Optional, Protocol

import aiohttp

from memorial.core.errors import DependencyFailure
from memorial.schemas.notification import ModerationNotice, NoticeRecipient

logger = logging.getLogger(__name__)

RESEND_EMAILS_URL = "https://api.resend.com/emails"


class Notifier(Protocol):
    async def notify(self, notice: ModerationNotice) -> None: ...


def render_subject(notice: ModerationNotice) -> str:
    return f"New memorial message from {notice.author_name} awaiting approval"


def render_notice_html(notice: ModerationNotice, recipient: NoticeRecipient) -> str:
    submitted = notice.created_at.strftime("%B %d, %Y %H:%M UTC") if notice.created_at else ""
    image = (
        f'<p><img src="{escape(notice.image_url, quote=True)}" alt="" style="max-width:100%;border-radius:8px"></p>'
        if notice.image_url else ""
    )
    greeting = f"<p>Hello {escape(recipient.name)},</p>" if recipient.name else ""
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>New Memorial Message</title></head>
<body style="font-family:Georgia,serif;background:#faf7f0;color:#1c1917">
  <div style="max-width:560px;margin:40px auto;background:#fff;border:1px solid #e7e0d4;border-radius:16px;padding:32px">
    <h1 style="font-size:18px;font-weight:400">New Memorial Message</h1>
    {greeting}
    <p><strong>From:</strong> {escape(notice.author_name)}</p>
    <p><strong>Submitted:</strong> {escape(submitted)}</p>
    <blockquote style="font-style:italic;background:#faf7f0;padding:16px;border-radius:12px">{escape(notice.content)}</blockquote>
    {image}
    <p>
      <a href="{escape(recipient.approve_url, quote=True)}" style="background:#166534;color:#fff;padding:12px 24px;border-radius:10px;text-decoration:none">Approve</a>
      &nbsp;
      <a href="{escape(recipient.reject_url, quote=True)}" style="background:#fef2f2;color:#991b1b;padding:12px 24px;border-radius:10px;text-decoration:none">Reject</a>
    </p>
    <p style="font-size:12px;color:#78716c">Or visit the <a href="{escape(notice.dashboard_url, quote=True)}">admin dashboard</a>.</p>
  </div>
</body>
</html>"""


class ResendNotifier:
    def __init__(self, api_key: Optional[str], sender: str, timeout_seconds: float = 10.0):
        self._api_key = api_key
        self._sender = sender
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def notify(self, notice: ModerationNotice) -> None:
        if not self._api_key:
            raise DependencyFailure("email", "RESEND_API_KEY is not set")
        if not notice.recipients:
            logger.warning("No recipients for message %s; nobody was notified", notice.message_id)
            return

        headers = {"Authorization": f"Bearer {self._api_key}"}
        failed = []
        async with aiohttp.ClientSession(timeout=self._timeout, headers=headers) as http:
            for recipient in notice.recipients:
                try:
                    await self._send(http, notice, recipient)
                except DependencyFailure as exc:
                    logger.error("Email to %s about message %s failed: %s", recipient.email, notice.message_id, exc.detail)
                    failed.append(recipient.email)

        sent = len(notice.recipients) - len(failed)
        logger.info("Notified %d of %d recipient(s) about message %s", sent, len(notice.recipients), notice.message_id)
        if failed:
            raise DependencyFailure("email", f"{len(failed)} of {len(notice.recipients)} emails failed: {', '.join(failed)}")

    async def _send(self, http: aiohttp.ClientSession, notice: ModerationNotice, recipient: NoticeRecipient) -> None:
        payload = {
            "from": self._sender,
            "to": [recipient.email],
            "subject": render_subject(notice),
            "html": render_notice_html(notice, recipient),
        }
        try:
            async with http.post(RESEND_EMAILS_URL, json=payload) as resp:
                if resp.status >= 300:
                    detail = await resp.text()
                    raise DependencyFailure("email", f"Resend answered {resp.status}: {detail}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise DependencyFailure("email", str(exc)) from exc
