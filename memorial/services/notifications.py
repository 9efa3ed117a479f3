# memorial/services/notifications.py
"""
Notification fan-out for new submissions.

Sending is fire-and-forget: dispatch_notice() runs after the response has
been sent and only logs failures.
"""
import logging
from typing import Optional
from urllib.parse import urlencode

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from memorial.clients.mailer import Notifier
from memorial.core.config import Settings
from memorial.core.errors import DependencyFailure
from memorial.models.approver import Approver
from memorial.models.message import Message
from memorial.schemas.notification import ModerationNotice, NoticeRecipient

logger = logging.getLogger(__name__)


def action_link(config: Settings, action: str, message_id: str, token: str, approver_id: Optional[str]) -> str:
    params = {"id": message_id, "token": token}
    if approver_id:
        params["approver"] = approver_id
    base = config.APP_BASE_URL.rstrip("/")
    return f"{base}{config.API_V1_STR}/moderation/{action}?{urlencode(params)}"


def dashboard_link(config: Settings) -> str:
    return f"{config.APP_BASE_URL.rstrip('/')}/admin"


async def build_notice(db: AsyncSession, message: Message, config: Settings) -> ModerationNotice:
    """
    One recipient per active approver, each with personal approve/reject
    links. Without active approvers, ADMIN_EMAIL gets anonymous links.
    """
    result = await db.execute(
        select(Approver).where(Approver.is_active.is_(True)).order_by(Approver.created_at)
    )
    approvers = result.scalars().all()

    token = message.moderation_token
    recipients = [
        NoticeRecipient(
            email=approver.email,
            name=approver.name,
            approve_url=action_link(config, "approve", message.id, token, approver.id),
            reject_url=action_link(config, "reject", message.id, token, approver.id),
        )
        for approver in approvers
    ]
    if not recipients and config.ADMIN_EMAIL:
        recipients.append(
            NoticeRecipient(
                email=config.ADMIN_EMAIL,
                name=None,
                approve_url=action_link(config, "approve", message.id, token, None),
                reject_url=action_link(config, "reject", message.id, token, None),
            )
        )

    return ModerationNotice(
        message_id=message.id,
        author_name=message.name,
        content=message.content,
        created_at=message.created_at,
        dashboard_url=dashboard_link(config),
        image_url=message.image_url,
        recipients=recipients,
    )


async def dispatch_notice(notifier: Notifier, notice: ModerationNotice) -> None:
    try:
        await notifier.notify(notice)
    except DependencyFailure as exc:
        logger.error("Notification for message %s failed: %s", notice.message_id, exc.detail)
    except Exception:
        # A failed email must never surface to the submitter
        logger.exception("Notification for message %s failed", notice.message_id)
