# memorial/services/messages.py
"""Read paths over messages: the public board and the admin dashboard."""
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from memorial.models.approver import Approver
from memorial.models.message import Message, MessageStatus
from memorial.schemas.message import MessageAdminView, MessagePublic, MessageSummary

UNKNOWN_APPROVER = "unknown"


async def list_public_messages(db: AsyncSession, limit: int = 200, offset: int = 0) -> List[MessagePublic]:
    result = await db.execute(
        select(Message)
        .where(Message.status == MessageStatus.APPROVED.value)
        .order_by(Message.created_at.desc(), Message.id)
        .offset(offset)
        .limit(limit)
    )
    return [MessagePublic.model_validate(m) for m in result.scalars().all()]


async def list_admin_messages(
    db: AsyncSession,
    status: Optional[MessageStatus] = None,
    limit: int = 200,
    offset: int = 0,
) -> List[MessageAdminView]:
    query = (
        select(Message, Approver.name)
        .outerjoin(Approver, Approver.id == Message.approved_by_approver_id)
        .order_by(Message.created_at.desc(), Message.id)
    )
    if status is not None:
        query = query.where(Message.status == status.value)

    result = await db.execute(query.offset(offset).limit(limit))

    views = []
    for message, approver_name in result.all():
        view = MessageAdminView.model_validate(message)
        if message.approved_by_approver_id:
            view.approved_by_name = approver_name or UNKNOWN_APPROVER
        views.append(view)
    return views


async def summarize(db: AsyncSession) -> MessageSummary:
    result = await db.execute(select(Message.status, func.count(Message.id)).group_by(Message.status))
    counts = {status: count for status, count in result.all()}
    return MessageSummary(
        pending=counts.get(MessageStatus.PENDING.value, 0),
        approved=counts.get(MessageStatus.APPROVED.value, 0),
        rejected=counts.get(MessageStatus.REJECTED.value, 0),
        total=sum(counts.values()),
    )
