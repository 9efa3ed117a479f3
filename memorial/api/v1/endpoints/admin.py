# memorial/api/v1/endpoints/admin.py
"""Admin dashboard: list, approve, reject (revoke) and delete messages."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from memorial.api import deps
from memorial.clients.media import MediaHost
from memorial.core.logging_utils import add_log_fields
from memorial.db.base import get_db
from memorial.models.approver import Approver
from memorial.models.message import MessageStatus
from memorial.schemas.message import MessageAdminView, MessageSummary, ModerationOutcome, StatusFilter
from memorial.services import messages as message_service
from memorial.services import moderation
from memorial.services.moderation import TransitionResult

router = APIRouter()


def _outcome(result: TransitionResult) -> ModerationOutcome:
    message = result.message
    return ModerationOutcome(
        id=message.id,
        status=message.status,
        outcome=result.outcome.value,
        approved_at=message.approved_at,
        approved_by_approver_id=message.approved_by_approver_id,
    )


@router.get("/messages", response_model=List[MessageAdminView])
async def read_all_messages(
        db: AsyncSession = Depends(get_db),
        current_admin: Approver = Depends(deps.get_current_admin),
        status: Optional[StatusFilter] = None,
        limit: int = Query(default=200, ge=1, le=500),
        offset: int = Query(default=0, ge=0),
):
    status_filter = MessageStatus(status.value) if status else None
    return await message_service.list_admin_messages(db, status_filter, limit=limit, offset=offset)


@router.get("/messages/summary", response_model=MessageSummary)
async def read_summary(
        db: AsyncSession = Depends(get_db),
        current_admin: Approver = Depends(deps.get_current_admin),
):
    return await message_service.summarize(db)


@router.post("/messages/{message_id}/approve", response_model=ModerationOutcome)
async def approve_message(
        message_id: str,
        request: Request,
        db: AsyncSession = Depends(get_db),
        current_admin: Approver = Depends(deps.get_current_admin),
):
    result = await moderation.approve_as_admin(db, message_id, current_admin.id)
    add_log_fields(request, result=result.outcome.value, message_id=message_id)
    return _outcome(result)


@router.post("/messages/{message_id}/reject", response_model=ModerationOutcome)
async def reject_message(
        message_id: str,
        request: Request,
        db: AsyncSession = Depends(get_db),
        current_admin: Approver = Depends(deps.get_current_admin),
):
    result = await moderation.reject_as_admin(db, message_id, current_admin.id)
    add_log_fields(request, result=result.outcome.value, message_id=message_id)
    return _outcome(result)


@router.delete("/messages/{message_id}")
async def delete_message(
        message_id: str,
        db: AsyncSession = Depends(get_db),
        media: MediaHost = Depends(deps.get_media_host),
        current_admin: Approver = Depends(deps.get_current_admin),
):
    await moderation.delete_message(db, message_id, media)
    return {"message": "Message deleted successfully"}
