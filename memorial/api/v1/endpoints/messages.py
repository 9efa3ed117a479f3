# memorial/api/v1/endpoints/messages.py
"""Public board: read approved messages, submit new ones."""
import logging
from typing import Any, List

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from memorial.api import deps
from memorial.clients.captcha import CaptchaVerifier
from memorial.clients.mailer import Notifier
from memorial.clients.media import MediaHost
from memorial.core.config import Settings, get_settings
from memorial.core.errors import InvalidInput
from memorial.core.logging_utils import add_log_fields
from memorial.db.base import get_db
from memorial.schemas.message import (
    MessagePublic,
    SubmissionAccepted,
    SubmissionInvalid,
    validate_submission,
)
from memorial.security.tokens import ModerationTokenIssuer
from memorial.services import messages as message_service
from memorial.services.notifications import build_notice, dispatch_notice
from memorial.services.submission import submit_message

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[MessagePublic])
async def read_messages(
        db: AsyncSession = Depends(get_db),
        limit: int = Query(default=200, ge=1, le=500),
        offset: int = Query(default=0, ge=0),
):
    return await message_service.list_public_messages(db, limit=limit, offset=offset)


@router.post("", response_model=SubmissionAccepted, status_code=status.HTTP_201_CREATED)
async def create_message(
        request: Request,
        background_tasks: BackgroundTasks,
        payload: Any = Body(...),
        db: AsyncSession = Depends(get_db),
        settings: Settings = Depends(get_settings),
        captcha: CaptchaVerifier = Depends(deps.get_captcha),
        media: MediaHost = Depends(deps.get_media_host),
        notifier: Notifier = Depends(deps.get_notifier),
        token_issuer: ModerationTokenIssuer = Depends(deps.get_token_issuer),
):
    submission = validate_submission(payload)
    if isinstance(submission, SubmissionInvalid):
        add_log_fields(request, result="validation_error", reason=submission.reason.value)
        raise InvalidInput(submission.message, code=submission.reason.value)

    message = await submit_message(
        db,
        submission,
        captcha=captcha,
        media=media,
        token_issuer=token_issuer,
        remote_ip=request.client.host if request.client else None,
    )
    add_log_fields(request, result="created", message_id=message.id)

    # Recipients are resolved now, while the request session is open;
    # the send itself happens after the response.
    try:
        notice = await build_notice(db, message, settings)
    except SQLAlchemyError:
        logger.exception("Could not prepare notification for message %s", message.id)
    else:
        background_tasks.add_task(dispatch_notice, notifier, notice)

    return SubmissionAccepted(id=message.id, status=message.status)
