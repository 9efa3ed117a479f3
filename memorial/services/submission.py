# memorial/services/submission.py
"""
Public submission flow.

CAPTCHA → image upload (optional, critical) → token + row insert.
If the insert fails after an upload, the uploaded image is deleted again
so the media host is not left with orphans.
"""
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from memorial.clients.captcha import CaptchaVerifier
from memorial.clients.media import MediaHost, UploadedImage
from memorial.core.errors import DependencyFailure, InvalidInput
from memorial.models.message import Message, MessageStatus
from memorial.schemas.message import MessageSubmission
from memorial.security.tokens import ModerationTokenIssuer

logger = logging.getLogger(__name__)


async def _discard_upload(media: MediaHost, uploaded: UploadedImage) -> None:
    try:
        await media.delete(uploaded.public_id)
    except DependencyFailure as exc:
        logger.error("Could not remove orphaned image %s: %s", uploaded.public_id, exc.detail)


async def submit_message(
    db: AsyncSession,
    submission: MessageSubmission,
    *,
    captcha: CaptchaVerifier,
    media: MediaHost,
    token_issuer: ModerationTokenIssuer,
    remote_ip: Optional[str] = None,
) -> Message:
    if not await captcha.verify(submission.captcha_token, remote_ip):
        raise InvalidInput("CAPTCHA verification failed. Please try again.", code="captcha_failed")

    uploaded: Optional[UploadedImage] = None
    if submission.image is not None:
        uploaded = await media.upload(submission.image.data, submission.image.content_type)

    message = Message(
        name=submission.name,
        content=submission.content,
        status=MessageStatus.PENDING.value,
        moderation_token=token_issuer.generate(),
        image_url=uploaded.url if uploaded else None,
        image_public_id=uploaded.public_id if uploaded else None,
    )
    db.add(message)
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        if uploaded is not None:
            await _discard_upload(media, uploaded)
        raise

    await db.refresh(message)
    logger.info("Message %s submitted (image=%s)", message.id, uploaded is not None)
    return message
