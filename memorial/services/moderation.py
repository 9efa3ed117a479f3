# memorial/services/moderation.py
"""
Message moderation state machine.

    pending ──► approved ◄──► rejected
        └─────► rejected

Two entry points mutate a message:
- moderate_with_token(): the unauthenticated one-click email link,
  authorized by the message's moderation token
- moderate_as_admin(): the dashboard, authorized by a verified session
  before this module is called

Both write through _compare_and_set(), a conditional UPDATE keyed on the
status observed just before. The store decides the race winner: when two
approvers act at the same instant only one UPDATE matches, the other sees
zero rows and re-reads instead of overwriting blindly.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from memorial.clients.media import MediaHost
from memorial.core.errors import (
    DependencyFailure,
    MessageNotFound,
    ModerationConflict,
    TokenMismatch,
)
from memorial.models.message import Message, MessageStatus
from memorial.security.tokens import tokens_match

logger = logging.getLogger(__name__)

# Dashboard writes retry against a freshly observed status this many times
MAX_ADMIN_ATTEMPTS = 3

RESOLVED_STATES = frozenset({MessageStatus.APPROVED, MessageStatus.REJECTED})


class Outcome(str, enum.Enum):
    APPLIED = "applied"
    # Already in the requested state; nothing written
    UNCHANGED = "unchanged"
    # Another actor resolved the message first; nothing written
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class TransitionResult:
    outcome: Outcome
    message: Message


async def get_message(db: AsyncSession, message_id: str) -> Optional[Message]:
    # populate_existing: a conditional UPDATE bypasses the identity map
    result = await db.execute(
        select(Message)
        .where(Message.id == message_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def _require_message(db: AsyncSession, message_id: str) -> Message:
    message = await get_message(db, message_id)
    if message is None:
        raise MessageNotFound(message_id)
    return message


async def _compare_and_set(
    db: AsyncSession,
    message_id: str,
    expected: MessageStatus,
    target: MessageStatus,
    approver_id: Optional[str],
) -> bool:
    values = {"status": target.value}
    if target is MessageStatus.APPROVED:
        values["approved_at"] = datetime.now(timezone.utc)
    if approver_id is not None:
        values["approved_by_approver_id"] = approver_id

    result = await db.execute(
        update(Message)
        .where(Message.id == message_id, Message.status == expected.value)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount == 1


async def moderate_with_token(
    db: AsyncSession,
    message_id: str,
    token: str,
    target: MessageStatus,
    acting_approver_id: Optional[str] = None,
    *,
    allow_override: bool = True,
) -> TransitionResult:
    """
    Apply an approve/reject coming from an email link.

    Raises MessageNotFound for an unknown id and TokenMismatch when the
    token is not exactly the stored one; neither writes anything.

    allow_override=False makes the first resolution final for this path:
    a link for the opposite outcome then returns SUPERSEDED.
    """
    if target not in RESOLVED_STATES:
        raise ValueError(f"cannot moderate into {target.value!r}")

    message = await _require_message(db, message_id)
    if not tokens_match(message.moderation_token, token):
        logger.warning("Moderation token mismatch for message %s", message_id)
        raise TokenMismatch(message_id)

    current = message.status_enum
    if current is target:
        return TransitionResult(Outcome.UNCHANGED, message)
    if current in RESOLVED_STATES and not allow_override:
        return TransitionResult(Outcome.SUPERSEDED, message)

    if await _compare_and_set(db, message_id, current, target, acting_approver_id):
        message = await _require_message(db, message_id)
        logger.info(
            "Message %s %s -> %s via email link (approver=%s)",
            message_id, current.value, target.value, acting_approver_id or "-",
        )
        return TransitionResult(Outcome.APPLIED, message)

    # Lost the race: someone else moved the message after we read it
    message = await _require_message(db, message_id)
    if message.status_enum is target:
        return TransitionResult(Outcome.UNCHANGED, message)
    logger.info("Email-link %s of message %s superseded by a concurrent action", target.value, message_id)
    return TransitionResult(Outcome.SUPERSEDED, message)


async def moderate_as_admin(
    db: AsyncSession,
    message_id: str,
    target: MessageStatus,
    admin_id: str,
) -> TransitionResult:
    """
    Approve, reject or revoke from the dashboard.

    The caller must already be a verified, active admin. Their id is recorded
    as provenance on every applied transition.
    """
    if target not in RESOLVED_STATES:
        raise ValueError(f"cannot moderate into {target.value!r}")

    for _ in range(MAX_ADMIN_ATTEMPTS):
        message = await _require_message(db, message_id)
        current = message.status_enum
        if current is target:
            return TransitionResult(Outcome.UNCHANGED, message)

        if await _compare_and_set(db, message_id, current, target, admin_id):
            message = await _require_message(db, message_id)
            logger.info(
                "Message %s %s -> %s by admin %s",
                message_id, current.value, target.value, admin_id,
            )
            return TransitionResult(Outcome.APPLIED, message)

    raise ModerationConflict()


async def approve_as_admin(db: AsyncSession, message_id: str, admin_id: str) -> TransitionResult:
    return await moderate_as_admin(db, message_id, MessageStatus.APPROVED, admin_id)


async def reject_as_admin(db: AsyncSession, message_id: str, admin_id: str) -> TransitionResult:
    """Reject a pending message, or revoke an approval."""
    return await moderate_as_admin(db, message_id, MessageStatus.REJECTED, admin_id)


async def delete_message(db: AsyncSession, message_id: str, media: MediaHost) -> None:
    """
    Hard-delete a message. The hosted image, if any, is removed afterwards
    on a best-effort basis: the row is gone even if the media host fails.
    """
    message = await _require_message(db, message_id)
    public_id = message.image_public_id

    await db.delete(message)
    await db.commit()
    logger.info("Deleted message %s", message_id)

    if public_id:
        try:
            await media.delete(public_id)
        except DependencyFailure as exc:
            logger.error("Could not delete hosted image %s of message %s: %s", public_id, message_id, exc.detail)
