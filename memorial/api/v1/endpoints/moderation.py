# memorial/api/v1/endpoints/moderation.py
"""
One-click moderation links from notification emails.

GET /moderation/approve?id=...&token=...[&approver=...]
GET /moderation/reject?id=...&token=...[&approver=...]

Answers with a small self-contained HTML page:
400 malformed link, 403 token mismatch, 404 unknown message,
200 applied / already in that state / superseded.
"""
import logging
import uuid
from html import escape
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from memorial.core.config import Settings, get_settings
from memorial.core.errors import MessageNotFound, TokenMismatch
from memorial.core.logging_utils import add_log_fields
from memorial.db.base import get_db
from memorial.models.message import MessageStatus
from memorial.services.moderation import Outcome, moderate_with_token

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_TOKEN_LENGTH = 256

_APPLIED = {
    MessageStatus.APPROVED: "Message approved and now visible on the memorial board.",
    MessageStatus.REJECTED: "Message has been rejected and will not appear publicly.",
}
_UNCHANGED = {
    MessageStatus.APPROVED: "This message has already been approved.",
    MessageStatus.REJECTED: "This message was already rejected.",
}
_SUPERSEDED = "This message has already been moderated by another approver (current status: {status})."


def _page(title: str, text: str, color: str, extra: str = "") -> str:
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{escape(title)} - Memorial Board</title>
<style>body{{font-family:Georgia,serif;background:#faf7f0;display:flex;align-items:center;justify-content:center;min-height:100vh;margin:0}}
.card{{background:#fff;border:1px solid #e7e0d4;border-radius:16px;padding:40px 48px;text-align:center;max-width:400px}}
h2{{color:{color};margin:0 0 12px;font-size:22px}}
p{{color:#44403c;font-size:14px;margin:0 0 16px;line-height:1.6}}
a{{color:#b89a5c;font-size:13px}}</style></head>
<body><div class="card"><h2>{escape(title)}</h2><p>{escape(text)}</p>{extra}</div></body>
</html>"""


def _success(settings: Settings, text: str) -> HTMLResponse:
    dashboard = escape(f"{settings.APP_BASE_URL.rstrip('/')}/admin", quote=True)
    return HTMLResponse(_page("Done", text, "#166534", f'<a href="{dashboard}">Go to admin dashboard</a>'), 200)


def _error(text: str, status_code: int) -> HTMLResponse:
    return HTMLResponse(_page("Error", text, "#991b1b"), status_code)


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


async def _handle_link(
        request: Request,
        db: AsyncSession,
        settings: Settings,
        target: MessageStatus,
        message_id: Optional[str],
        token: Optional[str],
        approver_id: Optional[str],
) -> HTMLResponse:
    action = "approval" if target is MessageStatus.APPROVED else "rejection"
    if not message_id or not token or len(token) > MAX_TOKEN_LENGTH or not _is_uuid(message_id):
        return _error(f"Invalid {action} link.", 400)
    if approver_id and not _is_uuid(approver_id):
        return _error(f"Invalid {action} link.", 400)

    try:
        result = await moderate_with_token(
            db,
            message_id,
            token,
            target,
            approver_id or None,
            allow_override=settings.TOKEN_LINKS_CAN_OVERRIDE,
        )
    except MessageNotFound:
        add_log_fields(request, result="not_found", message_id=message_id)
        return _error("Message not found.", 404)
    except TokenMismatch:
        add_log_fields(request, result="token_mismatch", message_id=message_id)
        return _error("Invalid or expired token.", 403)
    except SQLAlchemyError:
        logger.exception("Email-link %s of message %s failed", action, message_id)
        return _error(f"Failed to record the {action}. Please try again.", 500)

    add_log_fields(request, result=result.outcome.value, message_id=message_id)
    if result.outcome is Outcome.APPLIED:
        return _success(settings, _APPLIED[target])
    if result.outcome is Outcome.UNCHANGED:
        return _success(settings, _UNCHANGED[target])
    return _success(settings, _SUPERSEDED.format(status=result.message.status))


@router.get("/approve", response_class=HTMLResponse)
async def approve_via_link(
        request: Request,
        id: Optional[str] = None,
        token: Optional[str] = None,
        approver: Optional[str] = None,
        db: AsyncSession = Depends(get_db),
        settings: Settings = Depends(get_settings),
):
    return await _handle_link(request, db, settings, MessageStatus.APPROVED, id, token, approver)


@router.get("/reject", response_class=HTMLResponse)
async def reject_via_link(
        request: Request,
        id: Optional[str] = None,
        token: Optional[str] = None,
        approver: Optional[str] = None,
        db: AsyncSession = Depends(get_db),
        settings: Settings = Depends(get_settings),
):
    return await _handle_link(request, db, settings, MessageStatus.REJECTED, id, token, approver)
