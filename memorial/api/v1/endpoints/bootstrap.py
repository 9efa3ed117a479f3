# memorial/api/v1/endpoints/bootstrap.py
"""
One-time creation of the very first approver.

POST /bootstrap {"secret": BOOTSTRAP_SECRET, "name", "email", "password"}

Disabled when BOOTSTRAP_SECRET is unset, and permanently closed as soon as
any approver exists, whatever secret is presented.
"""
import secrets

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from memorial.core.config import Settings, get_settings
from memorial.core.errors import BootstrapClosed
from memorial.db.base import get_db
from memorial.schemas.approver import ApproverResponse, BootstrapRequest
from memorial.services import approvers as approver_service

router = APIRouter()


@router.post("", response_model=ApproverResponse, status_code=status.HTTP_201_CREATED)
async def bootstrap(
        request: BootstrapRequest,
        db: AsyncSession = Depends(get_db),
        settings: Settings = Depends(get_settings),
):
    if not settings.BOOTSTRAP_SECRET:
        raise BootstrapClosed("Bootstrap is disabled.")
    if not secrets.compare_digest(request.secret.encode("utf-8"), settings.BOOTSTRAP_SECRET.encode("utf-8")):
        raise BootstrapClosed("Invalid bootstrap secret.")

    return await approver_service.bootstrap_first_approver(
        db, request.name, request.email, request.password
    )
