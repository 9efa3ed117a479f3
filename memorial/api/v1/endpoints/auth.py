# memorial/api/v1/endpoints/auth.py
from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from memorial.api import deps
from memorial.core.config import Settings, get_settings
from memorial.core.errors import NotAuthenticated
from memorial.db.base import get_db
from memorial.models.approver import Approver
from memorial.schemas.approver import ApproverResponse, LoginRequest
from memorial.security.session import SessionCodec
from memorial.services import approvers as approver_service

router = APIRouter()


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_MAX_AGE_SECONDS,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


@router.post("/login", response_model=ApproverResponse)
async def login(
        credentials: LoginRequest,
        response: Response,
        db: AsyncSession = Depends(get_db),
        codec: SessionCodec = Depends(deps.get_session_codec),
        settings: Settings = Depends(get_settings),
):
    approver = await approver_service.authenticate(db, credentials.email, credentials.password)
    if approver is None:
        raise NotAuthenticated("Incorrect email or password.", code="invalid_credentials")

    set_session_cookie(response, codec.issue(approver.id), settings)
    return approver


@router.post("/logout")
async def logout(response: Response, settings: Settings = Depends(get_settings)):
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return {"success": True}


@router.get("/me", response_model=ApproverResponse)
async def read_current_admin(current_admin: Approver = Depends(deps.get_current_admin)):
    return current_admin
