# memorial/api/v1/endpoints/approvers.py
"""Approver account management. Every route requires a verified admin."""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from memorial.api import deps
from memorial.db.base import get_db
from memorial.models.approver import Approver
from memorial.schemas.approver import ApproverCreate, ApproverResponse, PasswordChange
from memorial.security.gate import forbid_self_target
from memorial.services import approvers as approver_service

router = APIRouter()


@router.get("", response_model=List[ApproverResponse])
async def read_approvers(
        db: AsyncSession = Depends(get_db),
        current_admin: Approver = Depends(deps.get_current_admin),
):
    return await approver_service.list_approvers(db)


@router.post("", response_model=ApproverResponse, status_code=status.HTTP_201_CREATED)
async def create_approver(
        approver_in: ApproverCreate,
        db: AsyncSession = Depends(get_db),
        current_admin: Approver = Depends(deps.get_current_admin),
):
    return await approver_service.create_approver(
        db, approver_in.name, approver_in.email, approver_in.password
    )


@router.post("/{approver_id}/deactivate", response_model=ApproverResponse)
async def deactivate_approver(
        approver_id: str,
        db: AsyncSession = Depends(get_db),
        current_admin: Approver = Depends(deps.get_current_admin),
):
    forbid_self_target(current_admin.id, approver_id, "deactivate")
    return await approver_service.set_active(db, approver_id, False)


@router.post("/{approver_id}/reactivate", response_model=ApproverResponse)
async def reactivate_approver(
        approver_id: str,
        db: AsyncSession = Depends(get_db),
        current_admin: Approver = Depends(deps.get_current_admin),
):
    return await approver_service.set_active(db, approver_id, True)


@router.delete("/{approver_id}")
async def delete_approver(
        approver_id: str,
        db: AsyncSession = Depends(get_db),
        current_admin: Approver = Depends(deps.get_current_admin),
):
    forbid_self_target(current_admin.id, approver_id, "delete")
    await approver_service.delete_approver(db, approver_id)
    return {"message": "Approver deleted successfully"}


@router.put("/{approver_id}/password")
async def change_password(
        approver_id: str,
        password_in: PasswordChange,
        db: AsyncSession = Depends(get_db),
        current_admin: Approver = Depends(deps.get_current_admin),
):
    await approver_service.change_password(db, approver_id, password_in.password)
    return {"success": True}
