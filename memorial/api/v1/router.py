# memorial/api/v1/router.py
from fastapi import APIRouter

from memorial.api.v1.endpoints import admin, approvers, auth, bootstrap, messages, moderation

api_router = APIRouter()
api_router.include_router(messages.router, prefix="/messages", tags=["messages"])
api_router.include_router(moderation.router, prefix="/moderation", tags=["moderation"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(bootstrap.router, prefix="/bootstrap", tags=["bootstrap"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
api_router.include_router(approvers.router, prefix="/admin/approvers", tags=["approvers"])
