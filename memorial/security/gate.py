# memorial/security/gate.py
"""
Access Gate for admin-only operations.

- admit():     pre-routing filter, structural check only (no DB, no HMAC)
- authorize(): full signature verification, used before touching data
- forbid_self_target(): self-lockout protection for account management
"""
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from memorial.core.config import settings
from memorial.core.errors import NotAuthenticated, SelfLockout
from memorial.security import session as session_tokens
from memorial.security.session import SessionCodec

# Actions an approver may not perform on their own account
SELF_PROTECTED_ACTIONS = frozenset({"deactivate", "delete"})


class AccessGate:
    def __init__(self, codec: SessionCodec):
        self._codec = codec

    @staticmethod
    def admit(cookie_value: Optional[str]) -> bool:
        return session_tokens.peek(cookie_value) is not None

    def authorize(self, cookie_value: Optional[str]) -> Optional[str]:
        return self._codec.verify(cookie_value)


def forbid_self_target(caller_id: str, target_id: str, action: str) -> None:
    if action in SELF_PROTECTED_ACTIONS and caller_id == target_id:
        raise SelfLockout(action)


async def admin_gate_middleware(request: Request, call_next: Callable) -> Response:
    """
    Pre-routing filter for the admin API: no session cookie (structurally)
    means a redirect to the login page, or a 401 for non-HTML callers.
    Handlers still verify the signature through get_current_admin.
    """
    if request.url.path.startswith(f"{settings.API_V1_STR}/admin"):
        if not AccessGate.admit(request.cookies.get(settings.SESSION_COOKIE_NAME)):
            if request.method == "GET" and "text/html" in request.headers.get("accept", ""):
                return RedirectResponse(settings.admin_login_url, status_code=303)
            return JSONResponse(
                status_code=NotAuthenticated.status_code,
                content={"error": NotAuthenticated.message, "code": NotAuthenticated.code},
            )
    return await call_next(request)
