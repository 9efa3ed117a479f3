# memorial/core/errors.py
"""
Error taxonomy shared by services and the HTTP layer.

Services raise these; exception handlers in memorial.main turn them into
JSON responses. `code` is stable and safe to show to anonymous callers,
`message` is the human-readable text.
"""
from fastapi import status


class MemorialError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_error"
    message = "Internal server error."

    def __init__(self, message: str | None = None, *, code: str | None = None):
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        super().__init__(self.message)


# ── 400 ──────────────────────────────────────────────────────────────────────
class InvalidInput(MemorialError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_input"
    message = "Invalid input."


# ── 401 / 403 ────────────────────────────────────────────────────────────────
class NotAuthenticated(MemorialError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "not_authenticated"
    message = "Authentication required."


class Forbidden(MemorialError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    message = "Forbidden."


class TokenMismatch(Forbidden):
    code = "token_mismatch"
    message = "Invalid or expired token."

    def __init__(self, message_id: str):
        self.message_id = message_id
        super().__init__()


class SelfLockout(Forbidden):
    code = "self_lockout"

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"You cannot {action} your own account.")


class BootstrapClosed(Forbidden):
    code = "bootstrap_closed"
    message = "Bootstrap is not available."


# ── 404 ──────────────────────────────────────────────────────────────────────
class NotFound(MemorialError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    message = "Not found."


class MessageNotFound(NotFound):
    code = "message_not_found"
    message = "Message not found."

    def __init__(self, message_id: str):
        self.message_id = message_id
        super().__init__()


class ApproverNotFound(NotFound):
    code = "approver_not_found"
    message = "Approver not found."


# ── 409 ──────────────────────────────────────────────────────────────────────
class Conflict(MemorialError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    message = "Conflict."


class DuplicateEmail(Conflict):
    code = "duplicate_email"
    message = "An approver with this email already exists."


class ModerationConflict(Conflict):
    code = "moderation_conflict"
    message = "The message changed while it was being moderated. Please retry."


# ── 503 ──────────────────────────────────────────────────────────────────────
class DependencyFailure(MemorialError):
    """An external collaborator (CAPTCHA, email, image host) failed."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "dependency_failure"
    message = "A required service is temporarily unavailable. Please try again."

    def __init__(self, dependency: str, detail: str = ""):
        self.dependency = dependency
        self.detail = detail
        super().__init__()
