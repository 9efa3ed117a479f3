# memorial/api/deps.py
from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from memorial.clients.captcha import CaptchaVerifier, TurnstileVerifier
from memorial.clients.mailer import Notifier, ResendNotifier
from memorial.clients.media import CloudinaryMediaHost, MediaHost
from memorial.core.config import Settings, get_settings
from memorial.core.errors import NotAuthenticated
from memorial.db.base import get_db
from memorial.models.approver import Approver
from memorial.security.gate import AccessGate
from memorial.security.session import SessionCodec
from memorial.security.tokens import ModerationTokenIssuer
from memorial.services import approvers as approver_service


# ── Injected, read-only collaborators (built once per process) ───────────────
@lru_cache()
def get_session_codec() -> SessionCodec:
    return SessionCodec.from_settings(get_settings())


@lru_cache()
def get_token_issuer() -> ModerationTokenIssuer:
    return ModerationTokenIssuer.from_settings(get_settings())


@lru_cache()
def get_captcha() -> CaptchaVerifier:
    config = get_settings()
    return TurnstileVerifier(config.TURNSTILE_SECRET_KEY, config.OUTBOUND_TIMEOUT_SECONDS)


@lru_cache()
def get_media_host() -> MediaHost:
    config = get_settings()
    return CloudinaryMediaHost(
        config.CLOUDINARY_CLOUD_NAME,
        config.CLOUDINARY_API_KEY,
        config.CLOUDINARY_API_SECRET,
        folder=config.CLOUDINARY_FOLDER,
        timeout_seconds=config.OUTBOUND_TIMEOUT_SECONDS,
    )


@lru_cache()
def get_notifier() -> Notifier:
    config = get_settings()
    return ResendNotifier(config.RESEND_API_KEY, config.EMAIL_FROM, config.OUTBOUND_TIMEOUT_SECONDS)


def get_access_gate(codec: SessionCodec = Depends(get_session_codec)) -> AccessGate:
    return AccessGate(codec)


async def get_current_admin(
        request: Request,
        db: AsyncSession = Depends(get_db),
        gate: AccessGate = Depends(get_access_gate),
        settings: Settings = Depends(get_settings),
) -> Approver:
    # Signature first: a forged cookie never reaches the database
    approver_id = gate.authorize(request.cookies.get(settings.SESSION_COOKIE_NAME))
    if approver_id is None:
        raise NotAuthenticated("Invalid or expired session.")

    approver = await approver_service.get_active_approver(db, approver_id)
    if approver is None:
        raise NotAuthenticated("Invalid or expired session.")

    request.state.admin_id = approver.id
    return approver
