# memorial/clients/captcha.py
"""
Server-side Cloudflare Turnstile verification.
Never expose TURNSTILE_SECRET_KEY to the client.
"""
import asyncio
import logging
from typing import Optional, Protocol

import aiohttp

from memorial.core.errors import DependencyFailure

logger = logging.getLogger(__name__)

TURNSTILE_VERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"


class CaptchaVerifier(Protocol):
    async def verify(self, token: str, remote_ip: Optional[str] = None) -> bool: ...


class TurnstileVerifier:
    def __init__(self, secret_key: Optional[str], timeout_seconds: float = 10.0):
        self._secret_key = secret_key
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def verify(self, token: str, remote_ip: Optional[str] = None) -> bool:
        if not self._secret_key:
            raise DependencyFailure("captcha", "TURNSTILE_SECRET_KEY is not set")

        form = {"secret": self._secret_key, "response": token}
        if remote_ip:
            form["remoteip"] = remote_ip

        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as http:
                async with http.post(TURNSTILE_VERIFY_URL, data=form) as resp:
                    if resp.status != 200:
                        logger.warning("Turnstile answered HTTP %s", resp.status)
                        return False
                    body = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise DependencyFailure("captcha", str(exc)) from exc

        return isinstance(body, dict) and body.get("success") is True
