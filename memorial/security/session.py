# memorial/security/session.py
"""
Stateless admin session tokens.

Token format:  "<approverId>.<base64url(HMAC-SHA256(secret, approverId))>"

The '.' separator is safe: approver ids are UUIDs (hex digits and hyphens).
There is no server-side session storage and no expiry inside the token;
the session cookie's max-age (8 hours) is the only lifetime.

Two trust levels:
- peek():   structural read, no signature check. Only for the pre-routing
            filter that decides "redirect to login or let it through".
- verify(): full HMAC check. Required before any read or write on behalf
            of the admin.
"""
import base64
import binascii
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac

SEPARATOR = "."


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(value: str) -> bytes:
    padded = value + "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def peek(token: Optional[str]) -> Optional[str]:
    """Extract the approver id without checking the signature."""
    if not token:
        return None
    approver_id, sep, signature = token.partition(SEPARATOR)
    if not sep or not approver_id or not signature:
        return None
    return approver_id


class SessionCodec:
    """Issues and verifies session tokens with one process-wide secret."""

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("SessionCodec requires a non-empty secret")
        self._key = secret.encode("utf-8")

    @classmethod
    def from_settings(cls, config) -> "SessionCodec":
        return cls(config.SESSION_SECRET)

    def _mac(self) -> hmac.HMAC:
        return hmac.HMAC(self._key, hashes.SHA256())

    def issue(self, approver_id: str) -> str:
        if not approver_id or SEPARATOR in approver_id:
            raise ValueError("approver id must be non-empty and must not contain '.'")
        mac = self._mac()
        mac.update(approver_id.encode("utf-8"))
        return f"{approver_id}{SEPARATOR}{_b64url_encode(mac.finalize())}"

    def verify(self, token: Optional[str]) -> Optional[str]:
        """
        Verify a session token.

        Returns the approver id if the signature is valid, None otherwise.
        Never raises for attacker-controlled input.
        """
        approver_id = peek(token)
        if approver_id is None:
            return None
        signature_b64 = token.split(SEPARATOR, 1)[1]

        try:
            signature = _b64url_decode(signature_b64)
            # reject non-canonical encodings so every token has exactly one form
            if _b64url_encode(signature) != signature_b64:
                return None
            mac = self._mac()
            mac.update(approver_id.encode("utf-8"))
            mac.verify(signature)
        except (InvalidSignature, binascii.Error, ValueError, UnicodeError):
            return None

        return approver_id
