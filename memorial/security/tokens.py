# memorial/security/tokens.py
"""
Moderation tokens: per-message capability secrets for the one-click
approve/reject links sent to approvers.

32 random bytes → 64 lowercase hex characters. Generated once when the
message is created, stored verbatim, never regenerated.
"""
import secrets

MIN_TOKEN_BYTES = 32


class ModerationTokenIssuer:
    def __init__(self, nbytes: int = MIN_TOKEN_BYTES):
        if nbytes < MIN_TOKEN_BYTES:
            raise ValueError(f"moderation tokens need at least {MIN_TOKEN_BYTES} bytes of randomness")
        self.nbytes = nbytes

    @classmethod
    def from_settings(cls, config) -> "ModerationTokenIssuer":
        return cls(config.MODERATION_TOKEN_BYTES)

    def generate(self) -> str:
        return secrets.token_hex(self.nbytes)


def tokens_match(stored: str, presented: str) -> bool:
    """Exact, case-sensitive, constant-time comparison."""
    if not stored or not presented:
        return False
    return secrets.compare_digest(stored.encode("utf-8"), presented.encode("utf-8"))
