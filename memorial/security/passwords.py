# memorial/security/passwords.py
"""
Password hashing for approver accounts.

Stored form: "<hex-salt>:<hex-derived-key>"
- salt: 16 random bytes, fresh per password. The KDF salt is the
        ASCII text of its hex form, not the raw bytes.
- key:  PBKDF2-HMAC-SHA512, 100,000 iterations, 64 bytes

Verification recomputes the key with the stored salt and compares in
constant time. Anything malformed verifies as False, it never raises.
"""
import secrets

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

SALT_BYTES = 16
KEY_BYTES = 64
ITERATIONS = 100_000
SEPARATOR = ":"

# Enforced by the request schemas before hash_password is called
MIN_PASSWORD_LENGTH = 8


def _derive(password: str, salt_hex: str) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=KEY_BYTES,
        salt=salt_hex.encode("ascii"),
        iterations=ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))


def hash_password(password: str) -> str:
    salt_hex = secrets.token_bytes(SALT_BYTES).hex()
    return f"{salt_hex}{SEPARATOR}{_derive(password, salt_hex).hex()}"


def verify_password(password: str, stored: str) -> bool:
    """
    Verify a candidate password against a stored hash.

    Args:
        password: The candidate password
        stored: The "<hex-salt>:<hex-key>" value from the database

    Returns:
        True if the password matches, False otherwise (including malformed input)
    """
    if not password or not stored or SEPARATOR not in stored:
        return False

    salt_hex, key_hex = stored.split(SEPARATOR, 1)
    if not salt_hex or not key_hex:
        return False

    try:
        bytes.fromhex(salt_hex)
        expected = bytes.fromhex(key_hex)
    except ValueError:
        return False

    if len(expected) != KEY_BYTES:
        return False

    return secrets.compare_digest(_derive(password, salt_hex), expected)
