"""
Credential primitives for ReadCommons.

- Opaque bearer tokens: 16 random bytes, base32 encoded without padding
  (always 26 characters). Only the sha256 digest is ever stored.
- Passwords: bcrypt hashes.
"""

import base64
import hashlib
import secrets

import bcrypt

from .validator import Validator, byte_length


TOKEN_LENGTH = 26
TOKEN_ENTROPY_BYTES = 16

MIN_PASSWORD_BYTES = 8
# bcrypt ignores everything past 72 bytes
MAX_PASSWORD_BYTES = 72


# =============================================================================
# Tokens
# =============================================================================

def generate_token_plaintext() -> str:
    """Return a fresh random token in its client-facing form."""
    raw = secrets.token_bytes(TOKEN_ENTROPY_BYTES)
    return base64.b32encode(raw).decode("ascii").rstrip("=")


def hash_token(plaintext: str) -> bytes:
    return hashlib.sha256(plaintext.encode("utf-8")).digest()


def validate_token_plaintext(v: Validator, plaintext: str) -> None:
    v.check(plaintext != "", "token", "must be provided")
    v.check(len(plaintext) == TOKEN_LENGTH, "token", f"must be {TOKEN_LENGTH} bytes long")


# =============================================================================
# Passwords
# =============================================================================

def hash_password(plaintext: str, rounds: int = 12) -> bytes:
    """
    Hash a password with bcrypt.

    Args:
        plaintext: Password as supplied by the client.
        rounds: bcrypt cost factor.

    Returns:
        The bcrypt hash, salt included.
    """
    return bcrypt.hashpw(plaintext.encode("utf-8"), bcrypt.gensalt(rounds=rounds))


def password_matches(plaintext: str, password_hash: bytes) -> bool:
    if not password_hash:
        return False
    return bcrypt.checkpw(plaintext.encode("utf-8"), password_hash)


def validate_password_plaintext(v: Validator, password: str) -> None:
    v.check(password != "", "password", "must be provided")
    v.check(byte_length(password) >= MIN_PASSWORD_BYTES, "password", f"must be at least {MIN_PASSWORD_BYTES} bytes long")
    v.check(byte_length(password) <= MAX_PASSWORD_BYTES, "password", f"must not be more than {MAX_PASSWORD_BYTES} bytes long")
