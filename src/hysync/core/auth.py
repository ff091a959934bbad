"""Password hashing and bearer tokens for the sync server.

Passwords are stored as ``scrypt$<n>$<salt>$<hash>`` using the
cryptography Scrypt KDF with a random 16-byte salt.

Tokens have the form ``<payload>.<signature>``. The payload is
base64url JSON ``{"sub": user_id, "iat": ..., "exp": ...}`` and the
signature is HMAC-SHA256 of the encoded payload under the server
secret. Both parts omit base64 padding.

This is not a JWT: there is no header segment, so standard JWT
libraries cannot verify these tokens and they cannot verify JWTs.
Only this server issues and checks them.

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

import base64
import json
import logging
import os
import time
from typing import Any, Dict

from cryptography.exceptions import InvalidKey, InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

logger = logging.getLogger(__name__)

__all__ = [
    "TokenError",
    "hash_password",
    "verify_password",
    "create_token",
    "verify_token",
]

SCRYPT_N = 2**14
SCRYPT_R = 8
SCRYPT_P = 1
SCRYPT_LENGTH = 32
SALT_BYTES = 16


class TokenError(ValueError):
    """Raised when a bearer token is malformed, forged or expired."""


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


def _scrypt(salt: bytes, n: int) -> Scrypt:
    return Scrypt(salt=salt, length=SCRYPT_LENGTH, n=n, r=SCRYPT_R, p=SCRYPT_P)


def hash_password(password: str) -> str:
    """Hash a password with a fresh random salt."""
    salt = os.urandom(SALT_BYTES)
    derived = _scrypt(salt, SCRYPT_N).derive(password.encode("utf-8"))
    return f"scrypt${SCRYPT_N}${_b64encode(salt)}${_b64encode(derived)}"


def verify_password(password: str, stored: str) -> bool:
    """Check a password against a stored hash. Malformed hashes never match."""
    try:
        scheme, n_text, salt_text, hash_text = stored.split("$")
        if scheme != "scrypt":
            return False
        kdf = _scrypt(_b64decode(salt_text), int(n_text))
        kdf.verify(password.encode("utf-8"), _b64decode(hash_text))
        return True
    except InvalidKey:
        return False
    except (ValueError, TypeError) as e:
        logger.warning(f"Unreadable password hash: {e}")
        return False


def _sign(secret: str, message: bytes) -> bytes:
    h = hmac.HMAC(secret.encode("utf-8"), hashes.SHA256())
    h.update(message)
    return h.finalize()


def create_token(user_id: str, secret: str, ttl_days: int = 30) -> str:
    """Issue a signed token for a user.

    Args:
        user_id: Id placed in the ``sub`` claim
        secret: Server signing secret
        ttl_days: Days until the token expires
    """
    now = int(time.time())
    payload = {"sub": user_id, "iat": now, "exp": now + ttl_days * 86400}
    encoded = _b64encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    signature = _b64encode(_sign(secret, encoded.encode("ascii")))
    return f"{encoded}.{signature}"


def verify_token(token: str, secret: str) -> Dict[str, Any]:
    """Validate a token and return its payload.

    Raises:
        TokenError: If the token is malformed, has a bad signature or has expired
    """
    try:
        encoded, signature = token.split(".")
        h = hmac.HMAC(secret.encode("utf-8"), hashes.SHA256())
        h.update(encoded.encode("ascii"))
        h.verify(_b64decode(signature))
        payload = json.loads(_b64decode(encoded))
    except InvalidSignature:
        raise TokenError("Invalid token signature") from None
    except (ValueError, UnicodeError):
        raise TokenError("Malformed token") from None

    if not isinstance(payload, dict) or "sub" not in payload:
        raise TokenError("Malformed token")
    if int(payload.get("exp", 0)) < time.time():
        raise TokenError("Token expired")
    return payload
