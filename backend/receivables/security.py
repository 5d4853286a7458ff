"""Password hashing with bcrypt.

The previous portal stored bcryptjs hashes (``$2a$10$...``); ``checkpw``
accepts those as well as the ``$2b$`` hashes written here, so migrated users
keep their passwords.
"""
from __future__ import annotations

import bcrypt

from .config import settings

# bcrypt ignores everything past 72 bytes; bcryptjs truncates the same way.
MAX_PASSWORD_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:MAX_PASSWORD_BYTES]


def hash_password(password: str, *, rounds: int | None = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or settings.password_hash_rounds)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("ascii")


def verify_password(password: str, encoded: str | None) -> bool:
    if not encoded:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(password), encoded.encode("ascii"))
    except ValueError:
        # Not a bcrypt hash.
        return False
