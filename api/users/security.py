"""
Password hashing helpers.
"""

from __future__ import annotations

import bcrypt

from core import settings

# bcrypt only reads the first 72 bytes of a password.
_BCRYPT_MAX_BYTES = 72


def hash_password(plain_password: str) -> str:
    password = plain_password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds())
    return bcrypt.hashpw(password, salt).decode("utf-8")
