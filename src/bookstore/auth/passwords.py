# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from functools import lru_cache

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

_PH = PasswordHasher()


def hash_password(plain: str) -> str:
    if not plain:
        raise ValueError("Empty password")
    return _PH.hash(plain)


def verify_password(plain: str, hash_value: str) -> bool:
    """Return True only if ``plain`` matches ``hash_value``.

    Mismatches, malformed digests and plaintext that cannot be encoded all
    give False.
    """
    if not hash_value or not plain:
        return False
    try:
        return _PH.verify(hash_value, plain)
    except (VerificationError, InvalidHashError, UnicodeError):
        return False


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return _PH.hash("bookstore-unknown-user")


def verify_dummy(plain: str) -> bool:
    """Spend one verification on a throwaway digest and fail.

    Login calls this for unknown emails so that path costs the same as a wrong
    password.
    """
    verify_password(plain or "-", _dummy_hash())
    return False
