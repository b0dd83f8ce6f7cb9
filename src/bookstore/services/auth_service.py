# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Signup, login and current-user flows.

HTTP concerns (status codes, cookies) stay in ``bookstore.app``; this module
raises :mod:`bookstore.errors` exceptions which the app turns into responses.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Protocol, Tuple

from pydantic import BaseModel

from bookstore.auth.passwords import hash_password, verify_dummy, verify_password
from bookstore.auth.tokens import InvalidToken, TokenService
from bookstore.auth.users import DuplicateEmailError, StoreError, UserRecord, normalize_email
from bookstore.errors import (
    InternalError,
    InvalidCredentials,
    TokenExpired,
    UserAlreadyExists,
    UserNotFound,
    ValidationFailed,
    WeakPassword,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
MAX_USER_ID = 2**63 - 1  # SQLite INTEGER

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class CredentialStore(Protocol):
    def find_by_email(self, email: Optional[str]) -> Optional[UserRecord]: ...

    def find_by_id(self, user_id: int) -> Optional[UserRecord]: ...

    def create(
        self,
        name: str,
        email: str,
        password_hash: str,
        phone_number: Optional[str] = None,
        address: Optional[str] = None,
    ) -> UserRecord: ...


class SignupRequest(BaseModel):
    name: str
    email: str
    password: str
    phoneNumber: Optional[str] = None
    address: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


def _encodable(value: Optional[str]) -> bool:
    try:
        (value or "").encode("utf-8")
    except UnicodeError:
        return False
    return True


def parse_user_id(subject: str) -> Optional[int]:
    """Subject claim -> positive user id, or None if it is not one."""
    s = (subject or "").strip()
    if not (s.isascii() and s.isdigit()):
        return None
    uid = int(s)
    if uid <= 0 or uid > MAX_USER_ID:
        return None
    return uid


class AuthService:
    def __init__(self, store: CredentialStore, tokens: TokenService):
        self.store = store
        self.tokens = tokens

    def signup(self, req: SignupRequest) -> UserRecord:
        if not all(_encodable(v) for v in (req.name, req.email, req.password, req.phoneNumber, req.address)):
            raise ValidationFailed("Fields must be valid UTF-8 text")
        name = (req.name or "").strip()
        email = normalize_email(req.email)
        if not name or not email:
            raise ValidationFailed("Name and email are required")
        if not _EMAIL_RE.match(email):
            raise ValidationFailed("Email address is not valid")
        if len(req.password or "") < MIN_PASSWORD_LENGTH:
            raise WeakPassword(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

        try:
            if self.store.find_by_email(email) is not None:
                logger.info("Signup rejected: email already registered")
                raise UserAlreadyExists()
            user = self.store.create(
                name=name,
                email=email,
                password_hash=hash_password(req.password),
                phone_number=(req.phoneNumber or "").strip() or None,
                address=(req.address or "").strip() or None,
            )
        except DuplicateEmailError:
            # Lost a race with a concurrent signup for the same address.
            logger.info("Signup rejected: email registered concurrently")
            raise UserAlreadyExists() from None
        except StoreError as e:
            raise InternalError(details=f"signup: {e}") from e

        logger.info("User %s signed up", user.id)
        return user

    def login(self, email: str, password: str) -> Tuple[UserRecord, str]:
        try:
            user = self.store.find_by_email(email) if _encodable(email) else None
        except StoreError as e:
            raise InternalError(details=f"login: {e}") from e

        if user is None:
            verify_dummy(password)
            logger.warning("Failed login (unknown email)")
            raise InvalidCredentials()
        if not verify_password(password, user.password_hash):
            logger.warning("Failed login for user %s", user.id)
            raise InvalidCredentials()

        token = self.tokens.issue(user.id)
        logger.info("User %s logged in", user.id)
        return user, token

    def current_user(self, token: Optional[str]) -> UserRecord:
        if not token:
            raise TokenExpired()
        result = self.tokens.validate(token)
        if isinstance(result, InvalidToken):
            logger.debug("Rejected token: %s", result.reason)
            raise TokenExpired()

        user_id = parse_user_id(result.subject)
        if user_id is None:
            raise TokenExpired()

        try:
            user = self.store.find_by_id(user_id)
        except StoreError as e:
            raise InternalError(details=f"current user: {e}") from e
        if user is None:
            raise UserNotFound()
        return user
