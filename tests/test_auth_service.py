from datetime import datetime, timedelta, timezone

import pytest

from bookstore.auth.passwords import verify_password
from bookstore.auth.tokens import TokenClaims, TokenService
from bookstore.auth.users import DuplicateEmailError, StoreError
from bookstore.errors import (
    ErrorCode,
    InternalError,
    InvalidCredentials,
    TokenExpired,
    UserAlreadyExists,
    UserNotFound,
    ValidationFailed,
    WeakPassword,
)
from bookstore.services.auth_service import AuthService, SignupRequest, parse_user_id


class FailingStore:
    """Store whose every call fails like a broken database."""

    def find_by_email(self, email):
        raise StoreError("database is locked")

    def find_by_id(self, user_id):
        raise StoreError("database is locked")

    def create(self, **kwargs):
        raise StoreError("database is locked")


class RacingStore:
    """Lookup says the email is free, insert says it was just taken."""

    def find_by_email(self, email):
        return None

    def find_by_id(self, user_id):
        return None

    def create(self, **kwargs):
        raise DuplicateEmailError(kwargs["email"])


@pytest.fixture()
def service(store, tokens) -> AuthService:
    return AuthService(store, tokens)


def _signup(service, name="John", email="john@x.com", password="password123"):
    return service.signup(SignupRequest(name=name, email=email, password=password))


def test_signup_hashes_password(service, store):
    user = _signup(service)
    saved = store.find_by_id(user.id)
    assert saved.password_hash != "password123"
    assert verify_password("password123", saved.password_hash)


def test_signup_normalises_email_and_name(service):
    user = _signup(service, name="  John  ", email="  John@X.com ")
    assert user.name == "John"
    assert user.email == "john@x.com"


def test_signup_duplicate_is_case_insensitive(service):
    _signup(service, email="a@x.com")
    with pytest.raises(UserAlreadyExists) as exc:
        _signup(service, email="A@X.com")
    assert exc.value.status_code == 409
    assert exc.value.code is ErrorCode.USER_ALREADY_EXISTS


@pytest.mark.parametrize("name,email", [("", "john@x.com"), ("  ", "john@x.com"), ("John", ""), ("John", "not-an-email")])
def test_signup_rejects_bad_shape(service, name, email):
    with pytest.raises(ValidationFailed) as exc:
        _signup(service, name=name, email=email)
    assert exc.value.status_code == 400


def test_signup_rejects_short_password(service):
    with pytest.raises(WeakPassword) as exc:
        _signup(service, password="short")
    assert exc.value.status_code == 400
    assert "at least 8 characters" in exc.value.message


def test_signup_accepts_password_of_exactly_minimum_length(service):
    assert _signup(service, password="12345678").id > 0


def test_signup_race_maps_to_conflict(tokens):
    with pytest.raises(UserAlreadyExists):
        _signup(AuthService(RacingStore(), tokens))


def test_signup_store_failure_is_internal_error(tokens):
    with pytest.raises(InternalError) as exc:
        _signup(AuthService(FailingStore(), tokens))
    assert exc.value.status_code == 500
    assert "locked" not in exc.value.message


def test_login_returns_user_and_valid_token(service, tokens):
    created = _signup(service)
    user, token = service.login("JOHN@x.com", "password123")
    assert user.id == created.id
    claims = tokens.validate(token)
    assert isinstance(claims, TokenClaims)
    assert claims.subject == str(created.id)


def test_login_failures_are_indistinguishable(service):
    _signup(service)
    with pytest.raises(InvalidCredentials) as wrong_pw:
        service.login("john@x.com", "wrong-password")
    with pytest.raises(InvalidCredentials) as unknown:
        service.login("ghost@x.com", "password123")
    assert wrong_pw.value.status_code == unknown.value.status_code == 401
    assert wrong_pw.value.code == unknown.value.code == ErrorCode.INVALID_CREDENTIALS
    assert wrong_pw.value.message == unknown.value.message


def test_current_user_resolves_token(service):
    created = _signup(service)
    _, token = service.login("john@x.com", "password123")
    assert service.current_user(token).id == created.id


@pytest.mark.parametrize("token", [None, "", "garbage", "invalid.jwt.token"])
def test_current_user_rejects_missing_or_bad_token(service, token):
    with pytest.raises(TokenExpired):
        service.current_user(token)


def test_current_user_rejects_expired_token(service, token_config):
    created = _signup(service)
    old = TokenService(token_config, clock=lambda: datetime.now(timezone.utc) - timedelta(hours=2))
    with pytest.raises(TokenExpired):
        service.current_user(old.issue(created.id))


@pytest.mark.parametrize("subject", ["0", "-1", "abc", "1.5", str(2**64)])
def test_current_user_rejects_unusable_subject(service, tokens, subject):
    with pytest.raises(TokenExpired):
        service.current_user(tokens.issue(subject))


def test_current_user_for_deleted_user_is_not_found(service, tokens):
    with pytest.raises(UserNotFound) as exc:
        service.current_user(tokens.issue(999))
    assert exc.value.status_code == 404


@pytest.mark.parametrize("subject,expected", [("1", 1), (" 42 ", 42), ("0", None), ("", None), ("x1", None), ("٣", None)])
def test_parse_user_id(subject, expected):
    assert parse_user_id(subject) == expected
