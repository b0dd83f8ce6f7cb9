# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Signed, time-limited bearer tokens (HS256 JWT).

Tokens are stateless: nothing is stored server side, so a token stays valid
until it expires even after the client logs out.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Union

from jose import jwt
from jose.exceptions import JWTError

ALGORITHM = "HS256"

_DECODE_OPTIONS = {
    "leeway": 0,
    "require_sub": True,
    "require_jti": True,
    "require_iat": True,
    "require_nbf": True,
    "require_exp": True,
    "require_iss": True,
    "require_aud": True,
}


class ConfigError(RuntimeError):
    """Fatal startup configuration problem."""


@dataclass(frozen=True)
class TokenConfig:
    key: str
    issuer: str
    audience: str
    lifetime_seconds: int = 3600

    def __post_init__(self) -> None:
        missing = [n for n in ("key", "issuer", "audience") if not str(getattr(self, n) or "").strip()]
        if missing:
            raise ConfigError(f"Missing JWT setting(s): {', '.join(missing)}")
        if self.lifetime_seconds <= 0:
            raise ConfigError("JWT lifetime must be positive")


@dataclass(frozen=True)
class TokenClaims:
    subject: str
    token_id: str
    issued_at: datetime
    not_before: datetime
    expires_at: datetime
    issuer: str
    audience: str


@dataclass(frozen=True)
class InvalidToken:
    reason: str


TokenResult = Union[TokenClaims, InvalidToken]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ts(dt: datetime) -> int:
    return int(dt.timestamp())


def _from_ts(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class TokenService:
    def __init__(self, config: TokenConfig, clock: Optional[Callable[[], datetime]] = None):
        self._config = config
        self._clock = clock or _utcnow

    @property
    def lifetime(self) -> timedelta:
        return timedelta(seconds=self._config.lifetime_seconds)

    def issue(self, user_id: Any) -> str:
        now = self._clock()
        claims: Dict[str, Any] = {
            "sub": str(user_id),
            "jti": uuid.uuid4().hex,
            "iat": _ts(now),
            "nbf": _ts(now),
            "exp": _ts(now + self.lifetime),
            "iss": self._config.issuer,
            "aud": self._config.audience,
        }
        return jwt.encode(claims, self._config.key, algorithm=ALGORITHM)

    def validate(self, token: Any) -> TokenResult:
        """Check signature, issuer, audience and validity window.

        Never raises: every failure comes back as :class:`InvalidToken`.
        """
        if not isinstance(token, str) or not token.strip():
            return InvalidToken("empty token")
        try:
            payload = jwt.decode(
                token,
                self._config.key,
                algorithms=[ALGORITHM],
                audience=self._config.audience,
                issuer=self._config.issuer,
                options=_DECODE_OPTIONS,
            )
            return TokenClaims(
                subject=str(payload["sub"]),
                token_id=str(payload["jti"]),
                issued_at=_from_ts(payload["iat"]),
                not_before=_from_ts(payload["nbf"]),
                expires_at=_from_ts(payload["exp"]),
                issuer=str(payload["iss"]),
                audience=str(payload["aud"]),
            )
        except JWTError as e:
            return InvalidToken(str(e) or e.__class__.__name__)
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            return InvalidToken(f"malformed claims: {e}")
