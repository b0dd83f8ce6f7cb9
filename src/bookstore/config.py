# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Runtime configuration.

Settings are read once at startup from an optional YAML file and the process
environment (environment wins). Anything the auth core cannot run without is
checked here so a misconfigured server fails before it accepts requests.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from bookstore.auth.session import CookiePolicy
from bookstore.auth.tokens import ConfigError, TokenConfig

ENVIRONMENTS = ("production", "development", "test")
INSECURE_ENVIRONMENTS = {"development", "test"}

DEFAULT_LIFETIME_SECONDS = 3600  # 1 hour, shared by token and cookie
DEFAULT_COOKIE_NAME = "jwtToken"
DEFAULT_DB_PATH = "data/bookstore.db"
DEFAULT_CORS_ORIGINS = ("http://localhost:4000",)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _pick(env_value: Optional[str], yaml_value: Any, default: Any) -> Any:
    """Environment first, then YAML, then the default. Only unset values fall through."""
    if env_value is not None and env_value != "":
        return env_value
    if yaml_value is not None:
        return yaml_value
    return default


def _as_int(raw: Any, name: str) -> int:
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    token: TokenConfig
    cookie_name: str = DEFAULT_COOKIE_NAME
    cookie_max_age: int = DEFAULT_LIFETIME_SECONDS
    environment: str = "production"
    db_path: str = DEFAULT_DB_PATH
    cors_origins: Tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment not in INSECURE_ENVIRONMENTS

    def cookie_policy(self) -> CookiePolicy:
        return CookiePolicy(
            name=self.cookie_name,
            max_age=self.cookie_max_age,
            secure=self.is_production,
        )


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")
    return raw


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = raw.get(name) or {}
    return value if isinstance(value, dict) else {}


def load_settings(
    env: Optional[Mapping[str, str]] = None,
    path: Optional[Path] = None,
) -> Settings:
    """Build :class:`Settings` from YAML (optional) plus environment overrides.

    Raises ConfigError when the JWT key, issuer or audience is missing, when a
    numeric value does not parse, or when the cookie would outlive the token.
    """
    env = os.environ if env is None else env

    if path is None and env.get("BOOKSTORE_CONFIG"):
        path = Path(env["BOOKSTORE_CONFIG"])
    raw = _read_yaml(Path(path)) if path is not None else {}

    jwt_raw = _section(raw, "jwt")
    cookie_raw = _section(raw, "cookie")
    db_raw = _section(raw, "database")

    key = _pick(env.get("BOOKSTORE_JWT_KEY"), jwt_raw.get("key"), "")
    issuer = _pick(env.get("BOOKSTORE_JWT_ISSUER"), jwt_raw.get("issuer"), "")
    audience = _pick(env.get("BOOKSTORE_JWT_AUDIENCE"), jwt_raw.get("audience"), "")
    lifetime = _as_int(
        _pick(env.get("BOOKSTORE_TOKEN_LIFETIME"), jwt_raw.get("lifetime_seconds"), DEFAULT_LIFETIME_SECONDS),
        "token lifetime",
    )
    token = TokenConfig(
        key=str(key),
        issuer=str(issuer),
        audience=str(audience),
        lifetime_seconds=lifetime,
    )

    # The cookie follows the token lifetime unless told otherwise.
    max_age = _as_int(
        _pick(env.get("BOOKSTORE_COOKIE_MAX_AGE"), cookie_raw.get("max_age"), lifetime),
        "cookie max age",
    )
    if max_age <= 0:
        raise ConfigError("cookie max age must be positive")
    if max_age > lifetime:
        raise ConfigError(
            f"cookie max age ({max_age}s) must not exceed the token lifetime ({lifetime}s)"
        )

    environment = str(_pick(env.get("BOOKSTORE_ENV"), raw.get("environment"), "production")).strip().lower()
    if environment not in ENVIRONMENTS:
        raise ConfigError(f"Unknown environment {environment!r}; expected one of {', '.join(ENVIRONMENTS)}")

    origins_raw: Any = _pick(env.get("BOOKSTORE_CORS_ORIGINS"), raw.get("cors_origins"), DEFAULT_CORS_ORIGINS)
    if isinstance(origins_raw, str):
        origins_raw = origins_raw.split(",")
    origins = tuple(str(o).strip() for o in origins_raw if str(o).strip())

    return Settings(
        token=token,
        cookie_name=str(_pick(env.get("BOOKSTORE_COOKIE_NAME"), cookie_raw.get("name"), DEFAULT_COOKIE_NAME)),
        cookie_max_age=max_age,
        environment=environment,
        db_path=str(_pick(env.get("BOOKSTORE_DB_PATH"), db_raw.get("path"), DEFAULT_DB_PATH)),
        cors_origins=origins,
        log_level=str(_pick(env.get("BOOKSTORE_LOG_LEVEL"), raw.get("log_level"), "INFO")).upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
