# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Request, Response


@dataclass(frozen=True)
class CookiePolicy:
    name: str = "jwtToken"
    max_age: int = 3600
    secure: bool = True
    samesite: str = "strict"
    path: str = "/"
    httponly: bool = True


class SessionCookies:
    """Moves the session token in and out of HTTP cookies.

    ``secure`` comes from server configuration only. Deletion repeats the
    attributes used when setting, since some browsers only drop a cookie whose
    attributes match.
    """

    def __init__(self, policy: CookiePolicy):
        self.policy = policy

    def attach(self, response: Response, token: str) -> None:
        p = self.policy
        response.set_cookie(
            p.name,
            token,
            max_age=p.max_age,
            expires=p.max_age,
            path=p.path,
            secure=p.secure,
            httponly=p.httponly,
            samesite=p.samesite,
        )

    def read(self, request: Request) -> Optional[str]:
        value = request.cookies.get(self.policy.name, "")
        value = (value or "").strip()
        return value or None

    def clear(self, response: Response) -> None:
        p = self.policy
        response.delete_cookie(
            p.name,
            path=p.path,
            secure=p.secure,
            httponly=p.httponly,
            samesite=p.samesite,
        )
