# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from bookstore.auth.session import SessionCookies
from bookstore.auth.tokens import TokenService
from bookstore.auth.users import SQLiteUserStore
from bookstore.config import Settings, load_settings
from bookstore.errors import TRACE_HEADER, InternalError, install_error_handlers
from bookstore.services.auth_service import AuthService, CredentialStore, LoginRequest, SignupRequest

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[CredentialStore] = None,
    tokens: Optional[TokenService] = None,
) -> FastAPI:
    """Build the API. Settings are loaded from the environment when not given."""
    settings = settings or load_settings()
    if store is None:
        sqlite_store = SQLiteUserStore(settings.db_path)
        sqlite_store.ensure_schema()
        store = sqlite_store
    tokens = tokens or TokenService(settings.token)
    cookies = SessionCookies(settings.cookie_policy())
    auth = AuthService(store, tokens)

    app = FastAPI(title="Bookstore API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[TRACE_HEADER],
    )

    @app.middleware("http")
    async def _trace_middleware(request: Request, call_next):
        request.state.trace_id = uuid.uuid4().hex
        response = await call_next(request)
        response.headers.setdefault(TRACE_HEADER, request.state.trace_id)
        return response

    install_error_handlers(app)

    # ------------------ Routes ------------------

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/signup", status_code=201)
    def signup(body: SignupRequest):
        user = auth.signup(body)
        return {"message": "User created successfully", "userId": user.id}

    @app.post("/login")
    def login(body: LoginRequest, response: Response):
        user, token = auth.login(body.email, body.password)
        cookies.attach(response, token)
        return {"message": "Login successful", "user": user.public_dict()}

    @app.get("/user")
    def current_user(request: Request):
        user = auth.current_user(cookies.read(request))
        return user.public_dict()

    @app.post("/logout")
    def logout(response: Response):
        # Stateless tokens: this only tells the client to drop its cookie.
        try:
            cookies.clear(response)
        except Exception as e:
            raise InternalError(details=f"logout: {e}") from e
        logger.info("Session cookie cleared")
        return {"message": "Logout successful"}

    logger.info("Bookstore API ready (environment=%s)", settings.environment)
    return app
