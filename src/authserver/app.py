# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import time
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, Form, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from fastapi.concurrency import run_in_threadpool

from authserver.auth.gate import AuthGate, payload_for
from authserver.auth.passwords import CredentialVerifier
from authserver.auth.redirect import RedirectContinuation
from authserver.auth.session import SessionCookieManager
from authserver.auth.tokens import Clock, TokenCodec
from authserver.auth.users import UserRecord, UserStore, YamlUserStore, validate_new_user
from authserver.config import Settings, load_settings
from authserver.errors import ConstraintError, HashingError, StoreError, VerificationFailure
from authserver.logging import configure_logging, get_logger
from authserver.permissions import require_user

logger = get_logger(__name__)

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))


def _render(request: Request, template_name: str, ctx: Optional[dict] = None, status_code: int = 200):
    base_ctx = {"current_user": getattr(request.state, "user", None)}
    merged = {**base_ctx, **(ctx or {})}
    return templates.TemplateResponse(request, template_name, merged, status_code=status_code)


def _home() -> RedirectResponse:
    return RedirectResponse(url="/", status_code=303)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[UserStore] = None,
    *,
    clock: Optional[Clock] = None,
    verifier: Optional[CredentialVerifier] = None,
) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level, settings.log_json)

    store = store if store is not None else YamlUserStore(settings.users_path)
    verifier = verifier or CredentialVerifier()
    codec = TokenCodec(settings, clock=clock)
    sessions = SessionCookieManager.from_settings(codec, settings)
    redirects = RedirectContinuation(allowed_host=settings.domain, secure=settings.cookie_secure)
    gate = AuthGate(sessions, store, verifier)

    app = FastAPI()
    app.state.settings = settings
    app.state.store = store
    app.state.verifier = verifier
    app.state.sessions = sessions
    app.state.redirects = redirects
    app.state.gate = gate

    @app.middleware("http")
    async def _request_middleware(request: Request, call_next):
        start = time.perf_counter()
        client = request.client.host if request.client else ""
        logger.info("request_started", method=request.method, path=request.url.path, client=client)
        request.state.user = await run_in_threadpool(gate.current_user, request.cookies)
        response = await call_next(request)
        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response

    @app.exception_handler(StoreError)
    async def _store_error(request: Request, exc: StoreError):
        logger.error("user_store_error", path=request.url.path, error=str(exc))
        return PlainTextResponse("Service unavailable", status_code=503)

    @app.exception_handler(HashingError)
    async def _hashing_error(request: Request, exc: HashingError):
        logger.error("password_hashing_failed", path=request.url.path, error=str(exc))
        return PlainTextResponse("Internal server error", status_code=500)

    # ------------------ Routes ------------------

    @app.get("/", response_class=HTMLResponse)
    def index(request: Request):
        return _render(request, "index.html")

    @app.get("/dashboard", response_class=HTMLResponse)
    def dashboard(request: Request, user: UserRecord = Depends(require_user)):
        return _render(request, "dashboard.html", {"user": user})

    @app.get("/sessions/new", response_class=HTMLResponse)
    def session_new(request: Request):
        if gate.is_authenticated(request.cookies):
            return redirects.consume_and_redirect(request.query_params, request.cookies)
        resp = _render(request, "session_new.html", {"email": "", "error": ""})
        redirects.capture(request.query_params, resp)
        return resp

    @app.post("/sessions")
    def session_create(
        request: Request,
        email: str = Form(""),
        password: str = Form(""),
    ):
        if gate.is_authenticated(request.cookies):
            return redirects.consume_and_redirect(request.query_params, request.cookies)
        try:
            user = gate.authenticate(email, password)
        except VerificationFailure:
            logger.info("login_failed")
            return _render(
                request,
                "session_new.html",
                {"email": email, "error": "Invalid email or password"},
                status_code=401,
            )
        resp = redirects.consume_and_redirect(request.query_params, request.cookies)
        sessions.attach(resp, payload_for(user))
        logger.info("login_succeeded", user_id=user.id)
        return resp

    @app.api_route("/sessions/destroy", methods=["GET", "POST"])
    def session_destroy(request: Request):
        resp = _home()
        sessions.clear(resp)
        user = getattr(request.state, "user", None)
        if user is not None:
            logger.info("logout", user_id=user.id)
        return resp

    @app.get("/users/new", response_class=HTMLResponse)
    def user_new(request: Request):
        if gate.is_authenticated(request.cookies):
            return _home()
        resp = _render(request, "users_new.html", {"form": {}, "errors": {}})
        redirects.capture(request.query_params, resp)
        return resp

    @app.post("/users")
    def user_create(
        request: Request,
        name: str = Form(""),
        email: str = Form(""),
        password: str = Form(""),
        password_confirmation: str = Form(""),
    ):
        if gate.is_authenticated(request.cookies):
            return _home()
        form = {"name": name, "email": email}
        errors = validate_new_user(name, email, password, password_confirmation, store)
        if not errors:
            try:
                user = store.insert(name, email, verifier.hash(password))
            except ConstraintError as exc:
                errors[exc.field] = exc.message
        if errors:
            logger.info("signup_rejected", fields=sorted(errors))
            return _render(request, "users_new.html", {"form": form, "errors": errors}, status_code=422)

        resp = redirects.consume_and_redirect(request.query_params, request.cookies)
        sessions.attach(resp, payload_for(user))
        logger.info("signup_succeeded", user_id=user.id)
        return resp

    return app
