from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from .auth import (
    REFRESH_COOKIE_NAME,
    LoginRequest,
    TokenSubject,
    create_access_token,
    create_refresh_token,
    decode_token,
)
from .config import settings
from .db import Base, engine, get_db, session_scope
from .deps import get_current_user, get_user_by_email
from .errors import (
    ConfigurationError,
    EventValidationError,
    GatewayError,
    ReceivablesError,
    SignatureMismatch,
    UploadValidationError,
)
from .logging_config import configure_logging
from .models import ROLE_ADMIN, User
from .routers import excel, payments, users
from .schemas import AuthResponse, TokenResponse, user_to_out
from .security import hash_password, verify_password

logger = logging.getLogger(__name__)

app = FastAPI(title="Receivables Portal API", version="0.1.0")

if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(excel.router)
app.include_router(payments.router)
app.include_router(users.router)

_ERROR_STATUS: dict[type[ReceivablesError], int] = {
    UploadValidationError: status.HTTP_400_BAD_REQUEST,
    EventValidationError: status.HTTP_400_BAD_REQUEST,
    SignatureMismatch: status.HTTP_401_UNAUTHORIZED,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@app.exception_handler(ReceivablesError)
def handle_receivables_error(request: Request, exc: ReceivablesError) -> JSONResponse:
    if isinstance(exc, GatewayError):
        return JSONResponse(
            status_code=exc.status_code or status.HTTP_502_BAD_GATEWAY,
            content={"detail": str(exc), "details": exc.details},
        )
    code = next(
        (value for kind, value in _ERROR_STATUS.items() if isinstance(exc, kind)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    if code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=code, content={"detail": str(exc)})


def user_to_subject(user: User) -> TokenSubject:
    return TokenSubject(email=user.email, name=user.name, role=user.role)


def _set_refresh_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=REFRESH_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        max_age=settings.refresh_token_ttl_days * 86400,
        domain=settings.cookie_domain,
        path="/",
    )


def _clear_refresh_cookie(response: Response) -> None:
    response.delete_cookie(key=REFRESH_COOKIE_NAME, domain=settings.cookie_domain, path="/")


def _issue_tokens(user: User, response: Response) -> TokenResponse:
    subject = user_to_subject(user)
    _set_refresh_cookie(response, create_refresh_token(subject))
    return TokenResponse(access_token=create_access_token(subject), user=user_to_out(user))


def _ensure_dev_user() -> None:
    if not settings.seed_dev_user:
        return

    with session_scope() as db:
        if get_user_by_email(db, settings.seed_dev_email):
            return
        db.add(
            User(
                email=settings.seed_dev_email.lower(),
                name=settings.seed_dev_name,
                password_hash=hash_password(settings.seed_dev_password),
                role=ROLE_ADMIN,
            )
        )
        logger.info("Seeded development administrator %s", settings.seed_dev_email)


@app.on_event("startup")
def startup() -> None:
    configure_logging()
    if settings.app_env != "production":
        Base.metadata.create_all(bind=engine)
    _ensure_dev_user()


@app.get("/healthz")
def healthz(db: Session = Depends(get_db)) -> dict[str, str]:
    db.execute(text("SELECT 1"))
    return {"status": "ok", "database": "ok"}


@app.post("/auth/login", response_model=TokenResponse)
def login(payload: LoginRequest, response: Response, db: Session = Depends(get_db)) -> TokenResponse:
    user = get_user_by_email(db, payload.email)
    if not user or not user.is_active or not verify_password(payload.password, user.password_hash):
        logger.info("Rejected login for %s", payload.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return _issue_tokens(user, response)


@app.post("/auth/refresh", response_model=TokenResponse)
def refresh(request: Request, response: Response, db: Session = Depends(get_db)) -> TokenResponse:
    token = request.cookies.get(REFRESH_COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing refresh token")

    subject = decode_token(token, expected_type="refresh")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    user = get_user_by_email(db, subject.email)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return _issue_tokens(user, response)


@app.post("/auth/logout")
def logout(response: Response) -> dict[str, bool]:
    _clear_refresh_cookie(response)
    return {"ok": True}


@app.get("/me", response_model=AuthResponse)
def me(user: User = Depends(get_current_user)) -> AuthResponse:
    return AuthResponse(authenticated=True, user=user_to_out(user))
