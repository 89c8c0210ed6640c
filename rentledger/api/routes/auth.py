"""Authentication endpoints for issuing JWTs."""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from threading import Lock
from typing import Any, Literal
from uuid import uuid4

import bcrypt
from cryptography.hazmat.primitives import serialization
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt  # type: ignore[import-untyped]
from pydantic import BaseModel, ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from rentledger.api.deps import get_db_session
from rentledger.core.config import Settings, get_settings
from rentledger.models import User, UserStatus

RoleName = Literal["TENANT", "LANDLORD", "ADMIN"]

router = APIRouter()
security_scheme = HTTPBearer(auto_error=True)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenPayload(BaseModel):
    sub: str
    uid: str
    role: RoleName
    type: Literal["access", "refresh"]
    iat: datetime
    exp: datetime
    jti: str


@dataclass(frozen=True)
class AuthenticatedUser:
    email: str
    user_id: str
    role: RoleName
    token_id: str


class RefreshTokenStore:
    """In-memory store tracking active and blacklisted refresh tokens."""

    def __init__(self) -> None:
        self._active: dict[str, str] = {}
        self._blacklist: set[str] = set()
        self._lock = Lock()

    def mark_active(self, subject: str, token_id: str) -> None:
        with self._lock:
            self._active[subject] = token_id

    def is_active(self, subject: str, token_id: str) -> bool:
        with self._lock:
            if token_id in self._blacklist:
                return False
            return self._active.get(subject) == token_id

    def blacklist(self, token_id: str) -> None:
        with self._lock:
            self._blacklist.add(token_id)

    def reset(self) -> None:
        with self._lock:
            self._active.clear()
            self._blacklist.clear()


refresh_token_store = RefreshTokenStore()


@lru_cache(maxsize=4)
def _signing_key(private_pem: str) -> Any:
    return serialization.load_pem_private_key(private_pem.encode("utf-8"), password=None)


def public_key_pem(settings: Settings) -> str:
    """PEM-encoded public half of the configured signing key."""
    try:
        private_key = _signing_key(settings.jwt_private_key)
    except ValueError as exc:  # pragma: no cover - configuration issue
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Invalid JWT signing key",
        ) from exc
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")


def _create_token(
    *,
    user: AuthenticatedUser,
    settings: Settings,
    expires_delta: timedelta,
    token_type: Literal["access", "refresh"],
) -> tuple[str, str]:
    now = datetime.now(UTC)
    token_id = uuid4().hex
    payload = {
        "sub": user.email,
        "uid": user.user_id,
        "role": user.role,
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
        "jti": token_id,
    }
    encoded = jwt.encode(payload, _signing_key(settings.jwt_private_key), algorithm=settings.jwt_algorithm)
    return encoded, token_id


def _issue_tokens(*, user: AuthenticatedUser, settings: Settings) -> TokenResponse:
    access_token, _ = _create_token(
        user=user,
        settings=settings,
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
        token_type="access",
    )
    refresh_token, refresh_id = _create_token(
        user=user,
        settings=settings,
        expires_delta=timedelta(days=settings.refresh_token_expire_days),
        token_type="refresh",
    )
    refresh_token_store.mark_active(user.email, refresh_id)
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.access_token_expire_minutes * 60,
    )


def _decode_token(*, token: str, settings: Settings) -> TokenPayload:
    try:
        payload = jwt.decode(token, public_key_pem(settings), algorithms=[settings.jwt_algorithm])
        return TokenPayload(**payload)
    except (JWTError, ValidationError) as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
) -> AuthenticatedUser:
    payload = _decode_token(token=credentials.credentials, settings=get_settings())
    if payload.type != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")
    request.state.actor_email = payload.sub
    request.state.actor_role = payload.role
    return AuthenticatedUser(email=payload.sub, user_id=payload.uid, role=payload.role, token_id=payload.jti)


def require_role(*roles: RoleName) -> Callable[..., AuthenticatedUser]:
    allowed_roles: set[str] = set(roles)

    def dependency(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
        if user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return dependency


def _verify_password(raw_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(raw_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:  # pragma: no cover - invalid hash format
        return False


@router.post("/login", response_model=TokenResponse, summary="Issue JWT access tokens")
def login(request: LoginRequest, session: Session = Depends(get_db_session)) -> TokenResponse:
    if "@" not in request.email:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Invalid email address",
        )
    user = session.scalars(select(User).where(User.email == request.email.lower())).first()
    if user is None or not _verify_password(request.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if user.status is UserStatus.DISABLED:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")

    identity = AuthenticatedUser(email=user.email, user_id=user.id, role=user.role.value, token_id="")
    return _issue_tokens(user=identity, settings=get_settings())


@router.post("/refresh", response_model=TokenResponse, summary="Rotate JWT refresh tokens")
def refresh_token(request: RefreshRequest) -> TokenResponse:
    settings = get_settings()
    payload = _decode_token(token=request.refresh_token, settings=settings)
    if payload.type != "refresh":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid token type")
    if not refresh_token_store.is_active(payload.sub, payload.jti):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token revoked",
        )

    refresh_token_store.blacklist(payload.jti)
    identity = AuthenticatedUser(email=payload.sub, user_id=payload.uid, role=payload.role, token_id=payload.jti)
    return _issue_tokens(user=identity, settings=settings)


__all__ = [
    "AuthenticatedUser",
    "RoleName",
    "TokenResponse",
    "get_current_user",
    "public_key_pem",
    "refresh_token_store",
    "require_role",
    "router",
]
