from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt
from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import InvalidTokenError
from pydantic import BaseModel, Field

from .config import settings
from .database import get_store
from .errors import AppError, Conflict, Unauthenticated, http_error
from .store import EntityStore

http_bearer = HTTPBearer(auto_error=False)
router = APIRouter(prefix="/auth", tags=["auth"])


class AuthUserResponse(BaseModel):
    id: int
    username: str
    full_name: str
    email: str
    profile_image: str | None = None
    created_at: datetime


class AuthTokensResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: AuthUserResponse


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=8, max_length=128)
    full_name: str = Field(min_length=1, max_length=120)
    email: str = Field(min_length=3, max_length=255)
    profile_image: str | None = Field(default=None, max_length=500)


class LoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1, max_length=128)


BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    # bcrypt ignores (newer releases reject) input past 72 bytes
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


def _issue_access_token(user_id: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": "access",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.access_token_ttl_minutes)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except InvalidTokenError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type")

    return payload


def _normalize_email(email: str) -> str:
    normalized = email.strip().lower()
    if not normalized or "@" not in normalized:
        raise HTTPException(status_code=400, detail="Invalid email")
    return normalized


def _public_user(row: dict[str, Any]) -> AuthUserResponse:
    return AuthUserResponse(
        id=row["id"],
        username=row["username"],
        full_name=row["full_name"],
        email=row["email"],
        profile_image=row.get("profile_image"),
        created_at=row["created_at"],
    )


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer),
) -> int:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Missing bearer token")

    payload = _decode_token(credentials.credentials)

    subject = payload.get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError) as exc:
        raise HTTPException(
            status_code=401, detail="Invalid token subject") from exc


async def register_user(store: EntityStore, data: dict[str, Any]) -> dict[str, Any]:
    """Create one user with a bcrypt password hash. Username/email must be unique."""
    username = data["username"].strip()
    email = data["email"].strip().lower()
    # bcrypt is CPU-bound; keep it off the event loop
    password_hash = await run_in_threadpool(hash_password, data["password"])

    async with store.atomic() as unit:
        if unit.find_one(store.users, username=username) is not None:
            raise Conflict("Username already exists")
        if unit.find_one(store.users, email=email) is not None:
            raise Conflict("Email already in use")

        return unit.create(
            store.users,
            {
                "username": username,
                "password_hash": password_hash,
                "full_name": data["full_name"].strip(),
                "email": email,
                "profile_image": data.get("profile_image"),
            },
        )


@router.post("/register", response_model=AuthTokensResponse, status_code=201)
async def register(
    payload: RegisterRequest,
    store: EntityStore = Depends(get_store),
) -> AuthTokensResponse:
    email = _normalize_email(payload.email)
    if not payload.full_name.strip():
        raise HTTPException(status_code=400, detail="full_name is required")

    try:
        user = await register_user(store, {**payload.model_dump(), "email": email})
    except AppError as exc:
        raise http_error(exc) from exc

    return AuthTokensResponse(
        access_token=_issue_access_token(user["id"]),
        user=_public_user(user),
    )


@router.post("/login", response_model=AuthTokensResponse)
async def login(
    payload: LoginRequest,
    store: EntityStore = Depends(get_store),
) -> AuthTokensResponse:
    user = await store.users.find_one(username=payload.username.strip())

    if user is None or not await run_in_threadpool(verify_password, payload.password, user["password_hash"]):
        raise http_error(Unauthenticated("Invalid credentials"))

    return AuthTokensResponse(
        access_token=_issue_access_token(user["id"]),
        user=_public_user(user),
    )


@router.get("/me", response_model=AuthUserResponse)
async def me(
    user_id: int = Depends(get_current_user_id),
    store: EntityStore = Depends(get_store),
) -> AuthUserResponse:
    try:
        user = await store.users.get(user_id)
    except AppError as exc:
        raise http_error(exc) from exc

    return _public_user(user)
