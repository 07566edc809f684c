from __future__ import annotations

import logging
import os
import time
from typing import Optional

import jwt
from fastapi import APIRouter, Depends, Header, status
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db import get_db
from .. import models, schemas
from ..errors import Conflict, Unauthenticated
from ..rate_limit import rate_limit

router = APIRouter()
logger = logging.getLogger("rento.auth")

JWT_SECRET: str = os.getenv("RENTO_JWT_SECRET", "dev-secret-change-me")
JWT_ALG: str = "HS256"
JWT_TTL_SECONDS: int = 60 * 60 * 24 * 7  # 7 days
# bcrypt_sha256 sidesteps bcrypt's 72-byte password limit
pwd_context = CryptContext(schemes=["bcrypt_sha256"], deprecated="auto")


# ----------------
# Helpers
# ----------------
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(*, user: models.User) -> str:
    now = int(time.time())
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "name": user.name,
        "iat": now,
        "exp": now + JWT_TTL_SECONDS,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except jwt.ExpiredSignatureError as exc:
        raise Unauthenticated("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise Unauthenticated("Invalid or expired token") from exc


# ----------------
# Dependencies
# ----------------
def bearer_token_from_auth_header(authorization: Optional[str]) -> str:
    if not authorization:
        raise Unauthenticated("Access token required")
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise Unauthenticated("Invalid Authorization header")
    return parts[1].strip()


def _user_from_token(db: Session, token: str) -> models.User:
    payload = decode_token(token)
    user_id = payload.get("sub")
    if not user_id or not str(user_id).isdigit():
        raise Unauthenticated("Invalid token payload")
    user = db.get(models.User, int(user_id))
    if not user:
        raise Unauthenticated("User not found")
    return user


def get_current_user(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> models.User:
    token = bearer_token_from_auth_header(authorization)
    return _user_from_token(db, token)


def get_current_user_optional(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> Optional[models.User]:
    """
    Returns the current user if a valid Bearer token is present, otherwise None.
    Public endpoints use it to add per-user fields such as `favorite`.
    """
    if not authorization:
        return None
    try:
        return _user_from_token(db, bearer_token_from_auth_header(authorization))
    except Unauthenticated:
        return None


def _auth_payload(user: models.User) -> schemas.AuthData:
    return schemas.AuthData(user=schemas.UserRead.model_validate(user), token=create_access_token(user=user))


# ----------------
# Routes
# ----------------
@router.post(
    "/register",
    response_model=schemas.Envelope[schemas.AuthData],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("register"))],
)
def register(payload: schemas.UserCreate, db: Session = Depends(get_db)) -> schemas.Envelope[schemas.AuthData]:
    existing = db.query(models.User).filter(models.User.email == payload.email).first()
    if existing:
        raise Conflict("Email already registered")

    user = models.User(
        name=payload.name,
        email=payload.email,
        phone=payload.phone or None,
        password_hash=hash_password(payload.password),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        # Concurrent registration with the same email
        db.rollback()
        raise Conflict("Email already registered") from exc
    db.refresh(user)

    logger.info("users.registered", extra={"user_id": user.id})
    return schemas.Envelope[schemas.AuthData](message="Registration successful", data=_auth_payload(user))


@router.post(
    "/login",
    response_model=schemas.Envelope[schemas.AuthData],
    dependencies=[Depends(rate_limit("login"))],
)
def login(payload: schemas.LoginRequest, db: Session = Depends(get_db)) -> schemas.Envelope[schemas.AuthData]:
    user = db.query(models.User).filter(models.User.email == payload.email).first()
    if not user or not verify_password(payload.password, user.password_hash):
        raise Unauthenticated("Invalid email or password")

    return schemas.Envelope[schemas.AuthData](message="Login successful", data=_auth_payload(user))
