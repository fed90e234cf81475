# osoul/utils/auth.py
import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from osoul.config import Settings, get_settings
from osoul.constants import BCRYPT_PREFIXES, LEGACY_PASSWORD_FIELDS, Role
from osoul.database.db import atomic, get_db
from osoul.errors import Conflict, Forbidden, Unauthorized
from osoul.models.models import User
from osoul.repositories import UserRepository
from osoul.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    MeResponse,
    RegisterRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

INVALID_CREDENTIALS = "Invalid credentials"


# ===== Password hashing =====
def hash_password(plain_password: str) -> str:
    return pwd_context.hash(plain_password)


def _is_bcrypt(stored: str) -> bool:
    return stored.startswith(BCRYPT_PREFIXES)


def _bcrypt_matches(password: str, stored: str) -> bool:
    try:
        return pwd_context.verify(password, stored)
    except ValueError:
        # malformed hash counts as a mismatch
        return False


def _plain_matches(password: str, stored: str) -> bool:
    return hmac.compare_digest(stored.encode("utf-8"), password.encode("utf-8"))


def verify_credentials(user: User, password: str, settings: Settings) -> bool:
    """
    strict: bcrypt hash in `password_hash` only.
    legacy: password_hash, then legacy_password (bcrypt or plain text),
            then the fallback test password when no credential is stored.
    """
    password = password or ""

    if settings.password_policy == "strict":
        stored = user.password_hash or ""
        return _is_bcrypt(stored) and _bcrypt_matches(password, stored)

    populated = False
    for field in LEGACY_PASSWORD_FIELDS:
        stored = getattr(user, field, None)
        if not stored:
            continue
        populated = True
        if _is_bcrypt(stored):
            if _bcrypt_matches(password, stored):
                if field != "password_hash":
                    logger.warning("Legacy login: bcrypt value in %s accepted for user id=%s", field, user.id)
                return True
        elif _plain_matches(password, stored):
            logger.warning("Legacy login: plain-text %s accepted for user id=%s", field, user.id)
            return True

    if not populated and _plain_matches(password, settings.legacy_fallback_password):
        logger.warning("Legacy login: fallback password accepted for user id=%s", user.id)
        return True
    return False


# ===== JWT =====
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


def create_access_token(user: User, settings: Settings) -> str:
    exp = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role,
        "exp": exp,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    if not token:
        raise Unauthorized()
    try:
        payload = decode_token(token, settings)
        user_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        raise Unauthorized("Invalid or expired token")

    # Claims alone are never trusted: the row must still exist and be active
    user = UserRepository(db).get(user_id)
    if not user or not user.is_active:
        raise Unauthorized("User not found or inactive")
    return user


def require_roles(*roles: Role):
    allowed = {r.value if isinstance(r, Role) else r for r in roles}

    def _checker(current: User = Depends(get_current_user)) -> User:
        if current.role not in allowed:
            raise Forbidden("Insufficient permissions")
        return current

    return _checker


# ===== Endpoints =====

def _auth_body(user: User, settings: Settings) -> dict:
    return {"user": user, "token": create_access_token(user, settings)}


@router.post("/login", response_model=AuthResponse)
def login(
    body: LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = UserRepository(db).get_by_email(body.email)
    if not user or not user.is_active:
        raise Unauthorized(INVALID_CREDENTIALS)
    if not verify_credentials(user, body.password, settings):
        raise Unauthorized(INVALID_CREDENTIALS)

    logger.info("Login ok user id=%s role=%s", user.id, user.role)
    return _auth_body(user, settings)


@router.get("/me", response_model=MeResponse)
def me(current: User = Depends(get_current_user)):
    return {"user": current}


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    _admin: User = Depends(require_roles(Role.ADMIN)),
):
    users = UserRepository(db)
    if users.get_by_email(body.email):
        raise Conflict("User already exists")

    with atomic(db):
        user = users.insert(
            email=body.email,
            password_hash=hash_password(body.password),
            first_name=body.first_name.strip(),
            last_name=body.last_name.strip(),
            role=body.role,
            is_active=True,
        )
    db.refresh(user)
    logger.info("User registered id=%s role=%s", user.id, user.role)
    return _auth_body(user, settings)


@router.put("/password")
def change_password(
    body: ChangePasswordRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    current: User = Depends(get_current_user),
):
    if not verify_credentials(current, body.current_password, settings):
        raise Unauthorized("Current password is incorrect")

    with atomic(db):
        UserRepository(db).update(current, {
            "password_hash": hash_password(body.new_password),
            "legacy_password": None,
        })
    return {"message": "Password updated successfully"}
