"""Authentication and authorization."""
import time
from typing import Optional
from datetime import timedelta
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from .config import settings
from .database import get_db
from .models import User

# Bearer token scheme
security = HTTPBearer()


def _credentials_exception(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token (used by the identity service and tests)."""
    to_encode = data.copy()
    now = int(time.time())
    exp = now + int(expires_delta.total_seconds()) if expires_delta else now + 3600
    to_encode.update({"exp": exp, "iat": now, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError:
        raise _credentials_exception()

    now = int(time.time())
    exp = payload.get("exp")
    if exp is None:
        raise _credentials_exception()
    try:
        exp_int = int(exp)
    except (TypeError, ValueError):
        raise _credentials_exception()
    if now > exp_int + int(settings.JWT_LEEWAY_SECONDS):
        raise _credentials_exception("Token expired")
    return payload


def _parse_token_subject(payload: dict) -> int:
    """Parse and validate JWT subject as integer user id."""
    sub = payload.get("sub")
    if sub is None:
        raise _credentials_exception()
    try:
        return int(str(sub))
    except ValueError:
        raise _credentials_exception()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Get current authenticated user."""
    payload = decode_token(credentials.credentials)

    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type"
        )

    user_id = _parse_token_subject(payload)
    user = db.query(User).filter(User.id == user_id, User.is_active.is_(True)).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive"
        )
    return user
