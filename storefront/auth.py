from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from storefront.config import Settings, get_settings
from storefront.database import get_db
from storefront.models import User, UserRole


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: str
    role: UserRole


def _unauthorized(detail: str = "Invalid or missing token") -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> CurrentUser:
    """Resolve the caller from a Bearer JWT; the token must name a live user."""
    settings.require("jwt_secret")

    if not authorization:
        raise _unauthorized()
    try:
        scheme, token = authorization.split()
    except ValueError:
        raise _unauthorized()
    if scheme.lower() != "bearer":
        raise _unauthorized()

    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=["HS256"])
    except JWTError:
        raise _unauthorized()

    user_id = claims.get("sub")
    if not user_id:
        raise _unauthorized()

    user = db.query(User).filter(User.id == user_id, User.is_deleted.is_(False)).first()
    if user is None:
        raise _unauthorized("User not found or account deleted")

    return CurrentUser(id=user.id, email=user.email, role=user.role)
