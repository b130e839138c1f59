import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db
from .models import User
from .security_utils import verify_jwt_token

logger = logging.getLogger(__name__)

# auto_error=False so a missing header yields our own 401 instead of FastAPI's 403
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the user from the Bearer JWT"""
    if not credentials or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Authentication required")

    payload = verify_jwt_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        logger.warning(f"⚠️ Token carried a non-numeric subject: {payload.get('sub')!r}")
        raise HTTPException(status_code=401, detail="Invalid or expired token") from None

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        logger.warning(f"⚠️ Token for deleted user id {user_id}")
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    logger.debug(f"✅ User authenticated: {user.username}")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Only admins may call the decorated route"""
    if user.role != "admin":
        logger.warning(f"⚠️ User {user.username} attempted an admin-only route")
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
