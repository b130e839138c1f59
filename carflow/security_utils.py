"""
Security Utilities
Password hashing, JWT sessions, signed timed tokens and token encryption
"""

import base64
import hashlib
import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from cryptography.fernet import Fernet, InvalidToken

# Token generation and validation
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from jose import JWTError
from jose import jwt as jose_jwt

# Password hashing
from passlib.context import CryptContext

from .config import ACCESS_TOKEN_EXPIRE_MINUTES, SECRET_KEY

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# ============================================================================
# PASSWORD SECURITY
# ============================================================================


def hash_password_bcrypt(password: str) -> str:
    """Hash password using bcrypt"""
    return pwd_context.hash(password)


def verify_password_bcrypt(plain_password: str, hashed_password: str) -> bool:
    """Verify password against bcrypt hash"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception as e:
        logger.error(f"Password verification error: {e}")
        return False


# ============================================================================
# TOKEN GENERATION & VALIDATION
# ============================================================================


def generate_timed_token(data: dict[str, Any], salt: str = "security-token") -> str:
    """
    Generate a time-limited token using itsdangerous.
    Age is enforced when the token is verified.
    """
    serializer = URLSafeTimedSerializer(SECRET_KEY)
    return serializer.dumps(data, salt=salt)


def verify_timed_token(
    token: str, max_age: int = 3600, salt: str = "security-token"
) -> Optional[dict[str, Any]]:
    """
    Verify and decode a timed token

    Args:
        token: The token to verify
        max_age: Maximum age in seconds (default 1 hour)
        salt: Must match the salt used when generating

    Returns:
        Decoded data if valid, None if invalid or expired
    """
    serializer = URLSafeTimedSerializer(SECRET_KEY)
    try:
        return serializer.loads(token, salt=salt, max_age=max_age)
    except SignatureExpired:
        logger.warning("Token expired")
        return None
    except BadSignature:
        logger.warning("Invalid token signature")
        return None


def create_jwt_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT token

    Args:
        data: Claims to encode in the token
        expires_delta: Token lifetime (default ACCESS_TOKEN_EXPIRE_MINUTES)
    """
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": datetime.utcnow() + expires_delta})
    return jose_jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_jwt_token(token: str) -> Optional[dict[str, Any]]:
    """
    Verify and decode a JWT token

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        return jose_jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None


def create_user_token(user) -> str:
    """Session token for a logged-in user"""
    return create_jwt_token(
        {
            "sub": str(user.id),
            "username": user.username,
            "role": user.role,
            "email": user.email,
        }
    )


# ============================================================================
# ENCRYPTION AT REST (OAuth tokens)
# ============================================================================


def _get_cipher() -> Fernet:
    # Fernet needs 32 url-safe base64 bytes; derive them from the app secret
    key = base64.urlsafe_b64encode(hashlib.sha256(SECRET_KEY.encode()).digest())
    return Fernet(key)


def encrypt_token(value: str) -> str:
    return _get_cipher().encrypt(value.encode()).decode()


def decrypt_token(value: str) -> Optional[str]:
    try:
        return _get_cipher().decrypt(value.encode()).decode()
    except InvalidToken:
        logger.error("❌ Failed to decrypt stored token - SECRET_KEY may have changed")
        return None
