import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..config import (
    DEFAULT_ADMIN_EMAIL,
    DEFAULT_ADMIN_PASSWORD,
    DEFAULT_ADMIN_USERNAME,
    LOGIN_RATE_LIMIT,
    LOGIN_RATE_WINDOW,
)
from ..database import get_db
from ..models import User
from ..rate_limiter import create_rate_limiter
from ..schemas import AuthResponse, UserLogin, UserRegister, UserResponse
from ..security_utils import create_user_token, hash_password_bcrypt, verify_password_bcrypt

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

login_rate_limit = create_rate_limiter(
    limit=LOGIN_RATE_LIMIT, window_seconds=LOGIN_RATE_WINDOW, key_prefix="login"
)


def ensure_default_admin(db: Session) -> None:
    """Create the default admin account when no admin exists yet"""
    if db.query(User).filter(User.role == "admin").first():
        return

    admin = User(
        username=DEFAULT_ADMIN_USERNAME,
        password=hash_password_bcrypt(DEFAULT_ADMIN_PASSWORD),
        full_name="Administrator",
        email=DEFAULT_ADMIN_EMAIL,
        role="admin",
    )
    db.add(admin)
    db.commit()
    logger.info(f"👤 Default admin user '{DEFAULT_ADMIN_USERNAME}' created")


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(data: UserRegister, db: Session = Depends(get_db)):
    """Create an account and return a token for it"""
    existing = (
        db.query(User)
        .filter(or_(User.username == data.username, func.lower(User.email) == data.email))
        .first()
    )
    if existing:
        field = "Username" if existing.username == data.username else "Email"
        raise HTTPException(status_code=409, detail=f"{field} already exists")

    user = User(
        username=data.username,
        password=hash_password_bcrypt(data.password),
        full_name=data.fullName,
        email=data.email,
        role=data.role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"✅ User registered: {user.username} ({user.role})")
    return AuthResponse(
        message="User registered successfully",
        user=UserResponse.from_user(user),
        token=create_user_token(user),
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    data: UserLogin,
    db: Session = Depends(get_db),
    _: None = Depends(login_rate_limit),
):
    user = db.query(User).filter(User.username == data.username).first()
    if not user or not verify_password_bcrypt(data.password, user.password):
        logger.warning(f"🚫 Failed login for username: {data.username}")
        raise HTTPException(status_code=401, detail="Invalid username or password")

    logger.info(f"🔐 User logged in: {user.username}")
    return AuthResponse(
        message="Login successful",
        user=UserResponse.from_user(user),
        token=create_user_token(user),
    )


@router.get("/profile")
async def get_profile(current_user: User = Depends(get_current_user)):
    return {"user": UserResponse.from_user(current_user)}
