from fastapi import APIRouter, HTTPException, status
import logging

from auth import create_token
from models import LoginRequest, SignUpRequest, TokenResponse, UserRole
from services_user import (
    check_password_confirmation,
    create_user,
    get_user_by_email,
    to_public_user,
    verify_password,
)

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger("graph_backend")


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def signup(payload: SignUpRequest):
    """Create a new user account and log it in."""
    check_password_confirmation(payload.password, payload.confirm_password)
    user = create_user(
        payload.firstname,
        payload.lastname,
        payload.email,
        payload.password,
        role=UserRole.USER,
    )
    token = create_token(user.id, user.role.value)
    logger.info(f"User signed up: {user.email} (user_id: {user.id})")
    return TokenResponse(access_token=token, user=user)


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest):
    """Authenticate a user and return a token."""
    row = get_user_by_email(payload.email)
    if not row or not verify_password(payload.password, row["password_hash"]):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if row.get("blocked"):
        logger.warning(f"Blocked user attempted login: {row['id']}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access Denied")

    user = to_public_user(row)
    token = create_token(user.id, user.role.value)
    return TokenResponse(access_token=token, user=user)
