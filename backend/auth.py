"""
Bearer-token auth: issuing tokens, and the require_auth / require_admin dependencies.

Provides:
- JWT bearer tokens carrying user_id and role
- FastAPI dependencies for route protection (any user / admins only)
"""
import datetime
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import API_TOKEN_SECRET, TOKEN_EXPIRE_DAYS
from models import UserRole
from services_user import get_user_by_id

# Missing headers reach require_auth as None
security = HTTPBearer(auto_error=False)


def get_api_token_secret() -> str:
    """Get API token secret from environment or fall back to a dev default."""
    if not API_TOKEN_SECRET:
        # Dev fallback; set API_TOKEN_SECRET when deployed
        return "dev-secret-key-change-in-production"
    return API_TOKEN_SECRET


def verify_token(token: str) -> Dict[str, Any]:
    """
    Decode a token issued by create_token.

    Raises:
        HTTPException(401) if the token is expired or invalid
    """
    try:
        return jwt.decode(token, get_api_token_secret(), algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def create_token(user_id: str, role: str, expires_in_days: Optional[int] = None) -> str:
    """Create a signed token for a user."""
    now = datetime.datetime.now(datetime.timezone.utc)
    days = TOKEN_EXPIRE_DAYS if expires_in_days is None else expires_in_days
    payload = {
        "user_id": user_id,
        "role": role,
        "exp": now + datetime.timedelta(days=days),
        "iat": now,
    }
    return jwt.encode(payload, get_api_token_secret(), algorithm="HS256")


def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> Dict[str, Any]:
    """FastAPI dependency that requires a valid bearer token of an existing, unblocked user."""
    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = verify_token(credentials.credentials)
    user = get_user_by_id(payload.get("user_id")) if payload.get("user_id") else None
    # Role and blocked flag come from the database, not the token
    if user is None:
        raise HTTPException(status_code=401, detail="Login first to access this endpoint")
    if user.get("blocked"):
        raise HTTPException(status_code=401, detail="Access Denied")
    return {
        "user_id": str(user["id"]),
        "role": user.get("role", UserRole.USER.value),
        "is_authenticated": True,
    }


def require_admin(auth: Dict[str, Any] = Depends(require_auth)) -> Dict[str, Any]:
    """FastAPI dependency that additionally requires the admin role."""
    if auth.get("role") != UserRole.ADMIN.value:
        raise HTTPException(status_code=403, detail="Admin role required")
    return auth
