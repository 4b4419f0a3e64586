"""
User management routes.

Any authenticated user can read and edit their own profile and password;
everything else requires the admin role.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from auth import require_admin, require_auth
from models import (
    AdminUserUpdateRequest,
    PasswordUpdateRequest,
    User,
    UserBlockRequest,
    UserCreateRequest,
    UserDeleteRequest,
    UserPage,
    UserUpdateRequest,
)
from pagination import PageParams
from services_user import (
    check_password_confirmation,
    create_user,
    delete_users,
    get_user,
    list_users,
    set_user_blocked,
    update_password,
    update_user,
)

router = APIRouter(prefix="/user", tags=["users"])


@router.post("", response_model=User, status_code=status.HTTP_201_CREATED)
def create_user_endpoint(payload: UserCreateRequest, auth: Dict[str, Any] = Depends(require_admin)):
    check_password_confirmation(payload.password, payload.confirm_password)
    return create_user(payload.firstname, payload.lastname, payload.email, payload.password, role=payload.role)


@router.get("", response_model=UserPage)
def list_users_endpoint(
    params: PageParams = Depends(PageParams.from_query),
    auth: Dict[str, Any] = Depends(require_admin),
):
    return list_users(page=params.page, size=params.size, search=params.search)


@router.delete("")
def delete_users_endpoint(payload: UserDeleteRequest, auth: Dict[str, Any] = Depends(require_admin)):
    delete_users(payload.ids)
    return {"status": "ok"}


@router.get("/me", response_model=User)
def get_current_user_endpoint(auth: Dict[str, Any] = Depends(require_auth)):
    return get_user(auth["user_id"])


@router.put("/me", response_model=User)
def update_current_user_endpoint(payload: UserUpdateRequest, auth: Dict[str, Any] = Depends(require_auth)):
    return update_user(auth["user_id"], payload.firstname, payload.lastname, payload.email)


@router.put("/password")
def update_password_endpoint(payload: PasswordUpdateRequest, auth: Dict[str, Any] = Depends(require_auth)):
    update_password(auth["user_id"], payload.old_password, payload.password, payload.confirm_password)
    return {"status": "ok"}


@router.get("/{user_id}", response_model=User)
def get_user_endpoint(user_id: str, auth: Dict[str, Any] = Depends(require_admin)):
    return get_user(user_id)


@router.put("/{user_id}", response_model=User)
def update_user_endpoint(
    user_id: str,
    payload: AdminUserUpdateRequest,
    auth: Dict[str, Any] = Depends(require_admin),
):
    return update_user(user_id, payload.firstname, payload.lastname, payload.email, payload.role)


@router.put("/{user_id}/block", response_model=User)
def block_user_endpoint(
    user_id: str,
    payload: UserBlockRequest,
    auth: Dict[str, Any] = Depends(require_admin),
):
    return set_user_blocked(user_id, payload.blocked)
