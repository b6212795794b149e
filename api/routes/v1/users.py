"""
api/routes/v1/users.py -- User account management (Admin only).

Routes:
  GET   /api/v1/users            -- search / filter / paginate accounts
  POST  /api/v1/users            -- create an account
  GET   /api/v1/users/{user_id}  -- one account
  PATCH /api/v1/users/{user_id}  -- change role, status, full name, department

Every route depends on require_admin, so an unauthenticated caller gets 401
and an authenticated Staff caller gets 403 before any store access.

Accounts are never deleted. PATCH blocks the two lock-out cases:
  - an admin deactivating their own account
  - deactivating or demoting the last active admin
"""

from __future__ import annotations

import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.models import Pagination, UserCreate, UserPatch, UserResponse, UsersPage
from api.responses import success_response
from auth.dependencies import require_admin
from auth.models import Role, TokenClaims, User, UserStatus
from auth.service import AuthService
from auth.store import UserStore

router = APIRouter()


@router.get("/users")
def list_users(
    request: Request,
    search: str = Query(default="", max_length=100),
    role: Optional[Role] = None,
    status: Optional[UserStatus] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=25, ge=1, le=100),
    identity: TokenClaims = Depends(require_admin),
) -> JSONResponse:
    """List user accounts, newest first."""
    user_store: UserStore = request.app.state.user_store
    users, total = user_store.list_users(search=search, role=role, status=status, page=page, limit=limit)
    data = UsersPage(
        users=[UserResponse.from_user(u) for u in users],
        pagination=Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)),
    )
    return success_response(data)


@router.post("/users", status_code=201)
def create_user(
    request: Request,
    body: UserCreate,
    identity: TokenClaims = Depends(require_admin),
) -> JSONResponse:
    """Create a new Active account. Sync handler: hashing the password is CPU-bound."""
    user_store: UserStore = request.app.state.user_store
    service: AuthService = request.app.state.auth_service

    new_user = User(
        username=body.username,
        email=body.email,
        role=body.role,
        password_hash=service.hash_password(body.password),
        full_name=body.full_name,
        department=body.department,
        created_by=identity.user_id,
    )
    try:
        user_id = user_store.create_user(new_user)
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail="Username or email already exists") from exc

    return success_response(
        UserResponse.from_user(_get_or_404(user_store, user_id)),
        "User created successfully",
        status_code=201,
    )


@router.get("/users/{user_id}")
def get_user(
    request: Request,
    user_id: int,
    identity: TokenClaims = Depends(require_admin),
) -> JSONResponse:
    user_store: UserStore = request.app.state.user_store
    return success_response(UserResponse.from_user(_get_or_404(user_store, user_id)))


@router.patch("/users/{user_id}")
def update_user(
    request: Request,
    user_id: int,
    body: UserPatch,
    identity: TokenClaims = Depends(require_admin),
) -> JSONResponse:
    """Update role, status, full name or department.

    Role and status changes reach existing sessions only when their access
    tokens next rotate; refresh re-reads the user and refuses inactive ones.
    """
    user_store: UserStore = request.app.state.user_store
    target = _get_or_404(user_store, user_id)

    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    deactivating = updates.get("status") is UserStatus.inactive and target.is_active
    demoting = target.role is Role.admin and updates.get("role", Role.admin) is not Role.admin
    if deactivating and target.id == identity.user_id:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    if (deactivating or demoting) and target.role is Role.admin and target.is_active:
        if user_store.count_active_admins() <= 1:
            raise HTTPException(status_code=400, detail="Cannot remove the last active admin")

    user_store.update_user(user_id, **updates)
    return success_response(UserResponse.from_user(_get_or_404(user_store, user_id)), "User updated successfully")


def _get_or_404(user_store: UserStore, user_id: int) -> User:
    user = user_store.get_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user
