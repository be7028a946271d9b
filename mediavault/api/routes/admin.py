"""
Administration endpoints. Every route requires the ``admin`` role.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from mediavault.api.deps import AdminDep, SessionDep
from mediavault.db.models import RoleModel
from mediavault.models.schemas import SuccessResponse
from mediavault.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateRoleRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)


class RoleResponse(BaseModel):
    id: str
    name: str

    @classmethod
    def from_model(cls, role: RoleModel) -> "RoleResponse":
        return cls(id=role.id, name=role.name)


class AdminUserResponse(BaseModel):
    id: str
    username: str
    email: str
    isActive: bool
    emailVerified: bool
    createdAt: datetime
    lastLoginAt: Optional[datetime]
    roles: list[str]


class AdminUserListResponse(BaseModel):
    """Paginated user list response."""

    users: list[AdminUserResponse]
    total: int
    limit: int
    offset: int


@router.get("/users", response_model=AdminUserListResponse)
async def list_users(
    context: AdminDep,
    session: SessionDep,
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    """List users with their roles."""
    page, total = await UserService(session).list_users_with_roles(offset, limit)
    return AdminUserListResponse(
        users=[
            AdminUserResponse(
                id=item.user.id,
                username=item.user.username,
                email=item.user.email,
                isActive=item.user.is_active,
                emailVerified=item.user.email_verified,
                createdAt=item.user.created_at,
                lastLoginAt=item.user.last_login_at,
                roles=item.roles,
            )
            for item in page
        ],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/roles", response_model=list[RoleResponse])
async def list_roles(context: AdminDep, session: SessionDep):
    roles = await UserService(session).list_roles()
    return [RoleResponse.from_model(r) for r in roles]


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(request: CreateRoleRequest, context: AdminDep, session: SessionDep):
    """Create a role. Names are stored lower-case."""
    role = await UserService(session).create_role(request.name)
    logger.info(f"Admin {context.user_id} created role {role.name}")
    return RoleResponse.from_model(role)


@router.post("/users/{user_id}/roles/{role_id}", response_model=SuccessResponse)
async def assign_role(user_id: str, role_id: str, context: AdminDep, session: SessionDep):
    """Grant a role. Granting a role the user already holds succeeds."""
    added = await UserService(session).assign_role(user_id, role_id)
    return SuccessResponse(message="Role assigned." if added else "User already has this role.")


@router.delete("/users/{user_id}/roles/{role_id}", response_model=SuccessResponse)
async def remove_role(user_id: str, role_id: str, context: AdminDep, session: SessionDep):
    removed = await UserService(session).remove_role(user_id, role_id)
    return SuccessResponse(message="Role removed." if removed else "User did not have this role.")
