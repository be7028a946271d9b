"""
User directory and role administration.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from mediavault.core.exceptions import DuplicateRole, MediaVaultError, NotFound
from mediavault.db.filters import LIKE_ESCAPE, contains_pattern
from mediavault.db.models import RoleModel, UserModel, UserRoleModel

logger = logging.getLogger(__name__)

SEARCH_MIN_LENGTH = 2
SEARCH_LIMIT = 10


@dataclass
class UserWithRoles:
    user: UserModel
    roles: list[str] = field(default_factory=list)


class UserService:
    """Service for user search and role management."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def search_users(self, query: str, exclude_user_id: str) -> list[UserModel]:
        """
        Find verified users by username or email substring.

        Queries shorter than two characters return nothing.
        """
        query = (query or "").strip().lower()
        if len(query) < SEARCH_MIN_LENGTH:
            return []

        pattern = contains_pattern(query)
        result = await self.session.execute(
            select(UserModel)
            .where(
                or_(
                    func.lower(UserModel.username).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(UserModel.email).like(pattern, escape=LIKE_ESCAPE),
                ),
                UserModel.id != exclude_user_id,
                UserModel.email_verified.is_(True),
            )
            .order_by(UserModel.username)
            .limit(SEARCH_LIMIT)
        )
        return list(result.scalars().all())

    async def list_users_with_roles(
        self,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[UserWithRoles], int]:
        """
        Page through users with their role names.

        Returns:
            The page and the total user count
        """
        total = await self.session.scalar(select(func.count()).select_from(UserModel))
        result = await self.session.execute(
            select(UserModel).order_by(UserModel.created_at, UserModel.username).offset(offset).limit(limit)
        )
        users = list(result.scalars().all())

        roles_by_user: dict[str, list[str]] = {user.id: [] for user in users}
        if users:
            role_rows = await self.session.execute(
                select(UserRoleModel.user_id, RoleModel.name)
                .join(RoleModel, RoleModel.id == UserRoleModel.role_id)
                .where(UserRoleModel.user_id.in_(list(roles_by_user)))
                .order_by(RoleModel.name)
            )
            for user_id, role_name in role_rows.all():
                roles_by_user[user_id].append(role_name)

        return [UserWithRoles(user, roles_by_user[user.id]) for user in users], total or 0

    async def list_roles(self) -> list[RoleModel]:
        result = await self.session.execute(select(RoleModel).order_by(RoleModel.name))
        return list(result.scalars().all())

    async def get_role_by_name(self, name: str) -> RoleModel | None:
        result = await self.session.execute(
            select(RoleModel).where(RoleModel.name == name.strip().lower())
        )
        return result.scalar_one_or_none()

    async def create_role(self, name: str) -> RoleModel:
        """
        Create a role. Names are stored lower-case.

        Raises:
            DuplicateRole: A role with that name exists
        """
        name = (name or "").strip().lower()
        if not name:
            raise MediaVaultError("Empty role name", "Role name is required.")
        if await self.get_role_by_name(name) is not None:
            raise DuplicateRole(f"Role {name} already exists")

        role = RoleModel(name=name)
        self.session.add(role)
        await self.session.flush()
        logger.info(f"Created role {name}")
        return role

    async def assign_role(self, user_id: str, role_id: str) -> bool:
        """
        Grant a role. Assigning a role the user already has is a no-op.

        Returns:
            True if the role was newly assigned
        """
        if await self.session.get(UserModel, user_id) is None:
            raise NotFound(f"User {user_id} not found", "User not found.")
        if await self.session.get(RoleModel, role_id) is None:
            raise NotFound(f"Role {role_id} not found", "Role not found.")
        if await self.session.get(UserRoleModel, (user_id, role_id)) is not None:
            return False

        self.session.add(UserRoleModel(user_id=user_id, role_id=role_id))
        await self.session.flush()
        logger.info(f"Assigned role {role_id} to user {user_id}")
        return True

    async def remove_role(self, user_id: str, role_id: str) -> bool:
        result = await self.session.execute(
            delete(UserRoleModel).where(
                UserRoleModel.user_id == user_id,
                UserRoleModel.role_id == role_id,
            )
        )
        if result.rowcount:
            logger.info(f"Removed role {role_id} from user {user_id}")
        return result.rowcount > 0
