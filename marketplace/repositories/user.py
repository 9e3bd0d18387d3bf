"""
User repository for authentication, profile and role management.
Provides secure user operations with password handling and the has_role lookup.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, desc
from marketplace.repositories.base import BaseRepository
from marketplace.models.user import User, UserRoleAssignment, AppRole, UserMode
from typing import Optional, List, Dict, Any, Iterable, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    """
    Repository for user management with authentication and authorization support.
    Handles secure user operations and role grants.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def create_user(self, user_data: Dict[str, Any], roles: Iterable[AppRole] = (AppRole.USER,)) -> User:
        """
        Create a new user with email validation, password hashing and initial roles.

        Args:
            user_data: Dictionary containing user information
                      Must include: email, password
                      Optional: full_name, mode
            roles: Roles granted on creation

        Returns:
            Created user instance

        Raises:
            ValueError: If validation fails or the email is taken
        """
        try:
            email = User.validate_email_format(user_data["email"])

            existing_user = await self.get_by_email(email)
            if existing_user:
                raise ValueError(f"User with email {email} already exists")

            hashed_password = User.hash_password(user_data["password"])

            user = User(
                email=email,
                hashed_password=hashed_password,
                full_name=user_data.get("full_name"),
                mode=user_data.get("mode", UserMode.BUYER),
                is_active=user_data.get("is_active", True),
                role_assignments=[UserRoleAssignment(role=role) for role in set(roles)],
            )
            self.db.add(user)
            await self.db.commit()
            await self.db.refresh(user)

            logger.info(f"Created user: {user.email} (ID: {user.id})")
            return user
        except ValueError as e:
            logger.error(f"User validation failed: {e}")
            raise
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to create user: {e}")
            raise

    async def get_by_email(self, email: str) -> Optional[User]:
        """
        Get user by email address.

        Args:
            email: Email address to search for

        Returns:
            User instance if found, None otherwise
        """
        normalized_email = email.lower().strip()

        result = await self.db.execute(select(User).where(User.email == normalized_email))
        user = result.scalar_one_or_none()

        if user:
            logger.debug(f"Retrieved user by email: {email}")
        else:
            logger.debug(f"User with email {email} not found")

        return user

    async def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """
        Authenticate user with email and password.

        Returns:
            User instance if authentication successful, None otherwise
        """
        user = await self.get_by_email(email)

        if not user:
            logger.debug(f"Authentication failed: user {email} not found")
            return None

        if not user.is_active:
            logger.debug(f"Authentication failed: user {email} is inactive")
            return None

        if not user.verify_password(password):
            logger.debug(f"Authentication failed: invalid password for {email}")
            return None

        logger.info(f"User authenticated successfully: {email}")
        return user

    async def has_role(self, user_id: uuid.UUID, role: AppRole) -> bool:
        """Role lookup against user_roles, independent of any loaded profile."""
        query = select(func.count(UserRoleAssignment.id)).where(
            UserRoleAssignment.user_id == user_id,
            UserRoleAssignment.role == role
        )
        result = await self.db.execute(query)
        return (result.scalar() or 0) > 0

    async def grant_role(self, user: User, role: AppRole) -> User:
        """Grant a role; granting an existing role is a no-op."""
        if user.has_role(role):
            return user

        user.role_assignments.append(UserRoleAssignment(role=role))
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"Granted role {role.value} to user {user.email}")
        return user

    async def revoke_role(self, user: User, role: AppRole) -> User:
        """Revoke a role; revoking a missing role is a no-op."""
        remaining = [a for a in user.role_assignments if a.role != role]
        if len(remaining) == len(user.role_assignments):
            return user

        user.role_assignments = remaining
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"Revoked role {role.value} from user {user.email}")
        return user

    async def set_mode(self, user: User, mode: UserMode) -> User:
        updated = await self.update(user, {"mode": mode})
        logger.info(f"User {updated.email} switched to {mode.value} mode")
        return updated

    async def update_user_status(self, user: User, is_active: bool) -> User:
        """
        Update user's active status.

        Args:
            user: User to update
            is_active: New active status

        Returns:
            Updated user instance
        """
        updated_user = await self.update(user, {"is_active": is_active})
        status = "activated" if is_active else "deactivated"
        logger.info(f"User {updated_user.email} {status}")
        return updated_user

    async def list_users(
        self,
        role: Optional[AppRole] = None,
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[List[User], int]:
        """
        List profiles with pagination, optionally only those holding a role.

        Returns:
            Tuple of (users list, total count)
        """
        query = select(User)
        count_query = select(func.count(User.id))

        if role is not None:
            holders = select(UserRoleAssignment.user_id).where(UserRoleAssignment.role == role)
            query = query.where(User.id.in_(holders))
            count_query = count_query.where(User.id.in_(holders))

        total_count = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(desc(User.created_at)).offset(skip).limit(limit)
        result = await self.db.execute(query)
        users = result.scalars().all()

        logger.debug(f"Retrieved {len(users)} users")
        return list(users), total_count
