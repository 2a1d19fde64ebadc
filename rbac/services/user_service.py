"""User service: user administration."""

import logging
import secrets
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from rbac.core.exceptions import (
    ResourceConflictError,
    ResourceNotFoundError,
    ValidationError,
)
from rbac.core.security import hash_password
from rbac.db.base import utcnow
from rbac.models.role import Role
from rbac.models.user import User, UserStatusEnum
from rbac.models.user_session import UserSession

logger = logging.getLogger("rbac.users")


class UserService:
    """Creates, updates and removes users."""

    @staticmethod
    def _require_role(db: Session, role_id: int) -> Role:
        role = db.get(Role, role_id)
        if not role:
            raise ResourceNotFoundError(f"Role {role_id} not found")
        return role

    @staticmethod
    def get(db: Session, user_id: int) -> User:
        """Get a user by id."""
        user = db.get(User, user_id)
        if not user:
            raise ResourceNotFoundError(f"User {user_id} not found")
        return user

    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email.strip().lower()).first()

    @staticmethod
    def create(
        db: Session,
        email: str,
        full_name: str,
        role_id: int,
        password: Optional[str] = None,
        created_by: Optional[int] = None,
    ) -> Tuple[User, Optional[str]]:
        """Create a user.

        When ``password`` is omitted a random one is generated and returned
        alongside the user; it is not retrievable afterwards.
        """
        email = email.strip().lower()
        if UserService.get_by_email(db, email):
            raise ResourceConflictError(f"User with email {email} already exists")
        UserService._require_role(db, role_id)

        generated = None if password else secrets.token_urlsafe(9)
        user = User(
            email=email,
            hashed_password=hash_password(password or generated),
            full_name=full_name.strip(),
            role_id=role_id,
            status=UserStatusEnum.active,
            created_by=created_by,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("User created: %s", email)
        return user, generated

    @staticmethod
    def list_users(
        db: Session,
        status: Optional[UserStatusEnum] = None,
        role_id: Optional[int] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> Dict[str, Any]:
        """List users with filters and pagination, newest first."""
        query = db.query(User)
        if status:
            query = query.filter(User.status == status)
        if role_id:
            query = query.filter(User.role_id == role_id)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(User.full_name.ilike(pattern), User.email.ilike(pattern)))

        total = query.count()
        users = (
            query.order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {"users": users, "total": total, "page": page, "page_size": page_size}

    @staticmethod
    def update(db: Session, user_id: int, changes: Dict[str, Any]) -> User:
        """Update email, full name or password.

        Raises:
            ValidationError: ``changes`` tries to alter the role.
        """
        if changes.get("role_id") is not None:
            raise ValidationError(
                "Role and permission updates must be done through dedicated endpoints"
            )
        user = UserService.get(db, user_id)

        if changes.get("email"):
            email = changes["email"].strip().lower()
            existing = UserService.get_by_email(db, email)
            if existing and existing.id != user.id:
                raise ResourceConflictError(f"User with email {email} already exists")
            user.email = email
        if changes.get("full_name"):
            user.full_name = changes["full_name"].strip()
        if changes.get("password"):
            UserService.set_password(user, changes["password"])

        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def set_password(user: User, password: str) -> None:
        """Hash and store a new password, invalidating tokens issued before now."""
        user.hashed_password = hash_password(password)
        user.password_changed_at = utcnow().replace(microsecond=0)

    @staticmethod
    def change_role(db: Session, user_id: int, role_id: int) -> Tuple[User, Role]:
        user = UserService.get(db, user_id)
        role = UserService._require_role(db, role_id)
        user.role_id = role.id
        db.commit()
        db.refresh(user)
        return user, role

    @staticmethod
    def change_status(db: Session, user_id: int, status: UserStatusEnum) -> User:
        """Activate or deactivate a user; deactivation ends their sessions."""
        user = UserService.get(db, user_id)
        user.status = status
        if status == UserStatusEnum.inactive:
            UserService._end_sessions(db, [user.id])
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def delete(db: Session, user_id: int) -> User:
        user = UserService.get(db, user_id)
        db.query(UserSession).filter(UserSession.user_id == user.id).delete(
            synchronize_session=False
        )
        db.delete(user)
        db.commit()
        logger.info("User deleted: %s", user.email)
        return user

    @staticmethod
    def bulk_update_status(db: Session, user_ids: List[int], status: UserStatusEnum) -> int:
        """Set the status of many users at once; returns how many changed."""
        modified = (
            db.query(User)
            .filter(User.id.in_(user_ids), User.status != status)
            .update({"status": status}, synchronize_session=False)
        )
        if status == UserStatusEnum.inactive:
            UserService._end_sessions(db, user_ids)
        db.commit()
        return modified

    @staticmethod
    def bulk_assign_role(db: Session, user_ids: List[int], role_id: int) -> Tuple[int, Role]:
        """Assign one role to many users; returns how many changed and the role."""
        role = UserService._require_role(db, role_id)
        modified = (
            db.query(User)
            .filter(User.id.in_(user_ids), User.role_id != role.id)
            .update({"role_id": role.id}, synchronize_session=False)
        )
        db.commit()
        return modified, role

    @staticmethod
    def _end_sessions(db: Session, user_ids: List[int]) -> None:
        db.query(UserSession).filter(
            UserSession.user_id.in_(user_ids),
            UserSession.is_active == True,
        ).update({"is_active": False}, synchronize_session=False)


user_service = UserService()
