"""User management utilities.

This module provides the identity and role store: user storage, password and
one-time password hashing, role assignment with the admin-count invariant,
invitation-based registration and the role integrity scan.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Union

import bcrypt
import pytz
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from config import BCRYPT_ROUNDS
from core.database import atomic
from core.exceptions import (
    DuplicateRoleError,
    LastAdminError,
    NotFoundError,
    SelfRevokeError,
    UserAlreadyExistsError,
    UserNotFoundError,
    ValidationError,
)
from models.role_assignment import RoleAssignmentModel
from models.user import UserModel
from schemas.user import InvalidRoleAssignment, Role, User, UserWithRoles
from utils.converters import model_to_user
from utils.invitation_manager import InvitationManager
from utils.validators import coerce_role, validate_username

logger = logging.getLogger(__name__)

# bcrypt ignores everything past 72 bytes
_BCRYPT_MAX_BYTES = 72


class UserManager:
    """Manages users, credentials and role assignments using SQLAlchemy."""

    def __init__(self, db: Session):
        """Initialize UserManager.

        Args:
            db: SQLAlchemy Session.
        """
        self.db = db

    # --- Credentials ---

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain text password.

        Returns:
            Hashed password (bcrypt hash string).
        """
        if isinstance(password, bytes):
            password = password.decode("utf-8")
        elif not isinstance(password, str):
            password = str(password)

        password_bytes = password.encode("utf-8")
        if len(password_bytes) > _BCRYPT_MAX_BYTES:
            logger.warning(
                "Password exceeds %d bytes (%d bytes), truncating",
                _BCRYPT_MAX_BYTES,
                len(password_bytes),
            )
            password_bytes = password_bytes[:_BCRYPT_MAX_BYTES]

        salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        return bcrypt.hashpw(password_bytes, salt).decode("utf-8")

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            plain_password: Plain text password to verify.
            hashed_password: Bcrypt hash string to verify against.

        Returns:
            True if password matches, False otherwise.
        """
        if not hashed_password:
            return False
        if isinstance(plain_password, str):
            password_bytes = plain_password.encode("utf-8")
        else:
            password_bytes = plain_password
        password_bytes = password_bytes[:_BCRYPT_MAX_BYTES]

        if isinstance(hashed_password, str):
            hash_bytes = hashed_password.encode("utf-8")
        else:
            hash_bytes = hashed_password

        try:
            return bcrypt.checkpw(password_bytes, hash_bytes)
        except ValueError as e:
            logger.error("Password verification error: %s", e)
            return False

    # --- Users ---

    def is_database_empty(self) -> bool:
        count = self.db.scalar(select(func.count()).select_from(UserModel))
        return not count

    def register_user(
        self,
        username: str,
        password: str,
        roles: Optional[Iterable[Union[Role, str]]] = None,
    ) -> User:
        """Create a new user.

        The first account created in an empty database always receives the
        admin role so the system starts with one administrator.

        Args:
            username: Username for the new user.
            password: Plain text password.
            roles: Roles to grant.

        Returns:
            Created User object.

        Raises:
            ValidationError: If the username, password or a role is invalid.
            UserAlreadyExistsError: If username already exists.
        """
        username = validate_username(username)
        role_list = self._normalize_roles(roles or [])
        with atomic(self.db):
            if self.is_database_empty() and Role.ADMIN not in role_list:
                role_list.insert(0, Role.ADMIN)
                logger.info("Empty database, making '%s' the first admin", username)
            self._insert_user(username, password, role_list)
        logger.info("Created user: %s with roles %s", username, [r.value for r in role_list])
        return self.get_user(username)

    def register_with_invitation(
        self,
        username: str,
        password: str,
        code: str,
        now: Optional[datetime] = None,
    ) -> User:
        """Create a user with the roles carried by an invitation code.

        The code is consumed in the same transaction that creates the user, so
        a failed registration leaves the code usable.

        Args:
            username: Username for the new user.
            password: Plain text password.
            code: Invitation code to redeem.
            now: Instant to evaluate expiry at, defaults to the current time.

        Returns:
            Created User object.

        Raises:
            InvalidInvitationCodeError: If the code is missing or expired.
            UserAlreadyExistsError: If username already exists.
        """
        username = validate_username(username)
        invitations = InvitationManager(self.db)
        with atomic(self.db):
            roles = invitations.consume(code, now=now)
            self._insert_user(username, password, roles)
        logger.info("Registered user %s with invitation %s", username, code)
        return self.get_user(username)

    def _insert_user(self, username: str, password: str, roles: List[Role]) -> None:
        if not password:
            raise ValidationError("Password cannot be empty.")
        if self.db.get(UserModel, username) is not None:
            raise UserAlreadyExistsError(f"User '{username}' already exists")
        self.db.add(
            UserModel(
                username=username,
                password_hash=self.hash_password(password),
                created_at=datetime.now(pytz.utc).isoformat(),
            )
        )
        try:
            self.db.flush()
        except IntegrityError as e:
            # Another writer created the same username between check and insert
            raise UserAlreadyExistsError(f"User '{username}' already exists") from e
        for role in roles:
            self.db.add(RoleAssignmentModel(username=username, role=role.value))
        self.db.flush()

    def _normalize_roles(self, roles: Iterable[Union[Role, str]]) -> List[Role]:
        result: List[Role] = []
        for role in roles:
            role = coerce_role(role)
            if role not in result:
                result.append(role)
        return result

    def _get_model(self, username: str) -> UserModel:
        model = self.db.get(UserModel, username)
        if model is None:
            raise UserNotFoundError(username)
        return model

    def get_user(self, username: str) -> User:
        """Get a user by username.

        Raises:
            UserNotFoundError: If the user does not exist.
        """
        model = self._get_model(username)
        return model_to_user(model, self.get_roles(username))

    def get_user_or_none(self, username: str) -> Optional[User]:
        model = self.db.get(UserModel, username)
        if model is None:
            return None
        return model_to_user(model, self.get_roles(username))

    def login(self, username: str, password: str) -> bool:
        """Check a username/password pair.

        Returns:
            True if the user exists and the password matches.
        """
        model = self.db.get(UserModel, username)
        if model is None:
            logger.info("Login failed for unknown user: %s", username)
            return False
        ok = self.verify_password(password, model.password_hash)
        if not ok:
            logger.info("Login failed for user: %s", username)
        return ok

    def update_password(self, username: str, new_password: str) -> None:
        if not new_password:
            raise ValidationError("Password cannot be empty.")
        with atomic(self.db):
            model = self._get_model(username)
            model.password_hash = self.hash_password(new_password)
        logger.info("Updated password for user: %s", username)

    def delete_user(self, username: str) -> None:
        """Delete a user; role rows follow by storage cascade.

        Raises:
            UserNotFoundError: If the user does not exist.
            LastAdminError: If the user holds the last admin role.
        """
        with atomic(self.db):
            model = self._get_model(username)
            if self._holds_role(username, Role.ADMIN) and self.get_admin_count() <= 1:
                logger.warning("Refusing to delete the last admin: %s", username)
                raise LastAdminError()
            self.db.delete(model)
        logger.info("Deleted user: %s", username)

    # --- One-time passwords ---

    def set_one_time_password(self, username: str, one_time_password: str) -> None:
        if not one_time_password:
            raise ValidationError("One-time password cannot be empty.")
        with atomic(self.db):
            model = self._get_model(username)
            model.one_time_password_hash = self.hash_password(one_time_password)
        logger.info("Set one-time password for user: %s", username)

    def redeem_one_time_password(self, username: str, one_time_password: str) -> bool:
        """Validate and clear a one-time password in one step.

        Two concurrent redemptions of the same value cannot both succeed: the
        check and the clear happen inside a single serialized transaction.

        Returns:
            True if the value matched and has now been cleared.
        """
        with atomic(self.db):
            model = self.db.get(UserModel, username)
            if model is None or model.one_time_password_hash is None:
                return False
            if not self.verify_password(one_time_password, model.one_time_password_hash):
                return False
            model.one_time_password_hash = None
        logger.info("Redeemed one-time password for user: %s", username)
        return True

    # --- Roles ---

    def _holds_role(self, username: str, role: Role) -> bool:
        return (
            self.db.get(RoleAssignmentModel, {"username": username, "role": role.value})
            is not None
        )

    def get_roles(self, username: str) -> List[str]:
        """List the role names stored for a user.

        Read failures are logged and reported as no roles.
        """
        try:
            rows = self.db.scalars(
                select(RoleAssignmentModel.role)
                .where(RoleAssignmentModel.username == username)
                .order_by(RoleAssignmentModel.role)
            ).all()
        except SQLAlchemyError as e:
            logger.error("Failed to load roles for %s: %s", username, e)
            return []
        return list(rows)

    def has_role(self, username: str, role: Union[Role, str]) -> bool:
        role = coerce_role(role)
        try:
            return self._holds_role(username, role)
        except SQLAlchemyError as e:
            logger.error("Failed to check role %s for %s: %s", role.value, username, e)
            return False

    def is_admin(self, username: str) -> bool:
        return self.has_role(username, Role.ADMIN)

    def get_admin_count(self) -> int:
        return self.db.scalar(
            select(func.count())
            .select_from(RoleAssignmentModel)
            .where(RoleAssignmentModel.role == Role.ADMIN.value)
        ) or 0

    def assign_role(self, username: str, role: Union[Role, str]) -> None:
        """Grant a role to a user.

        Raises:
            UserNotFoundError: If the user does not exist.
            DuplicateRoleError: If the user already holds the role.
        """
        role = coerce_role(role)
        with atomic(self.db):
            self._get_model(username)
            self.add_role_in_transaction(username, role)
        logger.info("Assigned role %s to user %s", role.value, username)

    def add_role_in_transaction(self, username: str, role: Role) -> None:
        """Insert a role row without committing.

        For use inside another store's atomic block.
        """
        if self._holds_role(username, role):
            raise DuplicateRoleError(username, role.value)
        self.db.add(RoleAssignmentModel(username=username, role=role.value))
        try:
            self.db.flush()
        except IntegrityError as e:
            raise DuplicateRoleError(username, role.value) from e

    def revoke_role(
        self, username: str, role: Union[Role, str], acting_admin: Optional[str] = None
    ) -> None:
        """Remove a role from a user.

        The admin-count and self-revoke checks run in the same serialized
        transaction as the delete.

        Args:
            username: User losing the role.
            role: Role to remove.
            acting_admin: Username of the admin performing the change.

        Raises:
            LastAdminError: If this would leave no admin in the system.
            SelfRevokeError: If an admin targets their own admin role.
            NotFoundError: If the user does not hold the role.
        """
        role = coerce_role(role)
        with atomic(self.db):
            assignment = self.db.get(
                RoleAssignmentModel, {"username": username, "role": role.value}
            )
            if assignment is None:
                raise NotFoundError("Role assignment", f"{username}:{role.value}")
            if role is Role.ADMIN:
                if self.get_admin_count() <= 1:
                    logger.warning("Refusing to revoke the last admin role from %s", username)
                    raise LastAdminError()
                if acting_admin is not None and username == acting_admin:
                    logger.warning("Admin %s tried to revoke their own admin role", username)
                    raise SelfRevokeError()
            self.db.delete(assignment)
        logger.info("Revoked role %s from user %s", role.value, username)

    def list_users_with_roles(self) -> List[UserWithRoles]:
        """List every user with their role names, including users with none."""
        rows = self.db.execute(
            select(UserModel.username, RoleAssignmentModel.role)
            .outerjoin(
                RoleAssignmentModel,
                RoleAssignmentModel.username == UserModel.username,
            )
            .order_by(UserModel.username, RoleAssignmentModel.role)
        ).all()
        users: dict = {}
        for username, role in rows:
            entry = users.setdefault(username, UserWithRoles(username=username))
            if role is not None:
                entry.roles.append(role)
        return list(users.values())

    def list_users_with_role(self, role: Union[Role, str]) -> List[str]:
        role = coerce_role(role)
        return list(
            self.db.scalars(
                select(RoleAssignmentModel.username)
                .where(RoleAssignmentModel.role == role.value)
                .order_by(RoleAssignmentModel.username)
            ).all()
        )

    def find_invalid_role_assignments(self) -> List[InvalidRoleAssignment]:
        """Scan for stored role rows outside the Role enumeration."""
        rows = self.db.execute(
            select(RoleAssignmentModel.username, RoleAssignmentModel.role)
            .where(RoleAssignmentModel.role.not_in(Role.values()))
            .order_by(RoleAssignmentModel.username)
        ).all()
        if rows:
            logger.warning("Found %d role assignments with unknown roles", len(rows))
        return [InvalidRoleAssignment(username=u, role=r) for u, r in rows]
