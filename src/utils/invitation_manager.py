"""Invitation ledger.

Invitation codes are short, single-use and expiring. A code is consumed by
deleting its row, so a freed code value may be handed out again later.
"""

import logging
import secrets
import string
from datetime import datetime
from typing import Iterable, List, Optional, Union

import pytz
from sqlalchemy import select
from sqlalchemy.orm import Session

from config import INVITATION_CODE_LENGTH, INVITATION_CODE_MAX_ATTEMPTS
from core.database import atomic
from core.exceptions import (
    InvalidInvitationCodeError,
    InvitationCodeExhaustedError,
    InvitationNotFoundError,
    ValidationError,
)
from models.invitation_code import InvitationCodeModel
from schemas.invitation import Invitation, InvitationValidation
from schemas.user import Role
from utils.converters import join_delimited, model_to_invitation, split_delimited
from utils.validators import coerce_role

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_lowercase + string.digits


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """Parse an ISO timestamp, treating naive values as UTC.

    Raises:
        ValidationError: If a string value is not an ISO 8601 timestamp.
    """
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise ValidationError(f"Invalid timestamp: {value!r}.") from e
    if value.tzinfo is None:
        value = pytz.utc.localize(value)
    return value


class InvitationManager:
    """Issues, validates and redeems invitation codes."""

    def __init__(self, db: Session):
        self.db = db

    def _generate_code(self) -> str:
        return "".join(
            secrets.choice(CODE_ALPHABET) for _ in range(INVITATION_CODE_LENGTH)
        )

    def issue(
        self,
        roles: Iterable[Union[Role, str]],
        expires_at: Union[str, datetime],
        created_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Invitation:
        """Create an invitation code granting one or more roles.

        Args:
            roles: Roles the redeemer receives; at least one.
            expires_at: Expiry instant, must lie in the future.
            created_by: Username of the issuing admin.
            now: Reference instant, defaults to the current time.

        Returns:
            The stored Invitation.

        Raises:
            ValidationError: If no role is given, a role is unknown or the
                expiry is not in the future.
            InvitationCodeExhaustedError: If no free code was found.
        """
        role_list: List[Role] = []
        for role in roles:
            role = coerce_role(role)
            if role not in role_list:
                role_list.append(role)
        if not role_list:
            raise ValidationError("An invitation must grant at least one role.")

        now = parse_timestamp(now) if now else datetime.now(pytz.utc)
        expires = parse_timestamp(expires_at)
        if expires <= now:
            raise ValidationError("Invitation expiry must be in the future.")

        with atomic(self.db):
            for _ in range(INVITATION_CODE_MAX_ATTEMPTS):
                code = self._generate_code()
                if self.db.get(InvitationCodeModel, code) is None:
                    break
            else:
                logger.error(
                    "No free invitation code after %d attempts",
                    INVITATION_CODE_MAX_ATTEMPTS,
                )
                raise InvitationCodeExhaustedError(
                    "Could not generate a unique invitation code"
                )
            model = InvitationCodeModel(
                code=code,
                roles=join_delimited(r.value for r in role_list),
                created_by=created_by,
                created_at=now.isoformat(),
                expires_at=expires.isoformat(),
            )
            self.db.add(model)
        logger.info(
            "Issued invitation code for roles %s, created by: %s",
            [r.value for r in role_list],
            created_by,
        )
        return model_to_invitation(model)

    def _is_expired(self, model: InvitationCodeModel, now: datetime) -> bool:
        # Missing or unreadable expiry counts as expired
        if not model.expires_at:
            return True
        try:
            return parse_timestamp(model.expires_at) < now
        except ValidationError:
            logger.warning("Invitation %s has unreadable expiry %r", model.code, model.expires_at)
            return True

    def _valid_roles(
        self, model: Optional[InvitationCodeModel], now: datetime
    ) -> Optional[List[Role]]:
        if model is None or self._is_expired(model, now):
            return None
        names = split_delimited(model.roles)
        if not names or any(name not in Role.values() for name in names):
            return None
        return [Role(name) for name in names]

    def validate(self, code: str, now: Optional[datetime] = None) -> InvitationValidation:
        """Check a code without consuming it.

        Fails closed: a missing code, a missing expiry or an expiry in the
        past all report the code as invalid.
        """
        now = parse_timestamp(now) if now else datetime.now(pytz.utc)
        roles = self._valid_roles(self.db.get(InvitationCodeModel, code), now)
        if roles is None:
            logger.info("Invalid or expired invitation code: %s", code)
            return InvitationValidation(valid=False)
        return InvitationValidation(valid=True, roles=roles)

    def consume(self, code: str, now: Optional[datetime] = None) -> List[Role]:
        """Validate a code and delete it without committing.

        For use inside an atomic block, e.g. registration.

        Raises:
            InvalidInvitationCodeError: If the code is missing or expired.
        """
        now = parse_timestamp(now) if now else datetime.now(pytz.utc)
        model = self.db.get(InvitationCodeModel, code)
        roles = self._valid_roles(model, now)
        if roles is None:
            raise InvalidInvitationCodeError(code)
        self.db.delete(model)
        self.db.flush()
        return roles

    def redeem(self, code: str, now: Optional[datetime] = None) -> List[Role]:
        """Consume a code.

        Returns:
            The roles the code granted.

        Raises:
            InvalidInvitationCodeError: If the code is missing, expired or
                already redeemed.
        """
        with atomic(self.db):
            roles = self.consume(code, now=now)
        logger.info("Redeemed invitation code: %s", code)
        return roles

    def list_invitations(self) -> List[Invitation]:
        models = self.db.scalars(
            select(InvitationCodeModel).order_by(InvitationCodeModel.created_at.desc())
        ).all()
        return [model_to_invitation(m) for m in models]

    def delete_invitation(self, code: str) -> None:
        """Delete an invitation code.

        Raises:
            InvitationNotFoundError: If the code is not found.
        """
        with atomic(self.db):
            model = self.db.get(InvitationCodeModel, code)
            if model is None:
                raise InvitationNotFoundError(code)
            self.db.delete(model)
        logger.info("Deleted invitation code: %s", code)

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete every code that has expired or has no expiry.

        Returns:
            Number of codes removed.
        """
        now = parse_timestamp(now) if now else datetime.now(pytz.utc)
        removed = 0
        with atomic(self.db):
            for model in self.db.scalars(select(InvitationCodeModel)).all():
                if self._is_expired(model, now):
                    self.db.delete(model)
                    removed += 1
        if removed:
            logger.info("Purged %d expired invitation codes", removed)
        return removed
