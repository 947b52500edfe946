"""Reviewer request workflow.

Each user has at most one request. It starts pending and moves once, to
approved (which grants the reviewer role) or to denied. Reapplying needs
the old request cleared first.
"""

import logging
from datetime import datetime
from typing import List, Optional

import pytz
from sqlalchemy import select
from sqlalchemy.orm import Session

from core.database import atomic
from core.exceptions import InvalidStateTransitionError, NotFoundError, UserNotFoundError
from models.reviewer_request import ReviewerRequestModel
from models.user import UserModel
from schemas.review import ReviewerRequest, ReviewerRequestStatus
from schemas.user import Role
from utils.converters import model_to_reviewer_request
from utils.user_manager import UserManager

logger = logging.getLogger(__name__)


class ReviewerRequestManager:
    """Manages requests for the reviewer role."""

    def __init__(self, db: Session):
        self.db = db

    def _get_model(self, username: str) -> Optional[ReviewerRequestModel]:
        return self.db.scalars(
            select(ReviewerRequestModel).where(ReviewerRequestModel.username == username)
        ).first()

    def request_reviewer_role(self, username: str) -> ReviewerRequest:
        """File a pending request.

        Raises:
            UserNotFoundError: If the user does not exist.
            InvalidStateTransitionError: If the user already has a request.
        """
        now = datetime.now(pytz.utc).isoformat()
        with atomic(self.db):
            if self.db.get(UserModel, username) is None:
                raise UserNotFoundError(username)
            existing = self._get_model(username)
            if existing is not None:
                raise InvalidStateTransitionError(
                    f"User '{username}' already has a {existing.status} reviewer request"
                )
            model = ReviewerRequestModel(
                username=username,
                status=ReviewerRequestStatus.PENDING.value,
                created_at=now,
                updated_at=now,
            )
            self.db.add(model)
        logger.info("Reviewer request filed by %s", username)
        return model_to_reviewer_request(model)

    def get_status(self, username: str) -> Optional[ReviewerRequestStatus]:
        model = self._get_model(username)
        return ReviewerRequestStatus(model.status) if model is not None else None

    def has_pending_request(self, username: str) -> bool:
        return self.get_status(username) is ReviewerRequestStatus.PENDING

    def list_pending(self) -> List[ReviewerRequest]:
        models = self.db.scalars(
            select(ReviewerRequestModel)
            .where(ReviewerRequestModel.status == ReviewerRequestStatus.PENDING.value)
            .order_by(ReviewerRequestModel.created_at, ReviewerRequestModel.id)
        ).all()
        return [model_to_reviewer_request(m) for m in models]

    def list_all(self) -> List[ReviewerRequest]:
        models = self.db.scalars(
            select(ReviewerRequestModel).order_by(
                ReviewerRequestModel.created_at, ReviewerRequestModel.id
            )
        ).all()
        return [model_to_reviewer_request(m) for m in models]

    def _transition(
        self, username: str, target: ReviewerRequestStatus
    ) -> ReviewerRequestModel:
        # Caller holds the transaction open
        model = self._get_model(username)
        if model is None:
            raise NotFoundError("Reviewer request", username)
        if model.status != ReviewerRequestStatus.PENDING.value:
            logger.warning(
                "Reviewer request of %s is %s, cannot move to %s",
                username,
                model.status,
                target.value,
            )
            raise InvalidStateTransitionError(
                f"Reviewer request of '{username}' is already {model.status}"
            )
        model.status = target.value
        model.updated_at = datetime.now(pytz.utc).isoformat()
        return model

    def approve(self, username: str) -> ReviewerRequest:
        """Approve a pending request and grant the reviewer role together.

        A user who already holds the role keeps it; the request is still
        marked approved.
        """
        with atomic(self.db):
            model = self._transition(username, ReviewerRequestStatus.APPROVED)
            users = UserManager(self.db)
            if not users.has_role(username, Role.REVIEWER):
                users.add_role_in_transaction(username, Role.REVIEWER)
        logger.info("Approved reviewer request of %s", username)
        return model_to_reviewer_request(model)

    def deny(self, username: str) -> ReviewerRequest:
        with atomic(self.db):
            model = self._transition(username, ReviewerRequestStatus.DENIED)
        logger.info("Denied reviewer request of %s", username)
        return model_to_reviewer_request(model)

    def clear_request(self, username: str) -> None:
        """Remove a user's request so that they may apply again."""
        with atomic(self.db):
            model = self._get_model(username)
            if model is None:
                raise NotFoundError("Reviewer request", username)
            self.db.delete(model)
        logger.info("Cleared reviewer request of %s", username)
