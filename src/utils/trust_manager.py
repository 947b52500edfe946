"""Trusted reviewers and review update notifications.

A student trusts a reviewer with a weight from 1 to 5. Every review a
reviewer submits or revises appends a row to review_updates; each student
keeps a cursor per reviewer marking the newest update they have seen.
"""

import logging
from typing import Dict, List

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from core.database import atomic
from core.exceptions import NotFoundError, UserNotFoundError, ValidationError
from models.review_update import ReviewUpdateAckModel, ReviewUpdateModel
from models.trusted_reviewer import TrustedReviewerModel
from models.user import UserModel
from utils.validators import validate_rating

logger = logging.getLogger(__name__)


class TrustManager:
    """Manages trusted reviewer weights and update acknowledgments."""

    def __init__(self, db: Session):
        self.db = db

    def set_trusted_reviewer(
        self, student_username: str, reviewer_username: str, weight: int = 1
    ) -> None:
        """Trust a reviewer, or change the weight of one already trusted.

        Raises:
            ValidationError: If the weight is outside 1..5 or the student
                names themselves.
            UserNotFoundError: If either user does not exist.
        """
        validate_rating(weight, what="Weight")
        if student_username == reviewer_username:
            raise ValidationError("You cannot add yourself as a trusted reviewer.")
        with atomic(self.db):
            for username in (student_username, reviewer_username):
                if self.db.get(UserModel, username) is None:
                    raise UserNotFoundError(username)
            model = self.db.get(
                TrustedReviewerModel,
                {"student_username": student_username, "reviewer_username": reviewer_username},
            )
            if model is None:
                self.db.add(
                    TrustedReviewerModel(
                        student_username=student_username,
                        reviewer_username=reviewer_username,
                        weight=weight,
                    )
                )
            else:
                model.weight = weight
        logger.info(
            "%s trusts %s with weight %d", student_username, reviewer_username, weight
        )

    def remove_trusted_reviewer(self, student_username: str, reviewer_username: str) -> None:
        with atomic(self.db):
            model = self.db.get(
                TrustedReviewerModel,
                {"student_username": student_username, "reviewer_username": reviewer_username},
            )
            if model is None:
                raise NotFoundError("Trusted reviewer", reviewer_username)
            self.db.delete(model)
        logger.info("%s no longer trusts %s", student_username, reviewer_username)

    def get_trusted_reviewers(self, student_username: str) -> Dict[str, int]:
        """Map of reviewer username to weight for one student."""
        rows = self.db.execute(
            select(TrustedReviewerModel.reviewer_username, TrustedReviewerModel.weight)
            .where(TrustedReviewerModel.student_username == student_username)
            .order_by(TrustedReviewerModel.reviewer_username)
        ).all()
        return {reviewer: weight for reviewer, weight in rows}

    def updated_trusted_reviewers(self, student_username: str) -> List[str]:
        """Trusted reviewers with updates the student has not acknowledged yet.

        Returns:
            Reviewer usernames in alphabetical order.
        """
        cursor = func.coalesce(ReviewUpdateAckModel.last_seen_update_id, 0)
        rows = self.db.scalars(
            select(TrustedReviewerModel.reviewer_username)
            .join(
                ReviewUpdateModel,
                ReviewUpdateModel.reviewer_username == TrustedReviewerModel.reviewer_username,
            )
            .outerjoin(
                ReviewUpdateAckModel,
                (ReviewUpdateAckModel.student_username == TrustedReviewerModel.student_username)
                & (ReviewUpdateAckModel.reviewer_username == TrustedReviewerModel.reviewer_username),
            )
            .where(
                TrustedReviewerModel.student_username == student_username,
                ReviewUpdateModel.id > cursor,
            )
            .distinct()
            .order_by(TrustedReviewerModel.reviewer_username)
        ).all()
        return list(rows)

    def acknowledge_updates(self, student_username: str, reviewer_username: str) -> None:
        """Mark every current update of a reviewer as seen by one student.

        Other students trusting the same reviewer keep their own pending
        updates.
        """
        with atomic(self.db):
            newest = self.db.scalar(
                select(func.max(ReviewUpdateModel.id)).where(
                    ReviewUpdateModel.reviewer_username == reviewer_username
                )
            )
            if newest is None:
                return
            ack = self.db.get(
                ReviewUpdateAckModel,
                {"student_username": student_username, "reviewer_username": reviewer_username},
            )
            if ack is None:
                self.db.add(
                    ReviewUpdateAckModel(
                        student_username=student_username,
                        reviewer_username=reviewer_username,
                        last_seen_update_id=newest,
                    )
                )
            elif ack.last_seen_update_id < newest:
                ack.last_seen_update_id = newest
        logger.info(
            "%s acknowledged updates from %s up to %d",
            student_username,
            reviewer_username,
            newest,
        )

    def clear_updates_for_reviewer(self, reviewer_username: str) -> int:
        """Delete the whole update log of a reviewer for every student.

        Returns:
            Number of update rows removed.
        """
        with atomic(self.db):
            result = self.db.execute(
                delete(ReviewUpdateModel).where(
                    ReviewUpdateModel.reviewer_username == reviewer_username
                )
            )
            removed = result.rowcount or 0
        logger.info("Cleared %d review updates of %s", removed, reviewer_username)
        return removed
