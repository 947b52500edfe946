"""Review versioning engine.

Reviews are append-only. Each (reviewer, target) pair owns one chain of
versions linked through previous_review_id; exactly the newest version of a
chain carries is_latest. Revising inserts a new row and relinks, deleting
removes a whole chain at once, and aggregation weights the latest ratings of a
target by the requesting student's trusted reviewers.
"""

import logging
from collections import deque
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Union

import pytz
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from config import REVIEW_FEEDBACK_MESSAGE_TYPE
from core.database import atomic
from core.exceptions import (
    AnswerNotFoundError,
    PermissionDeniedError,
    QuestionNotFoundError,
    ReviewNotFoundError,
    StaleReviewError,
)
from models.answer import AnswerModel
from models.message import MessageModel
from models.question import QuestionModel
from models.review import ReviewModel
from models.review_update import ReviewUpdateModel
from models.trusted_reviewer import TrustedReviewerModel
from schemas.review import Review, ReviewerScore, TargetType
from utils.converters import model_to_review
from utils.validators import coerce_target_type, require_text, validate_rating

logger = logging.getLogger(__name__)


def purge_reviews_for_targets(
    db: Session, target_type: Union[TargetType, str], target_ids: Iterable[int]
) -> int:
    """Delete every review version aimed at the given targets.

    Does not commit; callers run it inside their own atomic block. Reviews
    carry no foreign key to questions or answers, so removing content must
    call this explicitly.

    Returns:
        Number of review rows deleted.
    """
    target_type = coerce_target_type(target_type)
    ids = list(target_ids)
    if not ids:
        return 0
    result = db.execute(
        delete(ReviewModel)
        .where(
            ReviewModel.target_type == target_type.value,
            ReviewModel.target_id.in_(ids),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


class ReviewManager:
    """Manages review chains and rating aggregation."""

    def __init__(self, db: Session):
        self.db = db

    def _get_model(self, review_id: int) -> ReviewModel:
        model = self.db.get(ReviewModel, review_id)
        if model is None:
            raise ReviewNotFoundError(review_id)
        return model

    def _ensure_target_exists(self, target_type: TargetType, target_id: int) -> None:
        if target_type is TargetType.QUESTION:
            if self.db.get(QuestionModel, target_id) is None:
                raise QuestionNotFoundError(target_id)
        elif self.db.get(AnswerModel, target_id) is None:
            raise AnswerNotFoundError(target_id)

    def _latest_model(
        self, reviewer_username: str, target_type: TargetType, target_id: int
    ) -> Optional[ReviewModel]:
        return self.db.scalars(
            select(ReviewModel).where(
                ReviewModel.reviewer_username == reviewer_username,
                ReviewModel.target_type == target_type.value,
                ReviewModel.target_id == target_id,
                ReviewModel.is_latest.is_(True),
            )
        ).first()

    def _append_version(
        self,
        reviewer_username: str,
        target_type: TargetType,
        target_id: int,
        rating: int,
        comment: str,
        previous: Optional[ReviewModel],
    ) -> ReviewModel:
        # Caller holds the transaction open
        if previous is not None:
            previous.is_latest = False
            # The old row must stop being latest before the new one exists
            self.db.flush()
        model = ReviewModel(
            reviewer_username=reviewer_username,
            target_type=target_type.value,
            target_id=target_id,
            rating=rating,
            comment=comment,
            created_at=datetime.now(pytz.utc).isoformat(),
            previous_review_id=previous.id if previous is not None else None,
            is_latest=True,
        )
        self.db.add(model)
        self.db.flush()
        self._record_update(reviewer_username)
        return model

    def _record_update(self, reviewer_username: str) -> None:
        self.db.add(
            ReviewUpdateModel(
                reviewer_username=reviewer_username,
                created_at=datetime.now(pytz.utc).isoformat(),
            )
        )
        self.db.flush()

    def submit_review(
        self,
        reviewer_username: str,
        target_type: Union[TargetType, str],
        target_id: int,
        rating: int,
        comment: str = "",
    ) -> Review:
        """Review a question or an answer.

        If the reviewer already has a review of this target, the new rating
        becomes the next version of that chain rather than a second chain.

        Args:
            reviewer_username: Author of the review.
            target_type: "question" or "answer".
            target_id: Id of the reviewed question or answer.
            rating: Whole number from 1 to 5.
            comment: Free text.

        Returns:
            The stored Review, marked latest.

        Raises:
            ValidationError: If the rating or target type is invalid.
            QuestionNotFoundError: If the reviewed question does not exist.
            AnswerNotFoundError: If the reviewed answer does not exist.
        """
        reviewer_username = require_text(reviewer_username, "Reviewer")
        target_type = coerce_target_type(target_type)
        validate_rating(rating)
        with atomic(self.db):
            self._ensure_target_exists(target_type, target_id)
            previous = self._latest_model(reviewer_username, target_type, target_id)
            model = self._append_version(
                reviewer_username, target_type, target_id, rating, comment or "", previous
            )
        logger.info(
            "Review %d by %s on %s %d (previous: %s)",
            model.id,
            reviewer_username,
            target_type.value,
            target_id,
            model.previous_review_id,
        )
        return model_to_review(model)

    def revise_review(
        self,
        previous_review_id: int,
        rating: int,
        comment: str = "",
        reviewer_username: Optional[str] = None,
    ) -> Review:
        """Append a new version to a review chain.

        In one transaction the given row stops being latest, a new row that
        points back at it is inserted as latest, and an update notification is
        logged for students who trust the reviewer.

        Args:
            previous_review_id: Id of the current latest version.
            rating: New rating, 1 to 5.
            comment: New comment.
            reviewer_username: If given, must match the chain's reviewer.

        Returns:
            The new latest Review.

        Raises:
            ReviewNotFoundError: If the review does not exist.
            StaleReviewError: If the review has already been superseded.
            PermissionDeniedError: If reviewer_username is not the author.
        """
        validate_rating(rating)
        with atomic(self.db):
            previous = self._get_model(previous_review_id)
            if reviewer_username is not None and previous.reviewer_username != reviewer_username:
                raise PermissionDeniedError("Only the original reviewer can revise a review.")
            if not previous.is_latest:
                logger.warning("Revision of superseded review %d rejected", previous_review_id)
                raise StaleReviewError(previous_review_id)
            model = self._append_version(
                previous.reviewer_username,
                TargetType(previous.target_type),
                previous.target_id,
                rating,
                comment or "",
                previous,
            )
        logger.info("Revised review %d as %d", previous_review_id, model.id)
        return model_to_review(model)

    def _collect_chain_ids(self, review_id: int) -> Set[int]:
        """Walk a chain in both directions from any of its members."""
        visited = {review_id}
        queue = deque([review_id])
        while queue:
            current = queue.popleft()
            neighbours = []
            previous_id = self.db.scalar(
                select(ReviewModel.previous_review_id).where(ReviewModel.id == current)
            )
            if previous_id is not None:
                neighbours.append(previous_id)
            neighbours.extend(
                self.db.scalars(
                    select(ReviewModel.id).where(ReviewModel.previous_review_id == current)
                ).all()
            )
            for neighbour in neighbours:
                if neighbour not in visited:
                    visited.add(neighbour)
                    queue.append(neighbour)
        return visited

    def delete_review_chain(self, review_id: int) -> int:
        """Delete every version of the chain containing review_id.

        The whole chain is collected first and then removed in one
        transaction, so no caller ever sees part of a chain deleted.

        Returns:
            Number of rows deleted.

        Raises:
            ReviewNotFoundError: If the review does not exist.
        """
        with atomic(self.db):
            self._get_model(review_id)
            chain_ids = self._collect_chain_ids(review_id)
            result = self.db.execute(
                delete(ReviewModel)
                .where(ReviewModel.id.in_(chain_ids))
                .execution_options(synchronize_session=False)
            )
            deleted = result.rowcount or 0
        logger.info(
            "Deleted review chain from %d: ids %s, %d rows",
            review_id,
            sorted(chain_ids),
            deleted,
        )
        return deleted

    def get_review(self, review_id: int) -> Review:
        return model_to_review(self._get_model(review_id))

    def get_latest(
        self,
        reviewer_username: str,
        target_type: Union[TargetType, str],
        target_id: int,
    ) -> Optional[Review]:
        """Latest review by one reviewer for one target, or None."""
        model = self._latest_model(
            reviewer_username, coerce_target_type(target_type), target_id
        )
        return model_to_review(model) if model is not None else None

    def latest_reviews_for_target(
        self, target_type: Union[TargetType, str], target_id: int
    ) -> List[Review]:
        target_type = coerce_target_type(target_type)
        models = self.db.scalars(
            select(ReviewModel)
            .where(
                ReviewModel.target_type == target_type.value,
                ReviewModel.target_id == target_id,
                ReviewModel.is_latest.is_(True),
            )
            .order_by(ReviewModel.created_at.desc(), ReviewModel.id.desc())
        ).all()
        return [model_to_review(m) for m in models]

    def get_chain(
        self,
        reviewer_username: str,
        target_type: Union[TargetType, str],
        target_id: int,
    ) -> List[Review]:
        """Versions of one reviewer's review of one target, oldest first."""
        latest = self._latest_model(
            reviewer_username, coerce_target_type(target_type), target_id
        )
        if latest is None:
            return []
        return self._walk_back(latest)

    def get_chain_for_review(self, review_id: int) -> List[Review]:
        """Full chain containing review_id, oldest first."""
        self._get_model(review_id)
        chain_ids = self._collect_chain_ids(review_id)
        models = self.db.scalars(
            select(ReviewModel).where(ReviewModel.id.in_(chain_ids))
        ).all()
        newest = next((m for m in models if m.is_latest), None)
        if newest is None:
            newest = max(models, key=lambda m: m.id)
        return self._walk_back(newest)

    def _walk_back(self, newest: ReviewModel) -> List[Review]:
        chain = []
        seen: Set[int] = set()
        current: Optional[ReviewModel] = newest
        while current is not None and current.id not in seen:
            seen.add(current.id)
            chain.append(model_to_review(current))
            if current.previous_review_id is None:
                break
            current = self.db.get(ReviewModel, current.previous_review_id)
        chain.reverse()
        return chain

    def reviews_by_reviewer(
        self, reviewer_username: str, latest_only: bool = False
    ) -> List[Review]:
        query = select(ReviewModel).where(
            ReviewModel.reviewer_username == reviewer_username
        )
        if latest_only:
            query = query.where(ReviewModel.is_latest.is_(True))
        models = self.db.scalars(
            query.order_by(ReviewModel.created_at.desc(), ReviewModel.id.desc())
        ).all()
        return [model_to_review(m) for m in models]

    def trusted_weights_for_target(
        self,
        target_type: Union[TargetType, str],
        target_id: int,
        student_username: str,
    ) -> Dict[str, int]:
        """Weights of the student's trusted reviewers who reviewed the target."""
        target_type = coerce_target_type(target_type)
        rows = self.db.execute(
            select(ReviewModel.reviewer_username, TrustedReviewerModel.weight)
            .join(
                TrustedReviewerModel,
                TrustedReviewerModel.reviewer_username == ReviewModel.reviewer_username,
            )
            .where(
                ReviewModel.target_type == target_type.value,
                ReviewModel.target_id == target_id,
                ReviewModel.is_latest.is_(True),
                TrustedReviewerModel.student_username == student_username,
            )
        ).all()
        return {reviewer: weight for reviewer, weight in rows}

    def aggregate_rating(
        self,
        target_type: Union[TargetType, str],
        target_id: int,
        student_username: str,
    ) -> Optional[float]:
        """Trust-weighted average of the latest ratings of a target.

        Only reviewers the student trusts count; each contributes its latest
        rating times the student's weight for it. Reviews by reviewers the
        student does not trust are left out entirely.

        Returns:
            sum(rating * weight) / sum(weight), or None when none of the
            student's trusted reviewers has reviewed the target.
        """
        target_type = coerce_target_type(target_type)
        rows = self.db.execute(
            select(ReviewModel.rating, TrustedReviewerModel.weight)
            .join(
                TrustedReviewerModel,
                TrustedReviewerModel.reviewer_username == ReviewModel.reviewer_username,
            )
            .where(
                ReviewModel.target_type == target_type.value,
                ReviewModel.target_id == target_id,
                ReviewModel.is_latest.is_(True),
                TrustedReviewerModel.student_username == student_username,
            )
        ).all()
        total_weight = sum(weight for _, weight in rows)
        if not total_weight:
            return None
        return sum(rating * weight for rating, weight in rows) / total_weight

    def reviewer_scorecard(self) -> List[ReviewerScore]:
        """Average latest rating, review count and feedback count per reviewer."""
        rows = self.db.execute(
            select(
                ReviewModel.reviewer_username,
                func.avg(ReviewModel.rating),
                func.count(ReviewModel.id),
            )
            .where(ReviewModel.is_latest.is_(True))
            .group_by(ReviewModel.reviewer_username)
            .order_by(ReviewModel.reviewer_username)
        ).all()
        scores = []
        for reviewer, average, count in rows:
            reviewed_answers = select(ReviewModel.target_id).where(
                ReviewModel.reviewer_username == reviewer,
                ReviewModel.target_type == TargetType.ANSWER.value,
                ReviewModel.is_latest.is_(True),
            )
            feedback = self.db.scalar(
                select(func.count(MessageModel.id)).where(
                    MessageModel.recipient == reviewer,
                    MessageModel.message_type == REVIEW_FEEDBACK_MESSAGE_TYPE,
                    MessageModel.answer_id.in_(reviewed_answers),
                )
            )
            scores.append(
                ReviewerScore(
                    reviewer_username=reviewer,
                    average_rating=float(average),
                    review_count=count,
                    feedback_count=feedback or 0,
                )
            )
        return scores
