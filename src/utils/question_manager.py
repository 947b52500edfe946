"""Question and answer thread store.

Questions own a forest of answers: root answers reply to the question, and
threaded answers reply to another answer of the same question. Removing a
question or an answer removes its replies through the storage cascade and
its reviews and moderation flags through explicit purges in the same
transaction.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import pytz
from sqlalchemy import select
from sqlalchemy.orm import Session

from config import TAG_DELIMITER
from core.database import atomic
from core.exceptions import (
    AnswerNotFoundError,
    QuestionNotFoundError,
    ValidationError,
)
from models.answer import AnswerModel
from models.question import QuestionModel
from schemas.flag import FlagItemType
from schemas.question import Answer, AnswerNode, Question
from schemas.review import TargetType
from utils.converters import (
    join_delimited,
    model_to_answer,
    model_to_answer_node,
    model_to_question,
)
from utils.flag_manager import purge_flags_for_items
from utils.review_manager import purge_reviews_for_targets
from utils.search import contains_text, search_questions
from utils.validators import require_text, validate_title

logger = logging.getLogger(__name__)


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """Trim tags and drop blanks and case-insensitive duplicates, keeping order.

    Raises:
        ValidationError: If a tag contains the storage delimiter.
    """
    result: List[str] = []
    seen = set()
    for tag in tags or []:
        tag = (tag or "").strip()
        if not tag:
            continue
        if TAG_DELIMITER in tag:
            raise ValidationError(f"Tag '{tag}' cannot contain '{TAG_DELIMITER}'.")
        if tag.casefold() in seen:
            continue
        seen.add(tag.casefold())
        result.append(tag)
    return result


class QuestionManager:
    """Manages questions, threaded answers and accepted answers."""

    def __init__(self, db: Session):
        self.db = db

    # --- Questions ---

    def _get_question_model(self, question_id: int) -> QuestionModel:
        model = self.db.get(QuestionModel, question_id)
        if model is None:
            raise QuestionNotFoundError(question_id)
        return model

    def create_question(
        self,
        title: str,
        content: str,
        author: str,
        tags: Optional[Iterable[str]] = None,
    ) -> Question:
        """Create a question.

        Args:
            title: Non-empty title.
            content: Body text, may be empty.
            author: Username of the asker.
            tags: Tags in display order.

        Returns:
            The stored Question with its generated id.

        Raises:
            ValidationError: If the title or author is empty or a tag is invalid.
        """
        title = validate_title(title)
        author = require_text(author, "Author")
        tag_list = normalize_tags(tags)
        now = datetime.now(pytz.utc).isoformat()
        model = QuestionModel(
            title=title,
            content=(content or "").strip(),
            author=author,
            tags=join_delimited(tag_list),
            created_at=now,
            updated_at=now,
        )
        with atomic(self.db):
            self.db.add(model)
        logger.info("Created question %d by %s", model.id, author)
        return model_to_question(model)

    def get_question(self, question_id: int) -> Question:
        return model_to_question(self._get_question_model(question_id))

    def list_questions(self, answered: Optional[bool] = None) -> List[Question]:
        """List questions ordered by id.

        Args:
            answered: True keeps only questions with an accepted answer, False
                only those without one, None keeps all.
        """
        query = select(QuestionModel)
        if answered is True:
            query = query.where(QuestionModel.accepted_answer_id.is_not(None))
        elif answered is False:
            query = query.where(QuestionModel.accepted_answer_id.is_(None))
        models = self.db.scalars(query.order_by(QuestionModel.id)).all()
        return [model_to_question(m) for m in models]

    def update_question(
        self,
        question_id: int,
        title: Optional[str] = None,
        content: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> Question:
        """Change the title, content or tags of a question.

        Only arguments that are not None are applied. Ownership is checked by
        the caller.
        """
        with atomic(self.db):
            model = self._get_question_model(question_id)
            if title is not None:
                model.title = validate_title(title)
            if content is not None:
                model.content = content.strip()
            if tags is not None:
                model.tags = join_delimited(normalize_tags(tags))
            model.updated_at = datetime.now(pytz.utc).isoformat()
        logger.info("Updated question %d", question_id)
        return model_to_question(model)

    def mark_accepted(self, question_id: int, answer_id: Optional[int]) -> Question:
        """Point a question's accepted answer at answer_id.

        The pointer is written as given; whether the answer belongs to the
        question is the caller's concern. None clears the mark.
        """
        with atomic(self.db):
            model = self._get_question_model(question_id)
            model.accepted_answer_id = answer_id
            model.updated_at = datetime.now(pytz.utc).isoformat()
        logger.info("Question %d accepted answer set to %s", question_id, answer_id)
        return model_to_question(model)

    def delete_question(self, question_id: int) -> None:
        """Delete a question with its answers, replies, reviews and flags.

        Raises:
            QuestionNotFoundError: If the question does not exist.
        """
        with atomic(self.db):
            model = self._get_question_model(question_id)
            answer_ids = self.db.scalars(
                select(AnswerModel.id).where(AnswerModel.question_id == question_id)
            ).all()
            purged = purge_reviews_for_targets(self.db, TargetType.QUESTION, [question_id])
            purged += purge_reviews_for_targets(self.db, TargetType.ANSWER, answer_ids)
            purge_flags_for_items(self.db, FlagItemType.QUESTION, [question_id])
            purge_flags_for_items(self.db, FlagItemType.ANSWER, answer_ids)
            # Answers and replies go with the question through ON DELETE CASCADE
            self.db.delete(model)
        logger.info(
            "Deleted question %d with %d answers and %d reviews",
            question_id,
            len(answer_ids),
            purged,
        )

    def filter_by_tag(self, tag: str) -> List[Question]:
        """Questions carrying tag, compared case-insensitively as a whole tag."""
        wanted = (tag or "").strip().casefold()
        if not wanted:
            return []
        candidates = self.db.scalars(
            select(QuestionModel)
            .where(contains_text(QuestionModel.tags, wanted))
            .order_by(QuestionModel.id)
        ).all()
        results = []
        for model in candidates:
            question = model_to_question(model)
            if wanted in (t.casefold() for t in question.tags):
                results.append(question)
        return results

    def search(self, keyword: str) -> List[Question]:
        return search_questions(self.db, keyword)

    # --- Answers ---

    def _get_answer_model(self, answer_id: int) -> AnswerModel:
        model = self.db.get(AnswerModel, answer_id)
        if model is None:
            raise AnswerNotFoundError(answer_id)
        return model

    def create_answer(
        self,
        question_id: int,
        content: str,
        author: str,
        parent_answer_id: Optional[int] = None,
    ) -> Answer:
        """Answer a question, or reply to one of its answers.

        Args:
            question_id: Question being answered.
            content: Non-empty answer text.
            author: Username of the answerer.
            parent_answer_id: Answer being replied to, None for a root answer.

        Returns:
            The stored Answer.

        Raises:
            QuestionNotFoundError: If the question does not exist.
            AnswerNotFoundError: If the parent answer does not exist.
            ValidationError: If the content is empty or the parent answer
                belongs to another question.
        """
        content = require_text(content, "Answer")
        author = require_text(author, "Author")
        now = datetime.now(pytz.utc).isoformat()
        with atomic(self.db):
            self._get_question_model(question_id)
            if parent_answer_id is not None:
                parent = self._get_answer_model(parent_answer_id)
                if parent.question_id != question_id:
                    raise ValidationError(
                        f"Answer {parent_answer_id} does not belong to question {question_id}."
                    )
            model = AnswerModel(
                question_id=question_id,
                content=content,
                author=author,
                parent_answer_id=parent_answer_id,
                created_at=now,
                updated_at=now,
            )
            self.db.add(model)
        logger.info(
            "Created answer %d on question %d (parent: %s)",
            model.id,
            question_id,
            parent_answer_id,
        )
        return model_to_answer(model)

    def get_answer(self, answer_id: int) -> Answer:
        return model_to_answer(self._get_answer_model(answer_id))

    def list_answers(self, question_id: int) -> List[Answer]:
        """All answers of a question as a flat list ordered by id."""
        self._get_question_model(question_id)
        models = self.db.scalars(
            select(AnswerModel)
            .where(AnswerModel.question_id == question_id)
            .order_by(AnswerModel.id)
        ).all()
        return [model_to_answer(m) for m in models]

    def update_answer(self, answer_id: int, content: str) -> Answer:
        content = require_text(content, "Answer")
        with atomic(self.db):
            model = self._get_answer_model(answer_id)
            model.content = content
            model.updated_at = datetime.now(pytz.utc).isoformat()
        logger.info("Updated answer %d", answer_id)
        return model_to_answer(model)

    def delete_answer(self, answer_id: int) -> None:
        """Delete an answer, every reply beneath it and their reviews and flags.

        Clears the question's accepted answer if it pointed into the removed
        subtree.
        """
        with atomic(self.db):
            model = self._get_answer_model(answer_id)
            rows = self.db.execute(
                select(AnswerModel.id, AnswerModel.parent_answer_id).where(
                    AnswerModel.question_id == model.question_id
                )
            ).all()
            children: Dict[int, List[int]] = {}
            for row_id, parent_id in rows:
                children.setdefault(parent_id, []).append(row_id)
            subtree = []
            pending = [answer_id]
            while pending:
                current = pending.pop()
                subtree.append(current)
                pending.extend(children.get(current, []))

            purged = purge_reviews_for_targets(self.db, TargetType.ANSWER, subtree)
            purge_flags_for_items(self.db, FlagItemType.ANSWER, subtree)
            question = self.db.get(QuestionModel, model.question_id)
            if question is not None and question.accepted_answer_id in subtree:
                question.accepted_answer_id = None
            self.db.delete(model)
        logger.info(
            "Deleted answer %d with %d replies and %d reviews",
            answer_id,
            len(subtree) - 1,
            purged,
        )

    def load_thread(self, question_id: int) -> List[AnswerNode]:
        """Rebuild the reply tree of a question.

        Every row is indexed by id first and attached to its parent in a
        second pass, so a reply is placed correctly whatever order the rows
        arrive in.

        Returns:
            Root answers in id order, each with its replies nested.

        Raises:
            QuestionNotFoundError: If the question does not exist.
        """
        self._get_question_model(question_id)
        models = self.db.scalars(
            select(AnswerModel)
            .where(AnswerModel.question_id == question_id)
            .order_by(AnswerModel.id)
        ).all()

        nodes: Dict[int, AnswerNode] = {m.id: model_to_answer_node(m) for m in models}

        roots: List[AnswerNode] = []
        for model in models:
            node = nodes[model.id]
            if model.parent_answer_id is None:
                roots.append(node)
            elif model.parent_answer_id in nodes:
                nodes[model.parent_answer_id].replies.append(node)
            else:
                logger.warning(
                    "Answer %d points at missing parent %d, skipped",
                    model.id,
                    model.parent_answer_id,
                )
        return roots
