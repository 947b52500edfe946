"""Keyword search across questions and answers."""

import logging
from typing import List

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from models.answer import AnswerModel
from models.question import QuestionModel
from schemas.question import Question
from utils.converters import model_to_question

logger = logging.getLogger(__name__)


def _like_pattern(keyword: str) -> str:
    # Match the keyword literally, not as a LIKE pattern
    escaped = keyword.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def contains_text(column, keyword: str):
    """Case-insensitive substring predicate on a text column.

    Both sides are case-folded, so non-ASCII letters such as "É" and "é"
    compare equal. Relies on the ``casefold`` function registered on every
    SQLite connection by ``core.database.make_engine``.
    """
    return func.casefold(column).like(_like_pattern(keyword.casefold()), escape="\\")


def search_questions(db: Session, keyword: str) -> List[Question]:
    """Find questions whose title, content or any answer contains keyword.

    Matching is case-insensitive substring matching. A question with several
    matching answers is returned once. A blank keyword returns every question.

    Args:
        db: Database session.
        keyword: Text to look for.

    Returns:
        Matching questions ordered by id.
    """
    keyword = (keyword or "").strip()
    query = select(QuestionModel)
    if keyword:
        matching_answers = select(AnswerModel.question_id).where(
            contains_text(AnswerModel.content, keyword)
        )
        query = query.where(
            or_(
                contains_text(QuestionModel.title, keyword),
                contains_text(QuestionModel.content, keyword),
                QuestionModel.id.in_(matching_answers),
            )
        )
    models = db.scalars(query.order_by(QuestionModel.id)).all()
    logger.debug("Search for %r matched %d questions", keyword, len(models))
    return [model_to_question(m) for m in models]
