"""Messaging and notification store.

Messages are scoped to a (question, answer) context, either of which may be
empty. Once sent a message never changes except for its read flag.
"""

import logging
from datetime import datetime
from typing import List, Optional

import pytz
from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from config import DEFAULT_MESSAGE_TYPE, REVIEW_FEEDBACK_MESSAGE_TYPE
from core.database import atomic
from core.exceptions import MessageNotFoundError, UserNotFoundError
from models.message import MessageModel
from models.user import UserModel
from schemas.message import Message
from utils.converters import model_to_message
from utils.validators import require_text

logger = logging.getLogger(__name__)


def _same_context(column, value: Optional[int]):
    # NULL never compares equal, so an empty context is matched with IS NULL
    return column.is_(None) if value is None else column == value


class MessageManager:
    """Stores and reads messages between users."""

    def __init__(self, db: Session):
        self.db = db

    def send(
        self,
        sender: str,
        recipient: str,
        content: str,
        question_id: Optional[int] = None,
        answer_id: Optional[int] = None,
        message_type: str = DEFAULT_MESSAGE_TYPE,
    ) -> Message:
        """Send a message.

        Args:
            sender: Username of the sender.
            recipient: Username of the recipient.
            content: Non-empty message text.
            question_id: Question the conversation is about, if any.
            answer_id: Answer the conversation is about, if any.
            message_type: Free-form tag such as "question" or "review-feedback".

        Returns:
            The stored, unread Message.

        Raises:
            ValidationError: If the content is empty.
            UserNotFoundError: If sender or recipient does not exist.
        """
        content = require_text(content, "Message")
        message_type = (message_type or DEFAULT_MESSAGE_TYPE).strip()
        with atomic(self.db):
            for username in (sender, recipient):
                if self.db.get(UserModel, username) is None:
                    raise UserNotFoundError(username)
            model = MessageModel(
                sender=sender,
                recipient=recipient,
                question_id=question_id,
                answer_id=answer_id,
                content=content,
                message_type=message_type,
                created_at=datetime.now(pytz.utc).isoformat(),
                is_read=False,
            )
            self.db.add(model)
        logger.info(
            "Message %d from %s to %s (%s)", model.id, sender, recipient, message_type
        )
        return model_to_message(model)

    def get_message(self, message_id: int) -> Message:
        model = self.db.get(MessageModel, message_id)
        if model is None:
            raise MessageNotFoundError(message_id)
        return model_to_message(model)

    def fetch_between(
        self,
        user_a: str,
        user_b: str,
        question_id: Optional[int] = None,
        answer_id: Optional[int] = None,
    ) -> List[Message]:
        """Conversation between two users in one context, oldest first."""
        models = self.db.scalars(
            select(MessageModel)
            .where(
                or_(
                    (MessageModel.sender == user_a) & (MessageModel.recipient == user_b),
                    (MessageModel.sender == user_b) & (MessageModel.recipient == user_a),
                ),
                _same_context(MessageModel.question_id, question_id),
                _same_context(MessageModel.answer_id, answer_id),
            )
            .order_by(MessageModel.created_at, MessageModel.id)
        ).all()
        return [model_to_message(m) for m in models]

    def fetch_all_for(self, username: str) -> List[Message]:
        """Every message sent or received by a user, newest first."""
        models = self.db.scalars(
            select(MessageModel)
            .where(or_(MessageModel.sender == username, MessageModel.recipient == username))
            .order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
        ).all()
        return [model_to_message(m) for m in models]

    def count_unread(
        self,
        recipient: str,
        question_id: Optional[int] = None,
        answer_id: Optional[int] = None,
    ) -> int:
        return self.db.scalar(
            select(func.count(MessageModel.id)).where(
                MessageModel.recipient == recipient,
                MessageModel.is_read.is_(False),
                _same_context(MessageModel.question_id, question_id),
                _same_context(MessageModel.answer_id, answer_id),
            )
        ) or 0

    def mark_read(
        self,
        recipient: str,
        question_id: Optional[int] = None,
        answer_id: Optional[int] = None,
    ) -> int:
        """Mark every unread message to recipient in one context as read.

        Returns:
            Number of messages flipped.
        """
        with atomic(self.db):
            result = self.db.execute(
                update(MessageModel)
                .where(
                    MessageModel.recipient == recipient,
                    MessageModel.is_read.is_(False),
                    _same_context(MessageModel.question_id, question_id),
                    _same_context(MessageModel.answer_id, answer_id),
                )
                .values(is_read=True)
                .execution_options(synchronize_session=False)
            )
            flipped = result.rowcount or 0
        logger.debug(
            "Marked %d messages read for %s on (%s, %s)",
            flipped,
            recipient,
            question_id,
            answer_id,
        )
        return flipped

    def fetch_review_feedback(
        self, reviewer: str, answer_id: Optional[int] = None
    ) -> List[Message]:
        """Review-feedback messages sent to a reviewer, newest first."""
        query = select(MessageModel).where(
            MessageModel.recipient == reviewer,
            MessageModel.message_type == REVIEW_FEEDBACK_MESSAGE_TYPE,
        )
        if answer_id is not None:
            query = query.where(MessageModel.answer_id == answer_id)
        models = self.db.scalars(
            query.order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
        ).all()
        return [model_to_message(m) for m in models]

    def feedback_count(self, reviewer: str, answer_id: Optional[int] = None) -> int:
        query = select(func.count(MessageModel.id)).where(
            MessageModel.recipient == reviewer,
            MessageModel.message_type == REVIEW_FEEDBACK_MESSAGE_TYPE,
        )
        if answer_id is not None:
            query = query.where(MessageModel.answer_id == answer_id)
        return self.db.scalar(query) or 0
