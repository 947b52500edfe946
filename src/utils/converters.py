"""Converters between table models and schema records."""

from typing import Iterable, List

from config import TAG_DELIMITER
from models.answer import AnswerModel
from models.flag import FlagModel
from models.invitation_code import InvitationCodeModel
from models.message import MessageModel
from models.question import QuestionModel
from models.review import ReviewModel
from models.reviewer_request import ReviewerRequestModel
from models.user import UserModel
from schemas.flag import Flag
from schemas.invitation import Invitation
from schemas.question import Answer, AnswerNode, Question
from schemas.review import Review, ReviewerRequest
from schemas.message import Message
from schemas.user import Role, User


def split_delimited(value: str) -> List[str]:
    """Split a delimited column, dropping empty pieces."""
    if not value:
        return []
    return [part.strip() for part in value.split(TAG_DELIMITER) if part.strip()]


def join_delimited(values: Iterable[str]) -> str:
    return TAG_DELIMITER.join(values)


def model_to_user(model: UserModel, roles: Iterable[str]) -> User:
    known = [Role(r) for r in roles if r in Role.values()]
    return User(
        username=model.username,
        roles=known,
        has_one_time_password=model.one_time_password_hash is not None,
        created_at=model.created_at,
    )


def model_to_invitation(model: InvitationCodeModel) -> Invitation:
    return Invitation(
        code=model.code,
        roles=[Role(r) for r in split_delimited(model.roles)],
        created_by=model.created_by,
        created_at=model.created_at,
        expires_at=model.expires_at,
    )


def model_to_question(model: QuestionModel) -> Question:
    return Question(
        id=model.id,
        title=model.title,
        content=model.content,
        author=model.author,
        tags=split_delimited(model.tags),
        accepted_answer_id=model.accepted_answer_id,
        answered=model.accepted_answer_id is not None,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def model_to_answer(model: AnswerModel) -> Answer:
    return Answer(
        id=model.id,
        question_id=model.question_id,
        content=model.content,
        author=model.author,
        parent_answer_id=model.parent_answer_id,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def model_to_answer_node(model: AnswerModel) -> AnswerNode:
    return AnswerNode(**model_to_answer(model).model_dump())


def model_to_review(model: ReviewModel) -> Review:
    return Review(
        id=model.id,
        reviewer_username=model.reviewer_username,
        target_type=model.target_type,
        target_id=model.target_id,
        rating=model.rating,
        comment=model.comment or "",
        created_at=model.created_at,
        previous_review_id=model.previous_review_id,
        is_latest=bool(model.is_latest),
    )


def model_to_reviewer_request(model: ReviewerRequestModel) -> ReviewerRequest:
    return ReviewerRequest(
        username=model.username,
        status=model.status,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def model_to_message(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        sender=model.sender,
        recipient=model.recipient,
        question_id=model.question_id,
        answer_id=model.answer_id,
        content=model.content,
        message_type=model.message_type,
        created_at=model.created_at,
        is_read=bool(model.is_read),
    )


def model_to_flag(model: FlagModel) -> Flag:
    return Flag(
        id=model.id,
        item_type=model.item_type,
        item_id=model.item_id,
        flagged_by=model.flagged_by,
        reason=model.reason,
        created_at=model.created_at,
    )
