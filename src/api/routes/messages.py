"""Messaging routes."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends

from api.routes.auth import get_current_user
from core.dependencies import MessageManagerDep
from core.exceptions import PermissionDeniedError
from schemas.message import Message, SendMessageRequest, UnreadCountResponse
from schemas.user import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/messages", tags=["Messages"])


@router.post("", response_model=Message, summary="Send a message")
def send_message(
    req: SendMessageRequest,
    current_user: User = Depends(get_current_user),
    message_manager: MessageManagerDep = None,
) -> Message:
    return message_manager.send(
        current_user.username,
        req.recipient,
        req.content,
        question_id=req.question_id,
        answer_id=req.answer_id,
        message_type=req.message_type,
    )


@router.get("", response_model=List[Message], summary="Own messages, newest first")
def my_messages(
    current_user: User = Depends(get_current_user),
    message_manager: MessageManagerDep = None,
) -> List[Message]:
    return message_manager.fetch_all_for(current_user.username)


@router.get(
    "/with/{other}",
    response_model=List[Message],
    summary="Conversation with another user in one context",
)
def conversation(
    other: str,
    question_id: Optional[int] = None,
    answer_id: Optional[int] = None,
    current_user: User = Depends(get_current_user),
    message_manager: MessageManagerDep = None,
) -> List[Message]:
    return message_manager.fetch_between(
        current_user.username, other, question_id, answer_id
    )


@router.get("/unread", response_model=UnreadCountResponse, summary="Unread count")
def unread_count(
    question_id: Optional[int] = None,
    answer_id: Optional[int] = None,
    current_user: User = Depends(get_current_user),
    message_manager: MessageManagerDep = None,
) -> UnreadCountResponse:
    return UnreadCountResponse(
        unread=message_manager.count_unread(current_user.username, question_id, answer_id)
    )


@router.post("/read", summary="Mark a context as read")
def mark_read(
    question_id: Optional[int] = None,
    answer_id: Optional[int] = None,
    current_user: User = Depends(get_current_user),
    message_manager: MessageManagerDep = None,
) -> dict:
    flipped = message_manager.mark_read(current_user.username, question_id, answer_id)
    return {"success": True, "marked": flipped}


@router.get(
    "/review-feedback",
    response_model=List[Message],
    summary="Feedback received on own reviews",
)
def review_feedback(
    answer_id: Optional[int] = None,
    current_user: User = Depends(get_current_user),
    message_manager: MessageManagerDep = None,
) -> List[Message]:
    return message_manager.fetch_review_feedback(current_user.username, answer_id)


@router.get("/{message_id}", response_model=Message, summary="Get a message")
def get_message(
    message_id: int,
    current_user: User = Depends(get_current_user),
    message_manager: MessageManagerDep = None,
) -> Message:
    message = message_manager.get_message(message_id)
    if current_user.username not in (message.sender, message.recipient):
        raise PermissionDeniedError("You can only read your own messages.")
    return message
