"""Message schema definitions."""

from typing import Optional

from pydantic import BaseModel


class Message(BaseModel):
    id: int
    sender: str
    recipient: str
    question_id: Optional[int] = None
    answer_id: Optional[int] = None
    content: str
    message_type: str
    created_at: str
    is_read: bool = False


class SendMessageRequest(BaseModel):
    recipient: str
    content: str
    question_id: Optional[int] = None
    answer_id: Optional[int] = None
    message_type: str = "question"


class UnreadCountResponse(BaseModel):
    unread: int
