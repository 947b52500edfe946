"""Message database model."""

from sqlalchemy import Boolean, Column, Integer, String, Text
from .base import Base


class MessageModel(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    sender = Column(String, index=True, nullable=False)
    recipient = Column(String, index=True, nullable=False)
    question_id = Column(Integer, index=True, nullable=True)
    answer_id = Column(Integer, index=True, nullable=True)
    content = Column(Text, nullable=False)
    message_type = Column(String(30), nullable=False, default="question")
    created_at = Column(String, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
