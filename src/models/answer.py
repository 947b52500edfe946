"""Answer database model."""

from sqlalchemy import Column, ForeignKey, Integer, String, Text
from .base import Base


class AnswerModel(Base):
    __tablename__ = "answers"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    question_id = Column(
        Integer,
        ForeignKey("questions.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    content = Column(Text, nullable=False)
    author = Column(String, index=True, nullable=False)
    parent_answer_id = Column(
        Integer,
        ForeignKey("answers.id", ondelete="CASCADE"),
        index=True,
        nullable=True,
    )
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)
