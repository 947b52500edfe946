"""Question database model."""

from sqlalchemy import Column, Integer, String, Text
from .base import Base


class QuestionModel(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False, default="")
    author = Column(String, index=True, nullable=False)
    tags = Column(String, nullable=False, default="")  # delimited, ordered
    # Weak reference: not a foreign key, the answer may be deleted later
    accepted_answer_id = Column(Integer, nullable=True)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)
