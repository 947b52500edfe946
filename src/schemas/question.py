"""Question and answer schema definitions."""

from typing import List, Optional

from pydantic import BaseModel, Field


class Question(BaseModel):
    id: int
    title: str
    content: str
    author: str
    tags: List[str] = Field(default_factory=list)
    accepted_answer_id: Optional[int] = None
    answered: bool = False
    created_at: str
    updated_at: str


class Answer(BaseModel):
    id: int
    question_id: int
    content: str
    author: str
    parent_answer_id: Optional[int] = None
    created_at: str
    updated_at: str


class AnswerNode(Answer):
    """An answer together with its nested replies."""

    replies: List["AnswerNode"] = Field(default_factory=list)


AnswerNode.model_rebuild()


class CreateQuestionRequest(BaseModel):
    title: str
    content: str = ""
    tags: List[str] = Field(default_factory=list)


class UpdateQuestionRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[List[str]] = None


class CreateAnswerRequest(BaseModel):
    content: str
    parent_answer_id: Optional[int] = None


class UpdateAnswerRequest(BaseModel):
    content: str


class MarkAcceptedRequest(BaseModel):
    answer_id: Optional[int] = None
