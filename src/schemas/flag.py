"""Moderation flag schema definitions."""

from enum import Enum

from pydantic import BaseModel


class FlagItemType(str, Enum):
    QUESTION = "question"
    ANSWER = "answer"
    MESSAGE = "message"


class Flag(BaseModel):
    id: int
    item_type: FlagItemType
    item_id: int
    flagged_by: str
    reason: str
    created_at: str


class CreateFlagRequest(BaseModel):
    item_type: FlagItemType
    item_id: int
    reason: str
