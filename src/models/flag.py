"""Moderation flag database model."""

from sqlalchemy import CheckConstraint, Column, Integer, String, Text
from .base import Base


class FlagModel(Base):
    __tablename__ = "flags"
    __table_args__ = (
        CheckConstraint(
            "item_type IN ('question', 'answer', 'message')",
            name="ck_flags_item_type",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    item_type = Column(String(10), nullable=False, index=True)
    item_id = Column(Integer, nullable=False, index=True)
    flagged_by = Column(String, nullable=False)
    reason = Column(Text, nullable=False, default="")
    created_at = Column(String, nullable=False)
