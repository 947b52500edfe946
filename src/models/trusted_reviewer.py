"""Trusted reviewer database model."""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String
from .base import Base


class TrustedReviewerModel(Base):
    """How much a student weights a reviewer's ratings."""

    __tablename__ = "trusted_reviewers"
    __table_args__ = (
        CheckConstraint("weight BETWEEN 1 AND 5", name="ck_trusted_reviewers_weight"),
    )

    student_username = Column(
        String,
        ForeignKey("users.username", ondelete="CASCADE"),
        primary_key=True,
    )
    reviewer_username = Column(
        String,
        ForeignKey("users.username", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    weight = Column(Integer, nullable=False, default=1)
