"""Reviewer request database model."""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String
from .base import Base


class ReviewerRequestModel(Base):
    __tablename__ = "reviewer_requests"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'denied')",
            name="ck_reviewer_requests_status",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(
        String,
        ForeignKey("users.username", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    status = Column(String(20), nullable=False, default="pending")
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)
