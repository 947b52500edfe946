"""Review update notification models.

review_updates is an append-only event log written whenever a reviewer
submits or revises a review. review_update_acks stores, per student and
reviewer, the newest event id the student has acknowledged.
"""

from sqlalchemy import Column, ForeignKey, Integer, String
from .base import Base


class ReviewUpdateModel(Base):
    __tablename__ = "review_updates"
    # Ids must never be reused, acknowledgment cursors compare against them
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    reviewer_username = Column(String, index=True, nullable=False)
    created_at = Column(String, nullable=False)


class ReviewUpdateAckModel(Base):
    __tablename__ = "review_update_acks"

    student_username = Column(
        String,
        ForeignKey("users.username", ondelete="CASCADE"),
        primary_key=True,
    )
    reviewer_username = Column(String, primary_key=True)
    last_seen_update_id = Column(Integer, nullable=False, default=0)
