"""Review database model.

Rows are append-only: a revision inserts a new row pointing at its
predecessor and flips the predecessor's is_latest flag.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)

from .base import Base


class ReviewModel(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        CheckConstraint(
            "target_type IN ('question', 'answer')", name="ck_reviews_target_type"
        ),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating"),
        Index(
            "ix_reviews_target",
            "target_type",
            "target_id",
        ),
        # At most one latest row per (reviewer, target)
        Index(
            "uq_reviews_latest_per_target",
            "reviewer_username",
            "target_type",
            "target_id",
            unique=True,
            sqlite_where=text("is_latest = 1"),
            postgresql_where=text("is_latest"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    reviewer_username = Column(String, index=True, nullable=False)
    target_type = Column(String(10), nullable=False)
    target_id = Column(Integer, nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False, default="")
    created_at = Column(String, nullable=False)
    previous_review_id = Column(
        Integer,
        ForeignKey("reviews.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    is_latest = Column(Boolean, nullable=False, default=True)
