"""Review schema definitions.

Review is frozen: a revision produces a new Review with a new id that points
back at its predecessor, the predecessor itself is never edited.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TargetType(str, Enum):
    QUESTION = "question"
    ANSWER = "answer"


class ReviewerRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class Review(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    reviewer_username: str
    target_type: TargetType
    target_id: int
    rating: int = Field(ge=1, le=5)
    comment: str = ""
    created_at: str
    previous_review_id: Optional[int] = None
    is_latest: bool = True


class ReviewerScore(BaseModel):
    """One row of the reviewer scorecard."""

    reviewer_username: str
    average_rating: float
    review_count: int
    feedback_count: int


class ReviewerRequest(BaseModel):
    username: str
    status: ReviewerRequestStatus
    created_at: str
    updated_at: str


class SubmitReviewRequest(BaseModel):
    target_type: TargetType
    target_id: int
    rating: int
    comment: str = ""


class ReviseReviewRequest(BaseModel):
    rating: int
    comment: str = ""


class TrustReviewerRequest(BaseModel):
    weight: int = 1


class AggregateRatingResponse(BaseModel):
    target_type: TargetType
    target_id: int
    weighted_average: Optional[float] = None
    weights: Dict[str, int] = Field(default_factory=dict)


class ReviewChainResponse(BaseModel):
    reviews: List[Review]
