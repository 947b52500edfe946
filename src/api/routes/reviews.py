"""Review, trust and reviewer request routes."""

import logging
from typing import Dict, List

from fastapi import APIRouter, Depends

from api.routes.auth import get_current_user, require_role
from core.dependencies import (
    ReviewManagerDep,
    ReviewerRequestManagerDep,
    TrustManagerDep,
)
from core.exceptions import PermissionDeniedError
from schemas.review import (
    AggregateRatingResponse,
    Review,
    ReviewChainResponse,
    ReviewerRequest,
    ReviewerScore,
    ReviseReviewRequest,
    SubmitReviewRequest,
    TargetType,
    TrustReviewerRequest,
)
from schemas.user import Role, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reviews", tags=["Reviews"])


@router.post("", response_model=Review, summary="Review a question or answer")
def submit_review(
    req: SubmitReviewRequest,
    current_user: User = Depends(require_role(Role.REVIEWER)),
    review_manager: ReviewManagerDep = None,
) -> Review:
    return review_manager.submit_review(
        current_user.username, req.target_type, req.target_id, req.rating, req.comment
    )


@router.get("/mine", response_model=List[Review], summary="Own reviews")
def my_reviews(
    latest_only: bool = True,
    current_user: User = Depends(require_role(Role.REVIEWER)),
    review_manager: ReviewManagerDep = None,
) -> List[Review]:
    return review_manager.reviews_by_reviewer(current_user.username, latest_only=latest_only)


@router.get("/scorecard", response_model=List[ReviewerScore], summary="Reviewer scorecard")
def scorecard(
    current_user: User = Depends(get_current_user),
    review_manager: ReviewManagerDep = None,
) -> List[ReviewerScore]:
    return review_manager.reviewer_scorecard()


@router.get(
    "/targets/{target_type}/{target_id}",
    response_model=List[Review],
    summary="Latest reviews of a target",
)
def latest_reviews(
    target_type: TargetType,
    target_id: int,
    current_user: User = Depends(get_current_user),
    review_manager: ReviewManagerDep = None,
) -> List[Review]:
    return review_manager.latest_reviews_for_target(target_type, target_id)


@router.get(
    "/targets/{target_type}/{target_id}/rating",
    response_model=AggregateRatingResponse,
    summary="Trust-weighted rating of a target",
)
def aggregate_rating(
    target_type: TargetType,
    target_id: int,
    current_user: User = Depends(get_current_user),
    review_manager: ReviewManagerDep = None,
) -> AggregateRatingResponse:
    return AggregateRatingResponse(
        target_type=target_type,
        target_id=target_id,
        weighted_average=review_manager.aggregate_rating(
            target_type, target_id, current_user.username
        ),
        weights=review_manager.trusted_weights_for_target(
            target_type, target_id, current_user.username
        ),
    )


@router.get("/{review_id}", response_model=Review, summary="Get a review version")
def get_review(
    review_id: int,
    current_user: User = Depends(get_current_user),
    review_manager: ReviewManagerDep = None,
) -> Review:
    return review_manager.get_review(review_id)


@router.get(
    "/{review_id}/chain",
    response_model=ReviewChainResponse,
    summary="Every version of a review, oldest first",
)
def get_chain(
    review_id: int,
    current_user: User = Depends(get_current_user),
    review_manager: ReviewManagerDep = None,
) -> ReviewChainResponse:
    return ReviewChainResponse(reviews=review_manager.get_chain_for_review(review_id))


@router.post("/{review_id}/revisions", response_model=Review, summary="Revise a review")
def revise_review(
    review_id: int,
    req: ReviseReviewRequest,
    current_user: User = Depends(require_role(Role.REVIEWER)),
    review_manager: ReviewManagerDep = None,
) -> Review:
    return review_manager.revise_review(
        review_id, req.rating, req.comment, reviewer_username=current_user.username
    )


@router.delete("/{review_id}", summary="Delete a review with its whole history")
def delete_review(
    review_id: int,
    current_user: User = Depends(get_current_user),
    review_manager: ReviewManagerDep = None,
) -> dict:
    review = review_manager.get_review(review_id)
    if review.reviewer_username != current_user.username and not current_user.has_role(
        Role.ADMIN
    ):
        raise PermissionDeniedError("Only the reviewer or an admin can delete a review.")
    deleted = review_manager.delete_review_chain(review_id)
    return {"success": True, "deleted": deleted}


# --- Trusted reviewers ---

trust_router = APIRouter(prefix="/api/trusted-reviewers", tags=["Trusted reviewers"])


@trust_router.get("", response_model=Dict[str, int], summary="Own trusted reviewers")
def get_trusted_reviewers(
    current_user: User = Depends(get_current_user),
    trust_manager: TrustManagerDep = None,
) -> Dict[str, int]:
    return trust_manager.get_trusted_reviewers(current_user.username)


@trust_router.put("/{reviewer}", summary="Trust a reviewer or change its weight")
def set_trusted_reviewer(
    reviewer: str,
    req: TrustReviewerRequest,
    current_user: User = Depends(get_current_user),
    trust_manager: TrustManagerDep = None,
) -> dict:
    trust_manager.set_trusted_reviewer(current_user.username, reviewer, req.weight)
    return {"success": True, "reviewer": reviewer, "weight": req.weight}


@trust_router.delete("/{reviewer}", summary="Stop trusting a reviewer")
def remove_trusted_reviewer(
    reviewer: str,
    current_user: User = Depends(get_current_user),
    trust_manager: TrustManagerDep = None,
) -> dict:
    trust_manager.remove_trusted_reviewer(current_user.username, reviewer)
    return {"success": True}


@trust_router.get(
    "/updates", response_model=List[str], summary="Trusted reviewers with new reviews"
)
def updated_trusted_reviewers(
    current_user: User = Depends(get_current_user),
    trust_manager: TrustManagerDep = None,
) -> List[str]:
    return trust_manager.updated_trusted_reviewers(current_user.username)


@trust_router.post("/updates/{reviewer}/ack", summary="Acknowledge a reviewer's updates")
def acknowledge_updates(
    reviewer: str,
    current_user: User = Depends(get_current_user),
    trust_manager: TrustManagerDep = None,
) -> dict:
    trust_manager.acknowledge_updates(current_user.username, reviewer)
    return {"success": True}


# --- Reviewer requests ---

request_router = APIRouter(prefix="/api/reviewer-requests", tags=["Reviewer requests"])


@request_router.post("", response_model=ReviewerRequest, summary="Ask for the reviewer role")
def request_reviewer_role(
    current_user: User = Depends(require_role(Role.STUDENT)),
    request_manager: ReviewerRequestManagerDep = None,
) -> ReviewerRequest:
    return request_manager.request_reviewer_role(current_user.username)


@request_router.get("/me", summary="Status of own reviewer request")
def my_request_status(
    current_user: User = Depends(get_current_user),
    request_manager: ReviewerRequestManagerDep = None,
) -> dict:
    status = request_manager.get_status(current_user.username)
    return {"status": status.value if status is not None else None}


@request_router.get(
    "", response_model=List[ReviewerRequest], summary="List reviewer requests"
)
def list_requests(
    pending_only: bool = True,
    current_user: User = Depends(require_role(Role.INSTRUCTOR, Role.ADMIN)),
    request_manager: ReviewerRequestManagerDep = None,
) -> List[ReviewerRequest]:
    if pending_only:
        return request_manager.list_pending()
    return request_manager.list_all()


@request_router.post(
    "/{username}/approve", response_model=ReviewerRequest, summary="Approve a request"
)
def approve_request(
    username: str,
    current_user: User = Depends(require_role(Role.INSTRUCTOR, Role.ADMIN)),
    request_manager: ReviewerRequestManagerDep = None,
) -> ReviewerRequest:
    return request_manager.approve(username)


@request_router.post(
    "/{username}/deny", response_model=ReviewerRequest, summary="Deny a request"
)
def deny_request(
    username: str,
    current_user: User = Depends(require_role(Role.INSTRUCTOR, Role.ADMIN)),
    request_manager: ReviewerRequestManagerDep = None,
) -> ReviewerRequest:
    return request_manager.deny(username)


@request_router.delete("/{username}", summary="Clear a request so the user may reapply")
def clear_request(
    username: str,
    current_user: User = Depends(require_role(Role.INSTRUCTOR, Role.ADMIN)),
    request_manager: ReviewerRequestManagerDep = None,
) -> dict:
    request_manager.clear_request(username)
    return {"success": True}
