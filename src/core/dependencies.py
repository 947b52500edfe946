"""Dependency injection module for FastAPI.

Every manager is built per request around a request-scoped DB session.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from core.database import get_db
from utils import flag_manager
from utils import invitation_manager
from utils import message_manager
from utils import question_manager
from utils import review_manager
from utils import reviewer_request_manager
from utils import trust_manager
from utils import user_manager


def get_user_manager(db: Session = Depends(get_db)) -> user_manager.UserManager:
    """Get UserManager instance with request-scoped DB session.

    Args:
        db: Database session.

    Returns:
        UserManager instance.
    """
    return user_manager.UserManager(db)


def get_invitation_manager(
    db: Session = Depends(get_db),
) -> invitation_manager.InvitationManager:
    """Get InvitationManager instance with request-scoped DB session."""
    return invitation_manager.InvitationManager(db)


def get_question_manager(
    db: Session = Depends(get_db),
) -> question_manager.QuestionManager:
    """Get QuestionManager instance with request-scoped DB session."""
    return question_manager.QuestionManager(db)


def get_review_manager(db: Session = Depends(get_db)) -> review_manager.ReviewManager:
    """Get ReviewManager instance with request-scoped DB session."""
    return review_manager.ReviewManager(db)


def get_trust_manager(db: Session = Depends(get_db)) -> trust_manager.TrustManager:
    return trust_manager.TrustManager(db)


def get_reviewer_request_manager(
    db: Session = Depends(get_db),
) -> reviewer_request_manager.ReviewerRequestManager:
    return reviewer_request_manager.ReviewerRequestManager(db)


def get_message_manager(db: Session = Depends(get_db)) -> message_manager.MessageManager:
    return message_manager.MessageManager(db)


def get_flag_manager(db: Session = Depends(get_db)) -> flag_manager.FlagManager:
    return flag_manager.FlagManager(db)


# Type aliases for dependency injection
UserManagerDep = Annotated[
    user_manager.UserManager, Depends(get_user_manager)
]
InvitationManagerDep = Annotated[
    invitation_manager.InvitationManager, Depends(get_invitation_manager)
]
QuestionManagerDep = Annotated[
    question_manager.QuestionManager, Depends(get_question_manager)
]
ReviewManagerDep = Annotated[
    review_manager.ReviewManager, Depends(get_review_manager)
]
TrustManagerDep = Annotated[
    trust_manager.TrustManager, Depends(get_trust_manager)
]
ReviewerRequestManagerDep = Annotated[
    reviewer_request_manager.ReviewerRequestManager,
    Depends(get_reviewer_request_manager),
]
MessageManagerDep = Annotated[
    message_manager.MessageManager, Depends(get_message_manager)
]
FlagManagerDep = Annotated[
    flag_manager.FlagManager, Depends(get_flag_manager)
]
