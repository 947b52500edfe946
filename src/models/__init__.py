"""Table models. Importing this package registers every table with Base."""

from .base import Base
from .user import UserModel
from .role_assignment import RoleAssignmentModel
from .invitation_code import InvitationCodeModel
from .question import QuestionModel
from .answer import AnswerModel
from .review import ReviewModel
from .trusted_reviewer import TrustedReviewerModel
from .reviewer_request import ReviewerRequestModel
from .review_update import ReviewUpdateAckModel, ReviewUpdateModel
from .message import MessageModel
from .flag import FlagModel

__all__ = [
    "Base",
    "UserModel",
    "RoleAssignmentModel",
    "InvitationCodeModel",
    "QuestionModel",
    "AnswerModel",
    "ReviewModel",
    "TrustedReviewerModel",
    "ReviewerRequestModel",
    "ReviewUpdateModel",
    "ReviewUpdateAckModel",
    "MessageModel",
    "FlagModel",
]
