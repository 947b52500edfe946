"""Custom exception classes for the Q&A platform core.

This module defines application-specific exceptions following Google Python
Style Guide. Every error raised by the stores derives from QAPlatformError so
that callers can catch the whole family at once.
"""


class QAPlatformError(Exception):
    """Base exception for all Q&A platform errors."""

    pass


class ValidationError(QAPlatformError):
    """Raised when input data is malformed or out of range."""

    pass


class PermissionDeniedError(QAPlatformError):
    """Raised when the acting user may not perform an operation."""

    pass


class PersistenceError(QAPlatformError):
    """Raised when the underlying storage fails."""

    pass


# --- Not found ---


class NotFoundError(QAPlatformError):
    """Raised when a referenced record does not exist."""

    def __init__(self, kind: str, key):
        """Initialize the exception.

        Args:
            kind: Human readable record kind, e.g. "Question".
            key: The identifier that was looked up.
        """
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} '{key}' not found")


class UserNotFoundError(NotFoundError):
    """Raised when a user cannot be found."""

    def __init__(self, username: str):
        super().__init__("User", username)


class QuestionNotFoundError(NotFoundError):
    """Raised when a question cannot be found."""

    def __init__(self, question_id: int):
        super().__init__("Question", question_id)


class AnswerNotFoundError(NotFoundError):
    """Raised when an answer cannot be found."""

    def __init__(self, answer_id: int):
        super().__init__("Answer", answer_id)


class ReviewNotFoundError(NotFoundError):
    """Raised when a review cannot be found."""

    def __init__(self, review_id: int):
        super().__init__("Review", review_id)


class InvitationNotFoundError(NotFoundError):
    """Raised when an invitation code cannot be found."""

    def __init__(self, code: str):
        super().__init__("Invitation code", code)


class MessageNotFoundError(NotFoundError):
    """Raised when a message cannot be found."""

    def __init__(self, message_id: int):
        super().__init__("Message", message_id)


# --- Conflicts ---


class ConflictError(QAPlatformError):
    """Raised when an operation collides with existing state."""

    pass


class UserAlreadyExistsError(ConflictError):
    """Raised when trying to create a user that already exists."""

    pass


class DuplicateRoleError(ConflictError):
    """Raised when a user already holds the role being assigned."""

    def __init__(self, username: str, role: str):
        self.username = username
        self.role = role
        super().__init__(f"User '{username}' already has the role: {role}")


class InvitationCodeExhaustedError(ConflictError):
    """Raised when no free invitation code could be generated."""

    pass


class StaleReviewError(ConflictError):
    """Raised when revising a review that is no longer the latest version."""

    def __init__(self, review_id: int):
        self.review_id = review_id
        super().__init__(
            f"Review {review_id} is not the latest version of its chain"
        )


class InvalidStateTransitionError(ConflictError):
    """Raised when a workflow ticket cannot move to the requested state."""

    pass


# --- Invariants ---


class InvariantViolationError(QAPlatformError):
    """Raised when an operation would break a system-wide invariant."""

    pass


class LastAdminError(InvariantViolationError):
    """Raised when removing the last remaining admin role."""

    def __init__(self):
        super().__init__(
            "Cannot remove the last admin role. At least one admin is required."
        )


class SelfRevokeError(InvariantViolationError):
    """Raised when an admin tries to remove their own admin role."""

    def __init__(self):
        super().__init__("You cannot remove your own admin role.")


# --- Invitations ---


class InvalidInvitationCodeError(ValidationError):
    """Raised when an invitation code is missing, expired or already used."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Invitation code '{code}' is invalid or expired")
