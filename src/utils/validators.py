"""Input checks shared by the stores.

Every check raises core.exceptions.ValidationError with a message that can be
shown to the user as-is.
"""

import re
from typing import Optional, Union

from config import TITLE_MAX_LENGTH, USERNAME_MAX_LENGTH, USERNAME_MIN_LENGTH
from core.exceptions import ValidationError
from schemas.review import TargetType
from schemas.user import Role

# Starts with a letter; '.', '_' and '-' only as single separators between
# alphanumeric runs
_USERNAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9]*(?:[._-][A-Za-z0-9]+)*$")


def coerce_role(role: Union[Role, str]) -> Role:
    """Map a role name onto the Role enumeration.

    Raises:
        ValidationError: If the name is not one of the known roles.
    """
    if isinstance(role, Role):
        return role
    try:
        return Role(str(role).strip().lower())
    except ValueError:
        raise ValidationError(
            f"Invalid role: {role}. Must be one of {', '.join(Role.values())}."
        )


def coerce_target_type(target_type: Union[TargetType, str]) -> TargetType:
    if isinstance(target_type, TargetType):
        return target_type
    try:
        return TargetType(str(target_type).strip().lower())
    except ValueError:
        raise ValidationError(
            f"Invalid target type: {target_type}. Must be 'question' or 'answer'."
        )


def validate_username(username: str) -> str:
    """Check a username against the naming rules.

    Args:
        username: Candidate username.

    Returns:
        The username with surrounding whitespace removed.

    Raises:
        ValidationError: If the username breaks a rule.
    """
    username = (username or "").strip()
    if not username:
        raise ValidationError("Username cannot be empty.")
    if len(username) < USERNAME_MIN_LENGTH:
        raise ValidationError(
            f"A username must have at least {USERNAME_MIN_LENGTH} characters."
        )
    if len(username) > USERNAME_MAX_LENGTH:
        raise ValidationError(
            f"A username must have no more than {USERNAME_MAX_LENGTH} characters."
        )
    if not username[0].isalpha():
        raise ValidationError("A username must start with an alphabetic character.")
    if not _USERNAME_PATTERN.match(username):
        raise ValidationError(
            "A username may only contain letters and digits, with '.', '_' or '-' "
            "each followed by a letter or digit."
        )
    return username


def validate_rating(rating: int, low: int = 1, high: int = 5, what: str = "Rating") -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError(f"{what} must be a whole number.")
    if rating < low or rating > high:
        raise ValidationError(f"{what} must be between {low} and {high}.")
    return rating


def require_text(value: Optional[str], what: str) -> str:
    """Return the stripped value, rejecting empty text."""
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{what} cannot be empty.")
    return value


def validate_title(title: Optional[str]) -> str:
    title = require_text(title, "Title")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(
            f"Title must have no more than {TITLE_MAX_LENGTH} characters."
        )
    return title
