"""Invitation schema definitions."""

from typing import List, Optional

from pydantic import BaseModel, Field

from schemas.user import Role


class Invitation(BaseModel):
    code: str
    roles: List[Role]
    created_by: Optional[str] = None
    created_at: str
    expires_at: Optional[str] = None


class InvitationValidation(BaseModel):
    """Outcome of checking a code without consuming it."""

    valid: bool
    roles: List[Role] = Field(default_factory=list)


class IssueInvitationRequest(BaseModel):
    roles: List[Role] = Field(min_length=1)
    expires_at: Optional[str] = Field(
        default=None,
        description="ISO timestamp; defaults to DEFAULT_INVITATION_TTL_DAYS from now.",
    )
