"""Administration routes.

User and role management, invitation codes, one-time passwords and the role
integrity scan. Every endpoint requires the admin role.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

import pytz
from fastapi import APIRouter, Depends

from api.routes.auth import require_role
from config import DEFAULT_INVITATION_TTL_DAYS
from core.dependencies import InvitationManagerDep, TrustManagerDep, UserManagerDep
from schemas.invitation import Invitation, InvitationValidation, IssueInvitationRequest
from schemas.user import (
    InvalidRoleAssignment,
    Role,
    RoleRequest,
    SetOneTimePasswordRequest,
    User,
    UserWithRoles,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])

AdminUser = Depends(require_role(Role.ADMIN))


@router.get("/users", response_model=List[UserWithRoles], summary="List users")
def list_users(
    role: Optional[Role] = None,
    current_user: User = AdminUser,
    user_manager: UserManagerDep = None,
) -> List[UserWithRoles]:
    users = user_manager.list_users_with_roles()
    if role is not None:
        users = [u for u in users if role.value in u.roles]
    return users


@router.delete("/users/{username}", summary="Delete a user")
def delete_user(
    username: str,
    current_user: User = AdminUser,
    user_manager: UserManagerDep = None,
) -> dict:
    user_manager.delete_user(username)
    return {"success": True, "message": f"User '{username}' deleted"}


@router.post("/users/{username}/roles", response_model=User, summary="Grant a role")
def assign_role(
    username: str,
    req: RoleRequest,
    current_user: User = AdminUser,
    user_manager: UserManagerDep = None,
) -> User:
    user_manager.assign_role(username, req.role)
    return user_manager.get_user(username)


@router.delete(
    "/users/{username}/roles/{role}", response_model=User, summary="Revoke a role"
)
def revoke_role(
    username: str,
    role: Role,
    current_user: User = AdminUser,
    user_manager: UserManagerDep = None,
) -> User:
    user_manager.revoke_role(username, role, acting_admin=current_user.username)
    return user_manager.get_user(username)


@router.put("/users/{username}/one-time-password", summary="Set a one-time password")
def set_one_time_password(
    username: str,
    req: SetOneTimePasswordRequest,
    current_user: User = AdminUser,
    user_manager: UserManagerDep = None,
) -> dict:
    user_manager.set_one_time_password(username, req.one_time_password)
    return {"success": True, "message": "One-time password set"}


@router.get(
    "/integrity/roles",
    response_model=List[InvalidRoleAssignment],
    summary="Find role assignments outside the known roles",
)
def invalid_role_assignments(
    current_user: User = AdminUser,
    user_manager: UserManagerDep = None,
) -> List[InvalidRoleAssignment]:
    return user_manager.find_invalid_role_assignments()


@router.post("/invitations", response_model=Invitation, summary="Issue an invitation code")
def issue_invitation(
    req: IssueInvitationRequest,
    current_user: User = AdminUser,
    invitation_manager: InvitationManagerDep = None,
) -> Invitation:
    """Issue a code; without an explicit expiry it lasts the default number of days."""
    expires_at = req.expires_at or (
        datetime.now(pytz.utc) + timedelta(days=DEFAULT_INVITATION_TTL_DAYS)
    )
    return invitation_manager.issue(req.roles, expires_at, created_by=current_user.username)


@router.get("/invitations", response_model=List[Invitation], summary="List invitation codes")
def list_invitations(
    current_user: User = AdminUser,
    invitation_manager: InvitationManagerDep = None,
) -> List[Invitation]:
    return invitation_manager.list_invitations()


@router.get(
    "/invitations/{code}",
    response_model=InvitationValidation,
    summary="Validate an invitation code",
)
def validate_invitation(
    code: str,
    current_user: User = AdminUser,
    invitation_manager: InvitationManagerDep = None,
) -> InvitationValidation:
    return invitation_manager.validate(code)


@router.delete("/invitations/{code}", summary="Delete an invitation code")
def delete_invitation(
    code: str,
    current_user: User = AdminUser,
    invitation_manager: InvitationManagerDep = None,
) -> dict:
    invitation_manager.delete_invitation(code)
    return {"success": True, "message": "Invitation code deleted successfully"}


@router.post("/invitations/purge", summary="Delete expired invitation codes")
def purge_invitations(
    current_user: User = AdminUser,
    invitation_manager: InvitationManagerDep = None,
) -> dict:
    return {"removed": invitation_manager.purge_expired()}


@router.delete(
    "/review-updates/{reviewer}",
    summary="Clear a reviewer's update log for every student",
)
def clear_review_updates(
    reviewer: str,
    current_user: User = AdminUser,
    trust_manager: TrustManagerDep = None,
) -> dict:
    return {"removed": trust_manager.clear_updates_for_reviewer(reviewer)}
