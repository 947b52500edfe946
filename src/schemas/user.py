"""User schema definitions.

This module defines the closed Role enumeration, the User record returned by
the identity store and the request/response bodies of the auth routes.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class Role(str, Enum):
    ADMIN = "admin"
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    STAFF = "staff"
    REVIEWER = "reviewer"

    @classmethod
    def values(cls) -> List[str]:
        return [role.value for role in cls]


class User(BaseModel):
    username: str = Field(description="Unique login name.")
    roles: List[Role] = Field(default_factory=list, description="Granted roles.")
    has_one_time_password: bool = Field(
        default=False,
        description="Whether a one-time password is waiting to be redeemed.",
    )
    created_at: str = Field(description="Creation time, ISO format.")

    def has_role(self, role: Role) -> bool:
        return role in self.roles


class UserWithRoles(BaseModel):
    """A row of the admin user listing."""

    username: str
    roles: List[str] = Field(default_factory=list)


class InvalidRoleAssignment(BaseModel):
    """A stored role row whose role is outside the Role enumeration."""

    username: str
    role: str


# --- Request / response bodies ---


class RegisterRequest(BaseModel):
    username: str
    password: str
    invitation_code: Optional[str] = Field(
        default=None,
        description="Required unless the database is empty (first admin).",
    )


class LoginRequest(BaseModel):
    username: str
    password: str


class OneTimePasswordLoginRequest(BaseModel):
    username: str
    one_time_password: str


class LoginResponse(BaseModel):
    user: User
    token: str


class UpdatePasswordRequest(BaseModel):
    new_password: str


class SetOneTimePasswordRequest(BaseModel):
    one_time_password: str


class RoleRequest(BaseModel):
    role: Role
