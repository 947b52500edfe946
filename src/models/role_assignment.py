"""Role assignment database model."""

from sqlalchemy import Column, ForeignKey, String
from .base import Base


class RoleAssignmentModel(Base):
    """One row per (user, role) pair.

    The role column is a plain string; the allowed values live in
    schemas.user.Role so that rows written before a role was retired can
    still be found by the integrity scan.
    """

    __tablename__ = "role_assignments"

    username = Column(
        String,
        ForeignKey("users.username", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    role = Column(String(20), primary_key=True, index=True)
