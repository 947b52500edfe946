import pytest

from core.exceptions import (
    DuplicateRoleError,
    InvalidInvitationCodeError,
    InvariantViolationError,
    LastAdminError,
    NotFoundError,
    SelfRevokeError,
    UserAlreadyExistsError,
    UserNotFoundError,
    ValidationError,
)
from models.role_assignment import RoleAssignmentModel
from schemas.user import Role


def test_first_user_becomes_admin(users):
    assert users.is_database_empty()
    user = users.register_user("founder", "pw", roles=["student"])
    assert Role.ADMIN in user.roles
    assert Role.STUDENT in user.roles
    assert not users.is_database_empty()


def test_later_users_get_only_requested_roles(make_user, users):
    alice = make_user("alice", Role.STUDENT)
    assert alice.roles == [Role.STUDENT]
    assert not users.is_admin("alice")


@pytest.mark.parametrize(
    "username",
    ["ab", "1alice", "al..ice", "alice_", "a" * 17, "al ice", ""],
)
def test_register_rejects_bad_usernames(users, username):
    with pytest.raises(ValidationError):
        users.register_user(username, "pw")


def test_register_accepts_separated_usernames(make_user):
    assert make_user("j.doe-2_x").username == "j.doe-2_x"


def test_register_rejects_empty_password(users):
    with pytest.raises(ValidationError):
        users.register_user("alice", "")


def test_duplicate_username(make_user):
    make_user("alice")
    with pytest.raises(UserAlreadyExistsError):
        make_user("alice")


def test_login(make_user, users):
    make_user("alice", password="correct horse")
    assert users.login("alice", "correct horse")
    assert not users.login("alice", "wrong")
    assert not users.login("nobody", "correct horse")


def test_update_password(make_user, users):
    make_user("alice", password="old")
    users.update_password("alice", "new")
    assert users.login("alice", "new")
    assert not users.login("alice", "old")


def test_assign_role_twice_is_a_conflict(make_user, users):
    make_user("alice")
    users.assign_role("alice", "instructor")
    with pytest.raises(DuplicateRoleError):
        users.assign_role("alice", Role.INSTRUCTOR)
    assert users.get_roles("alice") == ["instructor"]


def test_assign_unknown_role(make_user, users):
    make_user("alice")
    with pytest.raises(ValidationError):
        users.assign_role("alice", "wizard")


def test_assign_role_to_missing_user(admin, users):
    with pytest.raises(UserNotFoundError):
        users.assign_role("ghost", Role.STUDENT)


def test_revoking_last_admin_fails_and_keeps_role(admin, users):
    with pytest.raises(InvariantViolationError) as excinfo:
        users.revoke_role("admin", Role.ADMIN)
    assert isinstance(excinfo.value, LastAdminError)
    assert users.is_admin("admin")
    assert users.get_admin_count() == 1


def test_admin_cannot_revoke_own_admin_role(make_user, users):
    make_user("second", Role.ADMIN)
    with pytest.raises(SelfRevokeError):
        users.revoke_role("admin", Role.ADMIN, acting_admin="admin")
    assert users.is_admin("admin")


def test_revoke_admin_when_another_remains(make_user, users):
    make_user("second", Role.ADMIN)
    users.revoke_role("second", Role.ADMIN, acting_admin="admin")
    assert not users.is_admin("second")
    assert users.get_admin_count() == 1


def test_revoke_missing_assignment(make_user, users):
    make_user("alice", Role.STUDENT)
    with pytest.raises(NotFoundError):
        users.revoke_role("alice", Role.STAFF)


def test_revoke_admin_from_non_admin_is_not_found(admin, make_user, users):
    make_user("alice", Role.STUDENT)
    with pytest.raises(NotFoundError):
        users.revoke_role("alice", Role.ADMIN, acting_admin="admin")
    assert users.get_admin_count() == 1


def test_delete_user_removes_roles(make_user, users):
    make_user("alice", Role.STUDENT, Role.STAFF)
    users.delete_user("alice")
    assert users.get_user_or_none("alice") is None
    assert users.get_roles("alice") == []


def test_delete_last_admin_fails(admin, users):
    with pytest.raises(LastAdminError):
        users.delete_user("admin")
    assert users.get_user("admin").username == "admin"


def test_one_time_password_is_single_use(make_user, users):
    make_user("alice")
    users.set_one_time_password("alice", "temp-123")
    assert users.get_user("alice").has_one_time_password

    assert not users.redeem_one_time_password("alice", "wrong")
    assert users.redeem_one_time_password("alice", "temp-123")
    assert not users.redeem_one_time_password("alice", "temp-123")
    assert not users.get_user("alice").has_one_time_password


def test_one_time_password_does_not_replace_password(make_user, users):
    make_user("alice", password="real")
    users.set_one_time_password("alice", "temp")
    assert users.login("alice", "real")
    assert not users.login("alice", "temp")


def test_list_users_with_roles_includes_users_without_roles(make_user, users):
    make_user("alice")
    make_user("bob", Role.STUDENT)
    listing = {u.username: u.roles for u in users.list_users_with_roles()}
    assert listing == {"admin": ["admin"], "alice": [], "bob": ["student"]}
    assert users.list_users_with_role(Role.STUDENT) == ["bob"]


def test_integrity_scan_finds_unknown_roles(make_user, users, db):
    make_user("alice", Role.STUDENT)
    db.add(RoleAssignmentModel(username="alice", role="moderator"))
    db.commit()

    invalid = users.find_invalid_role_assignments()
    assert [(r.username, r.role) for r in invalid] == [("alice", "moderator")]
    # Unknown roles are hidden from the typed record
    assert users.get_user("alice").roles == [Role.STUDENT]


def test_register_with_invitation(admin, users, invitations, tomorrow):
    invitation = invitations.issue(["student", "staff"], tomorrow, created_by="admin")
    user = users.register_with_invitation("alice", "pw", invitation.code)
    assert set(user.roles) == {Role.STUDENT, Role.STAFF}
    assert not invitations.validate(invitation.code).valid


def test_failed_registration_keeps_invitation(make_user, users, invitations, tomorrow):
    make_user("alice")
    invitation = invitations.issue(["student"], tomorrow)
    with pytest.raises(UserAlreadyExistsError):
        users.register_with_invitation("alice", "pw", invitation.code)
    assert invitations.validate(invitation.code).valid


def test_register_with_unknown_invitation(admin, users):
    with pytest.raises(InvalidInvitationCodeError):
        users.register_with_invitation("alice", "pw", "zzzz")
    assert users.get_user_or_none("alice") is None
