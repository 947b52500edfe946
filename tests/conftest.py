"""Shared fixtures: an in-memory database per test and the managers on top."""

import os

# Must be set before config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"

from datetime import datetime, timedelta

import pytest
import pytz
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import init_db, make_engine
from models.base import Base
from utils.flag_manager import FlagManager
from utils.invitation_manager import InvitationManager
from utils.message_manager import MessageManager
from utils.question_manager import QuestionManager
from utils.review_manager import ReviewManager
from utils.reviewer_request_manager import ReviewerRequestManager
from utils.trust_manager import TrustManager
from utils.user_manager import UserManager


@pytest.fixture
def engine():
    test_engine = make_engine("sqlite://", poolclass=StaticPool)
    init_db(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def users(db):
    return UserManager(db)


@pytest.fixture
def invitations(db):
    return InvitationManager(db)


@pytest.fixture
def questions(db):
    return QuestionManager(db)


@pytest.fixture
def reviews(db):
    return ReviewManager(db)


@pytest.fixture
def trust(db):
    return TrustManager(db)


@pytest.fixture
def reviewer_requests(db):
    return ReviewerRequestManager(db)


@pytest.fixture
def messages(db):
    return MessageManager(db)


@pytest.fixture
def flags(db):
    return FlagManager(db)


@pytest.fixture
def admin(users):
    """The bootstrap admin; created first so later users get only the roles asked for."""
    return users.register_user("admin", "admin-pass")


@pytest.fixture
def make_user(users, admin):
    def _make(username, *roles, password="secret"):
        return users.register_user(username, password, roles=list(roles))

    return _make


@pytest.fixture
def tomorrow():
    return datetime.now(pytz.utc) + timedelta(days=1)
