import pytest

from config import REVIEW_FEEDBACK_MESSAGE_TYPE
from core.exceptions import MessageNotFoundError, UserNotFoundError, ValidationError
from schemas.user import Role


@pytest.fixture
def chat(make_user):
    make_user("amy", Role.STUDENT)
    make_user("ben", Role.STUDENT)
    make_user("rita", Role.REVIEWER)


def test_send_and_fetch_between(chat, messages):
    sent = messages.send("amy", "ben", "hi", question_id=1)
    reply = messages.send("ben", "amy", "hello", question_id=1)
    messages.send("amy", "ben", "other thread", question_id=2)
    messages.send("amy", "rita", "not for ben", question_id=1)

    conversation = messages.fetch_between("amy", "ben", question_id=1)
    assert [m.id for m in conversation] == [sent.id, reply.id]
    assert not sent.is_read
    assert sent.message_type == "question"


def test_empty_context_matches_empty_context(chat, messages):
    general = messages.send("amy", "ben", "general")
    messages.send("amy", "ben", "about q1", question_id=1)
    assert [m.id for m in messages.fetch_between("ben", "amy")] == [general.id]


def test_fetch_all_for_is_newest_first(chat, messages):
    first = messages.send("amy", "ben", "one")
    second = messages.send("ben", "amy", "two")
    messages.send("ben", "rita", "three")
    assert [m.id for m in messages.fetch_all_for("amy")] == [second.id, first.id]


def test_mark_read_is_scoped_to_context(chat, messages):
    messages.send("amy", "ben", "q1 a", question_id=1)
    messages.send("rita", "ben", "q1 b", question_id=1)
    messages.send("amy", "ben", "q2", question_id=2)
    messages.send("ben", "amy", "reply", question_id=1)

    assert messages.count_unread("ben", question_id=1) == 2
    assert messages.mark_read("ben", question_id=1) == 2
    assert messages.count_unread("ben", question_id=1) == 0
    assert messages.count_unread("ben", question_id=2) == 1
    assert messages.count_unread("amy", question_id=1) == 1

    late = messages.send("amy", "ben", "late", question_id=1)
    assert messages.count_unread("ben", question_id=1) == 1
    assert not messages.get_message(late.id).is_read


def test_review_feedback(chat, messages):
    messages.send("amy", "rita", "great review", answer_id=7,
                  message_type=REVIEW_FEEDBACK_MESSAGE_TYPE)
    messages.send("ben", "rita", "disagree", answer_id=8,
                  message_type=REVIEW_FEEDBACK_MESSAGE_TYPE)
    messages.send("amy", "rita", "just chatting", answer_id=7)

    assert len(messages.fetch_review_feedback("rita")) == 2
    assert [m.content for m in messages.fetch_review_feedback("rita", answer_id=7)] == [
        "great review"
    ]
    assert messages.feedback_count("rita") == 2
    assert messages.feedback_count("rita", answer_id=8) == 1
    assert messages.feedback_count("amy") == 0


def test_send_validation(chat, messages):
    with pytest.raises(ValidationError):
        messages.send("amy", "ben", "   ")
    with pytest.raises(UserNotFoundError):
        messages.send("amy", "ghost", "hello?")


def test_get_missing_message(messages):
    with pytest.raises(MessageNotFoundError):
        messages.get_message(1)
