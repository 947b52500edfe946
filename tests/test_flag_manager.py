import pytest

from core.exceptions import AnswerNotFoundError, ValidationError
from schemas.flag import FlagItemType
from schemas.user import Role


@pytest.fixture
def content(make_user, questions):
    make_user("amy", Role.STUDENT)
    make_user("stan", Role.STAFF)
    question = questions.create_question("Title", "", "amy")
    answer = questions.create_answer(question.id, "spam spam", "amy")
    return question, answer


def test_flag_and_list(content, flags):
    question, answer = content
    flag = flags.add_flag("answer", answer.id, "stan", "spam")
    flags.add_flag(FlagItemType.QUESTION, question.id, "stan", "off topic")

    assert flag.item_type is FlagItemType.ANSWER
    assert flags.is_flagged(FlagItemType.ANSWER, answer.id)
    assert not flags.is_flagged(FlagItemType.MESSAGE, answer.id)
    assert len(flags.list_flags()) == 2
    assert [f.reason for f in flags.list_flags("question")] == ["off topic"]
    assert [f.id for f in flags.flags_for_item("answer", answer.id)] == [flag.id]


def test_flag_validation(content, flags):
    question, _ = content
    with pytest.raises(ValidationError):
        flags.add_flag("user", question.id, "stan", "nope")
    with pytest.raises(ValidationError):
        flags.add_flag("question", question.id, "stan", "  ")
    with pytest.raises(AnswerNotFoundError):
        flags.add_flag("answer", 999, "stan", "missing")


def test_clear_flags(content, flags):
    question, answer = content
    flags.add_flag("answer", answer.id, "stan", "spam")
    flags.add_flag("answer", answer.id, "stan", "still spam")
    flags.add_flag("question", question.id, "stan", "keep")

    assert flags.clear_flags_for_item("answer", answer.id) == 2
    assert not flags.is_flagged("answer", answer.id)
    assert flags.is_flagged("question", question.id)
