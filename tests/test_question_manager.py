from datetime import datetime

import pytest
import pytz

from core.exceptions import (
    AnswerNotFoundError,
    QuestionNotFoundError,
    ValidationError,
)
from models.answer import AnswerModel
from models.review import ReviewModel
from schemas.review import TargetType


def _ids(nodes):
    return [n.id for n in nodes]


def test_create_question_normalizes_tags(questions):
    question = questions.create_question(
        "  How do joins work?  ", "body", "alice", [" sql ", "SQL", "", "joins"]
    )
    assert question.title == "How do joins work?"
    assert question.tags == ["sql", "joins"]
    assert question.accepted_answer_id is None


@pytest.mark.parametrize("title", ["", "   ", "x" * 256])
def test_create_question_rejects_bad_titles(questions, title):
    with pytest.raises(ValidationError):
        questions.create_question(title, "body", "alice")


def test_tags_cannot_contain_delimiter(questions):
    with pytest.raises(ValidationError):
        questions.create_question("Title", "body", "alice", ["a,b"])


def test_update_question(questions):
    question = questions.create_question("Old", "old body", "alice", ["x"])
    updated = questions.update_question(question.id, title="New", tags=["y", "z"])
    assert updated.title == "New"
    assert updated.content == "old body"
    assert updated.tags == ["y", "z"]


def test_get_missing_question(questions):
    with pytest.raises(QuestionNotFoundError):
        questions.get_question(404)


def test_thread_nests_replies(questions):
    q = questions.create_question("Title", "", "alice")
    a = questions.create_answer(q.id, "A", "bob")
    b = questions.create_answer(q.id, "B", "carol", parent_answer_id=a.id)
    c = questions.create_answer(q.id, "C", "dave", parent_answer_id=b.id)

    roots = questions.load_thread(q.id)

    assert _ids(roots) == [a.id]
    assert _ids(roots[0].replies) == [b.id]
    assert _ids(roots[0].replies[0].replies) == [c.id]
    assert roots[0].replies[0].replies[0].replies == []


def test_thread_attaches_children_scanned_before_parents(questions, db):
    q = questions.create_question("Title", "", "alice")
    now = datetime.now(pytz.utc).isoformat()
    # The parent gets the higher id so it is read after its reply
    db.add(AnswerModel(id=50, question_id=q.id, content="parent", author="bob",
                       created_at=now, updated_at=now))
    db.flush()
    db.add(AnswerModel(id=20, question_id=q.id, content="reply", author="carol",
                       parent_answer_id=50, created_at=now, updated_at=now))
    db.add(AnswerModel(id=10, question_id=q.id, content="nested", author="dave",
                       parent_answer_id=20, created_at=now, updated_at=now))
    db.commit()

    roots = questions.load_thread(q.id)

    assert _ids(roots) == [50]
    assert _ids(roots[0].replies) == [20]
    assert _ids(roots[0].replies[0].replies) == [10]


def test_thread_keeps_root_order(questions):
    q = questions.create_question("Title", "", "alice")
    first = questions.create_answer(q.id, "first", "bob")
    second = questions.create_answer(q.id, "second", "carol")
    questions.create_answer(q.id, "late reply", "dave", parent_answer_id=first.id)

    roots = questions.load_thread(q.id)
    assert _ids(roots) == [first.id, second.id]
    assert len(roots[0].replies) == 1


def test_reply_must_stay_in_question(questions):
    q1 = questions.create_question("One", "", "alice")
    q2 = questions.create_question("Two", "", "alice")
    answer = questions.create_answer(q1.id, "answer", "bob")
    with pytest.raises(ValidationError):
        questions.create_answer(q2.id, "stray", "bob", parent_answer_id=answer.id)


def test_answer_requires_existing_targets(questions):
    with pytest.raises(QuestionNotFoundError):
        questions.create_answer(999, "text", "bob")
    q = questions.create_question("Title", "", "alice")
    with pytest.raises(AnswerNotFoundError):
        questions.create_answer(q.id, "text", "bob", parent_answer_id=999)
    with pytest.raises(ValidationError):
        questions.create_answer(q.id, "  ", "bob")


def test_mark_accepted_is_a_plain_pointer(questions):
    q = questions.create_question("Title", "", "alice")
    answer = questions.create_answer(q.id, "A", "bob")
    assert questions.mark_accepted(q.id, answer.id).accepted_answer_id == answer.id
    assert questions.mark_accepted(q.id, 12345).accepted_answer_id == 12345
    assert questions.mark_accepted(q.id, None).accepted_answer_id is None


def test_delete_question_removes_answers_and_reviews(questions, reviews, db):
    q = questions.create_question("Doomed", "", "alice")
    other = questions.create_question("Kept", "", "alice")
    a = questions.create_answer(q.id, "A", "bob")
    b = questions.create_answer(q.id, "B", "carol", parent_answer_id=a.id)
    kept_answer = questions.create_answer(other.id, "K", "bob")

    reviews.submit_review("rev", TargetType.QUESTION, q.id, 4)
    reviews.submit_review("rev", TargetType.ANSWER, a.id, 3)
    reviews.revise_review(reviews.submit_review("rev", TargetType.ANSWER, b.id, 2).id, 5)
    kept_review = reviews.submit_review("rev", TargetType.ANSWER, kept_answer.id, 1)

    questions.delete_question(q.id)

    with pytest.raises(QuestionNotFoundError):
        questions.get_question(q.id)
    for answer_id in (a.id, b.id):
        with pytest.raises(AnswerNotFoundError):
            questions.get_answer(answer_id)
    remaining = db.query(ReviewModel).all()
    assert [r.id for r in remaining] == [kept_review.id]
    assert _ids(questions.list_answers(other.id)) == [kept_answer.id]


def test_delete_answer_removes_subtree(questions, reviews, db):
    q = questions.create_question("Title", "", "alice")
    a = questions.create_answer(q.id, "A", "bob")
    b = questions.create_answer(q.id, "B", "carol", parent_answer_id=a.id)
    c = questions.create_answer(q.id, "C", "dave", parent_answer_id=b.id)
    sibling = questions.create_answer(q.id, "S", "erin")
    questions.mark_accepted(q.id, c.id)
    reviews.submit_review("rev", TargetType.ANSWER, c.id, 5)
    sibling_review = reviews.submit_review("rev", TargetType.ANSWER, sibling.id, 4)

    questions.delete_answer(a.id)

    assert _ids(questions.list_answers(q.id)) == [sibling.id]
    assert questions.get_question(q.id).accepted_answer_id is None
    assert [r.id for r in db.query(ReviewModel).all()] == [sibling_review.id]


def test_delete_answer_keeps_unrelated_accepted_answer(questions):
    q = questions.create_question("Title", "", "alice")
    a = questions.create_answer(q.id, "A", "bob")
    b = questions.create_answer(q.id, "B", "carol")
    questions.mark_accepted(q.id, b.id)
    questions.delete_answer(a.id)
    assert questions.get_question(q.id).accepted_answer_id == b.id


def test_filter_by_tag_matches_whole_tags(questions):
    python = questions.create_question("One", "", "alice", ["Python", "sql"])
    questions.create_question("Two", "", "alice", ["pythonic"])
    questions.create_question("Three", "", "alice")

    assert _ids(questions.filter_by_tag("python")) == [python.id]
    assert _ids(questions.filter_by_tag(" PYTHON ")) == [python.id]
    assert questions.filter_by_tag("") == []


def test_filter_by_tag_folds_non_ascii_case(questions):
    economy = questions.create_question("Markets", "", "alice", ["Économie"])
    questions.create_question("Other", "", "alice", ["economie"])

    assert _ids(questions.filter_by_tag("économie")) == [economy.id]
    assert _ids(questions.filter_by_tag("ÉCONOMIE")) == [economy.id]


def test_tags_deduplicate_across_non_ascii_case(questions):
    question = questions.create_question("Title", "", "alice", ["Été", "ÉTÉ", "été"])
    assert question.tags == ["Été"]


def test_list_questions_by_answered_status(questions):
    open_question = questions.create_question("Open", "", "alice")
    solved = questions.create_question("Solved", "", "alice")
    answer = questions.create_answer(solved.id, "A", "bob")
    questions.mark_accepted(solved.id, answer.id)

    assert not questions.get_question(open_question.id).answered
    assert questions.get_question(solved.id).answered
    assert _ids(questions.list_questions(answered=True)) == [solved.id]
    assert _ids(questions.list_questions(answered=False)) == [open_question.id]
    assert _ids(questions.list_questions()) == [open_question.id, solved.id]

    questions.mark_accepted(solved.id, None)
    assert _ids(questions.list_questions(answered=True)) == []


def test_delete_question_clears_flags(questions, flags):
    doomed = questions.create_question("Doomed", "", "alice")
    answer = questions.create_answer(doomed.id, "A", "bob")
    kept = questions.create_question("Kept", "", "alice")
    flags.add_flag("question", doomed.id, "stan", "off topic")
    flags.add_flag("answer", answer.id, "stan", "spam")
    kept_flag = flags.add_flag("question", kept.id, "stan", "duplicate")

    questions.delete_question(doomed.id)

    assert [f.id for f in flags.list_flags()] == [kept_flag.id]


def test_delete_answer_clears_flags_in_subtree(questions, flags):
    q = questions.create_question("Title", "", "alice")
    a = questions.create_answer(q.id, "A", "bob")
    reply = questions.create_answer(q.id, "B", "carol", parent_answer_id=a.id)
    sibling = questions.create_answer(q.id, "S", "erin")
    flags.add_flag("answer", reply.id, "stan", "rude")
    flags.add_flag("question", q.id, "stan", "vague")
    flags.add_flag("answer", sibling.id, "stan", "spam")

    questions.delete_answer(a.id)

    assert not flags.is_flagged("answer", reply.id)
    assert flags.is_flagged("answer", sibling.id)
    assert flags.is_flagged("question", q.id)
