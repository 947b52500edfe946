import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from config import REVIEW_FEEDBACK_MESSAGE_TYPE
from core.exceptions import (
    AnswerNotFoundError,
    PermissionDeniedError,
    PersistenceError,
    QuestionNotFoundError,
    ReviewNotFoundError,
    StaleReviewError,
    ValidationError,
)
from models.review import ReviewModel
from models.review_update import ReviewUpdateModel
from schemas.review import TargetType
from schemas.user import Role


@pytest.fixture
def question(questions):
    return questions.create_question("Title", "", "alice")


@pytest.fixture
def answer(questions, question):
    return questions.create_answer(question.id, "An answer", "bob")


def _latest_count(db, reviewer, target_type, target_id):
    return db.scalar(
        select(func.count(ReviewModel.id)).where(
            ReviewModel.reviewer_username == reviewer,
            ReviewModel.target_type == target_type.value,
            ReviewModel.target_id == target_id,
            ReviewModel.is_latest.is_(True),
        )
    )


def test_submit_review(reviews, answer):
    review = reviews.submit_review("rev", "answer", answer.id, 4, "solid")
    assert review.is_latest
    assert review.previous_review_id is None
    assert review.target_type is TargetType.ANSWER
    assert reviews.get_latest("rev", TargetType.ANSWER, answer.id) == review


@pytest.mark.parametrize("rating", [0, 6, -1, True, 2.5, "3"])
def test_rating_must_be_whole_number_in_range(reviews, answer, rating):
    with pytest.raises(ValidationError):
        reviews.submit_review("rev", TargetType.ANSWER, answer.id, rating)


def test_review_target_must_exist(reviews):
    with pytest.raises(QuestionNotFoundError):
        reviews.submit_review("rev", TargetType.QUESTION, 404, 3)
    with pytest.raises(AnswerNotFoundError):
        reviews.submit_review("rev", TargetType.ANSWER, 404, 3)
    with pytest.raises(ValidationError):
        reviews.submit_review("rev", "comment", 1, 3)


def test_revise_appends_a_version(reviews, db, answer):
    first = reviews.submit_review("rev", TargetType.ANSWER, answer.id, 2, "meh")
    second = reviews.revise_review(first.id, 4, "better after edit")

    assert second.id != first.id
    assert second.previous_review_id == first.id
    assert second.is_latest
    assert not reviews.get_review(first.id).is_latest
    # The old version keeps its content
    assert reviews.get_review(first.id).rating == 2
    assert _latest_count(db, "rev", TargetType.ANSWER, answer.id) == 1
    assert [r.id for r in reviews.get_chain("rev", TargetType.ANSWER, answer.id)] == [
        first.id,
        second.id,
    ]


def test_submitting_again_continues_the_chain(reviews, db, question):
    first = reviews.submit_review("rev", TargetType.QUESTION, question.id, 1)
    second = reviews.submit_review("rev", TargetType.QUESTION, question.id, 5)
    assert second.previous_review_id == first.id
    assert _latest_count(db, "rev", TargetType.QUESTION, question.id) == 1


def test_revising_a_superseded_version_is_stale(reviews, db, answer):
    first = reviews.submit_review("rev", TargetType.ANSWER, answer.id, 2)
    reviews.revise_review(first.id, 3)
    with pytest.raises(StaleReviewError):
        reviews.revise_review(first.id, 5)
    assert _latest_count(db, "rev", TargetType.ANSWER, answer.id) == 1


def test_only_the_reviewer_may_revise(reviews, answer):
    first = reviews.submit_review("rev", TargetType.ANSWER, answer.id, 2)
    with pytest.raises(PermissionDeniedError):
        reviews.revise_review(first.id, 5, reviewer_username="mallory")
    assert reviews.get_review(first.id).is_latest


def test_failed_revision_rolls_back_completely(reviews, db, answer, monkeypatch):
    first = reviews.submit_review("rev", TargetType.ANSWER, answer.id, 2)

    def broken(reviewer_username):
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(reviews, "_record_update", broken)
    with pytest.raises(PersistenceError):
        reviews.revise_review(first.id, 5)

    assert reviews.get_review(first.id).is_latest
    assert db.scalar(select(func.count(ReviewModel.id))) == 1
    assert _latest_count(db, "rev", TargetType.ANSWER, answer.id) == 1


def test_each_version_logs_an_update(reviews, db, answer):
    first = reviews.submit_review("rev", TargetType.ANSWER, answer.id, 2)
    reviews.revise_review(first.id, 3)
    assert db.scalar(select(func.count(ReviewUpdateModel.id))) == 2


@pytest.mark.parametrize("start", [0, 1, 2])
def test_delete_chain_from_any_member(reviews, answer, start):
    first = reviews.submit_review("rev", TargetType.ANSWER, answer.id, 1)
    second = reviews.revise_review(first.id, 2)
    third = reviews.revise_review(second.id, 3)
    chain = [first.id, second.id, third.id]

    assert reviews.delete_review_chain(chain[start]) == 3

    for review_id in chain:
        with pytest.raises(ReviewNotFoundError):
            reviews.get_review(review_id)
    assert reviews.get_latest("rev", TargetType.ANSWER, answer.id) is None


def test_delete_chain_leaves_other_chains(reviews, answer):
    mine = reviews.submit_review("rev", TargetType.ANSWER, answer.id, 1)
    theirs = reviews.submit_review("other", TargetType.ANSWER, answer.id, 5)
    assert reviews.delete_review_chain(mine.id) == 1
    assert reviews.get_review(theirs.id).is_latest


def test_delete_missing_chain(reviews):
    with pytest.raises(ReviewNotFoundError):
        reviews.delete_review_chain(404)


def test_chain_for_review_is_oldest_first(reviews, answer):
    first = reviews.submit_review("rev", TargetType.ANSWER, answer.id, 1)
    second = reviews.revise_review(first.id, 2)
    third = reviews.revise_review(second.id, 3)
    assert [r.rating for r in reviews.get_chain_for_review(second.id)] == [1, 2, 3]
    assert reviews.get_chain_for_review(first.id)[-1].id == third.id


def test_reviews_by_reviewer(reviews, question, answer):
    first = reviews.submit_review("rev", TargetType.ANSWER, answer.id, 1)
    reviews.revise_review(first.id, 2)
    reviews.submit_review("rev", TargetType.QUESTION, question.id, 4)
    assert len(reviews.reviews_by_reviewer("rev")) == 3
    latest = reviews.reviews_by_reviewer("rev", latest_only=True)
    assert sorted(r.rating for r in latest) == [2, 4]


def test_reviews_are_immutable_records(reviews, answer):
    review = reviews.submit_review("rev", TargetType.ANSWER, answer.id, 3)
    with pytest.raises(Exception):
        review.rating = 5


# --- Aggregation ---


@pytest.fixture
def people(make_user):
    make_user("student", Role.STUDENT)
    for name in ("trusted", "untrusted", "third"):
        make_user(name, Role.REVIEWER)


def test_aggregate_excludes_untrusted_reviewers(people, reviews, trust, answer):
    trust.set_trusted_reviewer("student", "trusted", 2)
    reviews.submit_review("trusted", TargetType.ANSWER, answer.id, 5)
    reviews.submit_review("untrusted", TargetType.ANSWER, answer.id, 1)

    assert reviews.aggregate_rating(TargetType.ANSWER, answer.id, "student") == 5.0

    trust.set_trusted_reviewer("student", "third", 1)
    reviews.submit_review("third", TargetType.ANSWER, answer.id, 3)

    assert reviews.aggregate_rating(
        TargetType.ANSWER, answer.id, "student"
    ) == pytest.approx((5 * 2 + 3 * 1) / 3)
    assert reviews.trusted_weights_for_target(
        TargetType.ANSWER, answer.id, "student"
    ) == {"trusted": 2, "third": 1}


def test_aggregate_uses_latest_versions_only(people, reviews, trust, answer):
    trust.set_trusted_reviewer("student", "trusted", 3)
    first = reviews.submit_review("trusted", TargetType.ANSWER, answer.id, 5)
    reviews.revise_review(first.id, 2)
    assert reviews.aggregate_rating(TargetType.ANSWER, answer.id, "student") == 2.0


def test_aggregate_without_trusted_reviews_is_none(people, reviews, trust, answer):
    reviews.submit_review("untrusted", TargetType.ANSWER, answer.id, 4)
    assert reviews.aggregate_rating(TargetType.ANSWER, answer.id, "student") is None
    trust.set_trusted_reviewer("student", "trusted", 5)
    assert reviews.aggregate_rating(TargetType.ANSWER, answer.id, "student") is None


def test_reviewer_scorecard(people, reviews, messages, question, answer):
    first = reviews.submit_review("trusted", TargetType.ANSWER, answer.id, 2)
    reviews.revise_review(first.id, 4)
    reviews.submit_review("trusted", TargetType.QUESTION, question.id, 2)
    reviews.submit_review("third", TargetType.ANSWER, answer.id, 5)
    messages.send(
        "student", "trusted", "thanks", answer_id=answer.id,
        message_type=REVIEW_FEEDBACK_MESSAGE_TYPE,
    )
    messages.send("student", "trusted", "unrelated chat", answer_id=answer.id)

    scores = {s.reviewer_username: s for s in reviews.reviewer_scorecard()}

    assert set(scores) == {"trusted", "third"}
    assert scores["trusted"].average_rating == pytest.approx(3.0)
    assert scores["trusted"].review_count == 2
    assert scores["trusted"].feedback_count == 1
    assert scores["third"].feedback_count == 0
