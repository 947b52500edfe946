"""Question and answer routes.

Anyone logged in may ask and answer. Only the author edits their own
content; authors, staff and admins may delete it.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends

from api.routes.auth import get_current_user
from core.dependencies import QuestionManagerDep
from core.exceptions import PermissionDeniedError, ValidationError
from schemas.question import (
    Answer,
    AnswerNode,
    CreateAnswerRequest,
    CreateQuestionRequest,
    MarkAcceptedRequest,
    Question,
    UpdateAnswerRequest,
    UpdateQuestionRequest,
)
from schemas.user import Role, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/questions", tags=["Questions"])


def _ensure_author(current_user: User, author: str) -> None:
    if current_user.username != author:
        raise PermissionDeniedError("Only the author can edit this item.")


def _ensure_can_delete(current_user: User, author: str) -> None:
    if current_user.username == author:
        return
    if current_user.has_role(Role.ADMIN) or current_user.has_role(Role.STAFF):
        return
    raise PermissionDeniedError("Only the author, staff or an admin can delete this item.")


@router.get("", response_model=List[Question], summary="List or search questions")
def list_questions(
    q: Optional[str] = None,
    tag: Optional[str] = None,
    answered: Optional[bool] = None,
    current_user: User = Depends(get_current_user),
    question_manager: QuestionManagerDep = None,
) -> List[Question]:
    if tag:
        results = question_manager.filter_by_tag(tag)
    elif q is not None:
        results = question_manager.search(q)
    else:
        return question_manager.list_questions(answered=answered)
    if answered is not None:
        results = [question for question in results if question.answered is answered]
    return results


@router.post("", response_model=Question, summary="Ask a question")
def create_question(
    req: CreateQuestionRequest,
    current_user: User = Depends(get_current_user),
    question_manager: QuestionManagerDep = None,
) -> Question:
    return question_manager.create_question(
        req.title, req.content, current_user.username, req.tags
    )


@router.get("/{question_id}", response_model=Question, summary="Get a question")
def get_question(
    question_id: int,
    current_user: User = Depends(get_current_user),
    question_manager: QuestionManagerDep = None,
) -> Question:
    return question_manager.get_question(question_id)


@router.patch("/{question_id}", response_model=Question, summary="Edit a question")
def update_question(
    question_id: int,
    req: UpdateQuestionRequest,
    current_user: User = Depends(get_current_user),
    question_manager: QuestionManagerDep = None,
) -> Question:
    question = question_manager.get_question(question_id)
    _ensure_author(current_user, question.author)
    return question_manager.update_question(
        question_id, title=req.title, content=req.content, tags=req.tags
    )


@router.delete("/{question_id}", summary="Delete a question")
def delete_question(
    question_id: int,
    current_user: User = Depends(get_current_user),
    question_manager: QuestionManagerDep = None,
) -> dict:
    question = question_manager.get_question(question_id)
    _ensure_can_delete(current_user, question.author)
    question_manager.delete_question(question_id)
    return {"success": True, "message": "Question deleted successfully"}


@router.put(
    "/{question_id}/accepted-answer",
    response_model=Question,
    summary="Mark the accepted answer",
)
def mark_accepted(
    question_id: int,
    req: MarkAcceptedRequest,
    current_user: User = Depends(get_current_user),
    question_manager: QuestionManagerDep = None,
) -> Question:
    question = question_manager.get_question(question_id)
    _ensure_author(current_user, question.author)
    if req.answer_id is not None:
        answer = question_manager.get_answer(req.answer_id)
        if answer.question_id != question_id:
            raise ValidationError(
                f"Answer {req.answer_id} does not belong to question {question_id}."
            )
    return question_manager.mark_accepted(question_id, req.answer_id)


@router.get(
    "/{question_id}/thread",
    response_model=List[AnswerNode],
    summary="Answers of a question as a reply tree",
)
def load_thread(
    question_id: int,
    current_user: User = Depends(get_current_user),
    question_manager: QuestionManagerDep = None,
) -> List[AnswerNode]:
    return question_manager.load_thread(question_id)


@router.get(
    "/{question_id}/answers",
    response_model=List[Answer],
    summary="Answers of a question as a flat list",
)
def list_answers(
    question_id: int,
    current_user: User = Depends(get_current_user),
    question_manager: QuestionManagerDep = None,
) -> List[Answer]:
    return question_manager.list_answers(question_id)


@router.post("/{question_id}/answers", response_model=Answer, summary="Answer or reply")
def create_answer(
    question_id: int,
    req: CreateAnswerRequest,
    current_user: User = Depends(get_current_user),
    question_manager: QuestionManagerDep = None,
) -> Answer:
    return question_manager.create_answer(
        question_id, req.content, current_user.username, req.parent_answer_id
    )


@router.patch("/answers/{answer_id}", response_model=Answer, summary="Edit an answer")
def update_answer(
    answer_id: int,
    req: UpdateAnswerRequest,
    current_user: User = Depends(get_current_user),
    question_manager: QuestionManagerDep = None,
) -> Answer:
    answer = question_manager.get_answer(answer_id)
    _ensure_author(current_user, answer.author)
    return question_manager.update_answer(answer_id, req.content)


@router.delete("/answers/{answer_id}", summary="Delete an answer and its replies")
def delete_answer(
    answer_id: int,
    current_user: User = Depends(get_current_user),
    question_manager: QuestionManagerDep = None,
) -> dict:
    answer = question_manager.get_answer(answer_id)
    _ensure_can_delete(current_user, answer.author)
    question_manager.delete_answer(answer_id)
    return {"success": True, "message": "Answer deleted successfully"}
