from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from app.core.deps import get_attempts, get_catalog
from app.core.security import SessionUser, get_current_user
from app.routers._ids import parse_id
from app.schemas.quiz_state import QuizWithStatus
from app.services.attempts import AttemptService
from app.services.catalog import CatalogService
from app.services.quiz_status import latest_attempt_for, with_status

router = APIRouter(prefix="/api", tags=["quizzes"])


@router.get("/quizzes/{category_id}", response_model=list[QuizWithStatus])
def list_quizzes(
    category_id: str,
    catalog: CatalogService = Depends(get_catalog),
    attempts: AttemptService = Depends(get_attempts),
    user: SessionUser = Depends(get_current_user),
):
    quizzes = catalog.get_quizzes_by_category(parse_id(category_id, "category id"))
    if not quizzes:
        return []

    mine = attempts.list_attempts(user.id, quiz_ids=[q.id for q in quizzes])
    return [with_status(q, latest_attempt_for(q.id, mine)) for q in quizzes]


@router.get("/quiz/{quiz_id}", response_model=QuizWithStatus)
def get_quiz(
    quiz_id: str,
    catalog: CatalogService = Depends(get_catalog),
    attempts: AttemptService = Depends(get_attempts),
    user: SessionUser = Depends(get_current_user),
):
    quiz = catalog.get_quiz(parse_id(quiz_id, "quiz id"))
    if quiz is None:
        raise HTTPException(status_code=404, detail="quiz not found")
    return with_status(quiz, attempts.get_last_attempt(quiz.id, user.id))
