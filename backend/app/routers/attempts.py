from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from app.core.config import settings
from app.core.deps import get_attempts, get_catalog, get_quiz_state
from app.core.rate_limit import rate_limit
from app.core.security import SessionUser, get_current_user
from app.routers._ids import parse_id
from app.schemas.attempt import (
    AttemptCompleteRequest,
    AttemptProgressRequest,
    AttemptStartRequest,
    QuizAttemptOut,
    QuizAttemptWithQuiz,
)
from app.services.attempts import AttemptService
from app.services.catalog import CatalogService
from app.services.quiz_state import QuizStateContainer
from app.services.quiz_status import calculate_progress

router = APIRouter(prefix="/api/quiz-attempts", tags=["attempts"])


def _owned_attempt(attempts: AttemptService, attempt_id: str, user: SessionUser) -> QuizAttemptOut:
    attempt = attempts.get_attempt(parse_id(attempt_id, "attempt id"), user.id)
    if attempt is None:
        raise HTTPException(status_code=404, detail="attempt not found")
    return attempt


@router.get("", response_model=list[QuizAttemptWithQuiz])
def list_my_attempts(
    attempts: AttemptService = Depends(get_attempts),
    user: SessionUser = Depends(get_current_user),
):
    return attempts.get_user_attempts(user.id)


@router.post("", response_model=QuizAttemptOut)
def start_or_resume_attempt(
    body: AttemptStartRequest,
    attempts: AttemptService = Depends(get_attempts),
    catalog: CatalogService = Depends(get_catalog),
    state: QuizStateContainer = Depends(get_quiz_state),
    user: SessionUser = Depends(get_current_user),
    _: object = rate_limit(key_prefix="attempt_start", limit=settings.attempt_create_rate_limit, window_seconds=60),
):
    quiz = catalog.get_quiz(body.quiz_id)
    if quiz is None:
        raise HTTPException(status_code=404, detail="quiz not found")
    if not quiz.is_active:
        raise HTTPException(status_code=409, detail="quiz is not active")

    attempt = attempts.get_or_create_attempt(quiz.id, user.id)
    state.set_current_attempt(attempt)
    return attempt


@router.get("/last", response_model=QuizAttemptOut | None)
def last_attempt(
    quiz_id: str,
    attempts: AttemptService = Depends(get_attempts),
    user: SessionUser = Depends(get_current_user),
):
    return attempts.get_last_attempt(parse_id(quiz_id, "quiz id"), user.id)


@router.patch("/{attempt_id}/progress", response_model=QuizAttemptOut)
def record_progress(
    attempt_id: str,
    body: AttemptProgressRequest,
    attempts: AttemptService = Depends(get_attempts),
    catalog: CatalogService = Depends(get_catalog),
    state: QuizStateContainer = Depends(get_quiz_state),
    user: SessionUser = Depends(get_current_user),
):
    attempt = _owned_attempt(attempts, attempt_id, user)
    if attempt.completed_at is not None:
        raise HTTPException(status_code=409, detail="attempt already completed")

    attempts.update_attempt_progress(attempt.id, body.last_answered_question_id, body.score)
    updated = attempts.get_attempt(attempt.id, user.id)

    quiz = catalog.get_quiz(attempt.quiz_id)
    if quiz is not None and updated is not None:
        state.update_quiz_progress(quiz.id, calculate_progress(quiz, updated), body.last_answered_question_id)
    return updated


@router.post("/{attempt_id}/complete", response_model=QuizAttemptOut)
def complete(
    attempt_id: str,
    body: AttemptCompleteRequest,
    attempts: AttemptService = Depends(get_attempts),
    state: QuizStateContainer = Depends(get_quiz_state),
    user: SessionUser = Depends(get_current_user),
):
    attempt = _owned_attempt(attempts, attempt_id, user)
    attempts.complete_attempt(attempt.id, body.score)
    state.update_quiz_score(attempt.quiz_id, body.score)
    return attempts.get_attempt(attempt.id, user.id)
