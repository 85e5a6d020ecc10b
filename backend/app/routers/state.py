from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from app.core.deps import get_attempts, get_catalog, get_quiz_state
from app.core.security import SessionUser, get_current_user
from app.schemas.quiz_state import (
    ErrorRequest,
    LoadingRequest,
    QuizProgressPatch,
    QuizScorePatch,
    QuizState,
    SelectIdRequest,
)
from app.services.attempts import AttemptService
from app.services.catalog import CatalogService
from app.services.gateway import GatewayError
from app.services.quiz_state import QuizStateContainer
from app.services.quiz_status import with_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/state", tags=["state"])


@router.get("", response_model=QuizState)
def get_state(state: QuizStateContainer = Depends(get_quiz_state)):
    return state.state


@router.put("/subject", response_model=QuizState)
def select_subject(body: SelectIdRequest, state: QuizStateContainer = Depends(get_quiz_state)):
    return state.set_selected_subject(body.id)


@router.put("/category", response_model=QuizState)
def select_category(
    body: SelectIdRequest,
    state: QuizStateContainer = Depends(get_quiz_state),
    catalog: CatalogService = Depends(get_catalog),
    attempts: AttemptService = Depends(get_attempts),
    user: SessionUser = Depends(get_current_user),
):
    state.set_selected_category(body.id)
    if body.id is None:
        return state.state

    state.set_loading(True)
    try:
        quizzes = catalog.get_quizzes_by_category(body.id)
        mine = attempts.list_attempts(user.id, quiz_ids=[q.id for q in quizzes]) if quizzes else []
        state.set_quizzes(quizzes, mine)
        state.set_error(None)
    except GatewayError as e:
        # Keep whatever is already shown; the error travels in the state.
        logger.error("loading quizzes for category %s failed: %r", body.id, e)
        state.set_error("Failed to load quizzes")
    finally:
        state.set_loading(False)
    return state.state


@router.put("/current-quiz", response_model=QuizState)
def select_quiz(
    body: SelectIdRequest,
    state: QuizStateContainer = Depends(get_quiz_state),
    catalog: CatalogService = Depends(get_catalog),
    attempts: AttemptService = Depends(get_attempts),
    user: SessionUser = Depends(get_current_user),
):
    if body.id is None:
        return state.set_current_quiz(None)

    known = next((q for q in state.state.quizzes if q.id == body.id), None)
    if known is not None:
        return state.set_current_quiz(known)

    quiz = catalog.get_quiz(body.id)
    if quiz is None:
        raise HTTPException(status_code=404, detail="quiz not found")
    return state.set_current_quiz(with_status(quiz, attempts.get_last_attempt(quiz.id, user.id)))


@router.post("/progress", response_model=QuizState)
def patch_progress(body: QuizProgressPatch, state: QuizStateContainer = Depends(get_quiz_state)):
    return state.update_quiz_progress(body.quiz_id, body.progress, body.last_question_id)


@router.post("/score", response_model=QuizState)
def patch_score(body: QuizScorePatch, state: QuizStateContainer = Depends(get_quiz_state)):
    return state.update_quiz_score(body.quiz_id, body.score)


@router.put("/loading", response_model=QuizState)
def put_loading(body: LoadingRequest, state: QuizStateContainer = Depends(get_quiz_state)):
    return state.set_loading(body.loading)


@router.put("/error", response_model=QuizState)
def put_error(body: ErrorRequest, state: QuizStateContainer = Depends(get_quiz_state)):
    return state.set_error(body.error)


@router.delete("", response_model=QuizState)
def reset_state(state: QuizStateContainer = Depends(get_quiz_state)):
    return state.reset()
