from __future__ import annotations

import enum
import uuid

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.attempt import QuizAttemptOut
from app.schemas.catalog import QuizOut


class QuizStatus(str, enum.Enum):
    not_started = "not-started"
    in_progress = "in-progress"
    completed = "completed"


class QuizWithStatus(QuizOut):
    status: QuizStatus = QuizStatus.not_started
    progress: int = Field(default=0, ge=0, le=100)
    score: int | None = None
    attempt: QuizAttemptOut | None = None
    last_question_id: uuid.UUID | None = None


class QuizState(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_quiz: QuizWithStatus | None = None
    current_attempt: QuizAttemptOut | None = None
    selected_subject: uuid.UUID | None = None
    selected_category: uuid.UUID | None = None
    quizzes: list[QuizWithStatus] = Field(default_factory=list)
    loading: bool = False
    error: str | None = None


class SelectIdRequest(BaseModel):
    id: uuid.UUID | None = None


class QuizProgressPatch(BaseModel):
    quiz_id: uuid.UUID
    progress: int = Field(ge=0, le=100)
    last_question_id: uuid.UUID | None = None


class QuizScorePatch(BaseModel):
    quiz_id: uuid.UUID
    score: int = Field(ge=0)


class LoadingRequest(BaseModel):
    loading: bool


class ErrorRequest(BaseModel):
    error: str | None = None
