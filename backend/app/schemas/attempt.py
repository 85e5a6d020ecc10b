from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from app.schemas.catalog import QuizSummary


class QuizAttemptOut(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    quiz_id: uuid.UUID
    started_at: datetime
    completed_at: datetime | None = None
    last_answered_question_id: uuid.UUID | None = None
    score: int = 0
    updated_at: datetime | None = None


class QuizAttemptWithQuiz(QuizAttemptOut):
    quiz: QuizSummary | None = None


class AttemptStartRequest(BaseModel):
    quiz_id: uuid.UUID


class AttemptProgressRequest(BaseModel):
    last_answered_question_id: uuid.UUID
    score: int = Field(ge=0)


class AttemptCompleteRequest(BaseModel):
    score: int = Field(ge=0)
