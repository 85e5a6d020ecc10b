from __future__ import annotations

import uuid

from pydantic import BaseModel

from app.schemas.attempt import QuizAttemptWithQuiz
from app.schemas.catalog import SubjectOut


class PracticeUser(BaseModel):
    id: uuid.UUID
    email: str | None = None


class PracticePageResponse(BaseModel):
    subjects: list[SubjectOut]
    attempts: list[QuizAttemptWithQuiz]
    user: PracticeUser
