from __future__ import annotations

import uuid

from pydantic import BaseModel, Field


class SubjectOut(BaseModel):
    id: uuid.UUID
    name: str


class CategoryOut(BaseModel):
    id: uuid.UUID
    subject_id: uuid.UUID
    name: str


class ChoiceOut(BaseModel):
    id: uuid.UUID
    content: str
    is_correct: bool
    explanation: str | None = None


class QuestionOut(BaseModel):
    id: uuid.UUID
    content: str
    image_url: str | None = None
    explanation: str | None = None
    choices: list[ChoiceOut] = Field(default_factory=list)


class QuizSummary(BaseModel):
    id: uuid.UUID
    category_id: uuid.UUID
    title: str
    description: str | None = None
    is_active: bool = True
    category: CategoryOut | None = None


class QuizOut(QuizSummary):
    questions: list[QuestionOut] = Field(default_factory=list)
