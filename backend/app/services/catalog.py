from __future__ import annotations

import logging
import uuid

from app.schemas.catalog import CategoryOut, ChoiceOut, QuestionOut, QuizOut, SubjectOut
from app.services.cache import CacheKey, TimedCache
from app.services.gateway import Gateway, GatewayError, asc

logger = logging.getLogger(__name__)


class CatalogService:
    """Read-only access to subjects, categories and quizzes.

    List reads go through the timed cache; single-record reads always hit the
    gateway and return ``None`` when nothing matches.
    """

    def __init__(self, gateway: Gateway, cache: TimedCache | None = None):
        self.gateway = gateway
        self.cache = cache

    def _cached(self, key: CacheKey):
        if self.cache is None:
            return None
        return self.cache.get_cached_data(key)

    def _remember(self, key: CacheKey, items: list) -> None:
        if self.cache is not None:
            self.cache.set_cached_data(key, [i.model_dump(mode="json") for i in items])

    def _one(self, collection: str, record_id: uuid.UUID) -> dict | None:
        try:
            return self.gateway.select_one(collection, filters={"id": record_id})
        except GatewayError as e:
            if e.is_no_rows:
                return None
            raise

    def get_subjects(self) -> list[SubjectOut]:
        key = CacheKey.subjects()
        cached = self._cached(key)
        if cached is not None:
            return [SubjectOut.model_validate(s) for s in cached]

        subjects = [SubjectOut.model_validate(r) for r in self.gateway.select("subjects", order_by=[asc("name")])]
        self._remember(key, subjects)
        return subjects

    def get_subject(self, subject_id: uuid.UUID) -> SubjectOut | None:
        row = self._one("subjects", subject_id)
        return SubjectOut.model_validate(row) if row else None

    def get_categories(self, subject_id: uuid.UUID) -> list[CategoryOut]:
        key = CacheKey.categories(subject_id)
        cached = self._cached(key)
        if cached is not None:
            return [CategoryOut.model_validate(c) for c in cached]

        rows = self.gateway.select("categories", filters={"subject_id": subject_id}, order_by=[asc("name")])
        categories = [CategoryOut.model_validate(r) for r in rows]
        self._remember(key, categories)
        return categories

    def get_category(self, category_id: uuid.UUID) -> CategoryOut | None:
        row = self._one("categories", category_id)
        return CategoryOut.model_validate(row) if row else None

    def get_quizzes_by_category(self, category_id: uuid.UUID) -> list[QuizOut]:
        """Active quizzes of a category with category, questions and choices."""
        key = CacheKey.quizzes(category_id)
        cached = self._cached(key)
        if cached is not None:
            return [QuizOut.model_validate(q) for q in cached]

        rows = self.gateway.select(
            "quizzes",
            filters={"category_id": category_id, "is_active": True},
            order_by=[asc("title")],
        )
        quizzes = self._hydrate(rows)
        self._remember(key, quizzes)
        return quizzes

    def get_quiz(self, quiz_id: uuid.UUID) -> QuizOut | None:
        row = self._one("quizzes", quiz_id)
        if row is None:
            return None
        return self._hydrate([row])[0]

    def _hydrate(self, quiz_rows: list[dict]) -> list[QuizOut]:
        if not quiz_rows:
            return []

        quiz_ids = [q["id"] for q in quiz_rows]
        category_ids = list({q["category_id"] for q in quiz_rows})
        categories = {c["id"]: c for c in self.gateway.select("categories", filters={"id": category_ids})}

        links = self.gateway.select(
            "quiz_questions",
            filters={"quiz_id": quiz_ids},
            order_by=[asc("quiz_id"), asc("position")],
        )
        question_ids = list({link["question_id"] for link in links})

        questions: dict = {}
        choices_by_question: dict = {}
        if question_ids:
            questions = {q["id"]: q for q in self.gateway.select("questions", filters={"id": question_ids})}
            for c in self.gateway.select("choices", filters={"question_id": question_ids}, order_by=[asc("content")]):
                choices_by_question.setdefault(c["question_id"], []).append(ChoiceOut.model_validate(c))

        questions_by_quiz: dict = {}
        for link in links:
            q = questions.get(link["question_id"])
            if q is None:
                continue
            questions_by_quiz.setdefault(link["quiz_id"], []).append(
                QuestionOut(**q, choices=choices_by_question.get(q["id"], []))
            )

        items = []
        for row in quiz_rows:
            category = categories.get(row["category_id"])
            items.append(
                QuizOut(
                    **row,
                    category=CategoryOut.model_validate(category) if category else None,
                    questions=questions_by_quiz.get(row["id"], []),
                )
            )
        logger.debug("hydrated %d quizzes", len(items))
        return items
