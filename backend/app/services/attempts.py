from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone

from app.schemas.attempt import QuizAttemptOut, QuizAttemptWithQuiz
from app.schemas.catalog import CategoryOut, QuizSummary
from app.services.gateway import CONFLICT, Gateway, GatewayError, desc

logger = logging.getLogger(__name__)

ATTEMPTS = "quiz_attempts"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AttemptService:
    """Lifecycle of quiz attempts: start or resume, record progress, complete.

    ``not-started -> in-progress -> completed``; nothing leaves ``completed``.
    """

    def __init__(self, gateway: Gateway, clock: Callable[[], datetime] = utcnow):
        self.gateway = gateway
        self.clock = clock

    def _latest(self, quiz_id: uuid.UUID, user_id: uuid.UUID) -> QuizAttemptOut | None:
        rows = self.gateway.select(
            ATTEMPTS,
            filters={"quiz_id": quiz_id, "user_id": user_id},
            order_by=[desc("started_at")],
            limit=1,
        )
        return QuizAttemptOut.model_validate(rows[0]) if rows else None

    def get_or_create_attempt(self, quiz_id: uuid.UUID, user_id: uuid.UUID) -> QuizAttemptOut:
        last = self._latest(quiz_id, user_id)
        if last is not None and last.completed_at is None:
            return last

        try:
            created = self.gateway.insert(
                ATTEMPTS,
                {
                    "quiz_id": quiz_id,
                    "user_id": user_id,
                    "started_at": self.clock(),
                    "score": 0,
                },
            )
        except GatewayError as e:
            if e.code != CONFLICT:
                raise
            # Lost the race against a concurrent start: the active row exists now.
            winner = self._latest(quiz_id, user_id)
            if winner is None or winner.completed_at is not None:
                raise
            logger.info("reusing concurrently created attempt %s for quiz %s", winner.id, quiz_id)
            return winner

        attempt = QuizAttemptOut.model_validate(created)
        logger.info("started attempt %s for quiz %s user %s", attempt.id, quiz_id, user_id)
        return attempt

    def update_attempt_progress(
        self,
        attempt_id: uuid.UUID,
        last_answered_question_id: uuid.UUID,
        score: int,
    ) -> None:
        self.gateway.update(
            ATTEMPTS,
            {"id": attempt_id},
            {
                "last_answered_question_id": last_answered_question_id,
                "score": score,
                "updated_at": self.clock(),
            },
            require_match=True,
        )

    def complete_attempt(self, attempt_id: uuid.UUID, final_score: int) -> None:
        # Repeated completion rewrites score and timestamps: last write wins.
        now = self.clock()
        self.gateway.update(
            ATTEMPTS,
            {"id": attempt_id},
            {"completed_at": now, "score": final_score, "updated_at": now},
            require_match=True,
        )
        logger.info("completed attempt %s with score %s", attempt_id, final_score)

    def get_last_attempt(self, quiz_id: uuid.UUID, user_id: uuid.UUID) -> QuizAttemptOut | None:
        try:
            row = self.gateway.select_one(
                ATTEMPTS,
                filters={"quiz_id": quiz_id, "user_id": user_id},
                order_by=[desc("started_at")],
            )
        except GatewayError as e:
            if e.is_no_rows:
                return None
            raise
        return QuizAttemptOut.model_validate(row)

    def get_attempt(self, attempt_id: uuid.UUID, user_id: uuid.UUID) -> QuizAttemptOut | None:
        try:
            row = self.gateway.select_one(ATTEMPTS, filters={"id": attempt_id, "user_id": user_id})
        except GatewayError as e:
            if e.is_no_rows:
                return None
            raise
        return QuizAttemptOut.model_validate(row)

    def list_attempts(self, user_id: uuid.UUID, quiz_ids=None) -> list[QuizAttemptOut]:
        filters: dict = {"user_id": user_id}
        if quiz_ids is not None:
            filters["quiz_id"] = list(quiz_ids)
        rows = self.gateway.select(ATTEMPTS, filters=filters, order_by=[desc("started_at")])
        return [QuizAttemptOut.model_validate(r) for r in rows]

    def get_user_attempts(self, user_id: uuid.UUID) -> list[QuizAttemptWithQuiz]:
        """All attempts of a user, newest first, each with its quiz and category."""
        attempts = self.list_attempts(user_id)
        if not attempts:
            return []

        quiz_ids = list({a.quiz_id for a in attempts})
        quizzes = {q["id"]: q for q in self.gateway.select("quizzes", filters={"id": quiz_ids})}
        category_ids = list({q["category_id"] for q in quizzes.values()})
        categories = {}
        if category_ids:
            categories = {c["id"]: c for c in self.gateway.select("categories", filters={"id": category_ids})}

        items = []
        for a in attempts:
            quiz = quizzes.get(a.quiz_id)
            summary = None
            if quiz is not None:
                category = categories.get(quiz["category_id"])
                summary = QuizSummary(
                    **quiz,
                    category=CategoryOut.model_validate(category) if category else None,
                )
            items.append(QuizAttemptWithQuiz(**a.model_dump(), quiz=summary))
        return items
