from __future__ import annotations

from app.schemas.attempt import QuizAttemptOut
from app.schemas.catalog import QuizOut
from app.schemas.quiz_state import QuizStatus, QuizWithStatus


def determine_status(quiz: QuizOut, attempt: QuizAttemptOut | None) -> QuizStatus:
    if attempt is None:
        return QuizStatus.not_started
    if attempt.completed_at is not None:
        return QuizStatus.completed
    return QuizStatus.in_progress


def calculate_progress(quiz: QuizOut, attempt: QuizAttemptOut | None) -> int:
    """Percentage of the quiz answered, 0..100.

    Based on the position of the last answered question in the quiz's ordered
    question list. A completed attempt is always 100; an open one stops at 99
    even with every question answered.
    """
    if attempt is None:
        return 0
    if attempt.completed_at is not None:
        return 100

    total = len(quiz.questions)
    if total == 0 or attempt.last_answered_question_id is None:
        return 0

    ids = [q.id for q in quiz.questions]
    try:
        index = ids.index(attempt.last_answered_question_id)
    except ValueError:
        return 0

    # round half up on (index + 1) / total * 100, in integers
    answered = index + 1
    return min((answered * 200 + total) // (2 * total), 99)


def with_status(quiz: QuizOut, attempt: QuizAttemptOut | None) -> QuizWithStatus:
    return QuizWithStatus(
        **quiz.model_dump(include=set(QuizOut.model_fields)),
        status=determine_status(quiz, attempt),
        progress=calculate_progress(quiz, attempt),
        score=attempt.score if attempt is not None else None,
        attempt=attempt,
        last_question_id=attempt.last_answered_question_id if attempt is not None else None,
    )


def latest_attempt_for(quiz_id, attempts: list[QuizAttemptOut]) -> QuizAttemptOut | None:
    matching = [a for a in attempts if a.quiz_id == quiz_id]
    if not matching:
        return None
    return max(matching, key=lambda a: a.started_at)
