from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Iterable
from contextlib import contextmanager

import redis
from pydantic import ValidationError

from app.core.config import settings
from app.schemas.attempt import QuizAttemptOut
from app.schemas.catalog import QuizOut
from app.schemas.quiz_state import QuizState, QuizStatus, QuizWithStatus
from app.services.cache import KeyValueStore
from app.services.quiz_status import latest_attempt_for, with_status

logger = logging.getLogger(__name__)

Subscriber = Callable[[QuizState], None]

LOCK_TIMEOUT_SECONDS = 10
LOCK_WAIT_SECONDS = 5

_local_locks: dict[str, threading.Lock] = {}
_local_locks_guard = threading.Lock()


def state_key(user_id) -> str:
    return f"{settings.state_key_prefix}:{user_id}"


def state_lock(store: KeyValueStore, key: str):
    """Lock shared by every container working on ``key``.

    A Redis store gets a Redis lock so that API workers in different processes
    take turns; any other store falls back to one in-process lock per key.
    """
    if isinstance(store, redis.Redis):
        return store.lock(f"{key}:lock", timeout=LOCK_TIMEOUT_SECONDS, blocking_timeout=LOCK_WAIT_SECONDS)
    with _local_locks_guard:
        return _local_locks.setdefault(key, threading.Lock())


class QuizStateContainer:
    """Observable quiz-taking state for one user, persisted in a key-value store.

    Every mutation reloads the stored state under the key's lock, replaces it
    whole, writes it back, and then notifies subscribers and returns the new
    state. Containers built per request on the same key never overwrite each
    other's changes.
    """

    def __init__(self, store: KeyValueStore, key: str, lock=None):
        self.store = store
        self.key = key
        self._lock = lock if lock is not None else state_lock(store, key)
        self._subscribers_lock = threading.Lock()
        self._subscribers: list[Subscriber] = []
        # set when the last write failed, so the in-memory copy is the newest one
        self._unsaved = False
        self._state = self._load(QuizState())

    @property
    def state(self) -> QuizState:
        return self._state

    def _load(self, fallback: QuizState) -> QuizState:
        try:
            raw = self.store.get(self.key)
        except Exception as e:
            logger.warning("could not read quiz state %s: %s", self.key, e)
            return fallback
        if raw is None:
            return QuizState()
        try:
            return QuizState.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("discarding unreadable quiz state %s: %s", self.key, e)
            return QuizState()

    def _persist(self, state: QuizState) -> None:
        try:
            self.store.set(self.key, state.model_dump_json())
            self._unsaved = False
        except Exception as e:
            self._unsaved = True
            logger.warning("could not persist quiz state %s: %s", self.key, e)

    @contextmanager
    def _locked(self):
        acquired = False
        try:
            acquired = self._lock.acquire()
        except Exception as e:
            logger.warning("could not lock quiz state %s: %s", self.key, e)
        else:
            if not acquired:
                logger.warning("timed out waiting for the lock on quiz state %s", self.key)
        try:
            yield
        finally:
            if acquired:
                try:
                    self._lock.release()
                except Exception as e:
                    logger.warning("could not unlock quiz state %s: %s", self.key, e)

    def _notify(self, state: QuizState) -> QuizState:
        with self._subscribers_lock:
            subscribers = list(self._subscribers)
        for fn in subscribers:
            fn(state)
        return state

    def _mutate(self, change: Callable[[QuizState], QuizState]) -> QuizState:
        with self._locked():
            current = self._state if self._unsaved else self._load(self._state)
            state = change(current)
            self._persist(state)
            self._state = state
        return self._notify(state)

    def _update(self, **changes) -> QuizState:
        return self._mutate(lambda s: s.model_copy(update=changes))

    def subscribe(self, fn: Subscriber) -> Callable[[], None]:
        """Register ``fn`` and call it with the current state; returns an unsubscriber."""
        with self._subscribers_lock:
            self._subscribers.append(fn)
        fn(self._state)
        return lambda: self.unsubscribe(fn)

    def unsubscribe(self, fn: Subscriber) -> None:
        with self._subscribers_lock:
            if fn in self._subscribers:
                self._subscribers.remove(fn)

    def set_quizzes(self, quizzes: Iterable[QuizOut], attempts: Iterable[QuizAttemptOut]) -> QuizState:
        attempts = list(attempts)
        items = [with_status(q, latest_attempt_for(q.id, attempts)) for q in quizzes]
        return self._update(quizzes=items)

    def set_current_quiz(self, quiz: QuizWithStatus | None) -> QuizState:
        return self._update(current_quiz=quiz)

    def set_current_attempt(self, attempt: QuizAttemptOut | None) -> QuizState:
        return self._update(current_attempt=attempt)

    def set_selected_subject(self, subject_id: uuid.UUID | None) -> QuizState:
        # A new subject invalidates the category and the quiz list below it.
        return self._update(selected_subject=subject_id, selected_category=None, quizzes=[])

    def set_selected_category(self, category_id: uuid.UUID | None) -> QuizState:
        return self._update(selected_category=category_id, quizzes=[])

    def _patch_quiz(self, quiz_id: uuid.UUID, **changes) -> QuizState:
        def patch(state: QuizState) -> QuizState:
            quizzes = [
                q.model_copy(update=changes) if q.id == quiz_id else q
                for q in state.quizzes
            ]
            return state.model_copy(update={"quizzes": quizzes})

        return self._mutate(patch)

    def update_quiz_progress(
        self,
        quiz_id: uuid.UUID,
        progress: int,
        last_question_id: uuid.UUID | None,
    ) -> QuizState:
        return self._patch_quiz(quiz_id, progress=progress, last_question_id=last_question_id)

    def update_quiz_score(self, quiz_id: uuid.UUID, score: int) -> QuizState:
        return self._patch_quiz(quiz_id, score=score, status=QuizStatus.completed, progress=100)

    def set_loading(self, loading: bool) -> QuizState:
        return self._update(loading=bool(loading))

    def set_error(self, error: str | None) -> QuizState:
        return self._update(error=error)

    def reset(self) -> QuizState:
        with self._locked():
            state = QuizState()
            try:
                self.store.delete(self.key)
                self._unsaved = False
            except Exception as e:
                self._unsaved = True
                logger.warning("could not clear quiz state %s: %s", self.key, e)
            self._state = state
        return self._notify(state)
