import threading
import time
import uuid
from datetime import datetime

import redis
from redis.lock import Lock as RedisLock

from app.schemas.attempt import QuizAttemptOut
from app.schemas.catalog import QuestionOut, QuizOut
from app.schemas.quiz_state import QuizState, QuizStatus
from app.services.quiz_state import QuizStateContainer, state_key, state_lock
from app.services.quiz_status import with_status


class _DictStore:
    def __init__(self):
        self.data: dict[str, str] = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)


class _FullStore(_DictStore):
    def set(self, key, value):
        raise MemoryError("quota exceeded")


class _SlowStore(_DictStore):
    def get(self, key):
        value = super().get(key)
        time.sleep(0.002)
        return value


class _DownLock:
    def acquire(self):
        raise ConnectionError("lock server down")

    def release(self):
        raise AssertionError("never acquired")


def _quiz(title: str, n_questions: int = 4) -> QuizOut:
    return QuizOut(
        id=uuid.uuid4(),
        category_id=uuid.uuid4(),
        title=title,
        questions=[QuestionOut(id=uuid.uuid4(), content=f"{title} {i}") for i in range(n_questions)],
    )


def _attempt(quiz: QuizOut, started: datetime, *, last=None, completed=None, score=0) -> QuizAttemptOut:
    return QuizAttemptOut(
        id=uuid.uuid4(),
        user_id=uuid.uuid4(),
        quiz_id=quiz.id,
        started_at=started,
        completed_at=completed,
        last_answered_question_id=last,
        score=score,
    )


def _container(store=None) -> QuizStateContainer:
    return QuizStateContainer(store if store is not None else _DictStore(), "quiz_state:test")


def test_starts_from_initial_state_when_nothing_is_stored():
    state = _container().state
    assert state == QuizState()
    assert state.quizzes == []
    assert state.loading is False
    assert state.error is None


def test_set_quizzes_uses_latest_attempt_per_quiz():
    algebra, geometry = _quiz("Algebra"), _quiz("Geometry")
    old = _attempt(algebra, datetime(2026, 1, 1), completed=datetime(2026, 1, 1, 1), score=90)
    new = _attempt(algebra, datetime(2026, 2, 1), last=algebra.questions[1].id, score=10)

    state = _container().set_quizzes([algebra, geometry], [old, new])

    first, second = state.quizzes
    assert first.id == algebra.id
    assert first.attempt.id == new.id
    assert first.status == QuizStatus.in_progress
    assert first.progress == 50
    assert first.score == 10
    assert second.status == QuizStatus.not_started
    assert second.progress == 0
    assert second.score is None


def test_selecting_subject_clears_category_and_quizzes():
    c = _container()
    c.set_selected_category(uuid.uuid4())
    c.set_quizzes([_quiz("Algebra")], [])

    subject = uuid.uuid4()
    state = c.set_selected_subject(subject)

    assert state.selected_subject == subject
    assert state.selected_category is None
    assert state.quizzes == []

    # also from the initial state
    assert _container().set_selected_subject(None).quizzes == []


def test_selecting_category_clears_quizzes_only():
    c = _container()
    subject = uuid.uuid4()
    c.set_selected_subject(subject)
    c.set_quizzes([_quiz("Algebra")], [])

    category = uuid.uuid4()
    state = c.set_selected_category(category)

    assert state.selected_subject == subject
    assert state.selected_category == category
    assert state.quizzes == []


def test_update_progress_patches_only_the_matching_quiz():
    algebra, geometry = _quiz("Algebra"), _quiz("Geometry")
    c = _container()
    c.set_quizzes([algebra, geometry], [])

    state = c.update_quiz_progress(algebra.id, 75, algebra.questions[2].id)

    assert state.quizzes[0].progress == 75
    assert state.quizzes[0].last_question_id == algebra.questions[2].id
    assert state.quizzes[1] == c.set_quizzes([algebra, geometry], []).quizzes[1]


def test_update_score_marks_quiz_completed():
    algebra, geometry = _quiz("Algebra"), _quiz("Geometry")
    c = _container()
    c.set_quizzes([algebra, geometry], [_attempt(algebra, datetime(2026, 1, 1))])

    state = c.update_quiz_score(algebra.id, 85)

    assert state.quizzes[0].score == 85
    assert state.quizzes[0].status == QuizStatus.completed
    assert state.quizzes[0].progress == 100
    assert state.quizzes[1].status == QuizStatus.not_started


def test_error_does_not_clear_other_state():
    c = _container()
    c.set_quizzes([_quiz("Algebra")], [])
    state = c.set_error("Failed to load quizzes")
    assert state.error == "Failed to load quizzes"
    assert len(state.quizzes) == 1

    assert c.set_error(None).error is None
    assert c.set_loading(True).loading is True


def test_state_is_persisted_and_rehydrated():
    store = _DictStore()
    quiz = _quiz("Algebra")
    c = _container(store)
    c.set_selected_subject(uuid.uuid4())
    c.set_quizzes([quiz], [])
    c.set_current_quiz(with_status(quiz, None))

    again = _container(store)
    assert again.state == c.state
    assert again.state.current_quiz.id == quiz.id


def test_reset_restores_initial_state_and_clears_store():
    store = _DictStore()
    c = _container(store)
    c.set_loading(True)
    assert "quiz_state:test" in store.data

    state = c.reset()

    assert state == QuizState()
    assert "quiz_state:test" not in store.data
    assert _container(store).state == QuizState()


def test_unreadable_stored_state_falls_back_to_initial():
    store = _DictStore()
    store.data["quiz_state:test"] = '{"loading": "certainly not"}'
    assert _container(store).state == QuizState()


def test_persistence_failures_do_not_break_mutations():
    c = _container(_FullStore())
    assert c.set_loading(True).loading is True
    # the unsaved change is kept for the next mutation
    state = c.set_error("offline")
    assert state.loading is True
    assert state.error == "offline"


def test_subscribers_see_whole_states_until_unsubscribed():
    c = _container()
    seen = []
    unsubscribe = c.subscribe(seen.append)
    assert seen == [QuizState()]

    subject = uuid.uuid4()
    c.set_selected_subject(subject)
    assert seen[-1].selected_subject == subject
    assert seen[-1].selected_category is None

    unsubscribe()
    c.set_loading(True)
    assert len(seen) == 2


def test_mutations_return_new_state_objects():
    c = _container()
    before = c.state
    after = c.set_loading(True)
    assert before.loading is False
    assert after is c.state
    assert after is not before


def test_state_key_is_namespaced_per_user():
    user = uuid.uuid4()
    assert state_key(user).endswith(f":{user}")
    assert state_key(user) != state_key(uuid.uuid4())


def test_containers_on_one_key_keep_each_others_changes():
    store = _DictStore()
    first, second = _container(store), _container(store)
    subject = uuid.uuid4()

    first.set_selected_subject(subject)
    second.set_loading(True)

    state = _container(store).state
    assert state.selected_subject == subject
    assert state.loading is True


def test_concurrent_patches_from_many_containers_are_all_kept():
    store = _SlowStore()
    quizzes = [_quiz(f"Quiz {i}") for i in range(8)]
    _container(store).set_quizzes(quizzes, [])

    def patch(i: int) -> None:
        _container(store).update_quiz_progress(quizzes[i].id, 10 + i, quizzes[i].questions[0].id)

    threads = [threading.Thread(target=patch, args=(i,)) for i in range(len(quizzes))]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    state = _container(store).state
    assert [q.progress for q in state.quizzes] == [10 + i for i in range(len(quizzes))]


def test_subscribers_run_after_the_lock_is_released():
    lock = threading.Lock()
    c = QuizStateContainer(_DictStore(), "quiz_state:test", lock=lock)
    held = []
    c.subscribe(lambda s: held.append(lock.locked()))

    c.set_loading(True)
    c.update_quiz_score(uuid.uuid4(), 10)
    c.reset()

    assert held == [False, False, False, False]


def test_unavailable_lock_does_not_block_mutations():
    c = QuizStateContainer(_DictStore(), "quiz_state:test", lock=_DownLock())
    assert c.set_loading(True).loading is True


def test_state_lock_is_shared_per_key():
    store = _DictStore()
    assert state_lock(store, "quiz_state:a") is state_lock(store, "quiz_state:a")
    assert state_lock(store, "quiz_state:a") is not state_lock(store, "quiz_state:b")


def test_redis_store_gets_a_redis_lock():
    lock = state_lock(redis.Redis(), "quiz_state:a")
    assert isinstance(lock, RedisLock)
    assert lock.name == "quiz_state:a:lock"
