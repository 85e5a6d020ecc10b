from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import inspect, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.attempt import QuizAttempt
from app.models.contact import ContactRequest
from app.models.quiz import Choice, Question, Quiz, QuizQuestion
from app.models.subject import Category, Subject

logger = logging.getLogger(__name__)


NO_ROWS = "no_rows"
CONFLICT = "conflict"
UNKNOWN_COLLECTION = "unknown_collection"
UNKNOWN_FIELD = "unknown_field"
DATABASE_ERROR = "database_error"


COLLECTIONS: dict[str, type] = {
    "subjects": Subject,
    "categories": Category,
    "quizzes": Quiz,
    "quiz_questions": QuizQuestion,
    "questions": Question,
    "choices": Choice,
    "quiz_attempts": QuizAttempt,
    "contact_requests": ContactRequest,
}

Filters = Mapping[str, Any]
Ordering = Iterable[tuple[str, bool]]


class GatewayError(Exception):
    """Structured persistence failure: machine-readable code plus message."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def is_no_rows(self) -> bool:
        return self.code == NO_ROWS

    def __repr__(self) -> str:
        return f"GatewayError(code={self.code!r}, message={self.message!r})"


def asc(field: str) -> tuple[str, bool]:
    return (field, False)


def desc(field: str) -> tuple[str, bool]:
    return (field, True)


class Gateway:
    """Record access over named collections.

    Filters are equality predicates keyed by column name; a list or tuple value
    matches any of its members. Ordering is a sequence of ``(field, descending)``
    pairs, built with :func:`asc` / :func:`desc`. Records are plain dicts of
    column values.
    """

    def __init__(self, db: Session):
        self.db = db

    def _model(self, collection: str) -> type:
        model = COLLECTIONS.get(collection)
        if model is None:
            raise GatewayError(UNKNOWN_COLLECTION, f"unknown collection {collection!r}")
        return model

    def _column(self, model: type, field: str):
        if field not in inspect(model).columns:
            raise GatewayError(UNKNOWN_FIELD, f"unknown field {field!r} on {model.__tablename__}")
        return getattr(model, field)

    def _where(self, model: type, filters: Filters | None) -> list:
        clauses = []
        for field, value in (filters or {}).items():
            col = self._column(model, field)
            if isinstance(value, (list, tuple, set, frozenset)):
                clauses.append(col.in_(list(value)))
            elif value is None:
                clauses.append(col.is_(None))
            else:
                clauses.append(col == value)
        return clauses

    @staticmethod
    def _record(obj: Any) -> dict[str, Any]:
        return {attr.key: getattr(obj, attr.key) for attr in inspect(obj).mapper.column_attrs}

    def select(
        self,
        collection: str,
        *,
        filters: Filters | None = None,
        order_by: Ordering | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        model = self._model(collection)
        stmt = select(model).where(*self._where(model, filters))
        for field, descending in order_by or ():
            col = self._column(model, field)
            stmt = stmt.order_by(col.desc() if descending else col.asc())
        if limit is not None:
            stmt = stmt.limit(int(limit))

        try:
            rows = self.db.scalars(stmt).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("select on %s failed: %s", collection, e)
            raise GatewayError(DATABASE_ERROR, f"failed to read {collection}") from e
        return [self._record(r) for r in rows]

    def select_one(
        self,
        collection: str,
        *,
        filters: Filters | None = None,
        order_by: Ordering | None = None,
    ) -> dict[str, Any]:
        rows = self.select(collection, filters=filters, order_by=order_by, limit=1)
        if not rows:
            raise GatewayError(NO_ROWS, f"no rows matched in {collection}")
        return rows[0]

    def insert(self, collection: str, record: Mapping[str, Any]) -> dict[str, Any]:
        model = self._model(collection)
        for field in record:
            self._column(model, field)

        obj = model(**dict(record))
        try:
            self.db.add(obj)
            self.db.commit()
            self.db.refresh(obj)
        except IntegrityError as e:
            self.db.rollback()
            logger.info("insert into %s rejected by constraint: %s", collection, e.orig)
            raise GatewayError(CONFLICT, f"duplicate or invalid row for {collection}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("insert into %s failed: %s", collection, e)
            raise GatewayError(DATABASE_ERROR, f"failed to write {collection}") from e
        return self._record(obj)

    def update(
        self,
        collection: str,
        filters: Filters,
        patch: Mapping[str, Any],
        *,
        require_match: bool = False,
    ) -> int:
        """Apply ``patch`` to every row matching ``filters``; returns the row count.

        With ``require_match`` an update that touches nothing raises ``no_rows``.
        """
        model = self._model(collection)
        values = {}
        for field, value in patch.items():
            self._column(model, field)
            values[field] = value

        stmt = update(model).where(*self._where(model, filters)).values(**values)
        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise GatewayError(CONFLICT, f"update of {collection} rejected") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("update of %s failed: %s", collection, e)
            raise GatewayError(DATABASE_ERROR, f"failed to update {collection}") from e

        count = int(result.rowcount or 0)
        if require_match and count == 0:
            raise GatewayError(NO_ROWS, f"no rows matched in {collection}")
        return count
