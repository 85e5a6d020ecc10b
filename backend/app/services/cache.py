from __future__ import annotations

import enum
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from app.core.config import settings

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> Any: ...

    def delete(self, key: str) -> Any: ...


class CacheKind(str, enum.Enum):
    subjects = "subjects"
    categories = "categories"
    quizzes = "quizzes"


@dataclass(frozen=True)
class CacheKey:
    kind: CacheKind
    parent_id: str | None = None

    @classmethod
    def subjects(cls) -> "CacheKey":
        return cls(CacheKind.subjects)

    @classmethod
    def categories(cls, subject_id) -> "CacheKey":
        return cls(CacheKind.categories, str(subject_id))

    @classmethod
    def quizzes(cls, category_id) -> "CacheKey":
        return cls(CacheKind.quizzes, str(category_id))

    def render(self, prefix: str) -> str:
        if self.parent_id is None:
            return f"{prefix}:{self.kind.value}"
        return f"{prefix}:{self.kind.value}:{self.parent_id}"


class TimedCache:
    """Best-effort cache: entries older than ``ttl_seconds`` read as a miss.

    Stale entries are left in place and simply ignored. Store failures are
    logged, never raised; callers always fall back to the gateway on a miss.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        ttl_seconds: float | None = None,
        prefix: str | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.ttl_seconds = float(ttl_seconds if ttl_seconds is not None else settings.cache_ttl_minutes * 60)
        self.prefix = prefix or settings.cache_key_prefix
        self.clock = clock

    def set_cached_data(self, key: CacheKey, data: Any) -> None:
        try:
            payload = json.dumps({"timestamp": self.clock(), "data": data}, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.warning("cache entry %s is not serializable: %s", key.render(self.prefix), e)
            return
        try:
            self.store.set(key.render(self.prefix), payload)
        except Exception as e:
            logger.warning("cache write failed for %s: %s", key.render(self.prefix), e)

    def get_cached_data(self, key: CacheKey) -> Any | None:
        try:
            raw = self.store.get(key.render(self.prefix))
        except Exception as e:
            logger.warning("cache read failed for %s: %s", key.render(self.prefix), e)
            return None
        if raw is None:
            return None

        try:
            entry = json.loads(raw)
            timestamp = float(entry["timestamp"])
        except (ValueError, TypeError, KeyError) as e:
            logger.warning("ignoring unreadable cache entry %s: %s", key.render(self.prefix), e)
            return None

        if self.clock() - timestamp < self.ttl_seconds:
            return entry.get("data")
        return None
