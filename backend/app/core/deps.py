from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.redis_client import get_store
from app.core.security import SessionUser, get_current_user
from app.db.session import get_db
from app.services.attempts import AttemptService
from app.services.cache import TimedCache
from app.services.catalog import CatalogService
from app.services.gateway import Gateway
from app.services.quiz_state import QuizStateContainer, state_key


def get_gateway(db: Session = Depends(get_db)) -> Gateway:
    return Gateway(db)


def get_catalog(gateway: Gateway = Depends(get_gateway), store=Depends(get_store)) -> CatalogService:
    return CatalogService(gateway, TimedCache(store))


def get_attempts(gateway: Gateway = Depends(get_gateway)) -> AttemptService:
    return AttemptService(gateway)


def get_quiz_state(
    user: SessionUser = Depends(get_current_user),
    store=Depends(get_store),
) -> QuizStateContainer:
    return QuizStateContainer(store, state_key(user.id))
