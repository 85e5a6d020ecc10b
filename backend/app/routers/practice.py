from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.deps import get_attempts, get_catalog
from app.core.security import SessionUser, get_current_user
from app.schemas.practice import PracticePageResponse, PracticeUser
from app.services.attempts import AttemptService
from app.services.catalog import CatalogService

router = APIRouter(prefix="/api", tags=["practice"])


@router.get("/practice", response_model=PracticePageResponse)
def practice_page(
    catalog: CatalogService = Depends(get_catalog),
    attempts: AttemptService = Depends(get_attempts),
    user: SessionUser = Depends(get_current_user),
):
    return PracticePageResponse(
        subjects=catalog.get_subjects(),
        attempts=attempts.get_user_attempts(user.id),
        user=PracticeUser(id=user.id, email=user.email),
    )
