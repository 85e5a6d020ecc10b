from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from app.core.deps import get_catalog
from app.core.security import SessionUser, get_current_user
from app.routers._ids import parse_id
from app.schemas.catalog import CategoryOut, SubjectOut
from app.services.catalog import CatalogService

router = APIRouter(prefix="/api", tags=["catalog"])


@router.get("/subjects", response_model=list[SubjectOut])
def list_subjects(
    catalog: CatalogService = Depends(get_catalog),
    user: SessionUser = Depends(get_current_user),
):
    return catalog.get_subjects()


@router.get("/subjects/{subject_id}", response_model=SubjectOut)
def get_subject(
    subject_id: str,
    catalog: CatalogService = Depends(get_catalog),
    user: SessionUser = Depends(get_current_user),
):
    subject = catalog.get_subject(parse_id(subject_id, "subject id"))
    if subject is None:
        raise HTTPException(status_code=404, detail="subject not found")
    return subject


@router.get("/categories/{subject_id}", response_model=list[CategoryOut])
def list_categories(
    subject_id: str,
    catalog: CatalogService = Depends(get_catalog),
    user: SessionUser = Depends(get_current_user),
):
    return catalog.get_categories(parse_id(subject_id, "subject id"))
