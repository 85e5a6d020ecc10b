from __future__ import annotations

import uuid

from fastapi import HTTPException


def parse_id(value: str, name: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"invalid {name}") from e
