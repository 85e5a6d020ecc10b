from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from app.core.deps import get_gateway
from app.schemas.contact import ContactUsRequest, ContactUsResponse
from app.services.gateway import Gateway, GatewayError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["contact"])


def validate_contact(body: ContactUsRequest) -> dict[str, str]:
    errors: dict[str, str] = {}

    name = body.first_name or ""
    if len(name) < 2:
        errors["full_name"] = "Name is required"
    if len(name) > 500:
        errors["full_name"] = "Name too long"

    email = body.email or ""
    if len(email) < 6:
        errors["email"] = "Email is required"
    elif len(email) > 500:
        errors["email"] = "Email too long"
    elif "@" not in email or "." not in email:
        errors["email"] = "Invalid email"

    message = body.message or ""
    if len(message) > 2000:
        errors["message"] = f"Message too long ({len(message)} of 2000)"

    return errors


@router.post("/contact-us", response_model=ContactUsResponse)
def submit_contact_us(body: ContactUsRequest, gateway: Gateway = Depends(get_gateway)):
    errors = validate_contact(body)
    if errors:
        raise HTTPException(
            status_code=400,
            detail={"error_code": "validation_failed", "error_message": "invalid contact request", "errors": errors},
        )

    now = datetime.now(timezone.utc)
    try:
        gateway.insert(
            "contact_requests",
            {
                "full_name": body.first_name,
                "email": body.email,
                "message_body": body.message,
                "created_at": now,
                "updated_at": now,
            },
        )
    except GatewayError as e:
        logger.error("saving contact request failed: %r", e)
        raise HTTPException(
            status_code=500,
            detail={"error_code": "gateway_error", "error_message": "Error saving"},
        ) from e
    return ContactUsResponse()
