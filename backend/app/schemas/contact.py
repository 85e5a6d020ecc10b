from __future__ import annotations

from pydantic import BaseModel


class ContactUsRequest(BaseModel):
    first_name: str = ""
    email: str = ""
    message: str = ""


class ContactUsResponse(BaseModel):
    ok: bool = True
