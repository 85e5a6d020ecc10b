from sqlalchemy import select

from app.models.contact import ContactRequest
from app.routers.contact import validate_contact
from app.schemas.contact import ContactUsRequest


def test_valid_request_is_stored(client, db):
    r = client.post(
        "/contact-us",
        json={"first_name": "Ada Lovelace", "email": "ada@example.com", "message": "Hello"},
    )
    assert r.status_code == 200
    assert r.json() == {"ok": True}

    saved = db.scalar(select(ContactRequest).where(ContactRequest.email == "ada@example.com"))
    assert saved is not None
    assert saved.full_name == "Ada Lovelace"
    assert saved.message_body == "Hello"


def test_invalid_request_reports_every_field(client):
    r = client.post("/contact-us", json={"first_name": "A", "email": "nope", "message": "x" * 2001})
    assert r.status_code == 400
    body = r.json()
    assert body["error_code"] == "validation_failed"
    assert body["errors"] == {
        "full_name": "Name is required",
        "email": "Email is required",
        "message": "Message too long (2001 of 2000)",
    }


def test_email_rules():
    assert validate_contact(ContactUsRequest(first_name="Bob", email="bob-at-example"))["email"] == "Invalid email"
    assert validate_contact(ContactUsRequest(first_name="Bob", email="b" * 501 + "@x.io"))["email"] == "Email too long"
    assert validate_contact(ContactUsRequest(first_name="B" * 501, email="bob@example.com")) == {
        "full_name": "Name too long"
    }
    assert validate_contact(ContactUsRequest(first_name="Bob", email="bob@example.com")) == {}
