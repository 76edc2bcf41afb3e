"""
Shared test data builders.
"""

from backend.app.core.jwt import create_access_token

ADMIN_ID = 1
ALICE_ID = 10
BOB_ID = 11
CAROL_ID = 12  # registered, profile incomplete


class RecordingSender:
    """Notification sender that keeps what it was asked to send."""

    def __init__(self):
        self.sent = []

    async def send(self, recipient_email, template, payload):
        self.sent.append({"to": recipient_email, "template": template, "payload": payload})


class FailingSender:
    def __init__(self):
        self.calls = 0

    async def send(self, recipient_email, template, payload):
        self.calls += 1
        raise ConnectionError("mail transport down")


def auth_headers(user_id, role, email):
    token = create_access_token({"sub": email, "user_id": user_id, "role": role, "email": email})
    return {"Authorization": f"Bearer {token}"}


def receiver_payload(**overrides):
    receiver = {
        "name": "Hans Müller",
        "phone": "+4930123456",
        "address": "Unter den Linden 1",
        "city": "Berlin",
        "postal_code": "10117",
        "country": "Germany",
    }
    receiver.update(overrides)
    return receiver


def guest_sender_payload(**overrides):
    sender = {
        "name": "Greta Guest",
        "email": "greta@example.com",
        "phone": "+46700000000",
        "address": "Drottninggatan 10",
        "city": "Stockholm",
        "postal_code": "11151",
        "country": "Sweden",
    }
    sender.update(overrides)
    return sender


def shipment_payload(box_type_id, country_id, sender=None, **overrides):
    payload = {
        "box_type_id": box_type_id,
        "country_id": country_id,
        "receiver": receiver_payload(),
    }
    if sender is not None:
        payload["sender"] = sender
    payload.update(overrides)
    return payload
