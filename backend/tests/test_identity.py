"""
Identity adapter tests.
"""

from datetime import timedelta

import pytest

from backend.app.core.identity import ActorContext, map_role
from backend.app.core.jwt import create_access_token, decode_access_token
from backend.app.models.enums import UserRole


@pytest.mark.parametrize("raw, expected", [
    ("admin", UserRole.ADMINISTRATOR),
    ("ADMINISTRATOR", UserRole.ADMINISTRATOR),
    ("customer", UserRole.REGISTERED_USER),
    (" registered_user ", UserRole.REGISTERED_USER),
    ("guest", UserRole.GUEST),
    ("driver", None),
    ("", None),
    (None, None),
])
def test_map_role(raw, expected):
    assert map_role(raw) == expected


def test_actor_from_token_payload():
    actor = ActorContext.from_token_payload(
        {"sub": "alice@example.com", "user_id": "10", "role": "customer", "email": "alice@example.com"}
    )

    assert actor.user_id == 10
    assert actor.role == UserRole.REGISTERED_USER
    assert actor.is_guest is False
    assert actor.owns(10)
    assert not actor.owns(None)


@pytest.mark.parametrize("payload", [
    {"role": "admin"},
    {"user_id": 1, "role": "driver"},
    {"user_id": 1, "role": "guest"},
    {"user_id": "user-abc", "role": "customer"},
    {"user_id": None, "role": "customer"},
    {"user_id": 0, "role": "admin"},
])
def test_unusable_payloads(payload):
    assert ActorContext.from_token_payload(payload) is None


def test_guest_owns_nothing():
    guest = ActorContext.guest()
    assert guest.is_guest
    assert not guest.is_admin
    assert not guest.owns(None)


def test_expired_token_is_rejected():
    token = create_access_token({"user_id": 1, "role": "admin"}, expires_delta=timedelta(minutes=-1))
    assert decode_access_token(token) is None


@pytest.mark.asyncio
async def test_guest_can_reach_public_endpoints(client, catalog_data):
    response = await client.get("/v1/catalog/countries")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_tampered_token_is_rejected(client, alice_headers):
    headers = {"Authorization": alice_headers["Authorization"] + "x"}

    response = await client.get("/v1/users/me/profile", headers=headers)

    assert response.status_code == 401
    assert response.json()["error_code"] == "ERR_UNAUTHORIZED"


@pytest.mark.asyncio
async def test_non_numeric_user_id_is_unauthorized(client):
    token = create_access_token(
        {"sub": "alice@example.com", "user_id": "user-abc", "role": "customer", "email": "alice@example.com"}
    )

    response = await client.get("/v1/shipments", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid token payload"
