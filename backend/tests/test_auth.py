"""
Tests for bearer/cookie authentication on the session routes.
"""

import pytest
from fastapi.testclient import TestClient

from app.core.auth import create_access_token, verify_token
from app.core.deps import get_current_user


@pytest.fixture
def real_auth_client(api_app):
    # Drop the fake caller so requests go through JWT verification
    api_app.dependency_overrides.pop(get_current_user)
    return TestClient(api_app)


def test_token_round_trip(user_id):
    token = create_access_token({"sub": user_id})

    assert verify_token(token)["sub"] == user_id


def test_expired_token_is_rejected(user_id):
    token = create_access_token({"sub": user_id}, expires_hours=-1)

    assert verify_token(token) is None


def test_missing_token(real_auth_client):
    response = real_auth_client.get("/workout-sessions/active")

    assert response.status_code == 401


def test_garbage_token(real_auth_client):
    response = real_auth_client.get(
        "/workout-sessions/active", headers={"Authorization": "Bearer not-a-jwt"}
    )

    assert response.status_code == 401


def test_bearer_token(real_auth_client, user_id):
    token = create_access_token({"sub": user_id})

    response = real_auth_client.get(
        "/workout-sessions/active", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 200
    assert response.json() is None


def test_cookie_token(real_auth_client, user_id):
    real_auth_client.cookies.set("access_token", create_access_token({"sub": user_id}))

    response = real_auth_client.get("/workout-sessions/active")

    assert response.status_code == 200


def test_token_for_unknown_user(real_auth_client):
    token = create_access_token({"sub": "no-such-user"})

    response = real_auth_client.get(
        "/workout-sessions/active", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 401
