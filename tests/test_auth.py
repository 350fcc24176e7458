"""Tests for access tokens and caller identity."""

from datetime import timedelta

import pytest
from conftest import PATIENT_ID, auth_headers
from httpx import AsyncClient

from cabinet_scheduler.core.security import create_access_token, decode_access_token


def test_access_token_round_trip():
    token = create_access_token({"sub": "123", "role": "patient"})
    payload = decode_access_token(token)

    assert payload["sub"] == "123"
    assert payload["role"] == "patient"
    assert payload["type"] == "access"
    assert decode_access_token(token + "tampered") is None


def test_expired_token_is_invalid():
    token = create_access_token(
        {"sub": "123", "role": "patient"},
        expires_delta=timedelta(minutes=-1),
    )

    assert decode_access_token(token) is None


@pytest.mark.asyncio
async def test_valid_token_identifies_the_caller(client: AsyncClient):
    response = await client.get(
        "/api/v1/appointments/",
        params={"patient_id": 999},
        headers=auth_headers(PATIENT_ID, "patient"),
    )

    assert response.status_code == 200
    assert response.json()["total"] == 0


@pytest.mark.asyncio
async def test_token_without_role_is_rejected(client: AsyncClient):
    token = create_access_token({"sub": "123"})

    response = await client.get(
        "/api/v1/appointments/",
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unknown_role_is_rejected(client: AsyncClient):
    response = await client.get(
        "/api/v1/appointments/",
        headers=auth_headers(123, "receptionist"),
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_non_numeric_subject_is_rejected(client: AsyncClient):
    token = create_access_token({"sub": "someone@example.com", "role": "patient"})

    response = await client.get(
        "/api/v1/appointments/",
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 401
