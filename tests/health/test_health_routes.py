# tests/health/test_health_routes.py
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
from fastapi import status
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from main import app
from app.core.config import settings
from app.database.session import get_db


@pytest.mark.asyncio
async def test_health_reports_connected_database(async_client: AsyncClient, use_test_db: None) -> None:
    response = await async_client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == "connected"
    assert body["version"] == settings.APP_VERSION


@pytest.mark.asyncio
async def test_health_reports_unreachable_database(async_client: AsyncClient) -> None:
    broken_db = AsyncMock()
    broken_db.execute.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))

    async def _override() -> AsyncGenerator[AsyncMock, None]:
        yield broken_db

    app.dependency_overrides[get_db] = _override
    try:
        response = await async_client.get("/health")
    finally:
        app.dependency_overrides.pop(get_db, None)

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert response.json()["status"] == "error"
    assert response.json()["database"] == "unreachable"
    broken_db.rollback.assert_not_awaited()


@pytest.mark.asyncio
async def test_responses_carry_security_headers(async_client: AsyncClient, use_test_db: None) -> None:
    response = await async_client.get("/health")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
